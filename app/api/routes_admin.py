"""
Admin API routes - requires authentication
"""

import json

from fastapi import APIRouter, Depends, UploadFile, File
from fastapi.responses import Response

from app.core.config import settings
from app.core.errors import DecodeError
from app.services.container import ServiceContainer, get_services
from app.services.excel_service import ExcelService, XLSX_MEDIA_TYPE
from app.utils.responses import success_response, error_response, not_found_error
from app.utils.security import verify_admin_token

router = APIRouter(dependencies=[Depends(verify_admin_token)])

SPREADSHEET_EXTENSIONS = ('.xlsx', '.xls', '.csv')

async def _read_upload(file: UploadFile):
    content = await file.read()
    if len(content) > settings.MAX_UPLOAD_SIZE:
        return None
    return content

@router.post("/guests/upload")
async def upload_guest_list(
    file: UploadFile = File(...),
    services: ServiceContainer = Depends(get_services)
):
    """Upload and import a guest list spreadsheet"""
    if not (file.filename or '').lower().endswith(SPREADSHEET_EXTENSIONS):
        return error_response(
            message="Invalid file format. Please upload an Excel or CSV file (.xlsx, .xls, .csv)",
            status_code=400
        )

    content = await _read_upload(file)
    if content is None:
        return error_response(message="File is too large", status_code=413)

    try:
        result = await services.directory.import_spreadsheet(content, file.filename)
    except DecodeError as e:
        return error_response(
            message=DecodeError.user_message,
            details=[str(e)],
            status_code=422
        )

    if not result.guests:
        return error_response(message=result.hint, error_code="no_guests", status_code=422)

    await services.invitations.refresh_bundled()

    return success_response(
        message=f"Guest list imported. {len(result.guests)} guests found.",
        data={
            "processed_count": len(result.guests),
            "filename": file.filename,
            "tables": [table.model_dump() for table in services.directory.tables()],
        }
    )

@router.get("/guests")
async def list_guests(services: ServiceContainer = Depends(get_services)):
    """List the full guest directory"""
    guests = services.directory.guests
    return success_response(
        message="Guests retrieved successfully",
        data={"guests": [guest.model_dump() for guest in guests], "total": len(guests)}
    )

@router.get("/tables")
async def list_tables(services: ServiceContainer = Depends(get_services)):
    """Tables with guest counts and invitation status"""
    tables = [
        {
            **table.model_dump(),
            "invitation": services.invitations.get_for_table(table.name) is not None,
        }
        for table in services.directory.tables()
    ]
    return success_response(message="Tables retrieved successfully", data={"tables": tables})

@router.delete("/guests")
async def clear_guests(services: ServiceContainer = Depends(get_services)):
    """Remove every guest and invitation"""
    await services.clear_all()
    return success_response(message="Guest list and invitations cleared")

@router.post("/guests/reload")
async def reload_guests(services: ServiceContainer = Depends(get_services)):
    """Reload the directory from its sources"""
    count = await services.reload()
    return success_response(message=f"Reloaded {count} guests", data={"total": count})

@router.post("/invitations/{table}")
async def upload_invitation(
    table: str,
    file: UploadFile = File(...),
    services: ServiceContainer = Depends(get_services)
):
    """Attach an invitation file to a table"""
    content = await _read_upload(file)
    if content is None:
        return error_response(message="File is too large", status_code=413)
    if not content:
        return error_response(message="Uploaded file is empty", status_code=400)

    invitation = await services.invitations.set(
        table,
        content,
        file.content_type,
        file.filename or f"{table} invitation",
    )

    return success_response(
        message=f"Invitation saved for {table}",
        data=invitation.model_dump(mode="json")
    )

@router.delete("/invitations/{table}")
async def delete_invitation(
    table: str,
    services: ServiceContainer = Depends(get_services)
):
    """Remove the invitation for a table"""
    if not await services.invitations.remove(table):
        not_found_error("Invitation")
    return success_response(message=f"Invitation removed for {table}")

@router.post("/downloads/reset")
async def reset_downloads(services: ServiceContainer = Depends(get_services)):
    """Clear every guest's downloaded flag"""
    count = await services.invitations.unmark_all()
    return success_response(message=f"Reset {count} downloads", data={"reset_count": count})

@router.get("/export/guests.xlsx")
async def export_guests(services: ServiceContainer = Depends(get_services)):
    """Export the current guest directory to Excel"""
    excel_content = ExcelService.export_directory(services.directory.guests)

    return Response(
        content=excel_content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": "attachment; filename=guest_directory.xlsx"}
    )

@router.get("/export/invitations.json")
async def export_invitations(services: ServiceContainer = Depends(get_services)):
    """Export invitation metadata keyed by table"""
    return success_response(
        message="Invitations exported",
        data=services.invitations.export_index()
    )

@router.post("/import/invitations.json")
async def import_invitations(
    file: UploadFile = File(...),
    services: ServiceContainer = Depends(get_services)
):
    """Restore invitation metadata from a previous export"""
    content = await _read_upload(file)
    if content is None:
        return error_response(message="File is too large", status_code=413)

    try:
        payload = json.loads(content.decode("utf-8-sig"))
    except ValueError as e:
        return error_response(message="Invitation index is not valid JSON", details=[str(e)], status_code=422)

    # Accept the export envelope as well as a bare index
    if isinstance(payload, dict) and "success" in payload and isinstance(payload.get("data"), dict):
        payload = payload["data"]
    if not isinstance(payload, dict):
        return error_response(message="Invitation index must be an object keyed by table", status_code=422)

    tables = await services.invitations.import_index(payload)
    return success_response(
        message=f"Imported {len(tables)} invitations",
        data={"tables": tables, "skipped": len(payload) - len(tables)}
    )
