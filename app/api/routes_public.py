"""
Public API routes - no authentication required
"""

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from app.services.container import ServiceContainer, get_services
from app.services.directory_service import format_table_label
from app.services.excel_service import ExcelService, XLSX_MEDIA_TYPE
from app.utils.responses import success_response, error_response

router = APIRouter()

@router.get("/health")
async def health_check(services: ServiceContainer = Depends(get_services)):
    """Health check endpoint"""
    return {
        "status": "ok",
        "guests": len(services.directory.guests),
        "remote_configured": services.remote is not None,
    }

@router.get("/template/guest_list_template.xlsx")
async def download_template():
    """Download an Excel template in the guest list layout"""
    template_bytes = ExcelService.create_template()
    
    return Response(
        content=template_bytes,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": "attachment; filename=guest_list_template.xlsx"}
    )

@router.get("/tables/{label}")
async def table_welcome(
    label: str,
    services: ServiceContainer = Depends(get_services)
):
    """Welcome details for a shared table link"""
    table_label = format_table_label(label)
    if not table_label:
        return error_response(
            message="This link is missing a table reference. Please verify the URL you received.",
            status_code=400
        )
    
    guests = services.directory.guests_at_table(label)
    invitation = services.invitations.get_for_table(guests[0].table) if guests else None
    
    return success_response(
        message=f"Welcome to {table_label}",
        data={
            "table": table_label,
            "guest_count": len(guests),
            "has_invitation": invitation is not None,
        }
    )
