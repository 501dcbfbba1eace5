"""
Guest-facing API routes
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from app.schemas.guest import DownloadRequest
from app.services.container import ServiceContainer, get_services
from app.utils.responses import content_disposition, success_response, error_response
from app.utils.security import enforce_rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(enforce_rate_limit)])

NOT_FOUND_MESSAGE = "No guests matched the name you entered. Double-check your spelling or contact the event coordinator."

def _invitation_summary(invitation):
    if invitation is None:
        return None
    return {
        "asset_type": invitation.asset_type.value,
        "display_name": invitation.display_name,
        "mime_type": invitation.mime_type,
    }

@router.get("/search")
async def search_guests(
    q: str = Query(""),
    services: ServiceContainer = Depends(get_services)
):
    """Find guests by typed name"""
    if not q.strip():
        return success_response(
            message="Start typing your name to see if you are on the guest list.",
            data={"results": []}
        )
    
    matches = services.matcher.match(services.directory.guests, q)
    results = [
        {
            "name": guest.name,
            "table": guest.table,
            "downloaded": guest.downloaded,
            "invitation": _invitation_summary(services.invitations.get_for_table(guest.table)),
        }
        for guest in matches
    ]
    
    if not results:
        return error_response(message=NOT_FOUND_MESSAGE, status_code=404)
    
    return success_response(
        message=f"{len(results)} guest(s) found",
        data={"results": results}
    )

@router.get("/invitation")
async def get_invitation(
    name: str,
    table: Optional[str] = None,
    services: ServiceContainer = Depends(get_services)
):
    """Invitation details for one guest"""
    guest = services.directory.find(name, table)
    if guest is None:
        return error_response(message=NOT_FOUND_MESSAGE, status_code=404)
    
    invitation = services.invitations.get_for_table(guest.table)
    if invitation is None:
        return error_response(
            message=f"No invitation available for your table ({guest.table})",
            status_code=404
        )
    
    return success_response(
        message="Your invitation is ready",
        data={
            "name": guest.name,
            "table": guest.table,
            "downloaded": guest.downloaded,
            "invitation": _invitation_summary(invitation),
        }
    )

@router.post("/download")
async def download_invitation(
    request_data: DownloadRequest,
    services: ServiceContainer = Depends(get_services)
):
    """Download a guest's invitation once"""
    guest = services.directory.find(request_data.name, request_data.table)
    if guest is None:
        return error_response(message=NOT_FOUND_MESSAGE, status_code=404)
    
    if guest.downloaded:
        return error_response(
            message="This invitation has already been downloaded.",
            error_code="already_downloaded",
            status_code=409
        )
    
    invitation = services.invitations.get_for_table(guest.table)
    if invitation is None:
        return error_response(
            message=f"No invitation available for your table ({guest.table})",
            status_code=404
        )
    
    try:
        content = await services.invitations.read_asset(invitation)
    except OSError as e:
        logger.error(f"Invitation asset for {guest.table} unreadable: {e}")
        return error_response(message="Invitation file is unavailable", status_code=404)
    
    response = Response(
        content=content,
        media_type=invitation.mime_type or "application/octet-stream",
        headers={"Content-Disposition": content_disposition(invitation.display_name)}
    )
    
    if not await services.invitations.mark_downloaded(guest.name, guest.table):
        return error_response(
            message="This invitation has already been downloaded.",
            error_code="already_downloaded",
            status_code=409
        )
    
    return response
