from fastapi import APIRouter, Depends, Request

from stylist_app.dependencies import get_stylist_service
from stylist_app.ratelimit import get_request_identifier
from stylist_app.schemas.api import (
    CleanupRequest,
    EditRequest,
    EditResponse,
    ImageUrlRequest,
    IterateRequest,
    ModerationResponse,
)
from stylist_app.services.stylist_service import StylistService

router = APIRouter(tags=["edits"])


@router.post("/iterate")
async def iterate_edit(
    body: IterateRequest,
    request: Request,
    stylist: StylistService = Depends(get_stylist_service)
):
    """Run one edit iteration; returns {editedUrl, publicId, note, instruction, cached}"""
    session_id = body.session_id or get_request_identifier(request)
    return await stylist.iterate(body, session_id)


@router.post("/edit", response_model=EditResponse)
async def edit_image(
    body: EditRequest,
    stylist: StylistService = Depends(get_stylist_service)
):
    """Apply a structured edit intent"""
    return await stylist.edit(body.image_url, body.intent, body.session_id)


@router.post("/moderate", response_model=ModerationResponse)
async def moderate(
    body: ImageUrlRequest,
    stylist: StylistService = Depends(get_stylist_service)
):
    result = await stylist.moderate(body.image_url)
    return ModerationResponse(ok=result.ok, reason=result.reason)


@router.post("/cleanup")
async def cleanup(
    body: CleanupRequest,
    stylist: StylistService = Depends(get_stylist_service)
):
    """Delete a generated image the client no longer displays"""
    ok = await stylist.cleanup(body.public_id)
    return {"ok": ok}
