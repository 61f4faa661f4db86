from fastapi import APIRouter, Depends, Request

from stylist_app.dependencies import get_stylist_service
from stylist_app.ratelimit import get_request_identifier
from stylist_app.schemas.api import AnalyzeRequest
from stylist_app.services.stylist_service import StylistService

router = APIRouter(tags=["analysis"])


@router.post("/analyze")
async def analyze_image(
    body: AnalyzeRequest,
    request: Request,
    stylist: StylistService = Depends(get_stylist_service)
):
    """
    Analyze an uploaded photo.

    Returns {analysis, workingUrl, cached}; the analysis shape depends on
    the configured analysis mode (face or body).
    """
    session_id = body.session_id or get_request_identifier(request)
    return await stylist.analyze(body.image_url, body.locale, session_id)
