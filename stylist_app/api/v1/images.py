from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from fastapi.responses import Response

from stylist_app.dependencies import get_stylist_service
from stylist_app.schemas.api import ImageMetadataResponse, ImageUrlRequest, ResizeRequest, UploadResponse
from stylist_app.services.stylist_service import StylistService

router = APIRouter(tags=["images"])


@router.post("/upload", response_model=UploadResponse)
async def upload_image(
    file: Optional[UploadFile] = File(None),
    session_id: Optional[str] = Form(None, alias="sessionId"),
    stylist: StylistService = Depends(get_stylist_service)
):
    """Upload a photo (multipart field `file`)"""
    if file is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No file provided"
        )
    data = await file.read()
    return await stylist.upload(data, file.filename, file.content_type, session_id)


@router.post("/image-metadata", response_model=ImageMetadataResponse)
async def image_metadata(
    body: ImageUrlRequest,
    stylist: StylistService = Depends(get_stylist_service)
):
    """Width and height of a remote image (502 when it can't be fetched)"""
    return await stylist.image_metadata(body.image_url)


@router.post("/resize-image")
async def resize_image(
    body: ResizeRequest,
    stylist: StylistService = Depends(get_stylist_service)
):
    """JPEG resized for the before/after slider"""
    content = await stylist.resize(body.image_url, body.target_width, body.target_height)
    return Response(content=content, media_type="image/jpeg")
