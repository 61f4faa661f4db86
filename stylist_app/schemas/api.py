from pydantic import Field
from typing import Any, Dict, List, Literal, Optional, Union

from stylist_app.schemas.analysis import BodyAnalysis, CamelModel, FaceAnalysis
from stylist_app.schemas.intent import EditIntent


class UploadResponse(CamelModel):
    image_url: str
    public_id: str
    canonical_url: Optional[str] = None
    session_id: str
    width: Optional[int] = None
    height: Optional[int] = None


class AnalyzeRequest(CamelModel):
    image_url: Optional[str] = Field(None, description="Public URL of the uploaded photo")
    locale: Optional[str] = None
    session_id: Optional[str] = None


class AnalyzeResponse(CamelModel):
    analysis: Union[FaceAnalysis, BodyAnalysis]
    working_url: str
    cached: bool = False


class IterateRequest(CamelModel):
    """
    One edit iteration.

    user_text may be empty when analysis.suggestedText should be used
    as the instruction (the first edit after an analysis).
    """

    session_id: Optional[str] = None
    original_image_url: Optional[str] = None
    user_text: Optional[str] = None
    prev_public_id: Optional[str] = None
    analysis: Optional[Dict[str, Any]] = None


class IterateResponse(CamelModel):
    edited_url: str
    public_id: str
    note: Optional[str] = None
    instruction: str
    cached: bool = False


class EditRequest(CamelModel):
    image_url: str
    intent: EditIntent
    session_id: str


class EditResponse(CamelModel):
    edited_url: str
    note: Optional[str] = None
    public_id: str
    credits: Optional[int] = None


class ImageUrlRequest(CamelModel):
    image_url: str


class ImageMetadataResponse(CamelModel):
    width: int
    height: int
    format: Optional[str] = None


class ResizeRequest(CamelModel):
    image_url: str
    target_width: int = Field(..., gt=0)
    target_height: int = Field(..., gt=0)


class ModerationResponse(CamelModel):
    ok: bool
    reason: Optional[str] = None


class CleanupRequest(CamelModel):
    public_id: Optional[str] = None


class RegistryDeleteRequest(CamelModel):
    public_id: Optional[str] = None


class CreditsConsumeRequest(CamelModel):
    session_id: str
    action: Literal["analyze", "generate", "edit"] = "generate"


class CreditsResponse(CamelModel):
    ok: bool
    session_id: str
    remaining: Optional[int] = None


class RegistryListResponse(CamelModel):
    ok: bool = True
    data: List[Dict[str, Any]]
