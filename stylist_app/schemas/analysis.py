from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Dict, List, Literal, Optional, Union


class CamelModel(BaseModel):
    """Base schema serialised with camelCase keys (the web client's format)"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HairInfo(CamelModel):
    length: Literal["short", "medium", "long"] = "medium"
    color: str = "castaño"
    density: Literal["low", "medium", "high"] = "medium"


class BeardInfo(CamelModel):
    present: bool = False
    style: Optional[str] = None
    density: Literal["low", "medium", "high"] = "low"


class FaceAnalysis(CamelModel):
    """Face / hair analysis of a portrait"""

    face_ok: bool = True
    pose: str = "frontal"
    hair: HairInfo = Field(default_factory=HairInfo)
    beard: BeardInfo = Field(default_factory=BeardInfo)
    accessories: Dict[str, Union[bool, str]] = Field(default_factory=dict)
    lighting: Literal["good", "fair", "poor"] = "good"
    suggested_text: str = ""
    advisory_text: str = ""


class RecommendedItem(CamelModel):
    category: str
    recommendation: str
    colors: Optional[List[str]] = None
    reason: Optional[str] = None
    confidence: Optional[float] = None


class Proportions(CamelModel):
    shoulders: Optional[str] = None
    waist: Optional[str] = None
    hips: Optional[str] = None


class ClothingInfo(CamelModel):
    top: Optional[str] = None
    bottom: Optional[str] = None
    outer: Optional[str] = None
    fit: Optional[str] = None
    colors: Optional[List[str]] = None


class BodyAnalysis(CamelModel):
    """Full-body / clothing analysis of a photo"""

    body_ok: bool = True
    pose: Literal["frontal", "side", "partial", "incomplete"] = "frontal"
    body_type: Optional[str] = None
    proportions: Optional[Proportions] = None
    height_hint: Optional[str] = None
    clothing: Optional[ClothingInfo] = None
    skin_tone: Optional[str] = None
    accessories: Dict[str, bool] = Field(default_factory=dict)
    lighting: Literal["good", "fair", "poor"] = "good"
    suggested_text: str = ""
    advisory_text: str = ""
    recommended: List[RecommendedItem] = Field(default_factory=list)


Analysis = Union[FaceAnalysis, BodyAnalysis]
