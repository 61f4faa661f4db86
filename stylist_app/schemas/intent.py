from typing import List, Literal

from stylist_app.schemas.analysis import CamelModel


class EditChange(CamelModel):
    type: str
    value: str


class EditIntent(CamelModel):
    """Structured edit request derived from free text"""

    locale: Literal["es", "en"] = "es"
    change: List[EditChange]
    instruction: str
    preserve_identity: bool = True
    output_size: int = 1024
    watermark: bool = True

    def has_change(self, change_type: str) -> bool:
        return any(c.type == change_type for c in self.change)
