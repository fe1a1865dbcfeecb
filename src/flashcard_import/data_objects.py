from enum import Enum
from typing import Optional, Set

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class CardKind(str, Enum):
    BASIC = "basic"
    BASIC_REVERSED = "basic_inverted"
    CLOZE = "cloze"
    IMAGE_OCCLUSION = "image_occlusion"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class FlashcardRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: str
    card_kind: CardKind = Field(..., alias="cardKind", serialization_alias="cardKind")
    front: Optional[str] = None
    back: Optional[str] = None
    cloze_text: Optional[str] = Field(
        default=None, alias="clozeText", serialization_alias="clozeText"
    )
    extra: Optional[str] = None
    tags: Set[str] = Field(default_factory=set)
    difficulty: Difficulty = Difficulty.MEDIUM
    category: str = "Imported"
    provenance: str = ""

    @field_validator("front", "back", "cloze_text", "extra", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def _check_content(self) -> "FlashcardRecord":
        if self.card_kind == CardKind.CLOZE:
            if not self.cloze_text:
                raise ValueError("cloze record without cloze text")
        elif not (self.front and self.back):
            raise ValueError(f"{self.card_kind.value} record needs both front and back")
        return self
