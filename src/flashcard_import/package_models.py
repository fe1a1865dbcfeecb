from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ContainerVariant(str, Enum):
    SUPPORTED_2_0 = "anki2"
    SUPPORTED_2_1 = "anki21"
    KNOWN_UNSUPPORTED_2_3 = "anki23"
    UNKNOWN = "unknown"


class VersionInfo(BaseModel):
    """Outcome of inspecting the entry names of a package archive."""

    model_config = ConfigDict(frozen=True)

    variant: ContainerVariant
    store_entry_name: str = ""
    is_supported: bool = False
    suggested_fallback: Optional[Literal["structured-text"]] = None
    diagnostic_message: str = ""

    @property
    def has_store_entry(self) -> bool:
        return bool(self.store_entry_name)


class NoteModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    name: str = "Basic"
    field_names: List[str] = Field(default_factory=list)


class RawNoteRow(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    note_id: Optional[Union[int, str]] = None
    field_blob: Optional[Union[str, bytes]] = None
    tags: str = ""
    model_id: Optional[int] = None
    columns: Dict[str, Any] = Field(default_factory=dict)
    degraded: bool = False


class StoreContents(BaseModel):
    rows: List[RawNoteRow] = Field(default_factory=list)
    models: Dict[int, NoteModel] = Field(default_factory=dict)
    degraded: bool = False
