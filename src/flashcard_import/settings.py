from typing import Tuple

from pydantic import BaseModel, ConfigDict, Field

from flashcard_import.data_objects import Difficulty


class ImportSettings(BaseModel):
    """Tunables for one import call.

    Row limits bound how many notes are pulled from an embedded store.
    """

    model_config = ConfigDict(frozen=True)

    row_limit: int = Field(default=50, ge=1)
    fallback_row_limit: int = Field(default=50, ge=1)
    default_category: str = "Imported"
    default_difficulty: Difficulty = Difficulty.MEDIUM
    archive_extensions: Tuple[str, ...] = (".apkg", ".colpkg")
    structured_extensions: Tuple[str, ...] = (".json", ".ankijson")
    delimited_extensions: Tuple[str, ...] = (".csv", ".txt")


DEFAULT_SETTINGS = ImportSettings()
