import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from flashcard_import.errors import CorruptStoreError
from flashcard_import.package_models import NoteModel, RawNoteRow, StoreContents
from flashcard_import.store_base import AbstractStoreEngine

LOG = logging.getLogger(__name__)

REQUIRED_TABLES = ("notes", "cards", "col")

TABLES_QUERY = "SELECT name FROM sqlite_master WHERE type = 'table'"
MODELS_QUERY = "SELECT models FROM col LIMIT 1"
NOTES_QUERY = "SELECT id, flds, tags, mid FROM notes ORDER BY id LIMIT :limit"
FALLBACK_NOTES_QUERY = "SELECT * FROM notes LIMIT :limit"

# Column aliases seen across schema generations, matched case-insensitively
ID_COLUMNS = ("id", "nid", "note_id")
BLOB_COLUMNS = ("flds", "fields")
TAG_COLUMNS = ("tags",)
MODEL_COLUMNS = ("mid", "model_id", "ntid", "notetype_id")


def parse_models(raw: Any) -> Dict[int, NoteModel]:
    """Parse the JSON ``models`` blob of the collection table."""
    if not raw:
        return {}
    data = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
    if not isinstance(data, Mapping):
        raise ValueError("models blob is not a JSON object")

    models: Dict[int, NoteModel] = {}
    for key, entry in data.items():
        if not isinstance(entry, Mapping):
            continue
        model_id = int(entry.get("id", key))
        flds = sorted(entry.get("flds") or [], key=lambda f: f.get("ord", 0))
        models[model_id] = NoteModel(
            id=model_id,
            name=entry.get("name") or "Basic",
            field_names=[f.get("name", "") for f in flds],
        )
    return models


def _pick(columns: Mapping[str, Any], candidates: Sequence[str]) -> Any:
    for name in candidates:
        if name in columns:
            return columns[name]
    return None


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def row_from_columns(columns: Mapping[str, Any], degraded: bool = False) -> RawNoteRow:
    lowered = {str(k).lower(): v for k, v in columns.items()}
    tags = _pick(lowered, TAG_COLUMNS)
    if isinstance(tags, bytes):
        tags = tags.decode("utf-8", errors="replace")
    return RawNoteRow(
        note_id=_pick(lowered, ID_COLUMNS),
        field_blob=_pick(lowered, BLOB_COLUMNS),
        tags=tags if isinstance(tags, str) else "",
        model_id=_as_int(_pick(lowered, MODEL_COLUMNS)),
        columns=dict(columns),
        degraded=degraded,
    )


class RelationalStoreReader:
    def __init__(
        self,
        engine: AbstractStoreEngine,
        row_limit: int = 50,
        fallback_row_limit: int = 50,
    ) -> None:
        self.engine = engine
        self.row_limit = row_limit
        self.fallback_row_limit = fallback_row_limit

    async def aread(self, data: bytes) -> StoreContents:
        """Validate the collection and pull its notes.

        The engine handle is released on every exit path.
        """
        try:
            handle = await self.engine.aopen(data)
        except Exception as e:
            raise CorruptStoreError("Could not open the collection database") from e

        try:
            await self._avalidate(handle)
            models = await self._aload_models(handle)

            rows = await self._aquery_notes(handle)
            degraded = False
            if not rows:
                LOG.warning("Structured note query returned nothing, trying raw rows")
                rows = await self._aquery_fallback(handle)
                degraded = True

            LOG.info("Read %d notes (%d models, degraded=%s)", len(rows), len(models), degraded)
            return StoreContents(rows=rows, models=models, degraded=degraded)
        finally:
            await self.engine.aclose(handle)

    async def _avalidate(self, handle: Any) -> None:
        try:
            tables = await self.engine.aquery(handle, TABLES_QUERY)
        except Exception as e:
            raise CorruptStoreError("Collection database is unreadable") from e

        names = {t.get("name") for t in tables}
        missing = [t for t in REQUIRED_TABLES if t not in names]
        if missing:
            raise CorruptStoreError(
                "Collection database is missing required tables: %s" % ", ".join(missing)
            )

    async def _aload_models(self, handle: Any) -> Dict[int, NoteModel]:
        try:
            result = await self.engine.aquery(handle, MODELS_QUERY)
            return parse_models(result[0].get("models") if result else None)
        except Exception as e:
            LOG.warning("Could not load note models, continuing without them: %s", e)
            return {}

    async def _aquery_notes(self, handle: Any) -> List[RawNoteRow]:
        try:
            result = await self.engine.aquery(handle, NOTES_QUERY, {"limit": self.row_limit})
        except Exception as e:
            LOG.warning("Structured note query failed: %s", e)
            return []
        return [row_from_columns(r) for r in result]

    async def _aquery_fallback(self, handle: Any) -> List[RawNoteRow]:
        try:
            result = await self.engine.aquery(
                handle, FALLBACK_NOTES_QUERY, {"limit": self.fallback_row_limit}
            )
        except Exception as e:
            raise CorruptStoreError("Could not read notes from the collection database") from e
        return [row_from_columns(r, degraded=True) for r in result]
