"""Decoders for plain structured-text exports.

These bypass the archive/database path entirely. JSON documents are matched
against each known top-level shape in turn; the first schema that validates
decides the decoder. Every decoder converges on ``FlashcardRecord``.
"""

import csv
import io
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Type, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, RootModel, ValidationError

from flashcard_import.classifier import classify_card_kind
from flashcard_import.data_objects import Difficulty, FlashcardRecord
from flashcard_import.errors import UnrecognizedFormatError
from flashcard_import.fields import decode_field_blob
from flashcard_import.markup import strip_markup
from flashcard_import.normalizer import (
    NoteContent,
    build_record,
    collect_records,
    parse_tags,
    resolve_content,
)
from flashcard_import.package_models import ContainerVariant, NoteModel
from flashcard_import.settings import DEFAULT_SETTINGS, ImportSettings
from flashcard_import.store_reader import parse_models
from flashcard_import.vocabulary import DEFAULT_MAPPER, FieldNameMapper

LOG = logging.getLogger(__name__)

# Exports produced outside a package archive are assumed to use 2.1 naming
EXPORT_VARIANT = ContainerVariant.SUPPORTED_2_1

# Numeric note types used by JSON deck exports
NOTE_TYPE_MODEL_NAMES = {1: "Basic (and reversed card)", 2: "Cloze"}


# Top-level document shapes


class NotesExportDocument(BaseModel):
    notes: List[Dict[str, Any]]
    col: Optional[Dict[str, Any]] = None


class ConnectorExportDocument(BaseModel):
    result: List[Dict[str, Any]]
    error: Optional[str] = None


class DeckCardsDocument(BaseModel):
    cards: List[Dict[str, Any]]
    name: Optional[str] = None


class RecordListDocument(RootModel[List[Dict[str, Any]]]):
    pass


# Item shapes


class ExportedNote(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[Union[int, str]] = None
    flds: Optional[str] = None
    fields: Optional[Dict[str, Any]] = None
    tags: Union[str, List[str], None] = None
    mid: Optional[int] = None
    model_name: Optional[str] = Field(default=None, alias="modelName")
    type: Optional[int] = None


class ConnectorField(BaseModel):
    value: str = ""
    order: int = 0


class ConnectorNote(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    note_id: Optional[Union[int, str]] = Field(default=None, alias="noteId")
    model_name: Optional[str] = Field(default=None, alias="modelName")
    tags: List[str] = Field(default_factory=list)
    fields: Dict[str, ConnectorField] = Field(default_factory=dict)


class PreShapedRecord(BaseModel):
    id: Optional[Union[int, str]] = None
    type: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("type", "cardKind", "card_kind")
    )
    front: str = ""
    back: str = ""
    cloze_text: str = Field(default="", validation_alias=AliasChoices("clozeText", "cloze_text"))
    extra: str = ""
    tags: Union[List[str], str, None] = None
    category: Optional[str] = None
    difficulty: Optional[Difficulty] = None


class StructuredTextDecoder(ABC):
    name: str
    schema: Type[BaseModel]

    def __init__(self, mapper: FieldNameMapper = DEFAULT_MAPPER) -> None:
        self.mapper = mapper

    def provenance(self, source_id) -> str:
        return f"structured-text/{self.name} note {source_id}"

    @abstractmethod
    def decode(self, document: BaseModel, settings: ImportSettings) -> List[FlashcardRecord]:
        raise NotImplementedError


class NotesExportDecoder(StructuredTextDecoder):
    """``{"notes": [...], "col": {"models": ...}}`` collection dumps."""

    name = "notes-export"
    schema = NotesExportDocument

    def decode(self, document: NotesExportDocument, settings: ImportSettings) -> List[FlashcardRecord]:
        models: Dict[int, NoteModel] = {}
        if document.col and document.col.get("models"):
            try:
                models = parse_models(document.col["models"])
            except Exception as e:
                LOG.warning("Ignoring malformed models in notes export: %s", e)

        def build(position: int, item: Dict[str, Any]) -> FlashcardRecord:
            note = ExportedNote.model_validate(item)
            model = models.get(note.mid) if note.mid is not None else None

            if note.flds is not None:
                values = decode_field_blob(note.flds)
                field_names = model.field_names if model else None
            elif note.fields:
                field_names = list(note.fields)
                values = [
                    strip_markup(v.get("value") if isinstance(v, dict) else v)
                    for v in note.fields.values()
                ]
            else:
                raise ValueError("note has neither flds nor fields")

            model_name = note.model_name or (model.name if model else None)
            if not model_name and note.type is not None:
                model_name = NOTE_TYPE_MODEL_NAMES.get(note.type)

            content = resolve_content(values, field_names, EXPORT_VARIANT, self.mapper)
            return build_record(
                source_id=note.id,
                position=position,
                content=content,
                card_kind=classify_card_kind(content.primary, model_name, EXPORT_VARIANT, self.mapper),
                tags=parse_tags(note.tags),
                provenance=self.provenance(note.id),
                settings=settings,
            )

        return collect_records(document.notes, build, label=self.name)


class ConnectorExportDecoder(StructuredTextDecoder):
    """AnkiConnect ``notesInfo`` responses: ``{"result": [...], "error": null}``."""

    name = "connector-export"
    schema = ConnectorExportDocument

    def decode(self, document: ConnectorExportDocument, settings: ImportSettings) -> List[FlashcardRecord]:
        def build(position: int, item: Dict[str, Any]) -> FlashcardRecord:
            note = ConnectorNote.model_validate(item)
            ordered = sorted(note.fields.items(), key=lambda kv: kv[1].order)
            field_names = [name for name, _ in ordered]
            values = [strip_markup(f.value) for _, f in ordered]

            content = resolve_content(values, field_names, EXPORT_VARIANT, self.mapper)
            return build_record(
                source_id=note.note_id,
                position=position,
                content=content,
                card_kind=classify_card_kind(
                    content.primary, note.model_name, EXPORT_VARIANT, self.mapper
                ),
                tags=parse_tags(note.tags),
                provenance=self.provenance(note.note_id),
                settings=settings,
            )

        return collect_records(document.result, build, label=self.name)


def _build_pre_shaped(
    decoder: StructuredTextDecoder, position: int, item: Dict[str, Any], settings: ImportSettings
) -> FlashcardRecord:
    shaped = PreShapedRecord.model_validate(item)
    primary = strip_markup(shaped.cloze_text or shaped.front)
    content = NoteContent(primary, strip_markup(shaped.back), strip_markup(shaped.extra))
    tags = parse_tags(shaped.tags)

    record = build_record(
        source_id=shaped.id,
        position=position,
        content=content,
        card_kind=classify_card_kind(primary, shaped.type, EXPORT_VARIANT, decoder.mapper),
        tags=tags,
        provenance=decoder.provenance(shaped.id),
        settings=settings,
    )
    overrides: Dict[str, Any] = {}
    if shaped.category:
        overrides["category"] = shaped.category
    if shaped.difficulty:
        overrides["difficulty"] = shaped.difficulty
    return record.model_copy(update=overrides) if overrides else record


class DeckCardsDecoder(StructuredTextDecoder):
    """``{"name": ..., "cards": [...]}`` decks holding pre-shaped cards."""

    name = "deck-cards"
    schema = DeckCardsDocument

    def decode(self, document: DeckCardsDocument, settings: ImportSettings) -> List[FlashcardRecord]:
        return collect_records(
            document.cards,
            lambda position, item: _build_pre_shaped(self, position, item, settings),
            label=self.name,
        )


class RecordListDecoder(StructuredTextDecoder):
    """A bare JSON array of pre-shaped flashcards."""

    name = "record-list"
    schema = RecordListDocument

    def decode(self, document: RecordListDocument, settings: ImportSettings) -> List[FlashcardRecord]:
        return collect_records(
            document.root,
            lambda position, item: _build_pre_shaped(self, position, item, settings),
            label=self.name,
        )


def default_decoders(mapper: FieldNameMapper = DEFAULT_MAPPER) -> List[StructuredTextDecoder]:
    return [
        NotesExportDecoder(mapper),
        ConnectorExportDecoder(mapper),
        DeckCardsDecoder(mapper),
        RecordListDecoder(mapper),
    ]


def decode_structured_document(
    data: Any,
    settings: ImportSettings = DEFAULT_SETTINGS,
    decoders: Optional[List[StructuredTextDecoder]] = None,
) -> List[FlashcardRecord]:
    """Try each known document shape in order; the first structural match wins."""
    decoders = decoders if decoders is not None else default_decoders()
    for decoder in decoders:
        try:
            document = decoder.schema.model_validate(data)
        except ValidationError:
            continue
        LOG.info("Decoding structured text as %s", decoder.name)
        return decoder.decode(document, settings)

    raise UnrecognizedFormatError(
        [d.name for d in decoders], detail="JSON document matches no known export shape"
    )


# Column order of the plain CSV export
CSV_COLUMNS = ("front", "back", "tags", "type", "extra", "header", "source")


def decode_delimited_text(
    content: str,
    settings: ImportSettings = DEFAULT_SETTINGS,
    mapper: FieldNameMapper = DEFAULT_MAPPER,
    delimiter: str = ",",
    has_header: bool = True,
) -> List[FlashcardRecord]:
    """Decode a CSV or tab separated plain-text export.

    Lines starting with ``#`` are export metadata (``#separator:tab``) and
    are skipped.
    """
    lines = [line for line in content.splitlines() if not line.startswith("#")]
    rows = [
        r
        for r in csv.reader(io.StringIO("\n".join(lines)), delimiter=delimiter)
        if any(c.strip() for c in r)
    ]
    if has_header:
        rows = rows[1:]
    if not rows:
        return []

    def build(position: int, row: List[str]) -> FlashcardRecord:
        cells = dict(zip(CSV_COLUMNS, (strip_markup(c) for c in row)))
        extra = " ".join(cells[k] for k in ("extra", "header", "source") if cells.get(k))
        content = NoteContent(cells.get("front", ""), cells.get("back", ""), extra)
        # Anki tags never contain spaces; CSV exports list them comma separated
        tags = parse_tags(row[2].replace(",", " ")) if len(row) > 2 else []
        return build_record(
            source_id=f"row{position + 1}",
            position=position,
            content=content,
            card_kind=classify_card_kind(content.primary, cells.get("type"), EXPORT_VARIANT, mapper),
            tags=tags,
            provenance=f"delimited-text row {position + 1}",
            settings=settings,
        )

    return collect_records(rows, build, label="delimited-text")
