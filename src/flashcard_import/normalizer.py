import logging
from typing import Callable, Iterable, List, Mapping, NamedTuple, Optional, Sequence, TypeVar, Union

from flashcard_import.classifier import classify_card_kind
from flashcard_import.data_objects import CardKind, FlashcardRecord
from flashcard_import.fields import decode_field_blob, positional_fields
from flashcard_import.package_models import ContainerVariant, NoteModel, RawNoteRow
from flashcard_import.settings import DEFAULT_SETTINGS, ImportSettings
from flashcard_import.vocabulary import DEFAULT_MAPPER, FieldNameMapper

LOG = logging.getLogger(__name__)

T = TypeVar("T")

NON_TEXT_ROLES = frozenset({"media", "image"})


class NoteContent(NamedTuple):
    primary: str = ""
    secondary: str = ""
    extra: str = ""


def make_record_id(source_id, position: int) -> str:
    if source_id is None or source_id == "":
        source_id = "note"
    return f"imported_{source_id}_{position}"


def parse_tags(raw: Union[str, Iterable[str], None]) -> List[str]:
    """Split Anki-style space separated tags, keeping first-seen order."""
    if not raw:
        return []
    parts = raw.split() if isinstance(raw, str) else [str(t).strip() for t in raw]
    seen = []
    for tag in parts:
        if tag and tag not in seen:
            seen.append(tag)
    return seen


def content_from_roles(roles: Mapping[str, str]) -> NoteContent:
    primary_role = "text" if roles.get("text") else "front"
    extra = " ".join(
        value
        for role, value in roles.items()
        if role not in (primary_role, "back") and role not in NON_TEXT_ROLES and value
    )
    return NoteContent(roles.get(primary_role, ""), roles.get("back", ""), extra)


def resolve_content(
    values: Sequence[str],
    field_names: Optional[Sequence[str]] = None,
    variant: Optional[ContainerVariant] = None,
    mapper: FieldNameMapper = DEFAULT_MAPPER,
) -> NoteContent:
    """Turn decoded field values into primary/secondary/extra text.

    Named fields are mapped to roles when the model is known; otherwise, or
    when none of the names are recognised, the positional layout is used.
    """
    if field_names:
        named = {}
        for i, value in enumerate(values):
            name = field_names[i] if i < len(field_names) else f"Field {i + 1}"
            named[name] = value
        roles = mapper.map_fields(variant, named)
        if any(role in roles for role in ("front", "text", "back")):
            return content_from_roles(roles)

    decoded = positional_fields(values)
    return NoteContent(decoded.front, decoded.back, decoded.extra)


def build_record(
    *,
    source_id,
    position: int,
    content: NoteContent,
    card_kind: CardKind,
    tags: Sequence[str] = (),
    provenance: str = "",
    settings: ImportSettings = DEFAULT_SETTINGS,
) -> FlashcardRecord:
    if card_kind == CardKind.CLOZE:
        front, back, cloze_text = None, None, content.primary
        extra = " ".join(t for t in (content.secondary, content.extra) if t)
    else:
        front, back, cloze_text = content.primary, content.secondary, None
        extra = content.extra

    return FlashcardRecord(
        id=make_record_id(source_id, position),
        card_kind=card_kind,
        front=front,
        back=back,
        cloze_text=cloze_text,
        extra=extra,
        tags=set(tags),
        difficulty=settings.default_difficulty,
        category=tags[0] if tags else settings.default_category,
        provenance=provenance,
    )


def normalize_note(
    row: RawNoteRow,
    position: int,
    *,
    variant: ContainerVariant,
    models: Mapping[int, NoteModel],
    mapper: FieldNameMapper = DEFAULT_MAPPER,
    settings: ImportSettings = DEFAULT_SETTINGS,
) -> FlashcardRecord:
    values = decode_field_blob(row.field_blob)
    model = models.get(row.model_id) if row.model_id is not None else None

    content = resolve_content(values, model.field_names if model else None, variant, mapper)
    model_name = model.name if model else None
    card_kind = classify_card_kind(content.primary, model_name, variant, mapper)

    provenance = f"apkg/{variant.value} note {row.note_id}"
    if model_name:
        provenance += f" model {model_name!r}"
    if row.degraded:
        provenance += " (raw row fallback)"

    return build_record(
        source_id=row.note_id,
        position=position,
        content=content,
        card_kind=card_kind,
        tags=parse_tags(row.tags),
        provenance=provenance,
        settings=settings,
    )


def collect_records(
    items: Sequence[T],
    build: Callable[[int, T], FlashcardRecord],
    label: str,
) -> List[FlashcardRecord]:
    """Build one record per item; a failing item is logged and skipped."""
    records: List[FlashcardRecord] = []
    for position, item in enumerate(items):
        try:
            records.append(build(position, item))
        except Exception as e:
            LOG.warning("Skipping %s item %d: %s", label, position, e)

    skipped = len(items) - len(records)
    if skipped:
        LOG.warning("Skipped %d of %d %s items", skipped, len(items), label)
    return records


def normalize_rows(
    rows: Sequence[RawNoteRow],
    *,
    variant: ContainerVariant,
    models: Mapping[int, NoteModel],
    mapper: FieldNameMapper = DEFAULT_MAPPER,
    settings: ImportSettings = DEFAULT_SETTINGS,
) -> List[FlashcardRecord]:
    return collect_records(
        rows,
        lambda position, row: normalize_note(
            row, position, variant=variant, models=models, mapper=mapper, settings=settings
        ),
        label="apkg note",
    )
