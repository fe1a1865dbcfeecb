import re
from typing import Optional

from flashcard_import.data_objects import CardKind
from flashcard_import.package_models import ContainerVariant
from flashcard_import.vocabulary import DEFAULT_MAPPER, FieldNameMapper

CLOZE_MARKER = re.compile(r"\{\{c\d+::")


def has_cloze_marker(text: Optional[str]) -> bool:
    return bool(text) and CLOZE_MARKER.search(text) is not None


def classify_card_kind(
    primary: Optional[str],
    model_name: Optional[str] = None,
    variant: Optional[ContainerVariant] = None,
    mapper: FieldNameMapper = DEFAULT_MAPPER,
) -> CardKind:
    """Decide the card kind of a decoded note.

    A cloze marker in the primary field outranks the model name.
    """
    if has_cloze_marker(primary):
        return CardKind.CLOZE

    known = mapper.model_kind(variant, model_name)
    lowered = (model_name or "").lower()

    if known == CardKind.BASIC_REVERSED or "revers" in lowered or "invert" in lowered:
        return CardKind.BASIC_REVERSED
    if known == CardKind.IMAGE_OCCLUSION or "occlusion" in lowered:
        return CardKind.IMAGE_OCCLUSION
    return CardKind.BASIC
