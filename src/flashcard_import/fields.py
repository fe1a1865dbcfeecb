from typing import List, NamedTuple, Optional, Sequence, Union

from flashcard_import.markup import strip_markup

# Anki's packed-record separator (ASCII unit separator)
FIELD_SEPARATOR = "\x1f"


class DecodedFields(NamedTuple):
    front: str = ""
    back: str = ""
    extra: str = ""


def decode_field_blob(blob: Optional[Union[str, bytes]]) -> List[str]:
    """Split a packed field blob and strip markup from every segment."""
    if blob is None:
        return []
    if isinstance(blob, bytes):
        blob = blob.decode("utf-8")
    if not isinstance(blob, str):
        raise TypeError(f"Field blob must be str or bytes, got {type(blob).__name__}")
    return [strip_markup(part) for part in blob.split(FIELD_SEPARATOR)]


def positional_fields(fields: Sequence[str]) -> DecodedFields:
    front = fields[0] if len(fields) > 0 else ""
    back = fields[1] if len(fields) > 1 else ""
    extra = " ".join(f for f in fields[2:] if f)
    return DecodedFields(front=front, back=back, extra=extra)
