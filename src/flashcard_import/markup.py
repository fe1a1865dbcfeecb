"""Plain-text cleanup for HTML-ish note fields."""

import re

COMMENT_PATTERN = re.compile(r"<!--.*?-->", re.DOTALL)

# Replaced by a space, not removed
BLOCK_TAG_PATTERN = re.compile(
    r"</?(?:div|p|br|li|ul|ol|tr|td|th|table|h[1-6]|hr|blockquote)\b[^>]*>",
    re.IGNORECASE,
)

TAG_PATTERN = re.compile(r"</?[A-Za-z][^>]*>")

ENTITIES = {
    "&nbsp;": " ",
    "&amp;": "&",
    "&lt;": "<",
    "&gt;": ">",
    "&quot;": '"',
    "&#39;": "'",
}
ENTITY_PATTERN = re.compile("|".join(re.escape(e) for e in ENTITIES), re.IGNORECASE)

WHITESPACE_PATTERN = re.compile(r"\s+")


def _strip_once(text: str) -> str:
    cleaned = COMMENT_PATTERN.sub("", text)
    cleaned = BLOCK_TAG_PATTERN.sub(" ", cleaned)
    cleaned = TAG_PATTERN.sub("", cleaned)
    cleaned = ENTITY_PATTERN.sub(lambda m: ENTITIES[m.group(0).lower()], cleaned)
    return WHITESPACE_PATTERN.sub(" ", cleaned).strip()


def strip_markup(text) -> str:
    """Remove tags, decode the common entities and collapse whitespace.

    Escaped markup such as ``&lt;b&gt;`` only becomes a tag after decoding,
    so the cleanup repeats until the text stops changing. The result is a
    fixed point: stripping it again returns it unchanged.
    """
    if not text:
        return ""
    cleaned = str(text)
    while True:
        stripped = _strip_once(cleaned)
        if stripped == cleaned:
            return stripped
        cleaned = stripped
