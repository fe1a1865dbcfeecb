"""Container variant detection for Anki package archives.

An ``.apkg`` is a ZIP archive whose SQLite collection is stored under a
name that changed between Anki generations. Only the entry names are
inspected here; nothing is read or decompressed.
"""

from typing import Iterable, Tuple

from flashcard_import.package_models import ContainerVariant, VersionInfo

STORE_PREFIX = "collection."

# Checked in this order, first hit wins
KNOWN_STORE_ENTRIES: Tuple[Tuple[str, ContainerVariant], ...] = (
    ("collection.anki21", ContainerVariant.SUPPORTED_2_1),
    ("collection.anki2", ContainerVariant.SUPPORTED_2_0),
    ("collection.anki23", ContainerVariant.KNOWN_UNSUPPORTED_2_3),
)

SUPPORTED_VARIANTS = frozenset(
    {ContainerVariant.SUPPORTED_2_0, ContainerVariant.SUPPORTED_2_1}
)


def detect_version(entry_names: Iterable[str]) -> VersionInfo:
    names = set(entry_names)

    for entry_name, variant in KNOWN_STORE_ENTRIES:
        if entry_name not in names:
            continue
        if variant == ContainerVariant.SUPPORTED_2_1:
            return VersionInfo(
                variant=variant,
                store_entry_name=entry_name,
                is_supported=True,
                diagnostic_message="Anki 2.1.x package detected - fully supported",
            )
        if variant == ContainerVariant.SUPPORTED_2_0:
            return VersionInfo(
                variant=variant,
                store_entry_name=entry_name,
                is_supported=True,
                diagnostic_message="Anki 2.0.x package detected - supported with limitations",
            )
        return VersionInfo(
            variant=variant,
            store_entry_name=entry_name,
            is_supported=False,
            suggested_fallback="structured-text",
            diagnostic_message="Anki 2.3.x package detected - this version is not supported, "
            "export as JSON instead",
        )

    candidates = sorted(n for n in names if n.startswith(STORE_PREFIX))
    if candidates:
        return VersionInfo(
            variant=ContainerVariant.UNKNOWN,
            store_entry_name=candidates[0],
            is_supported=False,
            suggested_fallback="structured-text",
            diagnostic_message=f"Unknown Anki package version ({candidates[0]}) - "
            "we recommend exporting as JSON",
        )

    return VersionInfo(
        variant=ContainerVariant.UNKNOWN,
        store_entry_name="",
        is_supported=False,
        suggested_fallback="structured-text",
        diagnostic_message="Invalid or corrupt APKG file - no collection file found",
    )


def suggested_export_format(variant: ContainerVariant) -> str:
    if variant in SUPPORTED_VARIANTS:
        return "apkg"
    return "json"


def version_help_message(info: VersionInfo) -> str:
    """Human-readable remediation for the user, listing alternate exports."""
    if info.is_supported:
        return info.diagnostic_message

    lines = [
        info.diagnostic_message,
        "",
        "Available options:",
        '1. In Anki 2.1.x, export the deck as "Anki Deck Package (*.apkg)"',
        '2. Or export as "Cards in Plain Text (*.txt)" and convert it to JSON',
        "3. Use the AnkiConnect add-on to export the notes directly as JSON",
        "",
        f"Recommended format: {suggested_export_format(info.variant).upper()}",
    ]
    return "\n".join(lines)
