from typing import Iterable, Optional, Tuple

from flashcard_import.package_models import VersionInfo


class FlashcardImportError(Exception):
    """Base class for every failure surfaced by the import pipeline."""


class UnsupportedContainerVariant(FlashcardImportError):
    def __init__(self, version_info: VersionInfo, remediation: str) -> None:
        super().__init__(f"{version_info.diagnostic_message}\n\n{remediation}")
        self.version_info = version_info
        self.remediation = remediation

    @property
    def suggested_fallback(self) -> Optional[str]:
        return self.version_info.suggested_fallback


class CorruptContainerError(FlashcardImportError):
    pass


class CorruptStoreError(FlashcardImportError):
    pass


class UnrecognizedFormatError(FlashcardImportError):
    def __init__(self, attempted: Iterable[str], detail: str = "") -> None:
        self.attempted: Tuple[str, ...] = tuple(attempted)
        message = "Unrecognized flashcard format (tried: %s)" % ", ".join(self.attempted)
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ImportCancelledError(FlashcardImportError):
    pass
