import asyncio
import inspect
import io
import json
import logging
import os
import zipfile
from pathlib import Path
from typing import Any, List, Optional, Tuple

from flashcard_import.alternate_formats import (
    decode_delimited_text,
    decode_structured_document,
    default_decoders,
)
from flashcard_import.data_objects import FlashcardRecord
from flashcard_import.errors import (
    CorruptContainerError,
    FlashcardImportError,
    ImportCancelledError,
    UnrecognizedFormatError,
    UnsupportedContainerVariant,
)
from flashcard_import.normalizer import normalize_rows
from flashcard_import.package_models import ContainerVariant
from flashcard_import.settings import DEFAULT_SETTINGS, ImportSettings
from flashcard_import.sqlite_store import SqliteStoreEngine
from flashcard_import.store_base import AbstractStoreEngine
from flashcard_import.store_reader import RelationalStoreReader
from flashcard_import.versions import detect_version, version_help_message
from flashcard_import.vocabulary import DEFAULT_MAPPER, FieldNameMapper

LOG = logging.getLogger(__name__)

ZIP_MAGIC = b"PK\x03\x04"

ARCHIVE = "apkg-archive"
STRUCTURED = "structured-text"
DELIMITED = "delimited-text"
ATTEMPTED_DETECTIONS = (ARCHIVE, STRUCTURED, DELIMITED)


async def _aread_file(file: Any) -> Tuple[str, bytes]:
    """Return ``(file name, content)`` for a path, raw bytes or a file object."""
    if isinstance(file, (bytes, bytearray)):
        return "", bytes(file)

    if isinstance(file, (str, os.PathLike)):
        path = Path(file)
        data = await asyncio.to_thread(path.read_bytes)
        return path.name, data

    read = getattr(file, "read", None)
    if read is None:
        raise TypeError(f"Cannot read flashcard file from {type(file).__name__}")

    name = getattr(file, "filename", None) or getattr(file, "name", None) or ""
    if inspect.iscoroutinefunction(read):
        data = await read()
    else:
        data = await asyncio.to_thread(read)
    if isinstance(data, str):
        data = data.encode("utf-8")
    return os.path.basename(str(name)), data


def _list_archive(data: bytes) -> List[str]:
    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        return archive.namelist()


def _read_archive_entry(data: bytes, entry_name: str) -> bytes:
    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        return archive.read(entry_name)


def _check_cancelled(cancel_event: Optional[asyncio.Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise ImportCancelledError("Import cancelled")


class PackageImporter:
    """Routes a user-supplied file to the archive path or a text decoder.

    Every failure leaves as one of the ``FlashcardImportError`` kinds so
    callers can show a single error message whatever stage broke.
    """

    def __init__(
        self,
        settings: Optional[ImportSettings] = None,
        engine: Optional[AbstractStoreEngine] = None,
        mapper: FieldNameMapper = DEFAULT_MAPPER,
    ) -> None:
        self.settings = settings or DEFAULT_SETTINGS
        self.engine = engine or SqliteStoreEngine()
        self.mapper = mapper
        self.reader = RelationalStoreReader(
            self.engine,
            row_limit=self.settings.row_limit,
            fallback_row_limit=self.settings.fallback_row_limit,
        )

    def detect_input_kind(self, name: str, data: bytes) -> Optional[str]:
        extension = os.path.splitext(name)[1].lower()
        if data.startswith(ZIP_MAGIC) or extension in self.settings.archive_extensions:
            return ARCHIVE
        if extension in self.settings.structured_extensions:
            return STRUCTURED
        if extension in self.settings.delimited_extensions:
            return DELIMITED
        if data.lstrip(b"\xef\xbb\xbf \t\r\n")[:1] in (b"{", b"["):
            return STRUCTURED
        return None

    async def aimport(
        self, file: Any, cancel_event: Optional[asyncio.Event] = None
    ) -> List[FlashcardRecord]:
        name, data = await _aread_file(file)
        _check_cancelled(cancel_event)

        kind = self.detect_input_kind(name, data)
        LOG.info("Importing %s (%d bytes) as %s", name or "<bytes>", len(data), kind)

        if kind == ARCHIVE:
            return await self.aimport_archive(data, name, cancel_event)
        if kind == STRUCTURED:
            return self.import_text(self._decode_text(data, name), name)
        if kind == DELIMITED:
            return self.import_delimited(self._decode_text(data, name), name)

        raise UnrecognizedFormatError(
            ATTEMPTED_DETECTIONS,
            detail=f"{name or 'input'} is neither an Anki package nor a JSON/CSV export",
        )

    async def aimport_archive(
        self,
        data: bytes,
        name: str = "",
        cancel_event: Optional[asyncio.Event] = None,
    ) -> List[FlashcardRecord]:
        label = name or "package"
        try:
            try:
                entries = await asyncio.to_thread(_list_archive, data)
            except Exception as e:
                raise CorruptContainerError(f"{label} is not a readable package archive") from e

            info = detect_version(entries)
            if not info.has_store_entry:
                raise CorruptContainerError(info.diagnostic_message)
            if not info.is_supported:
                raise UnsupportedContainerVariant(info, version_help_message(info))

            if info.variant == ContainerVariant.SUPPORTED_2_0:
                LOG.warning("%s: %s", label, info.diagnostic_message)
            else:
                LOG.info("%s: %s", label, info.diagnostic_message)
            _check_cancelled(cancel_event)

            try:
                store = await asyncio.to_thread(_read_archive_entry, data, info.store_entry_name)
            except Exception as e:
                raise CorruptContainerError(
                    f"Could not extract {info.store_entry_name} from {label}"
                ) from e
            _check_cancelled(cancel_event)

            contents = await self.reader.aread(store)
            _check_cancelled(cancel_event)

            records = normalize_rows(
                contents.rows,
                variant=info.variant,
                models=contents.models,
                mapper=self.mapper,
                settings=self.settings,
            )
        except FlashcardImportError as e:
            LOG.error("Import of %s failed: %s", label, e)
            raise
        except Exception as e:
            LOG.error("Import of %s failed unexpectedly: %s", label, e)
            raise CorruptContainerError(f"Could not import {label}: {e}") from e

        LOG.info("Imported %d of %d notes from %s", len(records), len(contents.rows), label)
        return records

    def import_text(self, content: str, source_name: str = "<text>") -> List[FlashcardRecord]:
        try:
            try:
                data = json.loads(content)
            except ValueError as e:
                raise UnrecognizedFormatError(
                    (STRUCTURED,), detail=f"{source_name} is not valid JSON: {e}"
                ) from e
            except RecursionError as e:
                raise UnrecognizedFormatError(
                    (STRUCTURED,), detail=f"{source_name} is nested too deeply"
                ) from e

            records = decode_structured_document(data, self.settings, default_decoders(self.mapper))
        except FlashcardImportError as e:
            LOG.error("Import of %s failed: %s", source_name, e)
            raise
        except Exception as e:
            LOG.error("Import of %s failed unexpectedly: %s", source_name, e)
            raise UnrecognizedFormatError(
                (STRUCTURED,), detail=f"Could not decode {source_name}: {e}"
            ) from e

        LOG.info("Imported %d records from %s", len(records), source_name)
        return records

    def import_delimited(self, content: str, source_name: str = "<text>") -> List[FlashcardRecord]:
        tab_separated = source_name.lower().endswith(".txt")
        try:
            records = decode_delimited_text(
                content,
                self.settings,
                self.mapper,
                delimiter="\t" if tab_separated else ",",
                has_header=not tab_separated,
            )
        except Exception as e:
            LOG.error("Import of %s failed unexpectedly: %s", source_name, e)
            raise UnrecognizedFormatError(
                (DELIMITED,), detail=f"Could not decode {source_name}: {e}"
            ) from e

        LOG.info("Imported %d records from %s", len(records), source_name)
        return records

    @staticmethod
    def _decode_text(data: bytes, name: str) -> str:
        try:
            return data.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise UnrecognizedFormatError(
                ATTEMPTED_DETECTIONS, detail=f"{name or 'input'} is not UTF-8 text"
            ) from e


async def import_package(
    file: Any,
    *,
    settings: Optional[ImportSettings] = None,
    engine: Optional[AbstractStoreEngine] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> List[FlashcardRecord]:
    """Import flashcards from an Anki package or a JSON/CSV export."""
    importer = PackageImporter(settings=settings, engine=engine)
    return await importer.aimport(file, cancel_event=cancel_event)


def import_structured_text(
    content: str,
    *,
    settings: Optional[ImportSettings] = None,
    source_name: str = "<text>",
) -> List[FlashcardRecord]:
    """Import flashcards from JSON text already held in memory."""
    return PackageImporter(settings=settings).import_text(content, source_name)
