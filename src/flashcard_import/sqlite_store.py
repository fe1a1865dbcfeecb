import asyncio
import logging
import os
import tempfile
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from flashcard_import.store_base import AbstractStoreEngine

LOG = logging.getLogger(__name__)


@dataclass
class SqliteStoreHandle:
    path: str
    engine: AsyncEngine


def _write_temp_store(data: bytes) -> str:
    fd, path = tempfile.mkstemp(prefix="flashcard_import_", suffix=".db")
    with os.fdopen(fd, "wb") as f:
        f.write(data)
    return path


def _remove_quietly(path: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass


class SqliteStoreEngine(AbstractStoreEngine):
    """Opens collection bytes with SQLAlchemy over aiosqlite.

    SQLite needs a real file, so the bytes are copied to a private temp file
    which is deleted again on ``aclose``.
    """

    _runtime_ready = False

    async def ainit_runtime(self) -> None:
        if SqliteStoreEngine._runtime_ready:
            return

        engine = create_async_engine("sqlite+aiosqlite:///:memory:")
        try:
            async with engine.connect() as conn:
                result = await conn.execute(text("SELECT sqlite_version()"))
                version = result.scalar()
        finally:
            await engine.dispose()

        # Redundant initialisation from concurrent imports is harmless
        SqliteStoreEngine._runtime_ready = True
        LOG.info("SQLite runtime ready (version %s)", version)

    async def aopen(self, data: bytes) -> SqliteStoreHandle:
        if not isinstance(data, (bytes, bytearray)):
            raise TypeError(f"Store data must be bytes, got {type(data).__name__}")

        await self.ainit_runtime()
        path = await asyncio.to_thread(_write_temp_store, bytes(data))
        try:
            engine = create_async_engine(f"sqlite+aiosqlite:///{path}")
        except Exception:
            _remove_quietly(path)
            raise
        LOG.debug("Opened store copy at %s (%d bytes)", path, len(data))
        return SqliteStoreHandle(path=path, engine=engine)

    async def aquery(
        self,
        handle: SqliteStoreHandle,
        sql: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        async with handle.engine.connect() as conn:
            result = await conn.execute(text(sql), params or {})
            return [dict(row) for row in result.mappings().all()]

    async def aclose(self, handle: SqliteStoreHandle) -> None:
        try:
            await handle.engine.dispose()
        finally:
            await asyncio.to_thread(_remove_quietly, handle.path)
            LOG.debug("Closed store copy at %s", handle.path)
