from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class AbstractStoreEngine(ABC):
    """Narrow seam over the embedded relational engine.

    Handles are opaque to callers; every handle returned by ``aopen`` must be
    passed to ``aclose`` exactly once.
    """

    async def ainit_runtime(self) -> None:
        """Prepare the underlying engine runtime. Safe to call repeatedly."""
        return None

    @abstractmethod
    async def aopen(self, data: bytes) -> Any:
        raise NotImplementedError

    @abstractmethod
    async def aquery(
        self, handle: Any, sql: str, params: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        raise NotImplementedError

    @abstractmethod
    async def aclose(self, handle: Any) -> None:
        raise NotImplementedError
