"""The cached state of one fetched entity collection."""

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional, Tuple, Union

from pydantic import BaseModel

CacheKey = Tuple[Any, ...]
KeyLike = Union[str, Tuple[Any, ...], List[Any]]


def make_key(key: KeyLike) -> CacheKey:
    """Canonicalise a cache key. A bare string becomes a one-element tuple."""
    if isinstance(key, str):
        return (key,)
    return tuple(key)


class ErrorKind(str, Enum):
    FETCH_ERROR = "fetch_error"
    MUTATION_ERROR = "mutation_error"


class ErrorInfo(BaseModel):
    """What went wrong with a remote call, in a shape the UI can show."""

    kind: ErrorKind
    message: str
    status_code: Optional[int] = None
    occurred_at: datetime


class CollectionSnapshot(BaseModel):
    """
    One cached collection.

    Snapshots are replaced wholesale by the store; nothing edits `items`
    in place, so a reader never observes a half-applied fetch.
    """

    key: CacheKey
    items: List[dict] = []
    fetched_at: Optional[datetime] = None   # None until the first successful fetch
    is_stale: bool = True
    is_loading: bool = False
    error: Optional[ErrorInfo] = None

    @property
    def has_data(self) -> bool:
        """True once any fetch for this key has succeeded."""
        return self.fetched_at is not None


class MutationResult(BaseModel):
    """Outcome of a store mutation."""

    key: CacheKey
    success: bool
    data: Any = None
    error: Optional[ErrorInfo] = None
    invalidated: List[CacheKey] = []

    def raise_for_error(self) -> None:
        """Raise MutationError if the mutation failed."""
        if self.error is not None:
            from competency_kernel.store.collection_store import MutationError

            raise MutationError(self.error.message, status_code=self.error.status_code)


class StaleWriteDiscarded(BaseModel):
    """A fetch response dropped because a newer fetch for the key had started."""

    key: CacheKey
    generation: int
    latest_generation: int
    succeeded: bool
    discarded_at: datetime


class StoreConfig(BaseModel):
    """Configuration for the Remote Collection Store."""

    stale_time_seconds: Optional[float] = None  # None = stale only when invalidated
    retention_seconds: float = 300.0
