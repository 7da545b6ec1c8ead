"""
Remote Collection Store — cached snapshots of remote entity collections.

Fetched by: injected fetcher callables (see competency_kernel.client)
Read by: derived views and the view service

Behavioral Contract:
- One snapshot per cache key; snapshots are replaced, never edited in place
- Concurrent subscribes for a key collapse into a single fetch
- A failed fetch keeps the last-known-good items and records the error
- Invalidation starts a new fetch generation; responses from older
  generations are discarded (last request wins) and recorded in
  `stale_writes`
- A mutation only invalidates on success, and waits for the refetches it
  caused before returning
- The store holds no transport logic of its own
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence

from competency_kernel.models.collection import (
    CacheKey,
    CollectionSnapshot,
    ErrorInfo,
    ErrorKind,
    KeyLike,
    MutationResult,
    StaleWriteDiscarded,
    StoreConfig,
    make_key,
)

logger = logging.getLogger("competency_kernel.store")

Fetcher = Callable[[], Awaitable[Sequence[dict]]]
MutationFn = Callable[[], Awaitable[Any]]
Listener = Callable[[CollectionSnapshot], None]


class FetchError(Exception):
    """Raised when a fetched collection cannot be accepted."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class MutationError(Exception):
    """Raised by MutationResult.raise_for_error for a failed mutation."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _error_info(kind: ErrorKind, exc: Exception) -> ErrorInfo:
    return ErrorInfo(
        kind=kind,
        message=str(exc) or exc.__class__.__name__,
        status_code=getattr(exc, "status_code", None),
        occurred_at=_now(),
    )


def _checked_items(items: Any) -> List[dict]:
    """Copy a fetch result, enforcing that every entity has a unique id."""
    if isinstance(items, (str, bytes)) or not isinstance(items, Iterable):
        raise FetchError(f"Fetcher returned {type(items).__name__}, expected a sequence")
    checked = []
    seen = set()
    for position, item in enumerate(items):
        if not isinstance(item, dict) or "id" not in item:
            raise FetchError(f"Entity at position {position} has no id")
        if item["id"] in seen:
            raise FetchError(f"Duplicate entity id {item['id']!r}")
        seen.add(item["id"])
        checked.append(dict(item))
    return checked


class _Entry:
    """Bookkeeping for one cache key."""

    def __init__(self, key: CacheKey):
        self.key = key
        self.snapshot = CollectionSnapshot(key=key)
        self.fetcher: Optional[Fetcher] = None
        self.listeners: List[Optional[Listener]] = []
        self.generation = 0
        self.task: Optional[asyncio.Task] = None
        self.released_at: Optional[datetime] = None

    @property
    def in_flight(self) -> bool:
        return self.task is not None and not self.task.done()


class RemoteCollectionStore:
    """
    Process-wide cache of remote collections, passed explicitly to whoever
    needs it. Runs on a single asyncio event loop; fetches are scheduled as
    tasks on the running loop.
    """

    def __init__(self, config: Optional[StoreConfig] = None):
        self.config = config or StoreConfig()
        self._entries: Dict[CacheKey, _Entry] = {}
        self.stale_writes: List[StaleWriteDiscarded] = []

    # --- Reading ---

    def get(self, key: KeyLike) -> Optional[CollectionSnapshot]:
        """Current snapshot for a key, if one exists."""
        entry = self._entries.get(make_key(key))
        return entry.snapshot if entry else None

    def keys(self) -> List[CacheKey]:
        return list(self._entries)

    def subscriber_count(self, key: KeyLike) -> int:
        entry = self._entries.get(make_key(key))
        return len(entry.listeners) if entry else 0

    def is_fetching(self, key: KeyLike) -> bool:
        entry = self._entries.get(make_key(key))
        return bool(entry and entry.in_flight)

    # --- Subscriptions ---

    def subscribe(
        self,
        key: KeyLike,
        fetcher: Fetcher,
        listener: Optional[Listener] = None,
        current_time: Optional[datetime] = None,
    ) -> CollectionSnapshot:
        """
        Register interest in a key and return its snapshot immediately.

        Starts a fetch when the snapshot is missing or stale, unless one is
        already in flight for the key.
        """
        cache_key = make_key(key)
        entry = self._entries.get(cache_key)
        if entry is None:
            entry = _Entry(cache_key)
            self._entries[cache_key] = entry

        entry.fetcher = fetcher
        entry.listeners.append(listener)
        entry.released_at = None

        if self._needs_fetch(entry, current_time or _now()):
            self._start_fetch(entry)
        return entry.snapshot

    def unsubscribe(self, key: KeyLike, listener: Optional[Listener] = None) -> bool:
        """Drop one registration. Returns False if there was none to drop."""
        entry = self._entries.get(make_key(key))
        if entry is None or listener not in entry.listeners:
            return False
        entry.listeners.remove(listener)
        if not entry.listeners:
            entry.released_at = _now()
        return True

    # --- Invalidation ---

    def invalidate(self, key: KeyLike, exact: bool = False) -> List[CacheKey]:
        """
        Mark matching snapshots stale and refetch those with subscribers.

        Unless `exact` is set, every cached key that starts with `key`
        matches, so ("assessors",) also covers ("assessors", "search", ...).
        Returns the keys that were marked stale.
        """
        prefix = make_key(key)
        marked = []
        for cache_key, entry in self._entries.items():
            if cache_key != prefix and (exact or cache_key[:len(prefix)] != prefix):
                continue
            entry.snapshot = entry.snapshot.model_copy(update={"is_stale": True})
            marked.append(cache_key)
            if entry.listeners and entry.fetcher is not None:
                self._start_fetch(entry)
        return marked

    def revalidate(self, key: KeyLike, current_time: Optional[datetime] = None) -> bool:
        """
        Start a fetch if the snapshot is stale or past its stale time and
        nothing is in flight. Returns True if a fetch was started.
        """
        entry = self._entries.get(make_key(key))
        if entry is None or entry.fetcher is None:
            return False
        if not self._needs_fetch(entry, current_time or _now()):
            return False
        self._start_fetch(entry)
        return True

    async def refresh(self, key: KeyLike) -> Optional[CollectionSnapshot]:
        """Manual refresh: refetch the key even without subscribers, then wait."""
        entry = self._entries.get(make_key(key))
        if entry is None:
            return None
        entry.snapshot = entry.snapshot.model_copy(update={"is_stale": True})
        if entry.fetcher is not None:
            self._start_fetch(entry)
        return await self.settle(key)

    async def settle(self, key: KeyLike) -> Optional[CollectionSnapshot]:
        """Wait until no fetch is in flight for the key; return its snapshot."""
        entry = self._entries.get(make_key(key))
        if entry is None:
            return None
        while entry.in_flight:
            # asyncio.wait does not cancel the fetch if this waiter is cancelled
            await asyncio.wait({entry.task})
        return entry.snapshot

    # --- Mutations ---

    async def mutate(
        self,
        key: KeyLike,
        mutation_fn: MutationFn,
        invalidates: Sequence[KeyLike] = (),
    ) -> MutationResult:
        """
        Run a mutation; on success invalidate `invalidates` and wait for the
        resulting refetches. Failures are returned, never retried.
        """
        cache_key = make_key(key)
        try:
            data = await mutation_fn()
        except Exception as exc:
            logger.warning("Mutation for %s failed: %s", cache_key, exc)
            return MutationResult(
                key=cache_key,
                success=False,
                error=_error_info(ErrorKind.MUTATION_ERROR, exc),
            )

        invalidated = []
        for target in invalidates:
            invalidated.extend(self.invalidate(target))
        for stale_key in invalidated:
            await self.settle(stale_key)

        return MutationResult(
            key=cache_key,
            success=True,
            data=data,
            invalidated=invalidated,
        )

    # --- Retention ---

    def collect_garbage(self, current_time: Optional[datetime] = None) -> List[CacheKey]:
        """Drop unsubscribed, idle snapshots older than the retention period."""
        if current_time is None:
            current_time = _now()

        removed = []
        for cache_key, entry in list(self._entries.items()):
            if entry.listeners or entry.in_flight or entry.released_at is None:
                continue
            idle = (current_time - entry.released_at).total_seconds()
            if idle >= self.config.retention_seconds:
                del self._entries[cache_key]
                removed.append(cache_key)
        return removed

    # --- Internals ---

    def _needs_fetch(self, entry: _Entry, current_time: datetime) -> bool:
        if entry.in_flight:
            return False
        snapshot = entry.snapshot
        if snapshot.is_stale:
            return True
        stale_after = self.config.stale_time_seconds
        if stale_after is not None and snapshot.fetched_at is not None:
            age = (current_time - snapshot.fetched_at).total_seconds()
            return age >= stale_after
        return False

    def _start_fetch(self, entry: _Entry) -> asyncio.Task:
        entry.generation += 1
        entry.snapshot = entry.snapshot.model_copy(update={"is_loading": True})
        loop = asyncio.get_running_loop()
        entry.task = loop.create_task(
            self._run_fetch(entry, entry.generation, entry.fetcher)
        )
        return entry.task

    async def _run_fetch(self, entry: _Entry, generation: int, fetcher: Fetcher) -> None:
        try:
            items = _checked_items(await fetcher())
        except Exception as exc:
            if generation != entry.generation:
                self._discard(entry, generation, succeeded=False)
                return
            logger.warning("Fetch for %s failed: %s", entry.key, exc)
            entry.snapshot = entry.snapshot.model_copy(update={
                "is_loading": False,
                "is_stale": True,
                "error": _error_info(ErrorKind.FETCH_ERROR, exc),
            })
            self._notify(entry)
            return

        if generation != entry.generation:
            self._discard(entry, generation, succeeded=True)
            return

        entry.snapshot = CollectionSnapshot(
            key=entry.key,
            items=items,
            fetched_at=_now(),
            is_stale=False,
            is_loading=False,
            error=None,
        )
        self._notify(entry)

    def _discard(self, entry: _Entry, generation: int, succeeded: bool) -> None:
        logger.debug(
            "Discarding generation %d response for %s (latest is %d)",
            generation, entry.key, entry.generation,
        )
        self.stale_writes.append(StaleWriteDiscarded(
            key=entry.key,
            generation=generation,
            latest_generation=entry.generation,
            succeeded=succeeded,
            discarded_at=_now(),
        ))

    def _notify(self, entry: _Entry) -> None:
        for listener in list(entry.listeners):
            if listener is None:
                continue
            try:
                listener(entry.snapshot)
            except Exception:
                logger.exception("Snapshot listener for %s raised", entry.key)
