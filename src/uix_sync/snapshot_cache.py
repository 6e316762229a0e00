"""
Snapshot Cache Module.

Holds the most recently parsed hierarchy for one device session and decides when
it is stale. This is the only place that asks the device for a new dump.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, Union

from .ui_tree import Snapshot
from .uix_parser import UixParser

logger = logging.getLogger(__name__)

CaptureFn = Callable[[], Awaitable[Union[str, bytes]]]
ParseFn = Callable[[Union[str, bytes], float], Snapshot]


class SnapshotCache:
    """
    Time-to-live cache around a hierarchy capture coroutine.

    Captures are serialized: a caller that queued behind an in-flight refresh
    reuses its result instead of issuing a second dump.
    """

    def __init__(
        self,
        capture: CaptureFn,
        ttl: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        parse: ParseFn = UixParser.parse,
    ):
        """
        Args:
            capture: Coroutine function returning the raw hierarchy dump.
            ttl: Seconds a snapshot stays fresh.
            clock: Monotonic time source, injectable for tests.
            parse: Dump parser; receives the raw text and the capture time.
        """
        self._capture = capture
        self.ttl = ttl
        self._clock = clock
        self._parse = parse
        self._snapshot: Optional[Snapshot] = None
        self._lock = asyncio.Lock()
        self.capture_count: int = 0

    def peek(self) -> Optional[Snapshot]:
        """Returns the cached snapshot without refreshing it."""
        return self._snapshot

    def invalidate(self) -> None:
        """Forgets the cached snapshot so the next `get` recaptures."""
        self._snapshot = None

    @property
    def age(self) -> Optional[float]:
        if self._snapshot is None:
            return None
        return self._clock() - self._snapshot.captured_at

    def is_stale(self) -> bool:
        if self._snapshot is None:
            return True
        return self._clock() - self._snapshot.captured_at > self.ttl

    async def get(self, force_refresh: bool = False) -> Snapshot:
        """
        Returns the cached snapshot, recapturing when there is none, when
        `force_refresh` is set, or when it is older than the TTL.

        Raises:
            Whatever the capture coroutine raises; the previous snapshot is kept.
        """
        if not force_refresh and not self.is_stale():
            return self._snapshot  # type: ignore[return-value]

        async with self._lock:
            previous = self._snapshot
            # Another caller may have refreshed while we waited for the lock
            if not force_refresh and not self.is_stale():
                return self._snapshot  # type: ignore[return-value]

            raw = await self._capture()
            captured_at = self._clock()
            snapshot = self._parse(raw, captured_at)
            self.capture_count += 1
            self._snapshot = snapshot
            logger.debug(
                "Captured snapshot #%d (%s, replaced=%s)",
                self.capture_count,
                "degraded" if snapshot.degraded else "ok",
                previous is not None,
            )
            return snapshot
