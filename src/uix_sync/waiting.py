"""
Synchronization Module.

`Waiter.until` is the single polling primitive behind every "wait for ..."
operation: it repeatedly takes a snapshot from the cache, probes it, and
either returns the accepted result or sleeps cooperatively and retries until
the timeout elapses.
"""

import asyncio
import inspect
import logging
import time
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

from .config import SessionConfig
from .errors import UixSyncError, WaitTimeoutError
from .snapshot_cache import SnapshotCache
from .ui_tree import Snapshot

logger = logging.getLogger(__name__)

T = TypeVar("T")

Probe = Callable[[Optional[Snapshot]], Union[Optional[T], Awaitable[Optional[T]]]]
Guard = Callable[[T], bool]


class Waiter:
    """
    Polls a `SnapshotCache` until a probe yields an accepted result.
    """

    def __init__(
        self,
        cache: SnapshotCache,
        config: Optional[SessionConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.cache = cache
        self.config = config or SessionConfig()
        self._clock = clock
        self._sleep = sleep

    async def until(
        self,
        probe: Probe,
        *,
        timeout: Optional[float] = None,
        poll_interval: Optional[float] = None,
        guard: Optional[Guard] = None,
        description: str = "condition",
        selector: Any = None,
        needs_snapshot: bool = True,
    ) -> T:
        """
        Waits until `probe(snapshot)` returns a value that is not None and that
        `guard` (when given) accepts.

        Args:
            probe: Called with each snapshot; may be a coroutine function.
            timeout: Seconds to keep trying (defaults to the config's default_timeout).
            poll_interval: Seconds between attempts (defaults to the config's poll_interval).
            guard: Extra acceptance test applied to a non-None probe result.
            description: Text used in logs and in the timeout error.
            selector: Original selector, attached to the timeout error.
            needs_snapshot: When false the cache is never consulted and `probe`
                receives None, for conditions read from the device directly.

        Raises:
            WaitTimeoutError: nothing was accepted within `timeout`. Raised no
                earlier than `timeout` and at most one poll interval later.
        """
        timeout = self.config.default_timeout if timeout is None else timeout
        poll_interval = self.config.poll_interval if poll_interval is None else poll_interval
        refresh_interval = max(self.config.refresh_interval, poll_interval)

        start = self._clock()
        deadline = start + timeout
        last_forced = start
        last_error: Optional[BaseException] = None
        attempts = 0

        while True:
            attempts += 1
            snapshot: Optional[Snapshot] = None
            try:
                if needs_snapshot:
                    now = self._clock()
                    force = now - last_forced >= refresh_interval
                    if force:
                        last_forced = now
                    snapshot = await self.cache.get(force_refresh=force)
                result = probe(snapshot)
                if inspect.isawaitable(result):
                    result = await result
                if result is not None and (guard is None or guard(result)):
                    logger.debug("%s satisfied after %d attempt(s)", description, attempts)
                    return result
            except UixSyncError as e:
                last_error = e
                logger.debug("%s: attempt %d failed: %s", description, attempts, e)

            remaining = deadline - self._clock()
            if remaining <= 0:
                elapsed = self._clock() - start
                raise WaitTimeoutError(description, timeout, elapsed, last_error, selector=selector)
            await self._sleep(min(poll_interval, remaining))
