"""
Device Session Module.

A `DeviceSession` ties one command executor to its snapshot cache, waiter,
gestures and page. All automation against a device goes through one session.
"""

import asyncio
import logging
import time
from typing import Callable, Optional, Tuple

from .adb_executor import AdbExecutor, CommandExecutor
from .config import SessionConfig
from .element import ElementHandle
from .errors import DeviceNotConnectedError
from .gestures import Gestures
from .page import Page
from .selector import SelectorLike
from .snapshot_cache import SnapshotCache
from .ui_tree import Snapshot, UiNode
from .waiting import Waiter

logger = logging.getLogger(__name__)


class DeviceSession:
    """
    One automation session against one device.
    """

    def __init__(
        self,
        executor: CommandExecutor,
        config: Optional[SessionConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            executor: Device command collaborator (an `AdbExecutor` or a fake).
            config: Timing settings; defaults to `SessionConfig()`.
            clock: Monotonic time source shared by the cache and the waiter.
        """
        self.executor = executor
        self.config = config or SessionConfig()
        self.cache = SnapshotCache(executor.capture_hierarchy, ttl=self.config.snapshot_ttl, clock=clock)
        self.waiter = Waiter(self.cache, self.config, clock=clock)
        self.gestures = Gestures(self)
        self.page = Page(self)
        self._screen_size: Optional[Tuple[int, int]] = None

    @classmethod
    async def connect(cls, serial: Optional[str] = None, config: Optional[SessionConfig] = None) -> 'DeviceSession':
        """
        Opens a session over ADB.

        Raises:
            DeviceNotConnectedError: adb is missing or the device is not in the "device" state.
        """
        config = config or SessionConfig()
        executor = AdbExecutor(serial=serial, command_timeout=config.command_timeout, dump_path=config.dump_path)
        if not await executor.is_connected():
            raise DeviceNotConnectedError(serial)
        logger.info("Connected to device %s", serial or "(default)")
        return cls(executor, config)

    async def snapshot(self, force_refresh: bool = False) -> Snapshot:
        return await self.cache.get(force_refresh=force_refresh)

    async def settle(self) -> None:
        """Drops the cached snapshot after an action and gives the UI time to react."""
        self.cache.invalidate()
        if self.config.settle_delay > 0:
            await asyncio.sleep(self.config.settle_delay)

    async def screen_size(self) -> Tuple[int, int]:
        if self._screen_size is None:
            self._screen_size = await self.executor.screen_size()
        return self._screen_size

    async def current_activity(self) -> Optional[str]:
        return await self.executor.current_activity()

    def handle(self, node: UiNode, snapshot: Snapshot, selector: Optional[SelectorLike] = None) -> ElementHandle:
        return ElementHandle(self, node, snapshot, selector)
