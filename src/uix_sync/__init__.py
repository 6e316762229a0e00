"""
uix-sync: snapshot-based UI automation for Android devices over ADB.
"""

import logging

from .adb_executor import AdbExecutor, CommandExecutor
from .config import SessionConfig
from .device import DeviceSession
from .element import ElementHandle
from .errors import (
    CommandError,
    DeviceNotConnectedError,
    ElementNotFoundError,
    InvalidBoundsError,
    InvalidSelectorError,
    StrategyError,
    UixSyncError,
    WaitTimeoutError,
)
from .gestures import Gestures
from .locator_suggester import LocatorSuggester
from .page import Page
from .query_engine import QueryEngine
from .selector import compile_selector
from .snapshot_cache import SnapshotCache
from .ui_tree import Bounds, Snapshot, UiNode, is_within
from .uix_parser import UixParser
from .waiting import Waiter

__version__ = "0.1.0"

__all__ = [
    "AdbExecutor",
    "Bounds",
    "CommandError",
    "CommandExecutor",
    "DeviceNotConnectedError",
    "DeviceSession",
    "ElementHandle",
    "ElementNotFoundError",
    "Gestures",
    "InvalidBoundsError",
    "InvalidSelectorError",
    "LocatorSuggester",
    "Page",
    "QueryEngine",
    "SessionConfig",
    "Snapshot",
    "SnapshotCache",
    "StrategyError",
    "UiNode",
    "UixParser",
    "UixSyncError",
    "WaitTimeoutError",
    "Waiter",
    "compile_selector",
    "is_within",
]

logging.getLogger(__name__).addHandler(logging.NullHandler())
