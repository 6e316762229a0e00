"""
ADB Executor Module.

This module provides the device command collaborator: hierarchy capture and
input injection through the Android Debug Bridge (ADB). Commands for one device
are serialized behind a lock so a capture never overlaps another command.
"""

import asyncio
import logging
import os
import re
import shutil
from typing import List, Optional, Protocol, Tuple, runtime_checkable

from .errors import CommandError, UixSyncError
from .strategies import Strategy, run_strategies

logger = logging.getLogger(__name__)

KEYCODE_HOME = 3
KEYCODE_BACK = 4
KEYCODE_DEL = 67
KEYCODE_MENU = 82
KEYCODE_MOVE_END = 123
KEYCODE_APP_SWITCH = 187

# Characters the device shell would otherwise interpret in `input text`
_SHELL_SPECIALS = re.compile(r'([\\\'"`$&|;<>()*~!?#\[\]{}])')


@runtime_checkable
class CommandExecutor(Protocol):
    """Everything the automation core needs from a device."""

    async def capture_hierarchy(self) -> str: ...
    async def tap(self, x: int, y: int) -> None: ...
    async def swipe(self, x1: int, y1: int, x2: int, y2: int, duration_ms: int = 300) -> None: ...
    async def input_text(self, text: str) -> None: ...
    async def key_event(self, code: int) -> None: ...
    async def screen_size(self) -> Tuple[int, int]: ...
    async def current_activity(self) -> Optional[str]: ...


def escape_input_text(text: str) -> str:
    """
    Escapes text for `adb shell input text`.
    Example: "a b&c" -> "a%sb\\&c"
    """
    return _SHELL_SPECIALS.sub(r'\\\1', text).replace(' ', '%s')


def is_hierarchy_dump(xml: Optional[str]) -> bool:
    return bool(xml) and "<hierarchy" in xml


class AdbExecutor:
    """
    `CommandExecutor` backed by the `adb` binary.
    """

    def __init__(
        self,
        serial: Optional[str] = None,
        command_timeout: float = 30.0,
        dump_path: str = "/sdcard/window_dump.xml",
        adb_path: Optional[str] = None,
    ):
        self.serial: Optional[str] = (serial or "").strip() or None
        self.command_timeout = command_timeout
        self.dump_path = dump_path
        self._adb_path = adb_path
        self._adb: Optional[str] = None
        self._lock = asyncio.Lock()
        self._screen_size: Optional[Tuple[int, int]] = None

    @staticmethod
    def _resolve_adb(configured: Optional[str] = None) -> str:
        """
        Picks the adb binary: an explicitly configured path, then PATH, then the
        platform-tools of each known SDK location. Falls back to the bare name
        so a spawn failure still names the binary.
        """
        if configured:
            return configured
        found = shutil.which("adb")
        if found:
            return found
        exe = "adb.exe" if os.name == "nt" else "adb"
        sdk_roots = [os.environ.get("ANDROID_HOME"), os.environ.get("ANDROID_SDK_ROOT")]
        local_appdata = os.environ.get("LOCALAPPDATA")
        if local_appdata:
            sdk_roots.append(os.path.join(local_appdata, "Android", "Sdk"))
        for sdk in sdk_roots:
            if not sdk:
                continue
            path = os.path.join(sdk, "platform-tools", exe)
            if os.path.isfile(path):
                return path
        logger.debug("adb not found on PATH or in any SDK location; using bare 'adb'")
        return "adb"

    def _base_cmd(self) -> List[str]:
        if self._adb is None:
            self._adb = self._resolve_adb(self._adb_path)
        cmd = [self._adb]
        if self.serial:
            cmd += ["-s", self.serial]
        return cmd

    @staticmethod
    def _kill(proc: asyncio.subprocess.Process) -> None:
        if proc.returncode is not None:
            return
        try:
            proc.kill()
        except ProcessLookupError:
            # Exited between the check and the signal
            pass

    async def _run(self, args: List[str], timeout: Optional[float] = None) -> str:
        """
        Executes one adb command and returns its stdout.

        Callers must already hold `self._lock`.

        Raises:
            CommandError: the binary is missing, the command timed out or exited non-zero.
        """
        cmd = self._base_cmd() + args
        timeout = self.command_timeout if timeout is None else timeout
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise CommandError(cmd, None, str(e)) from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            self._kill(proc)
            await proc.wait()
            raise CommandError(cmd, None, f"timed out after {timeout}s")
        except asyncio.CancelledError:
            self._kill(proc)
            raise

        out = stdout.decode("utf-8", errors="replace")
        err = stderr.decode("utf-8", errors="replace")
        if proc.returncode != 0:
            raise CommandError(cmd, proc.returncode, err or out)
        return out

    async def _shell(self, *args: str, timeout: Optional[float] = None) -> str:
        return (await self._run(["shell", *args], timeout=timeout)).strip()

    async def shell(self, *args: str, timeout: Optional[float] = None) -> str:
        async with self._lock:
            return await self._shell(*args, timeout=timeout)

    async def is_connected(self) -> bool:
        async with self._lock:
            try:
                state = await self._run(["get-state"], timeout=10)
            except UixSyncError:
                return False
        return state.strip() == "device"

    async def get_devices(self) -> List[dict]:
        """
        Lists attached devices as dictionaries with 'serial', 'state' and 'model' keys.
        """
        async with self._lock:
            output = await self._run(["devices", "-l"], timeout=10)
        devices: List[dict] = []
        for line in output.strip().split('\n')[1:]:
            parts = line.split()
            if len(parts) < 2 or "daemon" in line:
                continue
            details = {"serial": parts[0], "state": parts[1], "model": "Unknown"}
            for p in parts[2:]:
                if p.startswith("model:"):
                    details["model"] = p.split(":", 1)[1]
            devices.append(details)
        return devices

    async def capture_hierarchy(self) -> str:
        """
        Retrieves the UI hierarchy dump, trying several dump methods in order.

        Raises:
            StrategyError: no method produced a hierarchy.
        """
        async with self._lock:
            return await run_strategies(self._dump_strategies(), accept=is_hierarchy_dump, label="UI hierarchy dump")

    def _dump_strategies(self) -> List[Strategy[str]]:
        async def file_dump(path: str, compressed: bool) -> str:
            # Delete the old file so a failed dump is never mistaken for fresh output
            await self._shell("rm", "-f", path)
            cmd = ["uiautomator", "dump"]
            if compressed:
                cmd.append("--compressed")
            await self._shell(*cmd, path)
            return await self._shell("cat", path)

        async def direct_dump() -> str:
            return await self._shell("uiautomator", "dump", "/dev/tty")

        return [
            Strategy("Standard UI Dump", lambda: file_dump(self.dump_path, False)),
            Strategy("Compressed UI Dump", lambda: file_dump(self.dump_path, True)),
            Strategy("Direct stdout dump", direct_dump),
            Strategy("Alternative location dump", lambda: file_dump("/data/local/tmp/window_dump.xml", False)),
        ]

    async def tap(self, x: int, y: int) -> None:
        async with self._lock:
            await self._shell("input", "tap", str(int(x)), str(int(y)))

    async def swipe(self, x1: int, y1: int, x2: int, y2: int, duration_ms: int = 300) -> None:
        async with self._lock:
            await self._shell("input", "swipe", str(int(x1)), str(int(y1)), str(int(x2)), str(int(y2)), str(int(duration_ms)))

    async def input_text(self, text: str) -> None:
        if not text:
            return
        async with self._lock:
            await self._shell("input", "text", escape_input_text(text))

    async def key_event(self, code: int) -> None:
        async with self._lock:
            await self._shell("input", "keyevent", str(int(code)))

    async def screen_size(self) -> Tuple[int, int]:
        if self._screen_size is not None:
            return self._screen_size
        async with self._lock:
            text = await self._shell("wm", "size", timeout=10)
        match = re.search(r"Override size:\s*(\d+)x(\d+)", text) or re.search(r"Physical size:\s*(\d+)x(\d+)", text)
        if not match:
            raise CommandError(self._base_cmd() + ["shell", "wm", "size"], 0, f"Could not determine screen size: {text!r}")
        self._screen_size = (int(match.group(1)), int(match.group(2)))
        return self._screen_size

    async def current_activity(self) -> Optional[str]:
        """
        Returns the focused "package/activity", or None when it cannot be determined.
        """
        async def from_window() -> str:
            output = await self._shell("dumpsys", "window", "windows")
            match = re.search(r"mCurrentFocus=Window\{[^}]* ([^\s/}]+)/([^\s}]+)\}", output)
            if not match:
                raise CommandError(["dumpsys", "window"], 0, "no mCurrentFocus entry")
            return f"{match.group(1)}/{match.group(2)}"

        async def from_activities() -> str:
            output = await self._shell("dumpsys", "activity", "activities")
            for line in output.splitlines():
                if "mResumedActivity" in line or "ResumedActivity" in line:
                    match = re.search(r"([a-zA-Z0-9_.]+)/([a-zA-Z0-9_.$]+)", line)
                    if match:
                        return f"{match.group(1)}/{match.group(2)}"
            raise CommandError(["dumpsys", "activity"], 0, "no resumed activity")

        async with self._lock:
            try:
                return await run_strategies(
                    [Strategy("window focus", from_window), Strategy("resumed activity", from_activities)],
                    label="current activity",
                )
            except UixSyncError as e:
                logger.debug("Current activity unavailable: %s", e)
                return None
