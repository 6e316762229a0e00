"""
Error Types Module.

Every failure raised by the library derives from `UixSyncError` so callers can
recover from any of them with a single handler. Parse failures are never
raised; they degrade into a placeholder snapshot instead.
"""

from typing import Any, List, Optional, Sequence, Tuple


def describe_selector(selector: Any) -> str:
    """Best-effort human readable form of a selector for error messages."""
    describe = getattr(selector, "describe", None)
    if callable(describe):
        return describe()
    return repr(selector)


class UixSyncError(Exception):
    """Base class for all library errors."""


class InvalidSelectorError(UixSyncError, ValueError):
    """Raised when a selector cannot be compiled."""


class ElementNotFoundError(UixSyncError):
    """A single required match was requested but nothing matched."""

    def __init__(self, selector: Any):
        self.selector = selector
        super().__init__(f"Element not found: {describe_selector(selector)}")


class WaitTimeoutError(UixSyncError):
    """A wait condition never held within the allotted time."""

    def __init__(
        self,
        description: str,
        timeout: float,
        elapsed: float,
        last_error: Optional[BaseException] = None,
        selector: Any = None,
    ):
        self.description = description
        self.timeout = timeout
        self.elapsed = elapsed
        self.last_error = last_error
        self.selector = selector
        message = f"{description} not satisfied after {elapsed:.3f}s (timeout {timeout:.3f}s)"
        if last_error is not None:
            message += f"; last error: {last_error}"
        super().__init__(message)


class InvalidBoundsError(UixSyncError):
    """An action needs geometry the node does not have."""


class DeviceNotConnectedError(UixSyncError):
    def __init__(self, serial: Optional[str] = None):
        self.serial = serial
        target = f" ({serial})" if serial else ""
        super().__init__(f"Android device{target} not connected or ADB not available")


class CommandError(UixSyncError):
    """A device command failed, timed out or could not be started."""

    def __init__(self, command: Sequence[str], returncode: Optional[int], output: str = ""):
        self.command = list(command)
        self.returncode = returncode
        self.output = output
        detail = output.strip().splitlines()[-1] if output.strip() else "no output"
        super().__init__(f"Command {' '.join(self.command)!r} failed (code {returncode}): {detail}")


class StrategyError(UixSyncError):
    """Every strategy in an ordered fallback list failed."""

    def __init__(self, label: str, failures: List[Tuple[str, BaseException]]):
        self.label = label
        self.failures = failures
        summary = "; ".join(f"{name}: {err}" for name, err in failures) or "no strategies"
        super().__init__(f"{label} failed. Attempts: {summary}")
