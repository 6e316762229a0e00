"""
Session Configuration Module.

Tunables for snapshot caching, polling and device command execution. Values can
be given directly or read from `UIX_SYNC_*` environment variables.
"""

import os
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, Field, model_validator


class SessionConfig(BaseModel):
    """
    Timing and device settings shared by a `DeviceSession`.

    All durations are in seconds.
    """

    model_config = {"frozen": True}

    # Snapshot older than this is recaptured on the next query
    snapshot_ttl: float = Field(default=1.0, ge=0)
    poll_interval: float = Field(default=0.1, gt=0)
    # Waits force a fresh capture at this coarser cadence
    refresh_interval: float = Field(default=2.0, gt=0)
    default_timeout: float = Field(default=30.0, gt=0)
    navigation_timeout: float = Field(default=5.0, gt=0)
    settle_delay: float = Field(default=0.2, ge=0)
    command_timeout: float = Field(default=30.0, gt=0)
    dump_path: str = "/sdcard/window_dump.xml"

    @model_validator(mode="after")
    def _check_intervals(self) -> "SessionConfig":
        if self.refresh_interval < self.poll_interval:
            raise ValueError("refresh_interval must be >= poll_interval")
        return self

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, prefix: str = "UIX_SYNC_", **overrides: Any) -> "SessionConfig":
        """
        Builds a config from environment variables such as `UIX_SYNC_POLL_INTERVAL`.

        Args:
            environ: Mapping to read from (defaults to `os.environ`).
            prefix: Variable name prefix.
            **overrides: Explicit values that win over the environment.
        """
        env = os.environ if environ is None else environ
        values: Dict[str, Any] = {}
        for name in cls.model_fields:
            key = f"{prefix}{name.upper()}"
            if key in env:
                values[name] = env[key]
        values.update(overrides)
        return cls(**values)
