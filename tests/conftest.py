"""
Shared fixtures: sample dumps and a scripted stand-in for the ADB executor.
"""
import asyncio
from typing import List, Optional, Sequence, Tuple, Union

import pytest

from uix_sync.config import SessionConfig
from uix_sync.device import DeviceSession

LOGIN_XML = """<?xml version='1.0' encoding='UTF-8' standalone='yes' ?>
<hierarchy rotation="0">
  <node index="0" text="" resource-id="" class="android.widget.FrameLayout" package="com.example.app" content-desc="" clickable="false" enabled="true" bounds="[0,0][1080,1920]">
    <node index="0" text="" resource-id="com.example.app:id/toolbar" class="android.view.ViewGroup" package="com.example.app" content-desc="" bounds="[0,0][1080,200]">
      <node index="0" text="Sign in" resource-id="com.example.app:id/title" class="android.widget.TextView" package="com.example.app" content-desc="" bounds="[40,60][400,140]" />
      <node index="1" text="" resource-id="" class="android.widget.ImageButton" package="com.example.app" content-desc="Menu" clickable="true" bounds="[960,60][1040,140]" />
    </node>
    <node index="1" text="" resource-id="com.example.app:id/form" class="android.widget.LinearLayout" package="com.example.app" content-desc="" scrollable="true" bounds="[0,200][1080,1700]">
      <node index="0" text="alice" resource-id="com.example.app:id/username" class="android.widget.EditText" package="com.example.app" content-desc="" clickable="true" focusable="true" bounds="[40,300][1040,400]" />
      <node index="1" text="" resource-id="com.example.app:id/password" class="android.widget.EditText" package="com.example.app" content-desc="" clickable="true" focusable="true" password="true" bounds="[40,450][1040,550]" />
      <node index="2" text="Login" resource-id="com.example.app:id/login" class="android.widget.Button" package="com.example.app" content-desc="" clickable="true" bounds="[100,600][300,700]" />
      <node index="3" text="Forgot password?" resource-id="" class="android.widget.TextView" package="com.example.app" content-desc="" clickable="true" enabled="false" bounds="[100,750][600,800]" />
      <node index="4" text="Hidden" resource-id="com.example.app:id/hint" class="android.widget.TextView" package="com.example.app" content-desc="" visible-to-user="false" bounds="[100,850][600,900]" />
    </node>
  </node>
</hierarchy>
"""

# Three siblings; only the last carries the text "Login"
BUTTONS_XML = """<hierarchy rotation="0">
  <node index="0" class="android.widget.FrameLayout" bounds="[0,0][1080,1920]">
    <node index="0" class="android.widget.Button" text="Cancel" clickable="true" bounds="[0,0][100,100]" />
    <node index="1" class="android.widget.Button" text="Help" clickable="true" bounds="[100,0][200,100]" />
    <node index="2" class="android.widget.Button" text="Login" clickable="true" bounds="[200,0][300,100]" />
  </node>
</hierarchy>
"""

LOADING_XML = """<hierarchy rotation="0">
  <node index="0" class="android.widget.FrameLayout" bounds="[0,0][1080,1920]">
    <node index="0" class="android.widget.ProgressBar" resource-id="com.example.app:id/spinner" bounds="[490,910][590,1010]" />
  </node>
</hierarchy>
"""

HOME_XML = """<hierarchy rotation="0">
  <node index="0" class="android.widget.FrameLayout" bounds="[0,0][1080,1920]">
    <node index="0" class="android.widget.TextView" text="Welcome" resource-id="com.example.app:id/welcome" bounds="[40,60][600,140]" />
  </node>
</hierarchy>
"""


class FakeExecutor:
    """
    Scripted `CommandExecutor`.

    Each capture returns the next dump in `dumps`; the last one repeats. An
    entry that is an exception instance is raised instead. Actions are recorded
    in `calls` as tuples.
    """

    def __init__(
        self,
        dumps: Sequence[Union[str, BaseException]],
        capture_delay: float = 0.0,
        size: Tuple[int, int] = (1080, 1920),
        activities: Optional[Sequence[Optional[str]]] = None,
    ):
        self.dumps = list(dumps)
        self.capture_delay = capture_delay
        self.size = size
        self.activities = list(activities or ["com.example.app/.MainActivity"])
        self.capture_count = 0
        self.activity_calls = 0
        self.calls: List[tuple] = []

    async def capture_hierarchy(self) -> str:
        if self.capture_delay:
            await asyncio.sleep(self.capture_delay)
        item = self.dumps[min(self.capture_count, len(self.dumps) - 1)]
        self.capture_count += 1
        if isinstance(item, BaseException):
            raise item
        return item

    async def tap(self, x, y):
        self.calls.append(("tap", x, y))

    async def swipe(self, x1, y1, x2, y2, duration_ms=300):
        self.calls.append(("swipe", x1, y1, x2, y2, duration_ms))

    async def input_text(self, text):
        self.calls.append(("text", text))

    async def key_event(self, code):
        self.calls.append(("key", code))

    async def screen_size(self):
        return self.size

    async def current_activity(self):
        activity = self.activities[min(self.activity_calls, len(self.activities) - 1)]
        self.activity_calls += 1
        return activity


@pytest.fixture
def fast_config():
    return SessionConfig(
        snapshot_ttl=1.0,
        poll_interval=0.02,
        refresh_interval=0.05,
        default_timeout=1.0,
        navigation_timeout=1.0,
        settle_delay=0,
    )


@pytest.fixture
def make_session(fast_config):
    def factory(dumps, config=None, **kwargs):
        executor = FakeExecutor(dumps, **kwargs)
        return DeviceSession(executor, config or fast_config)
    return factory
