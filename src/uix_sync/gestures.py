"""
Screen-coordinate gestures.

Directions name the way the finger travels: `scroll("up")` drags from below
the screen center to above it, which reveals content further down.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Dict, Tuple

if TYPE_CHECKING:
    from .device import DeviceSession

logger = logging.getLogger(__name__)

DIRECTIONS = ("up", "down", "left", "right")

# velocity -> (distance px, duration ms)
FLING_PROFILES: Dict[str, Tuple[int, int]] = {
    "slow": (300, 600),
    "medium": (500, 400),
    "fast": (800, 200),
}


def centered_stroke(width: int, height: int, direction: str, distance: int) -> Tuple[int, int, int, int]:
    """
    Returns (x1, y1, x2, y2) of a stroke of `distance` pixels through the screen center.

    Raises:
        ValueError: unknown direction.
    """
    direction = direction.lower()
    cx, cy = width // 2, height // 2
    half = distance // 2
    if direction == "up":
        return cx, cy + half, cx, cy - half
    if direction == "down":
        return cx, cy - half, cx, cy + half
    if direction == "left":
        return cx + half, cy, cx - half, cy
    if direction == "right":
        return cx - half, cy, cx + half, cy
    raise ValueError(f"Invalid scroll direction {direction!r}. Use: {', '.join(DIRECTIONS)}")


class Gestures:
    def __init__(self, session: 'DeviceSession'):
        self.session = session

    async def tap(self, x: int, y: int) -> 'Gestures':
        await self.session.executor.tap(x, y)
        await self.session.settle()
        return self

    async def double_tap(self, x: int, y: int, interval: float = 0.1) -> 'Gestures':
        await self.session.executor.tap(x, y)
        await asyncio.sleep(interval)
        await self.session.executor.tap(x, y)
        await self.session.settle()
        return self

    async def long_press(self, x: int, y: int, duration_ms: int = 1000) -> 'Gestures':
        # A zero-length swipe held for the duration
        await self.session.executor.swipe(x, y, x, y, duration_ms)
        await self.session.settle()
        return self

    async def swipe(self, x1: int, y1: int, x2: int, y2: int, duration_ms: int = 300) -> 'Gestures':
        await self.session.executor.swipe(x1, y1, x2, y2, duration_ms)
        await self.session.settle()
        return self

    async def drag(self, x1: int, y1: int, x2: int, y2: int, duration_ms: int = 1000) -> 'Gestures':
        return await self.swipe(x1, y1, x2, y2, duration_ms)

    async def scroll(self, direction: str = "down", distance: int = 500, duration_ms: int = 300) -> 'Gestures':
        if direction.lower() not in DIRECTIONS:
            raise ValueError(f"Invalid scroll direction {direction!r}. Use: {', '.join(DIRECTIONS)}")
        width, height = await self.session.screen_size()
        return await self.swipe(*centered_stroke(width, height, direction, distance), duration_ms)

    async def fling(self, direction: str = "down", velocity: str = "fast") -> 'Gestures':
        if velocity not in FLING_PROFILES:
            raise ValueError(f"Invalid fling velocity {velocity!r}. Use: {', '.join(FLING_PROFILES)}")
        distance, duration_ms = FLING_PROFILES[velocity]
        return await self.scroll(direction, distance, duration_ms)

    async def scroll_to_top(self, max_scrolls: int = 10) -> 'Gestures':
        for _ in range(max_scrolls):
            await self.scroll("down")
        return self

    async def scroll_to_bottom(self, max_scrolls: int = 10) -> 'Gestures':
        for _ in range(max_scrolls):
            await self.scroll("up")
        return self
