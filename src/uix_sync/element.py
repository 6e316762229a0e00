"""
Element Handle Module.

An `ElementHandle` points at one `UiNode` of one `Snapshot`. Its geometry is
frozen when the handle is created: actions always use those coordinates, even
if the screen has changed since. Call `requery()` to get a handle against the
current screen instead.
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

from .adb_executor import KEYCODE_DEL, KEYCODE_MOVE_END
from .errors import InvalidBoundsError
from .query_engine import QueryEngine
from .selector import SelectorLike
from .ui_tree import Bounds, Snapshot, UiNode

if TYPE_CHECKING:
    from .device import DeviceSession

logger = logging.getLogger(__name__)


class ElementHandle:
    """
    Reference to a matched node plus the geometry it had at capture time.
    """

    def __init__(self, session: 'DeviceSession', node: UiNode, snapshot: Snapshot, selector: Optional[SelectorLike] = None):
        self.session = session
        self.node = node
        self.snapshot = snapshot
        self.selector = selector
        self.bounds: Optional[Bounds] = node.bounds
        self.center: Optional[Tuple[int, int]] = node.bounds.center if node.bounds else None
        self.size: Optional[Tuple[int, int]] = node.bounds.size if node.bounds else None

    # Node properties

    @property
    def text(self) -> str:
        return self.node.text

    @property
    def resource_id(self) -> str:
        return self.node.resource_id

    @property
    def class_name(self) -> str:
        return self.node.class_name

    @property
    def content_desc(self) -> str:
        return self.node.content_desc

    @property
    def package(self) -> str:
        return self.node.package

    @property
    def index(self) -> str:
        return self.node.index

    @property
    def debug_selector(self) -> str:
        return self.node.selector

    @property
    def is_clickable(self) -> bool:
        return self.node.clickable

    @property
    def is_long_clickable(self) -> bool:
        return self.node.long_clickable

    @property
    def is_enabled(self) -> bool:
        return self.node.enabled

    @property
    def is_selected(self) -> bool:
        return self.node.selected

    @property
    def is_focused(self) -> bool:
        return self.node.focused

    @property
    def is_focusable(self) -> bool:
        return self.node.focusable

    @property
    def is_scrollable(self) -> bool:
        return self.node.scrollable

    @property
    def is_checkable(self) -> bool:
        return self.node.checkable

    @property
    def is_checked(self) -> bool:
        return self.node.checked

    @property
    def is_password(self) -> bool:
        return self.node.password

    @property
    def is_visible(self) -> bool:
        return self.node.is_visible

    @property
    def is_stale(self) -> bool:
        """True once the session has cached a different snapshot than this handle's."""
        return self.session.cache.peek() is not self.snapshot

    def get_attribute(self, name: str) -> Optional[str]:
        return self.node.attribute(name)

    def matches(self, selector: SelectorLike) -> bool:
        return QueryEngine.matches(self.node, selector, root=self.snapshot.root)

    def to_dict(self) -> Dict[str, Any]:
        data = self.node.to_dict(recursive=False)
        data["bounds_rect"] = self.bounds.to_dict() if self.bounds else None
        data["captured_at"] = self.snapshot.captured_at
        return data

    def __repr__(self) -> str:
        return f"<ElementHandle {self.node.selector} center={self.center}>"

    # Geometry

    def _require_center(self, action: str) -> Tuple[int, int]:
        if self.center is None:
            raise InvalidBoundsError(f"Cannot {action} element without valid bounds: {self.node.selector}")
        return self.center

    async def requery(self, selector: Optional[SelectorLike] = None) -> Optional['ElementHandle']:
        """
        Finds this element again in a freshly captured snapshot.

        Uses `selector`, else the selector that produced this handle, else the
        node's debug selector attributes. Returns None when it is gone.
        """
        if selector is None:
            selector = self.selector
        if selector is None:
            selector = {
                "className": self.node.class_name,
                "resourceId": self.node.resource_id,
                "text": self.node.text,
                "contentDesc": self.node.content_desc,
                "index": self.node.index,
            }
        snapshot = await self.session.snapshot(force_refresh=True)
        node = QueryEngine.find_one(snapshot.root, selector)
        if node is None:
            return None
        return ElementHandle(self.session, node, snapshot, selector)

    # Actions

    async def tap(self) -> 'ElementHandle':
        if not self.node.clickable:
            logger.warning("Element is not clickable: %s", self.node.selector)
        x, y = self._require_center("click")
        await self.session.executor.tap(x, y)
        await self.session.settle()
        return self

    async def click(self) -> 'ElementHandle':
        return await self.tap()

    async def double_click(self, interval: float = 0.1) -> 'ElementHandle':
        x, y = self._require_center("double click")
        await self.session.gestures.double_tap(x, y, interval=interval)
        return self

    async def long_press(self, duration_ms: int = 1000) -> 'ElementHandle':
        if not self.node.long_clickable:
            logger.warning("Element is not long-clickable: %s", self.node.selector)
        x, y = self._require_center("long press")
        await self.session.gestures.long_press(x, y, duration_ms)
        return self

    async def focus(self) -> 'ElementHandle':
        return await self.tap()

    async def clear(self) -> 'ElementHandle':
        """Moves the cursor to the end and deletes every character of the captured text."""
        await self.tap()
        await self.session.executor.key_event(KEYCODE_MOVE_END)
        for _ in range(max(len(self.node.text), 1)):
            await self.session.executor.key_event(KEYCODE_DEL)
        await self.session.settle()
        return self

    async def type(self, text: str, clear: bool = True) -> 'ElementHandle':
        if clear:
            await self.clear()
        else:
            await self.tap()
        await self.session.executor.input_text(text)
        await self.session.settle()
        return self

    async def _swipe_from_center(self, dx: int, dy: int) -> 'ElementHandle':
        x, y = self._require_center("swipe")
        width, height = await self.session.screen_size()
        end_x = min(max(0, x + dx), width)
        end_y = min(max(0, y + dy), height)
        await self.session.gestures.swipe(x, y, end_x, end_y, 300)
        return self

    def _default_distance(self, horizontal: bool, distance: Optional[int]) -> int:
        if distance is not None:
            return int(distance)
        if self.size is None:
            return 0
        return int((self.size[0] if horizontal else self.size[1]) * 0.8)

    async def swipe_left(self, distance: Optional[int] = None) -> 'ElementHandle':
        return await self._swipe_from_center(-self._default_distance(True, distance), 0)

    async def swipe_right(self, distance: Optional[int] = None) -> 'ElementHandle':
        return await self._swipe_from_center(self._default_distance(True, distance), 0)

    async def swipe_up(self, distance: Optional[int] = None) -> 'ElementHandle':
        return await self._swipe_from_center(0, -self._default_distance(False, distance))

    async def swipe_down(self, distance: Optional[int] = None) -> 'ElementHandle':
        return await self._swipe_from_center(0, self._default_distance(False, distance))

    async def scroll_to_top(self, max_swipes: int = 10) -> 'ElementHandle':
        # Content moves down when the finger moves down
        if not self.node.scrollable:
            logger.warning("Element is not scrollable: %s", self.node.selector)
            return self
        for _ in range(max_swipes):
            await self.swipe_down()
        return self

    async def scroll_to_bottom(self, max_swipes: int = 10) -> 'ElementHandle':
        if not self.node.scrollable:
            logger.warning("Element is not scrollable: %s", self.node.selector)
            return self
        for _ in range(max_swipes):
            await self.swipe_up()
        return self
