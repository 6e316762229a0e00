"""
Page Module.

`Page` is the high-level surface of a device session: finding elements,
waiting for them, and acting on them. Finders read the cached snapshot; every
`wait_for_*` method is a specialisation of `Waiter.until`.
"""

import asyncio
import inspect
import json
import logging
import re
from typing import TYPE_CHECKING, Any, Callable, List, Optional, Sequence, Union

from .adb_executor import KEYCODE_BACK, KEYCODE_HOME
from .element import ElementHandle
from .errors import ElementNotFoundError, describe_selector
from .query_engine import QueryEngine
from .selector import SelectorLike, compile_selector
from .ui_tree import Snapshot

if TYPE_CHECKING:
    from .device import DeviceSession

logger = logging.getLogger(__name__)


class Page:
    """
    Finder, waiter and action facade over a `DeviceSession`.
    """

    def __init__(self, session: 'DeviceSession'):
        self.session = session

    @property
    def gestures(self):
        return self.session.gestures

    # Finders

    async def find_one(self, selector: SelectorLike) -> Optional[ElementHandle]:
        """
        Returns a handle to the first pre-order match, or None.

        Raises:
            InvalidSelectorError: the selector cannot be compiled.
        """
        compiled = compile_selector(selector)
        snapshot = await self.session.snapshot()
        node = QueryEngine.find_one(snapshot.root, compiled)
        return self.session.handle(node, snapshot, selector) if node is not None else None

    async def find_all(self, selector: SelectorLike) -> List[ElementHandle]:
        compiled = compile_selector(selector)
        snapshot = await self.session.snapshot()
        return [self.session.handle(node, snapshot, selector) for node in QueryEngine.find_all(snapshot.root, compiled)]

    async def find_by_path(self, path: str) -> List[ElementHandle]:
        return await self.find_all(path)

    async def find_by_resource_id(self, resource_id: str) -> Optional[ElementHandle]:
        return await self.find_one({"resourceId": resource_id})

    async def find_all_by_resource_id(self, resource_id: str) -> List[ElementHandle]:
        return await self.find_all({"resourceId": resource_id})

    async def find_by_text(self, text: str, exact: bool = True) -> Optional[ElementHandle]:
        return await self.find_one({"text": text} if exact else {"contains": text})

    async def find_all_by_text(self, text: str, exact: bool = True) -> List[ElementHandle]:
        return await self.find_all({"text": text} if exact else {"contains": text})

    @staticmethod
    def _content_desc_selector(description: str, exact: bool) -> dict:
        if exact:
            return {"contentDesc": description}
        return {"contentDesc": re.compile(re.escape(description), re.IGNORECASE)}

    async def find_by_content_desc(self, description: str, exact: bool = True) -> Optional[ElementHandle]:
        return await self.find_one(self._content_desc_selector(description, exact))

    async def find_all_by_content_desc(self, description: str, exact: bool = True) -> List[ElementHandle]:
        return await self.find_all(self._content_desc_selector(description, exact))

    async def find_by_class_name(self, class_name: str) -> Optional[ElementHandle]:
        return await self.find_one({"className": class_name})

    async def find_all_by_class_name(self, class_name: str) -> List[ElementHandle]:
        return await self.find_all({"className": class_name})

    async def find_clickable_elements(self) -> List[ElementHandle]:
        return await self.find_all({"clickable": True})

    async def find_scrollable_elements(self) -> List[ElementHandle]:
        return await self.find_all({"scrollable": True})

    async def find_elements_with_text(self) -> List[ElementHandle]:
        snapshot = await self.session.snapshot()
        return [self.session.handle(node, snapshot) for node in snapshot.iter_nodes() if node.text.strip()]

    async def require(self, selector: SelectorLike) -> ElementHandle:
        """
        Like `find_one`, but a missing element is an error.

        Raises:
            ElementNotFoundError: nothing matched in the current snapshot.
        """
        handle = await self.find_one(selector)
        if handle is None:
            raise ElementNotFoundError(compile_selector(selector))
        return handle

    # Waits

    async def wait_for_selector(
        self,
        selector: SelectorLike,
        timeout: Optional[float] = None,
        visible: bool = True,
        hidden: bool = False,
        poll_interval: Optional[float] = None,
    ) -> Optional[ElementHandle]:
        """
        Waits until `selector` matches (and, by default, the match is visible).

        Args:
            selector: Any selector form.
            timeout: Seconds; defaults to the session's default_timeout.
            visible: Require the match to be visible. Ignored when `hidden` is set.
            hidden: Wait for the element to disappear instead: succeeds when
                nothing matches (returns None) or no match is visible (returns
                the first match).
            poll_interval: Seconds between polls.

        Raises:
            InvalidSelectorError: immediately, before any polling.
            WaitTimeoutError: the condition did not hold in time.
        """
        compiled = compile_selector(selector)

        def probe(snapshot: Snapshot):
            nodes = QueryEngine.find_all(snapshot.root, compiled)
            if hidden:
                if any(node.is_visible for node in nodes):
                    return None
                # Boxed so that "absent" is an accepted result
                return (self.session.handle(nodes[0], snapshot, selector) if nodes else None,)
            for node in nodes:
                if not visible or node.is_visible:
                    return (self.session.handle(node, snapshot, selector),)
            return None

        state = "hidden" if hidden else ("visible" if visible else "present")
        result = await self.session.waiter.until(
            probe,
            timeout=timeout,
            poll_interval=poll_interval,
            description=f"{describe_selector(compiled)} to be {state}",
            selector=compiled,
        )
        return result[0]

    async def wait_for_text(self, text: str, exact: bool = True, timeout: Optional[float] = None) -> ElementHandle:
        return await self.wait_for_selector({"text": text} if exact else {"contains": text}, timeout=timeout)

    async def wait_for_resource_id(self, resource_id: str, timeout: Optional[float] = None) -> ElementHandle:
        return await self.wait_for_selector({"resourceId": resource_id}, timeout=timeout)

    async def wait_for_function(
        self,
        fn: Callable[[Snapshot], Any],
        timeout: Optional[float] = None,
        polling: Optional[float] = None,
    ) -> Any:
        """
        Waits until `fn(snapshot)` returns a truthy value and returns that value.
        `fn` may be a coroutine function.
        """
        async def probe(snapshot: Snapshot):
            result = fn(snapshot)
            if inspect.isawaitable(result):
                result = await result
            return result if result else None

        return await self.session.waiter.until(
            probe,
            timeout=timeout,
            poll_interval=polling,
            description=f"function {getattr(fn, '__name__', repr(fn))} to return a truthy value",
        )

    async def wait_for_navigation(self, timeout: Optional[float] = None) -> str:
        """
        Waits until the focused activity differs from the one focused when called.

        Returns:
            str: The new "package/activity".
        """
        timeout = self.session.config.navigation_timeout if timeout is None else timeout
        initial = await self.session.current_activity()

        async def probe(_snapshot: Optional[Snapshot]) -> Optional[str]:
            current = await self.session.current_activity()
            return current if current is not None and current != initial else None

        activity = await self.session.waiter.until(
            probe,
            timeout=timeout,
            description=f"navigation away from {initial}",
            needs_snapshot=False,
        )
        await self.session.settle()
        return activity

    async def wait_for_timeout(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    # Element actions

    async def click(self, selector: SelectorLike, timeout: Optional[float] = None) -> ElementHandle:
        element = await self.wait_for_selector(selector, timeout=timeout)
        return await element.tap()

    async def click_by_text(self, text: str, timeout: Optional[float] = None) -> ElementHandle:
        return await self.click({"text": text}, timeout=timeout)

    async def click_by_resource_id(self, resource_id: str, timeout: Optional[float] = None) -> ElementHandle:
        return await self.click({"resourceId": resource_id}, timeout=timeout)

    async def double_click(self, selector: SelectorLike, timeout: Optional[float] = None) -> ElementHandle:
        element = await self.wait_for_selector(selector, timeout=timeout)
        return await element.double_click()

    async def type(self, selector: SelectorLike, text: str, clear: bool = True, timeout: Optional[float] = None) -> ElementHandle:
        element = await self.wait_for_selector(selector, timeout=timeout)
        return await element.type(text, clear=clear)

    async def type_by_resource_id(self, resource_id: str, text: str, clear: bool = True, timeout: Optional[float] = None) -> ElementHandle:
        return await self.type({"resourceId": resource_id}, text, clear=clear, timeout=timeout)

    async def clear(self, selector: SelectorLike, timeout: Optional[float] = None) -> ElementHandle:
        element = await self.wait_for_selector(selector, timeout=timeout)
        return await element.clear()

    async def focus(self, selector: SelectorLike, timeout: Optional[float] = None) -> ElementHandle:
        element = await self.wait_for_selector(selector, timeout=timeout)
        return await element.focus()

    async def drag_and_drop(self, source: SelectorLike, target: SelectorLike, duration_ms: int = 1000) -> None:
        start = await self.wait_for_selector(source)
        end = await self.wait_for_selector(target)
        x1, y1 = start._require_center("drag")
        x2, y2 = end._require_center("drop onto")
        await self.gestures.drag(x1, y1, x2, y2, duration_ms)

    async def scroll_to_element(self, selector: SelectorLike, max_scrolls: int = 10) -> ElementHandle:
        """
        Scrolls the screen until a visible match appears.

        Raises:
            ElementNotFoundError: still not visible after `max_scrolls` scrolls.
        """
        compiled = compile_selector(selector)
        for attempt in range(max_scrolls + 1):
            snapshot = await self.session.snapshot()
            for node in QueryEngine.find_all(snapshot.root, compiled):
                if node.is_visible:
                    return self.session.handle(node, snapshot, selector)
            if attempt < max_scrolls:
                logger.debug("%s not visible, scrolling (%d/%d)", compiled.describe(), attempt + 1, max_scrolls)
                # Finger up reveals content further down
                await self.gestures.scroll("up")
        raise ElementNotFoundError(compiled)

    async def scroll_to_text(self, text: str, max_scrolls: int = 10) -> ElementHandle:
        return await self.scroll_to_element({"text": text}, max_scrolls)

    # Screen gestures

    async def tap(self, x: int, y: int) -> None:
        await self.gestures.tap(x, y)

    async def long_press(self, x: int, y: int, duration_ms: int = 1000) -> None:
        await self.gestures.long_press(x, y, duration_ms)

    async def swipe(self, x1: int, y1: int, x2: int, y2: int, duration_ms: int = 300) -> None:
        await self.gestures.swipe(x1, y1, x2, y2, duration_ms)

    async def scroll(self, direction: str = "down", distance: int = 500, duration_ms: int = 300) -> None:
        await self.gestures.scroll(direction, distance, duration_ms)

    async def fling(self, direction: str = "down", velocity: str = "fast") -> None:
        await self.gestures.fling(direction, velocity)

    # Keys

    async def press_key(self, code: int) -> None:
        await self.session.executor.key_event(code)
        await self.session.settle()

    async def go_back(self) -> None:
        await self.press_key(KEYCODE_BACK)

    async def go_home(self) -> None:
        await self.press_key(KEYCODE_HOME)

    async def send_keys(self, keys: Sequence[Union[str, int]]) -> None:
        """Sends a mix of text chunks (str) and key codes (int), in order."""
        for key in keys:
            if isinstance(key, str):
                await self.session.executor.input_text(key)
            elif isinstance(key, int):
                await self.session.executor.key_event(key)
            else:
                raise TypeError(f"Keys must be str or int, got {type(key).__name__}")
        await self.session.settle()

    # Information

    async def get_text(self, selector: SelectorLike) -> Optional[str]:
        element = await self.find_one(selector)
        return element.text if element is not None else None

    async def get_all_text(self) -> List[str]:
        return [element.text for element in await self.find_elements_with_text()]

    async def is_element_visible(self, selector: SelectorLike) -> bool:
        element = await self.find_one(selector)
        return element is not None and element.is_visible

    async def is_element_enabled(self, selector: SelectorLike) -> bool:
        element = await self.find_one(selector)
        return element is not None and element.is_enabled

    async def get_element_count(self, selector: SelectorLike) -> int:
        compiled = compile_selector(selector)
        snapshot = await self.session.snapshot()
        return QueryEngine.count(snapshot.root, compiled)

    async def evaluate(self, fn: Callable[[Snapshot], Any]) -> Any:
        """Calls `fn` with the current snapshot and returns its (awaited) result."""
        result = fn(await self.session.snapshot())
        if inspect.isawaitable(result):
            result = await result
        return result

    async def content(self) -> str:
        """Returns the current tree as indented JSON."""
        snapshot = await self.session.snapshot()
        return json.dumps(snapshot.to_dict(), indent=2)
