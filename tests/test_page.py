"""
Unit tests for the Page facade, gestures and the device session.
"""
import asyncio
import json
import time

import pytest

from conftest import BUTTONS_XML, HOME_XML, LOADING_XML, LOGIN_XML, FakeExecutor
from uix_sync.adb_executor import KEYCODE_BACK, KEYCODE_HOME
from uix_sync.config import SessionConfig
from uix_sync.device import DeviceSession
from uix_sync.errors import DeviceNotConnectedError, ElementNotFoundError, InvalidSelectorError, WaitTimeoutError
from uix_sync.gestures import centered_stroke


class TestFinders:
    @pytest.mark.asyncio
    async def test_find_variants(self, make_session):
        page = make_session([LOGIN_XML]).page

        assert (await page.find_by_resource_id("login")).text == "Login"
        assert len(await page.find_all_by_resource_id("com.example.app:id/username")) == 1
        assert (await page.find_by_text("Sign in")).node.node_id == 2
        assert await page.find_by_text("sign") is None
        assert [h.text for h in await page.find_all_by_text("PASS", exact=False)] == ["Forgot password?"]
        assert (await page.find_by_content_desc("menu", exact=False)).content_desc == "Menu"
        assert await page.find_by_content_desc("menu") is None
        assert len(await page.find_all_by_class_name("android.widget.EditText")) == 2
        assert (await page.find_by_class_name("android.widget.Button")).text == "Login"
        assert len(await page.find_clickable_elements()) == 5
        assert len(await page.find_scrollable_elements()) == 1
        assert [h.text for h in await page.find_by_path("//*[@resource-id='com.example.app:id/form']/Button")] == ["Login"]

    @pytest.mark.asyncio
    async def test_text_helpers(self, make_session):
        page = make_session([LOGIN_XML]).page

        assert await page.get_all_text() == ["Sign in", "alice", "Login", "Forgot password?", "Hidden"]
        assert await page.get_text("#login") == "Login"
        assert await page.get_text("#missing") is None
        assert await page.get_element_count(".TextView") == 3
        assert await page.is_element_visible("#login") is True
        assert await page.is_element_visible("#hint") is False
        assert await page.is_element_enabled({"text": "Forgot password?"}) is False

    @pytest.mark.asyncio
    async def test_scenario_path_query_position(self, make_session):
        page = make_session([BUTTONS_XML]).page

        handles = await page.find_all("//Button[3]")

        assert [h.text for h in handles] == ["Login"]

    @pytest.mark.asyncio
    async def test_require(self, make_session):
        page = make_session([LOGIN_XML]).page

        assert (await page.require("#login")).text == "Login"
        with pytest.raises(ElementNotFoundError) as excinfo:
            await page.require("#missing")
        assert "#missing" in str(excinfo.value)

    @pytest.mark.asyncio
    async def test_invalid_selector_raises_before_capture(self, make_session):
        session = make_session([LOGIN_XML])

        with pytest.raises(InvalidSelectorError):
            await session.page.find_one(42)
        with pytest.raises(InvalidSelectorError):
            await session.page.wait_for_selector("//Button[")
        assert session.executor.capture_count == 0

    @pytest.mark.asyncio
    async def test_evaluate_and_content(self, make_session):
        page = make_session([LOGIN_XML]).page

        assert await page.evaluate(lambda snap: snap.node_count) == 10
        data = json.loads(await page.content())
        assert data["root"]["children"][1]["resource-id"] == "com.example.app:id/form"


class TestWaits:
    @pytest.mark.asyncio
    async def test_wait_for_selector_appears(self, make_session):
        session = make_session([LOADING_XML, LOADING_XML, LOGIN_XML], config=SessionConfig(
            snapshot_ttl=0, poll_interval=0.02, refresh_interval=0.05, settle_delay=0,
        ))

        handle = await session.page.wait_for_selector("#login", timeout=1)

        assert handle.text == "Login"
        assert session.executor.capture_count == 3

    @pytest.mark.asyncio
    async def test_wait_for_visible_skips_invisible_match(self, make_session):
        page = make_session([LOGIN_XML]).page

        with pytest.raises(WaitTimeoutError) as excinfo:
            await page.wait_for_selector("#hint", timeout=0.1)
        assert excinfo.value.selector is not None

        present = await page.wait_for_selector("#hint", timeout=0.1, visible=False)
        assert present.text == "Hidden"

    @pytest.mark.asyncio
    async def test_wait_for_hidden(self, make_session):
        session = make_session([LOGIN_XML, HOME_XML], config=SessionConfig(
            snapshot_ttl=0, poll_interval=0.02, refresh_interval=0.05, settle_delay=0,
        ))
        page = session.page

        # Present but invisible counts as hidden and yields the handle
        assert (await page.wait_for_selector("#hint", hidden=True, timeout=0.5)).text == "Hidden"
        # Absent counts as hidden and yields None
        assert await page.wait_for_selector("#login", hidden=True, timeout=0.5) is None

    @pytest.mark.asyncio
    async def test_wait_for_hidden_times_out_while_visible(self, make_session):
        page = make_session([LOGIN_XML]).page

        with pytest.raises(WaitTimeoutError):
            await page.wait_for_selector("#login", hidden=True, timeout=0.1)

    @pytest.mark.asyncio
    async def test_wait_for_text_and_resource_id(self, make_session):
        page = make_session([LOGIN_XML]).page

        assert (await page.wait_for_text("Sign in")).node.node_id == 2
        assert (await page.wait_for_text("forgot", exact=False)).text == "Forgot password?"
        assert (await page.wait_for_resource_id("username")).text == "alice"

    @pytest.mark.asyncio
    async def test_wait_for_function(self, make_session):
        page = make_session([LOGIN_XML]).page

        result = await page.wait_for_function(lambda snap: snap.find_by_id(7).text, timeout=0.5)
        assert result == "Login"

        with pytest.raises(WaitTimeoutError):
            await page.wait_for_function(lambda snap: 0, timeout=0.1, polling=0.02)

    @pytest.mark.asyncio
    async def test_wait_for_navigation(self, make_session):
        session = make_session([LOGIN_XML], activities=[
            "com.example.app/.LoginActivity",
            "com.example.app/.LoginActivity",
            "com.example.app/.HomeActivity",
        ])

        assert await session.page.wait_for_navigation() == "com.example.app/.HomeActivity"

    @pytest.mark.asyncio
    async def test_wait_for_navigation_times_out(self, make_session):
        session = make_session([LOGIN_XML], activities=["com.example.app/.LoginActivity"])

        with pytest.raises(WaitTimeoutError):
            await session.page.wait_for_navigation(timeout=0.1)

    @pytest.mark.asyncio
    async def test_wait_for_navigation_polls_activity_only(self, make_session):
        session = make_session([LOGIN_XML], activities=["a/.A"] * 5 + ["b/.B"])

        assert await session.page.wait_for_navigation() == "b/.B"
        assert session.executor.activity_calls == 6
        assert session.executor.capture_count == 0

    @pytest.mark.asyncio
    async def test_wait_for_timeout(self, make_session):
        page = make_session([LOGIN_XML]).page

        start = time.monotonic()
        await page.wait_for_timeout(0.05)

        assert time.monotonic() - start >= 0.04


class TestActions:
    @pytest.mark.asyncio
    async def test_click_variants(self, make_session):
        session = make_session([LOGIN_XML])
        page = session.page

        await page.click("#login")
        await page.click_by_text("Sign in")
        await page.click_by_resource_id("username")
        await page.focus({"contentDesc": "Menu"})

        assert session.executor.calls == [
            ("tap", 200, 650),
            ("tap", 220, 100),
            ("tap", 540, 350),
            ("tap", 1000, 100),
        ]

    @pytest.mark.asyncio
    async def test_click_missing_element_times_out(self, make_session):
        page = make_session([LOGIN_XML]).page

        with pytest.raises(WaitTimeoutError):
            await page.click("#missing", timeout=0.1)

    @pytest.mark.asyncio
    async def test_type_by_resource_id(self, make_session):
        session = make_session([LOGIN_XML])

        await session.page.type_by_resource_id("password", "s3cret")

        assert session.executor.calls[-1] == ("text", "s3cret")

    @pytest.mark.asyncio
    async def test_drag_and_drop(self, make_session):
        session = make_session([LOGIN_XML])

        await session.page.drag_and_drop("#username", "#login", duration_ms=700)

        assert session.executor.calls == [("swipe", 540, 350, 200, 650, 700)]

    @pytest.mark.asyncio
    async def test_keys(self, make_session):
        session = make_session([LOGIN_XML])
        page = session.page

        await page.go_back()
        await page.go_home()
        await page.send_keys(["hi", 66])

        assert session.executor.calls == [
            ("key", KEYCODE_BACK),
            ("key", KEYCODE_HOME),
            ("text", "hi"),
            ("key", 66),
        ]
        with pytest.raises(TypeError):
            await page.send_keys([1.5])

    @pytest.mark.asyncio
    async def test_scroll_to_element(self, make_session):
        session = make_session([LOADING_XML, LOADING_XML, LOGIN_XML])

        handle = await session.page.scroll_to_text("Login", max_scrolls=5)

        assert handle.text == "Login"
        swipes = [c for c in session.executor.calls if c[0] == "swipe"]
        assert swipes == [("swipe", 540, 1210, 540, 710, 300)] * 2

    @pytest.mark.asyncio
    async def test_scroll_to_element_gives_up(self, make_session):
        session = make_session([LOADING_XML])

        with pytest.raises(ElementNotFoundError):
            await session.page.scroll_to_element("#login", max_scrolls=3)
        assert len(session.executor.calls) == 3


class TestGestures:
    def test_centered_stroke(self):
        assert centered_stroke(1080, 1920, "up", 500) == (540, 1210, 540, 710)
        assert centered_stroke(1080, 1920, "down", 500) == (540, 710, 540, 1210)
        assert centered_stroke(1080, 1920, "LEFT", 200) == (640, 960, 440, 960)
        assert centered_stroke(1080, 1920, "right", 200) == (440, 960, 640, 960)

    @pytest.mark.asyncio
    async def test_scroll_and_fling(self, make_session):
        session = make_session([LOGIN_XML])
        page = session.page

        await page.scroll("down", 400, 250)
        await page.fling("up", "slow")
        await page.fling("left")

        assert session.executor.calls == [
            ("swipe", 540, 760, 540, 1160, 250),
            ("swipe", 540, 1110, 540, 810, 600),
            ("swipe", 940, 960, 140, 960, 200),
        ]

    @pytest.mark.asyncio
    async def test_invalid_direction_and_velocity(self, make_session):
        page = make_session([LOGIN_XML]).page

        with pytest.raises(ValueError):
            await page.scroll("sideways")
        with pytest.raises(ValueError):
            await page.fling("up", "ludicrous")

    @pytest.mark.asyncio
    async def test_scroll_to_top_and_bottom(self, make_session):
        session = make_session([LOGIN_XML])

        await session.gestures.scroll_to_top(max_scrolls=2)
        await session.gestures.scroll_to_bottom(max_scrolls=1)

        assert session.executor.calls == [
            ("swipe", 540, 710, 540, 1210, 300),
            ("swipe", 540, 710, 540, 1210, 300),
            ("swipe", 540, 1210, 540, 710, 300),
        ]

    @pytest.mark.asyncio
    async def test_screen_coordinates(self, make_session):
        session = make_session([LOGIN_XML])
        page = session.page

        await page.tap(5, 6)
        await page.long_press(7, 8, 900)
        await page.swipe(1, 2, 3, 4)
        await session.gestures.drag(1, 1, 9, 9)

        assert session.executor.calls == [
            ("tap", 5, 6),
            ("swipe", 7, 8, 7, 8, 900),
            ("swipe", 1, 2, 3, 4, 300),
            ("swipe", 1, 1, 9, 9, 1000),
        ]


class TestDeviceSession:
    @pytest.mark.asyncio
    async def test_settle_invalidates_and_sleeps(self, make_session):
        session = make_session([LOGIN_XML], config=SessionConfig(settle_delay=0.05))
        await session.snapshot()

        start = time.monotonic()
        await session.settle()

        assert session.cache.peek() is None
        assert time.monotonic() - start >= 0.04

    @pytest.mark.asyncio
    async def test_screen_size_is_cached(self, make_session):
        session = make_session([LOGIN_XML], size=(720, 1280))
        calls = []
        original = session.executor.screen_size

        async def counting():
            calls.append(1)
            return await original()

        session.executor.screen_size = counting

        assert await session.screen_size() == (720, 1280)
        assert await session.screen_size() == (720, 1280)
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_connect_requires_device(self, monkeypatch):
        async def not_connected(self):
            return False

        monkeypatch.setattr("uix_sync.device.AdbExecutor.is_connected", not_connected)

        with pytest.raises(DeviceNotConnectedError):
            await DeviceSession.connect("emulator-5554")

    @pytest.mark.asyncio
    async def test_connect_builds_adb_session(self, monkeypatch):
        async def connected(self):
            return True

        monkeypatch.setattr("uix_sync.device.AdbExecutor.is_connected", connected)
        config = SessionConfig(command_timeout=5, dump_path="/data/local/tmp/x.xml")

        session = await DeviceSession.connect("emulator-5554", config)

        assert session.executor.serial == "emulator-5554"
        assert session.executor.command_timeout == 5
        assert session.executor.dump_path == "/data/local/tmp/x.xml"
        assert session.config is config

    @pytest.mark.asyncio
    async def test_concurrent_waits_share_captures(self):
        executor = FakeExecutor([LOGIN_XML], capture_delay=0.02)
        session = DeviceSession(executor, SessionConfig(snapshot_ttl=5, settle_delay=0))

        results = await asyncio.gather(
            session.page.wait_for_selector("#login", timeout=1),
            session.page.wait_for_selector("#username", timeout=1),
            session.page.find_one("Menu"),
        )

        assert [r.text for r in results[:2]] == ["Login", "alice"]
        assert results[2].content_desc == "Menu"
        assert executor.capture_count == 1
