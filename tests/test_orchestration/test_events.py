"""
Tests for porter.orchestration.events
=======================================
"""

import pytest

from porter.orchestration.events import CARGO_LOADED, CACHE_HIT, EventEmitter


class TestEventEmitter:
    async def test_sync_and_async_listeners(self) -> None:
        emitter = EventEmitter()
        seen: list[str] = []

        async def async_listener(payload) -> None:
            seen.append(f"async:{payload['cargo']}")

        emitter.on(CARGO_LOADED, lambda payload: seen.append(f"sync:{payload['cargo']}"))
        emitter.on(CARGO_LOADED, async_listener)
        await emitter.emit(CARGO_LOADED, {"cargo": "./Button"})

        assert seen == ["sync:./Button", "async:./Button"]

    async def test_off(self) -> None:
        emitter = EventEmitter()
        seen: list[dict] = []
        emitter.on(CACHE_HIT, seen.append)
        emitter.off(CACHE_HIT, seen.append)
        await emitter.emit(CACHE_HIT, {})
        assert seen == []
        assert emitter.listener_count(CACHE_HIT) == 0

    async def test_failing_listener_does_not_break_others(self) -> None:
        emitter = EventEmitter()
        seen: list[dict] = []

        def broken(payload) -> None:
            raise RuntimeError("listener bug")

        emitter.on(CARGO_LOADED, broken)
        emitter.on(CARGO_LOADED, seen.append)
        await emitter.emit(CARGO_LOADED, {"cargo": "x"})
        assert seen == [{"cargo": "x"}]

    def test_unknown_event(self) -> None:
        with pytest.raises(ValueError):
            EventEmitter().on("cargo:exploded", print)

    def test_duplicate_registration_is_ignored(self) -> None:
        emitter = EventEmitter()
        emitter.on(CACHE_HIT, print)
        emitter.on(CACHE_HIT, print)
        assert emitter.listener_count(CACHE_HIT) == 1
