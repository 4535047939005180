from __future__ import annotations

import asyncio
from typing import Any

import pytest

from cxslack.errors import CodexProtocolError, CodexTimeoutError, CodexTransportError
from cxslack.pending import PendingRequestTracker


def test_resolve_delivers_result_and_forgets_entry() -> None:
    async def _run() -> None:
        tracker = PendingRequestTracker()
        future = tracker.track(1, "thread/start", timeout=1.0)
        assert 1 in tracker

        assert tracker.resolve({"jsonrpc": "2.0", "id": 1, "result": {"ok": True}}) is True
        assert await future == {"ok": True}
        assert len(tracker) == 0
        assert tracker.resolve({"jsonrpc": "2.0", "id": 1, "result": {}}) is False

    asyncio.run(_run())


def test_error_response_becomes_protocol_error() -> None:
    async def _run() -> None:
        tracker = PendingRequestTracker()
        future = tracker.track(5, "model/list")
        tracker.resolve(
            {"jsonrpc": "2.0", "id": 5, "error": {"code": -32601, "message": "nope"}}
        )
        with pytest.raises(CodexProtocolError) as exc_info:
            await future
        assert exc_info.value.code == -32601
        assert "model/list failed: nope" in str(exc_info.value)

    asyncio.run(_run())


def test_timeout_fails_only_the_expired_request() -> None:
    async def _run() -> None:
        tracker = PendingRequestTracker()
        slow = tracker.track(1, "turn/start", timeout=0.01)
        other = tracker.track(2, "thread/read", timeout=5.0)

        with pytest.raises(CodexTimeoutError) as exc_info:
            await slow
        assert exc_info.value.method == "turn/start"
        assert exc_info.value.request_id == 1
        assert "turn/start" in str(exc_info.value)

        assert 2 in tracker
        assert tracker.resolve({"jsonrpc": "2.0", "id": 2, "result": "fine"})
        assert await other == "fine"

    asyncio.run(_run())


def test_reject_all_fails_every_waiter_and_empties_tracker() -> None:
    async def _run() -> None:
        tracker = PendingRequestTracker()
        errors: list[BaseException] = []
        results: list[Any] = []
        for request_id in range(3):
            tracker.add(request_id, "x", results.append, errors.append, timeout=0.05)

        boom = CodexTransportError("gone")
        tracker.reject_all(boom)

        assert len(tracker) == 0
        assert errors == [boom, boom, boom]
        # Timers were cancelled, so nothing fires later.
        await asyncio.sleep(0.1)
        assert len(errors) == 3
        assert results == []

    asyncio.run(_run())


def test_discard_cancels_timer_without_settling() -> None:
    async def _run() -> None:
        tracker = PendingRequestTracker()
        future = tracker.track(9, "turn/interrupt", timeout=0.01)
        tracker.discard(9)
        await asyncio.sleep(0.05)
        assert not future.done()

    asyncio.run(_run())
