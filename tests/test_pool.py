from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import pytest

from cxslack.errors import CodexStartupError
from cxslack.events import EventBus
from cxslack.pool import CodexPool


class FakeClient:
    def __init__(self, key: str, *, fail: bool = False) -> None:
        self.key = key
        self.fail = fail
        self.bus = EventBus()
        self.start_calls = 0
        self.stop_calls = 0

    def subscribe(self, event_type: type, handler: Callable[[Any], None]) -> Callable[[], None]:
        return self.bus.subscribe(event_type, handler)

    async def start(self) -> None:
        self.start_calls += 1
        await asyncio.sleep(0.01)
        if self.fail:
            raise CodexStartupError("spawn failed")

    async def stop(self) -> None:
        self.stop_calls += 1


def test_concurrent_callers_share_one_creation() -> None:
    async def _run() -> None:
        created: list[FakeClient] = []

        def factory(key: str) -> FakeClient:
            client = FakeClient(key)
            created.append(client)
            return client

        pool = CodexPool(factory)  # type: ignore[arg-type]
        first, second, other = await asyncio.gather(
            pool.get_runtime("C1"), pool.get_runtime("C1"), pool.get_runtime("C2")
        )

        assert first is second
        assert first is not other
        assert [c.key for c in created] == ["C1", "C2"]
        assert created[0].start_calls == 1
        assert pool.get_runtime_if_exists("C1") is first
        assert await pool.get_runtime("C1") is first

    asyncio.run(_run())


def test_failed_creation_is_not_cached() -> None:
    async def _run() -> None:
        attempts: list[FakeClient] = []

        def factory(key: str) -> FakeClient:
            client = FakeClient(key, fail=not attempts)
            attempts.append(client)
            return client

        pool = CodexPool(factory)  # type: ignore[arg-type]
        results = await asyncio.gather(
            pool.get_runtime("C1"), pool.get_runtime("C1"), return_exceptions=True
        )
        assert all(isinstance(r, CodexStartupError) for r in results)
        assert len(attempts) == 1
        assert pool.get_runtime_if_exists("C1") is None

        runtime = await pool.get_runtime("C1")
        assert runtime.client is attempts[1]

    asyncio.run(_run())


def test_stop_all_stops_every_runtime() -> None:
    async def _run() -> None:
        clients: dict[str, FakeClient] = {}

        def factory(key: str) -> FakeClient:
            clients[key] = FakeClient(key)
            return clients[key]

        pool = CodexPool(factory)  # type: ignore[arg-type]
        await pool.get_runtime("C1")
        await pool.get_runtime("C2")
        await pool.stop_all()

        assert len(pool) == 0
        assert [c.stop_calls for c in clients.values()] == [1, 1]

    asyncio.run(_run())


def test_default_factory_builds_real_clients() -> None:
    pool = CodexPool()
    client = pool._default_factory("C1")
    assert client.supervisor.settings.client_name == "cxslack"


@pytest.mark.parametrize("key", ["C1", "D42:1700000000.000100"])
def test_missing_runtime_lookup(key: str) -> None:
    assert CodexPool().get_runtime_if_exists(key) is None
