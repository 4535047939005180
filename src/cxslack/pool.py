from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass, field

import structlog

from .client import CodexClient
from .config import ClientSettings
from .events import ServerDied, ServerRestartFailed, ServerRestarting, ServerStarted

logger = structlog.get_logger(__name__)

ClientFactory = Callable[[str], CodexClient]


@dataclass(slots=True)
class CodexRuntime:
    """A started client dedicated to one conversation."""

    key: str
    client: CodexClient
    created_at: float = field(default_factory=time.time)
    last_used_at: float = field(default_factory=time.time)


class CodexPool:
    """One app-server per conversation key, created on first use.

    Concurrent `get_runtime()` calls for the same key share a single
    creation; a failed creation is not cached.
    """

    def __init__(
        self,
        factory: ClientFactory | None = None,
        *,
        settings: ClientSettings | None = None,
    ) -> None:
        self._settings = settings
        self._factory = factory or self._default_factory
        self._runtimes: dict[str, CodexRuntime] = {}
        self._pending: dict[str, asyncio.Future[CodexRuntime]] = {}

    def __len__(self) -> int:
        return len(self._runtimes)

    def _default_factory(self, key: str) -> CodexClient:
        return CodexClient(self._settings)

    def get_runtime_if_exists(self, key: str) -> CodexRuntime | None:
        return self._runtimes.get(key)

    async def get_runtime(self, key: str) -> CodexRuntime:
        existing = self._runtimes.get(key)
        if existing is not None:
            existing.last_used_at = time.time()
            return existing

        pending = self._pending.get(key)
        if pending is not None:
            return await asyncio.shield(pending)

        future: asyncio.Future[CodexRuntime] = asyncio.get_running_loop().create_future()
        self._pending[key] = future
        try:
            runtime = await self._create_runtime(key)
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as exc:
            future.set_exception(exc)
            # Retrieved here so an unobserved failure does not warn at GC.
            future.exception()
            raise
        else:
            self._runtimes[key] = runtime
            future.set_result(runtime)
            return runtime
        finally:
            if self._pending.get(key) is future:
                del self._pending[key]

    async def stop_all(self) -> None:
        """Stop every runtime; runtimes still being created are abandoned."""
        runtimes = list(self._runtimes.values())
        self._runtimes.clear()
        self._pending.clear()
        for runtime in runtimes:
            await runtime.client.stop()
            logger.info("pool.runtime_stopped", key=runtime.key)

    async def _create_runtime(self, key: str) -> CodexRuntime:
        client = self._factory(key)
        log = logger.bind(conversation_key=key)
        client.subscribe(ServerStarted, lambda event: log.info("app_server.started", pid=event.pid))
        client.subscribe(
            ServerDied, lambda event: log.error("app_server.died", exit_code=event.exit_code)
        )
        client.subscribe(
            ServerRestarting,
            lambda event: log.warning(
                "app_server.restarting", attempt=event.attempt, delay_ms=event.delay_ms
            ),
        )
        client.subscribe(
            ServerRestartFailed,
            lambda event: log.error("app_server.restart_failed", error=str(event.error)),
        )
        await client.start()
        return CodexRuntime(key=key, client=client)
