from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import structlog

from .errors import CodexProtocolError, CodexTimeoutError
from .protocol import extract_error

logger = structlog.get_logger(__name__)


@dataclass(slots=True)
class PendingRequest:
    request_id: int
    method: str
    on_success: Callable[[Any], None]
    on_error: Callable[[BaseException], None]
    timer: asyncio.TimerHandle | None = None


class PendingRequestTracker:
    """Correlates JSON-RPC responses with the calls that are waiting on them.

    All methods must be called from the event loop thread; the tracker keeps
    no lock of its own.
    """

    def __init__(self) -> None:
        self._pending: dict[int, PendingRequest] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._pending

    def add(
        self,
        request_id: int,
        method: str,
        on_success: Callable[[Any], None],
        on_error: Callable[[BaseException], None],
        timeout: float | None = None,
    ) -> None:
        """Register a waiter, arming a timeout when `timeout` is positive."""
        entry = PendingRequest(request_id, method, on_success, on_error)
        if timeout is not None and timeout > 0:
            loop = asyncio.get_running_loop()
            entry.timer = loop.call_later(timeout, self._expire, request_id, timeout)
        self._pending[request_id] = entry

    def track(
        self,
        request_id: int,
        method: str,
        timeout: float | None = None,
    ) -> asyncio.Future[Any]:
        """Register a waiter and return a future settled by its response."""
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()

        def _succeed(result: Any) -> None:
            if not future.done():
                future.set_result(result)

        def _fail(error: BaseException) -> None:
            if not future.done():
                future.set_exception(error)

        self.add(request_id, method, _succeed, _fail, timeout)
        return future

    def resolve(self, response: dict[str, Any]) -> bool:
        """Deliver a response to its waiter; return False for unknown ids."""
        request_id = response.get("id")
        if not isinstance(request_id, int):
            return False
        entry = self._pending.pop(request_id, None)
        if entry is None:
            return False
        if entry.timer is not None:
            entry.timer.cancel()

        error = extract_error(response)
        if error is not None:
            code = error.get("code")
            message_text = str(error.get("message", "JSON-RPC error"))
            entry.on_error(
                CodexProtocolError(
                    f"{entry.method} failed: {message_text}",
                    code=code if isinstance(code, int) else None,
                    data=error.get("data"),
                )
            )
        else:
            entry.on_success(response.get("result"))
        return True

    def discard(self, request_id: int) -> None:
        """Forget a waiter without settling it."""
        entry = self._pending.pop(request_id, None)
        if entry is not None and entry.timer is not None:
            entry.timer.cancel()

    def reject_all(self, error: BaseException) -> None:
        """Fail every waiter with `error` and empty the tracker."""
        entries = list(self._pending.values())
        self._pending.clear()
        for entry in entries:
            if entry.timer is not None:
                entry.timer.cancel()
            entry.on_error(error)
        if entries:
            logger.debug("pending.rejected_all", count=len(entries), error=str(error))

    def _expire(self, request_id: int, timeout: float) -> None:
        entry = self._pending.pop(request_id, None)
        if entry is None:
            return
        logger.warning(
            "pending.timeout", method=entry.method, request_id=request_id, timeout=timeout
        )
        entry.on_error(CodexTimeoutError(entry.method, request_id, timeout))
