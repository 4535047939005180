from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from .events import TurnCompleted, TurnContextObserved, TurnStarted

if TYPE_CHECKING:
    from .client import CodexClient

logger = structlog.get_logger(__name__)


class TurnTracker:
    """Follows running turns so a user abort can be turned into `turn/interrupt`.

    The running turn id is learned from `TurnStarted` and, when that event
    has not arrived yet, from any notification that names both the thread
    and the turn. Abort flags are keyed by conversation so a late
    completion can still be reported as interrupted.
    """

    def __init__(self, client: CodexClient) -> None:
        self._client = client
        self._running: dict[str, str] = {}
        self._aborted: set[str] = set()
        self._unsubscribers = [
            client.subscribe(TurnStarted, self._on_turn_started),
            client.subscribe(TurnContextObserved, self._on_context),
            client.subscribe(TurnCompleted, self._on_turn_completed),
        ]

    def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

    def current_turn(self, thread_id: str) -> str | None:
        return self._running.get(thread_id)

    def mark_aborted(self, key: str) -> None:
        self._aborted.add(key)

    def is_aborted(self, key: str) -> bool:
        return key in self._aborted

    def clear_aborted(self, key: str) -> None:
        self._aborted.discard(key)

    async def abort(self, thread_id: str, key: str | None = None) -> bool:
        """Interrupt the running turn of `thread_id`.

        Marks `key` (defaults to the thread id) as aborted either way.
        Returns True when an interrupt request was sent.
        """
        self.mark_aborted(key or thread_id)
        turn_id = self._running.get(thread_id)
        if turn_id is None:
            logger.info("turn.abort_without_turn", thread_id=thread_id)
            return False
        await self._client.interrupt_turn(thread_id, turn_id)
        logger.info("turn.abort_sent", thread_id=thread_id, turn_id=turn_id)
        return True

    def _on_turn_started(self, event: TurnStarted) -> None:
        if event.thread_id and event.turn_id:
            self._running[event.thread_id] = event.turn_id

    def _on_context(self, event: TurnContextObserved) -> None:
        if event.thread_id and event.turn_id:
            self._running[event.thread_id] = event.turn_id

    def _on_turn_completed(self, event: TurnCompleted) -> None:
        if self._running.get(event.thread_id) == event.turn_id:
            del self._running[event.thread_id]
