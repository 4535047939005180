"""Normalized domain events and the synchronous publish/subscribe bus.

Consumers (streaming, approval handling, abort tracking) subscribe to event
classes; subscribing to a base class such as `DomainEvent` receives every
subclass. Dispatch happens synchronously, in subscription order, on the event
loop thread that publishes.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Literal, TypeAlias, TypeVar

import structlog

logger = structlog.get_logger(__name__)

TurnStatus: TypeAlias = Literal["running", "completed", "interrupted", "failed"]
ApprovalKind: TypeAlias = Literal["command", "file_change"]


@dataclass(frozen=True, slots=True)
class DomainEvent:
    """Base class for every event published on the bus."""


@dataclass(frozen=True, slots=True)
class TurnStarted(DomainEvent):
    thread_id: str
    turn_id: str


@dataclass(frozen=True, slots=True)
class TurnCompleted(DomainEvent):
    thread_id: str
    turn_id: str
    status: TurnStatus


@dataclass(frozen=True, slots=True)
class TurnContextObserved(DomainEvent):
    """Side signal: a notification mentioned both a thread id and a turn id.

    Best effort only; used by the abort path to learn a running turn id
    before (or without) a `TurnStarted` event.
    """

    thread_id: str
    turn_id: str


@dataclass(frozen=True, slots=True)
class ItemStarted(DomainEvent):
    item_id: str
    item_type: str
    thread_id: str = ""
    turn_id: str = ""
    command: str | None = None


@dataclass(frozen=True, slots=True)
class ItemDelta(DomainEvent):
    item_id: str
    delta: str


@dataclass(frozen=True, slots=True)
class ItemCompleted(DomainEvent):
    item_id: str
    item_type: str | None = None
    thread_id: str = ""
    turn_id: str = ""


@dataclass(frozen=True, slots=True)
class ApprovalRequested(DomainEvent):
    """Server asks the user to approve a command or a file change.

    Attributes:
        kind: `command` or `file_change`.
        request_id: JSON-RPC id to answer with `respond_to_approval()`;
            None when the request arrived as a plain notification.
        method: Raw protocol method name.
        fields: Raw params for presentation (parsedCmd, risk, filePath, ...).
    """

    kind: ApprovalKind
    request_id: int | str | None
    thread_id: str
    turn_id: str
    item_id: str
    method: str
    command: str | None = None
    cwd: str | None = None
    reason: str | None = None
    file_path: str | None = None
    fields: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class TokensUpdated(DomainEvent):
    input_tokens: int = 0
    output_tokens: int = 0
    cached_input_tokens: int = 0
    context_window: int | None = None
    thread_id: str = ""
    turn_id: str = ""


@dataclass(frozen=True, slots=True)
class ThinkingStarted(DomainEvent):
    item_id: str


@dataclass(frozen=True, slots=True)
class ThinkingDelta(DomainEvent):
    content: str
    item_id: str = ""


@dataclass(frozen=True, slots=True)
class ThinkingCompleted(DomainEvent):
    item_id: str
    duration_ms: int


@dataclass(frozen=True, slots=True)
class CommandStarted(DomainEvent):
    item_id: str
    thread_id: str
    turn_id: str
    command: str | None = None


@dataclass(frozen=True, slots=True)
class CommandOutput(DomainEvent):
    item_id: str
    delta: str


@dataclass(frozen=True, slots=True)
class CommandCompleted(DomainEvent):
    item_id: str
    thread_id: str
    turn_id: str
    exit_code: int | None = None


@dataclass(frozen=True, slots=True)
class WebSearchStarted(DomainEvent):
    item_id: str
    thread_id: str
    turn_id: str
    query: str | None = None
    url: str | None = None


@dataclass(frozen=True, slots=True)
class WebSearchCompleted(DomainEvent):
    item_id: str
    thread_id: str
    turn_id: str
    url: str | None = None
    result_urls: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class FileChangeDelta(DomainEvent):
    item_id: str
    delta: str


@dataclass(frozen=True, slots=True)
class ServerEvent(DomainEvent):
    """Base class for supervisor lifecycle signals."""


@dataclass(frozen=True, slots=True)
class ServerStarted(ServerEvent):
    pid: int | None = None


@dataclass(frozen=True, slots=True)
class ServerDied(ServerEvent):
    exit_code: int | None = None


@dataclass(frozen=True, slots=True)
class ServerRestarting(ServerEvent):
    attempt: int
    delay_ms: int


@dataclass(frozen=True, slots=True)
class ServerRestartFailed(ServerEvent):
    error: BaseException


E = TypeVar("E", bound=DomainEvent)
Handler: TypeAlias = Callable[[Any], None]


class EventBus:
    """Typed publish/subscribe registry with ordered synchronous dispatch."""

    def __init__(self) -> None:
        self._subscribers: list[tuple[type[DomainEvent], Handler]] = []

    def subscribe(
        self,
        event_type: type[E],
        handler: Callable[[E], None],
    ) -> Callable[[], None]:
        """Register `handler` for `event_type` (and subclasses).

        Returns a callable that removes the subscription.
        """
        entry = (event_type, handler)
        self._subscribers.append(entry)

        def _unsubscribe() -> None:
            try:
                self._subscribers.remove(entry)
            except ValueError:
                pass

        return _unsubscribe

    def publish(self, event: DomainEvent) -> None:
        """Deliver `event` to every matching handler.

        A failing handler is logged and does not stop delivery to the rest.
        """
        for event_type, handler in list(self._subscribers):
            if not isinstance(event, event_type):
                continue
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "event_bus.handler_failed",
                    event_type=type(event).__name__,
                    handler=getattr(handler, "__qualname__", repr(handler)),
                )

    def clear(self) -> None:
        self._subscribers.clear()
