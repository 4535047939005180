"""Map raw app-server notifications onto the stable `DomainEvent` set.

The app-server emits most occurrences twice: once under the namespaced
method names (`turn/started`, `item/agentMessage/delta`, ...) with flat
camelCase params, and once under the legacy `codex/event/*` names with
snake_case fields nested inside a `msg` envelope. The normalizer routes both
generations through one table, extracts fields from an ordered list of
candidate paths, and drops the second copy with short dedup windows.
"""

from __future__ import annotations

import enum
import time
from collections.abc import Callable, Mapping, Sequence
from typing import Any

import structlog

from .dedup import DedupWindow
from .events import (
    ApprovalKind,
    ApprovalRequested,
    CommandCompleted,
    CommandOutput,
    CommandStarted,
    EventBus,
    FileChangeDelta,
    ItemCompleted,
    ItemDelta,
    ItemStarted,
    ThinkingCompleted,
    ThinkingDelta,
    ThinkingStarted,
    TokensUpdated,
    TurnCompleted,
    TurnContextObserved,
    TurnStarted,
    TurnStatus,
    WebSearchCompleted,
    WebSearchStarted,
)

logger = structlog.get_logger(__name__)

# Number of leading characters of a delta used as its dedup key.
DELTA_KEY_LENGTH = 100

Path = tuple[str, ...]


class EventClass(enum.Enum):
    TURN_STARTED = "turn_started"
    TURN_COMPLETED = "turn_completed"
    TURN_FAILED = "turn_failed"
    ITEM_STARTED = "item_started"
    ITEM_COMPLETED = "item_completed"
    CONTENT_DELTA = "content_delta"
    APPROVAL = "approval"
    TOKEN_USAGE = "token_usage"
    THINKING_DELTA = "thinking_delta"
    COMMAND_BEGIN = "command_begin"
    COMMAND_OUTPUT = "command_output"
    COMMAND_END = "command_end"
    WEB_SEARCH_BEGIN = "web_search_begin"
    WEB_SEARCH_END = "web_search_end"
    FILE_CHANGE_DELTA = "file_change_delta"
    SERVER_ERROR = "server_error"
    INFORMATIONAL = "informational"


METHOD_TABLE: dict[str, EventClass] = {
    # Turn lifecycle
    "turn/started": EventClass.TURN_STARTED,
    "codex/event/task_started": EventClass.TURN_STARTED,
    "turn/completed": EventClass.TURN_COMPLETED,
    "turn.completed": EventClass.TURN_COMPLETED,
    "turnCompleted": EventClass.TURN_COMPLETED,
    "codex/event/task_complete": EventClass.TURN_COMPLETED,
    "turn/error": EventClass.TURN_FAILED,
    "turn/failed": EventClass.TURN_FAILED,
    "turn/errored": EventClass.TURN_FAILED,
    "turn.failed": EventClass.TURN_FAILED,
    "turnFailed": EventClass.TURN_FAILED,
    # Item lifecycle
    "item/started": EventClass.ITEM_STARTED,
    "codex/event/item_started": EventClass.ITEM_STARTED,
    "item/completed": EventClass.ITEM_COMPLETED,
    "codex/event/item_completed": EventClass.ITEM_COMPLETED,
    # Assistant message streaming
    "item/agentMessage/delta": EventClass.CONTENT_DELTA,
    "codex/event/agent_message_content_delta": EventClass.CONTENT_DELTA,
    "codex/event/agent_message_delta": EventClass.CONTENT_DELTA,
    # Approvals (usually server-initiated requests)
    "item/commandExecution/requestApproval": EventClass.APPROVAL,
    "item/fileChange/requestApproval": EventClass.APPROVAL,
    "execCommandApproval": EventClass.APPROVAL,
    "applyPatchApproval": EventClass.APPROVAL,
    # Token usage
    "thread/tokenUsage/updated": EventClass.TOKEN_USAGE,
    "codex/event/token_count": EventClass.TOKEN_USAGE,
    # Reasoning
    "item/reasoning/summaryTextDelta": EventClass.THINKING_DELTA,
    "item/reasoning/textDelta": EventClass.THINKING_DELTA,
    "codex/event/reasoning_content_delta": EventClass.THINKING_DELTA,
    "codex/event/agent_reasoning_delta": EventClass.THINKING_DELTA,
    # Command execution
    "codex/event/exec_command_begin": EventClass.COMMAND_BEGIN,
    "codex/event/exec_command_output_delta": EventClass.COMMAND_OUTPUT,
    "item/commandExecution/outputDelta": EventClass.COMMAND_OUTPUT,
    "codex/event/exec_command_end": EventClass.COMMAND_END,
    # Web search
    "codex/event/web_search_begin": EventClass.WEB_SEARCH_BEGIN,
    "codex/event/web_search_end": EventClass.WEB_SEARCH_END,
    # File changes
    "item/fileChange/outputDelta": EventClass.FILE_CHANGE_DELTA,
    # Errors reported by the server outside a response
    "error": EventClass.SERVER_ERROR,
    "codex/event/error": EventClass.SERVER_ERROR,
    "codex/event/stream_error": EventClass.SERVER_ERROR,
    # Informational, nothing to emit
    "thread/started": EventClass.INFORMATIONAL,
    "account/rateLimits/updated": EventClass.INFORMATIONAL,
    "codex/event/session_configured": EventClass.INFORMATIONAL,
    "codex/event/mcp_startup_update": EventClass.INFORMATIONAL,
    "codex/event/mcp_startup_complete": EventClass.INFORMATIONAL,
    "codex/event/user_message": EventClass.INFORMATIONAL,
    "codex/event/agent_message": EventClass.INFORMATIONAL,
    "codex/event/agent_reasoning": EventClass.INFORMATIONAL,
    "codex/event/agent_reasoning_section_break": EventClass.INFORMATIONAL,
    "item/reasoning/summaryPartAdded": EventClass.INFORMATIONAL,
}

APPROVAL_KINDS: dict[str, ApprovalKind] = {
    "item/commandExecution/requestApproval": "command",
    "execCommandApproval": "command",
    "item/fileChange/requestApproval": "file_change",
    "applyPatchApproval": "file_change",
}

# Candidate field paths, highest priority first.
THREAD_ID_PATHS: tuple[Path, ...] = (
    ("threadId",),
    ("thread_id",),
    ("conversationId",),
    ("msg", "thread_id"),
    ("turn", "threadId"),
)
TURN_ID_PATHS: tuple[Path, ...] = (
    ("turnId",),
    ("turn_id",),
    ("turn", "id"),
    ("msg", "turn_id"),
    ("msg", "turnId"),
    ("id",),
)
ITEM_TURN_ID_PATHS: tuple[Path, ...] = (
    ("turnId",),
    ("turn_id",),
    ("msg", "turn_id"),
    ("msg", "turnId"),
)
TURN_STATUS_PATHS: tuple[Path, ...] = (
    ("status",),
    ("turn", "status"),
    ("msg", "status"),
)
ITEM_ID_PATHS: tuple[Path, ...] = (
    ("itemId",),
    ("item_id",),
    ("item", "id"),
    ("msg", "item", "id"),
    ("msg", "item_id"),
    ("id",),
)
ITEM_TYPE_PATHS: tuple[Path, ...] = (
    ("itemType",),
    ("item_type",),
    ("item", "type"),
    ("msg", "item", "type"),
    ("type",),
    ("toolName",),
    ("tool_name",),
    ("name",),
)
ITEM_COMMAND_PATHS: tuple[Path, ...] = (
    ("item", "command"),
    ("msg", "item", "command"),
    ("command",),
)
DELTA_TEXT_PATHS: tuple[Path, ...] = (
    ("delta",),
    ("content",),
    ("text",),
    ("msg", "delta"),
    ("msg", "content"),
    ("msg", "text"),
)
DELTA_ITEM_ID_PATHS: tuple[Path, ...] = (
    ("itemId",),
    ("item_id",),
    ("msg", "item_id"),
)
# Legacy exec/web-search events nest the authoritative ids inside `msg`.
CALL_ITEM_ID_PATHS: tuple[Path, ...] = (
    ("msg", "call_id"),
    ("itemId",),
    ("item_id",),
    ("callId",),
    ("call_id",),
    ("id",),
)
CALL_THREAD_ID_PATHS: tuple[Path, ...] = (
    ("conversationId",),
    ("threadId",),
    ("thread_id",),
    ("msg", "thread_id"),
)
CALL_TURN_ID_PATHS: tuple[Path, ...] = (
    ("msg", "turn_id"),
    ("msg", "turnId"),
    ("turnId",),
    ("turn_id",),
)
COMMAND_TEXT_PATHS: tuple[Path, ...] = (
    ("msg", "command"),
    ("command",),
    ("msg", "parsed_cmd"),
    ("parsedCmd",),
)
EXIT_CODE_PATHS: tuple[Path, ...] = (
    ("msg", "exit_code"),
    ("exitCode",),
    ("exit_code",),
    ("code",),
)
OUTPUT_DELTA_PATHS: tuple[Path, ...] = (
    ("delta",),
    ("content",),
    ("output",),
    ("msg", "delta"),
    ("msg", "content"),
    ("msg", "output"),
)
INPUT_TOKEN_PATHS: tuple[Path, ...] = (
    ("inputTokens",),
    ("input_tokens",),
    ("tokenUsage", "total", "inputTokens"),
    ("msg", "info", "total_token_usage", "input_tokens"),
    ("info", "total_token_usage", "input_tokens"),
)
OUTPUT_TOKEN_PATHS: tuple[Path, ...] = (
    ("outputTokens",),
    ("output_tokens",),
    ("tokenUsage", "total", "outputTokens"),
    ("msg", "info", "total_token_usage", "output_tokens"),
    ("info", "total_token_usage", "output_tokens"),
)
CACHED_TOKEN_PATHS: tuple[Path, ...] = (
    ("cachedInputTokens",),
    ("cached_input_tokens",),
    ("tokenUsage", "total", "cachedInputTokens"),
    ("msg", "info", "total_token_usage", "cached_input_tokens"),
    ("info", "total_token_usage", "cached_input_tokens"),
)
CONTEXT_WINDOW_PATHS: tuple[Path, ...] = (
    ("modelContextWindow",),
    ("model_context_window",),
    ("tokenUsage", "modelContextWindow"),
    ("msg", "info", "model_context_window"),
    ("info", "model_context_window"),
)
SEARCH_QUERY_PATHS: tuple[Path, ...] = (("msg", "query"), ("query",))
SEARCH_URL_PATHS: tuple[Path, ...] = (("msg", "url"), ("url",))
SEARCH_RESULTS_PATHS: tuple[Path, ...] = (("msg", "results"), ("results",))
ERROR_MESSAGE_PATHS: tuple[Path, ...] = (
    ("message",),
    ("error", "message"),
    ("msg", "message"),
)

_STATUS_ALIASES: dict[str, TurnStatus] = {
    "completed": "completed",
    "success": "completed",
    "done": "completed",
    "interrupted": "interrupted",
    "cancelled": "interrupted",
    "canceled": "interrupted",
    "aborted": "interrupted",
    "failed": "failed",
    "error": "failed",
}

_MISSING = object()


def lookup(params: Any, path: Path) -> Any:
    """Follow `path` through nested mappings; return `_MISSING` when absent."""
    current = params
    for key in path:
        if not isinstance(current, Mapping) or key not in current:
            return _MISSING
        current = current[key]
    return current


def first_string(params: Any, paths: Sequence[Path], default: str = "") -> str:
    """Return the first non-empty string (or integer id) found along `paths`."""
    for path in paths:
        value = lookup(params, path)
        if isinstance(value, str) and value:
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
    return default


def first_int(params: Any, paths: Sequence[Path]) -> int | None:
    """Return the first integral number found along `paths`."""
    for path in paths:
        value = lookup(params, path)
        if isinstance(value, bool):
            continue
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
    return None


def first_command(params: Any, paths: Sequence[Path]) -> str | None:
    """Return a command as text; argv lists are joined with spaces."""
    for path in paths:
        value = lookup(params, path)
        if isinstance(value, str) and value:
            return value
        if isinstance(value, list):
            parts = [part for part in value if isinstance(part, str)]
            if parts:
                return " ".join(parts)
    return None


def normalize_turn_status(
    raw: str | None,
    default: TurnStatus = "completed",
) -> TurnStatus | None:
    """Map a raw completion status onto `completed|interrupted|failed`.

    Absent status yields `default`; anything unrecognized (including
    `running`, which is meaningless in a completion event) yields None.
    """
    if raw is None or raw == "":
        return default
    return _STATUS_ALIASES.get(raw.strip().lower())


def normalize_item_type(value: str) -> str:
    """Lower the first character so `CommandExecution` becomes `commandExecution`."""
    if value and value[0].isupper():
        return value[0].lower() + value[1:]
    return value


def is_approval_method(method: str) -> bool:
    return method in APPROVAL_KINDS


class EventNormalizer:
    """Turns raw notifications and server requests into `DomainEvent`s."""

    def __init__(
        self,
        bus: EventBus,
        *,
        delta_ttl: float = 0.1,
        item_ttl: float = 0.5,
        turn_ttl: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._bus = bus
        self._clock = clock
        self._delta_window = DedupWindow(delta_ttl, clock=clock)
        self._item_window = DedupWindow(item_ttl, clock=clock)
        self._turn_window = DedupWindow(turn_ttl, clock=clock)
        self._reasoning_started: dict[str, float] = {}
        self._handlers: dict[EventClass, Callable[[str, Mapping[str, Any], Any], None]] = {
            EventClass.TURN_STARTED: self._on_turn_started,
            EventClass.TURN_COMPLETED: self._on_turn_completed,
            EventClass.TURN_FAILED: self._on_turn_completed,
            EventClass.ITEM_STARTED: self._on_item_started,
            EventClass.ITEM_COMPLETED: self._on_item_completed,
            EventClass.CONTENT_DELTA: self._on_content_delta,
            EventClass.APPROVAL: self._on_approval,
            EventClass.TOKEN_USAGE: self._on_token_usage,
            EventClass.THINKING_DELTA: self._on_thinking_delta,
            EventClass.COMMAND_BEGIN: self._on_command_begin,
            EventClass.COMMAND_OUTPUT: self._on_command_output,
            EventClass.COMMAND_END: self._on_command_end,
            EventClass.WEB_SEARCH_BEGIN: self._on_web_search_begin,
            EventClass.WEB_SEARCH_END: self._on_web_search_end,
            EventClass.FILE_CHANGE_DELTA: self._on_file_change_delta,
            EventClass.SERVER_ERROR: self._on_server_error,
            EventClass.INFORMATIONAL: self._on_informational,
        }

    def handle(self, message: Mapping[str, Any]) -> None:
        """Normalize one notification or server request.

        Never raises: a notification that fails to normalize is logged and
        skipped so the reader loop keeps running.
        """
        method = message.get("method")
        if not isinstance(method, str):
            return
        try:
            event_class = METHOD_TABLE.get(method)
            if event_class is None:
                logger.info("notification.unknown", method=method)
                return
            params = message.get("params")
            if not isinstance(params, Mapping):
                params = {}
            self._handlers[event_class](method, params, message.get("id"))
        except Exception:
            logger.exception("notification.normalize_failed", method=method)

    def reset(self) -> None:
        """Drop all dedup and reasoning timing state."""
        self._delta_window.clear()
        self._item_window.clear()
        self._turn_window.clear()
        self._reasoning_started.clear()

    def _observe_context(self, thread_id: str, turn_id: str) -> None:
        if thread_id and turn_id:
            self._bus.publish(TurnContextObserved(thread_id=thread_id, turn_id=turn_id))

    def _on_turn_started(self, method: str, params: Mapping[str, Any], _: Any) -> None:
        thread_id = first_string(params, THREAD_ID_PATHS)
        turn_id = first_string(params, TURN_ID_PATHS)
        self._observe_context(thread_id, turn_id)
        self._bus.publish(TurnStarted(thread_id=thread_id, turn_id=turn_id))

    def _on_turn_completed(self, method: str, params: Mapping[str, Any], _: Any) -> None:
        thread_id = first_string(params, THREAD_ID_PATHS)
        turn_id = first_string(params, TURN_ID_PATHS)
        raw_status = first_string(params, TURN_STATUS_PATHS)
        default: TurnStatus = (
            "failed" if METHOD_TABLE[method] is EventClass.TURN_FAILED else "completed"
        )
        status = normalize_turn_status(raw_status, default)
        self._observe_context(thread_id, turn_id)
        if status is None:
            logger.warning(
                "notification.turn_status_ignored",
                method=method,
                status=raw_status,
                thread_id=thread_id,
                turn_id=turn_id,
            )
            return
        if self._turn_window.seen((thread_id, turn_id)):
            logger.debug("notification.turn_completed_duplicate", method=method, turn_id=turn_id)
            return
        self._bus.publish(TurnCompleted(thread_id=thread_id, turn_id=turn_id, status=status))

    def _on_item_started(self, method: str, params: Mapping[str, Any], _: Any) -> None:
        item_id = first_string(params, ITEM_ID_PATHS)
        item_type = normalize_item_type(first_string(params, ITEM_TYPE_PATHS, "unknown"))
        thread_id = first_string(params, THREAD_ID_PATHS)
        turn_id = first_string(params, ITEM_TURN_ID_PATHS)
        self._observe_context(thread_id, turn_id)
        if item_id and self._item_window.seen(("started", item_id)):
            return
        self._bus.publish(
            ItemStarted(
                item_id=item_id,
                item_type=item_type,
                thread_id=thread_id,
                turn_id=turn_id,
                command=first_command(params, ITEM_COMMAND_PATHS),
            )
        )
        if item_type == "reasoning":
            self._reasoning_started[item_id] = self._clock()
            self._bus.publish(ThinkingStarted(item_id=item_id))

    def _on_item_completed(self, method: str, params: Mapping[str, Any], _: Any) -> None:
        item_id = first_string(params, ITEM_ID_PATHS)
        raw_type = first_string(params, ITEM_TYPE_PATHS)
        item_type = normalize_item_type(raw_type) if raw_type else None
        thread_id = first_string(params, THREAD_ID_PATHS)
        turn_id = first_string(params, ITEM_TURN_ID_PATHS)
        self._observe_context(thread_id, turn_id)
        if item_id and self._item_window.seen(("completed", item_id)):
            return
        self._bus.publish(
            ItemCompleted(
                item_id=item_id,
                item_type=item_type,
                thread_id=thread_id,
                turn_id=turn_id,
            )
        )
        started_at = self._reasoning_started.pop(item_id, None)
        if started_at is not None or item_type == "reasoning":
            elapsed = 0.0 if started_at is None else self._clock() - started_at
            self._bus.publish(
                ThinkingCompleted(item_id=item_id, duration_ms=int(elapsed * 1000))
            )

    def _on_content_delta(self, method: str, params: Mapping[str, Any], _: Any) -> None:
        delta = first_string(params, DELTA_TEXT_PATHS)
        item_id = first_string(params, DELTA_ITEM_ID_PATHS)
        self._observe_context(
            first_string(params, THREAD_ID_PATHS), first_string(params, ITEM_TURN_ID_PATHS)
        )
        if not delta:
            return
        # Item ids differ between generations; content is the only shared key.
        if self._delta_window.seen(("message", delta[:DELTA_KEY_LENGTH])):
            return
        self._bus.publish(ItemDelta(item_id=item_id, delta=delta))

    def _on_thinking_delta(self, method: str, params: Mapping[str, Any], _: Any) -> None:
        content = first_string(params, DELTA_TEXT_PATHS)
        if not content:
            return
        if self._delta_window.seen(("thinking", content[:DELTA_KEY_LENGTH])):
            return
        self._bus.publish(
            ThinkingDelta(content=content, item_id=first_string(params, DELTA_ITEM_ID_PATHS))
        )

    def _on_approval(self, method: str, params: Mapping[str, Any], request_id: Any) -> None:
        thread_id = first_string(params, THREAD_ID_PATHS)
        turn_id = first_string(params, ITEM_TURN_ID_PATHS)
        self._observe_context(thread_id, turn_id)
        self._bus.publish(
            ApprovalRequested(
                kind=APPROVAL_KINDS[method],
                request_id=request_id if isinstance(request_id, (int, str)) else None,
                thread_id=thread_id,
                turn_id=turn_id,
                item_id=first_string(params, (("itemId",), ("item_id",), ("callId",), ("call_id",))),
                method=method,
                command=first_command(params, (("command",), ("parsedCmd",))),
                cwd=first_string(params, (("cwd",),)) or None,
                reason=first_string(params, (("reason",),)) or None,
                file_path=first_string(
                    params, (("filePath",), ("file_path",), ("grantRoot",))
                )
                or None,
                fields=dict(params),
            )
        )

    def _on_token_usage(self, method: str, params: Mapping[str, Any], _: Any) -> None:
        thread_id = first_string(params, THREAD_ID_PATHS)
        turn_id = first_string(params, ITEM_TURN_ID_PATHS)
        self._observe_context(thread_id, turn_id)
        self._bus.publish(
            TokensUpdated(
                input_tokens=first_int(params, INPUT_TOKEN_PATHS) or 0,
                output_tokens=first_int(params, OUTPUT_TOKEN_PATHS) or 0,
                cached_input_tokens=first_int(params, CACHED_TOKEN_PATHS) or 0,
                context_window=first_int(params, CONTEXT_WINDOW_PATHS),
                thread_id=thread_id,
                turn_id=turn_id,
            )
        )

    def _on_command_begin(self, method: str, params: Mapping[str, Any], _: Any) -> None:
        thread_id = first_string(params, CALL_THREAD_ID_PATHS)
        turn_id = first_string(params, CALL_TURN_ID_PATHS)
        self._observe_context(thread_id, turn_id)
        self._bus.publish(
            CommandStarted(
                item_id=first_string(params, CALL_ITEM_ID_PATHS),
                thread_id=thread_id,
                turn_id=turn_id,
                command=first_command(params, COMMAND_TEXT_PATHS),
            )
        )

    def _on_command_output(self, method: str, params: Mapping[str, Any], _: Any) -> None:
        delta = first_string(params, OUTPUT_DELTA_PATHS)
        if not delta:
            return
        self._bus.publish(
            CommandOutput(item_id=first_string(params, CALL_ITEM_ID_PATHS), delta=delta)
        )

    def _on_command_end(self, method: str, params: Mapping[str, Any], _: Any) -> None:
        thread_id = first_string(params, CALL_THREAD_ID_PATHS)
        turn_id = first_string(params, CALL_TURN_ID_PATHS)
        self._observe_context(thread_id, turn_id)
        self._bus.publish(
            CommandCompleted(
                item_id=first_string(params, CALL_ITEM_ID_PATHS),
                thread_id=thread_id,
                turn_id=turn_id,
                exit_code=first_int(params, EXIT_CODE_PATHS),
            )
        )

    def _on_web_search_begin(self, method: str, params: Mapping[str, Any], _: Any) -> None:
        thread_id = first_string(params, CALL_THREAD_ID_PATHS)
        turn_id = first_string(params, CALL_TURN_ID_PATHS)
        self._observe_context(thread_id, turn_id)
        self._bus.publish(
            WebSearchStarted(
                item_id=first_string(params, CALL_ITEM_ID_PATHS),
                thread_id=thread_id,
                turn_id=turn_id,
                query=first_string(params, SEARCH_QUERY_PATHS) or None,
                url=first_string(params, SEARCH_URL_PATHS) or None,
            )
        )

    def _on_web_search_end(self, method: str, params: Mapping[str, Any], _: Any) -> None:
        thread_id = first_string(params, CALL_THREAD_ID_PATHS)
        turn_id = first_string(params, CALL_TURN_ID_PATHS)
        self._observe_context(thread_id, turn_id)
        result_urls = tuple(_result_urls(params))
        url = first_string(params, SEARCH_URL_PATHS) or (result_urls[0] if result_urls else None)
        self._bus.publish(
            WebSearchCompleted(
                item_id=first_string(params, CALL_ITEM_ID_PATHS),
                thread_id=thread_id,
                turn_id=turn_id,
                url=url,
                result_urls=result_urls,
            )
        )

    def _on_file_change_delta(self, method: str, params: Mapping[str, Any], _: Any) -> None:
        delta = first_string(params, OUTPUT_DELTA_PATHS)
        if not delta:
            return
        self._bus.publish(
            FileChangeDelta(item_id=first_string(params, DELTA_ITEM_ID_PATHS), delta=delta)
        )

    def _on_server_error(self, method: str, params: Mapping[str, Any], _: Any) -> None:
        logger.warning(
            "notification.server_error",
            method=method,
            message=first_string(params, ERROR_MESSAGE_PATHS) or None,
        )

    def _on_informational(self, method: str, params: Mapping[str, Any], _: Any) -> None:
        logger.debug("notification.informational", method=method)


def _result_urls(params: Mapping[str, Any]) -> list[str]:
    for path in SEARCH_RESULTS_PATHS:
        results = lookup(params, path)
        if not isinstance(results, list):
            continue
        urls: list[str] = []
        for entry in results:
            if isinstance(entry, str) and entry:
                urls.append(entry)
            elif isinstance(entry, Mapping):
                url = entry.get("url")
                if isinstance(url, str) and url:
                    urls.append(url)
        return urls
    return []
