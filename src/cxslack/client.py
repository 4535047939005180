from __future__ import annotations

import re
from collections.abc import Callable, Mapping, Sequence
from typing import Any, TypeVar

import structlog
from pydantic import ValidationError

from .config import ClientSettings
from .errors import CodexError, CodexProtocolError, CodexValidationError
from .events import DomainEvent, EventBus
from .models import (
    AccountInfo,
    ApprovalDecision,
    InitializeResult,
    RateLimits,
    ThreadInfo,
    TurnInput,
    TurnOptions,
    turn_options_to_params,
)
from .protocol import (
    ACCOUNT_RATE_LIMITS_READ_METHOD,
    ACCOUNT_READ_METHOD,
    METHOD_NOT_FOUND,
    MODEL_LIST_METHOD,
    THREAD_FORK_METHOD,
    THREAD_READ_METHOD,
    THREAD_RESUME_METHOD,
    THREAD_ROLLBACK_METHOD,
    THREAD_START_METHOD,
    TURN_INTERRUPT_METHOD,
    TURN_START_METHOD,
)
from .supervisor import AppServerSupervisor

logger = structlog.get_logger(__name__)

E = TypeVar("E", bound=DomainEvent)

_TURN_LABEL = re.compile(r"^turn-(\d+)$")
_NUMERIC_TURN_ID = re.compile(r"^\d+$")


class CodexClient:
    """Session and turn operations on top of one supervised app-server.

    Example:
        ```python
        client = CodexClient(ClientSettings.from_env())
        await client.start()
        thread = await client.start_thread("/srv/repo")
        turn_id = await client.start_turn(thread.id, "summarize the README")
        ```
    """

    def __init__(
        self,
        settings: ClientSettings | None = None,
        *,
        supervisor: AppServerSupervisor | None = None,
    ) -> None:
        self._supervisor = supervisor if supervisor is not None else AppServerSupervisor(settings)

    async def __aenter__(self) -> CodexClient:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    @property
    def supervisor(self) -> AppServerSupervisor:
        return self._supervisor

    @property
    def events(self) -> EventBus:
        return self._supervisor.events

    @property
    def is_connected(self) -> bool:
        return self._supervisor.is_connected

    def subscribe(
        self,
        event_type: type[E],
        handler: Callable[[E], None],
    ) -> Callable[[], None]:
        """Register a handler on the event bus; returns an unsubscribe callable."""
        return self._supervisor.events.subscribe(event_type, handler)

    async def start(self) -> InitializeResult:
        return await self._supervisor.start()

    async def stop(self) -> None:
        await self._supervisor.stop()

    async def request(
        self,
        method: str,
        params: Mapping[str, Any] | None = None,
        *,
        timeout: float | None = None,
    ) -> Any:
        """Send a raw JSON-RPC request through the supervisor."""
        return await self._supervisor.rpc(method, params, timeout=timeout)

    async def get_account(self, refresh_token: bool = False) -> AccountInfo | None:
        """Read the authenticated account; None when the server reports none."""
        result = await self.request(ACCOUNT_READ_METHOD, {"refreshToken": refresh_token})
        account = result.get("account") if isinstance(result, Mapping) else None
        if not isinstance(account, Mapping):
            return None
        return AccountInfo.model_validate(account)

    async def start_thread(self, working_directory: str) -> ThreadInfo:
        result = await self.request(
            THREAD_START_METHOD, {"workingDirectory": working_directory}
        )
        return _thread_from_result(THREAD_START_METHOD, result)

    async def resume_thread(self, thread_id: str) -> ThreadInfo:
        result = await self.request(THREAD_RESUME_METHOD, {"threadId": thread_id})
        return _thread_from_result(THREAD_RESUME_METHOD, result)

    async def fork_thread(self, thread_id: str) -> ThreadInfo:
        """Copy a thread with all of its turns into a new thread."""
        result = await self.request(THREAD_FORK_METHOD, {"threadId": thread_id})
        return _thread_from_result(THREAD_FORK_METHOD, result)

    async def rollback_thread(self, thread_id: str, num_turns: int) -> None:
        """Remove the last `num_turns` turns from a thread.

        Raises:
            CodexValidationError: `num_turns` is below 1; nothing is sent.
        """
        if num_turns < 1:
            raise CodexValidationError("num_turns must be >= 1")
        await self.request(
            THREAD_ROLLBACK_METHOD, {"threadId": thread_id, "numTurns": num_turns}
        )

    async def read_thread(self, thread_id: str, include_turns: bool = True) -> ThreadInfo:
        result = await self.request(
            THREAD_READ_METHOD, {"threadId": thread_id, "includeTurns": include_turns}
        )
        if not isinstance(result, Mapping):
            raise CodexProtocolError(f"{THREAD_READ_METHOD} returned no thread")
        thread = result.get("thread")
        if not isinstance(thread, Mapping):
            raise CodexProtocolError(f"{THREAD_READ_METHOD} returned no thread")
        payload = dict(thread)
        turns = payload.get("turns")
        if not isinstance(turns, list):
            fallback = result.get("turns")
            payload["turns"] = fallback if isinstance(fallback, list) else []
        return _validate_thread(THREAD_READ_METHOD, payload)

    async def get_thread_turn_count(self, thread_id: str) -> int:
        """Return the server's authoritative turn count for a thread."""
        thread = await self.read_thread(thread_id, include_turns=True)
        return len(thread.turns)

    async def find_turn_index(self, thread_id: str, turn_id: str) -> int:
        """Locate a turn in the thread listing, tolerating both id schemes.

        `turn/start` hands out zero-based numeric ids ("0", "1", ...) while
        `thread/read` labels the same turns "turn-1", "turn-2", .... Returns
        the zero-based position, or -1 when nothing matches.
        """
        thread = await self.read_thread(thread_id, include_turns=True)
        turn_ids = [turn.id for turn in thread.turns]
        return resolve_turn_index(turn_ids, turn_id)

    async def fork_thread_at_turn(self, thread_id: str, turn_index: int) -> ThreadInfo:
        """Fork a thread keeping turns `0..turn_index` inclusive.

        The turn count is read from the server immediately before forking;
        a locally cached count can be stale when a turn completes
        concurrently. The fork is then rolled back to the requested point.

        Raises:
            CodexValidationError: `turn_index` is outside the thread.
        """
        if turn_index < 0:
            raise CodexValidationError(f"Invalid turn_index {turn_index}: must be >= 0")
        total = await self.get_thread_turn_count(thread_id)
        if turn_index >= total:
            raise CodexValidationError(
                f"Invalid turn_index {turn_index}: thread has {total} turns (0-{total - 1})"
            )
        forked = await self.fork_thread(thread_id)
        to_remove = total - (turn_index + 1)
        if to_remove > 0:
            await self.rollback_thread(forked.id, to_remove)
        logger.info(
            "thread.forked_at_turn",
            source_thread_id=thread_id,
            thread_id=forked.id,
            turn_index=turn_index,
            rolled_back=to_remove,
        )
        return forked

    async def start_turn(
        self,
        thread_id: str,
        input: str | Sequence[TurnInput],
        options: TurnOptions | None = None,
    ) -> str:
        """Start a turn and return its id.

        Args:
            thread_id: Target thread.
            input: Plain text, or a list of text/image input parts.
            options: Per-turn approval policy, reasoning effort, or model.
        """
        if isinstance(input, str):
            parts: list[Any] = [{"type": "text", "text": input}]
        else:
            parts = [dict(part) for part in input]
        if not parts:
            raise CodexValidationError("turn input must not be empty")
        params: dict[str, Any] = {"threadId": thread_id, "input": parts}
        params.update(turn_options_to_params(options))
        result = await self.request(TURN_START_METHOD, params)
        turn_id = _extract_turn_id(result)
        if turn_id is None:
            raise CodexProtocolError(f"{TURN_START_METHOD} returned no turn id")
        return turn_id

    async def interrupt_turn(self, thread_id: str, turn_id: str) -> None:
        await self.request(TURN_INTERRUPT_METHOD, {"threadId": thread_id, "turnId": turn_id})

    async def list_models(self) -> list[str]:
        """Return available model ids, or [] when the server cannot say.

        An empty list means "unknown", not "no models".
        """
        try:
            result = await self.request(MODEL_LIST_METHOD, {})
        except CodexError as exc:
            _log_probe_failure(MODEL_LIST_METHOD, exc)
            return []
        return _model_ids(result)

    async def get_rate_limits(self) -> RateLimits | None:
        """Return the current rate-limit snapshot, or None when unavailable."""
        try:
            result = await self.request(ACCOUNT_RATE_LIMITS_READ_METHOD, {})
        except CodexError as exc:
            _log_probe_failure(ACCOUNT_RATE_LIMITS_READ_METHOD, exc)
            return None
        if not isinstance(result, Mapping):
            return None
        payload = result.get("rateLimits", result)
        if not isinstance(payload, Mapping):
            return None
        try:
            return RateLimits.model_validate(payload)
        except ValidationError as exc:
            logger.warning(
                "probe.invalid_result", method=ACCOUNT_RATE_LIMITS_READ_METHOD, error=str(exc)
            )
            return None

    async def respond_to_approval(
        self,
        request_id: int | str,
        decision: ApprovalDecision,
    ) -> None:
        """Answer an `ApprovalRequested` event's server request."""
        if decision not in ("accept", "decline"):
            raise CodexValidationError(f"unsupported approval decision: {decision!r}")
        await self._supervisor.respond(request_id, {"decision": decision})


def resolve_turn_index(turn_ids: Sequence[str], turn_id: str) -> int:
    """Map a turn id in either numbering scheme onto a listing position."""
    try:
        return list(turn_ids).index(turn_id)
    except ValueError:
        pass

    if _NUMERIC_TURN_ID.match(turn_id):
        label = f"turn-{int(turn_id) + 1}"
        if label in turn_ids:
            return list(turn_ids).index(label)

    match = _TURN_LABEL.match(turn_id)
    if match:
        index = int(match.group(1)) - 1
        if 0 <= index < len(turn_ids):
            return index

    return -1


def _log_probe_failure(method: str, exc: CodexError) -> None:
    if isinstance(exc, CodexProtocolError) and exc.code == METHOD_NOT_FOUND:
        logger.info("probe.unsupported", method=method)
    else:
        logger.warning("probe.failed", method=method, error=str(exc))


def _validate_thread(method: str, payload: Mapping[str, Any]) -> ThreadInfo:
    try:
        return ThreadInfo.model_validate(payload)
    except ValidationError as exc:
        raise CodexProtocolError(f"{method} returned an invalid thread: {exc}") from exc


def _thread_from_result(method: str, result: Any) -> ThreadInfo:
    thread = result.get("thread") if isinstance(result, Mapping) else None
    if not isinstance(thread, Mapping):
        raise CodexProtocolError(f"{method} returned no thread")
    return _validate_thread(method, thread)


def _extract_turn_id(result: Any) -> str | None:
    if not isinstance(result, Mapping):
        return None
    turn_id = result.get("turnId")
    if turn_id is None:
        turn = result.get("turn")
        if isinstance(turn, Mapping):
            turn_id = turn.get("id")
    if isinstance(turn_id, bool):
        return None
    if isinstance(turn_id, (str, int)) and str(turn_id):
        return str(turn_id)
    return None


def _model_ids(result: Any) -> list[str]:
    if not isinstance(result, Mapping):
        return []
    models = result.get("models")
    if not isinstance(models, list):
        models = result.get("data")
    if not isinstance(models, list):
        return []
    ids: list[str] = []
    for entry in models:
        if isinstance(entry, str):
            ids.append(entry)
        elif isinstance(entry, Mapping):
            model_id = entry.get("id") or entry.get("model")
            if isinstance(model_id, str):
                ids.append(model_id)
    return ids
