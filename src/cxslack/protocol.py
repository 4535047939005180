from __future__ import annotations

import enum
import json
from typing import Any

# JSON-RPC protocol version used by Codex app-server envelopes.
JSONRPC_VERSION = "2.0"

# Request methods sent by this client.
INITIALIZE_METHOD = "initialize"
SHUTDOWN_METHOD = "shutdown"
ACCOUNT_READ_METHOD = "account/read"
ACCOUNT_RATE_LIMITS_READ_METHOD = "account/rateLimits/read"
THREAD_START_METHOD = "thread/start"
THREAD_RESUME_METHOD = "thread/resume"
THREAD_FORK_METHOD = "thread/fork"
THREAD_ROLLBACK_METHOD = "thread/rollback"
THREAD_READ_METHOD = "thread/read"
TURN_START_METHOD = "turn/start"
TURN_INTERRUPT_METHOD = "turn/interrupt"
MODEL_LIST_METHOD = "model/list"

# Standard JSON-RPC error codes.
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


class MessageKind(enum.Enum):
    """Shape of one inbound JSON-RPC message."""

    REQUEST = "request"
    RESPONSE = "response"
    NOTIFICATION = "notification"


def make_request(
    request_id: int,
    method: str,
    params: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build a JSON-RPC request envelope."""
    payload: dict[str, Any] = {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "method": method,
    }
    if params is not None:
        payload["params"] = params
    return payload


def make_notification(
    method: str,
    params: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build a JSON-RPC notification envelope (no id, no reply expected)."""
    payload: dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "method": method}
    if params is not None:
        payload["params"] = params
    return payload


def make_error_response(
    request_id: int | str,
    code: int,
    message: str,
    data: Any = None,
) -> dict[str, Any]:
    """Build a JSON-RPC error response envelope."""
    error: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "error": error,
    }


def make_result_response(
    request_id: int | str,
    result: Any,
) -> dict[str, Any]:
    """Build a JSON-RPC success response envelope."""
    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "result": result,
    }


def extract_error(payload: dict[str, Any]) -> dict[str, Any] | None:
    """Return JSON-RPC error object if present and valid."""
    error = payload.get("error")
    if isinstance(error, dict):
        return error
    return None


def serialize(message: dict[str, Any]) -> bytes:
    """Encode one message as a single newline-terminated JSON line."""
    return (json.dumps(message, separators=(",", ":")) + "\n").encode("utf-8")


def parse(line: bytes | str) -> dict[str, Any] | None:
    """Decode one line into a message dict.

    Returns None instead of raising for malformed JSON, non-object payloads
    and envelopes that declare a JSON-RPC version other than 2.0. The
    app-server occasionally prints diagnostics on stdout, so callers log and
    skip these lines.
    """
    if isinstance(line, bytes):
        try:
            line = line.decode("utf-8")
        except UnicodeDecodeError:
            return None
    try:
        payload = json.loads(line)
    except (json.JSONDecodeError, RecursionError):
        return None
    if not isinstance(payload, dict):
        return None
    version = payload.get("jsonrpc", JSONRPC_VERSION)
    if version != JSONRPC_VERSION:
        return None
    return payload


def classify(message: dict[str, Any]) -> MessageKind | None:
    """Return the message kind, or None for shapes that are neither."""
    has_id = message.get("id") is not None
    method = message.get("method")
    has_method = isinstance(method, str) and bool(method)

    if has_id and has_method:
        return MessageKind.REQUEST
    if has_id and "method" not in message and ("result" in message or "error" in message):
        return MessageKind.RESPONSE
    if has_method and "id" not in message:
        return MessageKind.NOTIFICATION
    return None


class LineBuffer:
    """Accumulates stdout chunks and yields complete newline-delimited lines."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    def feed(self, chunk: bytes) -> list[bytes]:
        """Append a chunk and return every complete, non-blank line in it."""
        self._buffer.extend(chunk)
        lines: list[bytes] = []
        while True:
            newline = self._buffer.find(b"\n")
            if newline < 0:
                break
            line = bytes(self._buffer[:newline]).strip()
            del self._buffer[: newline + 1]
            if line:
                lines.append(line)
        return lines

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet terminated by a newline."""
        return len(self._buffer)

    def clear(self) -> None:
        self._buffer.clear()
