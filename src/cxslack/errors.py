from __future__ import annotations

from typing import Any


class CodexError(Exception):
    """Base exception for the cxslack package."""


class CodexTransportError(CodexError):
    """Raised when the app-server process is unavailable or a write fails."""


class CodexProcessDiedError(CodexTransportError):
    """Raised for every pending request when the app-server process exits."""

    def __init__(self, exit_code: int | None = None) -> None:
        code_text = "unknown" if exit_code is None else str(exit_code)
        super().__init__(f"app-server process died with code {code_text}")
        self.exit_code = exit_code


class CodexStartupError(CodexError):
    """Raised when the app-server cannot be started."""


class CodexRestartExhaustedError(CodexError):
    """Raised (as a supervisor signal) once restart attempts are used up."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"max restart attempts exceeded ({attempts})")
        self.attempts = attempts


class CodexTimeoutError(CodexError):
    """Raised when a request exceeds its timeout."""

    def __init__(self, method: str, request_id: int, timeout: float) -> None:
        super().__init__(
            f"request {method} (id={request_id}) timed out after {timeout * 1000:.0f}ms"
        )
        self.method = method
        self.request_id = request_id
        self.timeout = timeout


class CodexProtocolError(CodexError):
    """Raised when JSON-RPC or app-server protocol reports an error."""

    def __init__(
        self,
        message: str,
        *,
        code: int | None = None,
        data: Any = None,
    ) -> None:
        """Create a protocol error.

        Args:
            message: Human-readable description.
            code: Optional JSON-RPC error code.
            data: Optional protocol-provided error payload.
        """
        super().__init__(message)
        self.code = code
        self.data = data


class CodexValidationError(CodexError, ValueError):
    """Raised for invalid caller arguments before any request is sent."""
