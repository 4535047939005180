from __future__ import annotations

import shlex
from typing import Annotated, Any

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .models import SandboxMode

DEFAULT_COMMAND: tuple[str, ...] = ("codex", "app-server")
ENV_PREFIX = "CXSLACK_"


class ClientSettings(BaseSettings):
    """Runtime settings for one app-server connection.

    Every field can be set from a `CXSLACK_<FIELD>` environment variable;
    the launch command also honours `CODEX_APP_SERVER_CMD`. Empty variables
    are ignored. Durations are in milliseconds to match the values operators
    put in environment files; the `*_seconds` helpers convert for asyncio.

    Attributes:
        command: argv used to launch the app-server.
        sandbox_mode: Passed as `-c sandbox_mode="<mode>"`; None omits the flag.
        cwd: Working directory of the subprocess.
        env: Extra environment variables for the subprocess.
        request_timeout_ms: Default per-request timeout.
        max_restart_attempts: Restarts tried after an unexpected exit.
        initial_backoff_ms: Delay before the first restart; doubles per attempt.
        max_backoff_ms: Upper bound for the restart delay.
        shutdown_request_ms: Wait after the `shutdown` request.
        shutdown_term_ms: Wait after SIGTERM.
        shutdown_kill_ms: Wait after SIGKILL.
        delta_dedup_ms: Window for duplicate content deltas.
        item_dedup_ms: Window for duplicate item lifecycle events.
        turn_dedup_ms: Window for duplicate turn completions.
        client_name: `clientInfo.name` sent with `initialize`.
        client_version: `clientInfo.version` sent with `initialize`.
        opt_out_notification_methods: Notification methods the server should
            not send at all. Comma-separated in `CXSLACK_OPT_OUT_NOTIFICATIONS`.
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_ignore_empty=True,
        frozen=True,
    )

    command: Annotated[tuple[str, ...], NoDecode] = Field(
        default=DEFAULT_COMMAND,
        validation_alias=AliasChoices("command", "CODEX_APP_SERVER_CMD"),
    )
    sandbox_mode: SandboxMode | None = "danger-full-access"
    cwd: str | None = None
    env: dict[str, str] | None = None
    request_timeout_ms: int = Field(default=60_000, gt=0)
    max_restart_attempts: int = Field(default=5, ge=0)
    initial_backoff_ms: int = Field(default=1_000, gt=0)
    max_backoff_ms: int = Field(default=30_000, gt=0)
    shutdown_request_ms: int = Field(default=2_000, ge=0)
    shutdown_term_ms: int = Field(default=2_000, ge=0)
    shutdown_kill_ms: int = Field(default=1_000, ge=0)
    delta_dedup_ms: int = Field(default=100, gt=0)
    item_dedup_ms: int = Field(default=500, gt=0)
    turn_dedup_ms: int = Field(default=1_000, gt=0)
    client_name: str = "cxslack"
    client_version: str = "0.1.0"
    opt_out_notification_methods: Annotated[tuple[str, ...], NoDecode] = Field(
        default=(),
        validation_alias=AliasChoices(
            "opt_out_notification_methods", f"{ENV_PREFIX}OPT_OUT_NOTIFICATIONS"
        ),
    )

    @field_validator("command", mode="before")
    @classmethod
    def _split_command(cls, value: Any) -> Any:
        if isinstance(value, str):
            return tuple(shlex.split(value))
        return value

    @field_validator("command")
    @classmethod
    def _command_not_empty(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if not value:
            raise ValueError("command must not be empty")
        return value

    @field_validator("opt_out_notification_methods", mode="before")
    @classmethod
    def _split_methods(cls, value: Any) -> Any:
        if isinstance(value, str):
            return tuple(method.strip() for method in value.split(",") if method.strip())
        return value

    @model_validator(mode="after")
    def _backoff_bounds(self) -> ClientSettings:
        if self.initial_backoff_ms > self.max_backoff_ms:
            raise ValueError("initial_backoff_ms must not exceed max_backoff_ms")
        return self

    @classmethod
    def from_env(cls, **overrides: Any) -> ClientSettings:
        """Build settings from the environment; keyword `overrides` win."""
        return cls(**overrides)

    def launch_command(self) -> list[str]:
        """Return the full argv, including the sandbox flag when configured."""
        argv = list(self.command)
        if self.sandbox_mode is not None:
            argv.extend(["-c", f'sandbox_mode="{self.sandbox_mode}"'])
        return argv

    @property
    def request_timeout_seconds(self) -> float:
        return self.request_timeout_ms / 1000

    def restart_delay_ms(self, attempt: int) -> int:
        """Backoff before restart `attempt` (1-based): initial * 2^(attempt-1), capped."""
        if attempt < 1:
            raise ValueError("attempt must be >= 1")
        return min(self.initial_backoff_ms * 2 ** (attempt - 1), self.max_backoff_ms)
