from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, TypeAlias, TypedDict

from pydantic import BaseModel, ConfigDict, Field


class InitializeResult(BaseModel):
    """Parsed result for the `initialize` handshake response.

    Attributes:
        protocol_version: Protocol version echoed by server, if present.
        server_info: Optional server identity/details object.
        raw: Full raw initialize result payload.
    """

    protocol_version: str | None = None
    server_info: dict[str, Any] | None = None
    raw: dict[str, Any] = Field(default_factory=dict)


class TurnInfo(BaseModel):
    """One turn as listed by `thread/read`.

    Listings label turns `turn-1`, `turn-2`, ... while `turn/start` returns a
    zero-based numeric string; see `CodexClient.find_turn_index`.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    status: str | None = None


class ThreadInfo(BaseModel):
    """Conversation thread returned by thread start/resume/fork/read.

    Attributes:
        id: Opaque server thread id.
        working_directory: Directory the agent operates in.
        created_at: Server-provided creation timestamp, if any.
        turns: Ordered turns; only populated by `read_thread`.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    working_directory: str | None = Field(default=None, alias="workingDirectory")
    created_at: str | int | None = Field(default=None, alias="createdAt")
    turns: list[TurnInfo] = Field(default_factory=list)


class AccountInfo(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type: str | None = None
    email: str | None = None
    is_plus: bool | None = Field(default=None, alias="isPlus")
    plan_type: str | None = Field(default=None, alias="planType")


class RateLimitWindow(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    used_percent: float | None = Field(default=None, alias="usedPercent")
    window_duration_mins: int | None = Field(default=None, alias="windowDurationMins")
    resets_at: int | str | None = Field(default=None, alias="resetsAt")


class RateLimits(BaseModel):
    """Snapshot from `account/rateLimits/read`."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    primary: RateLimitWindow | None = None
    secondary: RateLimitWindow | None = None


class UnsetType:
    """Sentinel type representing an omitted request field."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "UNSET"


UNSET = UnsetType()

#: Approval policy forwarded with `turn/start`.
#:
#: Values:
#: - ``"untrusted"``: require approvals for untrusted actions.
#: - ``"on-failure"``: request approval when an action fails.
#: - ``"on-request"``: request approval only when model asks for it.
#: - ``"never"``: never request approval.
ApprovalPolicy: TypeAlias = Literal["untrusted", "on-failure", "on-request", "never"]

#: Process-level sandbox mode passed on the app-server command line.
SandboxMode: TypeAlias = Literal["read-only", "workspace-write", "danger-full-access"]

#: Reasoning effort level, lowest to highest.
ReasoningEffort: TypeAlias = Literal["minimal", "low", "medium", "high", "xhigh"]

#: Answer to a command or file-change approval request.
ApprovalDecision: TypeAlias = Literal["accept", "decline"]


class TextInput(TypedDict):
    type: Literal["text"]
    text: str


class ImageInput(TypedDict):
    type: Literal["image"]
    url: str
    mediaType: str


TurnInput: TypeAlias = TextInput | ImageInput


@dataclass(slots=True)
class TurnOptions:
    """Per-turn fields forwarded to `turn/start`.

    Use `UNSET` (default) to omit a field from the request payload.

    Attributes:
        approval_policy: Approval policy for this turn.
        reasoning_effort: Reasoning effort level.
        model: Model id override.
    """

    approval_policy: ApprovalPolicy | UnsetType = UNSET
    reasoning_effort: ReasoningEffort | UnsetType = UNSET
    model: str | UnsetType = UNSET


def turn_options_to_params(options: TurnOptions | None) -> dict[str, Any]:
    """Encode `TurnOptions` into protocol params (camelCase), omitting UNSET."""
    if options is None:
        return {}

    mapping: tuple[tuple[str, str], ...] = (
        ("approval_policy", "approvalPolicy"),
        ("reasoning_effort", "reasoningEffort"),
        ("model", "model"),
    )
    params: dict[str, Any] = {}
    for attr_name, key_name in mapping:
        value = getattr(options, attr_name)
        if isinstance(value, UnsetType):
            continue
        params[key_name] = value
    return params
