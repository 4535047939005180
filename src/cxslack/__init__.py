from .abort import TurnTracker
from .client import CodexClient, resolve_turn_index
from .config import ClientSettings
from .errors import (
    CodexError,
    CodexProcessDiedError,
    CodexProtocolError,
    CodexRestartExhaustedError,
    CodexStartupError,
    CodexTimeoutError,
    CodexTransportError,
    CodexValidationError,
)
from .events import (
    ApprovalRequested,
    CommandCompleted,
    CommandOutput,
    CommandStarted,
    DomainEvent,
    EventBus,
    FileChangeDelta,
    ItemCompleted,
    ItemDelta,
    ItemStarted,
    ServerDied,
    ServerEvent,
    ServerRestartFailed,
    ServerRestarting,
    ServerStarted,
    ThinkingCompleted,
    ThinkingDelta,
    ThinkingStarted,
    TokensUpdated,
    TurnCompleted,
    TurnContextObserved,
    TurnStarted,
    WebSearchCompleted,
    WebSearchStarted,
)
from .models import (
    AccountInfo,
    ApprovalPolicy,
    InitializeResult,
    RateLimits,
    ReasoningEffort,
    ThreadInfo,
    TurnInfo,
    TurnOptions,
    UNSET,
)
from .pool import CodexPool, CodexRuntime
from .supervisor import AppServerSupervisor, ConnectionState

__all__ = [
    "AccountInfo",
    "AppServerSupervisor",
    "ApprovalPolicy",
    "ApprovalRequested",
    "ClientSettings",
    "CodexClient",
    "CodexError",
    "CodexPool",
    "CodexProcessDiedError",
    "CodexProtocolError",
    "CodexRestartExhaustedError",
    "CodexRuntime",
    "CodexStartupError",
    "CodexTimeoutError",
    "CodexTransportError",
    "CodexValidationError",
    "CommandCompleted",
    "CommandOutput",
    "CommandStarted",
    "ConnectionState",
    "DomainEvent",
    "EventBus",
    "FileChangeDelta",
    "InitializeResult",
    "ItemCompleted",
    "ItemDelta",
    "ItemStarted",
    "RateLimits",
    "ReasoningEffort",
    "ServerDied",
    "ServerEvent",
    "ServerRestartFailed",
    "ServerRestarting",
    "ServerStarted",
    "ThinkingCompleted",
    "ThinkingDelta",
    "ThinkingStarted",
    "ThreadInfo",
    "TokensUpdated",
    "TurnCompleted",
    "TurnContextObserved",
    "TurnInfo",
    "TurnOptions",
    "TurnStarted",
    "TurnTracker",
    "UNSET",
    "WebSearchCompleted",
    "WebSearchStarted",
    "resolve_turn_index",
]
