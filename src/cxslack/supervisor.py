"""Own the app-server subprocess: spawn, handshake, read loop, restart, shutdown.

The supervisor is the only writer to the subprocess stdin and the only
reader of its stdout. Responses are routed to the pending request tracker;
notifications and server-initiated requests go to the event normalizer.
"""

from __future__ import annotations

import asyncio
import enum
import os
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import structlog

from .config import ClientSettings
from .errors import (
    CodexError,
    CodexProcessDiedError,
    CodexRestartExhaustedError,
    CodexStartupError,
    CodexTransportError,
)
from .events import (
    EventBus,
    ServerDied,
    ServerRestartFailed,
    ServerRestarting,
    ServerStarted,
)
from .models import InitializeResult
from .normalizer import EventNormalizer, is_approval_method
from .pending import PendingRequestTracker
from .protocol import (
    INITIALIZE_METHOD,
    METHOD_NOT_FOUND,
    SHUTDOWN_METHOD,
    LineBuffer,
    MessageKind,
    classify,
    make_error_response,
    make_notification,
    make_request,
    make_result_response,
    parse,
    serialize,
)
from .transport import AppServerProcess, StdioProcess

logger = structlog.get_logger(__name__)

ProcessFactory = Callable[[ClientSettings], AppServerProcess]
Sleep = Callable[[float], Awaitable[Any]]

# Longest slice of an unparseable line included in logs.
LOG_LINE_LIMIT = 200


class ConnectionState(enum.Enum):
    ABSENT = "absent"
    STARTING = "starting"
    READY = "ready"
    RESTARTING = "restarting"
    SHUTTING_DOWN = "shutting-down"


def default_process_factory(settings: ClientSettings) -> AppServerProcess:
    """Build a `StdioProcess` for `settings.launch_command()`."""
    env: dict[str, str] | None = None
    if settings.env:
        env = {**os.environ, **settings.env}
    return StdioProcess(settings.launch_command(), cwd=settings.cwd, env=env)


def _ignore(_: Any) -> None:
    return None


class AppServerSupervisor:
    """Lifecycle owner for one app-server connection.

    Args:
        settings: Connection settings; defaults to `ClientSettings()`.
        process_factory: Builds the subprocess handle for each (re)start.
        bus: Event bus shared with consumers; a fresh one is created if omitted.
        sleep: Awaitable used for restart backoff delays.
        clock: Monotonic clock used by the dedup windows.
    """

    def __init__(
        self,
        settings: ClientSettings | None = None,
        *,
        process_factory: ProcessFactory | None = None,
        bus: EventBus | None = None,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings if settings is not None else ClientSettings()
        self._process_factory = process_factory or default_process_factory
        self._bus = bus if bus is not None else EventBus()
        self._sleep = sleep
        self._tracker = PendingRequestTracker()
        self._normalizer = EventNormalizer(
            self._bus,
            delta_ttl=self._settings.delta_dedup_ms / 1000,
            item_ttl=self._settings.item_dedup_ms / 1000,
            turn_ttl=self._settings.turn_dedup_ms / 1000,
            clock=clock,
        )
        self._send_lock = asyncio.Lock()
        self._process: AppServerProcess | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._restart_task: asyncio.Task[None] | None = None
        self._state = ConnectionState.ABSENT
        self._next_id = 0
        self._shutting_down = False
        self._restart_attempts = 0
        self._initialize_result: InitializeResult | None = None

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    @property
    def events(self) -> EventBus:
        return self._bus

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._process is not None and self._state is ConnectionState.READY

    @property
    def restart_attempts(self) -> int:
        return self._restart_attempts

    @property
    def pending_count(self) -> int:
        return len(self._tracker)

    @property
    def initialize_result(self) -> InitializeResult | None:
        return self._initialize_result

    async def start(self) -> InitializeResult:
        """Spawn the app-server and complete the `initialize` handshake.

        Raises:
            CodexStartupError: A connection is already active, the process
                could not be spawned, or the handshake failed.
        """
        if self._process is not None:
            raise CodexStartupError("app-server is already running")
        self._shutting_down = False
        return await self._launch()

    async def stop(self) -> None:
        """Shut the app-server down with staged escalation.

        Sends `shutdown`, then SIGTERM, then SIGKILL, waiting the configured
        budget after each step. Calling again while (or after) stopping is a
        no-op.
        """
        if self._shutting_down:
            return
        self._shutting_down = True
        self._state = ConnectionState.SHUTTING_DOWN
        logger.info("app_server.stopping")

        restart_task = self._restart_task
        self._restart_task = None
        if restart_task is not None and not restart_task.done():
            restart_task.cancel()

        self._tracker.reject_all(CodexTransportError("client stopped"))

        process = self._process
        if process is not None:
            await self._escalate(process)
            if self._process is process:
                self._process = None

        reader_task = self._reader_task
        self._reader_task = None
        if reader_task is not None and reader_task is not asyncio.current_task():
            reader_task.cancel()
            try:
                await reader_task
            except asyncio.CancelledError:
                pass

        self._state = ConnectionState.ABSENT
        self._initialize_result = None
        self._normalizer.reset()
        logger.info("app_server.stopped")

    async def rpc(
        self,
        method: str,
        params: Mapping[str, Any] | None = None,
        *,
        timeout: float | None = None,
    ) -> Any:
        """Send one JSON-RPC request and return its `result`.

        Args:
            method: JSON-RPC method name.
            params: Optional request parameters.
            timeout: Per-call timeout in seconds; defaults to the configured
                request timeout.

        Raises:
            CodexTransportError: No running process, or the write failed.
            CodexProtocolError: The server answered with an error.
            CodexTimeoutError: No answer within the timeout.
            CodexProcessDiedError: The process exited while waiting.
        """
        if self._process is None or self._shutting_down:
            raise CodexTransportError("app-server is not running")
        request_id = self._allocate_id()
        effective_timeout = (
            self._settings.request_timeout_seconds if timeout is None else timeout
        )
        future = self._tracker.track(request_id, method, effective_timeout)
        payload = dict(params) if params is not None else None
        try:
            await self._send(make_request(request_id, method, payload))
        except CodexTransportError:
            self._tracker.discard(request_id)
            raise
        try:
            return await future
        finally:
            self._tracker.discard(request_id)

    async def notify(self, method: str, params: Mapping[str, Any] | None = None) -> None:
        payload = dict(params) if params is not None else None
        await self._send(make_notification(method, payload))

    async def respond(self, request_id: int | str, result: Any) -> None:
        """Answer a server-initiated request."""
        await self._send(make_result_response(request_id, result))

    async def respond_error(
        self,
        request_id: int | str,
        code: int,
        message: str,
        data: Any = None,
    ) -> None:
        await self._send(make_error_response(request_id, code, message, data))

    def _allocate_id(self) -> int:
        # Never reset, so a late response from a dead process cannot match.
        self._next_id += 1
        return self._next_id

    def _initialize_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {
            "clientInfo": {
                "name": self._settings.client_name,
                "version": self._settings.client_version,
            },
        }
        if self._settings.opt_out_notification_methods:
            params["capabilities"] = {
                "optOutNotificationMethods": list(self._settings.opt_out_notification_methods),
            }
        return params

    async def _launch(self) -> InitializeResult:
        self._state = ConnectionState.STARTING
        process = self._process_factory(self._settings)
        try:
            await process.start()
        except Exception as exc:
            self._state = ConnectionState.ABSENT
            logger.error("app_server.spawn_failed", error=str(exc))
            raise CodexStartupError(f"failed to start app-server: {exc}") from exc

        self._process = process
        self._reader_task = asyncio.create_task(self._reader_loop(process))
        logger.info("app_server.spawned", pid=process.pid)

        try:
            result = await self.rpc(INITIALIZE_METHOD, self._initialize_params())
        except CodexError as exc:
            if self._process is process and not self._shutting_down:
                await self._discard(process)
            logger.error("app_server.initialize_failed", error=str(exc))
            raise CodexStartupError(f"initialize handshake failed: {exc}") from exc

        # The reader may have consumed the answer and EOF before we resumed.
        if self._process is not process:
            logger.error("app_server.exited_during_handshake", pid=process.pid)
            raise CodexStartupError("app-server exited during handshake")

        result_dict = result if isinstance(result, dict) else {}
        server_info = result_dict.get("serverInfo")
        protocol_version = result_dict.get("protocolVersion")
        self._initialize_result = InitializeResult(
            protocol_version=protocol_version if isinstance(protocol_version, str) else None,
            server_info=server_info if isinstance(server_info, dict) else None,
            raw=result_dict,
        )
        self._state = ConnectionState.READY
        self._restart_attempts = 0
        logger.info("app_server.started", pid=process.pid)
        self._bus.publish(ServerStarted(pid=process.pid))
        return self._initialize_result

    async def _discard(self, process: AppServerProcess) -> None:
        """Drop a half-started process without treating its exit as a crash."""
        self._process = None
        self._state = ConnectionState.ABSENT
        process.kill()
        reader_task = self._reader_task
        self._reader_task = None
        if reader_task is not None:
            reader_task.cancel()
            try:
                await reader_task
            except asyncio.CancelledError:
                pass

    async def _send(self, message: dict[str, Any]) -> None:
        process = self._process
        if process is None:
            raise CodexTransportError("app-server is not running")
        data = serialize(message)
        async with self._send_lock:
            await process.write(data)

    async def _reader_loop(self, process: AppServerProcess) -> None:
        buffer = LineBuffer()
        try:
            while True:
                chunk = await process.read()
                if not chunk:
                    break
                for line in buffer.feed(chunk):
                    await self._handle_line(line)
        except CodexTransportError as exc:
            logger.warning("app_server.read_failed", error=str(exc))
        if buffer.pending:
            logger.debug("jsonrpc.truncated_line", size=buffer.pending)
        exit_code = await process.wait()
        self._handle_exit(process, exit_code)

    async def _handle_line(self, line: bytes) -> None:
        message = parse(line)
        if message is None:
            logger.warning(
                "jsonrpc.parse_failed",
                line=line[:LOG_LINE_LIMIT].decode("utf-8", errors="replace"),
            )
            return

        kind = classify(message)
        if kind is MessageKind.RESPONSE:
            if not self._tracker.resolve(message):
                logger.warning("jsonrpc.unknown_response", request_id=message.get("id"))
        elif kind is MessageKind.NOTIFICATION:
            self._normalizer.handle(message)
        elif kind is MessageKind.REQUEST:
            await self._handle_server_request(message)
        else:
            logger.debug("jsonrpc.unclassified", keys=sorted(message))

    async def _handle_server_request(self, message: dict[str, Any]) -> None:
        method = message["method"]
        if is_approval_method(method):
            self._normalizer.handle(message)
            return
        logger.warning(
            "jsonrpc.unsupported_server_request", method=method, request_id=message["id"]
        )
        try:
            await self.respond_error(
                message["id"],
                METHOD_NOT_FOUND,
                f"unsupported server request method: {method}",
            )
        except CodexTransportError as exc:
            logger.warning("jsonrpc.respond_failed", method=method, error=str(exc))

    def _handle_exit(self, process: AppServerProcess, exit_code: int | None) -> None:
        if process is not self._process:
            logger.debug("app_server.stale_exit", pid=process.pid, exit_code=exit_code)
            return
        self._process = None
        self._reader_task = None
        was_starting = self._state is ConnectionState.STARTING
        if self._shutting_down:
            logger.info("app_server.exited", exit_code=exit_code)
            return

        self._state = ConnectionState.ABSENT
        logger.error("app_server.died", exit_code=exit_code, pid=process.pid)
        self._tracker.reject_all(CodexProcessDiedError(exit_code))
        self._bus.publish(ServerDied(exit_code=exit_code))
        # A death during the handshake fails that start() call instead.
        if not was_starting:
            self._schedule_restart()

    def _schedule_restart(self) -> None:
        if self._restart_task is not None and not self._restart_task.done():
            return
        self._restart_task = asyncio.create_task(self._restart_loop())

    async def _restart_loop(self) -> None:
        max_attempts = self._settings.max_restart_attempts
        while not self._shutting_down:
            if self._restart_attempts >= max_attempts:
                error = CodexRestartExhaustedError(self._restart_attempts)
                self._state = ConnectionState.ABSENT
                logger.error("app_server.restart_exhausted", attempts=self._restart_attempts)
                self._bus.publish(ServerRestartFailed(error=error))
                return

            self._restart_attempts += 1
            attempt = self._restart_attempts
            delay_ms = self._settings.restart_delay_ms(attempt)
            self._state = ConnectionState.RESTARTING
            logger.warning("app_server.restarting", attempt=attempt, delay_ms=delay_ms)
            self._bus.publish(ServerRestarting(attempt=attempt, delay_ms=delay_ms))
            await self._sleep(delay_ms / 1000)

            if self._shutting_down or self._process is not None:
                return
            try:
                await self._launch()
            except CodexError as exc:
                logger.warning(
                    "app_server.restart_attempt_failed", attempt=attempt, error=str(exc)
                )
                continue
            return

    async def _escalate(self, process: AppServerProcess) -> None:
        settings = self._settings
        shutdown_id = self._allocate_id()
        self._tracker.add(shutdown_id, SHUTDOWN_METHOD, _ignore, _ignore)
        try:
            await self._send(make_request(shutdown_id, SHUTDOWN_METHOD))
        except CodexTransportError as exc:
            logger.debug("app_server.shutdown_request_failed", error=str(exc))

        try:
            if await self._wait_exit(process, settings.shutdown_request_ms):
                return
            logger.warning("app_server.terminate", pid=process.pid)
            process.terminate()
            if await self._wait_exit(process, settings.shutdown_term_ms):
                return
            logger.warning("app_server.kill", pid=process.pid)
            process.kill()
            if not await self._wait_exit(process, settings.shutdown_kill_ms):
                logger.error("app_server.kill_timeout", pid=process.pid)
        finally:
            self._tracker.discard(shutdown_id)

    @staticmethod
    async def _wait_exit(process: AppServerProcess, budget_ms: int) -> bool:
        if process.returncode is not None:
            return True
        try:
            await asyncio.wait_for(asyncio.shield(process.wait()), budget_ms / 1000)
        except asyncio.TimeoutError:
            return False
        return True
