from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence

from .errors import CodexTransportError

READ_CHUNK_SIZE = 65536


class AppServerProcess(ABC):
    """Handle on one running app-server subprocess.

    `read()` returns raw stdout chunks (b"" at EOF); framing is the caller's
    job so messages split across reads are handled in one place.
    """

    @abstractmethod
    async def start(self) -> None:
        """Spawn the process."""
        raise NotImplementedError

    @abstractmethod
    async def write(self, data: bytes) -> None:
        """Write bytes to stdin and wait until they are flushed."""
        raise NotImplementedError

    @abstractmethod
    async def read(self) -> bytes:
        """Read the next stdout chunk; b"" means the stream closed."""
        raise NotImplementedError

    @abstractmethod
    async def wait(self) -> int | None:
        """Wait for exit and return the exit code."""
        raise NotImplementedError

    @abstractmethod
    def terminate(self) -> None:
        """Send SIGTERM."""
        raise NotImplementedError

    @abstractmethod
    def kill(self) -> None:
        """Send SIGKILL."""
        raise NotImplementedError

    @property
    @abstractmethod
    def returncode(self) -> int | None:
        raise NotImplementedError

    @property
    @abstractmethod
    def pid(self) -> int | None:
        raise NotImplementedError


class StdioProcess(AppServerProcess):
    """App-server subprocess speaking newline-delimited JSON over stdin/stdout."""

    def __init__(
        self,
        command: Sequence[str],
        *,
        cwd: str | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        """Configure the subprocess.

        Args:
            command: Command argv used to start the app-server process.
            cwd: Optional subprocess working directory.
            env: Optional environment for the subprocess.
        """
        if not command:
            raise ValueError("stdio command must not be empty")
        self._command = list(command)
        self._cwd = cwd
        self._env = dict(env) if env is not None else None
        self._proc: asyncio.subprocess.Process | None = None

    @property
    def command(self) -> list[str]:
        return list(self._command)

    async def start(self) -> None:
        if self._proc is not None:
            return
        try:
            # stderr is inherited so agent diagnostics reach the operator.
            self._proc = await asyncio.create_subprocess_exec(
                *self._command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=None,
                cwd=self._cwd,
                env=self._env,
            )
        except OSError as exc:
            raise CodexTransportError(
                f"failed to start app-server command: {self._command!r}"
            ) from exc

    async def write(self, data: bytes) -> None:
        if self._proc is None or self._proc.stdin is None:
            raise CodexTransportError("app-server process is not running")
        try:
            self._proc.stdin.write(data)
            await self._proc.stdin.drain()
        except (OSError, RuntimeError) as exc:
            raise CodexTransportError("failed writing to app-server stdin") from exc

    async def read(self) -> bytes:
        if self._proc is None or self._proc.stdout is None:
            raise CodexTransportError("app-server process is not running")
        try:
            return await self._proc.stdout.read(READ_CHUNK_SIZE)
        except OSError as exc:
            raise CodexTransportError("failed reading from app-server stdout") from exc

    async def wait(self) -> int | None:
        if self._proc is None:
            return None
        return await self._proc.wait()

    def terminate(self) -> None:
        if self._proc is not None and self._proc.returncode is None:
            try:
                self._proc.terminate()
            except ProcessLookupError:
                pass

    def kill(self) -> None:
        if self._proc is not None and self._proc.returncode is None:
            try:
                self._proc.kill()
            except ProcessLookupError:
                pass

    @property
    def returncode(self) -> int | None:
        return None if self._proc is None else self._proc.returncode

    @property
    def pid(self) -> int | None:
        return None if self._proc is None else self._proc.pid
