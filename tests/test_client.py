from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from typing import Any

import pytest

from cxslack import CodexClient, TurnOptions
from cxslack.client import resolve_turn_index
from cxslack.config import ClientSettings
from cxslack.errors import CodexProtocolError, CodexValidationError
from cxslack.supervisor import AppServerSupervisor
from cxslack.transport import AppServerProcess


class ScriptedAppServer(AppServerProcess):
    """Answers every request from a method -> result table."""

    def __init__(self, results: dict[str, Any] | None = None) -> None:
        self.results: dict[str, Any] = {"initialize": {}, **(results or {})}
        self.errors: dict[str, dict[str, Any]] = {}
        self.written: list[dict[str, Any]] = []
        self._stdout: asyncio.Queue[bytes] = asyncio.Queue()
        self._exited = asyncio.Event()
        self._returncode: int | None = None

    async def start(self) -> None:
        return None

    async def write(self, data: bytes) -> None:
        message = json.loads(data)
        self.written.append(message)
        method = message.get("method")
        if method is None:
            return
        if method == "shutdown":
            self._exit(0)
            return
        if method in self.errors:
            reply: dict[str, Any] = {"error": self.errors[method]}
        elif method in self.results:
            result = self.results[method]
            if callable(result):
                result = result(message.get("params") or {})
            reply = {"result": result}
        else:
            reply = {"error": {"code": -32601, "message": f"unknown method {method}"}}
        reply.update({"jsonrpc": "2.0", "id": message["id"]})
        self._stdout.put_nowait(json.dumps(reply).encode("utf-8") + b"\n")

    def _exit(self, code: int) -> None:
        self._returncode = code
        self._exited.set()
        self._stdout.put_nowait(b"")

    async def read(self) -> bytes:
        return await self._stdout.get()

    async def wait(self) -> int | None:
        await self._exited.wait()
        return self._returncode

    def terminate(self) -> None:
        self._exit(-15)

    def kill(self) -> None:
        self._exit(-9)

    @property
    def returncode(self) -> int | None:
        return self._returncode

    @property
    def pid(self) -> int | None:
        return 1

    def calls(self, method: str) -> list[dict[str, Any]]:
        return [m.get("params") for m in self.written if m.get("method") == method]


def _client(server: ScriptedAppServer) -> CodexClient:
    supervisor = AppServerSupervisor(ClientSettings(), process_factory=lambda _: server)
    return CodexClient(supervisor=supervisor)


def _turns(count: int) -> dict[str, Any]:
    return {
        "thread": {
            "id": "thread-src",
            "workingDirectory": "/repo",
            "turns": [{"id": f"turn-{n}", "status": "completed"} for n in range(1, count + 1)],
        }
    }


def _run_with(server: ScriptedAppServer, body: Callable[[CodexClient], Any]) -> None:
    async def _run() -> None:
        async with _client(server) as client:
            await body(client)

    asyncio.run(_run())


@pytest.mark.parametrize(
    ("turn_id", "expected"),
    [
        ("turn-2", 1),
        ("0", 0),
        ("2", 2),
        ("turn-3", 2),
        ("turn-9", -1),
        ("7", -1),
        ("abc", -1),
    ],
)
def test_resolve_turn_index(turn_id: str, expected: int) -> None:
    assert resolve_turn_index(["turn-1", "turn-2", "turn-3"], turn_id) == expected


def test_resolve_turn_index_prefers_exact_match() -> None:
    assert resolve_turn_index(["turn-1", "0", "turn-3"], "0") == 1


def test_thread_lifecycle_requests() -> None:
    server = ScriptedAppServer(
        {
            "thread/start": {"thread": {"id": "t-1", "workingDirectory": "/repo", "createdAt": "x"}},
            "thread/resume": {"thread": {"id": "t-1"}},
            "thread/fork": {"thread": {"id": "t-2"}},
            "thread/rollback": {"thread": {"id": "t-2"}},
        }
    )

    async def body(client: CodexClient) -> None:
        thread = await client.start_thread("/repo")
        assert thread.id == "t-1"
        assert thread.working_directory == "/repo"
        assert (await client.resume_thread("t-1")).id == "t-1"
        assert (await client.fork_thread("t-1")).id == "t-2"
        await client.rollback_thread("t-2", 2)

    _run_with(server, body)
    assert server.calls("thread/start") == [{"workingDirectory": "/repo"}]
    assert server.calls("thread/rollback") == [{"threadId": "t-2", "numTurns": 2}]


def test_rollback_validates_before_sending() -> None:
    server = ScriptedAppServer()

    async def body(client: CodexClient) -> None:
        for bad in (0, -1):
            with pytest.raises(CodexValidationError, match="num_turns must be >= 1"):
                await client.rollback_thread("t", bad)

    _run_with(server, body)
    assert server.calls("thread/rollback") == []


def test_read_thread_accepts_top_level_turns() -> None:
    server = ScriptedAppServer(
        {"thread/read": {"thread": {"id": "t"}, "turns": [{"id": "turn-1"}, {"id": "turn-2"}]}}
    )

    async def body(client: CodexClient) -> None:
        assert await client.get_thread_turn_count("t") == 2

    _run_with(server, body)
    assert server.calls("thread/read") == [{"threadId": "t", "includeTurns": True}]


def test_find_turn_index_converts_numeric_turn_ids() -> None:
    server = ScriptedAppServer({"thread/read": _turns(3)})

    async def body(client: CodexClient) -> None:
        assert await client.find_turn_index("thread-src", "1") == 1
        assert await client.find_turn_index("thread-src", "missing") == -1

    _run_with(server, body)


@pytest.mark.parametrize(
    ("total", "turn_index", "expected_rollback"),
    [(3, 0, 2), (3, 1, 1), (3, 2, None), (1, 0, None), (20, 5, 14)],
)
def test_fork_thread_at_turn_rolls_back_the_tail(
    total: int, turn_index: int, expected_rollback: int | None
) -> None:
    server = ScriptedAppServer(
        {
            "thread/read": _turns(total),
            "thread/fork": {"thread": {"id": "forked"}},
            "thread/rollback": {},
        }
    )

    async def body(client: CodexClient) -> None:
        forked = await client.fork_thread_at_turn("thread-src", turn_index)
        assert forked.id == "forked"

    _run_with(server, body)
    assert server.calls("thread/fork") == [{"threadId": "thread-src"}]
    expected = [] if expected_rollback is None else [{"threadId": "forked", "numTurns": expected_rollback}]
    assert server.calls("thread/rollback") == expected


def test_fork_at_turn_uses_fresh_count_when_a_turn_finished_meanwhile() -> None:
    # The caller saw 3 turns, but a fourth completed before the fork.
    server = ScriptedAppServer(
        {
            "thread/read": _turns(4),
            "thread/fork": {"thread": {"id": "forked"}},
            "thread/rollback": {},
        }
    )

    async def body(client: CodexClient) -> None:
        await client.fork_thread_at_turn("thread-src", 2)

    _run_with(server, body)
    assert server.calls("thread/rollback") == [{"threadId": "forked", "numTurns": 1}]


def test_fork_at_turn_rejects_out_of_range_index() -> None:
    server = ScriptedAppServer({"thread/read": _turns(3)})

    async def body(client: CodexClient) -> None:
        with pytest.raises(CodexValidationError, match=r"thread has 3 turns \(0-2\)"):
            await client.fork_thread_at_turn("thread-src", 3)
        with pytest.raises(CodexValidationError):
            await client.fork_thread_at_turn("thread-src", -1)

    _run_with(server, body)
    assert server.calls("thread/fork") == []
    assert len(server.calls("thread/read")) == 1


def test_start_turn_sends_input_and_options() -> None:
    server = ScriptedAppServer(
        {
            "turn/start": {"turn": {"id": "0", "status": "inProgress"}},
            "turn/interrupt": {},
        }
    )

    async def body(client: CodexClient) -> None:
        turn_id = await client.start_turn(
            "t", "hello", TurnOptions(approval_policy="never", reasoning_effort="high")
        )
        assert turn_id == "0"
        await client.interrupt_turn("t", turn_id)

    _run_with(server, body)
    assert server.calls("turn/start") == [
        {
            "threadId": "t",
            "input": [{"type": "text", "text": "hello"}],
            "approvalPolicy": "never",
            "reasoningEffort": "high",
        }
    ]
    assert server.calls("turn/interrupt") == [{"threadId": "t", "turnId": "0"}]


def test_start_turn_without_turn_id_is_protocol_error() -> None:
    server = ScriptedAppServer({"turn/start": {}})

    async def body(client: CodexClient) -> None:
        with pytest.raises(CodexProtocolError):
            await client.start_turn("t", [{"type": "text", "text": "x"}])

    _run_with(server, body)


def test_probes_degrade_when_unsupported_or_failing() -> None:
    server = ScriptedAppServer()
    server.errors["account/rateLimits/read"] = {"code": -32000, "message": "upstream"}

    async def body(client: CodexClient) -> None:
        assert await client.list_models() == []
        assert await client.get_rate_limits() is None

    _run_with(server, body)


def test_probes_parse_results() -> None:
    server = ScriptedAppServer(
        {
            "model/list": {"data": [{"id": "gpt-5-codex"}, {"id": "gpt-5"}]},
            "account/rateLimits/read": {
                "rateLimits": {"primary": {"usedPercent": 42.5, "windowDurationMins": 300}}
            },
            "account/read": {"account": {"type": "chatgpt", "email": "dev@example.com"}},
        }
    )

    async def body(client: CodexClient) -> None:
        assert await client.list_models() == ["gpt-5-codex", "gpt-5"]
        limits = await client.get_rate_limits()
        assert limits is not None and limits.primary is not None
        assert limits.primary.used_percent == 42.5
        account = await client.get_account()
        assert account is not None and account.email == "dev@example.com"

    _run_with(server, body)
    assert server.calls("account/read") == [{"refreshToken": False}]


def test_get_account_returns_none_when_logged_out() -> None:
    server = ScriptedAppServer({"account/read": {"account": None}})

    async def body(client: CodexClient) -> None:
        assert await client.get_account(refresh_token=True) is None

    _run_with(server, body)


def test_respond_to_approval_writes_decision() -> None:
    server = ScriptedAppServer()

    async def body(client: CodexClient) -> None:
        await client.respond_to_approval(12, "decline")
        with pytest.raises(CodexValidationError):
            await client.respond_to_approval(12, "maybe")  # type: ignore[arg-type]

    _run_with(server, body)
    assert {"jsonrpc": "2.0", "id": 12, "result": {"decision": "decline"}} in server.written
