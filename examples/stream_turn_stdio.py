#!/usr/bin/env python3
"""Run one streamed turn against a local Codex app-server.

This example demonstrates:
- settings from CODEX_APP_SERVER_CMD / CXSLACK_* environment variables
- subscribing to normalized events (deltas, commands, approvals, tokens)
- waiting for turn completion and answering approval requests
- optional point-in-time fork of the thread afterwards
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys

from cxslack import (
    ApprovalRequested,
    ClientSettings,
    CodexClient,
    CodexError,
    CodexProtocolError,
    CodexTimeoutError,
    CodexTransportError,
    CommandCompleted,
    CommandStarted,
    ItemDelta,
    ServerDied,
    ThinkingCompleted,
    TokensUpdated,
    TurnCompleted,
    TurnOptions,
)


def parse_args() -> argparse.Namespace:
    """Parse CLI options for the example."""
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("prompt", help="Prompt to send.")
    parser.add_argument("--cwd", default=os.getcwd(), help="Thread working directory.")
    parser.add_argument(
        "--approve",
        action="store_true",
        help="Accept approval requests instead of declining them.",
    )
    parser.add_argument(
        "--fork-at",
        type=int,
        default=None,
        help="After the turn, fork the thread keeping turns 0..N.",
    )
    return parser.parse_args()


async def run_turn(args: argparse.Namespace) -> int:
    """Start a thread, stream one turn, and print what happens."""
    settings = ClientSettings.from_env()
    done: asyncio.Future[TurnCompleted] = asyncio.get_running_loop().create_future()
    approvals: asyncio.Queue[ApprovalRequested] = asyncio.Queue()

    def on_turn_completed(event: TurnCompleted) -> None:
        if not done.done():
            done.set_result(event)

    try:
        async with CodexClient(settings) as client:
            client.subscribe(ItemDelta, lambda e: print(e.delta, end="", flush=True))
            client.subscribe(CommandStarted, lambda e: print(f"\n[exec] {e.command}"))
            client.subscribe(CommandCompleted, lambda e: print(f"[exec] exit={e.exit_code}"))
            client.subscribe(ThinkingCompleted, lambda e: print(f"\n[thinking] {e.duration_ms}ms"))
            client.subscribe(
                TokensUpdated,
                lambda e: print(f"\n[tokens] in={e.input_tokens} out={e.output_tokens}"),
            )
            client.subscribe(ServerDied, lambda e: print(f"\n[server] died code={e.exit_code}"))
            client.subscribe(ApprovalRequested, approvals.put_nowait)
            client.subscribe(TurnCompleted, on_turn_completed)

            thread = await client.start_thread(args.cwd)
            print(f"[thread] {thread.id}")
            turn_id = await client.start_turn(
                thread.id, args.prompt, TurnOptions(approval_policy="on-request")
            )
            print(f"[turn] {turn_id}")

            decision = "accept" if args.approve else "decline"
            while not done.done():
                approval_task = asyncio.ensure_future(approvals.get())
                finished, _ = await asyncio.wait(
                    {approval_task, done}, return_when=asyncio.FIRST_COMPLETED
                )
                if approval_task in finished:
                    request = approval_task.result()
                    print(f"\n[approval] {request.kind}: {request.command or request.file_path}")
                    if request.request_id is not None:
                        await client.respond_to_approval(request.request_id, decision)
                else:
                    approval_task.cancel()

            print(f"\n[done] status={done.result().status}")

            if args.fork_at is not None:
                forked = await client.fork_thread_at_turn(thread.id, args.fork_at)
                print(f"[fork] {forked.id}")
        return 0
    except CodexTimeoutError as exc:
        print(f"[error] timeout: {exc}", file=sys.stderr)
        return 2
    except CodexProtocolError as exc:
        details = f" code={exc.code}" if exc.code is not None else ""
        print(f"[error] protocol:{details} {exc}", file=sys.stderr)
        return 3
    except CodexTransportError as exc:
        print(f"[error] transport: {exc}", file=sys.stderr)
        return 4
    except CodexError as exc:
        print(f"[error] {exc}", file=sys.stderr)
        return 1


def main() -> None:
    """CLI entrypoint."""
    args = parse_args()
    raise SystemExit(asyncio.run(run_turn(args)))


if __name__ == "__main__":
    main()
