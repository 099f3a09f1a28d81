# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Terminal chat front end. Streams replies as they arrive; Ctrl+C stops the
current answer, a failed answer offers retry or dismiss.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import signal
import sys
from typing import Callable, Optional, TextIO

from routerchat.client.controller import ChatController
from routerchat.client.session import ChatSession, ChatState
from routerchat.client.transport import ChatTransport

TYPING_TEXT = "AI is typing..."


class TerminalView:
    """Print the parts of the transcript that have not been shown yet."""

    def __init__(self, out: TextIO = sys.stdout):
        self.out = out
        self._shown: dict[str, int] = {}
        self._typing_shown = False

    def render(self, session: ChatSession) -> None:
        for message in session.messages:
            if message.role == "user":
                # Typed by the user at the prompt already.
                self._shown[message.id] = len(message.content)
                continue
            shown = self._shown.get(message.id)
            if shown is None:
                if self._typing_shown:
                    self.out.write("\r" + " " * len(TYPING_TEXT) + "\r")
                self.out.write("AI: ")
                shown = 0
            self.out.write(message.content[shown:])
            self._shown[message.id] = len(message.content)

        if session.state is ChatState.SENDING and not self._typing_shown:
            self.out.write(TYPING_TEXT)
            self._typing_shown = True
        elif not session.in_flight:
            if self._typing_shown or session.messages:
                self.out.write("\n")
            self._typing_shown = False
        else:
            self._typing_shown = session.state is ChatState.SENDING
        self.out.flush()

    def banner(self, session: ChatSession) -> None:
        if session.error is not None:
            self.out.write(f"Error: {session.error.message}  [r]etry / [d]ismiss\n")
            self.out.flush()


@contextlib.contextmanager
def _interrupt_stops(controller: ChatController):
    """Route Ctrl+C to ``controller.stop`` while an answer streams."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(
            signal.SIGINT, lambda: asyncio.ensure_future(controller.stop())
        )
    except (NotImplementedError, RuntimeError):
        # Platforms without loop signal handlers keep the default Ctrl+C.
        yield
        return
    try:
        yield
    finally:
        loop.remove_signal_handler(signal.SIGINT)


async def run_chat(
    transport: ChatTransport,
    read_line: Callable[[str], str] = input,
    out: TextIO = sys.stdout,
) -> ChatSession:
    view = TerminalView(out)
    controller = ChatController(transport, on_update=view.render)

    async def prompt(text: str) -> Optional[str]:
        try:
            return await asyncio.to_thread(read_line, text)
        except EOFError:
            return None

    while True:
        session = controller.session
        if session.state is ChatState.ERROR:
            view.banner(session)
            choice = await prompt("[r/d] ")
            if choice is None:
                break
            if choice.strip().lower().startswith("r"):
                await controller.reload()
                with _interrupt_stops(controller):
                    await controller.wait()
            else:
                session.dismiss_error()
            continue

        line = await prompt("> ")
        if line is None or line.strip() in ("/quit", "/exit"):
            break
        if not await controller.send(line):
            continue
        with _interrupt_stops(controller):
            await controller.wait()

    return controller.session


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="routerchat-cli",
        description="Chat with a running RouterChat proxy from the terminal",
    )
    parser.add_argument(
        "--url",
        default="http://127.0.0.1:8000",
        help="Base URL of the proxy (default: http://127.0.0.1:8000)",
    )
    parser.add_argument(
        "--path", default="/api/chat", help="Chat endpoint path (default: /api/chat)"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Request timeout in seconds (default: none)",
    )
    return parser


def main(argv: Optional[list[str]] = None) -> None:
    args = build_arg_parser().parse_args(argv)
    transport = ChatTransport(args.url, args.path, timeout_s=args.timeout)
    print("Start a conversation by typing a message below. /quit to leave.")
    asyncio.run(run_chat(transport))


if __name__ == "__main__":
    main()
