# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Runs chat exchanges as asyncio tasks and feeds their outcome to a ChatSession."""

from __future__ import annotations

import asyncio
import contextlib
from typing import AsyncIterator, Callable, Optional, Protocol

from routerchat.client.session import ChatSession
from routerchat.client.transport import ChatClientError


class StreamTransport(Protocol):
    def stream(self, payload: dict) -> AsyncIterator[str]: ...


class ChatController:
    """Run one exchange at a time and feed its outcome into the session."""

    def __init__(
        self,
        transport: StreamTransport,
        session: ChatSession | None = None,
        on_update: Optional[Callable[[ChatSession], None]] = None,
    ):
        self.transport = transport
        self.session = session or ChatSession()
        self.on_update = on_update
        self.active_stream: Optional[asyncio.Task] = None

    async def send(self, text: str | None = None) -> bool:
        payload = self.session.submit(text)
        if payload is None:
            return False
        self._start(payload)
        return True

    async def reload(self) -> bool:
        payload = self.session.retry_requested()
        if payload is None:
            return False
        self._start(payload)
        return True

    async def stop(self) -> None:
        task = self.active_stream
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        # A task cancelled before it ever ran never saw the CancelledError.
        if self.session.cancelled():
            self._notify()

    async def wait(self) -> None:
        task = self.active_stream
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def _start(self, payload: dict) -> None:
        self._notify()
        self.active_stream = asyncio.create_task(self._run(payload))

    async def _run(self, payload: dict) -> None:
        try:
            async for chunk in self.transport.stream(payload):
                if self.session.chunk_received(chunk):
                    self._notify()
        except asyncio.CancelledError:
            self.session.cancelled()
            self._notify()
            raise
        except ChatClientError as exc:
            self.session.stream_failed(exc.to_proxy_error())
            self._notify()
        else:
            self.session.stream_ended()
            self._notify()

    def _notify(self) -> None:
        if self.on_update is not None:
            self.on_update(self.session)
