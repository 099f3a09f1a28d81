# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Conversation state for one chat, driven by discrete events. No I/O happens
here; the controller feeds events in and sends the payloads handed back.

    IDLE --submit--> SENDING --chunk--> STREAMING --end--> IDLE
                        |                   |
                        +------fail---------+--> ERROR --retry--> SENDING
                        +------cancel-------+--> IDLE
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from routerchat.models.chat import Message, ProxyError


class ChatState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    ERROR = "error"


class ChatSession:
    def __init__(self) -> None:
        self.messages: list[Message] = []
        self.input = ""
        self.state = ChatState.IDLE
        self.typing = False
        self.error: Optional[ProxyError] = None
        self.last_request: Optional[dict] = None
        # Assistant message created by the in-flight (or last failed) attempt.
        self._reply_id: Optional[str] = None

    # ------------------------------------------------------------------
    # derived flags
    # ------------------------------------------------------------------

    @property
    def in_flight(self) -> bool:
        return self.state in (ChatState.SENDING, ChatState.STREAMING)

    @property
    def input_enabled(self) -> bool:
        return not self.in_flight

    @property
    def can_submit(self) -> bool:
        return not self.in_flight and bool(self.input.strip())

    @property
    def can_cancel(self) -> bool:
        return self.in_flight

    @property
    def can_retry(self) -> bool:
        return self.state is ChatState.ERROR and self.last_request is not None

    # ------------------------------------------------------------------
    # events
    # ------------------------------------------------------------------

    def set_input(self, text: str) -> bool:
        if not self.input_enabled:
            return False
        self.input = text
        return True

    def submit(self, text: str | None = None) -> Optional[dict]:
        """Append the user message and return the request payload to send.

        Returns ``None`` without touching any state when the trimmed input is
        blank or a request is already in flight.
        """
        if self.in_flight:
            return None
        content = (self.input if text is None else text).strip()
        if not content:
            return None

        self.messages.append(Message(role="user", content=content))
        self.input = ""
        self.error = None
        self._reply_id = None
        self.last_request = self._payload()
        self._enter_sending()
        return self.last_request

    def chunk_received(self, text: str) -> bool:
        if not self.in_flight or not text:
            return False
        if self.state is ChatState.SENDING:
            reply = Message(role="assistant", content=text)
            self.messages.append(reply)
            self._reply_id = reply.id
            self.state = ChatState.STREAMING
            return True
        reply = self.messages[-1]
        reply.content += text
        return True

    def stream_ended(self) -> bool:
        if not self.in_flight:
            return False
        self.state = ChatState.IDLE
        self.typing = False
        self._reply_id = None
        return True

    def stream_failed(self, error: ProxyError) -> bool:
        """Keep any partial reply and surface ``error`` until retried or dismissed."""
        if not self.in_flight:
            return False
        self.state = ChatState.ERROR
        self.typing = False
        self.error = error
        return True

    def cancelled(self) -> bool:
        if not self.in_flight:
            return False
        self.state = ChatState.IDLE
        self.typing = False
        self._reply_id = None
        return True

    def retry_requested(self) -> Optional[dict]:
        """Replay the last request unchanged.

        The partial reply of the failed attempt is dropped first so the
        transcript matches what is being re-sent.
        """
        if not self.can_retry:
            return None
        if self._reply_id is not None:
            self.messages = [m for m in self.messages if m.id != self._reply_id]
            self._reply_id = None
        self.error = None
        self._enter_sending()
        return self.last_request

    def dismiss_error(self) -> bool:
        if self.state is not ChatState.ERROR:
            return False
        self.state = ChatState.IDLE
        self.error = None
        self._reply_id = None
        return True

    def _enter_sending(self) -> None:
        self.state = ChatState.SENDING
        self.typing = True

    def _payload(self) -> dict:
        return {"messages": [m.to_wire() for m in self.messages]}
