# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Pydantic models shared by the chat proxy and the chat client."""

from __future__ import annotations

import datetime
import uuid
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["user", "assistant", "system"]

# Response header naming the ErrorKind of a failed chat request.
ERROR_KIND_HEADER = "X-Error-Kind"


class ErrorKind(str, Enum):
    BAD_REQUEST = "BadRequest"
    UNAUTHORIZED = "Unauthorized"
    RATE_LIMITED = "RateLimited"
    SERVER_MISCONFIGURED = "ServerMisconfigured"
    UPSTREAM = "Upstream"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: str | None) -> "ErrorKind":
        """Return the kind named by ``value``, falling back to ``UNKNOWN``."""
        for kind in cls:
            if kind.value == value:
                return kind
        return cls.UNKNOWN


class Message(BaseModel):
    """One entry of a conversation transcript."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    role: Role
    content: str
    created_at: datetime.datetime = Field(default_factory=datetime.datetime.now)

    def to_wire(self) -> dict:
        return {"role": self.role, "content": self.content}


class WireMessage(BaseModel):
    """A message as accepted by ``POST /chat``.

    Clients may send extra fields (ids, timestamps); only role and content
    are forwarded upstream.
    """

    model_config = ConfigDict(extra="ignore")

    role: Role
    content: str


class ProxyRequest(BaseModel):
    messages: list[WireMessage] = Field(min_length=1)

    def upstream_messages(self) -> list[dict]:
        return [m.model_dump() for m in self.messages]


class ProxyError(BaseModel):
    """Structured error surfaced to the chat client."""

    http_status: int
    kind: ErrorKind
    message: str
