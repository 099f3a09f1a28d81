# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""HTTP side of the chat client: posts a payload to the proxy and yields the
assistant text as it streams back.
"""

from __future__ import annotations

import json as _json
from typing import AsyncIterator

import httpx

from routerchat.models.chat import ERROR_KIND_HEADER, ErrorKind, ProxyError


class ChatClientError(Exception):
    """A failed exchange as seen by the client.

    ``status`` is 0 when no HTTP response was received at all.
    """

    def __init__(
        self, message: str, kind: ErrorKind = ErrorKind.UNKNOWN, status: int = 0
    ):
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.status = status

    def to_proxy_error(self) -> ProxyError:
        return ProxyError(http_status=self.status, kind=self.kind, message=self.message)


class ChatTransport:
    def __init__(
        self,
        base_url: str = "http://127.0.0.1:8000",
        chat_path: str = "/api/chat",
        timeout_s: float | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.chat_path = chat_path
        self.timeout_s = timeout_s
        self.http_transport = http_transport

    @property
    def url(self) -> str:
        return self.base_url + self.chat_path

    async def stream(self, payload: dict) -> AsyncIterator[str]:
        """Yield content chunks; raise ``ChatClientError`` on any failure."""
        timeout = httpx.Timeout(self.timeout_s) if self.timeout_s else httpx.Timeout(None)
        try:
            async with httpx.AsyncClient(
                timeout=timeout, transport=self.http_transport
            ) as client:
                async with client.stream("POST", self.url, json=payload) as resp:
                    if resp.status_code >= 400:
                        body = (await resp.aread()).decode("utf-8", errors="ignore")
                        raise ChatClientError(
                            body.strip() or resp.reason_phrase,
                            kind=ErrorKind.parse(resp.headers.get(ERROR_KIND_HEADER)),
                            status=resp.status_code,
                        )
                    async for chunk in self._read_frames(resp):
                        yield chunk
        except httpx.HTTPError as exc:
            raise ChatClientError(str(exc) or type(exc).__name__) from exc

    async def _read_frames(self, resp: httpx.Response) -> AsyncIterator[str]:
        async for line in resp.aiter_lines():
            if not line.startswith("data:"):
                continue
            data_str = line[5:].strip()
            if data_str == "[DONE]":
                return
            try:
                frame = _json.loads(data_str)
            except ValueError:
                continue
            if not isinstance(frame, dict):
                continue
            if "error" in frame:
                err = frame["error"] if isinstance(frame["error"], dict) else {}
                raise ChatClientError(
                    err.get("message") or "Unknown error",
                    kind=ErrorKind.parse(err.get("kind") or ErrorKind.UPSTREAM.value),
                    status=resp.status_code,
                )
            content = frame.get("content")
            if isinstance(content, str) and content:
                yield content

        raise ChatClientError(
            "Stream ended unexpectedly", kind=ErrorKind.UPSTREAM, status=resp.status_code
        )
