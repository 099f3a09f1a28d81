# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

import asyncio
import json
from unittest import TestCase

import httpx

from routerchat.client.transport import ChatClientError, ChatTransport
from routerchat.models.chat import ErrorKind


def _transport(handler):
    return ChatTransport(
        "http://proxy.test", "/api/chat", http_transport=httpx.MockTransport(handler)
    )


def _sse(*frames):
    return "".join(f"data: {f if isinstance(f, str) else json.dumps(f)}\n\n" for f in frames)


async def _collect(transport, payload):
    return [c async for c in transport.stream(payload)]


class ChatTransportTest(TestCase):
    payload = {"messages": [{"role": "user", "content": "Hello"}]}

    def test_yields_content_until_done(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                text=_sse({"content": "Hi"}, {"content": " there"}, "[DONE]"),
                headers={"content-type": "text/event-stream"},
            )

        chunks = asyncio.run(_collect(_transport(handler), self.payload))

        self.assertEqual(chunks, ["Hi", " there"])
        self.assertEqual(seen["url"], "http://proxy.test/api/chat")
        self.assertEqual(seen["body"], self.payload)

    def test_error_status_uses_body_and_kind_header(self):
        def handler(request):
            return httpx.Response(
                429, text="Rate limit exceeded", headers={"X-Error-Kind": "RateLimited"}
            )

        with self.assertRaises(ChatClientError) as ctx:
            asyncio.run(_collect(_transport(handler), self.payload))

        self.assertEqual(ctx.exception.status, 429)
        self.assertEqual(ctx.exception.kind, ErrorKind.RATE_LIMITED)
        self.assertEqual(ctx.exception.message, "Rate limit exceeded")

    def test_error_status_without_kind_header(self):
        def handler(request):
            return httpx.Response(502, text="")

        with self.assertRaises(ChatClientError) as ctx:
            asyncio.run(_collect(_transport(handler), self.payload))

        self.assertEqual(ctx.exception.kind, ErrorKind.UNKNOWN)
        self.assertEqual(ctx.exception.message, "Bad Gateway")

    def test_in_band_error_frame(self):
        def handler(request):
            return httpx.Response(
                200,
                text=_sse({"content": "Part"}, {"error": {"kind": "Upstream", "message": "Error: boom"}}),
            )

        received = []

        async def consume():
            async for chunk in _transport(handler).stream(self.payload):
                received.append(chunk)

        with self.assertRaises(ChatClientError) as ctx:
            asyncio.run(consume())

        self.assertEqual(received, ["Part"])
        self.assertEqual(ctx.exception.kind, ErrorKind.UPSTREAM)
        self.assertEqual(ctx.exception.message, "Error: boom")

    def test_stream_cut_without_done(self):
        def handler(request):
            return httpx.Response(200, text=_sse({"content": "Part"}))

        with self.assertRaises(ChatClientError) as ctx:
            asyncio.run(_collect(_transport(handler), self.payload))

        self.assertEqual(ctx.exception.kind, ErrorKind.UPSTREAM)
        self.assertEqual(ctx.exception.message, "Stream ended unexpectedly")

    def test_connection_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with self.assertRaises(ChatClientError) as ctx:
            asyncio.run(_collect(_transport(handler), self.payload))

        self.assertEqual(ctx.exception.status, 0)
        self.assertEqual(ctx.exception.kind, ErrorKind.UNKNOWN)
        self.assertEqual(ctx.exception.message, "connection refused")
