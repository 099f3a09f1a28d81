# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""API endpoint that proxies a conversation to the upstream gateway."""

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from routerchat.services.chat.chat_proxy_ops import ChatProxy


def build_router(chat_path: str = "/chat") -> APIRouter:
    router = APIRouter(tags=["Chat"])

    @router.post(chat_path)
    async def api_chat(request: Request) -> StreamingResponse:
        """Stream the assistant reply for a conversation.

        Body JSON:
          {"messages": [{"role": "system|user|assistant", "content": str}, ...]}

        Returns: ``text/event-stream`` with ``{"content": ...}`` frames and a
        final ``[DONE]``. Errors are plain text with an ``X-Error-Kind`` header.
        """
        try:
            payload = await request.json()
        except ValueError:
            payload = None

        proxy: ChatProxy = request.app.state.chat_proxy
        proxy_request = proxy.validate(payload)
        frames = await proxy.open_stream(proxy_request)
        return StreamingResponse(
            frames,
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    return router
