# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Validates an incoming conversation, forwards it to the completion provider and
turns the resulting chunks into server-sent event frames:

    data: {"content": "..."}      one per upstream delta
    data: {"error": {...}}        upstream failed after streaming began
    data: [DONE]                  normal end of stream
"""

from __future__ import annotations

import json as _json
import traceback
from typing import Any, AsyncIterator

from pydantic import ValidationError

from routerchat.core.config import ProxyConfig
from routerchat.models.chat import ErrorKind, ProxyRequest
from routerchat.services.exceptions import (
    BadRequestError,
    ConfigurationError,
    ServiceError,
    UpstreamError,
    UpstreamProviderError,
    map_upstream_error,
)
from routerchat.services.llm.llm_logging import (
    add_llm_log,
    create_log_entry,
    finish_log_entry,
)
from routerchat.services.llm.provider import (
    CompletionProvider,
    OpenRouterProvider,
    build_completion_request,
)

INVALID_MESSAGES = "Invalid messages format"
DONE_FRAME = "data: [DONE]\n\n"


def sse_frame(obj: dict) -> str:
    return f"data: {_json.dumps(obj)}\n\n"


def _error_frame(message: str) -> str:
    return sse_frame({"error": {"kind": ErrorKind.UPSTREAM.value, "message": message}})


def _record_upstream_failure(
    log_entry: dict, exc: UpstreamProviderError, **extra: Any
) -> None:
    # Providers that log their own failures already filled in "error".
    finish_log_entry(
        log_entry,
        error=log_entry["response"].get("error") or exc.message,
        upstream_status=exc.status,
        **extra,
    )


class ChatProxy:
    """Stateless forwarder of one conversation per request."""

    def __init__(
        self, config: ProxyConfig, provider: CompletionProvider | None = None
    ):
        self.config = config
        self.provider = provider or OpenRouterProvider(config)

    def validate(self, payload: Any) -> ProxyRequest:
        """Check the request shape, the credential, then each message.

        The credential check sits between the shape check and the per-message
        check so a misconfigured server answers 500 for any well-formed body.
        """
        if not isinstance(payload, dict) or not isinstance(
            payload.get("messages"), list
        ):
            raise self._rejected(BadRequestError(INVALID_MESSAGES), payload)

        if not self.config.api_key:
            raise self._rejected(
                ConfigurationError(
                    f"Missing {self.config.credential_name} configuration"
                ),
                payload,
            )

        try:
            return ProxyRequest.model_validate({"messages": payload["messages"]})
        except ValidationError as exc:
            raise self._rejected(
                BadRequestError(INVALID_MESSAGES), payload, detail=str(exc)
            ) from exc

    def _rejected(
        self, error: ServiceError, payload: Any, detail: str | None = None
    ) -> ServiceError:
        log_entry = create_log_entry(self.config.chat_path, "POST", {}, payload)
        add_llm_log(log_entry)
        log_entry["response"]["status_code"] = error.status_code
        finish_log_entry(log_entry, error=error.detail, error_detail=detail)
        return error

    async def open_stream(self, proxy_request: ProxyRequest) -> AsyncIterator[str]:
        """Contact the upstream and return the SSE frame iterator.

        The first chunk is awaited here so failures reported before any
        content map onto the HTTP status of the response.
        """
        messages = proxy_request.upstream_messages()
        url, headers, body = build_completion_request(self.config, messages)
        log_entry = create_log_entry(url, "POST", headers, body, streaming=True)
        add_llm_log(log_entry)

        chunks = self.provider.stream(messages, log_entry=log_entry)
        try:
            first: str | None = await chunks.__anext__()
        except StopAsyncIteration:
            first = None
        except UpstreamProviderError as exc:
            mapped = map_upstream_error(exc)
            _record_upstream_failure(log_entry, exc, mapped_status=mapped.status_code)
            raise mapped from exc
        except Exception as exc:
            finish_log_entry(
                log_entry,
                error=str(exc),
                error_detail=traceback.format_exc(),
                mapped_status=500,
            )
            raise UpstreamError(f"Error: {str(exc) or 'Unknown error'}") from exc

        return self._frames(first, chunks, log_entry)

    async def _frames(
        self, first: str | None, chunks: AsyncIterator[str], log_entry: dict
    ) -> AsyncIterator[str]:
        try:
            if first is not None:
                yield sse_frame({"content": first})
            async for chunk in chunks:
                yield sse_frame({"content": chunk})
            finish_log_entry(log_entry)
        except UpstreamProviderError as exc:
            mapped = map_upstream_error(exc)
            _record_upstream_failure(log_entry, exc, mid_stream=True)
            yield _error_frame(mapped.detail)
            return
        except Exception as exc:
            finish_log_entry(
                log_entry,
                error=str(exc) or type(exc).__name__,
                error_detail=traceback.format_exc(),
                mid_stream=True,
            )
            yield _error_frame(f"Error: {str(exc) or 'Unknown error'}")
            return
        finally:
            await chunks.aclose()
            # Still open here means the consumer went away mid-stream.
            if log_entry["timestamp_end"] is None:
                finish_log_entry(log_entry, cancelled=True)
        yield DONE_FRAME
