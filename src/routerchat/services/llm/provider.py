# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""A ``CompletionProvider`` turns a message list into an async sequence of text
chunks and reports failures as ``UpstreamProviderError``. ``OpenRouterProvider``
is the concrete adapter speaking the OpenAI-compatible streaming protocol.
"""

from __future__ import annotations

import asyncio
import json as _json
from typing import Any, AsyncIterator, Dict, Protocol

import httpx

from routerchat.core.config import ProxyConfig
from routerchat.services.exceptions import UpstreamProviderError
from routerchat.services.llm.llm_logging import record_log_response


class CompletionProvider(Protocol):
    def stream(
        self, messages: list[dict], log_entry: dict | None = None
    ) -> AsyncIterator[str]: ...


def extract_error_message(payload: Any) -> str | None:
    """Pull a human-readable message out of an upstream error payload.

    Handles ``{"error": {"message": ...}}``, ``{"error": "..."}`` and
    ``{"message": ...}`` shapes.
    """
    if not isinstance(payload, dict):
        return None
    err = payload.get("error")
    if isinstance(err, dict):
        msg = err.get("message")
        if isinstance(msg, str) and msg:
            return msg
    if isinstance(err, str) and err:
        return err
    msg = payload.get("message")
    if isinstance(msg, str) and msg:
        return msg
    return None


def _error_status(payload: dict, default: int | None) -> int | None:
    err = payload.get("error")
    code = err.get("code") if isinstance(err, dict) else None
    return code if isinstance(code, int) else default


def build_completion_request(
    config: ProxyConfig, messages: list[dict]
) -> tuple[str, Dict[str, str], dict]:
    """Return url, headers and JSON body of a streaming completion request."""
    url = str(config.base_url).rstrip("/") + "/chat/completions"
    headers: Dict[str, str] = {
        "Content-Type": "application/json",
        "HTTP-Referer": config.referer_url,
        "X-Title": config.app_title,
    }
    if config.api_key:
        headers["Authorization"] = f"Bearer {config.api_key}"

    body: Dict[str, Any] = {
        "model": config.model,
        "messages": messages,
        "temperature": config.temperature,
        "max_tokens": config.max_tokens,
        "stream": True,
    }
    return url, headers, body


class OpenRouterProvider:
    """Stream chat completions from an OpenAI-compatible gateway."""

    def __init__(self, config: ProxyConfig):
        self.config = config

    def build_request(self, messages: list[dict]) -> tuple[str, Dict[str, str], dict]:
        return build_completion_request(self.config, messages)

    async def stream(
        self, messages: list[dict], log_entry: dict | None = None
    ) -> AsyncIterator[str]:
        url, headers, body = self.build_request(messages)
        timeout = httpx.Timeout(float(self.config.timeout_s or 60))
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                async with client.stream(
                    "POST", url, headers=headers, json=body
                ) as resp:
                    if log_entry:
                        log_entry["response"]["status_code"] = resp.status_code

                    if resp.status_code >= 400:
                        raise await self._status_error(resp, log_entry)

                    content_type = resp.headers.get("content-type", "")
                    if "text/event-stream" not in content_type:
                        async for chunk in self._read_json_body(resp, log_entry):
                            yield chunk
                        return

                    async for chunk in self._read_event_stream(resp, log_entry):
                        yield chunk
        except (asyncio.CancelledError, GeneratorExit):
            if log_entry:
                record_log_response(log_entry, cancelled=True)
            raise
        except httpx.HTTPError as exc:
            message = str(exc) or type(exc).__name__
            if log_entry:
                record_log_response(
                    log_entry,
                    error=f"Connection error: {message}",
                    error_detail=repr(exc),
                )
            raise UpstreamProviderError(message) from exc

    async def _status_error(
        self, resp: httpx.Response, log_entry: dict | None
    ) -> UpstreamProviderError:
        error_content = await resp.aread()
        err_text = error_content.decode("utf-8", errors="ignore")
        try:
            error_data: Any = _json.loads(error_content)
        except ValueError:
            error_data = err_text
        if log_entry:
            record_log_response(log_entry, error=error_data, error_detail=err_text)
        message = extract_error_message(error_data) or err_text or resp.reason_phrase
        return UpstreamProviderError(message, status=resp.status_code)

    async def _read_json_body(
        self, resp: httpx.Response, log_entry: dict | None
    ) -> AsyncIterator[str]:
        raw = await resp.aread()
        try:
            response_data = _json.loads(raw)
        except ValueError as exc:
            if log_entry:
                record_log_response(
                    log_entry,
                    error="Failed to parse response",
                    error_detail=raw.decode("utf-8", errors="ignore"),
                )
            raise UpstreamProviderError(
                f"Failed to parse response: {exc}", status=resp.status_code
            ) from exc

        if log_entry:
            log_entry["response"]["body"] = response_data

        payload = response_data if isinstance(response_data, dict) else {}
        choices = payload.get("choices")
        if not choices:
            message = extract_error_message(payload) or "Empty response"
            if log_entry:
                record_log_response(log_entry, error=message)
            raise UpstreamProviderError(message, status=_error_status(payload, None))

        choice = choices[0] if isinstance(choices, list) else None
        reply = choice.get("message") if isinstance(choice, dict) else None
        content = reply.get("content") if isinstance(reply, dict) else None
        if not isinstance(content, str):
            content = ""
        if log_entry:
            log_entry["response"]["full_content"] = content
        if content:
            yield content

    async def _read_event_stream(
        self, resp: httpx.Response, log_entry: dict | None
    ) -> AsyncIterator[str]:
        async for line in resp.aiter_lines():
            # Blank separators and ": keep-alive" comments carry no data.
            if not line.strip() or line.startswith(":"):
                continue
            if not line.startswith("data:"):
                continue
            data_str = line[5:].strip()
            if data_str == "[DONE]":
                return

            try:
                chunk = _json.loads(data_str)
            except ValueError:
                continue
            if not isinstance(chunk, dict):
                continue
            if log_entry:
                log_entry["response"]["chunks"].append(chunk)

            if "error" in chunk:
                message = extract_error_message(chunk) or "Unknown error"
                if log_entry:
                    record_log_response(log_entry, error=chunk["error"], error_detail=data_str)
                raise UpstreamProviderError(
                    message, status=_error_status(chunk, None)
                )

            # Chunks without a usable delta (role-only, malformed) are skipped.
            choices = chunk.get("choices")
            choice = choices[0] if isinstance(choices, list) and choices else None
            delta = choice.get("delta") if isinstance(choice, dict) else None
            content = delta.get("content") if isinstance(delta, dict) else None
            if isinstance(content, str) and content:
                if log_entry:
                    log_entry["response"]["full_content"] += content
                yield content

        # Closed without [DONE]: what arrived is forwarded as the answer.
        if log_entry:
            record_log_response(log_entry, truncated=True)
