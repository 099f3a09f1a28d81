# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Configuration loading utilities for RouterChat.

Conventions:
- Proxy config: resources/config/proxy.json (optional)
- Environment variables override JSON values.
- JSON values can reference environment variables using ${VAR_NAME} placeholders.

The merged dict is validated into a ``ProxyConfig`` which is handed to the app
factory explicitly; nothing reads the environment at request time.
"""

from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel

BASE_DIR = Path(__file__).resolve().parent.parent.parent.parent
CONFIG_DIR = BASE_DIR / "resources" / "config"
LOGS_DIR = BASE_DIR / "data" / "logs"

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_MODEL = "openai/gpt-3.5-turbo"
DEFAULT_REFERER_URL = "http://localhost:3000"
DEFAULT_APP_TITLE = "My-Chatbot"


class ProxyConfig(BaseModel):
    """Settings for the chat proxy.

    ``api_key`` may be missing at startup; requests then fail with a
    configuration error instead of the server refusing to boot.
    """

    api_key: Optional[str] = None
    referer_url: str = DEFAULT_REFERER_URL
    app_title: str = DEFAULT_APP_TITLE
    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL
    temperature: float = 0.7
    max_tokens: int = 1000
    timeout_s: float = 60
    chat_path: str = "/chat"

    @property
    def credential_name(self) -> str:
        return "OPENROUTER_API_KEY"


_ENV_PATTERN = re.compile(r"\$\{([A-Z0-9_]+)\}")


def _interpolate_env(value: Any) -> Any:
    """Interpolate ${VAR} placeholders within strings using environment variables.

    Non-string types are returned unchanged.
    """
    if isinstance(value, str):

        def replace(match: re.Match[str]) -> str:
            var = match.group(1)
            return os.getenv(var, match.group(0))  # leave placeholder if unset

        return _ENV_PATTERN.sub(replace, value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(v) for v in value]
    return value


def _deep_merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Deeply merge mapping 'override' into dict 'base'. Returns new dict.

    - For dict values, merges recursively.
    - For lists and scalars, override replaces base.
    """
    result: Dict[str, Any] = dict(base)
    for k, v in override.items():
        if isinstance(v, Mapping) and isinstance(result.get(k), Mapping):
            result[k] = _deep_merge(dict(result[k]), v)  # type: ignore[index]
        else:
            result[k] = v
    return result


def load_json_file(path: os.PathLike[str] | str | None) -> Dict[str, Any]:
    """Load JSON from path if it exists; return empty dict if missing.

    Raises ValueError for malformed JSON.
    """
    if path is None:
        return {}
    p = Path(path)
    if not p.exists():
        return {}
    try:
        with p.open("r", encoding="utf-8") as f:
            data = json.load(f)
        return data if isinstance(data, dict) else {}
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON at {p}: {e}") from e


def _env_overrides_for_openrouter() -> Dict[str, Any]:
    """Collect environment variables into config keys.

    Supported variables:
    - OPENROUTER_API_KEY -> api_key
    - SITE_URL -> referer_url
    - ROUTERCHAT_APP_TITLE -> app_title
    - OPENROUTER_BASE_URL -> base_url
    - OPENROUTER_MODEL -> model
    - OPENROUTER_TIMEOUT_S -> timeout_s (float if parseable)
    """
    mapping = {
        "OPENROUTER_API_KEY": "api_key",
        "SITE_URL": "referer_url",
        "ROUTERCHAT_APP_TITLE": "app_title",
        "OPENROUTER_BASE_URL": "base_url",
        "OPENROUTER_MODEL": "model",
    }
    result: Dict[str, Any] = {}
    for env_name, key in mapping.items():
        value = os.getenv(env_name)
        if value:
            result[key] = value

    timeout_s = os.getenv("OPENROUTER_TIMEOUT_S")
    if timeout_s:
        try:
            result["timeout_s"] = float(timeout_s)
        except ValueError:
            raise ValueError(f"Invalid OPENROUTER_TIMEOUT_S: {timeout_s!r}") from None
    return result


def load_proxy_settings(
    path: os.PathLike[str] | str | None = CONFIG_DIR / "proxy.json",
    defaults: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Load proxy configuration applying precedence and interpolation.

    Precedence: env overrides > JSON file > defaults
    """
    defaults = dict(defaults or {})
    json_config = load_json_file(path)
    json_config = _interpolate_env(json_config)
    merged = _deep_merge(defaults, json_config)
    merged = _deep_merge(merged, _env_overrides_for_openrouter())
    # An unresolved ${OPENROUTER_API_KEY} placeholder means no credential.
    api_key = merged.get("api_key")
    if isinstance(api_key, str) and (not api_key or _ENV_PATTERN.fullmatch(api_key)):
        merged["api_key"] = None
    return merged


def load_proxy_config(
    path: os.PathLike[str] | str | None = CONFIG_DIR / "proxy.json",
    defaults: Optional[Mapping[str, Any]] = None,
) -> ProxyConfig:
    return ProxyConfig.model_validate(load_proxy_settings(path, defaults))
