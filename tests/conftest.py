# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Shared pytest fixtures."""

import os
import pytest

from routerchat.services.llm.llm_logging import llm_logs

# Variables that would leak a developer's real gateway setup into the tests.
_ISOLATED_ENV = (
    "OPENROUTER_API_KEY",
    "OPENROUTER_BASE_URL",
    "OPENROUTER_MODEL",
    "OPENROUTER_TIMEOUT_S",
    "SITE_URL",
    "ROUTERCHAT_APP_TITLE",
    "ROUTERCHAT_CONFIG",
    "ROUTERCHAT_LLM_DUMP",
    "ROUTERCHAT_LLM_DUMP_PATH",
)


@pytest.fixture(scope="session", autouse=True)
def session_clean_env():
    originals = {name: os.environ.pop(name, None) for name in _ISOLATED_ENV}

    yield

    for name, value in originals.items():
        if value is not None:
            os.environ[name] = value
        else:
            os.environ.pop(name, None)


@pytest.fixture(autouse=True)
def clear_llm_logs():
    llm_logs.clear()
    yield
    llm_logs.clear()
