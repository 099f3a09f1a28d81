# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

import os
import tempfile
import json
from pathlib import Path
from unittest import TestCase

from routerchat.core.config import (
    BASE_DIR,
    CONFIG_DIR,
    LOGS_DIR,
    ProxyConfig,
    load_proxy_config,
    load_proxy_settings,
)


class ProxyConfigLoaderTest(TestCase):
    def test_defaults_without_file_or_env(self):
        cfg = load_proxy_config(path=None)

        self.assertIsNone(cfg.api_key)
        self.assertEqual(cfg.referer_url, "http://localhost:3000")
        self.assertEqual(cfg.app_title, "My-Chatbot")
        self.assertEqual(cfg.base_url, "https://openrouter.ai/api/v1")
        self.assertEqual(cfg.model, "openai/gpt-3.5-turbo")
        self.assertEqual(cfg.temperature, 0.7)
        self.assertEqual(cfg.max_tokens, 1000)

    def test_env_overrides_file_and_defaults(self):
        with tempfile.TemporaryDirectory() as td:
            cfg_path = Path(td) / "proxy.json"
            cfg_path.write_text(
                json.dumps(
                    {
                        "api_key": "file-key",
                        "referer_url": "https://file.example",
                        "model": "file/model",
                        "timeout_s": 10,
                    }
                ),
                encoding="utf-8",
            )

            os.environ["OPENROUTER_API_KEY"] = "KEY_FROM_ENV"
            os.environ["SITE_URL"] = "https://chat.example"
            os.environ["OPENROUTER_TIMEOUT_S"] = "20"
            try:
                cfg = load_proxy_config(cfg_path, {"app_title": "Default-Title"})
            finally:
                os.environ.pop("OPENROUTER_API_KEY")
                os.environ.pop("SITE_URL")
                os.environ.pop("OPENROUTER_TIMEOUT_S")

            self.assertEqual(cfg.api_key, "KEY_FROM_ENV")
            self.assertEqual(cfg.referer_url, "https://chat.example")
            self.assertEqual(cfg.model, "file/model")
            self.assertEqual(cfg.app_title, "Default-Title")
            self.assertEqual(cfg.timeout_s, 20.0)

    def test_placeholder_is_interpolated_from_env(self):
        with tempfile.TemporaryDirectory() as td:
            cfg_path = Path(td) / "proxy.json"
            cfg_path.write_text(
                json.dumps({"app_title": "${CHAT_TITLE}"}), encoding="utf-8"
            )
            os.environ["CHAT_TITLE"] = "Team Bot"
            try:
                settings = load_proxy_settings(cfg_path)
            finally:
                os.environ.pop("CHAT_TITLE")

            self.assertEqual(settings["app_title"], "Team Bot")

    def test_unresolved_key_placeholder_means_missing_credential(self):
        with tempfile.TemporaryDirectory() as td:
            cfg_path = Path(td) / "proxy.json"
            cfg_path.write_text(
                json.dumps({"api_key": "${OPENROUTER_API_KEY}"}), encoding="utf-8"
            )
            cfg = load_proxy_config(cfg_path)

        self.assertIsNone(cfg.api_key)

    def test_malformed_json_raises(self):
        with tempfile.TemporaryDirectory() as td:
            cfg_path = Path(td) / "proxy.json"
            cfg_path.write_text("{broken", encoding="utf-8")
            with self.assertRaises(ValueError):
                load_proxy_config(cfg_path)

    def test_credential_name(self):
        self.assertEqual(ProxyConfig().credential_name, "OPENROUTER_API_KEY")

    def test_resource_dirs_hang_off_repo_root(self):
        self.assertEqual(CONFIG_DIR, BASE_DIR / "resources" / "config")
        self.assertEqual(LOGS_DIR, BASE_DIR / "data" / "logs")
