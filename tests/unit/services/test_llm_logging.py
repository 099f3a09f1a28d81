# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

import os
import tempfile
from pathlib import Path
from unittest import TestCase

from routerchat.services.llm.llm_logging import (
    MAX_LOG_ENTRIES,
    add_llm_log,
    create_log_entry,
    finish_log_entry,
    llm_logs,
    record_log_response,
)


class LlmLoggingTest(TestCase):
    def test_entry_redacts_secrets(self):
        entry = create_log_entry(
            "https://up.example/chat/completions",
            "POST",
            {"Authorization": "Bearer sk-secret", "X-Title": "My-Chatbot"},
            {"api_key": "sk-secret", "model": "m"},
            streaming=True,
        )

        self.assertEqual(entry["request"]["headers"]["Authorization"], "***")
        self.assertEqual(entry["request"]["headers"]["X-Title"], "My-Chatbot")
        self.assertEqual(entry["request"]["body"]["api_key"], "REDACTED")
        self.assertEqual(entry["response"]["chunks"], [])
        self.assertEqual(entry["response"]["full_content"], "")

    def test_keeps_only_recent_entries(self):
        for i in range(MAX_LOG_ENTRIES + 5):
            add_llm_log(create_log_entry(f"u{i}", "POST", {}, None))

        self.assertEqual(len(llm_logs), MAX_LOG_ENTRIES)
        self.assertEqual(llm_logs[0]["request"]["url"], "u5")

    def test_finish_records_once(self):
        entry = create_log_entry("u", "POST", {}, None)
        add_llm_log(entry)
        finish_log_entry(entry, error="boom")

        self.assertEqual(len(llm_logs), 1)
        self.assertEqual(llm_logs[0]["response"]["error"], "boom")
        self.assertIsNotNone(llm_logs[0]["timestamp_end"])

    def test_record_response_leaves_entry_open(self):
        entry = create_log_entry("u", "POST", {}, None)
        record_log_response(entry, status_code=200)

        self.assertEqual(entry["response"]["status_code"], 200)
        self.assertIsNone(entry["timestamp_end"])
        self.assertEqual(llm_logs, [])

    def test_late_finish_does_not_revive_evicted_entry(self):
        old = create_log_entry("old", "POST", {}, None)
        add_llm_log(old)
        for i in range(MAX_LOG_ENTRIES):
            add_llm_log(create_log_entry(f"u{i}", "POST", {}, None))

        finish_log_entry(old, error="late")

        self.assertEqual(len(llm_logs), MAX_LOG_ENTRIES)
        self.assertNotIn(old, llm_logs)

    def _dump_env(self, dump_path):
        os.environ["ROUTERCHAT_LLM_DUMP"] = "1"
        os.environ["ROUTERCHAT_LLM_DUMP_PATH"] = str(dump_path)
        self.addCleanup(os.environ.pop, "ROUTERCHAT_LLM_DUMP", None)
        self.addCleanup(os.environ.pop, "ROUTERCHAT_LLM_DUMP_PATH", None)

    def test_raw_dump_file(self):
        with tempfile.TemporaryDirectory() as td:
            dump_path = Path(td) / "logs" / "raw.log"
            self._dump_env(dump_path)
            entry = create_log_entry("https://dump.example", "POST", {}, None)
            add_llm_log(entry)
            self.assertFalse(dump_path.exists())

            finish_log_entry(entry)
            text = dump_path.read_text(encoding="utf-8")

        self.assertIn("TIMESTAMP:", text)
        self.assertIn("https://dump.example", text)

    def test_exchange_is_dumped_once(self):
        with tempfile.TemporaryDirectory() as td:
            dump_path = Path(td) / "raw.log"
            self._dump_env(dump_path)
            entry = create_log_entry("https://dump.example", "POST", {}, None)
            add_llm_log(entry)
            record_log_response(entry, error="upstream said no")
            finish_log_entry(entry, mapped_status=401)
            finish_log_entry(entry, upstream_status=401)
            text = dump_path.read_text(encoding="utf-8")

        self.assertEqual(text.count("TIMESTAMP:"), 1)
        self.assertEqual(entry["response"]["upstream_status"], 401)
