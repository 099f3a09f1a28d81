# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Exchange log for upstream calls.

Every upstream exchange gets one log entry. Failures record the full upstream
detail here; the client only ever sees the mapped message.
"""

from __future__ import annotations

import datetime
import json
import os
import uuid
from typing import Any, Dict, List

from routerchat.core.config import LOGS_DIR

MAX_LOG_ENTRIES = 100

# Global list to store LLM communication logs for the current session
llm_logs: List[Dict[str, Any]] = []


def add_llm_log(log_entry: Dict[str, Any]):
    """Register an exchange in the global list, keeping only the last 100 entries."""
    llm_logs.append(log_entry)
    if len(llm_logs) > MAX_LOG_ENTRIES:
        llm_logs.pop(0)


def _dump_log_entry(log_entry: Dict[str, Any]) -> None:
    """Append the raw entry to a file if ROUTERCHAT_LLM_DUMP is set."""
    if os.getenv("ROUTERCHAT_LLM_DUMP") != "1":
        return
    default_path = os.path.join(LOGS_DIR, "llm_raw.log")
    log_path = os.getenv("ROUTERCHAT_LLM_DUMP_PATH") or default_path
    try:
        os.makedirs(os.path.dirname(log_path) or ".", exist_ok=True)
        with open(log_path, "a", encoding="utf-8") as f:
            f.write("=" * 80 + "\n")
            f.write(f"TIMESTAMP: {datetime.datetime.now().isoformat()}\n")
            f.write("-" * 80 + "\n")
            f.write(json.dumps(log_entry, indent=2, default=str) + "\n")
            f.write("=" * 80 + "\n\n")
    except OSError:
        # Dump file is a dev-only aid; the in-memory entry is authoritative.
        pass


def record_log_response(log_entry: Dict[str, Any], **response: Any) -> None:
    """Merge response fields into an entry that is still in progress."""
    log_entry["response"].update(response)


def finish_log_entry(log_entry: Dict[str, Any], **response: Any) -> None:
    """Merge response fields, stamp the end time and dump the entry.

    Only the first call stamps and dumps; later calls merge fields only.
    """
    log_entry["response"].update(response)
    if log_entry["timestamp_end"] is not None:
        return
    log_entry["timestamp_end"] = datetime.datetime.now().isoformat()
    _dump_log_entry(log_entry)


def create_log_entry(
    url: str, method: str, headers: Dict[str, str], body: Any, streaming: bool = False
) -> Dict[str, Any]:
    """Create a new log entry structure."""
    safe_body = body
    if isinstance(body, dict):
        safe_body = body.copy()
        for key in ["api_key", "secret", "password"]:
            if key in safe_body:
                safe_body[key] = "REDACTED"

    return {
        "id": str(uuid.uuid4()),
        "timestamp_start": datetime.datetime.now().isoformat(),
        "timestamp_end": None,
        "request": {
            "url": url,
            "method": method,
            "headers": {
                k: ("***" if k.lower() in ("authorization", "x-api-key") else v)
                for k, v in headers.items()
            },
            "body": safe_body,
        },
        "response": {
            "status_code": None,
            "streaming": streaming,
            "chunks": [] if streaming else None,
            "full_content": "" if streaming else None,
            "body": None,
            "error": None,
            "error_detail": None,
            "cancelled": False,
        },
    }
