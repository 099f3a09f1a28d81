# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

from fastapi.responses import PlainTextResponse

from routerchat.models.chat import ERROR_KIND_HEADER, ErrorKind


def error_text(detail: str, status_code: int, kind: ErrorKind) -> PlainTextResponse:
    return PlainTextResponse(
        detail, status_code=status_code, headers={ERROR_KIND_HEADER: kind.value}
    )
