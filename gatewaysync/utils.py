from __future__ import annotations

import re


def normalize_path(raw: str) -> str:
    """Canonical endpoint path: one leading slash, no duplicate or trailing slashes."""
    value = str(raw).strip()
    value = "/" + value.lstrip("/")
    value = re.sub(r"/{2,}", "/", value)
    if len(value) > 1:
        value = value.rstrip("/")
    return value


def join_url(base: str, *parts: str) -> str:
    value = str(base).strip().rstrip("/")
    for part in parts:
        segment = str(part).strip().strip("/")
        if segment:
            value = f"{value}/{segment}"
    return value
