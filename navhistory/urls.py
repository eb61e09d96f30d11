from __future__ import annotations

from pathlib import Path
from urllib.parse import urlsplit

_PASSTHROUGH_SCHEMES = ("file://", "http://", "https://")


def normalize_address(text: str) -> str | None:
    """Turn what a user typed into an absolute address, or None if it isn't one."""
    trimmed = text.strip()
    if not trimmed:
        return None
    if trimmed.startswith("/"):
        return Path(trimmed).as_uri()
    if trimmed.lower().startswith(_PASSTHROUGH_SCHEMES):
        return trimmed
    if any(ch.isspace() for ch in trimmed):
        return None
    candidate = f"http://{trimmed}"
    if address_host(candidate):
        return candidate
    return None


def address_host(address: str) -> str | None:
    try:
        host = urlsplit(address).hostname
    except ValueError:
        return None
    return host or None
