"""Safe logging helpers that avoid leaking credential material or payloads."""

from __future__ import annotations

from typing import Any, Mapping

_SENSITIVE_HEADERS = {"authorization", "cookie", "x-api-key"}


def header_presence(header_name: str, value_present: bool) -> str:
    """Return a stable descriptor for header presence."""
    return f"{header_name}={'present' if value_present else 'absent'}"


def token_presence(label: str, token: str | None) -> str:
    """Describe whether a token was present without logging its value."""
    return f"{label}={'present' if token else 'absent'}"


def safe_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Copy of ``headers`` with credential values replaced by a presence marker."""
    return {
        name: ("present" if name.lower() in _SENSITIVE_HEADERS else value)
        for name, value in headers.items()
    }


def payload_shape(payload: Any) -> str:
    """
    Describe a request body by shape only (type and size), never content.

    >>> payload_shape({"transcript": "...", "patient_id": "p1"})
    'dict[2 keys]'
    """
    if payload is None:
        return "none"
    if isinstance(payload, Mapping):
        return f"dict[{len(payload)} keys]"
    if isinstance(payload, (list, tuple)):
        return f"list[{len(payload)}]"
    if isinstance(payload, (bytes, bytearray)):
        return f"bytes[{len(payload)}]"
    if isinstance(payload, str):
        return f"str[{len(payload)}]"
    return type(payload).__name__
