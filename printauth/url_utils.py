"""Helpers for normalizing tenant addresses and deriving API base URLs."""
from __future__ import annotations

import re
from typing import Optional
from urllib.parse import SplitResult, urlsplit


_SCHEME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*$")
_INVALID_HOST_CHARS = re.compile(r"[\s<>\"{}|\\^`%/?#@]")

# An explicit port equal to the scheme default counts as no port.
_DEFAULT_PORTS = {"http": 80, "https": 443, "ws": 80, "wss": 443, "ftp": 21}


class InvalidUrlError(ValueError):
    """Raised when a tenant URL cannot be turned into an API base URL."""


def _parse(url: str) -> SplitResult:
    """Split ``url`` and reject values a browser-grade parser would refuse."""

    parts = urlsplit(url)
    if not parts.scheme or not _SCHEME_PATTERN.match(parts.scheme):
        raise ValueError(f"invalid scheme in '{url}'")
    if not parts.netloc:
        raise ValueError(f"missing host in '{url}'")
    host = parts.hostname or ""
    if not host or _INVALID_HOST_CHARS.search(host):
        raise ValueError(f"invalid host in '{url}'")
    # Accessing the port validates it (non-numeric or out of range raises).
    parts.port
    return parts


def _explicit_port(parts: SplitResult) -> Optional[int]:
    """Return the port, or ``None`` when absent or equal to the scheme default."""

    port = parts.port
    if port is not None and _DEFAULT_PORTS.get(parts.scheme.lower()) == port:
        return None
    return port


def _authority(parts: SplitResult) -> str:
    host = parts.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    port = _explicit_port(parts)
    if port is not None:
        return f"{host}:{port}"
    return host


def normalize_tenant_url(value: str) -> str:
    """Return ``scheme://host[:port][/path]`` for a user supplied tenant address.

    A missing scheme defaults to ``https``. Input that cannot be parsed is
    returned trimmed but otherwise untouched.
    """

    trimmed = (value or "").strip()
    if not trimmed:
        return ""

    candidate = trimmed if "://" in trimmed else f"https://{trimmed}"
    try:
        parts = _parse(candidate)
    except ValueError:
        return trimmed

    path = "" if parts.path == "/" else parts.path
    normalized = f"{parts.scheme.lower()}://{_authority(parts)}{path}"
    if normalized.endswith("/"):
        normalized = normalized[:-1]
    return normalized


def build_base_url(normalized_url: str, default_port: int) -> str:
    """Build the API base URL, appending ``default_port`` when none is given."""

    trimmed = (normalized_url or "").strip()
    if not trimmed:
        raise InvalidUrlError("tenant URL is empty")

    try:
        parts = _parse(trimmed)
    except ValueError as exc:
        raise InvalidUrlError(f"tenant URL is invalid: {exc}") from exc

    host = parts.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    port = _explicit_port(parts)
    if port is None:
        port = default_port

    result = f"{parts.scheme.lower()}://{host}:{port}"
    path = parts.path.strip("/")
    if path:
        result = f"{result}/{path}"
    result = result.rstrip("/")

    try:
        _parse(result)
    except ValueError as exc:
        raise InvalidUrlError(f"derived base URL '{result}' is invalid: {exc}") from exc
    return result


__all__ = ["InvalidUrlError", "build_base_url", "normalize_tenant_url"]
