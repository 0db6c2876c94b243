"""Security helpers."""

from __future__ import annotations

from typing import Mapping
from urllib.parse import urlparse


SENSITIVE_HEADERS = {
    "authorization",
    "x-api-key",
}


def sanitize_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Return headers with sensitive values redacted for logging."""
    redacted: dict[str, str] = {}
    for key, value in headers.items():
        if key.lower() in SENSITIVE_HEADERS:
            redacted[key] = "[REDACTED]"
        else:
            redacted[key] = value
    return redacted


def validate_base_url(url: str, *, allow_http: bool = False) -> None:
    """Validate base URL to avoid scheme abuse and token leaks over plain HTTP."""
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        raise ValueError("base url must include scheme and host")
    if parsed.scheme not in {"http", "https"}:
        raise ValueError(f"Unsupported base url scheme: {parsed.scheme}")
    if parsed.scheme == "http" and not allow_http:
        allowed = {"localhost", "127.0.0.1", "::1"}
        host = (parsed.hostname or "").lower()
        if host not in allowed:
            raise ValueError("Non-HTTPS base url is not allowed without allow_http=True")
    if "\x00" in url:
        raise ValueError("Invalid base url")


def redact_token(token: str) -> str:
    """Keep only the last four characters of a token for log lines."""
    if len(token) <= 4:
        return "****"
    return "****" + token[-4:]
