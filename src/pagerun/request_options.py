"""Connection settings and per-request options for the PagerDuty clients."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping


DEFAULT_BASE_URL = "https://api.pagerduty.com"
DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class ConnectionOptions:
    url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_TIMEOUT
    allow_http: bool = False


@dataclass(frozen=True)
class RequestOptions:
    query_params: Mapping[str, Any] | None = None
    headers: Mapping[str, str] | None = None
    body: Any | None = None

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any] | None) -> "RequestOptions":
        """Build options from the camelCase wire shape used by the proxy route."""
        if not payload:
            return cls()
        return cls(
            query_params=payload.get("queryParams", payload.get("query_params")),
            headers=payload.get("headers"),
            body=payload.get("body"),
        )
