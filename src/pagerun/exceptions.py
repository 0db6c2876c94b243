"""Connection-specific exceptions."""

from __future__ import annotations

from typing import Any


NETWORK_ERROR_MESSAGE = "Network error: No response received"
UNKNOWN_ERROR_MESSAGE = "Unknown error"


class PagerDutyConnectionError(Exception):
    """Raised for every failed PagerDuty call.

    The three failure classes share this type and differ only in shape:

    * remote rejection: ``status`` is the HTTP status, ``response`` the body;
    * transport failure: ``status`` is 0, ``response`` the outbound request;
    * construction failure: ``status`` is 0, ``response`` the raw exception.
    """

    def __init__(self, status: int, message: str, response: Any = None) -> None:
        super().__init__(message)
        self.status = status
        self.message = message
        self.response = response

    @classmethod
    def from_network_failure(cls, request: Any) -> "PagerDutyConnectionError":
        return cls(0, NETWORK_ERROR_MESSAGE, request)

    @classmethod
    def from_exception(cls, exc: BaseException) -> "PagerDutyConnectionError":
        return cls(0, str(exc) or UNKNOWN_ERROR_MESSAGE, exc)

    @property
    def is_network_error(self) -> bool:
        return self.status == 0 and self.message == NETWORK_ERROR_MESSAGE

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        if not self.status:
            return self.message
        return f"{self.status}: {self.message}"
