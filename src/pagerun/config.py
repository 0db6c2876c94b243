"""Centralised server settings, read from env vars once."""

from __future__ import annotations

import os

from .request_options import DEFAULT_BASE_URL, DEFAULT_TIMEOUT, ConnectionOptions


class Settings:
    SERVICE_NAME: str = "pagerun"
    PAGERDUTY_API_URL: str = os.getenv("PAGERDUTY_API_URL", DEFAULT_BASE_URL)
    PAGERDUTY_TIMEOUT: float = float(os.getenv("PAGERDUTY_TIMEOUT", str(DEFAULT_TIMEOUT)))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    HOST: str = os.getenv("HOST", "127.0.0.1")
    PORT: int = int(os.getenv("PORT", "8000"))

    def connection_options(self) -> ConnectionOptions:
        return ConnectionOptions(url=self.PAGERDUTY_API_URL, timeout=self.PAGERDUTY_TIMEOUT)


settings = Settings()
