"""Structured JSON logger factory."""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import datetime, timezone


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1]:
            log_obj["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_obj)


def get_logger(name: str = "pagerun", level: str | int | None = None) -> logging.Logger:
    """Return ``name``'s logger, installing the JSON stdout handler once."""
    from .config import settings

    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
        logger.handlers = [handler]
        logger.setLevel(level or settings.LOG_LEVEL)
    return logger


_TOKEN_QUERY = re.compile(r"(?<![\w-])(token=)[^&\s\"]*")


def mask_token_query(text: str) -> str:
    return _TOKEN_QUERY.sub(r"\1[REDACTED]", text)


class TokenQueryFilter(logging.Filter):
    """Mask ``token=...`` query values in access log lines."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = mask_token_query(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(mask_token_query(a) if isinstance(a, str) else a for a in record.args)
        return True


def install_token_filter(name: str = "uvicorn.access") -> logging.Logger:
    """Attach a single :class:`TokenQueryFilter` to ``name``'s logger."""
    logger = logging.getLogger(name)
    if not any(isinstance(f, TokenQueryFilter) for f in logger.filters):
        logger.addFilter(TokenQueryFilter())
    return logger
