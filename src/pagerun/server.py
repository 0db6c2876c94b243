"""
Pagerun web service (FastAPI)
  - GET  /               demo UI
  - POST /api/pagerduty  proxy that keeps the API token on the server side
  - GET  /health
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Callable

from fastapi import Depends, FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import ValidationError

from .client import SUPPORTED_METHODS, AsyncPagerDutyConnection
from .config import settings
from .exceptions import PagerDutyConnectionError
from .log import get_logger, install_token_filter
from .models import ErrorResponse, ProxyOptions
from .security import redact_token


get_logger()
install_token_filter()
logger = logging.getLogger(__name__)

INDEX_HTML = (Path(__file__).resolve().parent / "templates" / "index.html").read_text(encoding="utf-8")

ConnectionFactory = Callable[[str], AsyncPagerDutyConnection]

app = FastAPI(title="Pagerun", version="0.1.0")


def get_connection_factory() -> ConnectionFactory:
    def connect(token: str) -> AsyncPagerDutyConnection:
        return AsyncPagerDutyConnection(token, settings.connection_options())

    return connect


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(ErrorResponse(error=message).model_dump(), status_code=status_code)


async def _read_options(request: Request) -> ProxyOptions:
    raw = await request.body()
    if not raw.strip():
        return ProxyOptions()
    payload = json.loads(raw)
    if not isinstance(payload, dict):
        raise ValueError("Request body must be a JSON object")
    return ProxyOptions.model_validate(payload)


@app.get("/health")
def health():
    return {"status": "ok", "service": settings.SERVICE_NAME}


@app.get("/", response_class=HTMLResponse)
def index():
    return INDEX_HTML


@app.post("/api/pagerduty")
async def pagerduty_proxy(
    request: Request,
    token: str | None = None,
    method: str | None = None,
    path: str | None = None,
    connect: ConnectionFactory = Depends(get_connection_factory),
):
    if not token:
        return _error("API token is required", 400)
    if not method or not path:
        return _error("Method and path are required", 400)

    method = method.upper()
    if method not in SUPPORTED_METHODS:
        return _error("Invalid HTTP method", 400)

    try:
        options = await _read_options(request)
    except json.JSONDecodeError:
        return _error("Request body must be valid JSON", 400)
    except ValidationError as exc:
        return _error(f"Invalid request options: {exc.errors()[0]['msg']}", 400)
    except ValueError as exc:
        return _error(str(exc), 400)

    logger.info("proxy %s %s (token %s)", method, path, redact_token(token))
    try:
        async with connect(token) as pagerduty:
            verbs = {
                "GET": pagerduty.get,
                "POST": pagerduty.post,
                "PUT": pagerduty.put,
                "DELETE": pagerduty.delete,
            }
            result = await verbs[method](path, options.to_request_options())
    except PagerDutyConnectionError as exc:
        if exc.is_network_error:
            logger.warning("proxy %s %s: no response from PagerDuty", method, path)
        else:
            logger.info("proxy %s %s failed: %s", method, path, exc)
        return _error(exc.message, exc.status or 500)
    except Exception:
        logger.exception("PagerDuty API error")
        return _error("Internal server error", 500)

    return JSONResponse(result)


def main() -> None:
    import uvicorn

    config = uvicorn.Config(app, host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())
    # uvicorn.Config applies its own logging config; mask tokens after it.
    install_token_filter()
    uvicorn.Server(config).run()
