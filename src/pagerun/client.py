"""Synchronous and asynchronous connections to the PagerDuty REST API."""

from __future__ import annotations

import dataclasses
import logging
import os
from datetime import datetime
from typing import Any, Mapping

import httpx

from .exceptions import PagerDutyConnectionError
from .request_options import DEFAULT_BASE_URL, ConnectionOptions, RequestOptions
from .security import sanitize_headers, validate_base_url


logger = logging.getLogger(__name__)

SUPPORTED_METHODS = frozenset({"GET", "POST", "PUT", "DELETE"})

# Raised after the request left the caller but before a response arrived.
_NO_RESPONSE_ERRORS = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
    httpx.ProxyError,
)

# Raised while the request is still being assembled.
_CONSTRUCTION_ERRORS = (ValueError, TypeError, httpx.InvalidURL)


def _coerce_query_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _coerce_query_params(query: Mapping[str, Any] | None) -> list[tuple[str, Any]] | None:
    if not query:
        return None
    params: list[tuple[str, Any]] = []
    for key, value in query.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            array_key = key if key.endswith("[]") else f"{key}[]"
            params.extend((array_key, _coerce_query_value(v)) for v in value if v is not None)
            continue
        params.append((key, _coerce_query_value(value)))
    return params or None


def _normalize_headers(headers: Mapping[str, str] | None) -> dict[str, str]:
    if not headers:
        return {}
    clean: dict[str, str] = {}
    for key, value in headers.items():
        clean[str(key)] = str(value)
    return clean


def _resolve_request_options(options: RequestOptions | Mapping[str, Any] | None) -> RequestOptions:
    if options is None:
        return RequestOptions()
    if isinstance(options, RequestOptions):
        return options
    return RequestOptions.from_mapping(options)


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _remote_error_message(body: Any) -> str | None:
    if not isinstance(body, Mapping):
        return None
    error = body.get("error")
    if isinstance(error, Mapping) and isinstance(error.get("message"), str) and error["message"]:
        return error["message"]
    return None


class _BasePagerDutyConnection:
    default_base_url = DEFAULT_BASE_URL

    def __init__(
        self,
        token: str | None = None,
        options: ConnectionOptions | None = None,
        *,
        token_env_var: str = "PAGERDUTY_API_TOKEN",
        base_url_env_var: str = "PAGERDUTY_API_URL",
    ) -> None:
        token = token or os.getenv(token_env_var)
        if not token:
            raise ValueError("PagerDuty API token is required")
        if options is None:
            options = ConnectionOptions(url=os.getenv(base_url_env_var) or self.default_base_url)
        base_url = (options.url or self.default_base_url).rstrip("/")
        validate_base_url(base_url, allow_http=options.allow_http)
        if options.timeout <= 0:
            raise ValueError("timeout must be greater than 0")

        self.token = token
        self.options = dataclasses.replace(options, url=base_url, timeout=float(options.timeout))
        self._default_headers = {
            "Authorization": f"Token token={token}",
            "Accept": "application/vnd.pagerduty+json;version=2",
            "Content-Type": "application/json",
        }
        self._client_kwargs = {
            "timeout": self.options.timeout,
            "follow_redirects": True,
            "trust_env": False,
        }

    @property
    def base_url(self) -> str:
        return self.options.url

    @property
    def timeout(self) -> float:
        return self.options.timeout

    def _url(self, path: str) -> str:
        if path.startswith("/"):
            path = path[1:]
        return f"{self.base_url}/{path}"

    def _headers(self, request_options: RequestOptions) -> httpx.Headers:
        merged = httpx.Headers(self._default_headers)
        if request_options.headers:
            # httpx.Headers.update replaces keys case-insensitively.
            merged.update(_normalize_headers(request_options.headers))
        return merged

    def _build_request(
        self,
        client: httpx.Client | httpx.AsyncClient,
        method: str,
        path: str,
        request_options: RequestOptions,
    ) -> httpx.Request:
        method = method.upper()
        if method not in SUPPORTED_METHODS:
            raise ValueError(f"Unsupported HTTP method: {method}")
        kwargs: dict[str, Any] = {
            "headers": self._headers(request_options),
            "params": _coerce_query_params(request_options.query_params),
            "timeout": self.timeout,
        }
        if request_options.body is not None and method != "GET":
            kwargs["json"] = request_options.body
        return client.build_request(method, self._url(path), **kwargs)

    @staticmethod
    def _log_request(request: httpx.Request) -> None:
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "PagerDuty request %s %s headers=%s",
                request.method,
                request.url,
                sanitize_headers(request.headers),
            )

    @staticmethod
    def _handle_response(response: httpx.Response) -> Any:
        logger.debug(
            "PagerDuty response %s %s -> %s",
            response.request.method,
            response.request.url,
            response.status_code,
        )
        body = _decode_body(response)
        if response.is_success:
            return body
        message = _remote_error_message(body) or response.reason_phrase or f"HTTP {response.status_code}"
        raise PagerDutyConnectionError(response.status_code, message, body)

    @staticmethod
    def _no_response(request: httpx.Request, exc: Exception) -> PagerDutyConnectionError:
        logger.warning("No response for %s %s: %r", request.method, request.url, exc)
        return PagerDutyConnectionError.from_network_failure(request)


class PagerDutyConnection(_BasePagerDutyConnection):
    """Synchronous connection."""

    def __init__(
        self,
        token: str | None = None,
        options: ConnectionOptions | None = None,
        *,
        httpx_client: httpx.Client | None = None,
    ) -> None:
        super().__init__(token, options)
        self._httpx = httpx_client or httpx.Client(**self._client_kwargs)

    def __enter__(self) -> "PagerDutyConnection":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._httpx.close()

    def request(
        self,
        method: str,
        path: str,
        options: RequestOptions | Mapping[str, Any] | None = None,
    ) -> Any:
        request_options = _resolve_request_options(options)
        try:
            request = self._build_request(self._httpx, method, path, request_options)
        except _CONSTRUCTION_ERRORS as exc:
            raise PagerDutyConnectionError.from_exception(exc) from exc

        self._log_request(request)
        try:
            response = self._httpx.send(request)
        except _NO_RESPONSE_ERRORS as exc:
            raise self._no_response(request, exc) from exc
        except httpx.HTTPError as exc:
            raise PagerDutyConnectionError.from_exception(exc) from exc
        return self._handle_response(response)

    def get(self, path: str, options: RequestOptions | Mapping[str, Any] | None = None) -> Any:
        return self.request("GET", path, options)

    def post(self, path: str, options: RequestOptions | Mapping[str, Any] | None = None) -> Any:
        return self.request("POST", path, options)

    def put(self, path: str, options: RequestOptions | Mapping[str, Any] | None = None) -> Any:
        return self.request("PUT", path, options)

    def delete(self, path: str, options: RequestOptions | Mapping[str, Any] | None = None) -> Any:
        return self.request("DELETE", path, options)

    def get_incidents(self, options: RequestOptions | Mapping[str, Any] | None = None) -> Any:
        return self.get("incidents", options)

    def get_users(self, options: RequestOptions | Mapping[str, Any] | None = None) -> Any:
        return self.get("users", options)

    def get_services(self, options: RequestOptions | Mapping[str, Any] | None = None) -> Any:
        return self.get("services", options)

    def get_schedules(self, options: RequestOptions | Mapping[str, Any] | None = None) -> Any:
        return self.get("schedules", options)

    def get_escalation_policies(self, options: RequestOptions | Mapping[str, Any] | None = None) -> Any:
        return self.get("escalation_policies", options)


class AsyncPagerDutyConnection(_BasePagerDutyConnection):
    """Asynchronous connection."""

    def __init__(
        self,
        token: str | None = None,
        options: ConnectionOptions | None = None,
        *,
        httpx_client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(token, options)
        self._httpx = httpx_client or httpx.AsyncClient(**self._client_kwargs)

    async def __aenter__(self) -> "AsyncPagerDutyConnection":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._httpx.aclose()

    async def request(
        self,
        method: str,
        path: str,
        options: RequestOptions | Mapping[str, Any] | None = None,
    ) -> Any:
        request_options = _resolve_request_options(options)
        try:
            request = self._build_request(self._httpx, method, path, request_options)
        except _CONSTRUCTION_ERRORS as exc:
            raise PagerDutyConnectionError.from_exception(exc) from exc

        self._log_request(request)
        try:
            response = await self._httpx.send(request)
        except _NO_RESPONSE_ERRORS as exc:
            raise self._no_response(request, exc) from exc
        except httpx.HTTPError as exc:
            raise PagerDutyConnectionError.from_exception(exc) from exc
        return self._handle_response(response)

    async def get(self, path: str, options: RequestOptions | Mapping[str, Any] | None = None) -> Any:
        return await self.request("GET", path, options)

    async def post(self, path: str, options: RequestOptions | Mapping[str, Any] | None = None) -> Any:
        return await self.request("POST", path, options)

    async def put(self, path: str, options: RequestOptions | Mapping[str, Any] | None = None) -> Any:
        return await self.request("PUT", path, options)

    async def delete(self, path: str, options: RequestOptions | Mapping[str, Any] | None = None) -> Any:
        return await self.request("DELETE", path, options)

    async def get_incidents(self, options: RequestOptions | Mapping[str, Any] | None = None) -> Any:
        return await self.get("incidents", options)

    async def get_users(self, options: RequestOptions | Mapping[str, Any] | None = None) -> Any:
        return await self.get("users", options)

    async def get_services(self, options: RequestOptions | Mapping[str, Any] | None = None) -> Any:
        return await self.get("services", options)

    async def get_schedules(self, options: RequestOptions | Mapping[str, Any] | None = None) -> Any:
        return await self.get("schedules", options)

    async def get_escalation_policies(self, options: RequestOptions | Mapping[str, Any] | None = None) -> Any:
        return await self.get("escalation_policies", options)
