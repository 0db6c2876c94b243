from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

import httpx
import pytest

from pagerun.client import PagerDutyConnection, _coerce_query_params
from pagerun.exceptions import NETWORK_ERROR_MESSAGE, PagerDutyConnectionError
from pagerun.request_options import ConnectionOptions, RequestOptions


def _connection(handler, options: ConnectionOptions | None = None) -> PagerDutyConnection:
    transport = httpx.MockTransport(handler)
    return PagerDutyConnection("test-token", options, httpx_client=httpx.Client(transport=transport))


def _recorder(captured: list[httpx.Request], *, status: int = 200, payload: object = None):
    def send_request(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(status, json=payload if payload is not None else {"ok": True}, request=request)

    return send_request


@pytest.mark.parametrize("method", ["get", "post", "put", "delete"])
def test_default_headers_sent_for_every_verb(method: str) -> None:
    captured: list[httpx.Request] = []
    with _connection(_recorder(captured)) as pagerduty:
        getattr(pagerduty, method)("incidents")

    request = captured[0]
    assert request.method == method.upper()
    assert request.headers["Authorization"] == "Token token=test-token"
    assert request.headers["Accept"] == "application/vnd.pagerduty+json;version=2"
    assert request.headers["Content-Type"] == "application/json"


def test_caller_headers_override_defaults_case_insensitively() -> None:
    captured: list[httpx.Request] = []
    with _connection(_recorder(captured)) as pagerduty:
        pagerduty.get(
            "incidents",
            RequestOptions(headers={"authorization": "Token token=other", "From": "user@example.com"}),
        )

    request = captured[0]
    assert request.headers.get_list("Authorization") == ["Token token=other"]
    assert request.headers["From"] == "user@example.com"
    assert request.headers["Accept"] == "application/vnd.pagerduty+json;version=2"


def test_get_never_sends_body() -> None:
    captured: list[httpx.Request] = []
    with _connection(_recorder(captured)) as pagerduty:
        pagerduty.get("incidents", RequestOptions(body={"ignored": True}))

    assert captured[0].content == b""


def test_post_sends_json_body() -> None:
    captured: list[httpx.Request] = []
    body = {"incident": {"type": "incident", "title": "Disk full"}}
    with _connection(_recorder(captured)) as pagerduty:
        pagerduty.post("incidents", RequestOptions(body=body))

    assert json.loads(captured[0].content.decode()) == body


def test_leading_slash_is_ignored() -> None:
    captured: list[httpx.Request] = []
    with _connection(_recorder(captured)) as pagerduty:
        pagerduty.get("/incidents/P123")
        pagerduty.get("incidents/P123")

    assert str(captured[0].url) == str(captured[1].url) == "https://api.pagerduty.com/incidents/P123"


def test_custom_base_url_trailing_slash_is_stripped() -> None:
    captured: list[httpx.Request] = []
    options = ConnectionOptions(url="https://pd.example.com/api/")
    with _connection(_recorder(captured), options) as pagerduty:
        pagerduty.get("users")

    assert pagerduty.base_url == "https://pd.example.com/api"
    assert str(captured[0].url) == "https://pd.example.com/api/users"


def test_get_incidents_with_limit_returns_payload_unchanged() -> None:
    captured: list[httpx.Request] = []
    payload = {"incidents": [{"id": "P1"}], "limit": 5, "offset": 0, "more": False}
    with _connection(_recorder(captured, payload=payload)) as pagerduty:
        result = pagerduty.get("incidents", RequestOptions(query_params={"limit": 5}))

    assert captured[0].url.params["limit"] == "5"
    assert result == payload


def test_array_query_params_use_bracket_keys() -> None:
    captured: list[httpx.Request] = []
    with _connection(_recorder(captured)) as pagerduty:
        pagerduty.get_incidents({"queryParams": {"statuses": ["triggered", "acknowledged"], "team_ids[]": ["T1"]}})

    params = captured[0].url.params
    assert params.get_list("statuses[]") == ["triggered", "acknowledged"]
    assert params.get_list("team_ids[]") == ["T1"]


def test_coerce_query_params_drops_none_and_formats_datetimes() -> None:
    since = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    assert _coerce_query_params({"since": since, "until": None, "total": True}) == [
        ("since", "2024-01-02T03:04:05+00:00"),
        ("total", True),
    ]
    assert _coerce_query_params({}) is None


@pytest.mark.parametrize(
    ("method_name", "path"),
    [
        ("get_incidents", "/incidents"),
        ("get_users", "/users"),
        ("get_services", "/services"),
        ("get_schedules", "/schedules"),
        ("get_escalation_policies", "/escalation_policies"),
    ],
)
def test_convenience_methods_get_fixed_paths(method_name: str, path: str) -> None:
    captured: list[httpx.Request] = []
    with _connection(_recorder(captured)) as pagerduty:
        getattr(pagerduty, method_name)(RequestOptions(query_params={"limit": 2}))

    assert captured[0].method == "GET"
    assert captured[0].url.path == path
    assert captured[0].url.params["limit"] == "2"


def test_empty_success_body_returns_none() -> None:
    def send_request(request: httpx.Request) -> httpx.Response:
        return httpx.Response(204, request=request)

    with _connection(send_request) as pagerduty:
        assert pagerduty.delete("incidents/P1/notes/N1") is None


def test_remote_error_uses_embedded_message() -> None:
    body = {"error": {"message": "Not found", "code": 2100}}

    def send_request(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json=body, request=request)

    with _connection(send_request) as pagerduty:
        with pytest.raises(PagerDutyConnectionError) as excinfo:
            pagerduty.get("incidents/INVALID_ID")

    assert excinfo.value.status == 404
    assert excinfo.value.message == "Not found"
    assert excinfo.value.response == body


def test_remote_error_without_message_uses_reason_phrase() -> None:
    def send_request(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="upstream down", request=request)

    with _connection(send_request) as pagerduty:
        with pytest.raises(PagerDutyConnectionError) as excinfo:
            pagerduty.get("incidents")

    assert excinfo.value.status == 502
    assert excinfo.value.message == "Bad Gateway"
    assert excinfo.value.response == "upstream down"


def test_timeout_maps_to_network_error() -> None:
    def send_request(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    with _connection(send_request) as pagerduty:
        with pytest.raises(PagerDutyConnectionError) as excinfo:
            pagerduty.get("incidents")

    error = excinfo.value
    assert error.status == 0
    assert error.message == NETWORK_ERROR_MESSAGE
    assert error.is_network_error
    assert isinstance(error.response, httpx.Request)
    assert str(error.response.url) == "https://api.pagerduty.com/incidents"
    assert isinstance(error.__cause__, httpx.ConnectTimeout)


def test_connection_reset_maps_to_network_error() -> None:
    def send_request(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadError("connection reset", request=request)

    with _connection(send_request) as pagerduty:
        with pytest.raises(PagerDutyConnectionError) as excinfo:
            pagerduty.put("incidents/P1", RequestOptions(body={"incident": {"status": "resolved"}}))

    assert excinfo.value.status == 0
    assert excinfo.value.response.method == "PUT"


def test_unserialisable_body_is_a_construction_failure() -> None:
    captured: list[httpx.Request] = []
    with _connection(_recorder(captured)) as pagerduty:
        with pytest.raises(PagerDutyConnectionError) as excinfo:
            pagerduty.post("incidents", RequestOptions(body={"when": object()}))

    assert captured == []
    assert excinfo.value.status == 0
    assert isinstance(excinfo.value.response, TypeError)
    assert excinfo.value.message == str(excinfo.value.response)


def test_unsupported_method_is_a_construction_failure() -> None:
    captured: list[httpx.Request] = []
    with _connection(_recorder(captured)) as pagerduty:
        with pytest.raises(PagerDutyConnectionError) as excinfo:
            pagerduty.request("PATCH", "incidents")

    assert captured == []
    assert excinfo.value.status == 0
    assert excinfo.value.message == "Unsupported HTTP method: PATCH"


def test_timeout_is_applied_to_requests() -> None:
    captured: list[httpx.Request] = []
    with _connection(_recorder(captured), ConnectionOptions(timeout=5)) as pagerduty:
        pagerduty.get("incidents")

    assert pagerduty.timeout == 5.0
    assert captured[0].extensions["timeout"]["read"] == 5.0


def test_token_is_required() -> None:
    with pytest.raises(ValueError, match="token is required"):
        PagerDutyConnection("")


def test_token_and_base_url_fall_back_to_environment(monkeypatch) -> None:
    monkeypatch.setenv("PAGERDUTY_API_TOKEN", "env-token")
    monkeypatch.setenv("PAGERDUTY_API_URL", "https://pd.example.com")

    with PagerDutyConnection() as pagerduty:
        assert pagerduty.token == "env-token"
        assert pagerduty.base_url == "https://pd.example.com"


def test_plain_http_base_url_is_rejected() -> None:
    with pytest.raises(ValueError, match="Non-HTTPS"):
        PagerDutyConnection("t", ConnectionOptions(url="http://api.pagerduty.com"))


def test_non_positive_timeout_is_rejected() -> None:
    with pytest.raises(ValueError, match="timeout"):
        PagerDutyConnection("t", ConnectionOptions(timeout=0))


def test_none_items_in_array_params_are_dropped() -> None:
    captured: list[httpx.Request] = []
    with _connection(_recorder(captured)) as pagerduty:
        pagerduty.get("incidents", RequestOptions(query_params={"statuses": ["triggered", None], "total": True}))

    params = captured[0].url.params
    assert params.get_list("statuses[]") == ["triggered"]
    assert params["total"] == "true"


def test_non_json_success_body_returns_text() -> None:
    def send_request(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="pong", request=request)

    with _connection(send_request) as pagerduty:
        assert pagerduty.get("ping") == "pong"


def test_request_log_redacts_authorization(caplog) -> None:
    caplog.set_level(logging.DEBUG, logger="pagerun.client")
    captured: list[httpx.Request] = []
    with _connection(_recorder(captured)) as pagerduty:
        pagerduty.get("incidents")

    request_lines = [r.getMessage() for r in caplog.records if r.getMessage().startswith("PagerDuty request")]
    assert len(request_lines) == 1
    assert "[REDACTED]" in request_lines[0]
    assert "test-token" not in caplog.text


def test_invalid_url_is_a_construction_failure() -> None:
    captured: list[httpx.Request] = []
    with _connection(_recorder(captured)) as pagerduty:
        with pytest.raises(PagerDutyConnectionError) as excinfo:
            pagerduty.get("incidents/\x00")

    assert captured == []
    assert excinfo.value.status == 0
    assert isinstance(excinfo.value.response, httpx.InvalidURL)


def test_unsupported_protocol_is_a_construction_failure() -> None:
    def send_request(request: httpx.Request) -> httpx.Response:
        raise httpx.UnsupportedProtocol("Request URL has an unsupported protocol 'ftp://'.", request=request)

    with _connection(send_request) as pagerduty:
        with pytest.raises(PagerDutyConnectionError) as excinfo:
            pagerduty.get("incidents")

    assert excinfo.value.status == 0
    assert excinfo.value.message == "Request URL has an unsupported protocol 'ftp://'."
    assert isinstance(excinfo.value.response, httpx.UnsupportedProtocol)
    assert not excinfo.value.is_network_error


def test_decoding_error_after_response_keeps_exception_shape() -> None:
    def send_request(request: httpx.Request) -> httpx.Response:
        raise httpx.DecodingError("Error -3 while decompressing data", request=request)

    with _connection(send_request) as pagerduty:
        with pytest.raises(PagerDutyConnectionError) as excinfo:
            pagerduty.get("incidents")

    assert excinfo.value.status == 0
    assert isinstance(excinfo.value.response, httpx.DecodingError)
