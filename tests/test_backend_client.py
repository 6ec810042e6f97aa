import logging
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs

import httpx
import pytest

from metricdash import backend
from metricdash.backend import PrometheusClient
from metricdash.config import Provider
from metricdash.errors import BackendError
from metricdash.values import Vector

_NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def _provider(**overrides) -> Provider:
    data = {"name": "default", "default": True, "address": "http://prom.test:9090/"}
    data.update(overrides)
    return Provider.model_validate(data)


def _vector_body(warnings: list[str] | None = None) -> dict:
    body = {
        "status": "success",
        "data": {"resultType": "vector", "result": [{"metric": {"ns": "prod"}, "value": [1704110400, "0.42"]}]},
    }
    if warnings:
        body["warnings"] = warnings
    return body


def _recording_transport(calls: list[httpx.Request], response: httpx.Response) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return response

    return httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_query_range_posts_window_and_fixed_step() -> None:
    calls: list[httpx.Request] = []
    client = PrometheusClient(_provider(), transport=_recording_transport(calls, httpx.Response(200, json=_vector_body())))
    try:
        result = await client.query_range("up", timedelta(hours=2), now=_NOW)
    finally:
        await client.close()

    assert isinstance(result.value, Vector)
    assert result.warnings == ()
    request = calls[0]
    assert request.method == "POST"
    assert request.url.path == "/api/v1/query_range"
    form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
    assert form["query"] == "up"
    assert float(form["end"]) == _NOW.timestamp()
    assert float(form["end"]) - float(form["start"]) == 7200
    assert form["step"] == "60"


@pytest.mark.asyncio
async def test_warnings_are_returned_to_caller() -> None:
    calls: list[httpx.Request] = []
    response = httpx.Response(200, json=_vector_body(warnings=["partial data"]))
    client = PrometheusClient(_provider(), transport=_recording_transport(calls, response))
    try:
        result = await client.query_range("up", timedelta(hours=1), now=_NOW)
    finally:
        await client.close()

    assert result.warnings == ("partial data",)


@pytest.mark.asyncio
async def test_api_key_header_is_injected_and_never_logged(caplog) -> None:
    calls: list[httpx.Request] = []
    with caplog.at_level(logging.DEBUG, logger="metricdash.backend"):
        client = PrometheusClient(
            _provider(headers={"X-Scope-OrgID": "tenant-a"}),
            api_key="s3cr3t-key",
            transport=_recording_transport(calls, httpx.Response(200, json=_vector_body())),
        )
        try:
            await client.query_range("up", timedelta(hours=1), now=_NOW)
        finally:
            await client.close()

    assert calls[0].headers["apikey"] == "s3cr3t-key"
    assert calls[0].headers["X-Scope-OrgID"] == "tenant-a"
    assert "apikey" in caplog.text
    assert "s3cr3t-key" not in caplog.text
    assert "tenant-a" not in caplog.text


@pytest.mark.asyncio
async def test_no_headers_without_api_key() -> None:
    calls: list[httpx.Request] = []
    client = PrometheusClient(_provider(), transport=_recording_transport(calls, httpx.Response(200, json=_vector_body())))
    try:
        await client.query_range("up", timedelta(hours=1), now=_NOW)
    finally:
        await client.close()

    assert "apikey" not in calls[0].headers


def _record_transport_kwargs(monkeypatch) -> list[dict]:
    seen: list[dict] = []

    def fake_transport(**kwargs):
        seen.append(kwargs)
        return httpx.MockTransport(lambda request: httpx.Response(200, json=_vector_body()))

    monkeypatch.setattr(backend.httpx, "AsyncHTTPTransport", fake_transport)
    return seen


@pytest.mark.asyncio
async def test_skip_tls_verify_is_logged_at_init(monkeypatch, caplog) -> None:
    seen = _record_transport_kwargs(monkeypatch)
    with caplog.at_level(logging.WARNING, logger="metricdash.backend"):
        client = PrometheusClient(_provider(), skip_tls_verify=True)
    await client.close()

    assert client.skip_tls_verify is True
    assert seen == [{"verify": False}]
    assert "backend_tls_verify_disabled provider=default" in caplog.text


@pytest.mark.asyncio
async def test_provider_tls_config_enables_skip_verify(monkeypatch) -> None:
    seen = _record_transport_kwargs(monkeypatch)
    client = PrometheusClient(_provider(TLSConfig={"insecure_skip_verify": True}))
    await client.close()

    assert client.skip_tls_verify is True
    assert seen == [{"verify": False}]


@pytest.mark.asyncio
async def test_tls_verification_is_on_by_default(monkeypatch, caplog) -> None:
    seen = _record_transport_kwargs(monkeypatch)
    with caplog.at_level(logging.WARNING, logger="metricdash.backend"):
        client = PrometheusClient(_provider())
    await client.close()

    assert client.skip_tls_verify is False
    assert seen == [{"verify": True}]
    assert "backend_tls_verify_disabled" not in caplog.text


@pytest.mark.asyncio
async def test_backend_error_body_is_reported() -> None:
    calls: list[httpx.Request] = []
    response = httpx.Response(400, json={"status": "error", "errorType": "bad_data", "error": "parse error at char 3"})
    client = PrometheusClient(_provider(), transport=_recording_transport(calls, response))
    try:
        with pytest.raises(BackendError, match="bad_data: parse error at char 3") as exc:
            await client.query_range("up{", timedelta(hours=1), now=_NOW)
    finally:
        await client.close()

    assert exc.value.status_code == 400


@pytest.mark.asyncio
async def test_non_json_failure_is_backend_error() -> None:
    calls: list[httpx.Request] = []
    client = PrometheusClient(_provider(), transport=_recording_transport(calls, httpx.Response(502, text="bad gateway")))
    try:
        with pytest.raises(BackendError, match="bad gateway"):
            await client.query_range("up", timedelta(hours=1), now=_NOW)
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_transport_failure_is_backend_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = PrometheusClient(_provider(), transport=httpx.MockTransport(handler))
    try:
        with pytest.raises(BackendError, match="connection refused"):
            await client.query_range("up", timedelta(hours=1), now=_NOW)
    finally:
        await client.close()
