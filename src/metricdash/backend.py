from __future__ import annotations

import logging
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import httpx

from metricdash.config import Provider
from metricdash.enums import QueryOutcome
from metricdash.errors import BackendError
from metricdash.observability import BACKEND_QUERIES_TOTAL, BACKEND_QUERY_DURATION_SECONDS
from metricdash.values import TimeSeriesValue, describe, parse_value

logger = logging.getLogger(__name__)

APIKEY_HEADER = "apikey"
QUERY_RANGE_PATH = "/api/v1/query_range"
STEP = timedelta(minutes=1)


@dataclass(frozen=True)
class QueryResult:
    value: TimeSeriesValue
    warnings: tuple[str, ...] = field(default_factory=tuple)


class HeaderInjectingTransport(httpx.AsyncBaseTransport):
    """Adds a fixed header set to every outbound request, then delegates."""

    def __init__(self, headers: Mapping[str, Sequence[str]], inner: httpx.AsyncBaseTransport) -> None:
        self._headers = {name: tuple(values) for name, values in headers.items()}
        self._inner = inner

    @property
    def header_names(self) -> list[str]:
        return sorted(self._headers)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        for name, values in self._headers.items():
            if not values:
                continue
            existing = request.headers.get(name)
            joined = ", ".join(values)
            request.headers[name] = f"{existing}, {joined}" if existing else joined
        logger.debug("backend_request url=%s injected_headers=%s", request.url, self.header_names)
        return await self._inner.handle_async_request(request)

    async def aclose(self) -> None:
        await self._inner.aclose()


def _format_time(moment: datetime) -> str:
    return repr(moment.timestamp())


def _format_step(step: timedelta) -> str:
    seconds = step.total_seconds()
    return str(int(seconds)) if seconds.is_integer() else repr(seconds)


def _error_detail(response: httpx.Response) -> tuple[str, list[str]]:
    try:
        body = response.json()
    except ValueError:
        return (response.text or response.reason_phrase or "").strip()[:500], []
    if not isinstance(body, dict):
        return str(body)[:500], []
    warnings = [str(w) for w in body.get("warnings") or []]
    error_type = str(body.get("errorType") or "").strip()
    error = str(body.get("error") or "").strip() or response.reason_phrase
    return (f"{error_type}: {error}" if error_type else error), warnings


class PrometheusClient:
    """Range queries against one Prometheus-compatible endpoint."""

    def __init__(
        self,
        provider: Provider,
        *,
        skip_tls_verify: bool = False,
        api_key: str = "",
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.provider = provider
        self.skip_tls_verify = bool(skip_tls_verify or provider.tls_config.insecure_skip_verify)
        if self.skip_tls_verify:
            logger.warning("backend_tls_verify_disabled provider=%s address=%s", provider.name, provider.address)

        headers: dict[str, tuple[str, ...]] = dict(provider.headers)
        if api_key:
            logger.info("backend_apikey_enabled provider=%s header=%s", provider.name, APIKEY_HEADER)
            headers[APIKEY_HEADER] = (api_key,)

        inner = transport or httpx.AsyncHTTPTransport(verify=not self.skip_tls_verify)
        if headers:
            inner = HeaderInjectingTransport(headers, inner)
            logger.info("backend_headers_configured provider=%s names=%s", provider.name, sorted(headers))

        self._client = httpx.AsyncClient(
            base_url=provider.address.rstrip("/"),
            transport=inner,
            timeout=timeout_seconds,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def query_range(self, expr: str, duration: timedelta, *, now: datetime | None = None) -> QueryResult:
        end = now or datetime.now(timezone.utc)
        start = end - duration
        form = {
            "query": expr,
            "start": _format_time(start),
            "end": _format_time(end),
            "step": _format_step(STEP),
        }
        logger.info(
            "backend_query provider=%s query=%s start=%s end=%s step=%s",
            self.provider.name,
            expr,
            start.isoformat(),
            end.isoformat(),
            form["step"],
        )

        started = time.perf_counter()
        try:
            response = await self._client.post(QUERY_RANGE_PATH, data=form)
        except httpx.HTTPError as exc:
            self._observe(QueryOutcome.ERROR, started)
            logger.error(
                "backend_query_failed provider=%s address=%s query=%s error=%s",
                self.provider.name,
                self.provider.address,
                expr,
                exc,
            )
            raise BackendError(f"error querying prometheus: {exc}") from exc

        if response.status_code >= 400:
            self._observe(QueryOutcome.ERROR, started)
            detail, _ = _error_detail(response)
            logger.error(
                "backend_query_failed provider=%s address=%s query=%s status=%s error=%s",
                self.provider.name,
                self.provider.address,
                expr,
                response.status_code,
                detail,
            )
            raise BackendError(f"error querying prometheus: {detail}", status_code=response.status_code)

        try:
            body = response.json()
        except ValueError as exc:
            self._observe(QueryOutcome.ERROR, started)
            raise BackendError(f"error querying prometheus: invalid JSON response: {exc}") from exc

        if not isinstance(body, dict) or body.get("status") != "success":
            self._observe(QueryOutcome.ERROR, started)
            detail, _ = _error_detail(response)
            raise BackendError(f"error querying prometheus: {detail}", status_code=response.status_code)

        try:
            value = parse_value(body.get("data") or {})
        except BackendError:
            self._observe(QueryOutcome.ERROR, started)
            raise
        warnings = tuple(str(w) for w in body.get("warnings") or [])
        self._observe(QueryOutcome.WARNINGS if warnings else QueryOutcome.OK, started)
        logger.debug("backend_query_result provider=%s %s warnings=%s", self.provider.name, describe(value), len(warnings))
        return QueryResult(value=value, warnings=warnings)

    def _observe(self, outcome: QueryOutcome, started: float) -> None:
        BACKEND_QUERIES_TOTAL.labels(self.provider.name, outcome.value).inc()
        BACKEND_QUERY_DURATION_SECONDS.labels(self.provider.name).observe(max(0.0, time.perf_counter() - started))
