from __future__ import annotations

import logging

import httpx

from metricdash.aggregator import AggregatedResponse, aggregate
from metricdash.backend import PrometheusClient
from metricdash.config import ConfigTree, Dashboard, Graph, Provider
from metricdash.durations import parse_duration
from metricdash.enums import ProviderType
from metricdash.errors import NotFoundError
from metricdash.providers.base import ExecuteRequest, register_provider
from metricdash.query import RangeQuerier, run_query
from metricdash.resolver import ConfigResolver
from metricdash.settings import Settings
from metricdash.templating import render_query
from metricdash.thresholds import ThresholdEvaluator

logger = logging.getLogger(__name__)


class PrometheusProvider:
    def __init__(self, tree: ConfigTree, client: RangeQuerier) -> None:
        self.resolver = ConfigResolver(tree)
        self.client = client
        self.thresholds = ThresholdEvaluator(client)

    def get_type(self) -> str:
        return ProviderType.PROMETHEUS.value

    def _dashboard(self, application: str, group_kind: str) -> Dashboard:
        app = self.resolver.resolve_application(application)
        if app is None:
            raise NotFoundError("Requested/Default Application not found")
        dashboard = self.resolver.resolve_dashboard(app, group_kind)
        if dashboard is None:
            raise NotFoundError("Requested/Default Dashboard not found")
        return dashboard

    def get_dashboard(self, application: str, group_kind: str) -> Dashboard:
        dashboard = self._dashboard(application, group_kind)
        # The shared tree stays untouched; callers get a tagged copy.
        return dashboard.model_copy(update={"provider_type": self.get_type()})

    def _graph(self, request: ExecuteRequest) -> Graph:
        dashboard = self._dashboard(request.application, request.group_kind)
        row = self.resolver.resolve_row(dashboard, request.row)
        if row is None:
            raise NotFoundError("Requested Row not found")
        graph = self.resolver.resolve_graph(row, request.graph)
        if graph is None:
            raise NotFoundError("Requested Graph not found")
        return graph

    async def execute(self, request: ExecuteRequest) -> AggregatedResponse:
        duration = parse_duration(request.duration)
        graph = self._graph(request)

        # Every template is rendered before the first backend round trip.
        expr = render_query(graph.query_expression, request.params)
        rendered_thresholds = self.thresholds.render(graph.thresholds, request.params)

        primary = await run_query(self.client, expr, duration)
        thresholds = await self.thresholds.evaluate(rendered_thresholds, duration)
        logger.info(
            "graph_executed application=%s groupkind=%s row=%s graph=%s thresholds=%s",
            request.application,
            request.group_kind,
            request.row,
            request.graph,
            len(thresholds),
        )
        return aggregate(primary, thresholds)

    async def close(self) -> None:
        close = getattr(self.client, "close", None)
        if close is not None:
            await close()


def create_prometheus_provider(
    tree: ConfigTree,
    provider: Provider,
    settings: Settings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> PrometheusProvider:
    client = PrometheusClient(
        provider,
        skip_tls_verify=settings.skip_prometheus_tls_verify,
        api_key=settings.prometheus_apikey,
        timeout_seconds=settings.backend_timeout_seconds,
        transport=transport,
    )
    return PrometheusProvider(tree, client)


register_provider(ProviderType.PROMETHEUS, create_prometheus_provider)
