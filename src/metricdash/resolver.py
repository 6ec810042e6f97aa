from __future__ import annotations

from collections.abc import Iterable
from typing import TypeVar

from metricdash.config import Application, ConfigTree, Dashboard, Graph, Provider, Row

_T = TypeVar("_T")


def _exact_or_default(items: Iterable[_T], wanted: str, key) -> _T | None:  # noqa: ANN001
    fallback: _T | None = None
    for item in items:
        if key(item) == wanted:
            return item
        if fallback is None and getattr(item, "default", False):
            fallback = item
    return fallback


def _exact(items: Iterable[_T], wanted: str, key) -> _T | None:  # noqa: ANN001
    return next((item for item in items if key(item) == wanted), None)


class ConfigResolver:
    """
    Read-only lookups over the config tree.

    Applications, dashboards and providers fall back to the entry flagged
    ``default`` when the requested name is absent. Rows and graphs only match
    exactly. Every lookup returns ``None`` instead of raising.
    """

    def __init__(self, tree: ConfigTree) -> None:
        self.tree = tree

    def resolve_provider(self, name: str | None = None) -> Provider | None:
        if not name:
            provider = next((p for p in self.tree.providers if p.default), None)
            if provider is None and len(self.tree.providers) == 1:
                return self.tree.providers[0]
            return provider
        return _exact_or_default(self.tree.providers, name, lambda p: p.name)

    def resolve_application(self, name: str) -> Application | None:
        return _exact_or_default(self.tree.applications, name, lambda a: a.name)

    @staticmethod
    def resolve_dashboard(application: Application, group_kind: str) -> Dashboard | None:
        return _exact_or_default(application.dashboards, group_kind, lambda d: d.group_kind)

    @staticmethod
    def resolve_row(dashboard: Dashboard, name: str) -> Row | None:
        return _exact(dashboard.rows, name, lambda r: r.name)

    @staticmethod
    def resolve_graph(row: Row, name: str) -> Graph | None:
        return _exact(row.graphs, name, lambda g: g.name)
