from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from metricdash.aggregator import AggregatedResponse
from metricdash.config import ConfigTree, Dashboard, Provider
from metricdash.enums import ProviderType
from metricdash.errors import ConfigError
from metricdash.settings import Settings


@dataclass(frozen=True)
class ExecuteRequest:
    application: str
    group_kind: str
    row: str
    graph: str
    params: Mapping[str, Sequence[str]] = field(default_factory=dict)

    @property
    def duration(self) -> str | None:
        values = self.params.get("duration") or []
        return values[0] if values else None


class MetricsProvider(Protocol):
    def get_type(self) -> str: ...

    def get_dashboard(self, application: str, group_kind: str) -> Dashboard: ...

    async def execute(self, request: ExecuteRequest) -> AggregatedResponse: ...

    async def close(self) -> None: ...


ProviderFactory = Callable[[ConfigTree, Provider, Settings], MetricsProvider]

_FACTORIES: dict[ProviderType, ProviderFactory] = {}


def register_provider(kind: ProviderType, factory: ProviderFactory) -> None:
    _FACTORIES[kind] = factory


def build_provider(tree: ConfigTree, provider: Provider, settings: Settings) -> MetricsProvider:
    factory = _FACTORIES.get(provider.type)
    if factory is None:
        raise ConfigError(f"unsupported provider type: {provider.type.value}")
    return factory(tree, provider, settings)
