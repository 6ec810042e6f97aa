from __future__ import annotations

import json
import logging
from collections import Counter
from pathlib import Path
from typing import Any

import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from metricdash.enums import ProviderType
from metricdash.errors import ConfigError

logger = logging.getLogger(__name__)


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True, extra="ignore")


def _duplicates(values: list[str]) -> list[str]:
    return sorted(v for v, n in Counter(values).items() if n > 1)


def _ensure_unique(scope: str, values: list[str]) -> None:
    dups = _duplicates(values)
    if dups:
        raise ValueError(f"duplicate {scope}: {', '.join(dups)}")


class TLSConfig(_Frozen):
    insecure_skip_verify: bool = Field(default=False, alias="insecure_skip_verify")


class Provider(_Frozen):
    name: str
    type: ProviderType = ProviderType.PROMETHEUS
    default: bool = False
    address: str
    tls_config: TLSConfig = Field(default_factory=TLSConfig, alias="TLSConfig")
    headers: dict[str, tuple[str, ...]] = Field(default_factory=dict)

    @field_validator("headers", mode="before")
    @classmethod
    def _headers_as_lists(cls, raw: Any) -> Any:
        # Accept `{"X-Scope-OrgID": "tenant"}` as shorthand for a single value.
        if isinstance(raw, dict):
            return {str(k): [v] if isinstance(v, str) else v for k, v in raw.items()}
        return raw


class Threshold(_Frozen):
    key: str
    name: str = ""
    color: str = ""
    value: str = ""
    unit: str = ""
    query_expression: str = ""

    @model_validator(mode="after")
    def _has_query(self) -> "Threshold":
        if not self.value and not self.query_expression:
            raise ValueError(f"threshold {self.key!r} needs a value or a queryExpression")
        return self

    def query_text(self) -> str:
        # A literal value wins over the expression when both are set.
        return self.value if self.value else self.query_expression


class Graph(_Frozen):
    name: str
    title: str = ""
    description: str = ""
    graph_type: str = ""
    metric_name: str = ""
    color_schemes: tuple[str, ...] = ()
    query_expression: str
    y_axis_unit: str = ""
    value_rounding: int = 0
    thresholds: tuple[Threshold, ...] = ()

    @model_validator(mode="after")
    def _unique_thresholds(self) -> "Graph":
        _ensure_unique(f"threshold keys in graph {self.name!r}", [t.key for t in self.thresholds])
        return self


class Row(_Frozen):
    name: str
    title: str = ""
    tab: str = ""
    graphs: tuple[Graph, ...] = ()

    @model_validator(mode="after")
    def _unique_graphs(self) -> "Row":
        _ensure_unique(f"graph names in row {self.name!r}", [g.name for g in self.graphs])
        return self


class Dashboard(_Frozen):
    group_kind: str
    default: bool = False
    tabs: tuple[str, ...] = ()
    intervals: tuple[str, ...] = ()
    rows: tuple[Row, ...] = ()
    # Only set on the copy handed out by a provider lookup.
    provider_type: str = ""

    @model_validator(mode="after")
    def _unique_rows(self) -> "Dashboard":
        _ensure_unique(f"row names in dashboard {self.group_kind!r}", [r.name for r in self.rows])
        return self


class Application(_Frozen):
    name: str
    default: bool = False
    dashboards: tuple[Dashboard, ...] = ()

    @model_validator(mode="after")
    def _unique_dashboards(self) -> "Application":
        _ensure_unique(f"dashboard group kinds in application {self.name!r}", [d.group_kind for d in self.dashboards])
        return self


class ConfigTree(_Frozen):
    providers: tuple[Provider, ...] = Field(
        default=(),
        validation_alias=AliasChoices("providers", "provider"),
    )
    applications: tuple[Application, ...] = ()

    @field_validator("providers", mode="before")
    @classmethod
    def _single_provider(cls, raw: Any) -> Any:
        if isinstance(raw, dict):
            return [raw]
        return raw

    @model_validator(mode="after")
    def _check_scopes(self) -> "ConfigTree":
        if not self.providers:
            raise ValueError("at least one provider must be configured")
        _ensure_unique("provider names", [p.name for p in self.providers])
        _ensure_unique("application names", [a.name for a in self.applications])
        return self


def _warn_multiple_defaults(tree: ConfigTree) -> None:
    scopes: list[tuple[str, list[str]]] = [
        ("providers", [p.name for p in tree.providers if p.default]),
        ("applications", [a.name for a in tree.applications if a.default]),
    ]
    for app in tree.applications:
        scopes.append((f"dashboards of {app.name}", [d.group_kind for d in app.dashboards if d.default]))
    for scope, names in scopes:
        if len(names) > 1:
            logger.warning("config_multiple_defaults scope=%s names=%s using=%s", scope, names, names[0])
    if not any(p.default for p in tree.providers) and len(tree.providers) > 1:
        logger.warning("config_no_default_provider providers=%s", [p.name for p in tree.providers])


def parse_config(data: Any) -> ConfigTree:
    if not isinstance(data, dict):
        raise ConfigError("config document must be a mapping")
    section = data.get("prometheus", data)
    try:
        tree = ConfigTree.model_validate(section)
    except ValidationError as exc:
        raise ConfigError(f"invalid config: {exc}") from exc
    _warn_multiple_defaults(tree)
    return tree


def load_config(path: str | Path) -> ConfigTree:
    """Read the dashboard tree from a JSON (``.json``) or YAML file."""
    config_file = Path(path)
    try:
        text = config_file.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"cannot read config {config_file}: {exc}") from exc

    try:
        if config_file.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text) or {}
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"cannot parse config {config_file}: {exc}") from exc

    tree = parse_config(data)
    logger.info(
        "config_loaded path=%s providers=%s applications=%s",
        config_file,
        len(tree.providers),
        len(tree.applications),
    )
    return tree
