import json
import logging

import pytest

from metricdash.config import load_config, parse_config
from metricdash.errors import ConfigError


def _document() -> dict:
    return {
        "prometheus": {
            "provider": {
                "name": "default",
                "default": True,
                "address": "https://prom.example.test",
                "TLSConfig": {"insecure_skip_verify": True},
                "headers": {"X-Scope-OrgID": "tenant-a", "X-Extra": ["a", "b"]},
            },
            "applications": [
                {
                    "name": "default",
                    "default": True,
                    "dashboards": [
                        {
                            "groupKind": "Deployment",
                            "rows": [
                                {
                                    "name": "cpu",
                                    "graphs": [
                                        {
                                            "name": "usage",
                                            "queryExpression": "up",
                                            "yAxisUnit": "cores",
                                            "thresholds": [{"key": "warn", "value": "80"}],
                                        }
                                    ],
                                }
                            ],
                        }
                    ],
                }
            ],
        }
    }


def test_load_json_config(tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps(_document()), encoding="utf-8")

    tree = load_config(path)

    provider = tree.providers[0]
    assert provider.tls_config.insecure_skip_verify is True
    assert provider.headers == {"X-Scope-OrgID": ("tenant-a",), "X-Extra": ("a", "b")}
    graph = tree.applications[0].dashboards[0].rows[0].graphs[0]
    assert graph.y_axis_unit == "cores"
    assert graph.thresholds[0].value == "80"


def test_load_yaml_config(tmp_path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(
        "\n".join(
            [
                "prometheus:",
                "  provider:",
                "    name: default",
                "    default: true",
                "    address: http://prom:9090",
                "  applications:",
                "    - name: default",
                "      default: true",
                "      dashboards:",
                "        - groupKind: Deployment",
            ]
        ),
        encoding="utf-8",
    )

    tree = load_config(path)

    assert tree.applications[0].dashboards[0].group_kind == "Deployment"


def test_missing_config_file_is_config_error(tmp_path) -> None:
    with pytest.raises(ConfigError):
        load_config(tmp_path / "absent.json")


def test_unparseable_config_is_config_error(tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(path)


def test_duplicate_row_names_are_rejected() -> None:
    doc = _document()
    rows = doc["prometheus"]["applications"][0]["dashboards"][0]["rows"]
    rows.append(dict(rows[0]))

    with pytest.raises(ConfigError, match="duplicate row names"):
        parse_config(doc)


def test_threshold_without_value_or_expression_is_rejected() -> None:
    doc = _document()
    graph = doc["prometheus"]["applications"][0]["dashboards"][0]["rows"][0]["graphs"][0]
    graph["thresholds"] = [{"key": "empty"}]

    with pytest.raises(ConfigError, match="needs a value or a queryExpression"):
        parse_config(doc)


def test_config_without_provider_is_rejected() -> None:
    with pytest.raises(ConfigError, match="at least one provider"):
        parse_config({"prometheus": {"applications": []}})


def test_multiple_default_applications_are_logged(caplog) -> None:
    doc = _document()
    doc["prometheus"]["applications"].append({"name": "second", "default": True})

    with caplog.at_level(logging.WARNING, logger="metricdash.config"):
        parse_config(doc)

    assert "config_multiple_defaults scope=applications" in caplog.text


def test_config_tree_is_immutable() -> None:
    tree = parse_config(_document())

    with pytest.raises(Exception):
        tree.applications[0].name = "changed"  # type: ignore[misc]
