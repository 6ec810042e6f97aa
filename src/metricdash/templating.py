from __future__ import annotations

import re
from collections.abc import Mapping, Sequence

from jinja2 import Environment, StrictUndefined, TemplateSyntaxError, UndefinedError

from metricdash.errors import TemplateError

# Dashboard configs written for Go's text/template reference fields as `{{.name}}`.
_GO_FIELD_RE = re.compile(r"\{\{(-?)\s*\.([A-Za-z_][A-Za-z0-9_]*)")

_ENV = Environment(
    undefined=StrictUndefined,
    autoescape=False,
    keep_trailing_newline=True,
)
# Only request parameters may resolve; Jinja2 builtins such as `namespace` or `range` would
# otherwise satisfy a missing parameter.
_ENV.globals.clear()


def flatten_params(params: Mapping[str, Sequence[str] | str]) -> dict[str, str]:
    flat: dict[str, str] = {}
    for key, values in params.items():
        if isinstance(values, str):
            flat[str(key)] = values
        else:
            flat[str(key)] = ",".join(str(v) for v in values)
    return flat


def _normalize(template: str) -> str:
    return _GO_FIELD_RE.sub(lambda m: "{{" + m.group(1) + " " + m.group(2), template)


def render_query(template: str, params: Mapping[str, Sequence[str] | str]) -> str:
    """
    Render a query-expression template with request parameters.

    Multi-valued parameters are joined with ``,`` first, so
    ``{"ns": ["a", "b"]}`` renders ``{{.ns}}`` as ``a,b``. Unknown
    references and syntax errors raise :class:`TemplateError`.
    """
    try:
        compiled = _ENV.from_string(_normalize(template))
    except TemplateSyntaxError as exc:
        raise TemplateError(f"error parsing query template: {exc}") from exc

    try:
        return compiled.render(flatten_params(params))
    except UndefinedError as exc:
        raise TemplateError(f"error executing template: {exc}") from exc
    except (TypeError, ValueError) as exc:
        raise TemplateError(f"error executing template: {exc}") from exc
