from __future__ import annotations

import re
from datetime import timedelta

from metricdash.errors import InvalidInputError

DEFAULT_DURATION = "1h"

_UNIT_NANOS = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "μs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}
# Same ceiling as an int64 nanosecond count (about 2562047h).
_MAX_NANOS = 2**63 - 1
_PART_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(raw: str | None) -> timedelta:
    """
    Parse a duration literal such as ``1h30m``, ``90s`` or ``1.5h``.

    ``None`` or an empty string means the default of one hour. Only positive
    durations make sense for a look-back window; anything else raises
    :class:`InvalidInputError`.
    """
    text = (raw or "").strip() or DEFAULT_DURATION
    body = text
    sign = 1
    if body[0] in "+-":
        sign = -1 if body[0] == "-" else 1
        body = body[1:]
    if body == "0":
        raise InvalidInputError(f"Invalid duration format: duration must be positive: {text!r}")

    pos = 0
    nanos = 0.0
    while pos < len(body):
        match = _PART_RE.match(body, pos)
        if match is None:
            raise InvalidInputError(f"Invalid duration format: {text!r}")
        nanos += float(match.group(1)) * _UNIT_NANOS[match.group(2)]
        pos = match.end()
    if not body:
        raise InvalidInputError(f"Invalid duration format: {text!r}")

    total = sign * nanos
    if total <= 0:
        raise InvalidInputError(f"Invalid duration format: duration must be positive: {text!r}")
    if total > _MAX_NANOS:
        raise InvalidInputError(f"Invalid duration format: duration out of range: {text!r}")
    return timedelta(microseconds=total / 1_000)
