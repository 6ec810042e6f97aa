from __future__ import annotations

import logging
from datetime import timedelta
from typing import Protocol

from metricdash.backend import QueryResult
from metricdash.errors import QueryWarningError
from metricdash.values import TimeSeriesValue

logger = logging.getLogger(__name__)


class RangeQuerier(Protocol):
    async def query_range(self, expr: str, duration: timedelta) -> QueryResult: ...


async def run_query(client: RangeQuerier, expr: str, duration: timedelta) -> TimeSeriesValue:
    """Execute a rendered expression; any backend warning fails the query."""
    result = await client.query_range(expr, duration)
    if result.warnings:
        logger.warning("query_warnings query=%s warnings=%s", expr, list(result.warnings))
        raise QueryWarningError(list(result.warnings))
    return result.value
