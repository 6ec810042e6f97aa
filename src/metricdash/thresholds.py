from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import timedelta

from metricdash.aggregator import ThresholdResult
from metricdash.config import Threshold
from metricdash.query import RangeQuerier, run_query
from metricdash.templating import render_query
from metricdash.values import marshal_value

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderedThreshold:
    threshold: Threshold
    expr: str

    @property
    def from_value(self) -> bool:
        return bool(self.threshold.value)


class ThresholdEvaluator:
    """
    Runs a graph's threshold queries.

    Rendering happens for every threshold before any of them touches the
    backend. Execution is concurrent, results keep the configured order, and
    the first failure cancels the rest and propagates.
    """

    def __init__(self, client: RangeQuerier) -> None:
        self.client = client

    @staticmethod
    def render(thresholds: Sequence[Threshold], params: Mapping[str, Sequence[str]]) -> list[RenderedThreshold]:
        return [RenderedThreshold(threshold=t, expr=render_query(t.query_text(), params)) for t in thresholds]

    async def _evaluate_one(self, rendered: RenderedThreshold, duration: timedelta) -> ThresholdResult:
        threshold = rendered.threshold
        value = await run_query(self.client, rendered.expr, duration)
        return ThresholdResult(
            data=marshal_value(value),
            key=threshold.key,
            name=threshold.name,
            color=threshold.color,
            value=rendered.expr if rendered.from_value else "",
            unit=threshold.unit,
        )

    async def evaluate(self, rendered: Sequence[RenderedThreshold], duration: timedelta) -> list[ThresholdResult]:
        if not rendered:
            return []
        tasks = [asyncio.create_task(self._evaluate_one(r, duration)) for r in rendered]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.warning("threshold_evaluation_aborted thresholds=%s", [r.threshold.key for r in rendered])
            raise
