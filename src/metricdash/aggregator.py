from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from metricdash.values import TimeSeriesValue, marshal_value


class ThresholdResult(BaseModel):
    data: Any
    key: str
    name: str
    color: str
    value: str
    unit: str


class AggregatedResponse(BaseModel):
    data: Any
    thresholds: list[ThresholdResult] | None = None

    def to_payload(self) -> dict[str, Any]:
        # `thresholds` disappears entirely for graphs without any.
        return self.model_dump(mode="json", exclude_none=True)


def aggregate(primary: TimeSeriesValue, thresholds: list[ThresholdResult]) -> AggregatedResponse:
    return AggregatedResponse(data=marshal_value(primary), thresholds=thresholds or None)
