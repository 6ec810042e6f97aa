from __future__ import annotations

from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError

from metricdash.enums import ResultType
from metricdash.errors import BackendError, SerializationError

# Prometheus encodes timestamps as unix seconds (float) and sample values as strings.
Timestamp = Union[int, float]
SamplePair = tuple[Timestamp, str]
HistogramPair = tuple[Timestamp, dict[str, Any]]


class _Value(BaseModel):
    model_config = ConfigDict(frozen=True)


class Sample(_Value):
    metric: dict[str, str] = Field(default_factory=dict)
    value: SamplePair | None = None
    histogram: HistogramPair | None = None


class SampleStream(_Value):
    metric: dict[str, str] = Field(default_factory=dict)
    values: list[SamplePair] | None = None
    histograms: list[HistogramPair] | None = None


class Vector(_Value):
    result_type: Literal[ResultType.VECTOR] = ResultType.VECTOR
    samples: list[Sample] = Field(default_factory=list)

    def marshal(self) -> list[dict[str, Any]]:
        return [s.model_dump(mode="json", exclude_none=True) for s in self.samples]


class Matrix(_Value):
    result_type: Literal[ResultType.MATRIX] = ResultType.MATRIX
    streams: list[SampleStream] = Field(default_factory=list)

    def marshal(self) -> list[dict[str, Any]]:
        return [s.model_dump(mode="json", exclude_none=True) for s in self.streams]


class Scalar(_Value):
    result_type: Literal[ResultType.SCALAR] = ResultType.SCALAR
    point: SamplePair

    def marshal(self) -> list[Any]:
        return list(self.point)


class String(_Value):
    result_type: Literal[ResultType.STRING] = ResultType.STRING
    point: SamplePair

    def marshal(self) -> list[Any]:
        return list(self.point)


TimeSeriesValue = Union[Vector, Matrix, Scalar, String]

_SAMPLES = TypeAdapter(list[Sample])
_STREAMS = TypeAdapter(list[SampleStream])
_POINT = TypeAdapter(SamplePair)


def parse_value(data: dict[str, Any]) -> TimeSeriesValue:
    """Build the typed value from the ``data`` object of a Prometheus API response."""
    result_type = data.get("resultType")
    result = data.get("result")
    try:
        if result_type == ResultType.VECTOR.value:
            return Vector(samples=_SAMPLES.validate_python(result or []))
        if result_type == ResultType.MATRIX.value:
            return Matrix(streams=_STREAMS.validate_python(result or []))
        if result_type == ResultType.SCALAR.value:
            return Scalar(point=_POINT.validate_python(result))
        if result_type == ResultType.STRING.value:
            return String(point=_POINT.validate_python(result))
    except ValidationError as exc:
        raise BackendError(f"malformed {result_type} result from backend: {exc}") from exc
    raise BackendError(f"unknown result type from backend: {result_type!r}")


def marshal_value(value: TimeSeriesValue) -> Any:
    """JSON-ready form of ``value`` in the shape Prometheus clients emit."""
    try:
        return value.marshal()
    except (PydanticSerializationError, ValueError, TypeError) as exc:
        raise SerializationError(f"error marshaling the data: {exc}") from exc


def describe(value: TimeSeriesValue) -> str:
    if isinstance(value, Matrix):
        points = sum(len(s.values or ()) for s in value.streams)
        return f"matrix series={len(value.streams)} points={points}"
    if isinstance(value, Vector):
        return f"vector samples={len(value.samples)}"
    return f"{value.result_type.value} value={value.point[1]}"
