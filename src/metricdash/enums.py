from enum import Enum


class ProviderType(str, Enum):
    PROMETHEUS = "prometheus"


class ResultType(str, Enum):
    VECTOR = "vector"
    MATRIX = "matrix"
    SCALAR = "scalar"
    STRING = "string"


class QueryOutcome(str, Enum):
    OK = "ok"
    WARNINGS = "warnings"
    ERROR = "error"
