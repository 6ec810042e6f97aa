from __future__ import annotations


class MetricDashError(RuntimeError):
    """Request-scoped failure surfaced to the caller as a 400."""


class NotFoundError(MetricDashError):
    pass


class InvalidInputError(MetricDashError):
    pass


class TemplateError(MetricDashError):
    pass


class BackendError(MetricDashError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class QueryWarningError(MetricDashError):
    def __init__(self, warnings: list[str]) -> None:
        self.warnings = list(warnings)
        super().__init__(f"query warnings: {self.warnings}")


class SerializationError(MetricDashError):
    pass


class ConfigError(RuntimeError):
    """Startup configuration problem; never raised while serving requests."""
