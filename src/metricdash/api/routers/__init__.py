from . import dashboards, health, metrics

__all__ = ["dashboards", "health", "metrics"]
