from fastapi import Request

from metricdash.providers.base import MetricsProvider


def get_provider(request: Request) -> MetricsProvider:
    return request.app.state.provider
