from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from metricdash.api.deps import get_provider
from metricdash.config import Dashboard
from metricdash.errors import MetricDashError, SerializationError
from metricdash.providers.base import ExecuteRequest, MetricsProvider

router = APIRouter(tags=["dashboards"])
logger = logging.getLogger(__name__)


def _bad_request(exc: MetricDashError, **context: str) -> HTTPException:
    fields = " ".join(f"{k}={v}" for k, v in context.items())
    logger.warning("request_rejected kind=%s %s error=%s", type(exc).__name__, fields, exc)
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.get("/dashboard/{application}/{groupkind}", response_model=Dashboard, response_model_by_alias=True)
async def get_dashboard(
    application: str,
    groupkind: str,
    provider: MetricsProvider = Depends(get_provider),
) -> Dashboard:
    try:
        return provider.get_dashboard(application, groupkind)
    except MetricDashError as exc:
        raise _bad_request(exc, application=application, groupkind=groupkind) from exc


@router.get("/execute/{application}/{groupkind}/{row}/{graph}")
async def execute_graph(
    application: str,
    groupkind: str,
    row: str,
    graph: str,
    request: Request,
    provider: MetricsProvider = Depends(get_provider),
) -> JSONResponse:
    # Every query parameter, `duration` included, is visible to the templates.
    params = {key: request.query_params.getlist(key) for key in request.query_params.keys()}
    execute_request = ExecuteRequest(application=application, group_kind=groupkind, row=row, graph=graph, params=params)
    context = {"application": application, "groupkind": groupkind, "row": row, "graph": graph}
    try:
        result = await provider.execute(execute_request)
        try:
            return JSONResponse(content=result.to_payload())
        except (TypeError, ValueError) as exc:
            raise SerializationError(f"error marshaling the data: {exc}") from exc
    except MetricDashError as exc:
        raise _bad_request(exc, **context) from exc
