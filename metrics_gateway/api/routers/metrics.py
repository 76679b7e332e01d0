"""
API router for metric time series

A single endpoint serves one metric (``metricId`` given) or all of them.
"""

from fastapi import APIRouter, Depends, Query, Request
from typing import Dict, List, Optional, Union
import logging

from metrics_gateway.api.models.metric import DataPoint, ErrorResponse
from metrics_gateway.api.services.metric_service import (
    fetch_all_metrics_data,
    fetch_metric_data,
)
from metrics_gateway.config.settings import Settings
from metrics_gateway.core.date_range import resolve_date_range
from metrics_gateway.core.errors import GatewayError
from metrics_gateway.core.executor import QueryExecutor
from metrics_gateway.core.queries import METRICS

# Create router
router = APIRouter()
logger = logging.getLogger(__name__)

METRIC_ID_DESCRIPTION = "Metric to fetch, all metrics when omitted. " + "; ".join(
    f"{definition.key.value}: {definition.description}" for definition in METRICS.values()
)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_executor(request: Request) -> QueryExecutor:
    return request.app.state.executor


@router.get(
    "/metrics",
    response_model=Union[List[DataPoint], Dict[str, List[DataPoint]]],
    summary="Get metric time series",
    description="Daily series for one metric, or for every metric when metricId is omitted",
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
def get_metrics(
    metric_id: Optional[str] = Query(None, alias="metricId", description=METRIC_ID_DESCRIPTION),
    date_from: Optional[str] = Query(None, alias="from", description="Start date (YYYY-MM-DD)"),
    date_to: Optional[str] = Query(None, alias="to", description="End date (YYYY-MM-DD)"),
    settings: Settings = Depends(get_app_settings),
    executor: QueryExecutor = Depends(get_executor),
):
    """
    Get daily metric values

    Args:
        metric_id: Metric to fetch (queryCount, dataSize, queryDuration, errorRate)
        date_from: Start date, defaults to 7 days ago
        date_to: End date, defaults to today
        settings: Application settings
        executor: Query execution strategy

    Returns:
        List[DataPoint] for a single metric, Dict of series for all metrics
    """
    try:
        date_range = resolve_date_range(date_from, date_to)

        if metric_id:
            return fetch_metric_data(metric_id, date_range, executor)

        return fetch_all_metrics_data(date_range, executor, max_workers=settings.MAX_WORKERS)

    except GatewayError:
        raise
    except Exception as e:
        logger.error(f"Error retrieving metrics: {str(e)}")
        raise GatewayError(str(e) or "Internal server error")
