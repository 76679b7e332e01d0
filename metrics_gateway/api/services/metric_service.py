"""
Service layer for metric time series

Resolves metric identifiers into queries, runs them and reshapes the rows
into ``{date, value}`` points.
"""

from typing import Any, Dict, Iterable, List, Mapping
import concurrent.futures
import logging

from metrics_gateway.api.models.metric import DataPoint
from metrics_gateway.core.date_range import DateRange
from metrics_gateway.core.executor import QueryExecutor
from metrics_gateway.core.queries import MetricKey, build_query, lookup_metric

# Configure logging
logger = logging.getLogger(__name__)


def shape_rows(rows: Iterable[Mapping[str, Any]]) -> List[DataPoint]:
    """
    Convert raw rows into data points

    Args:
        rows: Rows exposing ``date`` and ``value``

    Returns:
        List[DataPoint]: Points with ``value`` coerced to float, missing values as 0
    """
    return [
        DataPoint(date=row.get("date"), value=float(row.get("value") or 0))
        for row in rows
    ]


def fetch_metric_data(
    metric_id: str,
    date_range: DateRange,
    executor: QueryExecutor,
) -> List[DataPoint]:
    """
    Fetch the series of a single metric

    Args:
        metric_id: Metric identifier from the request
        date_range: Days to cover
        executor: Strategy used to run the query

    Returns:
        List[DataPoint]: Series ordered by date

    Raises:
        InvalidMetricError: If the metric identifier is unknown
    """
    definition = lookup_metric(metric_id)
    query = build_query(definition.key, date_range)
    rows = executor.execute(query)
    return shape_rows(rows)


def fetch_all_metrics_data(
    date_range: DateRange,
    executor: QueryExecutor,
    max_workers: int = 4,
) -> Dict[str, List[DataPoint]]:
    """
    Fetch every known metric in parallel

    A failing metric is logged and reported as an empty series so the other
    metrics are still returned.

    Args:
        date_range: Days to cover
        executor: Strategy used to run the queries
        max_workers: Size of the thread pool

    Returns:
        Dict: Series keyed by metric identifier, always containing every key
    """
    results: Dict[str, List[DataPoint]] = {}

    with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = {
            pool.submit(fetch_metric_data, key.value, date_range, executor): key
            for key in MetricKey
        }

        for future in concurrent.futures.as_completed(futures):
            key = futures[future]
            try:
                results[key.value] = future.result()
            except Exception as e:
                logger.error(f"Error fetching {key.value}: {str(e)}")
                results[key.value] = []

    return {key.value: results[key.value] for key in MetricKey}
