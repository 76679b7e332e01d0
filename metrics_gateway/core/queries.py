"""
Metric registry and ClickHouse query templates

Each metric key maps to one parameterized query over ``system.query_log``
and to the value range used when mock data is served. Dates are passed as
ClickHouse HTTP query parameters, never spliced into the query text.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

from metrics_gateway.core.date_range import DateRange
from metrics_gateway.core.errors import InvalidMetricError

_PLACEHOLDER = re.compile(r"\{(\w+):(\w+)\}")


class MetricKey(str, Enum):
    """Metric identifiers accepted in the ``metricId`` parameter"""
    QUERY_COUNT = "queryCount"
    DATA_SIZE = "dataSize"
    QUERY_DURATION = "queryDuration"
    ERROR_RATE = "errorRate"


@dataclass(frozen=True)
class MockRange:
    """Half-open value range ``[low, high)`` for generated values"""
    low: float
    high: float
    integer: bool = False


@dataclass(frozen=True)
class MetricDefinition:
    key: MetricKey
    description: str
    template: str
    mock_signature: str
    mock_range: MockRange


@dataclass(frozen=True)
class BoundQuery:
    """Query text plus the values bound to its ``{name:Type}`` placeholders"""
    sql: str
    params: Dict[str, str] = field(default_factory=dict)

    def http_params(self) -> Dict[str, str]:
        """Parameters in the ``param_<name>`` form the HTTP interface expects"""
        return {f"param_{name}": value for name, value in self.params.items()}

    def render(self) -> str:
        """
        Inline the bound values as quoted literals

        Used for log lines and by the mock executor, never sent to the backend.
        """
        def _quote(match):
            value = self.params[match.group(1)]
            escaped = value.replace("\\", "\\\\").replace("'", "\\'")
            return f"'{escaped}'"

        return _PLACEHOLDER.sub(_quote, self.sql)


_QUERY_TEMPLATE = """
SELECT
    toDate(event_time) AS date,
    {value_expr} AS value
FROM system.query_log
WHERE event_time BETWEEN {{date_from:DateTime}} AND {{date_to:DateTime}}
    AND type = '{event_type}'
GROUP BY date
ORDER BY date
"""


def _template(value_expr: str, event_type: str) -> str:
    return _QUERY_TEMPLATE.format(value_expr=value_expr, event_type=event_type)


METRICS: Dict[MetricKey, MetricDefinition] = {
    MetricKey.QUERY_COUNT: MetricDefinition(
        key=MetricKey.QUERY_COUNT,
        description="Number of queries started per day",
        template=_template("count()", "QueryStart"),
        mock_signature="count()",
        mock_range=MockRange(500, 1500, integer=True),
    ),
    MetricKey.DATA_SIZE: MetricDefinition(
        key=MetricKey.DATA_SIZE,
        description="Bytes read by finished queries per day",
        template=_template("sum(read_bytes)", "QueryFinish"),
        mock_signature="sum(read_bytes)",
        mock_range=MockRange(100_000_000, 1_100_000_000, integer=True),
    ),
    MetricKey.QUERY_DURATION: MetricDefinition(
        key=MetricKey.QUERY_DURATION,
        description="Average duration of finished queries per day, in seconds",
        template=_template("avg(query_duration_ms) / 1000", "QueryFinish"),
        mock_signature="avg(query_duration_ms)",
        mock_range=MockRange(0.1, 2.1),
    ),
    MetricKey.ERROR_RATE: MetricDefinition(
        key=MetricKey.ERROR_RATE,
        description="Percentage of failed queries per day",
        template=_template("countIf(exception != '') * 100 / count()", "ExceptionWhileProcessing"),
        mock_signature="countIf(exception",
        mock_range=MockRange(0, 2.0),
    ),
}

# Fallback range when a query matches no known metric
GENERIC_MOCK_RANGE = MockRange(0, 100)


def lookup_metric(metric_id: str) -> MetricDefinition:
    """
    Find the definition for a metric identifier

    Raises:
        InvalidMetricError: If the identifier is not a known metric key
    """
    try:
        return METRICS[MetricKey(metric_id)]
    except ValueError:
        raise InvalidMetricError(metric_id)


def build_query(key: MetricKey, date_range: DateRange) -> BoundQuery:
    """Bind a date range to the query template of a metric"""
    definition = METRICS[key]
    return BoundQuery(
        sql=definition.template,
        params={
            "date_from": f"{date_range.date_from.isoformat()} 00:00:00",
            "date_to": f"{date_range.date_to.isoformat()} 23:59:59",
        },
    )


def infer_metric(query_text: str) -> Optional[MetricDefinition]:
    """
    Guess which metric a rendered query was built for

    The error-rate query also contains ``count()``, so the most specific
    signatures are tested first.
    """
    candidates = sorted(METRICS.values(), key=lambda d: len(d.mock_signature), reverse=True)
    for definition in candidates:
        if definition.mock_signature in query_text:
            return definition
    return None
