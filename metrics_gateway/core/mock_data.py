"""
Synthetic time series for local development
"""

import random
from typing import Any, Dict, List, Optional

from metrics_gateway.core.date_range import DateRange
from metrics_gateway.core.queries import MockRange


def mock_value(mock_range: MockRange, rng: random.Random) -> float:
    if mock_range.integer:
        return rng.randrange(int(mock_range.low), int(mock_range.high))
    return mock_range.low + rng.random() * (mock_range.high - mock_range.low)


def generate_date_range_data(
    date_range: DateRange,
    mock_range: MockRange,
    rng: Optional[random.Random] = None,
) -> List[Dict[str, Any]]:
    """
    Generate one row per calendar day in the range

    Args:
        date_range: Inclusive range of days
        mock_range: Range the generated values are drawn from
        rng: Random source, defaults to a freshly seeded generator

    Returns:
        List[Dict]: Rows shaped like backend rows (``date`` and ``value``)
    """
    rng = rng or random.Random()
    return [
        {"date": day.isoformat(), "value": mock_value(mock_range, rng)}
        for day in date_range.days()
    ]
