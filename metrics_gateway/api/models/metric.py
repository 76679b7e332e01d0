"""
API data models for metric time series
"""

from pydantic import BaseModel, Field
from typing import Any, Optional


class DataPoint(BaseModel):
    """Single point of a daily metric series"""
    date: str = Field(..., description="Calendar day (YYYY-MM-DD)")
    value: float = Field(..., description="Value of the metric for that day")


class ErrorResponse(BaseModel):
    """Body returned for every failed request"""
    error: str = Field(..., description="Error kind, e.g. Unauthorized or InvalidMetric")
    message: str = Field(..., description="Human readable explanation")
    details: Optional[Any] = Field(None, description="Raw backend payload for ClickHouseError")
