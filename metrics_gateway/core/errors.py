"""
Error types raised while serving metric requests

Every error carries the HTTP status and the error kind string that end up
in the flat ``{error, message}`` response body.
"""

from typing import Any, Dict, Optional


class GatewayError(Exception):
    """Base class for errors that map onto a client-visible response"""

    status_code: int = 500
    code: str = "ServerError"

    def __init__(self, message: str = "Internal server error", details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize the error into the response body format

        Returns:
            Dict: ``error`` and ``message``, plus ``details`` when present
        """
        body = {"error": self.code, "message": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class UnauthorizedError(GatewayError):
    status_code = 401
    code = "Unauthorized"

    def __init__(self, message: str = "Invalid or missing API key"):
        super().__init__(message)


class InvalidMetricError(GatewayError):
    status_code = 400
    code = "InvalidMetric"

    def __init__(self, metric_id: str):
        super().__init__(f"Unknown metric: {metric_id}")
        self.metric_id = metric_id


class InvalidDateError(GatewayError):
    status_code = 400
    code = "InvalidDate"

    def __init__(self, param: str, value: str):
        super().__init__(f"Invalid '{param}' date: {value} (expected YYYY-MM-DD)")


class ClickHouseError(GatewayError):
    """The backend answered with an error payload"""

    status_code = 500
    code = "ClickHouseError"

    def __init__(self, details: Any, message: str = "ClickHouse query error"):
        super().__init__(message, details=details)


class QueryExecutionError(GatewayError):
    """Configuration, transport or decoding failure around a query"""

    def __init__(self, reason: str):
        super().__init__(f"Failed to execute query: {reason}")
        self.reason = reason
