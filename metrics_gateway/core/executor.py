"""
Query execution strategies

``ClickHouseQueryExecutor`` talks to the ClickHouse HTTP interface;
``MockQueryExecutor`` synthesizes rows for local development.
"""

import json
import logging
import random
import re
import time
from typing import Any, Callable, Dict, List, Optional, Protocol

import requests

from metrics_gateway.config.settings import Settings
from metrics_gateway.core.date_range import default_date_range, parse_iso_date, DateRange
from metrics_gateway.core.errors import ClickHouseError, QueryExecutionError
from metrics_gateway.core.mock_data import generate_date_range_data
from metrics_gateway.core.queries import BoundQuery, GENERIC_MOCK_RANGE, infer_metric

# Configure logging
logger = logging.getLogger(__name__)

_FROM_PATTERN = re.compile(r"BETWEEN '(.+?)'")
_TO_PATTERN = re.compile(r"AND '(.+?)'")
_READ_CHUNK_SIZE = 65536


class QueryExecutor(Protocol):
    def execute(self, query: BoundQuery) -> List[Dict[str, Any]]: ...


class MockQueryExecutor:
    """Serves generated rows shaped after the query that was asked for"""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def execute(self, query: BoundQuery) -> List[Dict[str, Any]]:
        query_text = query.render()
        logger.debug(f"Using mock data for query: {query_text}")
        return self.generate(query_text)

    def generate(self, query_text: str) -> List[Dict[str, Any]]:
        """
        Generate rows for a rendered query

        The metric is recognised by its aggregate expression and the date
        range is read back out of the BETWEEN clause.

        Args:
            query_text: Query with its date values inlined

        Returns:
            List[Dict]: One row per day in the extracted range
        """
        definition = infer_metric(query_text)
        mock_range = definition.mock_range if definition else GENERIC_MOCK_RANGE

        date_range = self.extract_date_range(query_text)
        return generate_date_range_data(date_range, mock_range, self.rng)

    @staticmethod
    def extract_date_range(query_text: str) -> DateRange:
        defaults = default_date_range()
        from_match = _FROM_PATTERN.search(query_text)
        to_match = _TO_PATTERN.search(query_text)

        date_from = (
            parse_iso_date(from_match.group(1).split(" ")[0], "from")
            if from_match else defaults.date_from
        )
        date_to = (
            parse_iso_date(to_match.group(1).split(" ")[0], "to")
            if to_match else defaults.date_to
        )
        return DateRange(date_from, date_to)


class ClickHouseQueryExecutor:
    """Runs queries over the ClickHouse HTTP interface, one request per call"""

    def __init__(
        self,
        host: Optional[str],
        user: Optional[str],
        password: Optional[str],
        timeout: float = 8.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.host = host
        self.user = user
        self.password = password
        self.timeout = timeout
        self.clock = clock

    def execute(self, query: BoundQuery) -> List[Dict[str, Any]]:
        """
        Execute a query and return its rows

        ``timeout`` bounds the whole call: requests applies it to the connect
        and to every socket read, and the body is streamed so the total time
        can be checked between chunks.

        Args:
            query: Query text and bound parameters

        Returns:
            List[Dict]: Rows decoded from the JSONEachRow response

        Raises:
            ClickHouseError: If the backend answered with an error status and a payload
            QueryExecutionError: On missing configuration, transport, deadline or decoding failures
        """
        if not self.host or not self.user or not self.password:
            logger.error("Query execution error: Missing ClickHouse connection details")
            raise QueryExecutionError("Missing ClickHouse connection details")

        params = {"query": query.sql, "default_format": "JSONEachRow"}
        params.update(query.http_params())
        deadline = self.clock() + self.timeout

        try:
            response = requests.post(
                self.host,
                params=params,
                auth=(self.user, self.password),
                timeout=self.timeout,
                stream=True,
            )
        except requests.RequestException as e:
            logger.error(f"Query execution error: {str(e)}")
            raise QueryExecutionError(str(e))

        with response:
            try:
                response.raise_for_status()
            except requests.HTTPError as e:
                details = self._read_body(response, deadline)
                if not details.strip():
                    logger.error(f"Query execution error: {str(e)}")
                    raise QueryExecutionError(str(e))
                logger.error(f"ClickHouse error response ({response.status_code}): {details}")
                raise ClickHouseError(details)

            return self.parse_rows(self._read_body(response, deadline))

    def _read_body(self, response: requests.Response, deadline: float) -> str:
        chunks = []
        try:
            for chunk in response.iter_content(chunk_size=_READ_CHUNK_SIZE):
                if self.clock() > deadline:
                    logger.error(f"Query execution error: response not complete after {self.timeout}s")
                    raise QueryExecutionError(f"Read timed out after {self.timeout}s")
                chunks.append(chunk)
        except requests.RequestException as e:
            logger.error(f"Query execution error: {str(e)}")
            raise QueryExecutionError(str(e))
        return b"".join(chunks).decode("utf-8", errors="replace")

    @staticmethod
    def parse_rows(body: str) -> List[Dict[str, Any]]:
        """Decode a JSONEachRow body, one JSON object per line"""
        rows = []
        for line in body.splitlines():
            if not line.strip():
                continue
            try:
                rows.append(json.loads(line))
            except ValueError as e:
                logger.error(f"Query execution error: undecodable row {line!r}")
                raise QueryExecutionError(f"Invalid JSON row in response: {str(e)}")
        return rows


def build_executor(settings: Settings) -> QueryExecutor:
    """Pick the mock or live strategy from the settings"""
    if settings.mock_mode:
        logger.info("Serving mock metric data (development mode)")
        return MockQueryExecutor()

    return ClickHouseQueryExecutor(
        host=settings.CLICKHOUSE_HOST,
        user=settings.CLICKHOUSE_USER,
        password=settings.CLICKHOUSE_PASSWORD,
        timeout=settings.CLICKHOUSE_TIMEOUT_SECONDS,
    )
