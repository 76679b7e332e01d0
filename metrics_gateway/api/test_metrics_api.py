"""
Tests for metrics API endpoints
"""

import logging
import pytest
from datetime import timedelta
from fastapi.testclient import TestClient

from metrics_gateway.api.main import create_app
from metrics_gateway.config.settings import Settings
from metrics_gateway.core.date_range import utc_today
from metrics_gateway.core.errors import ClickHouseError
from metrics_gateway.core.executor import MockQueryExecutor

API_KEY = "test-secret"
METRIC_KEYS = ["queryCount", "dataSize", "queryDuration", "errorRate"]


def make_settings(**overrides):
    values = {
        "API_KEY": API_KEY,
        "NODE_ENV": "development",
        "USE_MOCK_DATA": True,
        "CLICKHOUSE_HOST": None,
        "CLICKHOUSE_USER": None,
        "CLICKHOUSE_PASSWORD": None,
        "CORS_ORIGINS": "",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def get_auth_headers(key=API_KEY):
    """Helper to create auth headers"""
    return {"X-API-Key": key}


class FailingForMetricExecutor(MockQueryExecutor):
    """Mock executor that fails for queries containing a given expression"""

    def __init__(self, signature, error):
        super().__init__()
        self.signature = signature
        self.error = error

    def execute(self, query):
        if self.signature in query.sql:
            raise self.error
        return super().execute(query)


@pytest.fixture
def client():
    """Client for an app serving mock data"""
    return TestClient(create_app(make_settings()))


def test_missing_api_key_is_rejected(client):
    """Test that requests without a key get 401"""
    response = client.get("/metrics")
    assert response.status_code == 401
    assert response.json() == {
        "error": "Unauthorized",
        "message": "Invalid or missing API key",
    }


def test_wrong_api_key_is_rejected(client):
    """Test that a mismatching key gets 401"""
    response = client.get("/metrics?metricId=queryCount", headers=get_auth_headers("wrong"))
    assert response.status_code == 401
    assert response.json()["error"] == "Unauthorized"


def test_api_key_is_case_sensitive(client):
    """Test that the key comparison is exact"""
    response = client.get("/metrics", headers=get_auth_headers(API_KEY.upper()))
    assert response.status_code == 401


@pytest.mark.parametrize("method,path", [
    ("GET", "/unknown"),
    ("POST", "/metrics"),
    ("DELETE", "/api/metrics"),
])
def test_every_path_and_method_requires_key(client, method, path):
    """Test that authentication runs before routing"""
    response = client.request(method, path)
    assert response.status_code == 401
    assert response.json()["error"] == "Unauthorized"


def test_unset_api_key_rejects_everything():
    """Test that an unconfigured key fails closed"""
    client = TestClient(create_app(make_settings(API_KEY=None)))
    response = client.get("/metrics", headers=get_auth_headers(""))
    assert response.status_code == 401


@pytest.mark.parametrize("path", ["/metrics", "/api/metrics", "/anything"])
def test_options_bypasses_authentication(client, path):
    """Test that preflight requests need no key and return an empty body"""
    response = client.options(path)
    assert response.status_code == 200
    assert response.content == b""


def test_options_with_key_returns_empty_body(client):
    """Test that preflight ignores a supplied key"""
    response = client.options("/metrics", headers=get_auth_headers("wrong"))
    assert response.status_code == 200
    assert response.content == b""


def test_unknown_metric_returns_400(client):
    """Test that an unknown metricId is a client error"""
    response = client.get("/metrics?metricId=cpuLoad", headers=get_auth_headers())
    assert response.status_code == 400
    assert response.json() == {"error": "InvalidMetric", "message": "Unknown metric: cpuLoad"}


def test_invalid_date_returns_400(client):
    """Test that a malformed date is rejected"""
    response = client.get(
        "/metrics?metricId=queryCount&from=2023-13-45",
        headers=get_auth_headers(),
    )
    assert response.status_code == 400
    assert response.json()["error"] == "InvalidDate"


def test_single_metric_round_trip(client):
    """Test that the requested dates come back as one point per day"""
    response = client.get(
        "/metrics?metricId=queryCount&from=2023-03-20&to=2023-03-22",
        headers=get_auth_headers(),
    )
    assert response.status_code == 200

    data = response.json()
    assert isinstance(data, list)
    assert [point["date"] for point in data] == ["2023-03-20", "2023-03-21", "2023-03-22"]
    for point in data:
        assert 500 <= point["value"] < 1500


def test_serverless_path_alias(client):
    """Test that /api/metrics serves the same endpoint"""
    response = client.get(
        "/api/metrics?metricId=errorRate&from=2023-03-20&to=2023-03-20",
        headers=get_auth_headers(),
    )
    assert response.status_code == 200
    assert len(response.json()) == 1
    assert 0 <= response.json()[0]["value"] < 2.0


def test_default_range_is_trailing_week(client):
    """Test that omitting from/to covers the last 7 days plus today"""
    response = client.get("/metrics?metricId=dataSize", headers=get_auth_headers())
    assert response.status_code == 200

    data = response.json()
    today = utc_today()
    assert len(data) == 8
    assert data[0]["date"] == (today - timedelta(days=7)).isoformat()
    assert data[-1]["date"] == today.isoformat()


def test_inverted_range_returns_empty_series(client):
    """Test that from > to is not an error"""
    response = client.get(
        "/metrics?metricId=queryDuration&from=2023-03-22&to=2023-03-20",
        headers=get_auth_headers(),
    )
    assert response.status_code == 200
    assert response.json() == []


def test_all_metrics_returns_every_key(client):
    """Test that omitting metricId returns a map of all series"""
    response = client.get(
        "/metrics?from=2024-06-03&to=2024-06-10",
        headers=get_auth_headers(),
    )
    assert response.status_code == 200

    data = response.json()
    assert list(data.keys()) == METRIC_KEYS
    for series in data.values():
        assert len(series) == 8


def test_all_metrics_survives_single_failure():
    """Test that one failing metric yields an empty series, not a 500"""
    app = create_app(make_settings())
    app.state.executor = FailingForMetricExecutor("sum(read_bytes)", ClickHouseError("boom"))
    client = TestClient(app)

    response = client.get("/metrics?from=2024-06-03&to=2024-06-05", headers=get_auth_headers())
    assert response.status_code == 200

    data = response.json()
    assert set(data.keys()) == set(METRIC_KEYS)
    assert data["dataSize"] == []
    assert len(data["queryCount"]) == 3


def test_clickhouse_error_carries_details():
    """Test that a backend error is reported with its payload"""
    app = create_app(make_settings())
    app.state.executor = FailingForMetricExecutor(
        "count()", ClickHouseError("Code: 60. DB::Exception: Table does not exist")
    )
    client = TestClient(app)

    response = client.get("/metrics?metricId=queryCount", headers=get_auth_headers())
    assert response.status_code == 500
    assert response.json() == {
        "error": "ClickHouseError",
        "message": "ClickHouse query error",
        "details": "Code: 60. DB::Exception: Table does not exist",
    }


def test_missing_clickhouse_config_is_server_error():
    """Test that live mode without credentials fails with ServerError"""
    client = TestClient(create_app(make_settings(NODE_ENV="production")))

    response = client.get("/metrics?metricId=queryCount", headers=get_auth_headers())
    assert response.status_code == 500
    assert response.json() == {
        "error": "ServerError",
        "message": "Failed to execute query: Missing ClickHouse connection details",
    }


def test_missing_clickhouse_config_all_metrics_degrades():
    """Test that the aggregate endpoint still answers 200 with empty series"""
    client = TestClient(create_app(make_settings(USE_MOCK_DATA=False)))

    response = client.get("/metrics", headers=get_auth_headers())
    assert response.status_code == 200
    assert response.json() == {key: [] for key in METRIC_KEYS}


def test_unexpected_row_shape_is_server_error():
    """Test that undecodable values become a ServerError"""
    class BadRowsExecutor:
        def execute(self, query):
            return [{"date": "2024-06-03", "value": "not-a-number"}]

    app = create_app(make_settings())
    app.state.executor = BadRowsExecutor()
    client = TestClient(app)

    response = client.get("/metrics?metricId=queryCount", headers=get_auth_headers())
    assert response.status_code == 500
    assert response.json()["error"] == "ServerError"


def test_unknown_path_after_auth_is_404(client):
    """Test that routing errors use the flat error body"""
    response = client.get("/nothing-here", headers=get_auth_headers())
    assert response.status_code == 404
    assert response.json()["error"] == "NotFound"


def test_metric_id_parameter_lists_metrics():
    """Test that the OpenAPI docs describe every metric key"""
    schema = create_app(make_settings()).openapi()
    parameters = {p["name"]: p for p in schema["paths"]["/metrics"]["get"]["parameters"]}

    description = parameters["metricId"]["description"]
    for key in METRIC_KEYS:
        assert f"{key}: " in description
    assert "/api/metrics" not in schema["paths"]


def test_response_has_request_id(client):
    """Test that the logging middleware tags responses"""
    response = client.get("/metrics?metricId=queryCount", headers=get_auth_headers())
    assert "X-Request-ID" in response.headers



def test_caller_request_id_is_reused(client):
    """Test that an incoming X-Request-ID is echoed back"""
    headers = {**get_auth_headers(), "X-Request-ID": "dash-42"}
    response = client.get("/metrics?metricId=queryCount", headers=headers)
    assert response.headers["X-Request-ID"] == "dash-42"


def test_access_log_line(client, caplog):
    """Test one access line per request, warning level for rejections"""
    caplog.set_level(logging.INFO, logger="metrics_gateway.api.middlewares.logging_middleware")

    client.get("/metrics?metricId=queryCount", headers={**get_auth_headers(), "X-Request-ID": "ok-1"})
    client.get("/metrics", headers={"X-Request-ID": "denied-1"})

    lines = {
        record.getMessage().split("]")[0].lstrip("["): record
        for record in caplog.records
        if record.name == "metrics_gateway.api.middlewares.logging_middleware"
    }
    assert lines["ok-1"].levelno == logging.INFO
    assert "GET /metrics?metricId=queryCount -> 200" in lines["ok-1"].getMessage()
    assert lines["denied-1"].levelno == logging.WARNING
    assert "-> 401" in lines["denied-1"].getMessage()
    assert API_KEY not in caplog.text

@pytest.fixture
def cors_client():
    """Client for an app allowing one browser origin"""
    return TestClient(create_app(make_settings(CORS_ORIGINS="https://dash.example.com")))


def preflight_headers(origin, request_headers="X-API-Key"):
    return {
        "Origin": origin,
        "Access-Control-Request-Method": "GET",
        "Access-Control-Request-Headers": request_headers,
    }


def test_cors_preflight_allowed_origin(cors_client):
    """Test that an allowed origin gets CORS headers and an empty body"""
    response = cors_client.options("/metrics", headers=preflight_headers("https://dash.example.com"))

    assert response.status_code == 200
    assert response.content == b""
    assert response.headers["access-control-allow-origin"] == "https://dash.example.com"
    assert "X-API-Key" in response.headers["access-control-allow-headers"]
    assert "GET" in response.headers["access-control-allow-methods"]


@pytest.mark.parametrize("headers", [
    preflight_headers("https://evil.example.com"),
    preflight_headers("https://dash.example.com", request_headers="X-Custom-Header"),
    {"Origin": "https://dash.example.com"},
    {},
])
def test_cors_preflight_always_empty_200(cors_client, headers):
    """Test that no preflight is ever rejected or given a body"""
    response = cors_client.options("/api/metrics", headers=headers)

    assert response.status_code == 200
    assert response.content == b""


def test_cors_preflight_disallowed_origin_gets_no_cors_headers(cors_client):
    """Test that unknown origins are not granted access"""
    response = cors_client.options("/metrics", headers=preflight_headers("https://evil.example.com"))

    assert response.status_code == 200
    assert "access-control-allow-origin" not in response.headers


def test_cors_decorates_get_responses(cors_client):
    """Test that GET responses, including 401s, carry the allowed origin"""
    origin = {"Origin": "https://dash.example.com"}

    rejected = cors_client.get("/metrics", headers=origin)
    assert rejected.status_code == 401
    assert rejected.headers["access-control-allow-origin"] == "https://dash.example.com"

    accepted = cors_client.get(
        "/metrics?metricId=queryCount&from=2024-06-03&to=2024-06-03",
        headers={**origin, **get_auth_headers()},
    )
    assert accepted.status_code == 200
    assert accepted.headers["access-control-allow-origin"] == "https://dash.example.com"


def test_cors_disabled_preflight_has_no_cors_headers(client):
    """Test that without configured origins preflights are bare"""
    response = client.options("/metrics", headers=preflight_headers("https://dash.example.com"))

    assert response.status_code == 200
    assert response.content == b""
    assert "access-control-allow-origin" not in response.headers
