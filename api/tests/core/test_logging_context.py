"""Tests for request context, log filtering and the request middleware."""

from uuid import uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.core.context import (
    RequestContext,
    clear_context,
    get_context,
    get_request_id,
    set_correlation_id,
    set_request_id,
    set_user_id,
)
from src.core.logging import add_context_processor, filter_sensitive_data
from src.core.middleware import RequestContextMiddleware, extract_traceparent


@pytest.fixture(autouse=True)
def _clean_context():
    clear_context()
    yield
    clear_context()


class TestContext:
    def test_set_request_id_generates_when_missing(self) -> None:
        generated = set_request_id()

        assert generated
        assert get_request_id() == generated

    def test_get_context_skips_empty_values(self) -> None:
        set_request_id("req-1")
        set_user_id(None)

        assert get_context() == {"request_id": "req-1"}

    def test_user_id_is_stored_as_string(self) -> None:
        user_id = uuid4()

        set_user_id(user_id)

        assert get_context()["user_id"] == str(user_id)

    def test_clear_context(self) -> None:
        set_request_id("req-1")
        set_correlation_id("corr-1")

        clear_context()

        assert get_context() == {}

    def test_request_context_restores_previous_values(self) -> None:
        set_request_id("outer")

        with RequestContext(request_id="inner", user_id="user-7", trace_id="trace-1"):
            assert get_context() == {
                "request_id": "inner",
                "user_id": "user-7",
                "trace_id": "trace-1",
            }

        assert get_context() == {"request_id": "outer"}


class TestLogProcessors:
    def test_context_is_added_to_events(self) -> None:
        set_request_id("req-42")

        event = add_context_processor(None, "info", {"event": "lesson_toggled"})

        assert event["request_id"] == "req-42"

    @pytest.mark.parametrize(
        "key,value,expected",
        [
            ("transaction_id", "tx-123456", "tx*****56"),
            ("authorization", "Bearer abc", "Be******bc"),
            ("api_key", "abcd", "***"),
            ("course_id", "c-123456", "c-123456"),
            ("token", 12345, 12345),
        ],
    )
    def test_sensitive_values_are_masked(self, key, value, expected) -> None:
        event = filter_sensitive_data(None, "info", {"event": "x", key: value})

        assert event[key] == expected

    def test_nested_dicts_are_masked(self) -> None:
        event = filter_sensitive_data(
            None,
            "info",
            {"event": "enrolled", "payment": {"transaction_id": "tx-999999", "amount": "20"}},
        )

        assert event["payment"] == {"transaction_id": "tx*****99", "amount": "20"}


class TestMiddleware:
    @pytest.mark.parametrize(
        "header,expected",
        [
            ("00-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b7-01", "4bf92f3577b34da6a3ce929d0e0e4736"),
            ("garbage", None),
            (None, None),
        ],
    )
    def test_extract_traceparent(self, header, expected) -> None:
        assert extract_traceparent(header) == expected

    @pytest.fixture
    def client(self) -> TestClient:
        app = FastAPI()
        app.add_middleware(RequestContextMiddleware)

        @app.get("/context")
        async def context_endpoint():
            return get_context()

        return TestClient(app)

    def test_request_id_is_echoed(self, client) -> None:
        response = client.get("/context", headers={"X-Request-ID": "req-abc"})

        assert response.headers["X-Request-ID"] == "req-abc"
        assert response.json()["request_id"] == "req-abc"

    def test_request_id_is_generated(self, client) -> None:
        response = client.get("/context")

        assert response.headers["X-Request-ID"]
        assert response.json()["request_id"] == response.headers["X-Request-ID"]

    def test_trace_and_correlation_ids(self, client) -> None:
        response = client.get(
            "/context",
            headers={
                "traceparent": "00-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b7-01",
                "X-Correlation-ID": "corr-9",
            },
        )

        body = response.json()
        assert body["trace_id"] == "4bf92f3577b34da6a3ce929d0e0e4736"
        assert body["correlation_id"] == "corr-9"
