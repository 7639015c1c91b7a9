"""Tests for the card query record source.

Test Strategy:
1. Test row parsing (order records, brand ratings, column-oriented payloads)
2. Test client-side date filtering in the challenge timezone
3. Test the HTTP client against httpx.MockTransport (request shape, auth headers)
4. Test the circuit breaker decorator

Each test follows the pattern:
- Given: Raw card rows or a mocked HTTP transport
- When: A parser or client method is called
- Then: Parsed records / request details match expectations
"""
import json
from datetime import date, datetime

import httpx
import pytest
from pybreaker import CircuitBreaker, CircuitBreakerError

from dailychallenge.core.circuit_breaker import get_breaker_state, with_circuit_breaker
from dailychallenge.core.config import settings
from dailychallenge.services.aggregation.record_source import (
    CardQueryRecordSource,
    OrderRecord,
    filter_records_for_date,
    parse_brand_ratings,
    parse_order_record,
    rows_from_card_response,
)


def card_payload(columns, rows):
    return {"data": {"cols": [{"display_name": c} for c in columns], "rows": rows}}


ORDER_COLUMNS = [
    "ID", "Status", "OrderDate", "Quantity", "TotalPrice",
    "ProductManufacturer", "ProductStrainName", "Product", "PharmacyName", "ProductBrand",
]


class TestParsing:

    def test_parse_order_record(self):
        record = parse_order_record({
            "ID": 42,
            "Status": "completed",
            "OrderDate": "2026-01-15T10:30:00Z",
            "Quantity": "12.5",
            "TotalPrice": 99.9,
            "ProductManufacturer": " Acme ",
            "ProductStrainName": "",
            "Product": "Acme 22/1",
            "PharmacyName": None,
            "ProductBrand": "Acme",
        })

        assert record.order_id == "42"
        assert record.order_date == datetime(2026, 1, 15, 10, 30)
        assert record.quantity == 12.5
        assert record.total_price == 99.9
        assert record.manufacturer == "Acme"
        assert record.strain is None
        assert record.pharmacy is None

    def test_malformed_numbers_become_zero(self):
        record = parse_order_record({"Quantity": "lots", "TotalPrice": None, "OrderDate": "not a date"})

        assert record.quantity == 0.0
        assert record.total_price == 0.0
        assert record.order_date is None

    @pytest.mark.parametrize("value", ["NaN", "nan", "Infinity", "-Infinity", "inf"])
    def test_non_finite_numbers_become_zero(self, value):
        record = parse_order_record({"Quantity": value, "TotalPrice": value})

        assert record.quantity == 0.0
        assert record.total_price == 0.0

    def test_offset_timestamps_convert_to_utc(self):
        record = parse_order_record({"OrderDate": "2026-01-15T00:30:00+01:00"})
        assert record.order_date == datetime(2026, 1, 14, 23, 30)

    def test_parse_brand_ratings_aggregated_columns(self):
        ratings = parse_brand_ratings({
            "Name": "Acme",
            "Sum of TotalRatings": 14,
            "Average of AverageRating": 4.4,
            "Average of BayesianAverage": 3.9,
        })

        assert ratings.name == "Acme"
        assert ratings.total_ratings == 14
        assert ratings.average_rating == 4.4
        assert ratings.bayesian_average == 3.9

    def test_parse_brand_ratings_plain_columns(self):
        ratings = parse_brand_ratings({"name": "Zen", "totalRatings": "3", "averageRating": "5"})

        assert ratings.total_ratings == 3
        assert ratings.bayesian_average == 0.0

    def test_brand_row_without_name_is_skipped(self):
        assert parse_brand_ratings({"Sum of TotalRatings": 3}) is None

    def test_rows_from_card_response(self):
        payload = card_payload(["A", "B"], [[1, 2], [3, 4]])
        assert rows_from_card_response(payload) == [{"A": 1, "B": 2}, {"A": 3, "B": 4}]

    def test_empty_card_response(self):
        assert rows_from_card_response({}) == []


class TestFilterRecordsForDate:
    """Orders belong to the challenge-local calendar day."""

    def test_local_midnight_boundary(self):
        # Europe/Berlin is UTC+1 in January
        records = [
            OrderRecord(order_id="late", order_date=datetime(2026, 1, 14, 23, 30)),   # 00:30 local on the 15th
            OrderRecord(order_id="early", order_date=datetime(2026, 1, 14, 22, 30)),  # 23:30 local on the 14th
            OrderRecord(order_id="noon", order_date=datetime(2026, 1, 15, 11, 0)),
            OrderRecord(order_id="undated", order_date=None),
        ]

        kept = filter_records_for_date(records, date(2026, 1, 15), "Europe/Berlin")

        assert [r.order_id for r in kept] == ["late", "noon"]


class TestCardQueryRecordSource:
    """HTTP client against a mocked transport."""

    @pytest.fixture(autouse=True)
    def reset_breaker(self):
        from dailychallenge.core.circuit_breaker import record_source_breaker
        record_source_breaker.close()
        yield
        record_source_breaker.close()

    @pytest.mark.asyncio
    async def test_fetch_records_for_date_sends_date_parameter(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=card_payload(ORDER_COLUMNS, [
                [1, "completed", "2026-01-15T09:00:00Z", 5, 50.0, "Acme", "Gelato", "Gelato 20/1", "Apo", "Acme"],
            ]))

        source = CardQueryRecordSource(
            base_url="http://bi.test", api_key="mb_secret", transport=httpx.MockTransport(handler)
        )
        records = await source.fetch_records_for_date(date(2026, 1, 15))

        assert len(records) == 1
        assert records[0].strain == "Gelato"

        request = requests[0]
        assert request.url.path == f"/api/card/{settings.DATE_FILTERED_CARD_ID}/query"
        assert request.headers["X-API-KEY"] == "mb_secret"
        body = json.loads(request.content)
        assert body["parameters"][0]["value"] == "2026-01-15"
        assert body["parameters"][0]["target"] == ["variable", ["template-tag", "date"]]

    @pytest.mark.asyncio
    async def test_fetch_all_records_uses_session_header(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=card_payload(ORDER_COLUMNS, []))

        source = CardQueryRecordSource(
            base_url="http://bi.test", api_key="session-token", transport=httpx.MockTransport(handler)
        )
        records = await source.fetch_all_records()

        assert records == []
        assert requests[0].url.path == f"/api/card/{settings.ALL_ORDERS_CARD_ID}/query"
        assert requests[0].headers["X-Metabase-Session"] == "session-token"
        assert json.loads(requests[0].content) == {}

    @pytest.mark.asyncio
    async def test_brand_ratings_skipped_when_card_unconfigured(self, monkeypatch):
        monkeypatch.setattr(settings, "BRAND_RATINGS_CARD_ID", None)

        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        source = CardQueryRecordSource(base_url="http://bi.test", transport=httpx.MockTransport(handler))

        assert await source.fetch_brand_ratings() == []

    @pytest.mark.asyncio
    async def test_fetch_brand_ratings(self, monkeypatch):
        monkeypatch.setattr(settings, "BRAND_RATINGS_CARD_ID", 1300)

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/card/1300/query"
            return httpx.Response(200, json=card_payload(
                ["Name", "Sum of TotalRatings", "Average of AverageRating", "Average of BayesianAverage"],
                [["Acme", 9, 4.1, 3.8], [None, 1, 5, 5]],
            ))

        source = CardQueryRecordSource(base_url="http://bi.test", transport=httpx.MockTransport(handler))
        ratings = await source.fetch_brand_ratings()

        assert [r.name for r in ratings] == ["Acme"]
        assert ratings[0].total_ratings == 9


class TestCircuitBreakerDecorator:

    @pytest.mark.asyncio
    async def test_successes_pass_through(self):
        breaker = CircuitBreaker(fail_max=2, reset_timeout=60, name="test")

        @with_circuit_breaker(breaker)
        async def ok():
            return "done"

        assert await ok() == "done"
        assert get_breaker_state(breaker) == "closed"

    @pytest.mark.asyncio
    async def test_opens_after_repeated_failures(self):
        breaker = CircuitBreaker(fail_max=2, reset_timeout=60, name="test")
        calls = []

        @with_circuit_breaker(breaker)
        async def flaky():
            calls.append(1)
            raise ValueError("upstream down")

        with pytest.raises(ValueError):
            await flaky()
        with pytest.raises((ValueError, CircuitBreakerError)):
            await flaky()

        assert get_breaker_state(breaker) == "open"
        with pytest.raises(CircuitBreakerError):
            await flaky()
