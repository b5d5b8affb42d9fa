"""Tests for the Azure Cost Management collector."""

import logging

import pytest
import requests

from azguard.collectors.azure_cost_management import CostManagementCollector, normalize_usage_date
from azguard.exceptions import SubscriptionNotConfiguredError, TokenError, UpstreamError
from azguard.storage.models import GroupBy

from conftest import SUBSCRIPTION_ID, FakeResponse, FakeSession, FakeTokenSource


def make_collector(*responses, subscription_id=SUBSCRIPTION_ID, token_source=None):
    """Helper to create a collector over a fake session."""
    session = FakeSession(*responses)
    collector = CostManagementCollector(
        subscription_id=subscription_id,
        token_source=token_source or FakeTokenSource(),
        timeout=12.5,
        session=session,
    )
    return collector, session


class TestQueryBodies:
    """Tests for query body construction."""

    def test_actual_cost_query(self):
        collector, _ = make_collector()
        body = collector.build_query("2024-03-01", "2024-03-31")

        assert body["type"] == "ActualCost"
        assert body["timeframe"] == "Custom"
        assert body["timePeriod"] == {"from": "2024-03-01", "to": "2024-03-31"}
        assert body["dataset"]["granularity"] == "Daily"
        assert body["dataset"]["aggregation"] == {"costTotal": {"name": "Cost", "function": "Sum"}}
        assert body["dataset"]["grouping"] == [{"type": "Dimension", "name": "ServiceName"}]

    def test_resource_group_query(self):
        collector, _ = make_collector()
        body = collector.build_query("2024-03-01", "2024-03-31", GroupBy.RESOURCE_GROUP)
        assert body["dataset"]["grouping"] == [{"type": "Dimension", "name": "ResourceGroup"}]

    def test_forecast_query(self):
        collector, _ = make_collector()
        body = collector.build_forecast_query()

        assert body["type"] == "Forecast"
        assert body["timeframe"] == "BillingMonthToDate"
        assert body["dataset"]["granularity"] == "Monthly"
        assert "timePeriod" not in body
        assert "grouping" not in body["dataset"]

    def test_query_url(self):
        collector, _ = make_collector()
        assert collector.query_url == (
            f"https://management.azure.com/subscriptions/{SUBSCRIPTION_ID}"
            "/providers/Microsoft.CostManagement/query?api-version=2023-03-01"
        )


class TestQueryCosts:
    """Tests for submitting cost queries."""

    def test_query_by_service(self, cost_query_payload):
        token_source = FakeTokenSource("abc")
        collector, session = make_collector(
            FakeResponse(200, cost_query_payload), token_source=token_source
        )

        result = collector.query_costs_by_service("2024-03-01", "2024-03-31")

        assert [item.service_name for item in result.records] == ["Virtual Machines", "Storage"]
        assert result.total_cost == 80.0
        assert result.currency == "USD"

        request = session.requests[0]
        assert request["method"] == "POST"
        assert request["headers"]["Authorization"] == "Bearer abc"
        assert request["headers"]["Content-Type"] == "application/json"
        assert request["timeout"] == 12.5
        assert request["json"]["timePeriod"]["from"] == "2024-03-01"
        assert token_source.calls == 1

    def test_query_by_resource_group(self):
        payload = {
            "value": [
                {
                    "name": {"value": "prod-rg"},
                    "properties": {
                        "cost": 12.0,
                        "currency": "USD",
                        "usageDate": {"value": 20240301},
                        "serviceName": "Storage",
                    },
                }
            ]
        }
        collector, _ = make_collector(FakeResponse(200, payload))

        result = collector.query_costs_by_resource_group("2024-03-01", "2024-03-31")

        item = result.records[0]
        assert item.resource_group == "prod-rg"
        assert item.service_name == "Storage"

    def test_missing_subscription(self):
        collector, session = make_collector(subscription_id=None)
        with pytest.raises(SubscriptionNotConfiguredError):
            collector.query_costs_by_service("2024-03-01", "2024-03-31")
        assert session.requests == []

    def test_token_failure_propagates(self):
        class FailingTokenSource:
            def acquire(self):
                raise TokenError("not logged in")

        collector, session = make_collector(token_source=FailingTokenSource())
        with pytest.raises(TokenError):
            collector.query_costs_by_service("2024-03-01", "2024-03-31")
        assert session.requests == []

    def test_non_2xx_status(self):
        collector, _ = make_collector(FakeResponse(429, text="Too many requests"))
        with pytest.raises(UpstreamError) as exc_info:
            collector.query_costs_by_service("2024-03-01", "2024-03-31")

        assert exc_info.value.status == 429
        assert exc_info.value.body == "Too many requests"
        assert "429" in str(exc_info.value)

    def test_transport_error(self):
        collector, _ = make_collector(requests.ConnectionError("connection refused"))
        with pytest.raises(UpstreamError):
            collector.query_costs_by_service("2024-03-01", "2024-03-31")

    def test_invalid_json(self):
        collector, _ = make_collector(FakeResponse(200, payload=None, text="<html>"))
        with pytest.raises(UpstreamError):
            collector.query_costs_by_service("2024-03-01", "2024-03-31")

    def test_forecast(self):
        payload = {
            "value": [
                {"properties": {"cost": 120.5, "currency": "EUR"}},
                {"properties": {"cost": 9.5, "currency": "EUR"}},
            ]
        }
        collector, session = make_collector(FakeResponse(200, payload))

        result = collector.get_forecast()

        assert result.total_cost == 130.0
        assert result.currency == "EUR"
        assert result.records == []
        assert session.requests[0]["json"]["type"] == "Forecast"


class TestParseResponse:
    """Tests for response normalization."""

    def test_empty_payload(self):
        collector, _ = make_collector()
        result = collector.parse_response({})
        assert result.records == []
        assert result.total_cost == 0
        assert result.currency == "USD"

    def test_normalizes_dates(self, cost_query_payload):
        collector, _ = make_collector()
        result = collector.parse_response(cost_query_payload)
        assert [item.date for item in result.records] == ["2024-03-05", "2024-03-06"]

    @pytest.mark.parametrize("cost", [None, "abc", -1.0, float("inf"), float("nan")])
    def test_skips_invalid_cost(self, cost, caplog):
        collector, _ = make_collector()
        payload = {
            "value": [
                {"name": {"value": "Bad"}, "properties": {"cost": cost, "usageDate": {"value": 20240301}}},
                {"name": {"value": "Good"}, "properties": {"cost": 2.0, "usageDate": {"value": 20240301}}},
            ]
        }

        with caplog.at_level(logging.WARNING):
            result = collector.parse_response(payload)

        assert [item.service_name for item in result.records] == ["Good"]
        assert result.total_cost == 2.0
        assert "invalid cost" in caplog.text

    def test_skips_item_without_date(self):
        collector, _ = make_collector()
        payload = {"value": [{"name": {"value": "VM"}, "properties": {"cost": 3.0}}]}
        assert collector.parse_response(payload).records == []

    def test_missing_name_is_unknown(self):
        collector, _ = make_collector()
        payload = {"value": [{"properties": {"cost": 3.0, "usageDate": {"value": 20240301}}}]}
        assert collector.parse_response(payload).records[0].service_name == "Unknown"

    def test_mixed_currency_keeps_last(self, caplog):
        collector, _ = make_collector()
        payload = {
            "value": [
                {"name": {"value": "A"}, "properties": {"cost": 1.0, "currency": "USD", "usageDate": {"value": 20240301}}},
                {"name": {"value": "B"}, "properties": {"cost": 2.0, "currency": "EUR", "usageDate": {"value": 20240301}}},
            ]
        }

        with caplog.at_level(logging.WARNING):
            result = collector.parse_response(payload)

        assert result.currency == "EUR"
        assert [item.currency for item in result.records] == ["USD", "EUR"]
        assert "mixes currencies" in caplog.text

    def test_missing_item_currency_uses_batch_currency(self):
        collector, _ = make_collector()
        payload = {
            "value": [
                {"name": {"value": "A"}, "properties": {"cost": 1.0, "usageDate": {"value": 20240301}}},
                {"name": {"value": "B"}, "properties": {"cost": 2.0, "currency": "EUR", "usageDate": {"value": 20240301}}},
            ]
        }
        result = collector.parse_response(payload)
        assert [item.currency for item in result.records] == ["EUR", "EUR"]


class TestNormalizeUsageDate:
    """Tests for usage date normalization."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            (20240105, "2024-01-05"),
            ("20240105", "2024-01-05"),
            ("2024-01-05", "2024-01-05"),
            ("2024-01-05T00:00:00Z", "2024-01-05"),
            (None, ""),
        ],
    )
    def test_formats(self, value, expected):
        assert normalize_usage_date(value) == expected
