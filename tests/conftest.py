"""Pytest configuration and fixtures."""

from datetime import date

import pytest

from azguard.collectors.base import CostCollector, CostItem, CostQueryResult
from azguard.config.schema import Config
from azguard.cost.service import CostService
from azguard.exceptions import UpstreamError
from azguard.storage.models import CostRecord, GroupBy
from azguard.storage.sqlite import SQLiteStorage

SUBSCRIPTION_ID = "12345678-1234-1234-1234-123456789012"


class FakeTokenSource:
    """Token source that hands out a fixed token and counts calls."""

    def __init__(self, token: str = "test-token"):
        self.token = token
        self.calls = 0

    def acquire(self) -> str:
        self.calls += 1
        return self.token


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, status_code: int = 200, payload=None, text: str | None = None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else ("" if payload is None else str(payload))

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class FakeSession:
    """Records requests and replays queued responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def _next(self, method, url, **kwargs):
        self.requests.append({"method": method, "url": url, **kwargs})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def post(self, url, **kwargs):
        return self._next("POST", url, **kwargs)

    def get(self, url, **kwargs):
        return self._next("GET", url, **kwargs)


class FakeCollector(CostCollector):
    """In-memory collector returning canned cost items."""

    def __init__(self, items=None, forecast=0.0, subscription_id=SUBSCRIPTION_ID):
        self.items = items if items is not None else []
        self.forecast = forecast
        self._subscription_id = subscription_id
        self.queries = []

    @property
    def subscription_id(self):
        return self._subscription_id

    def query_costs(self, start_date, end_date, dimension=GroupBy.SERVICE_NAME):
        self.queries.append((start_date, end_date, dimension))
        if isinstance(self.items, Exception):
            raise self.items
        return CostQueryResult(
            records=list(self.items),
            total_cost=sum(item.cost for item in self.items),
            currency=self.items[-1].currency if self.items else "USD",
        )

    def get_forecast(self, granularity="Monthly"):
        if isinstance(self.forecast, Exception):
            raise self.forecast
        return CostQueryResult(total_cost=self.forecast)


def make_record(
    service_name: str,
    cost: float,
    day: str,
    resource_group: str | None = None,
    currency: str = "USD",
) -> CostRecord:
    """Helper to create a test record."""
    return CostRecord(
        subscription_id=SUBSCRIPTION_ID,
        resource_group=resource_group,
        service_name=service_name,
        cost=cost,
        currency=currency,
        date=day,
    )


@pytest.fixture
def storage():
    """In-memory cost store."""
    with SQLiteStorage(":memory:") as store:
        yield store


@pytest.fixture
def sample_records():
    """Sample records across two months and two resource groups."""
    return [
        make_record("Virtual Machines", 30.0, "2024-03-01", "prod-rg"),
        make_record("Virtual Machines", 20.0, "2024-03-02", "prod-rg"),
        make_record("Storage", 30.0, "2024-03-02", "data-rg"),
        make_record("Storage", 10.0, "2024-02-15", None),
        make_record("Bandwidth", 5.0, "2024-02-20", "prod-rg"),
    ]


@pytest.fixture
def token_source():
    return FakeTokenSource()


@pytest.fixture
def fixed_today():
    """Clock pinned to mid-March 2024."""
    return lambda: date(2024, 3, 15)


@pytest.fixture
def sample_items():
    """Collector output: two services in March 2024."""
    return [
        CostItem(service_name="Virtual Machines", cost=50.0, currency="USD", date="2024-03-05"),
        CostItem(service_name="Storage", cost=30.0, currency="USD", date="2024-03-06"),
    ]


@pytest.fixture
def service(storage, sample_items, fixed_today):
    """Cost service over an in-memory store and a fake collector."""
    collector = FakeCollector(items=sample_items, forecast=95.0)
    return CostService(storage, collector, Config(), today=fixed_today)


@pytest.fixture
def upstream_error():
    return UpstreamError("cost query failed with status 500: boom", status=500, body="boom")


@pytest.fixture
def sample_config_dict():
    """Sample configuration dictionary."""
    return {
        "default_currency": "EUR",
        "azure": {
            "auth_method": "service_principal",
            "subscription_id": SUBSCRIPTION_ID,
            "tenant_id": "tenant-1",
            "client_id": "client-1",
            "client_secret": "s3cret",
        },
        "storage": {"path": "/tmp/azguard-test.db"},
        "analysis": {
            "stable_threshold_percent": 10,
            "average_months": 3,
        },
    }


@pytest.fixture
def cost_query_payload():
    """Cost Management query response grouped by ServiceName."""
    return {
        "value": [
            {
                "id": "item-1",
                "name": {"value": "Virtual Machines"},
                "properties": {
                    "cost": 50.0,
                    "currency": "USD",
                    "usageDate": {"value": 20240305},
                    "resourceGroup": "prod-rg",
                },
            },
            {
                "id": "item-2",
                "name": {"value": "Storage"},
                "properties": {
                    "cost": "30.0",
                    "currency": "USD",
                    "usageDate": {"value": "2024-03-06T00:00:00"},
                },
            },
        ]
    }
