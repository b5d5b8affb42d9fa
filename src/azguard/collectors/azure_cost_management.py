"""Azure Cost Management query collector."""

from __future__ import annotations

import logging
import math
from typing import Any

import requests

from azguard.auth.credentials import TokenSource
from azguard.collectors.base import CostCollector, CostItem, CostQueryResult
from azguard.exceptions import SubscriptionNotConfiguredError, UpstreamError
from azguard.storage.models import GroupBy

logger = logging.getLogger(__name__)

AZURE_MANAGEMENT_URL = "https://management.azure.com"
COST_MANAGEMENT_API_VERSION = "2023-03-01"
DEFAULT_CURRENCY = "USD"
UNKNOWN_SERVICE = "Unknown"


class CostManagementCollector(CostCollector):
    """
    Query the Azure Cost Management API and normalize the results.

    Builds ActualCost and Forecast query bodies, submits them with a bearer
    token from the injected token source, and parses each returned line item
    into a CostItem.

    Known limitation: a response mixing currencies reports only the last
    currency seen as the batch currency. No conversion is attempted.
    """

    collector_name = "azure_cost_management"

    def __init__(
        self,
        subscription_id: str | None,
        token_source: TokenSource,
        timeout: float = 60.0,
        session: requests.Session | None = None,
        base_url: str = AZURE_MANAGEMENT_URL,
        api_version: str = COST_MANAGEMENT_API_VERSION,
    ):
        """
        Initialize the collector.

        Args:
            subscription_id: Azure subscription to query.
            token_source: Source of bearer tokens (see azguard.auth).
            timeout: Request timeout in seconds.
            session: Optional requests session.
            base_url: Management endpoint root.
            api_version: Cost Management API version.
        """
        self._subscription_id = subscription_id
        self.token_source = token_source
        self.timeout = timeout
        self.base_url = base_url.rstrip("/")
        self.api_version = api_version
        self._session = session

    @property
    def subscription_id(self) -> str | None:
        return self._subscription_id

    @property
    def session(self) -> requests.Session:
        """Get or create the HTTP session."""
        if self._session is None:
            self._session = requests.Session()
        return self._session

    @property
    def query_url(self) -> str:
        return (
            f"{self.base_url}/subscriptions/{self._subscription_id}"
            f"/providers/Microsoft.CostManagement/query?api-version={self.api_version}"
        )

    # =========================================================================
    # Query bodies
    # =========================================================================

    def build_query(
        self,
        start_date: str,
        end_date: str,
        dimension: GroupBy = GroupBy.SERVICE_NAME,
        granularity: str = "Daily",
    ) -> dict[str, Any]:
        """Build an ActualCost query for a custom time period grouped by one dimension."""
        return {
            "type": "ActualCost",
            "timeframe": "Custom",
            "timePeriod": {"from": start_date, "to": end_date},
            "dataset": {
                "granularity": granularity,
                "aggregation": {"costTotal": {"name": "Cost", "function": "Sum"}},
                "grouping": [{"type": "Dimension", "name": GroupBy(dimension).value}],
            },
        }

    def build_forecast_query(self, granularity: str = "Monthly") -> dict[str, Any]:
        """Build a Forecast query. Forecasts carry no time period and no grouping."""
        return {
            "type": "Forecast",
            "timeframe": "BillingMonthToDate",
            "dataset": {
                "granularity": granularity,
                "aggregation": {"costTotal": {"name": "Cost", "function": "Sum"}},
            },
        }

    # =========================================================================
    # Queries
    # =========================================================================

    def query_costs(
        self,
        start_date: str,
        end_date: str,
        dimension: GroupBy = GroupBy.SERVICE_NAME,
    ) -> CostQueryResult:
        logger.info(
            "Querying Azure costs by %s from %s to %s",
            GroupBy(dimension).value,
            start_date,
            end_date,
        )
        payload = self._post(self.build_query(start_date, end_date, dimension), "cost query")
        return self.parse_response(payload, dimension)

    def get_forecast(self, granularity: str = "Monthly") -> CostQueryResult:
        payload = self._post(self.build_forecast_query(granularity), "forecast request")
        result = self.parse_response(payload, require_date=False)
        return CostQueryResult(total_cost=result.total_cost, currency=result.currency)

    def _post(self, body: dict[str, Any], description: str) -> dict[str, Any]:
        """
        POST a query body and return the decoded JSON response.

        Raises:
            SubscriptionNotConfiguredError: If no subscription ID is set.
            TokenError: If the token source fails.
            UpstreamError: On transport failure, non-2xx status, or invalid JSON.
        """
        if not self._subscription_id:
            raise SubscriptionNotConfiguredError()

        token = self.token_source.acquire()

        try:
            response = self.session.post(
                self.query_url,
                json=body,
                headers={
                    "Authorization": f"Bearer {token}",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise UpstreamError(f"{description} failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise UpstreamError(
                f"{description} failed with status {response.status_code}: {response.text}",
                status=response.status_code,
                body=response.text,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamError(
                f"{description} returned invalid JSON: {e}",
                status=response.status_code,
                body=response.text,
            ) from e

        if not isinstance(payload, dict):
            raise UpstreamError(
                f"{description} returned an unexpected payload",
                status=response.status_code,
                body=response.text,
            )
        return payload

    # =========================================================================
    # Response parsing
    # =========================================================================

    def parse_response(
        self,
        payload: dict[str, Any],
        dimension: GroupBy = GroupBy.SERVICE_NAME,
        require_date: bool = True,
    ) -> CostQueryResult:
        """
        Parse a Cost Management response into canonical cost items.

        The item label (name.value) fills the grouped dimension. Items whose
        cost is not a finite, non-negative number are skipped, as are items
        without a usage date when require_date is set.
        """
        items: list[CostItem] = []
        total_cost = 0.0
        currency = ""
        currencies_seen: set[str] = set()

        for raw in payload.get("value") or []:
            properties = raw.get("properties") or {}

            cost = _parse_cost(properties.get("cost"))
            if cost is None:
                logger.warning(
                    "Skipping cost item %s with invalid cost %r",
                    raw.get("id"),
                    properties.get("cost"),
                )
                continue

            usage_date = normalize_usage_date((properties.get("usageDate") or {}).get("value"))
            if require_date and not usage_date:
                logger.warning("Skipping cost item %s without a usage date", raw.get("id"))
                continue

            label = (raw.get("name") or {}).get("value") or None
            service_name = properties.get("serviceName") or None
            resource_group = properties.get("resourceGroup") or None
            if dimension == GroupBy.RESOURCE_GROUP:
                resource_group = label or resource_group
            else:
                service_name = label or service_name

            item_currency = properties.get("currency") or ""
            if item_currency:
                currency = item_currency
                currencies_seen.add(item_currency)

            items.append(
                CostItem(
                    service_name=service_name or UNKNOWN_SERVICE,
                    resource_group=resource_group,
                    cost=cost,
                    currency=item_currency,
                    date=usage_date,
                )
            )
            total_cost += cost

        currency = currency or DEFAULT_CURRENCY
        if len(currencies_seen) > 1:
            logger.warning(
                "Response mixes currencies %s; reporting totals as %s",
                sorted(currencies_seen),
                currency,
            )

        for item in items:
            if not item.currency:
                item.currency = currency

        return CostQueryResult(records=items, total_cost=total_cost, currency=currency)


def _parse_cost(value: Any) -> float | None:
    try:
        cost = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(cost) or cost < 0:
        return None
    return cost


def normalize_usage_date(value: Any) -> str:
    """
    Normalize a usage date to YYYY-MM-DD.

    Cost Management may report dates as 20240105 (int or string), as
    2024-01-05, or as a full timestamp.
    """
    if value is None:
        return ""
    text = str(value).strip()
    if len(text) == 8 and text.isdigit():
        return f"{text[:4]}-{text[4:6]}-{text[6:]}"
    return text[:10]
