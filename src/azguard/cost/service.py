"""Cost service: fetch, persist and derive views from stored billing data."""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime, timedelta
from typing import Callable

from pydantic import ValidationError

from azguard.analysis.alert_evaluator import AlertEvaluator, AlertResult
from azguard.analysis.trend import TrendAnalysis, analyze_trend
from azguard.collectors.base import CostCollector
from azguard.config.schema import Config
from azguard.cost.models import CostReport, CostSummary, Forecast, ServiceCost
from azguard.cost.periods import (
    current_month_date_range,
    first_of_month,
    last_n_days_range,
    last_n_months_range,
    month_key,
    utc_today,
)
from azguard.exceptions import AzGuardError, ConfigurationError, UpstreamError
from azguard.storage.models import Alert, CostFilter, CostRecord, GroupBy
from azguard.storage.sqlite import SQLiteStorage

logger = logging.getLogger(__name__)


class CostService:
    """
    Orchestrate cost collection and analysis.

    Holds no state of its own: every view is recomputed from the store on
    each call. Network access happens only in fetch_and_store_costs,
    get_current_costs, get_forecast and generate_report.
    """

    def __init__(
        self,
        storage: SQLiteStorage,
        collector: CostCollector,
        config: Config | None = None,
        today: Callable[[], date] = utc_today,
    ):
        """
        Initialize the service.

        Args:
            storage: Local cost store.
            collector: Billing data collector for the configured subscription.
            config: Application config. Defaults to Config().
            today: Clock returning the current UTC date.
        """
        self.storage = storage
        self.collector = collector
        self.config = config or Config()
        self._today = today
        self.alert_evaluator = AlertEvaluator()

    # =========================================================================
    # Fetching
    # =========================================================================

    def fetch_and_store_costs(self, start_date: str, end_date: str) -> int:
        """
        Query costs by service for a date range and persist them.

        Previously stored records for the same subscription and range are
        replaced in the same transaction, so repeated fetches never double-count.

        Returns:
            Number of records stored.

        Raises:
            AzGuardError: If the query or the save fails. Nothing is persisted then.
        """
        result = self.collector.query_costs_by_service(start_date, end_date)
        subscription_id = self.collector.subscription_id or ""

        try:
            records = [
                CostRecord(
                    subscription_id=subscription_id,
                    resource_group=item.resource_group,
                    service_name=item.service_name,
                    cost=item.cost,
                    currency=item.currency,
                    date=item.date,
                )
                for item in result.records
            ]
        except ValidationError as e:
            raise UpstreamError(f"Provider returned a malformed cost item: {e}") from e

        stored = self.storage.replace_records(subscription_id, start_date, end_date, records)
        logger.info(
            "Stored %d cost records (%.2f %s) for %s to %s",
            stored,
            result.total_cost,
            result.currency,
            start_date,
            end_date,
        )
        return stored

    # =========================================================================
    # Summaries
    # =========================================================================

    def get_cost_summary(self, filter: CostFilter) -> CostSummary:
        """
        Summarize stored costs for a filter.

        Runs one aggregation by service and one by resource group over the
        same filter. total_cost is the sum of the by-service aggregation.
        """
        by_service = self.storage.aggregate(
            filter.model_copy(update={"group_by": GroupBy.SERVICE_NAME})
        )
        by_resource_group = self.storage.aggregate(
            filter.model_copy(update={"group_by": GroupBy.RESOURCE_GROUP})
        )

        return CostSummary(
            period=_period_label(filter),
            total_cost=sum(by_service.values()),
            currency=self.storage.latest_currency(filter) or self.config.default_currency,
            by_service=by_service,
            by_resource_group=by_resource_group,
        )

    def get_current_costs(self) -> CostSummary:
        """
        Fetch this month's costs, summarize them, and attach a forecast.

        A forecast failure is logged and the summary is returned without one.
        """
        start_date, end_date = current_month_date_range(self._today())
        self.fetch_and_store_costs(start_date, end_date)

        summary = self.get_cost_summary(self._current_month_filter())

        try:
            summary.forecast = self.get_forecast()
        except AzGuardError as e:
            logger.warning("Forecast unavailable: %s", e)

        return summary

    def get_forecast(self) -> Forecast:
        """Get the provider's monthly spend forecast."""
        result = self.collector.get_forecast("Monthly")
        return Forecast(next_month=result.total_cost, confidence="medium")

    def get_cost_history(self, days: int | None = None) -> CostSummary:
        """
        Summarize stored costs for the last `days` days.

        The summary carries a monthly breakdown and the month-over-month trend.

        Args:
            days: Window length. Defaults to analysis.history_days.

        Raises:
            ConfigurationError: If days is less than 1.
        """
        if days is None:
            days = self.config.analysis.history_days
        if days < 1:
            raise ConfigurationError(f"history window must be at least 1 day (got {days})")

        start_date, end_date = last_n_days_range(days, self._today())
        filter = CostFilter(start_date=start_date, end_date=end_date)

        summary = self.get_cost_summary(filter)
        summary.monthly_breakdown = self.storage.get_monthly_costs(filter)
        summary.trend = self.get_trend_analysis()
        return summary

    def get_trend_analysis(self) -> TrendAnalysis:
        """
        Compare this month with last month using stored monthly totals.

        The average covers the months with data in the last
        analysis.average_months months.
        """
        today = self._today()
        months = self.config.analysis.average_months
        start_date, _ = last_n_months_range(max(months, 2), today)
        end_date = (first_of_month(today, 1) - timedelta(days=1)).isoformat()

        totals = {
            m.month: m.total_cost
            for m in self.storage.get_monthly_costs(
                CostFilter(start_date=start_date, end_date=end_date)
            )
        }

        window = {month_key(first_of_month(today, -i)) for i in range(months)}
        return analyze_trend(
            current=totals.get(month_key(today), 0.0),
            previous=totals.get(month_key(first_of_month(today, -1)), 0.0),
            monthly_totals=[total for month, total in totals.items() if month in window],
            stable_threshold=self.config.analysis.stable_threshold_percent,
        )

    def generate_report(self) -> CostReport:
        """
        Build a report over the last analysis.average_months months.

        Includes the top services, per-month totals and a best-effort forecast.
        """
        today = self._today()
        start_date, end_date = last_n_months_range(self.config.analysis.average_months, today)
        filter = CostFilter(start_date=start_date, end_date=end_date)

        summary = self.get_cost_summary(filter)
        top_services = sorted(summary.by_service.items(), key=lambda x: x[1], reverse=True)

        forecast = None
        try:
            forecast = self.get_forecast().next_month
        except AzGuardError as e:
            logger.warning("Forecast unavailable for report: %s", e)

        return CostReport(
            generated_at=datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ"),
            period=summary.period,
            total_cost=summary.total_cost,
            currency=summary.currency,
            forecast=forecast,
            top_services=[
                ServiceCost(service=service, cost=cost)
                for service, cost in top_services[: self.config.analysis.top_services]
            ],
            monthly_data=self.storage.get_monthly_costs(filter),
        )

    # =========================================================================
    # Alerts
    # =========================================================================

    def create_alert(self, name: str, threshold: float, enabled: bool = True) -> Alert:
        """
        Create a budget alert for the configured subscription.

        Raises:
            ConfigurationError: If the name is empty or threshold is not greater than zero.
        """
        try:
            alert = Alert(
                name=name,
                threshold=threshold,
                subscription_id=self.collector.subscription_id or "",
                enabled=enabled,
            )
        except ValidationError as e:
            raise ConfigurationError(f"Invalid alert: {e}") from e
        return self.storage.save_alert(alert)

    def check_alerts(self) -> tuple[CostSummary, list[AlertResult]]:
        """
        Evaluate enabled alerts against this month's stored total.

        Returns:
            The current-month summary and one result per enabled alert.
        """
        summary = self.get_cost_summary(self._current_month_filter())
        results = self.alert_evaluator.evaluate(self.storage.get_alerts(), summary.total_cost)
        return summary, results

    def _current_month_filter(self) -> CostFilter:
        start_date, end_date = current_month_date_range(self._today())
        last_day = date.fromisoformat(end_date) - timedelta(days=1)
        return CostFilter(start_date=start_date, end_date=last_day.isoformat())


def _period_label(filter: CostFilter) -> str:
    if not filter.start_date and not filter.end_date:
        return "all time"
    return f"{filter.start_date or 'beginning'} to {filter.end_date or 'latest'}"
