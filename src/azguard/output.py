"""Render cost views as table text, JSON or CSV."""

from __future__ import annotations

import csv
import io
import json
from typing import Any, Literal

from pydantic import BaseModel

from azguard.analysis.alert_evaluator import AlertResult
from azguard.analysis.trend import TrendAnalysis
from azguard.cost.models import CostReport, CostSummary, Forecast
from azguard.storage.models import Alert, CostRecord

OutputFormat = Literal["table", "json", "csv"]

RULE = "-" * 33


def _to_json(data: Any) -> str:
    if isinstance(data, BaseModel):
        return data.model_dump_json(indent=2)
    if isinstance(data, list):
        data = [item.model_dump(mode="json") if isinstance(item, BaseModel) else item for item in data]
    return json.dumps(data, indent=2, default=str)


def _to_csv(header: list[str], rows: list[list[Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue().rstrip("\n")


class OutputFormatter:
    """Format service results for the terminal."""

    TREND_ICON = {
        "increasing": "[UP]",
        "decreasing": "[DOWN]",
        "stable": "[FLAT]",
    }

    def __init__(self, output_format: OutputFormat = "table"):
        self.output_format = output_format

    def format_summary(self, summary: CostSummary) -> str:
        if self.output_format == "json":
            return _to_json(summary)
        if self.output_format == "csv":
            return _to_csv(
                ["service", "cost"],
                [[service, f"{cost:.2f}"] for service, cost in _by_cost(summary.by_service)],
            )

        lines = [
            f"Azure Costs - {summary.period}",
            RULE,
            f"Total Cost: ${summary.total_cost:.2f} {summary.currency}",
        ]

        if summary.by_service:
            lines += ["", "By Service:"]
            lines += [f"  {service + ':':<30} ${cost:.2f}" for service, cost in _by_cost(summary.by_service)]

        if summary.by_resource_group:
            lines += ["", "By Resource Group:"]
            lines += [
                f"  {group + ':':<30} ${cost:.2f}"
                for group, cost in _by_cost(summary.by_resource_group)
            ]

        if summary.forecast:
            lines += ["", f"Forecast next month: ${summary.forecast.next_month:.2f}"]

        if summary.monthly_breakdown:
            lines += ["", "Monthly Breakdown:"]
            lines += [f"  {m.month}: ${m.total_cost:.2f}" for m in summary.monthly_breakdown]

        if summary.trend:
            lines += [
                "",
                f"Trend: {summary.trend.trend} ({summary.trend.change_percent:+.2f}% vs last month) "
                f"{self.TREND_ICON[summary.trend.trend]}",
            ]

        return "\n".join(lines)

    def format_forecast(self, forecast: Forecast) -> str:
        if self.output_format == "json":
            return _to_json(forecast)
        if self.output_format == "csv":
            return _to_csv(["next_month", "confidence"], [[f"{forecast.next_month:.2f}", forecast.confidence]])
        return f"Forecast for next month: ${forecast.next_month:.2f} (confidence: {forecast.confidence})"

    def format_trend(self, trend: TrendAnalysis) -> str:
        if self.output_format == "json":
            return _to_json(trend)
        if self.output_format == "csv":
            return _to_csv(
                ["current_month", "previous_month", "change_percent", "trend", "average_monthly", "projection"],
                [[
                    f"{trend.current_month:.2f}",
                    f"{trend.previous_month:.2f}",
                    f"{trend.change_percent:.2f}",
                    trend.trend,
                    f"{trend.average_monthly:.2f}",
                    f"{trend.projection:.2f}",
                ]],
            )

        return "\n".join(
            [
                "Cost Trend Analysis",
                RULE,
                f"Current Month:    ${trend.current_month:.2f}",
                f"Previous Month:   ${trend.previous_month:.2f}",
                f"Change:           {trend.change_percent:+.2f}% {self.TREND_ICON[trend.trend]}",
                f"Trend:            {trend.trend}",
                f"Monthly Average:  ${trend.average_monthly:.2f}",
                f"Next Month Proj:  ${trend.projection:.2f}",
            ]
        )

    def format_report(self, report: CostReport) -> str:
        if self.output_format == "json":
            return _to_json(report)
        if self.output_format == "csv":
            return _to_csv(
                ["month", "total_cost", "currency"],
                [[m.month, f"{m.total_cost:.2f}", m.currency] for m in report.monthly_data],
            )

        lines = [
            f"Cost Report - {report.period}",
            "=" * 35,
            f"Generated: {report.generated_at}",
            f"Period:    {report.period}",
            "",
            f"Total Cost: ${report.total_cost:.2f} {report.currency}",
        ]
        if report.forecast is not None:
            lines.append(f"Forecast:   ${report.forecast:.2f}")

        if report.top_services:
            lines += ["", "Top Services:"]
            lines += [f"  {s.service + ':':<30} ${s.cost:.2f}" for s in report.top_services]

        lines += ["", "Monthly Breakdown:"]
        lines += [f"  {m.month}: ${m.total_cost:.2f}" for m in report.monthly_data]
        return "\n".join(lines)

    def format_records(self, records: list[CostRecord]) -> str:
        if self.output_format == "json":
            return _to_json(records)

        rows = [
            [r.date, r.service_name, r.resource_group or "", f"{r.cost:.2f}", r.currency]
            for r in records
        ]
        if self.output_format == "csv":
            return _to_csv(["date", "service", "resource_group", "cost", "currency"], rows)

        if not records:
            return "No cost records stored"
        return "\n".join(
            f"{date}  {service:<30} {group:<24} {cost:>10} {currency}"
            for date, service, group, cost, currency in rows
        )

    def format_alerts(self, alerts: list[Alert]) -> str:
        if self.output_format == "json":
            return _to_json(alerts)
        if self.output_format == "csv":
            return _to_csv(
                ["name", "threshold", "enabled"],
                [[a.name, f"{a.threshold:.2f}", str(a.enabled).lower()] for a in alerts],
            )

        if not alerts:
            return "No alerts configured"
        lines = ["Budget Alerts", RULE]
        for alert in alerts:
            status = "Enabled" if alert.enabled else "Disabled"
            lines.append(f"{alert.name} - ${alert.threshold:.2f} ({status})")
        return "\n".join(lines)

    def format_alert_status(self, summary: CostSummary, results: list[AlertResult]) -> str:
        if self.output_format == "json":
            return _to_json(
                {
                    "total_cost": summary.total_cost,
                    "currency": summary.currency,
                    "alerts": [
                        {
                            "name": r.alert.name,
                            "threshold": r.alert.threshold,
                            "percent_of_threshold": r.percent_of_threshold,
                            "status": r.status.value,
                        }
                        for r in results
                    ],
                }
            )
        if self.output_format == "csv":
            return _to_csv(
                ["name", "total_cost", "threshold", "percent_of_threshold", "status"],
                [
                    [
                        r.alert.name,
                        f"{r.total_cost:.2f}",
                        f"{r.alert.threshold:.2f}",
                        f"{r.percent_of_threshold:.1f}",
                        r.status.value,
                    ]
                    for r in results
                ],
            )

        if not results:
            return "No enabled alerts configured"
        lines = ["Alert Status", RULE, f"Current costs: ${summary.total_cost:.2f}", ""]
        lines += [r.description for r in results]
        if any(r.triggered for r in results):
            lines += ["", "Budget alerts triggered!"]
        return "\n".join(lines)

    def format_providers(self, providers: list[dict[str, Any]]) -> str:
        if self.output_format == "json":
            return _to_json(providers)
        if self.output_format == "csv":
            return _to_csv(
                ["provider", "configured", "account", "auth_method"],
                [
                    [p["provider"], str(p["configured"]).lower(), p["account"] or "", p["auth_method"]]
                    for p in providers
                ],
            )

        lines = ["Configured Cloud Providers", RULE]
        for p in providers:
            if p["configured"]:
                lines.append(f"[OK] {p['provider']}: {p['account']} (auth: {p['auth_method']})")
            else:
                lines.append(f"[--] {p['provider']}: Not configured")
        return "\n".join(lines)


def _by_cost(costs: dict[str, float]) -> list[tuple[str, float]]:
    return sorted(costs.items(), key=lambda x: x[1], reverse=True)
