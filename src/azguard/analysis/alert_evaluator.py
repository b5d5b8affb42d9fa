"""Budget alert evaluation."""

from dataclasses import dataclass
from enum import Enum

from azguard.storage.models import Alert


class AlertStatus(str, Enum):
    """Outcome of evaluating one alert."""

    OK = "OK"
    TRIGGERED = "TRIGGERED"


@dataclass
class AlertResult:
    """An evaluated alert."""

    alert: Alert
    total_cost: float
    percent_of_threshold: float
    status: AlertStatus

    @property
    def triggered(self) -> bool:
        return self.status is AlertStatus.TRIGGERED

    @property
    def description(self) -> str:
        """Human-readable one-line status."""
        return (
            f"{self.alert.name}: ${self.total_cost:.2f} / ${self.alert.threshold:.2f} "
            f"({self.percent_of_threshold:.1f}%) {self.status.value}"
        )


class AlertEvaluator:
    """
    Compare a period total against stored budget thresholds.

    Disabled alerts are skipped entirely. An alert triggers when the total
    reaches its threshold (the boundary is inclusive).
    """

    def evaluate(self, alerts: list[Alert], total_cost: float) -> list[AlertResult]:
        """
        Evaluate every enabled alert against a total.

        Args:
            alerts: Stored alerts. Thresholds are positive (enforced on creation).
            total_cost: Total spend for the period being checked.

        Returns:
            One AlertResult per enabled alert, in input order.
        """
        results = []
        for alert in alerts:
            if not alert.enabled:
                continue

            status = AlertStatus.TRIGGERED if total_cost >= alert.threshold else AlertStatus.OK
            results.append(
                AlertResult(
                    alert=alert,
                    total_cost=total_cost,
                    percent_of_threshold=total_cost / alert.threshold * 100,
                    status=status,
                )
            )
        return results

    def any_triggered(self, results: list[AlertResult]) -> bool:
        """Check whether any evaluated alert triggered."""
        return any(result.triggered for result in results)
