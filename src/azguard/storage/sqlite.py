"""SQLite storage for cost records, budget alerts and config overrides."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from azguard.exceptions import ConfigurationError, StorageError
from azguard.storage.models import Alert, CostFilter, CostRecord, GroupBy, MonthlyCost

logger = logging.getLogger(__name__)

UNASSIGNED_GROUP = "(unassigned)"

_MIGRATIONS = (
    """
    CREATE TABLE IF NOT EXISTS config (
        key TEXT PRIMARY KEY,
        value TEXT,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS cost_records (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        subscription_id TEXT NOT NULL,
        resource_group TEXT,
        service_name TEXT NOT NULL,
        cost REAL NOT NULL,
        currency TEXT NOT NULL DEFAULT 'USD',
        date TEXT NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS alerts (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        threshold REAL NOT NULL,
        subscription_id TEXT NOT NULL DEFAULT '',
        enabled INTEGER NOT NULL DEFAULT 1,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_cost_date ON cost_records(date)",
    "CREATE INDEX IF NOT EXISTS idx_cost_subscription ON cost_records(subscription_id)",
    "CREATE INDEX IF NOT EXISTS idx_cost_service ON cost_records(service_name)",
)

_INSERT_RECORD = """
    INSERT INTO cost_records (subscription_id, resource_group, service_name, cost, currency, date)
    VALUES (?, ?, ?, ?, ?, ?)
"""

_GROUP_COLUMNS = {
    GroupBy.SERVICE_NAME: "service_name",
    GroupBy.RESOURCE_GROUP: f"COALESCE(resource_group, '{UNASSIGNED_GROUP}')",
}


@contextmanager
def _storage_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except sqlite3.Error as e:
        raise StorageError(f"Failed to {operation}: {e}") from e


def _where(filter: CostFilter) -> tuple[str, list]:
    """Build the WHERE clause shared by record reads and aggregations."""
    clauses = ["1=1"]
    args: list = []

    if filter.start_date:
        clauses.append("date >= ?")
        args.append(filter.start_date)
    if filter.end_date:
        clauses.append("date <= ?")
        args.append(filter.end_date)
    if filter.service_name:
        clauses.append("service_name = ?")
        args.append(filter.service_name)

    return " AND ".join(clauses), args


def _record_params(record: CostRecord) -> tuple:
    return (
        record.subscription_id,
        record.resource_group,
        record.service_name,
        record.cost,
        record.currency,
        record.date,
    )


class SQLiteStorage:
    """
    SQLite-backed cost store.

    Owns three tables: cost_records, alerts and config. Writes go through a
    single connection, one transaction at a time.
    """

    def __init__(self, db_path: str | Path = ":memory:"):
        """
        Open (and if needed create) the database.

        Args:
            db_path: Database file path, or ":memory:" for a throwaway store.
        """
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).expanduser().parent.mkdir(parents=True, exist_ok=True)

        with _storage_errors("open database"):
            self._conn = sqlite3.connect(self.db_path)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys=ON;")
            self._migrate()

    def _migrate(self) -> None:
        with self._conn:
            for statement in _MIGRATIONS:
                self._conn.execute(statement)

    def close(self) -> None:
        """Close the underlying connection."""
        self._conn.close()

    def __enter__(self) -> SQLiteStorage:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # =========================================================================
    # Cost Records
    # =========================================================================

    def save_records(self, records: list[CostRecord]) -> int:
        """
        Insert a batch of records in a single transaction.

        Either every row is committed or none is.

        Returns:
            Number of rows inserted.

        Raises:
            StorageError: If any insert fails; the whole batch is rolled back.
        """
        with _storage_errors("save cost records"), self._conn:
            self._conn.executemany(_INSERT_RECORD, [_record_params(r) for r in records])

        logger.debug("Saved %d cost records", len(records))
        return len(records)

    def replace_records(
        self,
        subscription_id: str,
        start_date: str,
        end_date: str,
        records: list[CostRecord],
    ) -> int:
        """
        Replace a subscription's records for a date range.

        Deletes existing rows for the subscription with start_date <= date <= end_date
        and inserts the new batch, in one transaction, so re-fetching a period
        never double-counts it.

        Returns:
            Number of rows inserted.
        """
        with _storage_errors("replace cost records"), self._conn:
            deleted = self._conn.execute(
                "DELETE FROM cost_records WHERE subscription_id = ? AND date >= ? AND date <= ?",
                (subscription_id, start_date, end_date),
            ).rowcount
            self._conn.executemany(_INSERT_RECORD, [_record_params(r) for r in records])

        logger.debug(
            "Replaced %d records with %d for %s [%s, %s]",
            deleted,
            len(records),
            subscription_id,
            start_date,
            end_date,
        )
        return len(records)

    def get_records(self, filter: CostFilter | None = None) -> list[CostRecord]:
        """
        Get records matching a filter, newest date first.

        Args:
            filter: Optional filter. Unset fields do not constrain the result.

        Returns:
            List of CostRecord objects ordered by date descending.
        """
        where, args = _where(filter or CostFilter())
        query = (
            "SELECT id, subscription_id, resource_group, service_name, cost, currency, date "
            f"FROM cost_records WHERE {where} ORDER BY date DESC, id ASC"
        )

        with _storage_errors("read cost records"):
            rows = self._conn.execute(query, args).fetchall()

        return [CostRecord(**dict(row)) for row in rows]

    def aggregate(self, filter: CostFilter | None = None) -> dict[str, float]:
        """
        Sum cost per value of the filter's group_by dimension.

        The grouping and summing happen in SQL, over exactly the rows
        get_records would return for the same filter.

        Returns:
            Mapping of dimension value to summed cost.
        """
        filter = filter or CostFilter()
        column = _GROUP_COLUMNS[filter.group_by]
        where, args = _where(filter)
        query = (
            f"SELECT {column} AS name, SUM(cost) AS total "
            f"FROM cost_records WHERE {where} GROUP BY {column}"
        )

        with _storage_errors("aggregate costs"):
            rows = self._conn.execute(query, args).fetchall()

        return {row["name"]: row["total"] for row in rows}

    def get_monthly_costs(self, filter: CostFilter | None = None) -> list[MonthlyCost]:
        """
        Sum cost per calendar month, oldest month first.

        Each month reports the currency of its most recent record matching the filter.
        Unqualified columns in the subquery resolve to the `latest` alias, so the
        filter clauses apply to it unchanged.
        """
        where, args = _where(filter or CostFilter())
        query = (
            "SELECT substr(date, 1, 7) AS month, SUM(cost) AS total, "
            "(SELECT currency FROM cost_records AS latest "
            " WHERE substr(latest.date, 1, 7) = substr(cost_records.date, 1, 7) "
            f" AND {where}"
            " ORDER BY latest.date DESC, latest.id DESC LIMIT 1) AS currency "
            f"FROM cost_records WHERE {where} GROUP BY month ORDER BY month ASC"
        )

        with _storage_errors("aggregate monthly costs"):
            rows = self._conn.execute(query, args + args).fetchall()

        return [
            MonthlyCost(month=row["month"], total_cost=row["total"], currency=row["currency"] or "USD")
            for row in rows
        ]

    def latest_currency(self, filter: CostFilter | None = None) -> str | None:
        """Currency of the newest record matching the filter, or None if none match."""
        where, args = _where(filter or CostFilter())
        query = (
            f"SELECT currency FROM cost_records WHERE {where} "
            "ORDER BY date DESC, id DESC LIMIT 1"
        )

        with _storage_errors("read currency"):
            row = self._conn.execute(query, args).fetchone()

        return row["currency"] if row else None

    # =========================================================================
    # Alerts
    # =========================================================================

    def save_alert(self, alert: Alert) -> Alert:
        """
        Create a budget alert.

        Returns:
            The alert with its store-assigned id.

        Raises:
            ConfigurationError: If the threshold is not a positive amount.
        """
        if not alert.threshold > 0:
            raise ConfigurationError(
                f"alert threshold must be greater than 0 (got {alert.threshold})"
            )

        with _storage_errors("save alert"), self._conn:
            cursor = self._conn.execute(
                "INSERT INTO alerts (name, threshold, subscription_id, enabled) VALUES (?, ?, ?, ?)",
                (alert.name, alert.threshold, alert.subscription_id, 1 if alert.enabled else 0),
            )

        return alert.model_copy(update={"id": cursor.lastrowid})

    def get_alerts(self) -> list[Alert]:
        """Get all alerts in creation order."""
        with _storage_errors("read alerts"):
            rows = self._conn.execute(
                "SELECT id, name, threshold, subscription_id, enabled FROM alerts ORDER BY id"
            ).fetchall()

        return [self._row_to_alert(row) for row in rows]

    def get_alert(self, name: str) -> Alert | None:
        """Get the first alert with the given name, if any."""
        with _storage_errors("read alert"):
            row = self._conn.execute(
                "SELECT id, name, threshold, subscription_id, enabled FROM alerts "
                "WHERE name = ? ORDER BY id LIMIT 1",
                (name,),
            ).fetchone()

        return self._row_to_alert(row) if row else None

    def set_alert_enabled(self, name: str, enabled: bool) -> int:
        """
        Enable or disable every alert with the given name.

        Returns:
            Number of alerts updated.
        """
        with _storage_errors("update alert"), self._conn:
            cursor = self._conn.execute(
                "UPDATE alerts SET enabled = ? WHERE name = ?",
                (1 if enabled else 0, name),
            )
        return cursor.rowcount

    def delete_alert(self, name: str) -> int:
        """
        Delete alerts by name.

        Deleting a name that does not exist is not an error.

        Returns:
            Number of alerts deleted (0 when none matched).
        """
        with _storage_errors("delete alert"), self._conn:
            cursor = self._conn.execute("DELETE FROM alerts WHERE name = ?", (name,))
        return cursor.rowcount

    @staticmethod
    def _row_to_alert(row: sqlite3.Row) -> Alert:
        return Alert(
            id=row["id"],
            name=row["name"],
            threshold=row["threshold"],
            subscription_id=row["subscription_id"],
            enabled=bool(row["enabled"]),
        )

    # =========================================================================
    # Config Overrides
    # =========================================================================

    def get_config(self, key: str) -> str | None:
        """Get a stored config override, or None if the key was never set."""
        with _storage_errors("read config"):
            row = self._conn.execute(
                "SELECT value FROM config WHERE key = ?", (key,)
            ).fetchone()
        return row["value"] if row else None

    def set_config(self, key: str, value: str) -> None:
        """Store a config override. The last write for a key wins."""
        with _storage_errors("write config"), self._conn:
            self._conn.execute(
                """
                INSERT INTO config (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = CURRENT_TIMESTAMP
                """,
                (key, value),
            )

    def list_config(self) -> dict[str, str]:
        """Get all stored config overrides."""
        with _storage_errors("read config"):
            rows = self._conn.execute("SELECT key, value FROM config ORDER BY key").fetchall()
        return {row["key"]: row["value"] for row in rows}
