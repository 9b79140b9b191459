"""
Compliance Repository
=====================

Storage for the four entity collections: reports, filings, alerts and
schedules.

Backends:
- InMemoryComplianceRepository: process-lifetime dicts (lost on restart)
- SQLiteComplianceRepository: one table per collection, JSON payload per row,
  WAL journal for crash safety

Both backends return entities in insertion order; updating an entity keeps
its original position. Managers call ``save_*`` after every mutation.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Generator, Generic, TypeVar

from core.models import ComplianceAlert, ComplianceReport, ComplianceSchedule, RegulatoryFiling

logger = logging.getLogger(__name__)

E = TypeVar("E")


class ComplianceRepository(ABC):
    """Persistence contract for compliance entities."""

    # Reports
    @abstractmethod
    def save_report(self, report: ComplianceReport) -> None: ...

    @abstractmethod
    def get_report(self, report_id: str) -> ComplianceReport | None: ...

    @abstractmethod
    def list_reports(self) -> list[ComplianceReport]: ...

    # Filings
    @abstractmethod
    def save_filing(self, filing: RegulatoryFiling) -> None: ...

    @abstractmethod
    def get_filing(self, filing_id: str) -> RegulatoryFiling | None: ...

    @abstractmethod
    def list_filings(self) -> list[RegulatoryFiling]: ...

    # Alerts
    @abstractmethod
    def save_alert(self, alert: ComplianceAlert) -> None: ...

    @abstractmethod
    def get_alert(self, alert_id: str) -> ComplianceAlert | None: ...

    @abstractmethod
    def list_alerts(self) -> list[ComplianceAlert]: ...

    # Schedules
    @abstractmethod
    def save_schedule(self, schedule: ComplianceSchedule) -> None: ...

    @abstractmethod
    def get_schedule(self, schedule_id: str) -> ComplianceSchedule | None: ...

    @abstractmethod
    def list_schedules(self) -> list[ComplianceSchedule]: ...

    def close(self) -> None:
        """Release backend resources."""


class InMemoryComplianceRepository(ComplianceRepository):
    """Dict-backed repository. Entities are stored by reference."""

    def __init__(self):
        self._reports: dict[str, ComplianceReport] = {}
        self._filings: dict[str, RegulatoryFiling] = {}
        self._alerts: dict[str, ComplianceAlert] = {}
        self._schedules: dict[str, ComplianceSchedule] = {}

    def save_report(self, report: ComplianceReport) -> None:
        self._reports[report.report_id] = report

    def get_report(self, report_id: str) -> ComplianceReport | None:
        return self._reports.get(report_id)

    def list_reports(self) -> list[ComplianceReport]:
        return list(self._reports.values())

    def save_filing(self, filing: RegulatoryFiling) -> None:
        self._filings[filing.filing_id] = filing

    def get_filing(self, filing_id: str) -> RegulatoryFiling | None:
        return self._filings.get(filing_id)

    def list_filings(self) -> list[RegulatoryFiling]:
        return list(self._filings.values())

    def save_alert(self, alert: ComplianceAlert) -> None:
        self._alerts[alert.alert_id] = alert

    def get_alert(self, alert_id: str) -> ComplianceAlert | None:
        return self._alerts.get(alert_id)

    def list_alerts(self) -> list[ComplianceAlert]:
        return list(self._alerts.values())

    def save_schedule(self, schedule: ComplianceSchedule) -> None:
        self._schedules[schedule.schedule_id] = schedule

    def get_schedule(self, schedule_id: str) -> ComplianceSchedule | None:
        return self._schedules.get(schedule_id)

    def list_schedules(self) -> list[ComplianceSchedule]:
        return list(self._schedules.values())


class _Table(Generic[E]):
    """Maps one entity class onto one SQLite table."""

    def __init__(
        self,
        name: str,
        id_getter: Callable[[E], str],
        decoder: Callable[[dict], E],
    ):
        self.name = name
        self.id_getter = id_getter
        self.decoder = decoder


class SQLiteComplianceRepository(ComplianceRepository):
    """
    SQLite-backed repository.

    Each collection is a table ``(seq, entity_id, payload)`` where ``seq``
    preserves insertion order and ``payload`` is the entity's ``to_dict()``
    serialized as JSON.
    """

    _TABLES: dict[str, _Table] = {
        "reports": _Table("reports", lambda r: r.report_id, ComplianceReport.from_dict),
        "filings": _Table("filings", lambda f: f.filing_id, RegulatoryFiling.from_dict),
        "alerts": _Table("alerts", lambda a: a.alert_id, ComplianceAlert.from_dict),
        "schedules": _Table("schedules", lambda s: s.schedule_id, ComplianceSchedule.from_dict),
    }

    def __init__(self, db_path: str = "state/compliance.db"):
        self._db_path = db_path
        self._lock = threading.RLock()
        self._conn: sqlite3.Connection | None = None
        self.initialize()

    def initialize(self) -> None:
        """Create the database file and tables if missing."""
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)

        with self._get_connection() as conn:
            if self._db_path != ":memory:":
                conn.execute("PRAGMA journal_mode=WAL")
            for table in self._TABLES.values():
                conn.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {table.name} (
                        seq INTEGER PRIMARY KEY AUTOINCREMENT,
                        entity_id TEXT NOT NULL UNIQUE,
                        payload TEXT NOT NULL
                    )
                    """
                )
            conn.commit()

        logger.info(f"SQLite compliance repository ready at {self._db_path}")

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        with self._lock:
            if self._conn is None:
                self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
                self._conn.row_factory = sqlite3.Row
            yield self._conn

    def _save(self, table_key: str, entity: Any) -> None:
        table = self._TABLES[table_key]
        payload = json.dumps(entity.to_dict(), default=str)
        with self._get_connection() as conn:
            conn.execute(
                f"""
                INSERT INTO {table.name} (entity_id, payload) VALUES (?, ?)
                ON CONFLICT(entity_id) DO UPDATE SET payload = excluded.payload
                """,
                (table.id_getter(entity), payload),
            )
            conn.commit()

    def _get(self, table_key: str, entity_id: str) -> Any:
        table = self._TABLES[table_key]
        with self._get_connection() as conn:
            row = conn.execute(
                f"SELECT payload FROM {table.name} WHERE entity_id = ?",
                (entity_id,),
            ).fetchone()
        return table.decoder(json.loads(row["payload"])) if row else None

    def _list(self, table_key: str) -> list:
        table = self._TABLES[table_key]
        with self._get_connection() as conn:
            rows = conn.execute(f"SELECT payload FROM {table.name} ORDER BY seq").fetchall()
        return [table.decoder(json.loads(row["payload"])) for row in rows]

    def save_report(self, report: ComplianceReport) -> None:
        self._save("reports", report)

    def get_report(self, report_id: str) -> ComplianceReport | None:
        return self._get("reports", report_id)

    def list_reports(self) -> list[ComplianceReport]:
        return self._list("reports")

    def save_filing(self, filing: RegulatoryFiling) -> None:
        self._save("filings", filing)

    def get_filing(self, filing_id: str) -> RegulatoryFiling | None:
        return self._get("filings", filing_id)

    def list_filings(self) -> list[RegulatoryFiling]:
        return self._list("filings")

    def save_alert(self, alert: ComplianceAlert) -> None:
        self._save("alerts", alert)

    def get_alert(self, alert_id: str) -> ComplianceAlert | None:
        return self._get("alerts", alert_id)

    def list_alerts(self) -> list[ComplianceAlert]:
        return self._list("alerts")

    def save_schedule(self, schedule: ComplianceSchedule) -> None:
        self._save("schedules", schedule)

    def get_schedule(self, schedule_id: str) -> ComplianceSchedule | None:
        return self._get("schedules", schedule_id)

    def list_schedules(self) -> list[ComplianceSchedule]:
        return self._list("schedules")

    def get_statistics(self) -> dict[str, int]:
        """Row count per collection."""
        with self._get_connection() as conn:
            return {
                name: conn.execute(f"SELECT COUNT(*) FROM {table.name}").fetchone()[0]
                for name, table in self._TABLES.items()
            }

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                logger.info("SQLite compliance repository closed")
