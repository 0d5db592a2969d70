"""Rent reminder planning and the scheduler that stores the triggers."""

import json
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Iterable, Optional

from database import Database
from logging_config import get_logger
from models import Obligation, PlannedReminder

logger = get_logger(__name__)

# Day offsets relative to the due date
PRE_DUE_OFFSETS = (-3, -1, 0)
OVERDUE_OFFSETS = (1, 7, 30)

SNOOZE_DELAY = timedelta(hours=1)


def pre_due_id(obligation_id, offset: int) -> str:
    return f"{obligation_id}_{offset}"


def overdue_id(obligation_id, offset: int) -> str:
    return f"overdue_{obligation_id}_{offset}"


def reminder_ids(obligation_id) -> list[str]:
    """The six well-known trigger ids of an obligation."""
    return [pre_due_id(obligation_id, o) for o in PRE_DUE_OFFSETS] + [
        overdue_id(obligation_id, o) for o in OVERDUE_OFFSETS
    ]


class ReminderPlanner:
    """Derive reminder triggers for obligations."""

    def __init__(self, snooze_delay: timedelta = SNOOZE_DELAY):
        self.snooze_delay = snooze_delay

    def pre_due_reminders(
        self,
        obligation: Obligation,
        property_id: Optional[int] = None,
        property_name: str = "",
        tenant_name: str = "",
    ) -> list[PlannedReminder]:
        """Reminders 3 days before, 1 day before and on the due date."""
        payload = self._payload(
            obligation, "rent_due", "Rent Due",
            f"Rent of {obligation.amount:,.2f} is due for {property_name} (Tenant: {tenant_name})",
            property_id,
        )
        return [
            PlannedReminder(
                id=pre_due_id(obligation.id, offset),
                fire_at=obligation.due_date + timedelta(days=offset),
                payload=dict(payload),
            )
            for offset in PRE_DUE_OFFSETS
        ]

    def overdue_reminders(
        self,
        obligation: Obligation,
        property_id: Optional[int] = None,
        property_name: str = "",
        tenant_name: str = "",
    ) -> list[PlannedReminder]:
        """Reminders 1, 7 and 30 days after the due date."""
        payload = self._payload(
            obligation, "overdue", "Payment Overdue",
            f"Payment of {obligation.amount:,.2f} is overdue for {property_name} (Tenant: {tenant_name})",
            property_id,
        )
        return [
            PlannedReminder(
                id=overdue_id(obligation.id, offset),
                fire_at=obligation.due_date + timedelta(days=offset),
                payload=dict(payload),
            )
            for offset in OVERDUE_OFFSETS
        ]

    def planned_reminders(self, obligation: Obligation, **context) -> list[PlannedReminder]:
        """All six fixed-offset reminders, pre-due first, in firing order."""
        return self.pre_due_reminders(obligation, **context) + self.overdue_reminders(obligation, **context)

    def snooze(
        self,
        obligation: Obligation,
        now: datetime,
        property_id: Optional[int] = None,
        property_name: str = "",
        tenant_name: str = "",
    ) -> PlannedReminder:
        """One-shot reminder fired snooze_delay after now.

        The id embeds the request time so repeated snoozes never collide.
        """
        payload = self._payload(
            obligation, "reminder", "Rent Reminder",
            f"Don't forget: Rent of {obligation.amount:,.2f} is due for {property_name} (Tenant: {tenant_name})",
            property_id,
        )
        return PlannedReminder(
            id=f"reminder_{obligation.id}_{now.strftime('%Y%m%d%H%M%S%f')}",
            fire_at=now + self.snooze_delay,
            payload=payload,
        )

    def cancel_ids(self, obligation_id) -> list[str]:
        """Ids to cancel for an obligation, whether or not they were scheduled."""
        return reminder_ids(obligation_id)

    def _payload(self, obligation, kind, title, body, property_id) -> dict:
        return {
            "kind": kind,
            "title": title,
            "body": body,
            "obligation_id": obligation.id,
            "contract_id": obligation.contract_id,
            "property_id": property_id,
            "amount": str(obligation.amount),
        }


class ReminderScheduler(ABC):
    """Delivery side: fires payloads at their time, cancels by id."""

    @abstractmethod
    def schedule(self, reminder_id: str, fire_at: datetime, payload: dict) -> None:
        """Register (or replace) a trigger."""

    @abstractmethod
    def cancel(self, ids: Iterable[str]) -> None:
        """Remove triggers. Unknown ids are ignored."""


class SqliteReminderScheduler(ReminderScheduler):
    """Keeps pending reminders in the application database.

    A notifier process polls due() and removes fired reminders with cancel().
    """

    def __init__(self, db: Database):
        self.db = db
        self._ensure_tables()

    def _ensure_tables(self) -> None:
        """Ensure the reminder table exists."""
        with self.db.connection() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS scheduled_reminders (
                    id TEXT PRIMARY KEY,
                    obligation_id INTEGER,
                    fire_at TEXT NOT NULL,
                    payload TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS idx_reminders_fire_at ON scheduled_reminders(fire_at);
            """)

    def schedule(self, reminder_id: str, fire_at: datetime, payload: dict) -> None:
        with self.db.connection() as conn:
            conn.execute(
                """INSERT INTO scheduled_reminders (id, obligation_id, fire_at, payload)
                   VALUES (?, ?, ?, ?)
                   ON CONFLICT(id) DO UPDATE SET
                       obligation_id = excluded.obligation_id,
                       fire_at = excluded.fire_at,
                       payload = excluded.payload""",
                (reminder_id, payload.get("obligation_id"), fire_at.isoformat(), json.dumps(payload)),
            )

    def cancel(self, ids: Iterable[str]) -> None:
        ids = list(ids)
        if not ids:
            return
        with self.db.connection() as conn:
            conn.execute(
                f"DELETE FROM scheduled_reminders WHERE id IN ({', '.join('?' * len(ids))})",
                tuple(ids),
            )

    def list_pending(self, obligation_id: Optional[int] = None) -> list[PlannedReminder]:
        """Scheduled reminders ordered by fire time."""
        with self.db.connection() as conn:
            if obligation_id is not None:
                conn.execute(
                    "SELECT * FROM scheduled_reminders WHERE obligation_id = ? ORDER BY fire_at, id",
                    (obligation_id,),
                )
            else:
                conn.execute("SELECT * FROM scheduled_reminders ORDER BY fire_at, id")
            return [self._row_to_reminder(row) for row in conn.fetchall()]

    def due(self, now: datetime) -> list[PlannedReminder]:
        """Reminders whose fire time has been reached."""
        with self.db.connection() as conn:
            conn.execute(
                "SELECT * FROM scheduled_reminders WHERE fire_at <= ? ORDER BY fire_at, id",
                (now.isoformat(),),
            )
            return [self._row_to_reminder(row) for row in conn.fetchall()]

    def clear(self) -> None:
        """Drop every pending reminder."""
        with self.db.connection() as conn:
            conn.execute("DELETE FROM scheduled_reminders")

    def _row_to_reminder(self, row) -> PlannedReminder:
        return PlannedReminder(
            id=row["id"],
            fire_at=datetime.fromisoformat(row["fire_at"]),
            payload=json.loads(row["payload"]),
        )
