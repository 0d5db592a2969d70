"""Classify obligations and contracts as time advances."""

from dataclasses import replace
from datetime import datetime, timedelta
from typing import Iterable, Optional

from dateutil.relativedelta import relativedelta

from models import Contract, ContractStatus, Obligation, ObligationStatus

DUE_SOON_DAYS = 3
EXPIRING_SOON_DAYS = 30


def classify_obligation(
    obligation: Obligation, now: datetime, due_soon_days: int = DUE_SOON_DAYS
) -> ObligationStatus:
    """Status of a scheduled rent line at the reference time."""
    if obligation.is_paid:
        return ObligationStatus.PAID
    if obligation.due_date < now:
        return ObligationStatus.OVERDUE
    if obligation.due_date - now <= timedelta(days=due_soon_days):
        return ObligationStatus.DUE_SOON
    return ObligationStatus.UPCOMING


def is_overdue(obligation: Obligation, now: datetime) -> bool:
    """Check if an obligation is unpaid past its due date."""
    return not obligation.is_paid and obligation.due_date < now


def days_overdue(obligation: Obligation, now: datetime) -> int:
    """Whole days since the due date; 0 unless overdue."""
    if not is_overdue(obligation, now):
        return 0
    return (now - obligation.due_date).days


def classify_contract(
    contract: Contract, now: datetime, expiring_soon_days: int = EXPIRING_SOON_DAYS
) -> ContractStatus:
    """Lifecycle status of a contract at the reference time.

    Precedence: ended, expired, upcoming, expiring soon, active.
    """
    if not contract.is_active:
        return ContractStatus.ENDED
    if contract.end_date < now:
        # Still flagged active although the end date has passed
        return ContractStatus.EXPIRED
    if contract.start_date > now:
        return ContractStatus.UPCOMING
    if (contract.end_date - now).days <= expiring_soon_days:
        return ContractStatus.EXPIRING_SOON
    return ContractStatus.ACTIVE


def next_payment_due(obligations: Iterable[Obligation]) -> Optional[datetime]:
    """Earliest due date among unpaid obligations."""
    unpaid = [o.due_date for o in obligations if not o.is_paid]
    return min(unpaid) if unpaid else None


def contract_days_overdue(obligations: Iterable[Obligation], now: datetime) -> int:
    """Days since the earliest unpaid due date, 0 if it is not yet due."""
    next_due = next_payment_due(obligations)
    if next_due is None or next_due >= now:
        return 0
    return (now - next_due).days


def expiring_contracts(
    contracts: Iterable[Contract], now: datetime, days: int = EXPIRING_SOON_DAYS
) -> list[Contract]:
    """Active contracts whose end date falls within the next `days` days."""
    cutoff = now + timedelta(days=days)
    return sorted(
        (c for c in contracts if c.is_active and now <= c.end_date <= cutoff),
        key=lambda c: c.end_date,
    )


def contract_duration_months(contract: Contract) -> int:
    """Whole months between start and end date."""
    delta = relativedelta(contract.end_date, contract.start_date)
    return max(delta.years * 12 + delta.months, 0)


def mark_paid(obligation: Obligation, paid_date: datetime) -> Obligation:
    """Copy of the obligation settled on paid_date. Repeating it is harmless."""
    return replace(obligation, is_paid=True, paid_date=paid_date)
