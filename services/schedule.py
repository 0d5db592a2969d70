"""Expand a contract into its series of rent obligations."""

from datetime import datetime
from typing import Optional

from dateutil.relativedelta import relativedelta

from models import Contract, Obligation


def next_due_date(current: datetime, months: int) -> Optional[datetime]:
    """Step a due date forward by whole months.

    Month-end dates clamp (Jan 31 + 1 month is Feb 28/29). Returns None when
    the result would fall outside the representable calendar.
    """
    try:
        return current + relativedelta(months=months)
    except (OverflowError, ValueError):
        return None


def generate_schedule(contract: Contract) -> list[Obligation]:
    """Build the unpaid obligations for a contract, ordered by due date.

    The first line falls due on the start date; each following line one
    payment cycle after the previous one, while the due date is on or before
    the end date. The result is not persisted and carries no IDs.
    """
    if contract.start_date is None or contract.end_date is None:
        return []

    months = contract.payment_cycle.months_interval
    obligations = []
    current = contract.start_date

    while current is not None and current <= contract.end_date:
        obligations.append(
            Obligation(
                contract_id=contract.id or 0,
                due_date=current,
                amount=contract.rent_amount,
                is_paid=False,
            )
        )
        following = next_due_date(current, months)
        # Calendar overflow ends the schedule at the last computed date
        if following is None or following <= current:
            break
        current = following

    return obligations
