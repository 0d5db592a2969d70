"""Income, expense and arrears rollups over contracts and properties.

Every aggregate here is a pure function over explicitly passed entities: the
caller fetches contracts, obligations, transactions and expenses from the
repository and the functions filter them by id. Sums are exact Decimals and
an empty input always yields zero.

LedgerReport wraps the same functions with repository lookups for callers
that only hold ids.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from database import Database
from errors import NotFoundError
from models import Contract, Expense, Obligation, Property, Tenant, Transaction, TransactionType
from money import ZERO, money_sum
from services.status import contract_days_overdue, is_overdue, next_payment_due


def year_bounds(year: int) -> tuple[datetime, datetime]:
    """Half-open interval [Jan 1 of year, Jan 1 of year + 1)."""
    return datetime(year, 1, 1), datetime(year + 1, 1, 1)


def _in_year(value: Optional[datetime], year: int) -> bool:
    if value is None:
        return False
    start, end = year_bounds(year)
    return start <= value < end


# Contract level

def total_paid(contract: Contract, transactions: Iterable[Transaction]) -> Decimal:
    """Sum of income-type transactions recorded against the contract."""
    return money_sum(
        t.amount
        for t in transactions
        if t.contract_id == contract.id and t.transaction_type.is_income
    )


def overdue_obligations_for(
    contract: Contract, obligations: Iterable[Obligation], now: datetime
) -> list[Obligation]:
    """The contract's unpaid obligations whose due date has passed."""
    return [
        o for o in obligations
        if o.contract_id == contract.id and is_overdue(o, now)
    ]


def overdue_amount(contract: Contract, obligations: Iterable[Obligation], now: datetime) -> Decimal:
    """Sum of the contract's overdue obligation amounts."""
    return money_sum(o.amount for o in overdue_obligations_for(contract, obligations, now))


def is_contract_overdue(contract: Contract, obligations: Iterable[Obligation], now: datetime) -> bool:
    return overdue_amount(contract, obligations, now) > ZERO


# Property level

def contracts_for(prop: Property, contracts: Iterable[Contract]) -> list[Contract]:
    """Every contract ever linked to the property."""
    return [c for c in contracts if c.property_id == prop.id]


def active_contract(prop: Property, contracts: Iterable[Contract]) -> Optional[Contract]:
    """The contract currently in force for the property, if any."""
    for contract in contracts:
        if contract.property_id == prop.id and contract.is_active:
            return contract
    return None


def is_vacant(prop: Property, contracts: Iterable[Contract]) -> bool:
    return active_contract(prop, contracts) is None


def total_income(
    prop: Property, contracts: Iterable[Contract], transactions: Iterable[Transaction]
) -> Decimal:
    """Sum of total_paid over all contracts ever linked to the property."""
    transactions = list(transactions)
    return money_sum(total_paid(c, transactions) for c in contracts_for(prop, contracts))


def total_expenses(prop: Property, expenses: Iterable[Expense]) -> Decimal:
    """Sum of the property's expenses."""
    return money_sum(e.amount for e in expenses if e.property_id == prop.id)


def net_income(
    prop: Property,
    contracts: Iterable[Contract],
    transactions: Iterable[Transaction],
    expenses: Iterable[Expense],
) -> Decimal:
    """Income minus expenses; negative when the property runs at a loss."""
    return total_income(prop, contracts, transactions) - total_expenses(prop, expenses)


def property_overdue_obligations(
    prop: Property,
    contracts: Iterable[Contract],
    obligations: Iterable[Obligation],
    now: datetime,
) -> list[Obligation]:
    """Overdue lines of the property's active contract."""
    contract = active_contract(prop, contracts)
    if contract is None:
        return []
    return overdue_obligations_for(contract, obligations, now)


# Portfolio level

def vacancy_rate(properties: Iterable[Property], contracts: Iterable[Contract]) -> float:
    """Percentage of properties without an active contract; 0 for no properties."""
    properties = list(properties)
    if not properties:
        return 0.0
    active_ids = {c.property_id for c in contracts if c.is_active}
    vacant = sum(1 for p in properties if p.id not in active_ids)
    return vacant / len(properties) * 100


def vacant_properties(properties: Iterable[Property], contracts: Iterable[Contract]) -> list[Property]:
    active_ids = {c.property_id for c in contracts if c.is_active}
    return [p for p in properties if p.id not in active_ids]


def occupied_properties(properties: Iterable[Property], contracts: Iterable[Contract]) -> list[Property]:
    active_ids = {c.property_id for c in contracts if c.is_active}
    return [p for p in properties if p.id in active_ids]


def properties_with_overdue(
    properties: Iterable[Property],
    contracts: Iterable[Contract],
    obligations: Iterable[Obligation],
    now: datetime,
) -> list[Property]:
    """Properties whose active contract has at least one overdue line."""
    contracts = list(contracts)
    obligations = list(obligations)
    return [
        p for p in properties
        if property_overdue_obligations(p, contracts, obligations, now)
    ]


def total_rent_owed(
    tenant: Tenant,
    contracts: Iterable[Contract],
    obligations: Iterable[Obligation],
    now: datetime,
) -> Decimal:
    """Overdue amount summed over the tenant's active contracts."""
    obligations = list(obligations)
    return money_sum(
        overdue_amount(c, obligations, now)
        for c in contracts
        if c.tenant_id == tenant.id and c.is_active
    )


def yearly_income(
    year: int,
    transactions: Iterable[Transaction],
    transaction_types: Iterable[TransactionType] = (TransactionType.RENT,),
) -> Decimal:
    """Transactions of the given types whose paid date falls within the year.

    Only rent counts by default; deposits are held for the tenant.
    """
    types = set(transaction_types)
    return money_sum(
        t.amount
        for t in transactions
        if t.transaction_type in types and _in_year(t.paid_date, year)
    )


def yearly_expenses(year: int, expenses: Iterable[Expense]) -> Decimal:
    """Expenses dated within the year."""
    return money_sum(e.amount for e in expenses if _in_year(e.date, year))


# Repository-backed reports

@dataclass
class ContractSummary:
    """Money position of one contract."""
    contract: Contract
    total_paid: Decimal
    overdue_amount: Decimal
    overdue_count: int
    days_overdue: int
    next_payment_due: Optional[datetime]


@dataclass
class PropertySummary:
    """Money position of one property."""
    property: Property
    active_contract: Optional[Contract]
    total_income: Decimal
    total_expenses: Decimal
    net_income: Decimal
    overdue_amount: Decimal


@dataclass
class PortfolioSummary:
    """Totals across every property."""
    property_count: int
    vacant_count: int
    vacancy_rate: float
    total_income: Decimal
    total_expenses: Decimal
    net_income: Decimal
    overdue_amount: Decimal
    properties: list[PropertySummary] = field(default_factory=list)


@dataclass
class YearSummary:
    """Income and expenses for one calendar year."""
    year: int
    income: Decimal
    expenses: Decimal

    @property
    def net(self) -> Decimal:
        return self.income - self.expenses


class LedgerReport:
    """Read-only rollups resolved from the repository."""

    def __init__(self, db: Database):
        self.db = db

    def contract_summary(self, contract_id: int, now: datetime) -> ContractSummary:
        contract = self.db.get_contract(contract_id)
        if contract is None:
            raise NotFoundError("contract", contract_id)
        obligations = self.db.list_obligations(contract_id=contract_id)
        transactions = self.db.list_transactions(contract_id=contract_id)
        overdue = overdue_obligations_for(contract, obligations, now)
        return ContractSummary(
            contract=contract,
            total_paid=total_paid(contract, transactions),
            overdue_amount=money_sum(o.amount for o in overdue),
            overdue_count=len(overdue),
            days_overdue=contract_days_overdue(obligations, now),
            next_payment_due=next_payment_due(obligations),
        )

    def property_summary(self, property_id: int, now: datetime) -> PropertySummary:
        prop = self.db.get_property(property_id)
        if prop is None:
            raise NotFoundError("property", property_id)
        return self._summarise(
            prop,
            self.db.list_contracts_for_property(property_id),
            self.db.list_transactions(),
            self.db.list_expenses(property_id=property_id),
            self.db.list_obligations(),
            now,
        )

    def portfolio(self, now: datetime) -> PortfolioSummary:
        properties = self.db.list_properties()
        contracts = self.db.list_contracts()
        transactions = self.db.list_transactions()
        expenses = self.db.list_expenses()
        obligations = self.db.list_obligations()

        summaries = [
            self._summarise(p, contracts, transactions, expenses, obligations, now)
            for p in properties
        ]
        income = money_sum(s.total_income for s in summaries)
        spent = money_sum(s.total_expenses for s in summaries)
        return PortfolioSummary(
            property_count=len(properties),
            vacant_count=len(vacant_properties(properties, contracts)),
            vacancy_rate=vacancy_rate(properties, contracts),
            total_income=income,
            total_expenses=spent,
            net_income=income - spent,
            overdue_amount=money_sum(s.overdue_amount for s in summaries),
            properties=summaries,
        )

    def year(self, year: int) -> YearSummary:
        start, end = year_bounds(year)
        return YearSummary(
            year=year,
            income=yearly_income(year, self.db.list_transactions_between(start, end)),
            expenses=yearly_expenses(year, self.db.list_expenses_between(start, end)),
        )

    def tenant_rent_owed(self, tenant_id: int, now: datetime) -> Decimal:
        tenant = self.db.get_tenant(tenant_id)
        if tenant is None:
            raise NotFoundError("tenant", tenant_id)
        return total_rent_owed(
            tenant,
            self.db.list_contracts_for_tenant(tenant_id),
            self.db.list_obligations(),
            now,
        )

    def _summarise(self, prop, contracts, transactions, expenses, obligations, now) -> PropertySummary:
        income = total_income(prop, contracts, transactions)
        spent = total_expenses(prop, expenses)
        overdue = property_overdue_obligations(prop, contracts, obligations, now)
        return PropertySummary(
            property=prop,
            active_contract=active_contract(prop, contracts),
            total_income=income,
            total_expenses=spent,
            net_income=income - spent,
            overdue_amount=money_sum(o.amount for o in overdue),
        )
