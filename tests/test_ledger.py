"""Tests for income, expense and arrears rollups."""

from datetime import datetime
from decimal import Decimal

import pytest

from errors import NotFoundError
from models import (
    Contract,
    Expense,
    Obligation,
    PaymentCycle,
    Property,
    Tenant,
    Transaction,
    TransactionType,
)
from services import ledger

NOW = datetime(2024, 6, 15)


@pytest.fixture
def portfolio():
    """Two properties, one let and one vacant, with some history."""
    flat = Property(id=1, name="Harbour Flat", address="12 Quay Street")
    shop = Property(id=2, name="Corner Shop", address="3 Market Road")
    old = Contract(id=1, property_id=1, tenant_id=1, rent_amount=Decimal("900.00"), is_active=False,
                   start_date=datetime(2023, 1, 1), end_date=datetime(2023, 12, 31))
    current = Contract(id=2, property_id=1, tenant_id=2, rent_amount=Decimal("1000.00"),
                       start_date=datetime(2024, 1, 1), end_date=datetime(2024, 12, 31))
    transactions = [
        Transaction(id=1, contract_id=1, amount=Decimal("900.00"), paid_date=datetime(2023, 5, 1)),
        Transaction(id=2, contract_id=2, amount=Decimal("1000.00"), paid_date=datetime(2024, 1, 2)),
        Transaction(id=3, contract_id=2, amount=Decimal("50.00"), paid_date=datetime(2024, 2, 10),
                    transaction_type=TransactionType.LATE_FEE),
        Transaction(id=4, contract_id=1, amount=Decimal("500.00"), paid_date=datetime(2024, 1, 5),
                    transaction_type=TransactionType.DEPOSIT_RETURN),
    ]
    expenses = [
        Expense(id=1, property_id=1, amount=Decimal("120.50"), date=datetime(2024, 3, 1)),
        Expense(id=2, property_id=2, amount=Decimal("80.00"), date=datetime(2023, 12, 31, 23, 59)),
    ]
    obligations = [
        Obligation(id=1, contract_id=2, due_date=datetime(2024, 5, 1), amount=Decimal("1000.00")),
        Obligation(id=2, contract_id=2, due_date=datetime(2024, 6, 1), amount=Decimal("1000.00")),
        Obligation(id=3, contract_id=2, due_date=datetime(2024, 4, 1), amount=Decimal("1000.00"),
                   is_paid=True, paid_date=datetime(2024, 4, 1)),
        Obligation(id=4, contract_id=2, due_date=datetime(2024, 7, 1), amount=Decimal("1000.00")),
        Obligation(id=5, contract_id=1, due_date=datetime(2023, 12, 1), amount=Decimal("900.00")),
    ]
    return {
        "properties": [flat, shop],
        "contracts": [old, current],
        "transactions": transactions,
        "expenses": expenses,
        "obligations": obligations,
    }


class TestContractRollups:
    """Tests for contract level rollups."""

    def test_total_paid_excludes_deposit_returns(self, portfolio):
        old, current = portfolio["contracts"]
        assert ledger.total_paid(current, portfolio["transactions"]) == Decimal("1050.00")
        assert ledger.total_paid(old, portfolio["transactions"]) == Decimal("900.00")

    def test_overdue_amount(self, portfolio):
        current = portfolio["contracts"][1]
        assert ledger.overdue_amount(current, portfolio["obligations"], NOW) == Decimal("2000.00")
        assert ledger.is_contract_overdue(current, portfolio["obligations"], NOW)

    def test_nothing_overdue_before_first_due_date(self, portfolio):
        current = portfolio["contracts"][1]
        assert ledger.overdue_amount(current, portfolio["obligations"], datetime(2024, 3, 1)) == Decimal("0")
        assert not ledger.is_contract_overdue(current, [], NOW)


class TestPropertyRollups:
    """Tests for property level rollups."""

    def test_income_spans_every_contract(self, portfolio):
        flat = portfolio["properties"][0]
        income = ledger.total_income(flat, portfolio["contracts"], portfolio["transactions"])
        assert income == Decimal("1950.00")

    def test_income_is_additive_over_contracts(self, portfolio):
        flat = portfolio["properties"][0]
        by_contract = sum(
            (ledger.total_paid(c, portfolio["transactions"]) for c in portfolio["contracts"]),
            Decimal("0"),
        )
        assert ledger.total_income(flat, portfolio["contracts"], portfolio["transactions"]) == by_contract

    def test_net_income(self, portfolio):
        flat, shop = portfolio["properties"]
        args = (portfolio["contracts"], portfolio["transactions"], portfolio["expenses"])
        assert ledger.net_income(flat, *args) == Decimal("1829.50")
        assert ledger.net_income(shop, *args) == Decimal("-80.00")

    def test_empty_inputs_sum_to_zero(self, portfolio):
        shop = portfolio["properties"][1]
        assert ledger.total_income(shop, [], []) == Decimal("0")
        assert ledger.total_expenses(shop, []) == Decimal("0")

    def test_active_contract_and_vacancy(self, portfolio):
        flat, shop = portfolio["properties"]
        assert ledger.active_contract(flat, portfolio["contracts"]).id == 2
        assert ledger.active_contract(shop, portfolio["contracts"]) is None
        assert ledger.is_vacant(shop, portfolio["contracts"])
        assert not ledger.is_vacant(flat, portfolio["contracts"])

    def test_overdue_lines_come_from_the_active_contract(self, portfolio):
        flat = portfolio["properties"][0]
        overdue = ledger.property_overdue_obligations(
            flat, portfolio["contracts"], portfolio["obligations"], NOW
        )
        # Line 5 belongs to the ended contract
        assert [o.id for o in overdue] == [1, 2]


class TestPortfolioRollups:
    """Tests for portfolio level rollups."""

    def test_vacancy_rate(self, portfolio):
        assert ledger.vacancy_rate(portfolio["properties"], portfolio["contracts"]) == 50.0
        assert ledger.vacancy_rate([], portfolio["contracts"]) == 0

    def test_vacant_and_occupied(self, portfolio):
        props, contracts = portfolio["properties"], portfolio["contracts"]
        assert [p.id for p in ledger.vacant_properties(props, contracts)] == [2]
        assert [p.id for p in ledger.occupied_properties(props, contracts)] == [1]

    def test_properties_with_overdue(self, portfolio):
        result = ledger.properties_with_overdue(
            portfolio["properties"], portfolio["contracts"], portfolio["obligations"], NOW
        )
        assert [p.id for p in result] == [1]

    def test_total_rent_owed_by_tenant(self, portfolio):
        current_tenant = Tenant(id=2, name="Wei Chen", phone="555-0101")
        former_tenant = Tenant(id=1, name="Sam Hill", phone="555-0199")
        args = (portfolio["contracts"], portfolio["obligations"], NOW)
        assert ledger.total_rent_owed(current_tenant, *args) == Decimal("2000.00")
        assert ledger.total_rent_owed(former_tenant, *args) == Decimal("0")


class TestYearlyRollups:
    """Tests for calendar year aggregation."""

    def test_yearly_income_uses_paid_date(self, portfolio):
        # The 2024 late fee and deposit return are not rent
        assert ledger.yearly_income(2024, portfolio["transactions"]) == Decimal("1000.00")
        assert ledger.yearly_income(2023, portfolio["transactions"]) == Decimal("900.00")
        assert ledger.yearly_income(2022, portfolio["transactions"]) == Decimal("0")

    def test_yearly_income_counts_rent_only_by_default(self):
        txns = [
            Transaction(contract_id=1, amount=Decimal("1000.00"), paid_date=datetime(2024, 3, 1)),
            Transaction(contract_id=1, amount=Decimal("2000.00"), paid_date=datetime(2024, 3, 1),
                        transaction_type=TransactionType.DEPOSIT),
            Transaction(contract_id=1, amount=Decimal("25.00"), paid_date=datetime(2024, 3, 9),
                        transaction_type=TransactionType.LATE_FEE),
        ]
        assert ledger.yearly_income(2024, txns) == Decimal("1000.00")
        assert ledger.yearly_income(
            2024, txns, (TransactionType.RENT, TransactionType.LATE_FEE)
        ) == Decimal("1025.00")

    def test_new_year_midnight_belongs_to_new_year(self):
        txn = Transaction(contract_id=1, amount=Decimal("10.00"), paid_date=datetime(2024, 1, 1))
        assert ledger.yearly_income(2024, [txn]) == Decimal("10.00")
        assert ledger.yearly_income(2023, [txn]) == Decimal("0")

    def test_unpaid_transactions_are_not_income(self):
        txn = Transaction(contract_id=1, amount=Decimal("10.00"), due_date=datetime(2024, 3, 1))
        assert ledger.yearly_income(2024, [txn]) == Decimal("0")

    def test_yearly_expenses(self, portfolio):
        assert ledger.yearly_expenses(2024, portfolio["expenses"]) == Decimal("120.50")
        assert ledger.yearly_expenses(2023, portfolio["expenses"]) == Decimal("80.00")

    def test_year_bounds(self):
        assert ledger.year_bounds(2024) == (datetime(2024, 1, 1), datetime(2025, 1, 1))


class TestLedgerReport:
    """Tests for repository-backed reports."""

    @pytest.fixture
    def let_property(self, service, property_and_tenant, before_2024):
        prop, tenant = property_and_tenant
        contract, obligations = service.create_contract(
            prop.id, tenant.id, datetime(2024, 1, 1), datetime(2024, 12, 31), "1000",
            PaymentCycle.QUARTERLY, now=before_2024,
        )
        service.mark_paid(obligations[0].id, datetime(2024, 1, 3))
        service.record_transaction(contract.id, "1000", datetime(2024, 1, 1), paid_date=datetime(2024, 1, 3))
        service.add_expense(prop.id, "250.25", description="Boiler service", date=datetime(2024, 2, 1))
        return prop, tenant, contract

    def test_contract_summary(self, db, let_property):
        _, _, contract = let_property
        summary = ledger.LedgerReport(db).contract_summary(contract.id, NOW)
        assert summary.total_paid == Decimal("1000.00")
        assert summary.overdue_amount == Decimal("1000.00")
        assert summary.overdue_count == 1
        assert summary.next_payment_due == datetime(2024, 4, 1)
        assert summary.days_overdue == (NOW - datetime(2024, 4, 1)).days

    def test_property_summary(self, db, let_property):
        prop, _, contract = let_property
        summary = ledger.LedgerReport(db).property_summary(prop.id, NOW)
        assert summary.active_contract.id == contract.id
        assert summary.total_income == Decimal("1000.00")
        assert summary.total_expenses == Decimal("250.25")
        assert summary.net_income == Decimal("749.75")

    def test_portfolio(self, db, service, let_property):
        service.add_property("Corner Shop", "3 Market Road")
        summary = ledger.LedgerReport(db).portfolio(NOW)
        assert summary.property_count == 2
        assert summary.vacant_count == 1
        assert summary.vacancy_rate == 50.0
        assert summary.net_income == Decimal("749.75")
        assert summary.overdue_amount == Decimal("1000.00")
        assert len(summary.properties) == 2

    def test_empty_portfolio(self, db):
        summary = ledger.LedgerReport(db).portfolio(NOW)
        assert summary.property_count == 0
        assert summary.vacancy_rate == 0
        assert summary.total_income == Decimal("0")

    def test_year(self, db, let_property):
        report = ledger.LedgerReport(db)
        year = report.year(2024)
        assert year.income == Decimal("1000.00")
        assert year.expenses == Decimal("250.25")
        assert year.net == Decimal("749.75")
        assert report.year(2023).net == Decimal("0")

    def test_tenant_rent_owed(self, db, let_property):
        _, tenant, _ = let_property
        assert ledger.LedgerReport(db).tenant_rent_owed(tenant.id, NOW) == Decimal("1000.00")

    def test_missing_ids(self, db):
        report = ledger.LedgerReport(db)
        with pytest.raises(NotFoundError):
            report.contract_summary(99, NOW)
        with pytest.raises(NotFoundError):
            report.property_summary(99, NOW)
        with pytest.raises(NotFoundError):
            report.tenant_rent_owed(99, NOW)
