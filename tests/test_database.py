"""Tests for database operations."""

from datetime import datetime
from decimal import Decimal

import pytest

from database import SCHEMA_VERSION, Database
from models import (
    Contract,
    Expense,
    ExpenseCategory,
    Obligation,
    PaymentCycle,
    PaymentMethod,
    Property,
    PropertyType,
    Tenant,
    Transaction,
    TransactionType,
)


def add_contract(db, property_id, tenant_id=1, active=True, rent="1500.00"):
    contract = Contract(
        property_id=property_id,
        tenant_id=tenant_id,
        start_date=datetime(2024, 1, 1),
        end_date=datetime(2024, 12, 31),
        rent_amount=Decimal(rent),
        payment_cycle=PaymentCycle.QUARTERLY,
        deposit_amount=Decimal("3000.00"),
        is_active=active,
    )
    return db.create_contract(contract)


def test_schema_version(db):
    """Test schema version is recorded once."""
    assert db.get_schema_version() == SCHEMA_VERSION
    db.initialize()
    assert db.get_schema_version() == SCHEMA_VERSION


def test_create_and_get_property(db):
    """Test creating a property."""
    prop_id = db.create_property(
        Property(name="Corner Shop", address="3 Market Road", property_type=PropertyType.COMMERCIAL)
    )
    assert prop_id == 1

    found = db.get_property(prop_id)
    assert found.name == "Corner Shop"
    assert found.property_type == PropertyType.COMMERCIAL


def test_get_property_not_found(db):
    """Test finding non-existent property returns None."""
    assert db.get_property(99) is None


def test_update_property(db):
    prop_id = db.create_property(Property(name="Flat", address="1 Road"))
    prop = db.get_property(prop_id)
    prop.name = "Top Flat"
    db.update_property(prop)
    assert db.get_property(prop_id).name == "Top Flat"


def test_tenant_round_trip(db):
    tenant_id = db.create_tenant(Tenant(name="Wei Chen", phone="555-0101"))
    tenant = db.get_tenant(tenant_id)
    assert tenant.email is None

    tenant.email = "wei@example.com"
    db.update_tenant(tenant)
    assert db.get_tenant(tenant_id).email == "wei@example.com"
    assert [t.name for t in db.list_tenants()] == ["Wei Chen"]


def test_contract_money_round_trips_exactly(db):
    prop_id = db.create_property(Property(name="Flat", address="1 Road"))
    contract_id = add_contract(db, prop_id, rent="1234.56")

    contract = db.get_contract(contract_id)
    assert contract.rent_amount == Decimal("1234.56")
    assert contract.deposit_amount == Decimal("3000.00")
    assert contract.payment_cycle == PaymentCycle.QUARTERLY
    assert contract.start_date == datetime(2024, 1, 1)
    assert contract.is_active


def test_new_active_contract_deactivates_previous(db):
    """A property never has two active contracts."""
    prop_id = db.create_property(Property(name="Flat", address="1 Road"))
    other_id = db.create_property(Property(name="Shop", address="2 Road"))
    first = add_contract(db, prop_id)
    elsewhere = add_contract(db, other_id)
    second = add_contract(db, prop_id)

    assert not db.get_contract(first).is_active
    assert db.get_contract(second).is_active
    assert db.get_contract(elsewhere).is_active
    assert db.get_active_contract(prop_id).id == second
    assert [c.id for c in db.list_contracts_for_property(prop_id, active_only=True)] == [second]
    assert len(db.list_contracts_for_property(prop_id)) == 2


def test_inactive_contract_leaves_active_one(db):
    prop_id = db.create_property(Property(name="Flat", address="1 Road"))
    active = add_contract(db, prop_id)
    add_contract(db, prop_id, active=False)
    assert db.get_active_contract(prop_id).id == active


def test_list_contracts_filters(db):
    prop_id = db.create_property(Property(name="Flat", address="1 Road"))
    add_contract(db, prop_id, tenant_id=1)
    add_contract(db, prop_id, tenant_id=2)
    assert len(db.list_contracts()) == 2
    assert len(db.list_contracts(active_only=True)) == 1
    assert len(db.list_contracts_for_tenant(1)) == 1


def test_replace_obligations_assigns_fresh_ids(db):
    prop_id = db.create_property(Property(name="Flat", address="1 Road"))
    contract_id = add_contract(db, prop_id)
    lines = [
        Obligation(due_date=datetime(2024, m, 1), amount=Decimal("1500.00")) for m in (1, 4, 7, 10)
    ]

    stored = db.replace_obligations(contract_id, lines)
    first_ids = [o.id for o in stored]
    assert all(o.contract_id == contract_id for o in stored)
    assert len(set(first_ids)) == 4

    again = db.replace_obligations(
        contract_id, [Obligation(due_date=datetime(2024, 1, 1), amount=Decimal("1500.00"))]
    )
    assert [o.id for o in db.list_obligations(contract_id=contract_id)] == [again[0].id]
    assert again[0].id not in first_ids
    for old_id in first_ids:
        assert db.get_obligation(old_id) is None


def test_overdue_and_due_within_queries(db):
    prop_id = db.create_property(Property(name="Flat", address="1 Road"))
    contract_id = add_contract(db, prop_id)
    stored = db.replace_obligations(contract_id, [
        Obligation(due_date=datetime(2024, 5, 1), amount=Decimal("100.00")),
        Obligation(due_date=datetime(2024, 6, 1), amount=Decimal("100.00")),
        Obligation(due_date=datetime(2024, 6, 18), amount=Decimal("100.00")),
        Obligation(due_date=datetime(2024, 7, 1), amount=Decimal("100.00")),
    ])
    db.mark_obligation_paid(stored[0].id, datetime(2024, 5, 2))
    now = datetime(2024, 6, 15)

    assert [o.id for o in db.list_overdue_obligations(now)] == [stored[1].id]
    assert [o.id for o in db.list_obligations_due_within(now, 7)] == [stored[2].id]

    paid = db.get_obligation(stored[0].id)
    assert paid.is_paid
    assert paid.paid_date == datetime(2024, 5, 2)


def test_transactions(db):
    prop_id = db.create_property(Property(name="Flat", address="1 Road"))
    contract_id = add_contract(db, prop_id)
    txn_id = db.create_transaction(Transaction(
        contract_id=contract_id,
        amount=Decimal("1500.00"),
        due_date=datetime(2024, 1, 1),
        transaction_type=TransactionType.LATE_FEE,
        method=PaymentMethod.CASH,
        paid_date=datetime(2024, 1, 1),
        is_partial=True,
        notes="Paid at the door",
    ))
    db.create_transaction(Transaction(
        contract_id=contract_id,
        amount=Decimal("50.00"),
        due_date=datetime(2023, 12, 1),
        paid_date=datetime(2023, 12, 31, 23, 59, 59),
    ))

    txn = db.get_transaction(txn_id)
    assert txn.transaction_type == TransactionType.LATE_FEE
    assert txn.method == PaymentMethod.CASH
    assert txn.is_partial
    assert txn.notes == "Paid at the door"

    in_2024 = db.list_transactions_between(datetime(2024, 1, 1), datetime(2025, 1, 1))
    assert [t.id for t in in_2024] == [txn_id]

    db.delete_transaction(txn_id)
    assert db.get_transaction(txn_id) is None
    assert len(db.list_transactions(contract_id=contract_id)) == 1


def test_expenses(db):
    prop_id = db.create_property(Property(name="Flat", address="1 Road"))
    expense_id = db.create_expense(Expense(
        property_id=prop_id,
        amount=Decimal("99.99"),
        category=ExpenseCategory.REPAIR,
        description="Window",
        date=datetime(2024, 3, 1),
    ))
    expense = db.get_expense(expense_id)
    assert expense.amount == Decimal("99.99")
    assert expense.category == ExpenseCategory.REPAIR
    assert db.list_expenses_between(datetime(2024, 1, 1), datetime(2025, 1, 1)) == [expense]
    assert db.list_expenses(property_id=prop_id + 1) == []

    db.delete_expense(expense_id)
    assert db.list_expenses() == []


def test_delete_property_cascades(db):
    prop_id = db.create_property(Property(name="Flat", address="1 Road"))
    keep_id = db.create_property(Property(name="Shop", address="2 Road"))
    contract_id = add_contract(db, prop_id)
    kept_contract = add_contract(db, keep_id)
    db.replace_obligations(contract_id, [Obligation(due_date=datetime(2024, 1, 1), amount=Decimal("1.00"))])
    db.create_transaction(Transaction(contract_id=contract_id, amount=Decimal("1.00"), due_date=datetime(2024, 1, 1)))
    db.create_expense(Expense(property_id=prop_id, amount=Decimal("1.00")))

    db.delete_property(prop_id)

    assert db.get_property(prop_id) is None
    assert db.get_contract(contract_id) is None
    assert db.list_obligations(contract_id=contract_id) == []
    assert db.list_transactions(contract_id=contract_id) == []
    assert db.list_expenses(property_id=prop_id) == []
    assert db.get_contract(kept_contract) is not None


def test_delete_contract_cascades(db):
    prop_id = db.create_property(Property(name="Flat", address="1 Road"))
    contract_id = add_contract(db, prop_id)
    db.replace_obligations(contract_id, [Obligation(due_date=datetime(2024, 1, 1), amount=Decimal("1.00"))])
    db.create_transaction(Transaction(contract_id=contract_id, amount=Decimal("1.00"), due_date=datetime(2024, 1, 1)))

    db.delete_contract(contract_id)

    assert db.list_obligations() == []
    assert db.list_transactions() == []
    assert db.get_property(prop_id) is not None


def test_failed_transaction_rolls_back(db):
    with pytest.raises(RuntimeError):
        with db.connection() as conn:
            conn.execute(
                "INSERT INTO properties (name, address, property_type, created_at) VALUES (?, ?, ?, ?)",
                ("Flat", "1 Road", "residential", datetime(2024, 1, 1).isoformat()),
            )
            raise RuntimeError("boom")
    assert db.list_properties() == []


def test_backup_and_restore(db, tmp_path):
    db.create_property(Property(name="Flat", address="1 Road"))
    snapshot = db.backup(tmp_path / "backups" / "rent.db")
    assert snapshot.exists()

    db.create_property(Property(name="Shop", address="2 Road"))
    assert len(db.list_properties()) == 2

    db.restore(snapshot)
    assert [p.name for p in db.list_properties()] == ["Flat"]

    restored = Database(snapshot)
    assert restored.get_schema_version() == SCHEMA_VERSION


def test_restore_missing_snapshot(db, tmp_path):
    with pytest.raises(FileNotFoundError):
        db.restore(tmp_path / "missing.db")
