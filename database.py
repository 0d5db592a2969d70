"""SQLite storage for properties, tenants, contracts and their ledger."""

import shutil
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Generator, Iterable, Optional

from logging_config import get_logger
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

logger = get_logger(__name__)

# Database schema version for migrations
SCHEMA_VERSION = 1

# Money is stored as TEXT so Decimal values round-trip exactly.
SQLITE_SCHEMA = """
CREATE TABLE IF NOT EXISTS properties (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    address TEXT NOT NULL,
    property_type TEXT NOT NULL DEFAULT 'residential',
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS tenants (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    phone TEXT NOT NULL,
    email TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS contracts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    property_id INTEGER NOT NULL,
    tenant_id INTEGER NOT NULL,
    start_date TEXT NOT NULL,
    end_date TEXT NOT NULL,
    rent_amount TEXT NOT NULL,
    payment_cycle TEXT NOT NULL DEFAULT 'monthly',
    deposit_amount TEXT NOT NULL DEFAULT '0.00',
    is_active BOOLEAN NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL,
    FOREIGN KEY (property_id) REFERENCES properties(id),
    FOREIGN KEY (tenant_id) REFERENCES tenants(id)
);

CREATE TABLE IF NOT EXISTS obligations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    contract_id INTEGER NOT NULL,
    due_date TEXT NOT NULL,
    amount TEXT NOT NULL,
    is_paid BOOLEAN NOT NULL DEFAULT 0,
    paid_date TEXT,
    FOREIGN KEY (contract_id) REFERENCES contracts(id)
);

CREATE TABLE IF NOT EXISTS transactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    contract_id INTEGER NOT NULL,
    amount TEXT NOT NULL,
    due_date TEXT NOT NULL,
    transaction_type TEXT NOT NULL DEFAULT 'rent',
    method TEXT NOT NULL DEFAULT 'bankTransfer',
    paid_date TEXT,
    is_partial BOOLEAN NOT NULL DEFAULT 0,
    notes TEXT,
    FOREIGN KEY (contract_id) REFERENCES contracts(id)
);

CREATE TABLE IF NOT EXISTS expenses (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    property_id INTEGER NOT NULL,
    amount TEXT NOT NULL,
    category TEXT NOT NULL DEFAULT 'maintenance',
    description TEXT,
    date TEXT NOT NULL,
    FOREIGN KEY (property_id) REFERENCES properties(id)
);

CREATE INDEX IF NOT EXISTS idx_obligations_contract ON obligations(contract_id);
CREATE INDEX IF NOT EXISTS idx_obligations_due ON obligations(is_paid, due_date);
CREATE INDEX IF NOT EXISTS idx_transactions_contract ON transactions(contract_id);

-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);
"""


def _format_datetime(value) -> Optional[str]:
    """Serialise a date/datetime for storage."""
    if value is None:
        return None
    if not isinstance(value, datetime) and isinstance(value, date):
        value = datetime(value.year, value.month, value.day)
    return value.isoformat()


class Database:
    """SQLite-backed repository for the rent ledger."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._ensure_directory()

    def _ensure_directory(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def connection(self) -> Generator["_SqliteConnection", None, None]:
        """Context manager for a transaction: commit on success, roll back on error."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield _SqliteConnection(conn)
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def initialize(self) -> None:
        """Initialize the database schema."""
        with self.connection() as conn:
            conn.executescript(SQLITE_SCHEMA)
            cursor = conn.execute("SELECT version FROM schema_version LIMIT 1")
            if cursor.fetchone() is None:
                conn.execute(
                    "INSERT INTO schema_version (version) VALUES (?)",
                    (SCHEMA_VERSION,),
                )

    def get_schema_version(self) -> int:
        """Get current schema version."""
        with self.connection() as conn:
            conn.execute("SELECT version FROM schema_version LIMIT 1")
            row = conn.fetchone()
            return row["version"] if row else 0

    def _parse_datetime(self, value) -> Optional[datetime]:
        """Parse a stored timestamp."""
        if value is None:
            return None
        if isinstance(value, datetime):
            return value
        return datetime.fromisoformat(value)

    # Property CRUD operations

    def create_property(self, prop: Property) -> int:
        """Create a new property and return its ID."""
        with self.connection() as conn:
            cursor = conn.execute(
                """INSERT INTO properties (name, address, property_type, created_at)
                   VALUES (?, ?, ?, ?)""",
                (prop.name, prop.address, prop.property_type.value, _format_datetime(prop.created_at)),
            )
            return cursor.lastrowid

    def get_property(self, property_id: int) -> Optional[Property]:
        """Get a property by ID."""
        with self.connection() as conn:
            conn.execute("SELECT * FROM properties WHERE id = ?", (property_id,))
            row = conn.fetchone()
            if row:
                return self._row_to_property(row)
            return None

    def list_properties(self) -> list[Property]:
        """List all properties."""
        with self.connection() as conn:
            conn.execute("SELECT * FROM properties ORDER BY name, id")
            return [self._row_to_property(row) for row in conn.fetchall()]

    def update_property(self, prop: Property) -> None:
        """Update name, address and type of an existing property."""
        with self.connection() as conn:
            conn.execute(
                "UPDATE properties SET name = ?, address = ?, property_type = ? WHERE id = ?",
                (prop.name, prop.address, prop.property_type.value, prop.id),
            )

    def delete_property(self, property_id: int) -> None:
        """Delete a property with its expenses, contracts and their ledger lines."""
        with self.connection() as conn:
            conn.execute(
                """DELETE FROM obligations WHERE contract_id IN
                   (SELECT id FROM contracts WHERE property_id = ?)""",
                (property_id,),
            )
            conn.execute(
                """DELETE FROM transactions WHERE contract_id IN
                   (SELECT id FROM contracts WHERE property_id = ?)""",
                (property_id,),
            )
            conn.execute("DELETE FROM contracts WHERE property_id = ?", (property_id,))
            conn.execute("DELETE FROM expenses WHERE property_id = ?", (property_id,))
            conn.execute("DELETE FROM properties WHERE id = ?", (property_id,))

    def _row_to_property(self, row) -> Property:
        """Convert database row to Property object."""
        return Property(
            id=row["id"],
            name=row["name"],
            address=row["address"],
            property_type=PropertyType(row["property_type"]),
            created_at=self._parse_datetime(row["created_at"]),
        )

    # Tenant CRUD operations

    def create_tenant(self, tenant: Tenant) -> int:
        """Create a new tenant and return its ID."""
        with self.connection() as conn:
            cursor = conn.execute(
                "INSERT INTO tenants (name, phone, email, created_at) VALUES (?, ?, ?, ?)",
                (tenant.name, tenant.phone, tenant.email, _format_datetime(tenant.created_at)),
            )
            return cursor.lastrowid

    def get_tenant(self, tenant_id: int) -> Optional[Tenant]:
        """Get a tenant by ID."""
        with self.connection() as conn:
            conn.execute("SELECT * FROM tenants WHERE id = ?", (tenant_id,))
            row = conn.fetchone()
            if row:
                return self._row_to_tenant(row)
            return None

    def list_tenants(self) -> list[Tenant]:
        """List all tenants."""
        with self.connection() as conn:
            conn.execute("SELECT * FROM tenants ORDER BY name, id")
            return [self._row_to_tenant(row) for row in conn.fetchall()]

    def update_tenant(self, tenant: Tenant) -> None:
        """Update contact details of an existing tenant."""
        with self.connection() as conn:
            conn.execute(
                "UPDATE tenants SET name = ?, phone = ?, email = ? WHERE id = ?",
                (tenant.name, tenant.phone, tenant.email, tenant.id),
            )

    def delete_tenant(self, tenant_id: int) -> None:
        """Delete a tenant record."""
        with self.connection() as conn:
            conn.execute("DELETE FROM tenants WHERE id = ?", (tenant_id,))

    def _row_to_tenant(self, row) -> Tenant:
        """Convert database row to Tenant object."""
        return Tenant(
            id=row["id"],
            name=row["name"],
            phone=row["phone"],
            email=row["email"],
            created_at=self._parse_datetime(row["created_at"]),
        )

    # Contract CRUD operations

    def create_contract(self, contract: Contract) -> int:
        """Create a contract and return its ID.

        An active contract deactivates every other contract of the same
        property in the same transaction, so a property never has two.
        """
        with self.connection() as conn:
            if contract.is_active:
                conn.execute(
                    "UPDATE contracts SET is_active = 0 WHERE property_id = ? AND is_active = 1",
                    (contract.property_id,),
                )
            cursor = conn.execute(
                """INSERT INTO contracts (
                    property_id, tenant_id, start_date, end_date, rent_amount,
                    payment_cycle, deposit_amount, is_active, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    contract.property_id,
                    contract.tenant_id,
                    _format_datetime(contract.start_date),
                    _format_datetime(contract.end_date),
                    str(contract.rent_amount),
                    contract.payment_cycle.value,
                    str(contract.deposit_amount),
                    contract.is_active,
                    _format_datetime(contract.created_at),
                ),
            )
            return cursor.lastrowid

    def get_contract(self, contract_id: int) -> Optional[Contract]:
        """Get a contract by ID."""
        with self.connection() as conn:
            conn.execute("SELECT * FROM contracts WHERE id = ?", (contract_id,))
            row = conn.fetchone()
            if row:
                return self._row_to_contract(row)
            return None

    def list_contracts(self, active_only: bool = False) -> list[Contract]:
        """List contracts, optionally filtered to active only."""
        with self.connection() as conn:
            if active_only:
                conn.execute("SELECT * FROM contracts WHERE is_active = 1 ORDER BY created_at DESC, id DESC")
            else:
                conn.execute("SELECT * FROM contracts ORDER BY created_at DESC, id DESC")
            return [self._row_to_contract(row) for row in conn.fetchall()]

    def list_contracts_for_property(self, property_id: int, active_only: bool = False) -> list[Contract]:
        """List contracts ever linked to a property."""
        with self.connection() as conn:
            if active_only:
                conn.execute(
                    """SELECT * FROM contracts WHERE property_id = ? AND is_active = 1
                       ORDER BY created_at DESC, id DESC""",
                    (property_id,),
                )
            else:
                conn.execute(
                    "SELECT * FROM contracts WHERE property_id = ? ORDER BY created_at DESC, id DESC",
                    (property_id,),
                )
            return [self._row_to_contract(row) for row in conn.fetchall()]

    def list_contracts_for_tenant(self, tenant_id: int) -> list[Contract]:
        """List a tenant's contract history."""
        with self.connection() as conn:
            conn.execute(
                "SELECT * FROM contracts WHERE tenant_id = ? ORDER BY created_at DESC, id DESC",
                (tenant_id,),
            )
            return [self._row_to_contract(row) for row in conn.fetchall()]

    def get_active_contract(self, property_id: int) -> Optional[Contract]:
        """Get the contract currently in force for a property."""
        contracts = self.list_contracts_for_property(property_id, active_only=True)
        return contracts[0] if contracts else None

    def update_contract(self, contract: Contract) -> None:
        """Update the mutable fields of an existing contract."""
        with self.connection() as conn:
            conn.execute(
                """UPDATE contracts SET
                    start_date = ?, end_date = ?, rent_amount = ?, payment_cycle = ?,
                    deposit_amount = ?, is_active = ?
                WHERE id = ?""",
                (
                    _format_datetime(contract.start_date),
                    _format_datetime(contract.end_date),
                    str(contract.rent_amount),
                    contract.payment_cycle.value,
                    str(contract.deposit_amount),
                    contract.is_active,
                    contract.id,
                ),
            )

    def delete_contract(self, contract_id: int) -> None:
        """Delete a contract with its obligations and transactions."""
        with self.connection() as conn:
            conn.execute("DELETE FROM obligations WHERE contract_id = ?", (contract_id,))
            conn.execute("DELETE FROM transactions WHERE contract_id = ?", (contract_id,))
            conn.execute("DELETE FROM contracts WHERE id = ?", (contract_id,))

    def _row_to_contract(self, row) -> Contract:
        """Convert database row to Contract object."""
        return Contract(
            id=row["id"],
            property_id=row["property_id"],
            tenant_id=row["tenant_id"],
            start_date=self._parse_datetime(row["start_date"]),
            end_date=self._parse_datetime(row["end_date"]),
            rent_amount=Decimal(row["rent_amount"]),
            payment_cycle=PaymentCycle(row["payment_cycle"]),
            deposit_amount=Decimal(row["deposit_amount"]),
            is_active=bool(row["is_active"]),
            created_at=self._parse_datetime(row["created_at"]),
        )

    # Obligation operations

    def replace_obligations(self, contract_id: int, obligations: Iterable[Obligation]) -> list[Obligation]:
        """Discard a contract's obligations and store a new set.

        Returns the stored obligations with their new IDs, in input order.
        """
        stored = []
        with self.connection() as conn:
            conn.execute("DELETE FROM obligations WHERE contract_id = ?", (contract_id,))
            for obligation in obligations:
                cursor = conn.execute(
                    """INSERT INTO obligations (contract_id, due_date, amount, is_paid, paid_date)
                       VALUES (?, ?, ?, ?, ?)""",
                    (
                        contract_id,
                        _format_datetime(obligation.due_date),
                        str(obligation.amount),
                        obligation.is_paid,
                        _format_datetime(obligation.paid_date),
                    ),
                )
                obligation.id = cursor.lastrowid
                obligation.contract_id = contract_id
                stored.append(obligation)
        return stored

    def get_obligation(self, obligation_id: int) -> Optional[Obligation]:
        """Get an obligation by ID."""
        with self.connection() as conn:
            conn.execute("SELECT * FROM obligations WHERE id = ?", (obligation_id,))
            row = conn.fetchone()
            if row:
                return self._row_to_obligation(row)
            return None

    def list_obligations(self, contract_id: Optional[int] = None) -> list[Obligation]:
        """List obligations ordered by due date, optionally for one contract."""
        with self.connection() as conn:
            if contract_id is not None:
                conn.execute(
                    "SELECT * FROM obligations WHERE contract_id = ? ORDER BY due_date, id",
                    (contract_id,),
                )
            else:
                conn.execute("SELECT * FROM obligations ORDER BY due_date, id")
            return [self._row_to_obligation(row) for row in conn.fetchall()]

    def list_overdue_obligations(self, now: datetime) -> list[Obligation]:
        """Unpaid obligations whose due date has passed."""
        with self.connection() as conn:
            conn.execute(
                "SELECT * FROM obligations WHERE is_paid = 0 AND due_date < ? ORDER BY due_date, id",
                (_format_datetime(now),),
            )
            return [self._row_to_obligation(row) for row in conn.fetchall()]

    def list_obligations_due_within(self, now: datetime, days: int) -> list[Obligation]:
        """Unpaid obligations falling due between now and now + days."""
        with self.connection() as conn:
            conn.execute(
                """SELECT * FROM obligations
                   WHERE is_paid = 0 AND due_date >= ? AND due_date <= ?
                   ORDER BY due_date, id""",
                (_format_datetime(now), _format_datetime(now + timedelta(days=days))),
            )
            return [self._row_to_obligation(row) for row in conn.fetchall()]

    def mark_obligation_paid(self, obligation_id: int, paid_date: datetime) -> None:
        """Set the paid flag and paid date of an obligation."""
        with self.connection() as conn:
            conn.execute(
                "UPDATE obligations SET is_paid = 1, paid_date = ? WHERE id = ?",
                (_format_datetime(paid_date), obligation_id),
            )

    def _row_to_obligation(self, row) -> Obligation:
        """Convert database row to Obligation object."""
        return Obligation(
            id=row["id"],
            contract_id=row["contract_id"],
            due_date=self._parse_datetime(row["due_date"]),
            amount=Decimal(row["amount"]),
            is_paid=bool(row["is_paid"]),
            paid_date=self._parse_datetime(row["paid_date"]),
        )

    # Transaction operations

    def create_transaction(self, txn: Transaction) -> int:
        """Record a payment and return its ID."""
        with self.connection() as conn:
            cursor = conn.execute(
                """INSERT INTO transactions (
                    contract_id, amount, due_date, transaction_type, method,
                    paid_date, is_partial, notes
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    txn.contract_id,
                    str(txn.amount),
                    _format_datetime(txn.due_date),
                    txn.transaction_type.value,
                    txn.method.value,
                    _format_datetime(txn.paid_date),
                    txn.is_partial,
                    txn.notes,
                ),
            )
            return cursor.lastrowid

    def get_transaction(self, transaction_id: int) -> Optional[Transaction]:
        """Get a transaction by ID."""
        with self.connection() as conn:
            conn.execute("SELECT * FROM transactions WHERE id = ?", (transaction_id,))
            row = conn.fetchone()
            if row:
                return self._row_to_transaction(row)
            return None

    def list_transactions(self, contract_id: Optional[int] = None) -> list[Transaction]:
        """List transactions, optionally for one contract."""
        with self.connection() as conn:
            if contract_id is not None:
                conn.execute(
                    "SELECT * FROM transactions WHERE contract_id = ? ORDER BY due_date, id",
                    (contract_id,),
                )
            else:
                conn.execute("SELECT * FROM transactions ORDER BY due_date, id")
            return [self._row_to_transaction(row) for row in conn.fetchall()]

    def list_transactions_between(self, start: datetime, end: datetime) -> list[Transaction]:
        """Transactions paid within [start, end)."""
        with self.connection() as conn:
            conn.execute(
                """SELECT * FROM transactions
                   WHERE paid_date IS NOT NULL AND paid_date >= ? AND paid_date < ?
                   ORDER BY paid_date, id""",
                (_format_datetime(start), _format_datetime(end)),
            )
            return [self._row_to_transaction(row) for row in conn.fetchall()]

    def delete_transaction(self, transaction_id: int) -> None:
        """Delete a recorded transaction."""
        with self.connection() as conn:
            conn.execute("DELETE FROM transactions WHERE id = ?", (transaction_id,))

    def _row_to_transaction(self, row) -> Transaction:
        """Convert database row to Transaction object."""
        return Transaction(
            id=row["id"],
            contract_id=row["contract_id"],
            amount=Decimal(row["amount"]),
            due_date=self._parse_datetime(row["due_date"]),
            transaction_type=TransactionType(row["transaction_type"]),
            method=PaymentMethod(row["method"]),
            paid_date=self._parse_datetime(row["paid_date"]),
            is_partial=bool(row["is_partial"]),
            notes=row["notes"],
        )

    # Expense operations

    def create_expense(self, expense: Expense) -> int:
        """Record an expense and return its ID."""
        with self.connection() as conn:
            cursor = conn.execute(
                """INSERT INTO expenses (property_id, amount, category, description, date)
                   VALUES (?, ?, ?, ?, ?)""",
                (
                    expense.property_id,
                    str(expense.amount),
                    expense.category.value,
                    expense.description,
                    _format_datetime(expense.date),
                ),
            )
            return cursor.lastrowid

    def get_expense(self, expense_id: int) -> Optional[Expense]:
        """Get an expense by ID."""
        with self.connection() as conn:
            conn.execute("SELECT * FROM expenses WHERE id = ?", (expense_id,))
            row = conn.fetchone()
            if row:
                return self._row_to_expense(row)
            return None

    def list_expenses(self, property_id: Optional[int] = None) -> list[Expense]:
        """List expenses, optionally for one property."""
        with self.connection() as conn:
            if property_id is not None:
                conn.execute(
                    "SELECT * FROM expenses WHERE property_id = ? ORDER BY date, id",
                    (property_id,),
                )
            else:
                conn.execute("SELECT * FROM expenses ORDER BY date, id")
            return [self._row_to_expense(row) for row in conn.fetchall()]

    def list_expenses_between(self, start: datetime, end: datetime) -> list[Expense]:
        """Expenses dated within [start, end)."""
        with self.connection() as conn:
            conn.execute(
                "SELECT * FROM expenses WHERE date >= ? AND date < ? ORDER BY date, id",
                (_format_datetime(start), _format_datetime(end)),
            )
            return [self._row_to_expense(row) for row in conn.fetchall()]

    def delete_expense(self, expense_id: int) -> None:
        """Delete an expense."""
        with self.connection() as conn:
            conn.execute("DELETE FROM expenses WHERE id = ?", (expense_id,))

    def _row_to_expense(self, row) -> Expense:
        """Convert database row to Expense object."""
        return Expense(
            id=row["id"],
            property_id=row["property_id"],
            amount=Decimal(row["amount"]),
            category=ExpenseCategory(row["category"]),
            description=row["description"] or "",
            date=self._parse_datetime(row["date"]),
        )

    # Backup / restore

    def backup(self, destination: Path) -> Path:
        """Write a consistent snapshot of the database to destination."""
        destination.parent.mkdir(parents=True, exist_ok=True)
        source = sqlite3.connect(self.db_path)
        target = sqlite3.connect(destination)
        try:
            with target:
                source.backup(target)
        finally:
            target.close()
            source.close()
        logger.info("Database backed up", extra={"destination": str(destination)})
        return destination

    def restore(self, snapshot: Path) -> None:
        """Replace the database file with a snapshot taken by backup()."""
        if not snapshot.exists():
            raise FileNotFoundError(f"Backup file not found: {snapshot}")
        shutil.copyfile(snapshot, self.db_path)
        logger.info("Database restored", extra={"snapshot": str(snapshot)})


class _SqliteConnection:
    """Thin wrapper remembering the last cursor for fetchone/fetchall."""

    def __init__(self, conn):
        self._conn = conn
        self._cursor = None

    def execute(self, query: str, params: tuple = None):
        """Execute a query."""
        if params:
            self._cursor = self._conn.execute(query, params)
        else:
            self._cursor = self._conn.execute(query)
        return self._cursor

    def executescript(self, script: str):
        """Execute a SQL script."""
        return self._conn.executescript(script)

    def fetchone(self):
        """Fetch one row."""
        return self._cursor.fetchone() if self._cursor else None

    def fetchall(self):
        """Fetch all rows."""
        return self._cursor.fetchall() if self._cursor else []
