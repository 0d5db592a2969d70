"""Data models for rent-tracker."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from errors import ValidationError


class PropertyType(str, Enum):
    """Type of rental property."""
    RESIDENTIAL = "residential"
    COMMERCIAL = "commercial"


class PaymentCycle(str, Enum):
    """How often rent falls due."""
    MONTHLY = "monthly"
    BIMONTHLY = "bimonthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"

    @property
    def months_interval(self) -> int:
        """Number of months between two due dates."""
        return {
            PaymentCycle.MONTHLY: 1,
            PaymentCycle.BIMONTHLY: 2,
            PaymentCycle.QUARTERLY: 3,
            PaymentCycle.YEARLY: 12,
        }[self]


class TransactionType(str, Enum):
    """Kind of recorded money movement."""
    RENT = "rent"
    LATE_FEE = "lateFee"
    DEPOSIT = "deposit"
    DEPOSIT_RETURN = "depositReturn"

    @property
    def is_income(self) -> bool:
        return self is not TransactionType.DEPOSIT_RETURN


class PaymentMethod(str, Enum):
    """How a payment was made."""
    BANK_TRANSFER = "bankTransfer"
    MOBILE_PAY = "mobilePay"
    CASH = "cash"


class ExpenseCategory(str, Enum):
    """Category of a property expense."""
    MAINTENANCE = "maintenance"
    REPAIR = "repair"
    OTHER = "other"


class ObligationStatus(str, Enum):
    """Status of a scheduled rent line at a point in time."""
    PAID = "paid"
    OVERDUE = "overdue"
    DUE_SOON = "dueSoon"
    UPCOMING = "upcoming"


class ContractStatus(str, Enum):
    """Lifecycle status of a contract at a point in time."""
    UPCOMING = "upcoming"
    ACTIVE = "active"
    EXPIRING_SOON = "expiringSoon"
    EXPIRED = "expired"
    ENDED = "ended"


@dataclass
class Property:
    """A rental property."""
    id: Optional[int] = None
    name: str = ""
    address: str = ""
    property_type: PropertyType = PropertyType.RESIDENTIAL
    created_at: datetime = field(default_factory=datetime.now)

    def __str__(self) -> str:
        return f"{self.name}, {self.address}"


@dataclass
class Tenant:
    """A person renting one or more properties over time."""
    id: Optional[int] = None
    name: str = ""
    phone: str = ""
    email: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class Contract:
    """A tenancy contract between a property and a tenant."""
    id: Optional[int] = None
    property_id: int = 0
    tenant_id: int = 0
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    rent_amount: Decimal = Decimal("0.00")
    payment_cycle: PaymentCycle = PaymentCycle.MONTHLY
    deposit_amount: Decimal = Decimal("0.00")
    is_active: bool = True
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class Obligation:
    """One scheduled rent line generated from a contract."""
    id: Optional[int] = None
    contract_id: int = 0
    due_date: Optional[datetime] = None
    amount: Decimal = Decimal("0.00")
    is_paid: bool = False
    paid_date: Optional[datetime] = None


@dataclass
class Transaction:
    """An actual recorded payment against a contract."""
    id: Optional[int] = None
    contract_id: int = 0
    amount: Decimal = Decimal("0.00")
    due_date: Optional[datetime] = None
    transaction_type: TransactionType = TransactionType.RENT
    method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    paid_date: Optional[datetime] = None
    is_partial: bool = False
    notes: Optional[str] = None


@dataclass
class Expense:
    """Money spent on a property."""
    id: Optional[int] = None
    property_id: int = 0
    amount: Decimal = Decimal("0.00")
    category: ExpenseCategory = ExpenseCategory.MAINTENANCE
    description: str = ""
    date: datetime = field(default_factory=datetime.now)


@dataclass
class PlannedReminder:
    """A point in time at which the notifier should fire."""
    id: str
    fire_at: datetime
    payload: dict = field(default_factory=dict)


@dataclass
class ValidationResult:
    """Result from validating input to a mutation."""
    is_valid: bool = True
    errors: list = field(default_factory=list)
    warnings: list = field(default_factory=list)

    def add_error(self, message: str, code: str = "") -> None:
        """Add an error (input rejected)."""
        self.errors.append({"message": message, "code": code})
        self.is_valid = False

    def add_warning(self, message: str, code: str = "") -> None:
        """Add a warning (accepted, but worth surfacing)."""
        self.warnings.append({"message": message, "code": code})

    def raise_if_invalid(self) -> None:
        """Raise ValidationError carrying every collected error."""
        if not self.is_valid:
            raise ValidationError(self.errors)
