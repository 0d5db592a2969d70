"""Tests for data models."""

from decimal import Decimal

import pytest

from errors import ValidationError
from models import (
    Contract,
    PaymentCycle,
    Property,
    TransactionType,
    ValidationResult,
)


def test_property_creation():
    """Test basic Property creation."""
    prop = Property(id=1, name="Harbour Flat", address="12 Quay Street")
    assert prop.name == "Harbour Flat"
    assert prop.property_type.value == "residential"
    assert str(prop) == "Harbour Flat, 12 Quay Street"


def test_contract_defaults():
    """A new contract is active with zero deposit."""
    contract = Contract(property_id=1, tenant_id=1, rent_amount=Decimal("1500.00"))
    assert contract.is_active
    assert contract.deposit_amount == Decimal("0.00")
    assert contract.payment_cycle == PaymentCycle.MONTHLY


@pytest.mark.parametrize("cycle,months", [
    (PaymentCycle.MONTHLY, 1),
    (PaymentCycle.BIMONTHLY, 2),
    (PaymentCycle.QUARTERLY, 3),
    (PaymentCycle.YEARLY, 12),
])
def test_payment_cycle_interval(cycle, months):
    assert cycle.months_interval == months


def test_only_deposit_return_is_not_income():
    assert TransactionType.RENT.is_income
    assert TransactionType.LATE_FEE.is_income
    assert TransactionType.DEPOSIT.is_income
    assert not TransactionType.DEPOSIT_RETURN.is_income


def test_enum_values_round_trip_from_storage():
    assert TransactionType("lateFee") is TransactionType.LATE_FEE
    assert PaymentCycle("bimonthly") is PaymentCycle.BIMONTHLY


def test_validation_result_collects_errors():
    result = ValidationResult()
    result.add_warning("Just so you know")
    assert result.is_valid
    result.raise_if_invalid()

    result.add_error("Name is required", "name_required")
    result.add_error("Phone is required", "phone_required")
    assert not result.is_valid

    with pytest.raises(ValidationError) as exc_info:
        result.raise_if_invalid()
    assert exc_info.value.codes == ["name_required", "phone_required"]
    assert "Name is required" in str(exc_info.value)
