"""Mutation entry points for properties, tenants, contracts and payments."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from database import Database
from errors import NotFoundError, ValidationError
from logging_config import get_logger
from models import (
    Contract,
    Expense,
    ExpenseCategory,
    Obligation,
    PaymentCycle,
    PaymentMethod,
    PlannedReminder,
    Property,
    PropertyType,
    Tenant,
    Transaction,
    TransactionType,
    ValidationResult,
)
from money import ZERO, MoneyLike, to_money
from services import status
from services.reminders import ReminderPlanner, ReminderScheduler
from services.schedule import generate_schedule

logger = get_logger(__name__)

MARK_PAID = "MARK_PAID"
REMIND_LATER = "REMIND_LATER"


def validate_property(name: str, address: str) -> ValidationResult:
    """Check the required fields of a property."""
    result = ValidationResult()
    if not name or not name.strip():
        result.add_error("Property name is required", "name_required")
    if not address or not address.strip():
        result.add_error("Property address is required", "address_required")
    return result


def validate_tenant(name: str, phone: str, email: Optional[str] = None) -> ValidationResult:
    """Check the required fields of a tenant."""
    result = ValidationResult()
    if not name or not name.strip():
        result.add_error("Tenant name is required", "name_required")
    if not phone or not phone.strip():
        result.add_error("Tenant phone is required", "phone_required")
    if email and "@" not in email:
        result.add_error(f"Invalid email address: {email}", "email_invalid")
    return result


def validate_contract_terms(
    start_date: Optional[datetime],
    end_date: Optional[datetime],
    rent_amount: Optional[Decimal],
    deposit_amount: Decimal = ZERO,
) -> ValidationResult:
    """Check dates and amounts of a contract."""
    result = ValidationResult()
    if start_date is None or end_date is None:
        result.add_error("Start and end date are required", "dates_required")
    elif start_date >= end_date:
        result.add_error("End date must be after start date", "end_before_start")
    if rent_amount is None or rent_amount <= ZERO:
        result.add_error("Rent amount must be greater than zero", "rent_not_positive")
    if deposit_amount is None or deposit_amount < ZERO:
        result.add_error("Deposit amount cannot be negative", "deposit_negative")
    return result


def validate_amount(amount: Optional[Decimal], label: str = "Amount") -> ValidationResult:
    result = ValidationResult()
    if amount is None or amount <= ZERO:
        result.add_error(f"{label} must be greater than zero", "amount_not_positive")
    return result


def _check(result: ValidationResult, action: str) -> None:
    """Log and raise when validation failed."""
    if not result.is_valid:
        logger.warning("Rejected %s: %s", action, "; ".join(e["message"] for e in result.errors))
    result.raise_if_invalid()


def _money(value: Optional[MoneyLike], label: str) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return to_money(value)
    except (TypeError, ValueError) as e:
        raise ValidationError([{"message": f"{label}: {e}", "code": "amount_invalid"}]) from e


class RentalService:
    """Validates input, enforces ownership rules and keeps reminders in step.

    The repository and reminder scheduler are passed in; callers serialise
    mutations per contract.
    """

    def __init__(
        self,
        db: Database,
        scheduler: ReminderScheduler,
        planner: Optional[ReminderPlanner] = None,
    ):
        self.db = db
        self.scheduler = scheduler
        self.planner = planner or ReminderPlanner()

    # Lookups

    def get_property(self, property_id: int) -> Property:
        prop = self.db.get_property(property_id)
        if prop is None:
            raise NotFoundError("property", property_id)
        return prop

    def get_tenant(self, tenant_id: int) -> Tenant:
        tenant = self.db.get_tenant(tenant_id)
        if tenant is None:
            raise NotFoundError("tenant", tenant_id)
        return tenant

    def get_contract(self, contract_id: int) -> Contract:
        contract = self.db.get_contract(contract_id)
        if contract is None:
            raise NotFoundError("contract", contract_id)
        return contract

    def get_obligation(self, obligation_id: int) -> Obligation:
        obligation = self.db.get_obligation(obligation_id)
        if obligation is None:
            raise NotFoundError("obligation", obligation_id)
        return obligation

    # Properties and tenants

    def add_property(
        self, name: str, address: str, property_type: PropertyType = PropertyType.RESIDENTIAL
    ) -> Property:
        _check(validate_property(name, address), "property")
        prop = Property(name=name.strip(), address=address.strip(), property_type=property_type)
        prop.id = self.db.create_property(prop)
        logger.info("Property created", extra={"property_id": prop.id})
        return prop

    def delete_property(self, property_id: int) -> None:
        """Delete a property with its expenses, contracts and reminders."""
        self.get_property(property_id)
        for contract in self.db.list_contracts_for_property(property_id):
            self._cancel_reminders(self.db.list_obligations(contract_id=contract.id))
        self.db.delete_property(property_id)
        logger.info("Property deleted", extra={"property_id": property_id})

    def add_tenant(self, name: str, phone: str, email: Optional[str] = None) -> Tenant:
        _check(validate_tenant(name, phone, email), "tenant")
        tenant = Tenant(name=name.strip(), phone=phone.strip(), email=email or None)
        tenant.id = self.db.create_tenant(tenant)
        logger.info("Tenant created", extra={"tenant_id": tenant.id})
        return tenant

    def delete_tenant(self, tenant_id: int) -> None:
        """Delete a tenant that has no contract history."""
        self.get_tenant(tenant_id)
        if self.db.list_contracts_for_tenant(tenant_id):
            result = ValidationResult()
            result.add_error("Tenant has contracts and cannot be deleted", "tenant_has_contracts")
            _check(result, "tenant deletion")
        self.db.delete_tenant(tenant_id)

    # Contracts

    def create_contract(
        self,
        property_id: int,
        tenant_id: int,
        start_date: datetime,
        end_date: datetime,
        rent_amount: MoneyLike,
        payment_cycle: PaymentCycle = PaymentCycle.MONTHLY,
        deposit_amount: MoneyLike = ZERO,
        now: Optional[datetime] = None,
    ) -> tuple[Contract, list[Obligation]]:
        """Create an active contract, its schedule and reminders.

        A property's previous active contract is deactivated.
        """
        rent = _money(rent_amount, "Rent amount")
        deposit = _money(deposit_amount, "Deposit amount")
        _check(validate_contract_terms(start_date, end_date, rent, deposit), "contract")
        prop = self.get_property(property_id)
        tenant = self.get_tenant(tenant_id)
        now = now or datetime.now()

        previous = self.db.get_active_contract(property_id)
        contract = Contract(
            property_id=property_id,
            tenant_id=tenant_id,
            start_date=start_date,
            end_date=end_date,
            rent_amount=rent,
            payment_cycle=payment_cycle,
            deposit_amount=deposit,
            is_active=True,
        )
        contract.id = self.db.create_contract(contract)
        if previous is not None:
            self._cancel_reminders_after(previous.id, now)
            logger.info(
                "Previous contract deactivated",
                extra={"contract_id": previous.id, "property_id": property_id},
            )

        obligations = self._regenerate(contract, prop, tenant, now)
        logger.info(
            "Contract created",
            extra={"contract_id": contract.id, "property_id": property_id, "obligations": len(obligations)},
        )
        return contract, obligations

    def renew_contract(
        self,
        contract_id: int,
        new_end_date: datetime,
        new_rent_amount: Optional[MoneyLike] = None,
        now: Optional[datetime] = None,
    ) -> tuple[Contract, list[Obligation]]:
        """Extend a contract and rebuild its whole schedule.

        Every previous obligation is discarded, paid or not; payments stay
        on record as transactions.
        """
        contract = self.get_contract(contract_id)
        rent = _money(new_rent_amount, "Rent amount") if new_rent_amount is not None else contract.rent_amount
        _check(
            validate_contract_terms(contract.start_date, new_end_date, rent, contract.deposit_amount),
            "contract renewal",
        )
        now = now or datetime.now()

        contract.end_date = new_end_date
        contract.rent_amount = rent
        self.db.update_contract(contract)

        prop = self.get_property(contract.property_id)
        tenant = self.get_tenant(contract.tenant_id)
        obligations = self._regenerate(contract, prop, tenant, now)
        logger.info(
            "Contract renewed",
            extra={"contract_id": contract.id, "end_date": new_end_date, "obligations": len(obligations)},
        )
        return contract, obligations

    def end_contract(self, contract_id: int, now: Optional[datetime] = None) -> Contract:
        """Terminate a contract now. Existing obligations stay as history.

        Ending an already ended contract keeps its recorded end date.
        """
        contract = self.get_contract(contract_id)
        now = now or datetime.now()
        if not contract.is_active:
            return contract
        if now <= contract.start_date:
            result = ValidationResult()
            result.add_error(
                "Contract has not started yet; delete it instead of ending it", "contract_not_started"
            )
            _check(result, "contract termination")
        contract.is_active = False
        contract.end_date = now
        self.db.update_contract(contract)
        self._cancel_reminders_after(contract.id, now)
        logger.info("Contract ended", extra={"contract_id": contract.id})
        return contract

    def delete_contract(self, contract_id: int) -> None:
        """Delete a contract with its obligations, transactions and reminders."""
        self.get_contract(contract_id)
        self._cancel_reminders(self.db.list_obligations(contract_id=contract_id))
        self.db.delete_contract(contract_id)
        logger.info("Contract deleted", extra={"contract_id": contract_id})

    # Obligations

    def mark_paid(self, obligation_id: int, paid_date: Optional[datetime] = None) -> Obligation:
        """Mark an obligation paid and cancel its reminders."""
        obligation = status.mark_paid(self.get_obligation(obligation_id), paid_date or datetime.now())
        self.db.mark_obligation_paid(obligation.id, obligation.paid_date)
        self.scheduler.cancel(self.planner.cancel_ids(obligation_id))
        logger.info("Obligation marked paid", extra={"obligation_id": obligation_id})
        return self.get_obligation(obligation_id)

    def snooze(self, obligation_id: int, now: Optional[datetime] = None) -> PlannedReminder:
        """Schedule a one-shot reminder for an unpaid obligation."""
        obligation = self.get_obligation(obligation_id)
        if obligation.is_paid:
            result = ValidationResult()
            result.add_error(f"Obligation {obligation_id} is already paid", "obligation_paid")
            _check(result, "snooze")
        contract = self.get_contract(obligation.contract_id)
        reminder = self.planner.snooze(
            obligation, now or datetime.now(), **self._reminder_context(contract)
        )
        self.scheduler.schedule(reminder.id, reminder.fire_at, reminder.payload)
        return reminder

    def handle_reminder_action(self, payload: dict, action: str, now: Optional[datetime] = None):
        """Apply an action chosen on a delivered reminder."""
        obligation_id = payload.get("obligation_id")
        if obligation_id is None:
            raise NotFoundError("obligation", None)
        if action == MARK_PAID:
            return self.mark_paid(int(obligation_id), now)
        if action == REMIND_LATER:
            return self.snooze(int(obligation_id), now)
        raise ValidationError([{"message": f"Unknown reminder action: {action}", "code": "unknown_action"}])

    # Ledger entries

    def record_transaction(
        self,
        contract_id: int,
        amount: MoneyLike,
        due_date: datetime,
        transaction_type: TransactionType = TransactionType.RENT,
        method: PaymentMethod = PaymentMethod.BANK_TRANSFER,
        paid_date: Optional[datetime] = None,
        is_partial: bool = False,
        notes: Optional[str] = None,
    ) -> Transaction:
        """Record money received from, or returned to, a tenant."""
        value = _money(amount, "Amount")
        result = validate_amount(value)
        if due_date is None:
            result.add_error("Due date is required", "dates_required")
        _check(result, "transaction")
        self.get_contract(contract_id)
        txn = Transaction(
            contract_id=contract_id,
            amount=value,
            due_date=due_date,
            transaction_type=transaction_type,
            method=method,
            paid_date=paid_date,
            is_partial=is_partial,
            notes=notes,
        )
        txn.id = self.db.create_transaction(txn)
        logger.info(
            "Transaction recorded",
            extra={"transaction_id": txn.id, "contract_id": contract_id, "type": transaction_type.value},
        )
        return txn

    def add_expense(
        self,
        property_id: int,
        amount: MoneyLike,
        category: ExpenseCategory = ExpenseCategory.MAINTENANCE,
        description: str = "",
        date: Optional[datetime] = None,
    ) -> Expense:
        value = _money(amount, "Amount")
        _check(validate_amount(value), "expense")
        self.get_property(property_id)
        expense = Expense(
            property_id=property_id,
            amount=value,
            category=category,
            description=description,
            date=date or datetime.now(),
        )
        expense.id = self.db.create_expense(expense)
        logger.info("Expense recorded", extra={"expense_id": expense.id, "property_id": property_id})
        return expense

    # Internals

    def _regenerate(self, contract: Contract, prop: Property, tenant: Tenant, now: datetime) -> list[Obligation]:
        """Replace the contract's obligations and their reminders."""
        self._cancel_reminders(self.db.list_obligations(contract_id=contract.id))
        obligations = self.db.replace_obligations(contract.id, generate_schedule(contract))
        context = self._reminder_context(contract, prop, tenant)
        scheduled = 0
        for obligation in obligations:
            for reminder in self.planner.planned_reminders(obligation, **context):
                # Triggers already in the past are never delivered
                if reminder.fire_at < now:
                    continue
                self.scheduler.schedule(reminder.id, reminder.fire_at, reminder.payload)
                scheduled += 1
        logger.info(
            "Schedule regenerated",
            extra={"contract_id": contract.id, "obligations": len(obligations), "reminders": scheduled},
        )
        return obligations

    def _reminder_context(
        self, contract: Contract, prop: Optional[Property] = None, tenant: Optional[Tenant] = None
    ) -> dict:
        prop = prop or self.db.get_property(contract.property_id)
        tenant = tenant or self.db.get_tenant(contract.tenant_id)
        return {
            "property_id": contract.property_id,
            "property_name": prop.name if prop else "",
            "tenant_name": tenant.name if tenant else "",
        }

    def _cancel_reminders(self, obligations) -> None:
        ids = []
        for obligation in obligations:
            ids.extend(self.planner.cancel_ids(obligation.id))
        if ids:
            self.scheduler.cancel(ids)
            logger.info("Reminders cancelled", extra={"count": len(ids)})

    def _cancel_reminders_after(self, contract_id: int, now: datetime) -> None:
        """Cancel reminders of unpaid lines falling due after now."""
        self._cancel_reminders(
            o for o in self.db.list_obligations(contract_id=contract_id)
            if not o.is_paid and o.due_date > now
        )
