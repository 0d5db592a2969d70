"""Rent Tracker - CLI for rental contracts, rent schedules and income."""

from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

import click
import typer
from rich.console import Console
from rich.table import Table

from config import get_config
from database import Database
from errors import RentTrackerError
from logging_config import setup_logging
from models import (
    ExpenseCategory,
    ObligationStatus,
    PaymentCycle,
    PaymentMethod,
    PropertyType,
    TransactionType,
)
from money import parse_amount
from services.contracts import RentalService
from services.ledger import LedgerReport
from services.reminders import ReminderPlanner, SqliteReminderScheduler
from services.status import (
    classify_contract,
    classify_obligation,
    contract_duration_months,
    days_overdue,
    expiring_contracts,
)

app = typer.Typer(
    name="rent",
    help="Track rental properties, contracts, rent schedules and income.",
    no_args_is_help=True,
)
property_app = typer.Typer(help="Manage properties")
tenant_app = typer.Typer(help="Manage tenants")
contract_app = typer.Typer(help="Manage contracts")
payment_app = typer.Typer(help="Rent schedule and payments")
expense_app = typer.Typer(help="Property expenses")
report_app = typer.Typer(help="Income and expense reports")
reminder_app = typer.Typer(help="Rent reminders")
app.add_typer(property_app, name="property")
app.add_typer(tenant_app, name="tenant")
app.add_typer(contract_app, name="contract")
app.add_typer(payment_app, name="payment")
app.add_typer(expense_app, name="expense")
app.add_typer(report_app, name="report")
app.add_typer(reminder_app, name="reminder")

console = Console()

STATUS_STYLES = {
    "paid": "green",
    "overdue": "red",
    "dueSoon": "yellow",
    "upcoming": "blue",
    "active": "green",
    "expiringSoon": "yellow",
    "expired": "red",
    "ended": "dim",
}


@app.callback()
def main():
    """Set up logging before any command runs."""
    setup_logging(get_config())


def get_db() -> Database:
    """Get database instance."""
    config = get_config()
    config.ensure_directories()
    db = Database(config.database_path)
    db.initialize()
    return db


def get_service(db: Database) -> RentalService:
    """Build the rental service with the stored reminder scheduler."""
    config = get_config()
    planner = ReminderPlanner(snooze_delay=timedelta(seconds=config.snooze_seconds))
    return RentalService(db, SqliteReminderScheduler(db), planner)


def fail(message: str) -> None:
    console.print(f"[red]{message}[/red]")
    raise typer.Exit(1)


def parse_when(value: str, label: str) -> datetime:
    """Parse YYYY-MM-DD or a full ISO timestamp."""
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        fail(f"Invalid {label}. Use YYYY-MM-DD")


def styled(status: str) -> str:
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status}[/{style}]"


def money(amount) -> str:
    return f"{amount:,.2f}"


@app.command()
def init():
    """Initialize the database and configuration."""
    config = get_config()
    get_db()
    console.print(f"[green]Database initialized at {config.database_path}[/green]")


# Property commands


@property_app.command("add")
def property_add(
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Property name"),
    address: Optional[str] = typer.Option(None, "--address", "-a", help="Property address"),
    property_type: Optional[str] = typer.Option(
        None, "--type", "-t", help="Property type (residential, commercial)"
    ),
):
    """Add a new property."""
    if not name:
        name = typer.prompt("Property name")
    if not address:
        address = typer.prompt("Address")
    if not property_type:
        property_type = typer.prompt(
            "Property type",
            default="residential",
            show_choices=True,
            type=click.Choice([t.value for t in PropertyType]),
        )

    db = get_db()
    try:
        prop = get_service(db).add_property(name, address, PropertyType(property_type))
    except (RentTrackerError, ValueError) as e:
        fail(str(e))
    console.print(f"[green]Property created with ID: {prop.id}[/green]")


@property_app.command("list")
def property_list():
    """List all properties."""
    db = get_db()
    properties = db.list_properties()

    if not properties:
        console.print("[yellow]No properties found. Add one with 'rent property add'[/yellow]")
        return

    table = Table(title="Properties")
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Name", style="white")
    table.add_column("Address", style="white")
    table.add_column("Type", style="white")
    table.add_column("Status", style="white")

    for prop in properties:
        occupied = db.get_active_contract(prop.id) is not None
        table.add_row(
            str(prop.id),
            prop.name,
            prop.address,
            prop.property_type.value,
            "[green]Occupied[/green]" if occupied else "[yellow]Vacant[/yellow]",
        )

    console.print(table)


@property_app.command("show")
def property_show(property_id: int = typer.Argument(..., help="Property ID")):
    """Show details and money position of a property."""
    db = get_db()
    try:
        summary = LedgerReport(db).property_summary(property_id, datetime.now())
    except RentTrackerError as e:
        fail(str(e))
    prop = summary.property

    console.print(f"\n[bold]Property #{prop.id}: {prop.name}[/bold]")
    console.print(f"  Address: {prop.address}")
    console.print(f"  Type: {prop.property_type.value}")
    console.print(f"  Created: {prop.created_at.strftime('%Y-%m-%d')}")

    console.print("\n[bold]Money[/bold]")
    console.print(f"  Income: {money(summary.total_income)}")
    console.print(f"  Expenses: {money(summary.total_expenses)}")
    console.print(f"  Net: {money(summary.net_income)}")
    console.print(f"  Overdue: {money(summary.overdue_amount)}")

    contracts = db.list_contracts_for_property(property_id)
    if contracts:
        console.print(f"\n[bold]Contracts ({len(contracts)}):[/bold]")
        for c in contracts:
            tenant = db.get_tenant(c.tenant_id)
            status = classify_contract(c, datetime.now()).value
            console.print(f"  #{c.id}: {tenant.name if tenant else c.tenant_id} - {styled(status)}")


@property_app.command("delete")
def property_delete(
    property_id: int = typer.Argument(..., help="Property ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete a property with its contracts, payments and expenses."""
    if not yes:
        typer.confirm(f"Delete property {property_id} and all its records?", abort=True)
    db = get_db()
    try:
        get_service(db).delete_property(property_id)
    except RentTrackerError as e:
        fail(str(e))
    console.print(f"[green]Property {property_id} deleted[/green]")


# Tenant commands


@tenant_app.command("add")
def tenant_add(
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Tenant name"),
    phone: Optional[str] = typer.Option(None, "--phone", "-p", help="Phone number"),
    email: Optional[str] = typer.Option(None, "--email", "-e", help="Email address"),
):
    """Add a new tenant."""
    if not name:
        name = typer.prompt("Tenant name")
    if not phone:
        phone = typer.prompt("Phone")

    db = get_db()
    try:
        tenant = get_service(db).add_tenant(name, phone, email)
    except RentTrackerError as e:
        fail(str(e))
    console.print(f"[green]Tenant created with ID: {tenant.id}[/green]")


@tenant_app.command("list")
def tenant_list():
    """List all tenants with what they owe."""
    db = get_db()
    tenants = db.list_tenants()

    if not tenants:
        console.print("[yellow]No tenants found[/yellow]")
        return

    report = LedgerReport(db)
    now = datetime.now()
    table = Table(title="Tenants")
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Name", style="white")
    table.add_column("Phone", style="white")
    table.add_column("Email", style="white")
    table.add_column("Owed", style="white", justify="right")

    for t in tenants:
        owed = report.tenant_rent_owed(t.id, now)
        table.add_row(
            str(t.id),
            t.name,
            t.phone,
            t.email or "-",
            f"[red]{money(owed)}[/red]" if owed else money(owed),
        )

    console.print(table)


# Contract commands


@contract_app.command("add")
def contract_add(
    property_id: int = typer.Argument(..., help="Property ID"),
    tenant_id: int = typer.Argument(..., help="Tenant ID"),
):
    """Add a contract; any active contract of the property is ended."""
    db = get_db()
    service = get_service(db)
    try:
        prop = service.get_property(property_id)
        tenant = service.get_tenant(tenant_id)
    except RentTrackerError as e:
        fail(str(e))

    console.print(f"\n[bold]New contract: {tenant.name} at {prop.name}[/bold]\n")

    start_date = parse_when(typer.prompt("Start date (YYYY-MM-DD)"), "start date")
    end_date = parse_when(typer.prompt("End date (YYYY-MM-DD)"), "end date")

    try:
        rent_amount = parse_amount(typer.prompt("Rent amount"))
        deposit_amount = parse_amount(typer.prompt("Deposit amount", default="0"))
    except ValueError as e:
        fail(str(e))

    cycle = typer.prompt(
        "Payment cycle",
        default="monthly",
        show_choices=True,
        type=click.Choice([c.value for c in PaymentCycle]),
    )

    try:
        contract, obligations = service.create_contract(
            property_id,
            tenant_id,
            start_date,
            end_date,
            rent_amount,
            PaymentCycle(cycle),
            deposit_amount,
        )
    except RentTrackerError as e:
        fail(str(e))

    console.print(f"\n[green]Contract created with ID: {contract.id}[/green]")
    console.print(f"[green]Generated {len(obligations)} rent payments[/green]")


@contract_app.command("list")
def contract_list(
    active: bool = typer.Option(False, "--active", "-a", help="Show only active contracts"),
    expiring: Optional[int] = typer.Option(
        None, "--expiring", help="Only active contracts ending within this many days"
    ),
):
    """List contracts."""
    db = get_db()
    now = datetime.now()
    contracts = db.list_contracts(active_only=active or expiring is not None)
    if expiring is not None:
        contracts = expiring_contracts(contracts, now, expiring)

    if not contracts:
        console.print("[yellow]No contracts found[/yellow]")
        return

    config = get_config()
    table = Table(title="Contracts")
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Property", style="white")
    table.add_column("Tenant", style="white")
    table.add_column("Period", style="white")
    table.add_column("Rent", style="white", justify="right")
    table.add_column("Status", style="white")

    for c in contracts:
        prop = db.get_property(c.property_id)
        tenant = db.get_tenant(c.tenant_id)
        status = classify_contract(c, now, config.expiring_soon_days).value
        table.add_row(
            str(c.id),
            prop.name[:30] if prop else f"#{c.property_id}",
            tenant.name[:25] if tenant else f"#{c.tenant_id}",
            f"{c.start_date:%Y-%m-%d} - {c.end_date:%Y-%m-%d}",
            f"{money(c.rent_amount)}/{c.payment_cycle.value}",
            styled(status),
        )

    console.print(table)


@contract_app.command("show")
def contract_show(contract_id: int = typer.Argument(..., help="Contract ID")):
    """Show a contract with its payment position."""
    db = get_db()
    now = datetime.now()
    try:
        summary = LedgerReport(db).contract_summary(contract_id, now)
    except RentTrackerError as e:
        fail(str(e))
    contract = summary.contract
    prop = db.get_property(contract.property_id)
    tenant = db.get_tenant(contract.tenant_id)

    console.print(f"\n[bold]Contract #{contract.id}[/bold]")
    console.print(f"  Property: {prop.name if prop else 'Unknown'}")
    console.print(f"  Tenant: {tenant.name if tenant else 'Unknown'}")
    console.print(f"  Status: {styled(classify_contract(contract, now).value)}")
    console.print(f"  Period: {contract.start_date:%Y-%m-%d} - {contract.end_date:%Y-%m-%d}"
                  f" ({contract_duration_months(contract)} months)")
    console.print(f"  Rent: {money(contract.rent_amount)} {contract.payment_cycle.value}")
    console.print(f"  Deposit: {money(contract.deposit_amount)}")

    console.print("\n[bold]Payments[/bold]")
    console.print(f"  Total paid: {money(summary.total_paid)}")
    console.print(f"  Overdue: {money(summary.overdue_amount)} ({summary.overdue_count} payment(s))")
    if summary.days_overdue:
        console.print(f"  [red]{summary.days_overdue} days overdue[/red]")
    if summary.next_payment_due:
        console.print(f"  Next due: {summary.next_payment_due:%Y-%m-%d}")


@contract_app.command("renew")
def contract_renew(
    contract_id: int = typer.Argument(..., help="Contract ID"),
    end_date: str = typer.Option(..., "--end", help="New end date (YYYY-MM-DD)"),
    rent: Optional[str] = typer.Option(None, "--rent", help="New rent amount"),
):
    """Extend a contract. The rent schedule is rebuilt from scratch."""
    new_end = parse_when(end_date, "end date")
    db = get_db()
    try:
        new_rent = parse_amount(rent) if rent else None
        contract, obligations = get_service(db).renew_contract(contract_id, new_end, new_rent)
    except (RentTrackerError, ValueError) as e:
        fail(str(e))
    console.print(
        f"[green]Contract {contract.id} renewed to {contract.end_date:%Y-%m-%d}; "
        f"{len(obligations)} rent payments scheduled[/green]"
    )


@contract_app.command("end")
def contract_end(contract_id: int = typer.Argument(..., help="Contract ID")):
    """End a contract today."""
    db = get_db()
    try:
        get_service(db).end_contract(contract_id)
    except RentTrackerError as e:
        fail(str(e))
    console.print(f"[green]Contract {contract_id} ended[/green]")


@contract_app.command("delete")
def contract_delete(
    contract_id: int = typer.Argument(..., help="Contract ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete a contract with its schedule and payments."""
    if not yes:
        typer.confirm(f"Delete contract {contract_id} and its payments?", abort=True)
    db = get_db()
    try:
        get_service(db).delete_contract(contract_id)
    except RentTrackerError as e:
        fail(str(e))
    console.print(f"[green]Contract {contract_id} deleted[/green]")


# Payment commands


def _obligation_table(obligations, title: str) -> Table:
    config = get_config()
    now = datetime.now()
    table = Table(title=title)
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Contract", style="white", justify="right")
    table.add_column("Due", style="white")
    table.add_column("Amount", style="white", justify="right")
    table.add_column("Status", style="white")
    table.add_column("Days late", style="white", justify="right")
    for o in obligations:
        status = classify_obligation(o, now, config.due_soon_days)
        late = days_overdue(o, now)
        table.add_row(
            str(o.id),
            str(o.contract_id),
            f"{o.due_date:%Y-%m-%d}",
            money(o.amount),
            styled(status.value),
            str(late) if status == ObligationStatus.OVERDUE else "-",
        )
    return table


@payment_app.command("schedule")
def payment_schedule(contract_id: int = typer.Argument(..., help="Contract ID")):
    """Show the rent schedule of a contract."""
    db = get_db()
    if db.get_contract(contract_id) is None:
        fail(f"Contract {contract_id} not found")
    obligations = db.list_obligations(contract_id=contract_id)
    console.print(_obligation_table(obligations, f"Rent schedule for contract #{contract_id}"))


@payment_app.command("overdue")
def payment_overdue():
    """List overdue rent across all contracts."""
    db = get_db()
    obligations = db.list_overdue_obligations(datetime.now())
    if not obligations:
        console.print("[green]No overdue rent[/green]")
        return
    console.print(_obligation_table(obligations, "Overdue rent"))


@payment_app.command("upcoming")
def payment_upcoming(
    days: Optional[int] = typer.Option(None, "--days", "-d", help="Look-ahead window in days"),
):
    """List unpaid rent falling due soon."""
    db = get_db()
    days = days if days is not None else get_config().upcoming_window_days
    obligations = db.list_obligations_due_within(datetime.now(), days)
    if not obligations:
        console.print(f"[green]Nothing due in the next {days} days[/green]")
        return
    console.print(_obligation_table(obligations, f"Rent due in the next {days} days"))


@payment_app.command("mark-paid")
def payment_mark_paid(
    obligation_id: int = typer.Argument(..., help="Rent payment (schedule line) ID"),
    paid_on: Optional[str] = typer.Option(None, "--date", help="Date paid (YYYY-MM-DD)"),
):
    """Mark a scheduled rent payment as paid."""
    paid_date = parse_when(paid_on, "date") if paid_on else None
    db = get_db()
    try:
        obligation = get_service(db).mark_paid(obligation_id, paid_date)
    except RentTrackerError as e:
        fail(str(e))
    console.print(f"[green]Payment {obligation.id} marked paid on {obligation.paid_date:%Y-%m-%d}[/green]")


@payment_app.command("record")
def payment_record(
    contract_id: int = typer.Argument(..., help="Contract ID"),
    amount: str = typer.Option(..., "--amount", help="Amount received or returned"),
    due_on: str = typer.Option(..., "--due", help="Due date (YYYY-MM-DD)"),
    paid_on: Optional[str] = typer.Option(None, "--paid", help="Date paid (YYYY-MM-DD)"),
    transaction_type: TransactionType = typer.Option(TransactionType.RENT, "--type", "-t"),
    method: PaymentMethod = typer.Option(PaymentMethod.BANK_TRANSFER, "--method", "-m"),
    partial: bool = typer.Option(False, "--partial", help="Partial payment"),
    notes: Optional[str] = typer.Option(None, "--notes"),
):
    """Record money received from, or returned to, a tenant."""
    due_date = parse_when(due_on, "due date")
    paid_date = parse_when(paid_on, "paid date") if paid_on else None
    db = get_db()
    try:
        txn = get_service(db).record_transaction(
            contract_id,
            parse_amount(amount),
            due_date,
            transaction_type,
            method,
            paid_date,
            partial,
            notes,
        )
    except (RentTrackerError, ValueError) as e:
        fail(str(e))
    console.print(f"[green]Transaction recorded with ID: {txn.id}[/green]")


# Expense commands


@expense_app.command("add")
def expense_add(
    property_id: int = typer.Argument(..., help="Property ID"),
    amount: str = typer.Option(..., "--amount", help="Amount spent"),
    category: ExpenseCategory = typer.Option(ExpenseCategory.MAINTENANCE, "--category", "-c"),
    description: str = typer.Option("", "--description", "-d"),
    spent_on: Optional[str] = typer.Option(None, "--date", help="Date (YYYY-MM-DD)"),
):
    """Record an expense for a property."""
    when = parse_when(spent_on, "date") if spent_on else None
    db = get_db()
    try:
        expense = get_service(db).add_expense(
            property_id, parse_amount(amount), category, description, when
        )
    except (RentTrackerError, ValueError) as e:
        fail(str(e))
    console.print(f"[green]Expense recorded with ID: {expense.id}[/green]")


@expense_app.command("list")
def expense_list(property_id: Optional[int] = typer.Argument(None, help="Property ID")):
    """List expenses."""
    db = get_db()
    expenses = db.list_expenses(property_id=property_id)
    if not expenses:
        console.print("[yellow]No expenses found[/yellow]")
        return

    table = Table(title="Expenses")
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Property", style="white", justify="right")
    table.add_column("Date", style="white")
    table.add_column("Category", style="white")
    table.add_column("Amount", style="white", justify="right")
    table.add_column("Description", style="white")
    for e in expenses:
        table.add_row(
            str(e.id), str(e.property_id), f"{e.date:%Y-%m-%d}",
            e.category.value, money(e.amount), e.description,
        )
    console.print(table)


# Report commands


@report_app.command("summary")
def report_summary():
    """Income, expenses and vacancy across all properties."""
    db = get_db()
    portfolio = LedgerReport(db).portfolio(datetime.now())

    table = Table(title="Portfolio")
    table.add_column("Property", style="white")
    table.add_column("Income", justify="right")
    table.add_column("Expenses", justify="right")
    table.add_column("Net", justify="right")
    table.add_column("Overdue", justify="right")
    for s in portfolio.properties:
        table.add_row(
            s.property.name,
            money(s.total_income),
            money(s.total_expenses),
            money(s.net_income),
            f"[red]{money(s.overdue_amount)}[/red]" if s.overdue_amount else money(s.overdue_amount),
        )
    console.print(table)

    console.print(f"\n  Total income: {money(portfolio.total_income)}")
    console.print(f"  Total expenses: {money(portfolio.total_expenses)}")
    console.print(f"  Net income: {money(portfolio.net_income)}")
    console.print(f"  Overdue: {money(portfolio.overdue_amount)}")
    console.print(
        f"  Vacancy: {portfolio.vacant_count}/{portfolio.property_count}"
        f" ({portfolio.vacancy_rate:.1f}%)"
    )


@report_app.command("year")
def report_year(year: int = typer.Argument(..., help="Calendar year")):
    """Income and expenses for one year."""
    db = get_db()
    summary = LedgerReport(db).year(year)
    console.print(f"\n[bold]{summary.year}[/bold]")
    console.print(f"  Income: {money(summary.income)}")
    console.print(f"  Expenses: {money(summary.expenses)}")
    console.print(f"  Net: {money(summary.net)}")


# Reminder commands


@reminder_app.command("list")
def reminder_list(
    due: bool = typer.Option(False, "--due", help="Only reminders whose time has come"),
):
    """List scheduled reminders."""
    db = get_db()
    scheduler = SqliteReminderScheduler(db)
    reminders = scheduler.due(datetime.now()) if due else scheduler.list_pending()
    if not reminders:
        console.print("[yellow]No reminders scheduled[/yellow]")
        return

    table = Table(title="Reminders")
    table.add_column("ID", style="cyan")
    table.add_column("Fires at", style="white")
    table.add_column("Title", style="white")
    table.add_column("Message", style="white")
    for r in reminders:
        table.add_row(r.id, f"{r.fire_at:%Y-%m-%d %H:%M}", r.payload.get("title", ""), r.payload.get("body", ""))
    console.print(table)


@reminder_app.command("snooze")
def reminder_snooze(obligation_id: int = typer.Argument(..., help="Rent payment ID")):
    """Remind again about a rent payment later."""
    db = get_db()
    try:
        reminder = get_service(db).snooze(obligation_id)
    except RentTrackerError as e:
        fail(str(e))
    console.print(f"[green]Reminder {reminder.id} set for {reminder.fire_at:%Y-%m-%d %H:%M}[/green]")


# Backup commands


@app.command()
def backup(destination: Optional[Path] = typer.Argument(None, help="Backup file path")):
    """Copy the database to a backup file."""
    config = get_config()
    db = get_db()
    if destination is None:
        destination = config.database_dir / "backups" / f"rent_backup_{datetime.now():%Y%m%d_%H%M%S}.db"
    db.backup(destination)
    console.print(f"[green]Backup written to {destination}[/green]")


@app.command()
def restore(
    snapshot: Path = typer.Argument(..., help="Backup file to restore"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Replace the database with a backup."""
    if not yes:
        typer.confirm("Replace the current database with this backup?", abort=True)
    config = get_config()
    db = Database(config.database_path)
    try:
        db.restore(snapshot)
    except FileNotFoundError as e:
        fail(str(e))
    console.print(f"[green]Database restored from {snapshot}[/green]")


if __name__ == "__main__":
    app()
