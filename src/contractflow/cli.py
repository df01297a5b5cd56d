"""ContractFlow CLI.

Usage:
    cf new "123 Main St, Springfield" --closing 2025-03-01
    cf upload contract.pdf
    cf counter <original_id> --document counter.pdf
    cf list
    cf active
    cf upcoming
    cf sign <contract_id>
    cf complete <contract_id> inspection
    cf cancel <contract_id> --reason "Financing fell through"
    cf calendar --out deadlines.ics
    cf reminders --send
    cf reminder-settings inspection 1 3
    cf email-timelines
    cf check
"""

from __future__ import annotations

import uuid
from datetime import date
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from contractflow.config import get_settings
from contractflow.errors import ContractFlowError, ContractIntegrityError
from contractflow.logging_config import configure_logging
from contractflow.models import ActiveContract, Contract, MilestoneType, RepresentingSide
from contractflow.store import ContractStore

app = typer.Typer(name="cf", help="Contract deadline tracking for real estate agents")
console = Console()

STATUS_COLORS = {
    "upcoming": "green",
    "due_soon": "yellow",
    "due_today": "red",
    "overdue": "red bold",
    "completed": "dim",
}


@app.callback()
def main() -> None:
    configure_logging(get_settings().log_level)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _store() -> ContractStore:
    return ContractStore(get_settings().data_path)


def _contracts(store: ContractStore) -> list[Contract]:
    return store.list_contracts(get_settings().owner_id or None)


def _active(store: ContractStore) -> list[ActiveContract]:
    from contractflow.engine.resolver import resolve_active_contracts

    try:
        return resolve_active_contracts(_contracts(store))
    except ContractIntegrityError as e:
        console.print(f"[red]{e}[/red]")
        console.print("Run [bold]cf check[/bold] to list data problems.")
        raise typer.Exit(1)


def _get(store: ContractStore, contract_id: str) -> Contract:
    try:
        return store.get(contract_id)
    except ContractFlowError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


def _parse_date(value: str | None, option: str) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        console.print(f"[red]{option}: expected YYYY-MM-DD, got {value!r}[/red]")
        raise typer.Exit(1)


def _milestone(value: str) -> MilestoneType:
    try:
        return MilestoneType(value.lower().replace("-", "_").replace(" ", "_"))
    except ValueError:
        choices = ", ".join(m.value for m in MilestoneType)
        console.print(f"[red]Unknown milestone {value!r}. Choose from: {choices}[/red]")
        raise typer.Exit(1)


def _date_fields(contract_date, closing, inspection, inspection_response,
                 loan_contingency, appraisal, walkthrough) -> dict[str, date]:
    fields = {
        "contract_date": _parse_date(contract_date, "--contract-date"),
        "closing_date": _parse_date(closing, "--closing"),
        "inspection_date": _parse_date(inspection, "--inspection"),
        "inspection_response_date": _parse_date(inspection_response, "--inspection-response"),
        "loan_contingency_date": _parse_date(loan_contingency, "--loan-contingency"),
        "appraisal_date": _parse_date(appraisal, "--appraisal"),
        "final_walkthrough_date": _parse_date(walkthrough, "--walkthrough"),
    }
    return {k: v for k, v in fields.items() if v is not None}


def _extract_into(contract: Contract, document: str, verify: bool) -> None:
    """Run AI extraction; on failure the contract keeps its manual fields."""
    from contractflow.engine.extraction import (
        apply_extraction_to_contract,
        extract_from_document,
        verify_extraction,
    )

    console.print(f"\nExtracting terms from [bold]{document}[/bold]...")
    try:
        extraction = extract_from_document(document)
        uncertain = verify_extraction(document, extraction) if verify else set()
    except ContractFlowError as e:
        console.print(f"[yellow]  Extraction failed: {e}[/yellow]")
        console.print("  Fill in the fields manually with the date options.")
        return

    contract.file_path = str(Path(document).resolve())
    for change in apply_extraction_to_contract(contract, extraction, uncertain):
        console.print(f"  {change}")
    if uncertain:
        console.print(f"\n[yellow]Review {len(uncertain)} uncertain field(s) before relying on them.[/yellow]")


# ---------------------------------------------------------------------------
# cf new / cf upload / cf counter
# ---------------------------------------------------------------------------

@app.command()
def new(
    address: str = typer.Argument(..., help="Property address"),
    side: RepresentingSide = typer.Option(RepresentingSide.BUYER, "--side", help="Side you represent"),
    buyer: str = typer.Option("", "--buyer"),
    buyer_email: str = typer.Option("", "--buyer-email"),
    seller: str = typer.Option("", "--seller"),
    seller_email: str = typer.Option("", "--seller-email"),
    price: float = typer.Option(None, "--price"),
    contract_date: str = typer.Option(None, "--contract-date"),
    closing: str = typer.Option(None, "--closing"),
    inspection: str = typer.Option(None, "--inspection"),
    inspection_response: str = typer.Option(None, "--inspection-response"),
    loan_contingency: str = typer.Option(None, "--loan-contingency"),
    appraisal: str = typer.Option(None, "--appraisal"),
    walkthrough: str = typer.Option(None, "--walkthrough"),
):
    """Create a contract from manually entered terms."""
    store = _store()
    contract = Contract(
        id=uuid.uuid4().hex[:12],
        owner_id=get_settings().owner_id,
        property_address=address,
        representing_side=side,
        buyer_name=buyer,
        buyer_email=buyer_email,
        seller_name=seller,
        seller_email=seller_email,
        purchase_price=price,
        **_date_fields(contract_date, closing, inspection, inspection_response,
                       loan_contingency, appraisal, walkthrough),
    )
    store.save(contract)
    console.print(f"\n[green]Contract created:[/green] {contract.id}")
    console.print(f"  Address: {contract.property_address}")


@app.command()
def upload(
    document: str = typer.Argument(..., help="Path to contract PDF or image"),
    side: RepresentingSide = typer.Option(RepresentingSide.BUYER, "--side", help="Side you represent"),
    verify: bool = typer.Option(True, "--verify/--no-verify", help="Run the verification pass"),
):
    """Create a contract by extracting terms from a document using AI."""
    store = _store()
    contract = Contract(id=uuid.uuid4().hex[:12], owner_id=get_settings().owner_id,
                        representing_side=side)
    _extract_into(contract, document, verify)
    store.save(contract)
    console.print(f"\n[green]Contract {contract.id} saved.[/green]")


@app.command()
def counter(
    original_id: str = typer.Argument(..., help="ID of the original contract"),
    document: str = typer.Option(None, "--document", "-d", help="Counter-offer PDF or image"),
    verify: bool = typer.Option(True, "--verify/--no-verify"),
    contract_date: str = typer.Option(None, "--contract-date"),
    closing: str = typer.Option(None, "--closing"),
    inspection: str = typer.Option(None, "--inspection"),
    inspection_response: str = typer.Option(None, "--inspection-response"),
    loan_contingency: str = typer.Option(None, "--loan-contingency"),
    appraisal: str = typer.Option(None, "--appraisal"),
    walkthrough: str = typer.Option(None, "--walkthrough"),
):
    """Add the next counter-offer to a transaction."""
    from contractflow.engine.lifecycle import create_counter_offer

    store = _store()
    original = _get(store, original_id)
    try:
        co = create_counter_offer(
            original, _contracts(store),
            **_date_fields(contract_date, closing, inspection, inspection_response,
                           loan_contingency, appraisal, walkthrough),
        )
    except ContractFlowError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    if document:
        _extract_into(co, document, verify)
    store.save(co)
    console.print(f"\n[green]Counter Offer #{co.counter_offer_number} created:[/green] {co.id}")
    if not co.has_milestone_dates():
        console.print("  No dates of its own; once signed it will use the original contract's dates.")


# ---------------------------------------------------------------------------
# cf list / cf active / cf upcoming
# ---------------------------------------------------------------------------

@app.command("list")
def list_contracts():
    """List all contracts, including superseded ones."""
    contracts = _contracts(_store())
    if not contracts:
        console.print("[dim]No contracts. Run 'cf new' or 'cf upload' to add one.[/dim]")
        return

    table = Table(title="Contracts")
    table.add_column("ID", style="dim")
    table.add_column("Address")
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Signed")
    table.add_column("Closing")

    for c in contracts:
        kind = f"Counter #{c.counter_offer_number}" if c.is_counter_offer else "Original"
        table.add_row(
            c.id,
            c.property_address,
            kind,
            c.status.value,
            "[green]✓[/green]" if c.all_parties_signed else "",
            str(c.closing_date) if c.closing_date else "",
        )
    console.print(table)


@app.command()
def active():
    """Show the active contract of each transaction."""
    records = _active(_store())
    if not records:
        console.print("[dim]No active contracts.[/dim]")
        return

    table = Table(title="Active Contracts")
    table.add_column("ID", style="dim")
    table.add_column("Address")
    table.add_column("Source")
    table.add_column("Status")
    table.add_column("Closing")

    for c in records:
        if not c.is_counter_offer:
            source = "Original"
        elif c.using_original_dates:
            source = f"Counter #{c.counter_offer_number} [dim](original dates)[/dim]"
        else:
            source = f"Counter #{c.counter_offer_number}"
        table.add_row(c.id, c.property_address, source, c.status.value,
                      str(c.closing_date) if c.closing_date else "")
    console.print(table)


@app.command()
def upcoming(limit: int = typer.Option(None, "--limit", "-n", help="Max rows (default from settings)")):
    """Show upcoming, incomplete milestone dates."""
    from contractflow.engine.milestones import classify, open_contracts, project_all, upcoming_dates

    limit = limit or get_settings().upcoming_limit
    events = upcoming_dates(project_all(open_contracts(_active(_store()))), limit)

    table = Table(title="Upcoming Dates")
    table.add_column("Date")
    table.add_column("Milestone")
    table.add_column("Property")
    table.add_column("Status")
    table.add_column("Contract", style="dim")

    for e in events:
        status = classify(e).value
        color = STATUS_COLORS.get(status, "white")
        table.add_row(str(e.date), e.label, e.property_address,
                      f"[{color}]{status.upper()}[/{color}]", e.contract_id)
    console.print(table)


# ---------------------------------------------------------------------------
# cf sign / cf complete / cf cancel
# ---------------------------------------------------------------------------

@app.command()
def sign(
    contract_id: str = typer.Argument(..., help="Contract ID"),
    signed_on: str = typer.Option(None, "--date", help="Signature date (default today)"),
):
    """Mark a contract as signed by all parties."""
    from contractflow.engine.lifecycle import mark_signed

    store = _store()
    contracts = _contracts(store)
    try:
        changed = mark_signed(contracts, contract_id, _parse_date(signed_on, "--date"))
    except ContractFlowError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    store.save_many(changed)
    console.print(f"\n[green]✓ {contract_id} signed by all parties[/green]")
    for other in changed[1:]:
        console.print(f"  [dim]{other.id} superseded[/dim]")


@app.command()
def complete(
    contract_id: str = typer.Argument(..., help="Contract ID"),
    milestone: str = typer.Argument(..., help="inspection, inspection_response, loan_contingency, "
                                              "appraisal, final_walkthrough, closing"),
    undo: bool = typer.Option(False, "--undo", help="Mark as not completed"),
):
    """Mark a milestone complete. Completing closing closes the contract."""
    from contractflow.engine.lifecycle import completion_target, set_milestone_completed

    store = _store()
    m = _milestone(milestone)
    try:
        contract = completion_target(_contracts(store), contract_id)
        set_milestone_completed(contract, m, completed=not undo)
    except ContractFlowError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    store.save(contract)
    state = "reopened" if undo else "completed"
    console.print(f"\n[green]{m.label} {state}[/green] for {contract.property_address or contract.id}")
    if contract.id != contract_id:
        console.print(f"  [dim]Recorded on original contract {contract.id}, whose dates are in use.[/dim]")
    if m == MilestoneType.CLOSING and not undo:
        console.print("  Contract closed and archived.")


@app.command()
def cancel(
    contract_id: str = typer.Argument(..., help="Contract ID"),
    reason: str = typer.Option(..., "--reason", "-r"),
    notes: str = typer.Option("", "--notes", "-n"),
):
    """Cancel a contract."""
    from contractflow.engine.lifecycle import cancel_contract

    store = _store()
    contract = _get(store, contract_id)
    try:
        cancel_contract(contract, reason, notes)
    except ContractFlowError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    store.save(contract)
    console.print(f"\n[yellow]Contract {contract_id} cancelled:[/yellow] {reason}")


# ---------------------------------------------------------------------------
# cf calendar
# ---------------------------------------------------------------------------

@app.command()
def calendar(
    out: str = typer.Option("contractflow.ics", "--out", "-o", help="Output .ics file"),
    contract_id: str = typer.Option(None, "--contract", "-c", help="Export a single transaction"),
    include_completed: bool = typer.Option(False, "--include-completed"),
):
    """Export milestone dates as an iCalendar file."""
    from contractflow.calendar import build_ics
    from contractflow.engine.milestones import open_contracts, project_all

    settings = get_settings()
    store = _store()
    records = open_contracts(_active(store))
    if contract_id:
        from contractflow.engine.resolver import transaction_key

        key = transaction_key(_get(store, contract_id))
        records = [c for c in records if transaction_key(c) == key]
    events = project_all(records)
    if not include_completed:
        events = [e for e in events if not e.completed]

    Path(out).write_text(
        build_ics(events, start_hour=settings.calendar_event_hour, tzid=settings.timezone),
        newline="",
    )
    console.print(f"[green]{len(events)} event(s) written to {out}[/green]")


# ---------------------------------------------------------------------------
# cf reminders
# ---------------------------------------------------------------------------

@app.command()
def reminders(send: bool = typer.Option(False, "--send", help="Send push/email reminders")):
    """List milestones that hit a reminder offset today."""
    from contractflow.engine.milestones import open_contracts, project_all
    from contractflow.engine.reminders import reminders_due

    settings = get_settings()
    store = _store()
    due = reminders_due(project_all(open_contracts(_active(store))), store.load_reminder_preferences())
    if not due:
        console.print("[dim]No reminders due today.[/dim]")
        return

    for event, days in due:
        console.print(f"  {event.label} — {event.property_address} ({event.date}, {days} day(s))")

    if not send:
        return

    has_push = settings.has_pushover() or settings.has_ntfy()
    has_email = settings.has_google() and bool(settings.agent_email)
    if not (has_push or has_email):
        console.print("[red]No reminder provider configured.[/red] Set Pushover, ntfy or Gmail in .env")
        raise typer.Exit(1)

    from contractflow.integrations.email_client import send_milestone_reminder
    from contractflow.integrations.notifications import notify_milestone

    sent = 0
    for event, days in due:
        delivered = False
        if has_push:
            delivered = notify_milestone(event, days, settings)
            if not delivered:
                console.print(f"  [yellow]Push failed for {event.contract_id} {event.label}[/yellow]")
        if has_email:
            try:
                send_milestone_reminder(event, days)
                delivered = True
            except Exception as e:
                console.print(f"  [yellow]Email failed for {event.contract_id} {event.label}: {e}[/yellow]")
        sent += delivered

    failed = len(due) - sent
    console.print(f"[green]{sent} reminder(s) sent[/green], [red]{failed} failed[/red]")
    if failed:
        raise typer.Exit(1)


@app.command("reminder-settings")
def reminder_settings(
    milestone: str = typer.Argument(None, help="Milestone to change; omit to show all"),
    days: list[int] = typer.Argument(None, help="Days before the milestone: any of 1 3 5 7"),
    off: bool = typer.Option(False, "--off", help="Turn reminders off for this milestone"),
):
    """Show or change how many days before each milestone reminders fire."""
    from contractflow.models import REMINDER_DAY_CHOICES

    store = _store()
    prefs = store.load_reminder_preferences()

    if milestone:
        m = _milestone(milestone)
        days = [] if off else (days or [])
        if not days and not off:
            console.print("[red]Give the days to remind on, or --off.[/red]")
            raise typer.Exit(1)
        unsupported = sorted(set(days) - set(REMINDER_DAY_CHOICES))
        if unsupported:
            console.print(f"[red]Unsupported day(s) {unsupported}; choose from {list(REMINDER_DAY_CHOICES)}[/red]")
            raise typer.Exit(1)
        prefs = store.save_reminder_preferences(prefs.with_days(m, days))
        console.print(f"[green]{m.label} reminders updated.[/green]")

    table = Table(title="Reminder Settings")
    table.add_column("Milestone")
    table.add_column("Days before")
    for m in MilestoneType:
        offsets = sorted(prefs.offsets_for(m))
        table.add_row(m.label, ", ".join(str(d) for d in offsets) if offsets else "[dim]off[/dim]")
    console.print(table)


# ---------------------------------------------------------------------------
# cf email-timelines
# ---------------------------------------------------------------------------

@app.command("email-timelines")
def email_timelines(
    contract_ids: list[str] = typer.Argument(None, help="Limit to these contracts"),
    dry_run: bool = typer.Option(False, "--dry-run"),
):
    """Email each client their upcoming milestone timeline."""
    from contractflow.engine.milestones import emailable_contracts

    targets = emailable_contracts(_active(_store()))
    if contract_ids:
        targets = [c for c in targets if c.id in contract_ids]
    if not targets:
        console.print("[dim]No contracts with a client email and dates.[/dim]")
        return

    if dry_run:
        for c in targets:
            console.print(f"  would email {c.client_email()} — {c.property_address}")
        return

    from contractflow.integrations.email_client import send_client_timelines

    results = send_client_timelines(targets)
    console.print(f"\n[green]{len(results.sent)} sent[/green], [red]{len(results.failed)} failed[/red]")
    for failure in results.failed:
        console.print(f"  [red]✗[/red] {failure.contract_id}: {failure.reason}")


# ---------------------------------------------------------------------------
# cf check
# ---------------------------------------------------------------------------

@app.command()
def check():
    """Report contract lineage and status problems."""
    from contractflow.engine.resolver import validate_lineage

    issues = validate_lineage(_contracts(_store()))
    if not issues:
        console.print("[green]No data problems found.[/green]")
        return

    table = Table(title="Data Problems")
    table.add_column("Contract", style="dim")
    table.add_column("Code", style="bold")
    table.add_column("Problem")
    for issue in issues:
        table.add_row(issue.contract_id, issue.code, issue.message)
    console.print(table)
    raise typer.Exit(1)


if __name__ == "__main__":
    app()
