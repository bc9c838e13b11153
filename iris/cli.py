"""Iris CLI — command-line tools for the Airtable-backed intake system.

Provides commands for inspecting carriers, plans and add-ons, auditing and
looking up submissions, test submissions, quote and mapping previews, the
enrollment autofill and the API server.  Uses Typer for argument parsing and
Rich for formatted terminal output.

Usage::

    iris --help
    iris carriers --type "Short Term"
    iris plans "Everest"
    iris find-lead 876
    iris autofill recXXXXXXXXXXXXXX --url https://enroll.example.com/form
    iris serve --port 8002
"""

from __future__ import annotations

import json
import logging
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import requests
import typer
from pydantic import ValidationError
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from iris.airtable.client import AirtableClient, AirtableError, AirtableRecord
from iris.config import settings

# ---------------------------------------------------------------------------
# App & console setup
# ---------------------------------------------------------------------------

app = typer.Typer(
    name="iris",
    help="Iris intake CLI — carriers, plans, add-ons, submissions and enrollment autofill.",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()
err_console = Console(stderr=True, style="bold red")

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger("iris.cli")

# Columns printed by verify-lead and test-submission
ADDON_COLUMNS = (
    "American Financial Plan 1",
    "American Financial 1 Premium",
    "American Financial 1 Commission",
    "American Financial Plan 2",
    "American Financial 2 Premium",
    "American Financial 2 Commission",
    "American Financial Plan 3",
    "American Financial 3 Premium",
    "American Financial 3 Commission",
    "AMT 1",
    "AMT 1 Commission",
    "AMT 2",
    "AMT 2 Commission",
    "Leo Addons",
    "Leo Addons Commissions",
    "Essential Care Premium",
    "Essential Care Commission",
    "Total Premium",
    "Total Commission",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _client() -> AirtableClient:
    return AirtableClient(settings)


def _submission_service():
    from iris.submissions.cache import SubmissionCache, SubmissionService
    from iris.submissions.repository import SubmissionRepository

    return SubmissionService(SubmissionRepository(_client()), SubmissionCache())


@contextmanager
def _command_errors(action: str) -> Iterator[None]:
    """Turn Airtable and input failures into a red message and exit code 1."""
    try:
        yield
    except typer.Exit:
        raise
    except (AirtableError, requests.RequestException) as exc:
        err_console.print(f"{action} failed: {exc}")
        logger.exception("CLI %s command failed", action)
        raise typer.Exit(1)
    except (ValidationError, ValueError, OSError) as exc:
        err_console.print(f"{action} failed: {exc}")
        raise typer.Exit(1)


def _load_form(path: Optional[Path]):
    from iris.intake.samples import generate_sample_application
    from iris.intake.schemas import ApplicationForm

    if path is None:
        return generate_sample_application()
    return ApplicationForm.model_validate_json(path.read_text(encoding="utf-8"))


def _print_record(record: AirtableRecord, title: str) -> None:
    table = Table(title=title, box=box.ROUNDED, show_lines=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    for name, value in sorted(record.fields.items()):
        table.add_row(name, json.dumps(value) if isinstance(value, (dict, list)) else str(value))
    console.print(table)
    console.print(f"[dim]id={record.id} created={record.created_time}[/dim]")


def _print_columns(fields: dict, columns: tuple[str, ...], title: str, missing: str) -> None:
    table = Table(title=title, box=box.ROUNDED)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for column in columns:
        value = fields.get(column)
        shown = f"[red]{missing}[/red]" if value in (None, "") else f"[green]{value}[/green]"
        table.add_row(column, shown)
    console.print(table)


def _carrier_table(carriers, title: str) -> Table:
    table = Table(title=title, box=box.ROUNDED)
    table.add_column("Carrier", style="cyan")
    table.add_column("Type", style="magenta")
    table.add_column("#", justify="right")
    table.add_column("Plan")
    table.add_column("Cost", justify="right", style="green")
    table.add_column("Rate", justify="right")
    table.add_column("Commission", justify="right", style="yellow")
    for carrier in carriers:
        for plan in carrier.plans:
            amount = plan.commission_amount
            table.add_row(
                carrier.name,
                carrier.type,
                str(plan.plan_number),
                plan.name,
                plan.cost,
                f"{plan.commission_rate:.0%}",
                f"${amount:,.2f}" if amount is not None else "-",
            )
    return table


# ---------------------------------------------------------------------------
# Commands: carriers & plans
# ---------------------------------------------------------------------------


@app.command("carriers")
def carriers(
    plan_type: Optional[str] = typer.Option(None, "--type", "-t", help="Only this insurance type"),
) -> None:
    """List every carrier with its plans, costs and commission rates."""
    from iris.catalog.carriers import CarrierCatalog

    with _command_errors("carriers"):
        with console.status("[bold green]Loading carriers...[/bold green]"):
            loaded = CarrierCatalog(_client()).load_carriers()
        if plan_type:
            loaded = [c for c in loaded if c.type.lower() == plan_type.lower()]
        console.print(_carrier_table(loaded, f"Carriers ({len(loaded)})"))


@app.command("plans")
def plans(
    pattern: str = typer.Argument(..., help="Case-insensitive plan name fragment, e.g. 'Everest'"),
) -> None:
    """List every plan whose name contains PATTERN, across all carriers."""
    from iris.catalog.carriers import CarrierCatalog

    with _command_errors("plans"):
        matches = CarrierCatalog(_client()).find_plans(pattern)
        if not matches:
            console.print(f"[yellow]No plans matching '{pattern}'.[/yellow]")
            return
        total = sum(len(c.plans) for c in matches)
        console.print(_carrier_table(matches, f"Plans matching '{pattern}' ({total})"))


@app.command("check")
def check(
    plan: str = typer.Argument(..., help="Plan name fragment to verify"),
    carrier: Optional[str] = typer.Option(None, "--carrier", "-c", help="Carrier name fragment"),
    plan_type: Optional[str] = typer.Option(None, "--type", "-t", help="Insurance type fragment"),
) -> None:
    """Verify that a plan is configured; exits 1 when no carrier offers it.

    Examples:

      iris check "Health Choice" --type "Short Term"

      iris check Everest --carrier "Everest"
    """
    from iris.catalog.carriers import CarrierCatalog

    with _command_errors("check"):
        matches = CarrierCatalog(_client()).find_plans(
            plan, carrier_name=carrier, insurance_type=plan_type
        )
    filters = f"carrier={carrier or 'any'} type={plan_type or 'any'}"
    if not matches:
        console.print(
            Panel(
                f"[bold red]Not found[/bold red]: '{plan}' ({filters})",
                title="Plan Check",
                expand=False,
            )
        )
        raise typer.Exit(1)
    console.print(
        Panel(
            f"[bold green]Found[/bold green] '{plan}' at {len(matches)} carrier(s) ({filters})",
            title="Plan Check",
            expand=False,
        )
    )
    console.print(_carrier_table(matches, "Matching plans"))


@app.command("types")
def types() -> None:
    """List the insurance types present in the carriers table."""
    from iris.catalog.carriers import CarrierCatalog

    with _command_errors("types"):
        found = CarrierCatalog(_client()).insurance_types()
    table = Table(title="Insurance Types", box=box.ROUNDED)
    table.add_column("Type", style="cyan")
    for name in found:
        table.add_row(name)
    console.print(table)


@app.command("plan-map")
def plan_map(
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write JSON to this file"),
) -> None:
    """Carriers, plan values and plan mappings per insurance type, as JSON."""
    from iris.catalog.carriers import CarrierCatalog

    with _command_errors("plan-map"):
        mapping = CarrierCatalog(_client()).plan_mappings_by_type()
        payload = json.dumps(
            {name: m.model_dump() for name, m in mapping.items()}, indent=2, default=str
        )
        if output:
            output.write_text(payload, encoding="utf-8")
            console.print(f"Wrote plan mappings for {len(mapping)} types to [cyan]{output}[/cyan]")
        else:
            console.print_json(payload)


@app.command("addons")
def addons() -> None:
    """American Financial add-ons by insurance type, then merged across types."""
    from iris.catalog.addons import AddonCatalog, group_addons_by_type, summarize_addons

    with _command_errors("addons"):
        found = AddonCatalog(_client()).american_financial_addons()

    for plan_type, group in group_addons_by_type(found).items():
        table = Table(title=f"{plan_type}", box=box.ROUNDED)
        table.add_column("Add-on", style="cyan")
        table.add_column("Plan")
        table.add_column("Cost", justify="right", style="green")
        for addon in group:
            for item in addon.plans:
                table.add_row(addon.name, item.name, item.cost)
        console.print(table)

    summary = Table(title="Add-on Summary", box=box.ROUNDED)
    summary.add_column("Plan", style="cyan")
    summary.add_column("Cost", justify="right", style="green")
    summary.add_column("Types")
    for entry in summarize_addons(found):
        for item in entry.plans:
            summary.add_row(item.name, item.cost, ", ".join(entry.types))
    console.print(summary)


@app.command("commission-addons")
def commission_addons(
    max_records: int = typer.Option(20, "--max-records", help="Rows to read from the commissions table"),
) -> None:
    """Add-on plans linked from the commissions table, by household category."""
    from iris.catalog.addons import AddonCatalog

    with _command_errors("commission-addons"):
        rows = AddonCatalog(_client()).commission_addon_categories(max_records=max_records)
    if not rows:
        console.print("[yellow]No commission rows with add-on data.[/yellow]")
        return
    table = Table(title=f"Commission Add-ons ({len(rows)} rows)", box=box.ROUNDED)
    table.add_column("Record", style="dim")
    table.add_column("Category", style="cyan")
    table.add_column("#", justify="right")
    table.add_column("Plan")
    table.add_column("Cost", justify="right", style="green")
    for row in rows:
        for category in row.categories:
            for item in category.plans:
                table.add_row(
                    row.id,
                    category.category,
                    str(item.plan_number),
                    str(item.plan_name or ""),
                    str(item.plan_cost or ""),
                )
    console.print(table)


# ---------------------------------------------------------------------------
# Commands: submissions
# ---------------------------------------------------------------------------


@app.command("fields")
def fields(
    max_values: int = typer.Option(10, "--max-values", help="Values shown per field"),
) -> None:
    """Every submissions-table field with its distinct values."""
    from iris.catalog.fields import field_values
    from iris.submissions.repository import SubmissionRepository

    with _command_errors("fields"):
        values = field_values(SubmissionRepository(_client()).all())
    table = Table(title=f"Submission Fields ({len(values)})", box=box.ROUNDED)
    table.add_column("Field", style="cyan")
    table.add_column("Distinct", justify="right")
    table.add_column("Values")
    for name, seen in values.items():
        shown = ", ".join(str(v) for v in seen[:max_values])
        if len(seen) > max_values:
            shown += ", ..."
        table.add_row(name, str(len(seen)), shown)
    console.print(table)


@app.command("records")
def records(
    limit: int = typer.Option(25, "--limit", "-n", help="Rows to show, newest first"),
) -> None:
    """List submissions with their lead id and applicant name."""
    from iris.submissions.repository import SubmissionRepository, formatted_name, newest_first

    with _command_errors("records"):
        found = newest_first(SubmissionRepository(_client()).all())
    table = Table(title=f"Submissions ({len(found)})", box=box.ROUNDED)
    table.add_column("Record", style="dim")
    table.add_column("Created")
    table.add_column("Lead ID", style="cyan")
    table.add_column("Name", style="green")
    for record in found[:limit]:
        table.add_row(
            record.id,
            record.created_time or "",
            str(record.get("Lead ID", "")),
            formatted_name(record.fields),
        )
    console.print(table)


@app.command("latest")
def latest() -> None:
    """Show every field of the most recent submission."""
    from iris.submissions.repository import SubmissionRepository

    with _command_errors("latest"):
        record = SubmissionRepository(_client()).latest()
    if record is None:
        console.print("[yellow]The submissions table is empty.[/yellow]")
        raise typer.Exit(1)
    _print_record(record, "Latest Submission")


@app.command("find-lead")
def find_lead(lead_id: str = typer.Argument(..., help="Lead ID to look up")) -> None:
    """Show the submission with the given Lead ID."""
    from iris.submissions.repository import SubmissionRepository

    with _command_errors("find-lead"):
        record = SubmissionRepository(_client()).find_by_lead_id(lead_id)
    if record is None:
        err_console.print(f"No record found with Lead ID: {lead_id}")
        raise typer.Exit(1)
    _print_record(record, f"Lead {lead_id}")


@app.command("search")
def search(
    name: str = typer.Argument(..., help="First name, last name, 'Last, First' or 'First Last'"),
    refresh: bool = typer.Option(False, "--refresh", help="Bypass the submissions cache"),
) -> None:
    """Search submissions by applicant name (Airtable, cache, then samples)."""
    from iris.submissions.repository import formatted_name, search_by_name

    with _command_errors("search"):
        service = _submission_service()
        matches = search_by_name(service.fetch(force_refresh=refresh), name)
    table = Table(title=f"'{name}' — {len(matches)} match(es) from {service.source}", box=box.ROUNDED)
    table.add_column("Record", style="dim")
    table.add_column("Name", style="green")
    table.add_column("Lead ID", style="cyan")
    table.add_column("Created")
    for record in matches:
        table.add_row(
            record.id,
            formatted_name(record.fields),
            str(record.get("Lead ID", "")),
            record.created_time or "",
        )
    console.print(table)


@app.command("verify-lead")
def verify_lead(lead_id: str = typer.Argument(..., help="Lead ID to verify")) -> None:
    """Print the add-on and total columns stored for a lead."""
    from iris.submissions.repository import SubmissionRepository

    with _command_errors("verify-lead"):
        record = SubmissionRepository(_client()).find_by_lead_id(lead_id)
    if record is None:
        err_console.print(f"No record found with Lead ID: {lead_id}")
        raise typer.Exit(1)
    _print_columns(record.fields, ADDON_COLUMNS, f"Add-on Fields — Lead {lead_id}", "NOT SET")


@app.command("test-submission")
def test_submission(
    wait: float = typer.Option(5.0, "--wait", help="Seconds to wait before re-reading the record"),
    delete: bool = typer.Option(False, "--delete", help="Delete the test record afterwards"),
    file: Optional[Path] = typer.Option(None, "--file", "-f", help="ApplicationForm JSON; default: sample data"),
) -> None:
    """Create a test application, read it back and show the add-on columns."""
    from iris.intake.record_mapper import submit_application

    with _command_errors("test-submission"):
        form = _load_form(file)
        client = _client()
        record, issues = submit_application(client, form)
        console.print(
            f"Created test record [cyan]{record.id}[/cyan] "
            f"(Lead ID {form.basic_information.lead_id})"
        )
        for issue in issues:
            console.print(f"  [yellow]- {issue}[/yellow]")
        if wait > 0:
            time.sleep(wait)
        stored = client.get_record(client.config.airtable_submissions_table, record.id)
        _print_columns(stored.fields, ADDON_COLUMNS, "Verification Results", "Not Found")
        if delete:
            client.delete_record(client.config.airtable_submissions_table, record.id)
            console.print(f"Deleted test record [cyan]{record.id}[/cyan]")


@app.command("preview-mapping")
def preview_mapping(
    file: Optional[Path] = typer.Option(None, "--file", "-f", help="ApplicationForm JSON; default: sample data"),
) -> None:
    """Show the Airtable fields a form would be written as, without submitting."""
    from iris.intake.record_mapper import build_submission

    with _command_errors("preview-mapping"):
        payload, issues = build_submission(_load_form(file))
    console.print_json(json.dumps(payload, default=str))
    if issues:
        console.print("\n[bold yellow]Fixed data issues:[/bold yellow]")
        for issue in issues:
            console.print(f"  [yellow]- {issue}[/yellow]")


@app.command("quote")
def quote(
    file: Optional[Path] = typer.Option(None, "--file", "-f", help="ApplicationForm JSON; default: sample data"),
) -> None:
    """Premium and commission breakdown for an application."""
    from iris.pricing.commission import CommissionCalculator
    from iris.pricing.money import format_currency

    with _command_errors("quote"):
        form = _load_form(file)
    breakdown = CommissionCalculator().calculate(form.insurance_details)

    table = Table(title=f"Quote — Lead {form.basic_information.lead_id}", box=box.ROUNDED)
    table.add_column("Section", style="cyan")
    table.add_column("Item")
    table.add_column("Premium", justify="right", style="green")
    table.add_column("Commission", justify="right", style="yellow")
    for section, totals in breakdown.sections().items():
        for item in totals.items:
            table.add_row(
                section,
                item.plan or item.label,
                format_currency(item.premium),
                format_currency(item.commission),
            )
        if totals.items:
            table.add_row(
                f"[bold]{section} subtotal[/bold]",
                "",
                format_currency(totals.premium),
                format_currency(totals.commission),
            )
    table.add_row(
        "[bold]Total[/bold]",
        "",
        f"[bold]{format_currency(breakdown.total_premium)}[/bold]",
        f"[bold]{format_currency(breakdown.total_commission)}[/bold]",
    )
    console.print(table)


# ---------------------------------------------------------------------------
# Commands: autofill & server
# ---------------------------------------------------------------------------


@app.command("autofill")
def autofill(
    record_id: str = typer.Argument(..., help="Submission record id"),
    url: Optional[str] = typer.Option(None, "--url", help="Enrollment page URL (default: ENROLLMENT_URL)"),
    headless: Optional[bool] = typer.Option(
        None, "--headless/--headful", help="Override AUTOFILL_HEADLESS"
    ),
    keep_open: bool = typer.Option(
        True, "--keep-open/--close", help="Wait for the browser page to be closed (headful only)"
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Only show the mapped values"),
) -> None:
    """Fill the enrollment website with a captured submission."""
    from iris.autofill.filler import run_autofill
    from iris.autofill.mapper import map_submission
    from iris.submissions.repository import formatted_name

    with _command_errors("autofill"):
        service = _submission_service()
        record = service.get(record_id)
    if record is None:
        err_console.print(f"Submission {record_id} not found (source: {service.source})")
        raise typer.Exit(1)

    data = map_submission(record)
    table = Table(title=f"Enrollment values — {formatted_name(record.fields)}", box=box.ROUNDED)
    table.add_column("Control", style="cyan")
    table.add_column("Value", style="green")
    for name, value in data.fields.items():
        table.add_row(name, value)
    console.print(table)
    console.print(f"Dependents queued: [bold]{len(data.dependents)}[/bold]")
    if dry_run:
        return

    config = settings
    if headless is not None:
        config = settings.model_copy(update={"autofill_headless": headless})
    target = url or config.enrollment_url
    if not target:
        err_console.print("No --url given and ENROLLMENT_URL is not set.")
        raise typer.Exit(1)

    from playwright.async_api import Error as PlaywrightError

    try:
        with console.status(f"[bold green]Filling {target}...[/bold green]"):
            result = run_autofill(
                data, url=target, keep_open=keep_open and not config.autofill_headless, config=config
            )
    except PlaywrightError as exc:
        err_console.print(f"Autofill failed: {exc}")
        logger.exception("CLI autofill command failed")
        raise typer.Exit(1)

    summary = Table(title="Autofill Results", box=box.ROUNDED)
    summary.add_column("Metric", style="cyan", no_wrap=True)
    summary.add_column("Value", style="green", justify="right")
    summary.add_row("Filled", str(len(result.filled)))
    summary.add_row("Skipped", str(len(result.skipped)))
    summary.add_row("Re-applied", str(len(result.reapplied)))
    summary.add_row("Dependents", f"{result.dependents_filled}/{result.dependents_total}")
    summary.add_row("Errors", str(len(result.errors)))
    console.print(summary)
    if result.errors:
        console.print("\n[bold red]Errors:[/bold red]")
        for err in result.errors[:10]:
            console.print(f"  [red]- {err}[/red]")


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port (default: IRIS_API_PORT)"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on code changes"),
) -> None:
    """Run the intake form and JSON API with uvicorn."""
    import uvicorn

    bind_port = port or settings.iris_api_port
    console.print(
        Panel(
            f"[bold cyan]Iris API[/bold cyan]\n"
            f"Form: [yellow]http://{host}:{bind_port}/[/yellow]  "
            f"Docs: [yellow]http://{host}:{bind_port}/docs[/yellow]",
            title="Serve",
            expand=False,
        )
    )
    uvicorn.run(
        "iris.api.routes:app",
        host=host,
        port=bind_port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    app()
