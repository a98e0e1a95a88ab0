"""Command-line interface for the credit schedule engine.

This module uses the ``click`` library to implement a multi-command
interface. Users can compute full payment schedules, view summaries,
regenerate the unpaid remainder of a schedule from a checkpoint date, or
settle due payments in a payment database. Results can be printed to the
terminal or exported to JSON/CSV files.
"""

from __future__ import annotations

import csv
import json
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import click

from .data_models import AdjustmentEntry, Credit, RateEntry, ScheduleItem
from .engine import generate_schedule, recalculate_schedule_from, summarize_schedule
from .errors import ScheduleError
from .formatter import print_schedule, print_summary
from .serialization import payments_from_list, schedule_item_to_dict, summary_to_dict
from .utils import decimal_from_str, parse_date, parse_method

METHOD_CHOICES = [
    "classic_annuity",
    "classic_differentiated",
    "floating_annuity",
    "floating_differentiated",
    "fixed",
    "floating",
]


def parse_amount(value: str) -> Decimal:
    """Parse a money string with optional suffixes.

    Accepts plain numbers ("500000") and shorthand with ``k``/``m`` suffixes
    (e.g., "500k" meaning 500_000).
    """
    value = value.strip().lower().replace(",", "")
    factor = Decimal(1)
    if value.endswith("k"):
        factor = Decimal(1_000)
        value = value[:-1]
    elif value.endswith("m"):
        factor = Decimal(1_000_000)
        value = value[:-1]
    try:
        return decimal_from_str(value) * factor
    except ValueError:
        raise click.BadParameter(f"Invalid amount: {value}")


def _parse_cli_date(value: str) -> date:
    try:
        return parse_date(value)
    except ValueError as exc:
        raise click.BadParameter(str(exc))


def parse_rate_strings(values: Tuple[str, ...]) -> List[RateEntry]:
    rates: List[RateEntry] = []
    for item in values:
        parts = item.split(":")
        if len(parts) != 2:
            raise click.BadParameter(f"Rate must be in YYYY-MM-DD:PERCENT format; got {item}")
        day, percent = parts
        try:
            annual = decimal_from_str(percent.rstrip("%"))
        except ValueError as exc:
            raise click.BadParameter(str(exc))
        rates.append(RateEntry(annual_percent=annual, effective_date=_parse_cli_date(day)))
    return rates


def parse_adjustment_strings(values: Tuple[str, ...]) -> List[AdjustmentEntry]:
    adjustments: List[AdjustmentEntry] = []
    for item in values:
        parts = item.split(":")
        if len(parts) not in (2, 3):
            raise click.BadParameter(
                f"Adjustment must be in YYYY-MM-DD:AMOUNT[:TYPE] format; got {item}"
            )
        day, amount = parts[0], parts[1]
        sign = Decimal(-1) if amount.strip().startswith("-") else Decimal(1)
        adjustments.append(
            AdjustmentEntry(
                amount=sign * parse_amount(amount.strip().lstrip("-")),
                effective_date=_parse_cli_date(day),
                type=parts[2] if len(parts) == 3 else None,
            )
        )
    return adjustments


def build_credit_from_options(
    principal: str,
    term: int,
    method: str,
    start_date: str,
    payment_day: int,
    deferment: int,
) -> Credit:
    try:
        calculation_method = parse_method(method)
    except ValueError as exc:
        raise click.BadParameter(str(exc))
    return Credit(
        principal=parse_amount(principal),
        term_months=term,
        start_date=_parse_cli_date(start_date),
        method=calculation_method,
        deferment_months=deferment,
        payment_day=payment_day,
    )


def export_to_json(path: Path, schedule: List[ScheduleItem], summary: Dict[str, Any]) -> None:
    """Export schedule and summary to a JSON file."""
    data = {
        "summary": summary_to_dict(summary),
        "schedule": [schedule_item_to_dict(item) for item in schedule],
    }
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def export_to_csv(path: Path, schedule: List[ScheduleItem]) -> None:
    """Export schedule to a CSV file."""
    header = [
        "Period",
        "Due_Date",
        "Principal_Due",
        "Interest_Due",
        "Total_Due",
        "Remaining_Balance",
        "Average_Rate",
    ]
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        for item in schedule:
            writer.writerow(
                [
                    item.period_number,
                    item.due_date.isoformat(),
                    f"{item.principal_due:.2f}",
                    f"{item.interest_due:.2f}",
                    f"{item.total_due:.2f}",
                    f"{item.remaining_balance:.2f}",
                    f"{item.average_rate:.4f}",
                ]
            )


def _emit_schedule(schedule: List[ScheduleItem], output: Optional[str], show_rate: bool) -> None:
    summary = summarize_schedule(schedule)
    if output:
        path = Path(output)
        if path.suffix.lower() == ".json":
            export_to_json(path, schedule, summary)
        elif path.suffix.lower() == ".csv":
            export_to_csv(path, schedule)
        else:
            raise click.BadParameter("Unsupported output format; use .json or .csv")
        click.echo(f"Schedule exported to {path}")
        return
    print_summary(summary)
    print_schedule(schedule, show_rate=show_rate)


def credit_options(func: Callable) -> Callable:
    """Attach the options shared by every schedule command."""
    options = [
        click.option("--principal", "-p", "principal", required=True, help="Credit amount (500k, 1.2m accepted)"),
        click.option("--term", "-t", "term", required=True, type=int, help="Term in months"),
        click.option(
            "--method",
            "-m",
            "method",
            type=click.Choice(METHOD_CHOICES, case_sensitive=False),
            default="classic_annuity",
            help="Calculation method",
        ),
        click.option("--start-date", "-s", "start_date", required=True, help="Contract start date (YYYY-MM-DD)"),
        click.option("--payment-day", "payment_day", type=int, default=1, help="Day of month payments fall on"),
        click.option("--deferment", "deferment", type=int, default=0, help="Interest-only months at the start"),
        click.option("--rate", "-r", "rate", multiple=True, required=True, help="Rate in YYYY-MM-DD:PERCENT format"),
        click.option("--adjustment", "adjustment", multiple=True, help="Principal adjustment in YYYY-MM-DD:AMOUNT[:TYPE] format"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group()
def cli() -> None:
    """Credit payment schedule calculator."""
    pass


@cli.command()
@credit_options
@click.option("--show-rate", "show_rate", is_flag=True, help="Show the average rate of each period")
@click.option("--output", "output", type=str, help="Output file path (.json or .csv)")
def schedule(
    principal: str,
    term: int,
    method: str,
    start_date: str,
    payment_day: int,
    deferment: int,
    rate: Tuple[str, ...],
    adjustment: Tuple[str, ...],
    show_rate: bool,
    output: Optional[str],
) -> None:
    """Compute and print the full payment schedule."""
    credit = build_credit_from_options(principal, term, method, start_date, payment_day, deferment)
    try:
        items = generate_schedule(credit, parse_rate_strings(rate), parse_adjustment_strings(adjustment))
    except ScheduleError as exc:
        raise click.ClickException(str(exc))
    _emit_schedule(items, output, show_rate)


@cli.command()
@credit_options
@click.option("--output", "output", type=str, help="Output file path (.json)")
def summary(
    principal: str,
    term: int,
    method: str,
    start_date: str,
    payment_day: int,
    deferment: int,
    rate: Tuple[str, ...],
    adjustment: Tuple[str, ...],
    output: Optional[str],
) -> None:
    """Compute and print only the summary metrics for a credit."""
    credit = build_credit_from_options(principal, term, method, start_date, payment_day, deferment)
    try:
        items = generate_schedule(credit, parse_rate_strings(rate), parse_adjustment_strings(adjustment))
    except ScheduleError as exc:
        raise click.ClickException(str(exc))
    summary_data = summarize_schedule(items)
    if output:
        path = Path(output)
        if path.suffix.lower() != ".json":
            raise click.BadParameter("Summary export must use .json extension")
        with path.open("w", encoding="utf-8") as f:
            json.dump({"summary": summary_to_dict(summary_data)}, f, indent=2)
        click.echo(f"Summary exported to {path}")
    else:
        print_summary(summary_data)


@cli.command()
@credit_options
@click.option("--from-date", "from_date", required=True, help="Checkpoint date (YYYY-MM-DD)")
@click.option(
    "--payments",
    "payments",
    type=click.Path(exists=True, dir_okay=False),
    help="JSON file with the payment history (list of records)",
)
@click.option("--show-rate", "show_rate", is_flag=True, help="Show the average rate of each period")
@click.option("--output", "output", type=str, help="Output file path (.json or .csv)")
def recalculate(
    principal: str,
    term: int,
    method: str,
    start_date: str,
    payment_day: int,
    deferment: int,
    rate: Tuple[str, ...],
    adjustment: Tuple[str, ...],
    from_date: str,
    payments: Optional[str],
    show_rate: bool,
    output: Optional[str],
) -> None:
    """Regenerate the unpaid remainder of a schedule from a checkpoint date."""
    credit = build_credit_from_options(principal, term, method, start_date, payment_day, deferment)
    history = []
    if payments:
        with open(payments, encoding="utf-8") as f:
            raw = json.load(f)
        records = raw.get("payments", []) if isinstance(raw, dict) else raw
        try:
            history = payments_from_list(records)
        except ScheduleError as exc:
            raise click.BadParameter(str(exc))
    try:
        items = recalculate_schedule_from(
            credit,
            parse_rate_strings(rate),
            parse_adjustment_strings(adjustment),
            _parse_cli_date(from_date),
            history,
        )
    except ScheduleError as exc:
        raise click.ClickException(str(exc))
    _emit_schedule(items, output, show_rate)


@cli.command("process-due")
@click.option("--database-url", "database_url", envvar="CREDIT_DATABASE_URL", help="SQLAlchemy database URL")
@click.option("--today", "today", help="Settle payments due on or before this date (YYYY-MM-DD)")
def process_due(database_url: Optional[str], today: Optional[str]) -> None:
    """Mark every scheduled payment that has fallen due as paid."""
    from credit_schedule_web.jobs import DuePaymentsJob
    from credit_schedule_web.payment_store import create_store_from_env

    job = DuePaymentsJob(create_store_from_env(database_url))
    result = job.execute(_parse_cli_date(today) if today else None)
    click.echo(
        f"Processed {result.processed_count} of {result.total_due_payments} due payments"
    )
    for error in result.errors:
        click.echo(f"  {error}", err=True)
    if not result.success:
        raise click.ClickException("Due payment processing failed")


if __name__ == "__main__":
    cli()
