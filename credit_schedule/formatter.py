"""Output helpers for the credit schedule CLI.

This module provides simple functions to render payment schedules and their
summaries in a tabular text format using built-in printing and string
formatting.
"""

from __future__ import annotations

from typing import Dict, Iterable

from .data_models import ScheduleItem


def print_summary(summary: Dict[str, object]) -> None:
    """Print aggregate schedule metrics in a human-readable format."""
    print("Summary")
    print("-" * 72)
    print(f"Total principal    : {summary['total_principal']:.2f}")
    print(f"Total interest     : {summary['total_interest']:.2f}")
    print(f"Total payments     : {summary['total_payments']:.2f}")
    print(f"Overpayment        : {summary['overpayment']:.2f}")
    print(f"Payments           : {summary['payments_count']}")
    if summary.get("first_due_date"):
        print(f"First due date     : {summary['first_due_date'].isoformat()}")
        print(f"Last due date      : {summary['last_due_date'].isoformat()}")
    # For annuities this is the level payment; for differentiated schedules
    # it is the first payment after any deferment.
    if summary.get("max_payment"):
        print(f"Highest payment    : {summary['max_payment']:.2f}")
    print("-" * 72)


def print_schedule(schedule: Iterable[ScheduleItem], show_rate: bool = False) -> None:
    """Print the payment schedule as a simple table.

    Parameters
    ----------
    schedule: Iterable[ScheduleItem]
        The schedule items to print.
    show_rate: bool
        Whether to include the average annual rate of each period.
    """
    headers = ["Period", "DueDate", "Principal", "Interest", "Total", "Balance"]
    if show_rate:
        headers.append("Rate%")
    print("\t".join(headers))
    for item in schedule:
        row = [
            str(item.period_number),
            item.due_date.isoformat(),
            f"{item.principal_due:.2f}",
            f"{item.interest_due:.2f}",
            f"{item.total_due:.2f}",
            f"{item.remaining_balance:.2f}",
        ]
        if show_rate:
            row.append(f"{item.average_rate:.4f}")
        print("\t".join(row))
