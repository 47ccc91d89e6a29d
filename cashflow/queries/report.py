"""
Filter and Report View-Model

Pure derivations over the transaction list:
- the filtered view shown in the transaction table
- the CSV export of exactly that view

Date bounds are calendar days. The start day counts from 00:00; the end
day counts through 23:59:59.999..., implemented as "strictly before the
next midnight".
"""

import csv
import io
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

from cashflow.models.ledger import Transaction


CSV_HEADERS = ["Date", "From", "To", "Type", "Amount", "PaymentMethod", "Note"]


class ReportFilter(BaseModel):
    """Filter inputs for the transaction view."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(
        default="",
        description="Case-insensitive substring of the sender or recipient"
    )
    start_date: Optional[date] = None
    end_date: Optional[date] = None


def _day_start(day: date, tz: tzinfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)


def filter_transactions(
    transactions: Iterable[Transaction],
    name_filter: str = "",
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    tz: tzinfo = timezone.utc,
) -> list[Transaction]:
    """
    Transactions matching a name and an inclusive day range.

    Args:
        transactions: Source list; order is preserved
        name_filter: Substring matched against from/to (empty matches all)
        start_date: First day included, or None for no lower bound
        end_date: Last day included, or None for no upper bound
        tz: Timezone the calendar days are evaluated in
    """
    needle = name_filter.strip().lower()
    lower = _day_start(start_date, tz) if start_date else None
    # date.max has no next midnight; it bounds nothing
    upper = None
    if end_date and end_date < date.max:
        upper = _day_start(end_date + timedelta(days=1), tz)

    result = []
    for tx in transactions:
        if needle and needle not in tx.sender.lower() and needle not in tx.recipient.lower():
            continue
        if lower is not None and tx.date < lower:
            continue
        if upper is not None and tx.date >= upper:
            continue
        result.append(tx)
    return result


def apply_filter(
    transactions: Iterable[Transaction],
    report_filter: ReportFilter,
    tz: tzinfo = timezone.utc,
) -> list[Transaction]:
    return filter_transactions(
        transactions,
        name_filter=report_filter.name,
        start_date=report_filter.start_date,
        end_date=report_filter.end_date,
        tz=tz,
    )


def _format_amount(tx: Transaction) -> str:
    amount = tx.amount
    if amount == amount.to_integral_value():
        return str(amount.quantize(1))
    return str(amount.normalize())


def export_csv(
    transactions: Iterable[Transaction],
    tz: tzinfo = timezone.utc,
) -> Optional[str]:
    """
    Render transactions as CSV (header row, every field quoted).

    Returns None when there is nothing to export.
    """
    rows = list(transactions)
    if not rows:
        return None

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for tx in rows:
        writer.writerow([
            tx.date.astimezone(tz).strftime("%Y-%m-%d %H:%M:%S"),
            tx.sender,
            tx.recipient,
            tx.kind.value,
            _format_amount(tx),
            tx.method.value,
            tx.note,
        ])
    return buffer.getvalue()


def report_filename(today: Optional[date] = None) -> str:
    """Download name for the export, e.g. cashflow_report_2024-03-01.csv."""
    today = today or datetime.now(timezone.utc).date()
    return f"cashflow_report_{today.isoformat()}.csv"
