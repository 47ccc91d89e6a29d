"""Transaction view and report package."""

from cashflow.queries.report import (
    CSV_HEADERS,
    ReportFilter,
    apply_filter,
    export_csv,
    filter_transactions,
    report_filename,
)

__all__ = [
    "CSV_HEADERS",
    "ReportFilter",
    "apply_filter",
    "export_csv",
    "filter_transactions",
    "report_filename",
]
