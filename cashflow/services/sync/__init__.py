"""
Remote Sync Package

HTTP clients for the spreadsheet webhook and config endpoint, and the
service that keeps the ledger store in step with the remote sheet.
"""

from cashflow.services.sync.client import (
    CACHE_BUST_PARAM,
    ConfigClient,
    InvalidEndpointError,
    RemoteLedgerClient,
    SyncError,
    validate_endpoint,
)
from cashflow.services.sync.service import SyncService

__all__ = [
    "CACHE_BUST_PARAM",
    "ConfigClient",
    "InvalidEndpointError",
    "RemoteLedgerClient",
    "SyncError",
    "SyncService",
    "validate_endpoint",
]
