"""
CashFlow Ledger - Source Package

A small ledger for informal cash transactions between named parties,
mirrored to a spreadsheet-backed webhook.

DESIGN PRINCIPLES:
1. The local store is a cache, the remote sheet is the source of truth
2. Writes are optimistic, reads are authoritative (last fetch wins)
3. Untrusted remote data is normalized, never partially typed
4. Sync failures never break the session
5. Every mutation is auditable
"""

__version__ = "1.0.0"
__author__ = "CashFlow Ledger Team"
