"""
JSON File Storage Implementation

DESIGN DECISION: The local cache is one JSON file per slot in a data
directory, mirroring the two named slots the browser version kept in
localStorage.

TRADEOFFS:
- Whole-slot rewrite on every mutation (fine for a personal ledger)
- No locking; one session owns the directory
- An unreadable file is treated as absent: the remote sheet is the
  source of truth and the next pull repopulates the cache
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional

import structlog

from cashflow.services.storage.interface import LedgerStorageInterface, StorageError


logger = structlog.get_logger(__name__)


class JsonFileLedgerStorage(LedgerStorageInterface):
    """Stores each slot as <data_dir>/<slot>.json."""

    def __init__(self, data_dir: Path):
        self._data_dir = Path(data_dir)

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def _slot_path(self, slot: str) -> Path:
        return self._data_dir / f"{slot}.json"

    def read_slot(self, slot: str) -> Optional[list]:
        """Read a slot, returning None when missing or corrupt."""
        path = self._slot_path(slot)
        if not path.exists():
            return None

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("slot_unreadable", slot=slot, path=str(path), error=str(e))
            return None

        if not isinstance(data, list):
            logger.warning("slot_not_a_list", slot=slot, path=str(path))
            return None
        return data

    def write_slot(self, slot: str, records: list[dict]) -> None:
        """Atomically overwrite a slot."""
        path = self._slot_path(slot)
        try:
            self._data_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self._data_dir, prefix=f".{slot}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(records, fh, ensure_ascii=False, indent=2)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise StorageError(f"Failed to write {slot}: {e}")
