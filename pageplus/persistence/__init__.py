from __future__ import annotations

from pageplus.persistence.context_store import SQLiteContextStore
from pageplus.persistence.migrations import MigrationChecksumError, run_migrations

__all__ = ["MigrationChecksumError", "SQLiteContextStore", "run_migrations"]
