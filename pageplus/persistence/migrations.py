"""Ordered, checksummed SQL migrations for the context store."""

from __future__ import annotations

import hashlib
import logging
import sqlite3
from datetime import UTC, datetime
from pathlib import Path

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"


class MigrationChecksumError(RuntimeError):
    pass


def _checksum(path: Path) -> str:
    return hashlib.sha256(path.read_bytes()).hexdigest()


def _apply_pending(db_path: str, migrations_dir: Path) -> list[str]:
    applied_now: list[str] = []
    conn = sqlite3.connect(db_path)
    try:
        conn.execute(
            "CREATE TABLE IF NOT EXISTS _migrations ("
            "  name TEXT PRIMARY KEY,"
            "  checksum TEXT NOT NULL,"
            "  applied_at TEXT NOT NULL"
            ")"
        )
        conn.commit()
        recorded = dict(conn.execute("SELECT name, checksum FROM _migrations").fetchall())

        for sql_file in sorted(migrations_dir.glob("*.sql")):
            checksum = _checksum(sql_file)
            previous = recorded.get(sql_file.name)
            if previous is not None:
                if previous != checksum:
                    raise MigrationChecksumError(
                        f"migration {sql_file.name} was modified after being applied"
                    )
                continue
            conn.executescript(sql_file.read_text(encoding="utf-8"))
            conn.execute(
                "INSERT INTO _migrations (name, checksum, applied_at) VALUES (?, ?, ?)",
                (sql_file.name, checksum, datetime.now(UTC).isoformat()),
            )
            conn.commit()
            applied_now.append(sql_file.name)
    finally:
        conn.close()
    return applied_now


async def run_migrations(db_path: str, migrations_dir: Path | None = None) -> list[str]:
    """Apply pending migrations in name order and return the ones applied.

    Runs on plain ``sqlite3``: ``executescript`` through aiosqlite splits
    trigger bodies at their BEGIN/END.
    """
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    applied = _apply_pending(db_path, migrations_dir or MIGRATIONS_DIR)
    if applied:
        logger.info("applied migrations: %s", ", ".join(applied))
    return applied


__all__ = ["MIGRATIONS_DIR", "MigrationChecksumError", "run_migrations"]
