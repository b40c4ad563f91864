"""Apply ``database/schema.sql`` to the configured MySQL database.

Every statement in the schema is idempotent (``CREATE ... IF NOT EXISTS``), so
this is safe to run on each start when ``AUTO_INIT_DB`` is set.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

import mysql.connector

from .connection import DBConfig

logger = logging.getLogger(__name__)

# The target database comes from DB_CONFIG, never from the file
_SKIPPED_PREFIXES = ("CREATE DATABASE", "USE ")


def split_statements(sql: str) -> Iterator[str]:
    """Yield statements from a schema file; ``--`` comment lines are dropped.

    The schema holds DDL only, so ';' never appears inside a literal.
    """
    lines = [line for line in sql.splitlines() if not line.lstrip().startswith("--")]
    for chunk in "\n".join(lines).split(";"):
        stmt = chunk.strip()
        if not stmt or stmt.upper().startswith(_SKIPPED_PREFIXES):
            continue
        yield stmt


def _connect(target: DBConfig, *, with_database: bool = True):
    kwargs = dict(host=target.host, port=target.port, user=target.user, password=target.password, use_pure=True)
    if with_database:
        kwargs["database"] = target.database
    return mysql.connector.connect(**kwargs)


def ensure_database_exists(db_config: dict) -> None:
    target = DBConfig.from_dict(db_config)
    conn = _connect(target, with_database=False)
    try:
        cur = conn.cursor()
        cur.execute(
            f"CREATE DATABASE IF NOT EXISTS `{target.database}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
        )
        conn.commit()
    finally:
        conn.close()


def apply_schema(db_config: dict, *, schema_path: str | Path) -> None:
    ensure_database_exists(db_config)
    statements = list(split_statements(Path(schema_path).read_text(encoding="utf-8")))

    conn = _connect(DBConfig.from_dict(db_config))
    try:
        cur = conn.cursor()
        for stmt in statements:
            cur.execute(stmt)
        conn.commit()
    finally:
        conn.close()
    logger.debug("Applied %d schema statements from %s", len(statements), schema_path)


def list_tables(db_config: dict) -> list[str]:
    conn = _connect(DBConfig.from_dict(db_config))
    try:
        cur = conn.cursor()
        cur.execute("SHOW TABLES")
        return [str(row[0]) for row in cur.fetchall()]
    finally:
        conn.close()
