# manages sqlite connections and collection tables, internal to db package
import os.path
import re
from contextlib import asynccontextmanager
from sqlite3 import Row

import aiosqlite

from utils.logger import get_logger

_logger = get_logger(__name__)

_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def check_name(name: str) -> str:
    """Collection and field names are interpolated into SQL, so keep them to identifiers."""
    if not _NAME_RE.match(name or ""):
        raise ValueError(f"Invalid identifier: {name!r}")
    return name


async def table_exists(conn: aiosqlite.Connection, table_name: str) -> bool:
    cur = await conn.execute(
        """
        SELECT name
        FROM sqlite_master
        WHERE type = 'table'
          AND name = ?;
        """,
        (table_name,),
    )
    row = await cur.fetchone()
    await cur.close()
    return row is not None


async def create_collection(conn: aiosqlite.Connection, name: str) -> None:
    """One table per collection: a text key and the JSON body. rowid keeps insertion order."""
    check_name(name)
    if await table_exists(conn, name):
        return
    _logger.info(f"Creating collection table {name}...")
    await conn.execute(
        f"""
        CREATE TABLE IF NOT EXISTS "{name}" (
            id   TEXT PRIMARY KEY,
            body TEXT NOT NULL
        );
        """
    )
    await conn.commit()


@asynccontextmanager
async def connect(db_path: str) -> aiosqlite.Connection:
    """Async context manager yielding an aiosqlite connection to `db_path`.

    Creates the parent directory of the database file if needed.
    """
    folder = os.path.dirname(db_path)
    if folder and db_path != ":memory:" and not os.path.isdir(folder):
        os.makedirs(folder, exist_ok=True)
    conn = await aiosqlite.connect(db_path)
    conn.row_factory = Row
    try:
        yield conn
    finally:
        await conn.close()
