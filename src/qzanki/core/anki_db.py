"""Database connection utilities for Anki."""

import os
import sqlite3
import sys
from contextlib import contextmanager
from pathlib import Path

from unidecode import unidecode

COLLECTION_FILENAME = "collection.anki2"


def unicase_key(value: str) -> str:
    return unidecode(value).lower()


def unicase_compare(x, y):
    """Custom collation function for unicase comparison."""
    x_ = unicase_key(x)
    y_ = unicase_key(y)
    return 1 if x_ > y_ else -1 if x_ < y_ else 0


@contextmanager
def setup_anki_connection(anki_db_path):
    """Set up SQLite connection with custom collations for Anki database.

    Transactions are controlled explicitly with savepoints, so the connection
    runs in autocommit mode.
    """
    conn = sqlite3.connect(str(anki_db_path), isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.create_collation("unicase", unicase_compare)
    try:
        yield conn
    finally:
        conn.close()


def default_anki_base() -> Path:
    """Where Anki keeps its profiles on this platform."""
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "Anki2"
    if sys.platform == "win32":
        return Path(os.environ.get("APPDATA", Path.home())) / "Anki2"
    return Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share")) / "Anki2"


def get_anki_dir() -> Path | None:
    """Get the first Anki profile directory holding a collection."""
    anki_base = default_anki_base()
    if anki_base.exists():
        for profile_dir in sorted(anki_base.iterdir()):
            if profile_dir.is_dir():
                collection = profile_dir / COLLECTION_FILENAME
                if collection.exists():
                    return profile_dir
    return None
