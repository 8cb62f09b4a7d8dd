"""Open an Anki collection with the store matching its schema."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from qzanki.core.anki_db import setup_anki_connection
from qzanki.core.schema_legacy import LegacyCollection
from qzanki.core.schema_modern import ModernCollection
from qzanki.core.store import CollectionStore

logger = logging.getLogger(__name__)

# First schema version with separate note type and deck tables.
MODERN_SCHEMA_VERSION = 15


@contextmanager
def open_collection(collection_path: Path) -> Iterator[CollectionStore]:
    """Open a collection file for reconciliation.

    Args:
        collection_path: Path to a ``collection.anki2`` file
    """
    collection_path = Path(collection_path)
    if not collection_path.exists():
        raise FileNotFoundError(f"Anki collection not found: {collection_path}")

    with setup_anki_connection(collection_path) as conn:
        version = conn.execute("SELECT ver FROM col LIMIT 1").fetchone()["ver"]
        store_cls = ModernCollection if version >= MODERN_SCHEMA_VERSION else LegacyCollection
        logger.debug(
            "Opened %s (schema %d, %s layout)", collection_path, version, store_cls.schema_name
        )
        yield store_cls(conn)
