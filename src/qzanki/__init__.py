"""qzanki - Keep an Anki collection in sync with plain-text card files."""

from qzanki.core import *
from qzanki.models import *

__all__ = [
    # Pipeline
    "load_config",
    "init_project",
    "save_project",
    "run",
    # Parsing
    "parse_stream",
    "parse_sources",
    "parse_files",
    # Reconciliation
    "open_collection",
    "save_decks",
    "Reconciler",
    # Models
    "Card",
    "TypeGroup",
    "Deck",
    "NoteModel",
    "DeckReport",
    # Errors
    "QzAnkiError",
    "ConfigError",
    "ParseErrors",
    "TransactionError",
]
