"""Core functionality for qzanki."""

from .anki_db import get_anki_dir, setup_anki_connection
from .collection import open_collection
from .config import ProjectConfig, init_project, load_config
from .errors import *
from .grouping import group_cards
from .hooks import find_pre_parse_hook, run_pre_parse_hook
from .parsing import build_card, parse_files, parse_sources, parse_stream, split_blocks
from .pipeline import find_card_files, run, save_project
from .reconcile import Reconciler
from .transaction import save_decks

__all__ = [
    "setup_anki_connection",
    "get_anki_dir",
    "open_collection",
    # Parsing
    "split_blocks",
    "build_card",
    "parse_stream",
    "parse_sources",
    "parse_files",
    "group_cards",
    "find_pre_parse_hook",
    "run_pre_parse_hook",
    # Reconciliation
    "Reconciler",
    "save_decks",
    # Projects
    "ProjectConfig",
    "load_config",
    "init_project",
    "find_card_files",
    "save_project",
    "run",
    # Errors
    "QzAnkiError",
    "ConfigError",
    "ParseError",
    "ParseErrors",
    "ReconcileError",
    "TransactionError",
]
