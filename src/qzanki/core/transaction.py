"""Commit all decks of a run together, or none of them."""

import logging

from qzanki.core.errors import TransactionError
from qzanki.core.reconcile import Reconciler
from qzanki.core.store import CollectionStore
from qzanki.models.cards import Deck
from qzanki.models.collection import DeckReport

logger = logging.getLogger(__name__)


def save_decks(
    store: CollectionStore, decks: list[Deck], *, case_insensitive: bool = False
) -> list[DeckReport]:
    """Reconcile decks inside one savepoint.

    Every deck is processed even after another one fails, so the error report
    is complete. The savepoint is released only when all of them succeeded.

    Args:
        store: Open collection
        decks: Parsed decks, in processing order
        case_insensitive: Match identities ignoring case

    Returns:
        One report per deck

    Raises:
        TransactionError: if any deck failed; nothing was written
    """
    reconciler = Reconciler(store, case_insensitive=case_insensitive)
    store.begin_savepoint()
    try:
        reports = [reconciler.reconcile_deck(deck) for deck in decks]
    except Exception:
        logger.error("Unexpected error, rolling back")
        store.rollback()
        raise

    failed = [report for report in reports if not report.ok]
    if failed:
        store.rollback()
        logger.info("Rolled back: %d of %d decks failed", len(failed), len(reports))
        messages = [f"{report.name}: {error}" for report in failed for error in report.errors]
        raise TransactionError(messages, reports)

    store.commit()
    logger.info("Committed %d decks", len(reports))
    return reports
