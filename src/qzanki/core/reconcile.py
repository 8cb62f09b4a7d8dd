"""Reconcile parsed decks with the notes of a collection."""

import logging
import time
import uuid
from collections.abc import Callable

from qzanki.core.errors import (
    FilteredDeckError,
    ReconcileError,
    UnknownDeckError,
    UnknownModelError,
)
from qzanki.core.store import FIELD_SEPARATOR, CollectionStore, next_id_base
from qzanki.models.cards import Card, Deck, TypeGroup
from qzanki.models.collection import DeckReport, NewCardOrder, NoteModel

logger = logging.getLogger(__name__)


def encode_fields(fields: list[str], field_count: int) -> str:
    """Join fields the way Anki stores them, padding up to the note type's field count.

    Extra fields are kept.
    """
    padding = max(field_count - len(fields), 0)
    return FIELD_SEPARATOR.join(fields) + FIELD_SEPARATOR * padding


def encode_tags(tags: str | None) -> str:
    return f" {tags.strip()} " if tags is not None else " "


class Reconciler:
    """Adds and updates the notes of parsed decks in a collection.

    Args:
        store: Open collection, inside a savepoint
        case_insensitive: Match identities ignoring case and accents
        clock: Returns the current time in seconds
    """

    def __init__(
        self,
        store: CollectionStore,
        *,
        case_insensitive: bool = False,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.case_insensitive = case_insensitive
        self.clock = clock
        self._models: dict[str, NoteModel] = {}

    def resolve_model(self, name: str) -> NoteModel:
        model = self._models.get(name)
        if model is None:
            model = self.store.resolve_model(name)
            if model is None:
                raise UnknownModelError(name)
            self._models[name] = model
        return model

    def reconcile_deck(self, deck: Deck) -> DeckReport:
        """Reconcile every group of a deck.

        A failing group is recorded on the report and the remaining groups
        still run.
        """
        report = DeckReport(name=deck.name)
        for group in deck.groups:
            try:
                added, updated = self.reconcile_group(deck.name, group)
            except ReconcileError as e:
                logger.warning("Deck '%s', model '%s': %s", deck.name, group.model, e)
                report.errors.append(str(e))
                continue
            report.added += added
            report.updated += updated
        return report

    def reconcile_group(self, deck_name: str, group: TypeGroup) -> tuple[int, int]:
        """Write the cards of one (deck, model) group.

        Returns:
            Number of notes added and updated
        """
        model = self.resolve_model(group.model)

        new_cards: list[Card] = []
        existing = []
        for card in group.cards:
            note = self.store.find_by_identity(card.identity, self.case_insensitive)
            if note is None:
                new_cards.append(card)
            else:
                existing.append((note, card))

        now = self.clock()
        usn = self.store.usn()
        changed: list[int] = []
        added = updated = skipped = 0

        next_note_id = next_id_base(self.store.max_note_id(), int(now * 1000))
        for card in new_cards:
            inserted = self.store.insert_note(
                note_id=next_note_id,
                guid=uuid.uuid4().hex,
                model_id=model.id,
                mod=int(now),
                usn=usn,
                tags=encode_tags(card.tags),
                flds=encode_fields(card.fields, model.field_count),
                identity=card.identity,
            )
            if inserted > 0:
                changed.append(next_note_id)
                added += 1
            next_note_id += 1

        for note, card in existing:
            flds = encode_fields(card.fields, model.field_count)
            tags = encode_tags(card.tags)
            if flds == note.flds and tags == note.tags:
                logger.debug("Note %d (%s) is unchanged", note.id, card.identity)
                skipped += 1
                continue

            if self.store.update_note(int(now), usn, tags, flds, card.identity, note.id) > 0:
                changed.append(note.id)
                updated += 1

        deck_id = self.store.resolve_deck(deck_name)
        if deck_id is None:
            raise UnknownDeckError(deck_name)
        kind = self.store.deck_kind(deck_id)
        if kind.filtered:
            raise FilteredDeckError(deck_name)
        logger.debug(
            "Deck '%s' (%d) uses options %s, %s new card order",
            deck_name,
            deck_id,
            kind.config_id,
            kind.new_card_order.name.lower(),
        )
        self.store.set_last_deck(model.id, deck_id)

        if changed:
            self.store.generate_cards(changed)
            if kind.new_card_order == NewCardOrder.RANDOM:
                self.store.resort_new_cards(deck_id)

        logger.info(
            "%s / %s: %d added, %d updated, %d unchanged",
            deck_name,
            model.name,
            added,
            updated,
            skipped,
        )
        return added, updated
