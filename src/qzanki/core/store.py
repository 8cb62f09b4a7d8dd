"""Reading and writing notes and cards of an Anki collection.

``CollectionStore`` holds the queries shared by every collection schema.
Where note types, decks and settings live depends on the schema version, so
those lookups are left to ``LegacyCollection`` and ``ModernCollection``.
"""

import hashlib
import logging
import random
import re
import sqlite3
import time
from abc import ABC, abstractmethod

from qzanki.core.cardgen import missing_ordinals
from qzanki.core.errors import CardGenerationError
from qzanki.models.collection import DeckKind, ExistingNote, NoteModel

logger = logging.getLogger(__name__)

FIELD_SEPARATOR = "\x1f"
SAVEPOINT = "qzanki"

# First field of a note: everything up to the first separator.
_FIRST_FIELD_SQL = (
    "CASE WHEN INSTR(flds, char(31)) > 0 "
    "THEN SUBSTR(flds, 1, INSTR(flds, char(31)) - 1) ELSE flds END"
)


def strip_html(text: str) -> str:
    return re.sub(r"<[^>]+>", "", text)


def field_checksum(text: str) -> int:
    """Checksum Anki keeps of a note's sort field for duplicate checks."""
    return int(hashlib.sha1(strip_html(text).encode("utf-8")).hexdigest()[:8], 16)


def next_id_base(max_id: int, now_ms: int) -> int:
    """First id to hand out: the current time, unless ids already run ahead of it."""
    return max_id + 1 if max_id >= now_ms else now_ms


class CollectionStore(ABC):
    """An open Anki collection."""

    schema_name = "unknown"

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    # Transactions

    def begin_savepoint(self) -> None:
        self.conn.execute(f"SAVEPOINT {SAVEPOINT}")

    def commit(self) -> None:
        self.conn.execute(f"RELEASE {SAVEPOINT}")

    def rollback(self) -> None:
        self.conn.execute(f"ROLLBACK TO {SAVEPOINT}")
        self.conn.execute(f"RELEASE {SAVEPOINT}")

    # Collection counters

    def usn(self) -> int:
        row = self.conn.execute("SELECT usn FROM col").fetchone()
        if row is None:
            raise sqlite3.DatabaseError("col table is empty")
        return row["usn"]

    def max_note_id(self) -> int:
        return self.conn.execute("SELECT ifnull(max(id), 0) FROM notes").fetchone()[0]

    def max_card_id(self) -> int:
        return self.conn.execute("SELECT ifnull(max(id), 0) FROM cards").fetchone()[0]

    # Notes

    def find_by_identity(self, key: str, case_insensitive: bool = False) -> ExistingNote | None:
        """Find the note whose first field is ``key``.

        Matching is exact unless ``case_insensitive`` is set, in which case the
        unicase collation is used. Only the oldest match is returned.
        """
        collate = " COLLATE unicase" if case_insensitive else ""
        row = self.conn.execute(
            f"""
            SELECT id, flds, tags
            FROM notes
            WHERE {_FIRST_FIELD_SQL} = ?{collate}
            ORDER BY id
            LIMIT 1
            """,
            (key,),
        ).fetchone()
        if row is None:
            return None
        return ExistingNote(id=row["id"], flds=row["flds"], tags=row["tags"])

    def insert_note(
        self,
        note_id: int,
        guid: str,
        model_id: int,
        mod: int,
        usn: int,
        tags: str,
        flds: str,
        identity: str,
    ) -> int:
        """Insert a note, returning the number of rows written (0 if the id is taken)."""
        cursor = self.conn.execute(
            """
            INSERT OR IGNORE INTO notes (id, guid, mid, mod, usn, tags, flds, sfld, csum, flags, data)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 0, '')
            """,
            (note_id, guid, model_id, mod, usn, tags, flds, identity, field_checksum(identity)),
        )
        return cursor.rowcount

    def update_note(
        self, mod: int, usn: int, tags: str, flds: str, identity: str, note_id: int
    ) -> int:
        cursor = self.conn.execute(
            """
            UPDATE notes
            SET mod = ?, usn = ?, tags = ?, flds = ?, sfld = ?, csum = ?
            WHERE id = ?
            """,
            (mod, usn, tags, flds, identity, field_checksum(identity), note_id),
        )
        return cursor.rowcount

    # Cards

    def card_ordinals(self, note_id: int) -> set[int]:
        cursor = self.conn.execute("SELECT ord FROM cards WHERE nid = ?", (note_id,))
        return {row["ord"] for row in cursor.fetchall()}

    def generate_cards(self, note_ids: list[int]) -> int:
        """Create the cards changed notes are missing.

        New cards go to the deck last used with the note's type and are queued
        after every existing new card.

        Returns:
            Number of cards created
        """
        if not note_ids:
            return 0

        now = time.time()
        usn = self.usn()
        next_card_id = next_id_base(self.max_card_id(), int(now * 1000))
        position = self.next_position()
        created = 0

        for note_id in note_ids:
            row = self.conn.execute("SELECT mid, flds FROM notes WHERE id = ?", (note_id,)).fetchone()
            if row is None:
                raise CardGenerationError(f"Note {note_id} does not exist")

            model = self.get_model(row["mid"])
            if model is None:
                raise CardGenerationError(f"Note {note_id} uses missing note type {row['mid']}")

            deck_id = self.last_deck(model.id)
            if deck_id is None:
                raise CardGenerationError(f"No deck recorded for note type '{model.name}'")

            ordinals = missing_ordinals(
                model, row["flds"].split(FIELD_SEPARATOR), self.card_ordinals(note_id)
            )
            if not ordinals:
                continue

            for ordinal in ordinals:
                self.conn.execute(
                    """
                    INSERT INTO cards (id, nid, did, ord, mod, usn, type, queue, due, ivl,
                                       factor, reps, lapses, left, odue, odid, flags, data)
                    VALUES (?, ?, ?, ?, ?, ?, 0, 0, ?, 0, 0, 0, 0, 0, 0, 0, 0, '')
                    """,
                    (next_card_id, note_id, deck_id, ordinal, int(now), usn, position),
                )
                next_card_id += 1
                created += 1
            position += 1

        self.set_next_position(position)
        logger.info("Generated %d cards for %d changed notes", created, len(note_ids))
        return created

    def resort_new_cards(self, deck_id: int) -> None:
        """Shuffle the new cards of a deck, keeping cards of one note together."""
        rows = self.conn.execute(
            "SELECT id, nid FROM cards WHERE did = ? AND type = 0 ORDER BY due, ord",
            (deck_id,),
        ).fetchall()

        note_ids = list(dict.fromkeys(row["nid"] for row in rows))
        random.shuffle(note_ids)
        positions = {note_id: i for i, note_id in enumerate(note_ids, start=1)}

        mod = int(time.time())
        usn = self.usn()
        for row in rows:
            self.conn.execute(
                "UPDATE cards SET due = ?, mod = ?, usn = ? WHERE id = ?",
                (positions[row["nid"]], mod, usn, row["id"]),
            )

        self.set_next_position(max(self.next_position(), len(note_ids) + 1))
        logger.debug("Shuffled %d new cards in deck %d", len(rows), deck_id)

    # Schema-specific lookups

    @abstractmethod
    def resolve_model(self, name: str) -> NoteModel | None:
        """Find a note type by name."""

    @abstractmethod
    def get_model(self, model_id: int) -> NoteModel | None:
        """Find a note type by id."""

    @abstractmethod
    def resolve_deck(self, name: str) -> int | None:
        """Find a deck id by its full name, using ``::`` between levels."""

    @abstractmethod
    def deck_kind(self, deck_id: int) -> DeckKind:
        """Whether a deck is filtered and where it inserts new cards."""

    @abstractmethod
    def set_last_deck(self, model_id: int, deck_id: int) -> None:
        """Record the deck a note type last added notes to."""

    @abstractmethod
    def last_deck(self, model_id: int) -> int | None:
        """The deck a note type last added notes to."""

    @abstractmethod
    def next_position(self) -> int:
        """Due position for the next new card."""

    @abstractmethod
    def set_next_position(self, position: int) -> None:
        pass
