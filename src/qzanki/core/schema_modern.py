"""Collections using the modern schema (version 15 and later).

Note types, fields, templates, decks and deck options have tables of their
own, with their settings in protobuf blobs. Collection-wide settings live in
the ``config`` table as JSON values.
"""

import json
import logging
import time
from typing import Any

from qzanki.core import protobuf
from qzanki.core.store import CollectionStore
from qzanki.models.collection import CardTemplate, DeckKind, NewCardOrder, NoteModel

logger = logging.getLogger(__name__)

# Field numbers in Anki's protobuf messages.
NOTETYPE_KIND = 1  # Notetype.Config.kind
NOTETYPE_KIND_CLOZE = 1
TEMPLATE_QUESTION_FORMAT = 1  # Notetype.Template.Config.q_format
DECK_KIND_NORMAL = 1  # DeckKindContainer.normal
DECK_KIND_FILTERED = 2  # DeckKindContainer.filtered
NORMAL_DECK_CONFIG_ID = 1  # Deck.Normal.config_id
DECK_CONFIG_NEW_CARD_INSERT_ORDER = 20  # DeckConfig.Config.new_card_insert_order


def last_deck_key(model_id: int) -> str:
    return f"_nt_{model_id}_lastDeck"


class ModernCollection(CollectionStore):
    schema_name = "modern"

    def _load_model(self, row) -> NoteModel:
        config = protobuf.decode_message(row["config"])

        cursor = self.conn.execute(
            "SELECT name FROM fields WHERE ntid = ? ORDER BY ord", (row["id"],)
        )
        fields = [field["name"] for field in cursor.fetchall()]

        cursor = self.conn.execute(
            "SELECT ord, name, config FROM templates WHERE ntid = ? ORDER BY ord", (row["id"],)
        )
        templates = []
        for template in cursor.fetchall():
            template_config = protobuf.decode_message(template["config"])
            templates.append(
                CardTemplate(
                    ord=template["ord"],
                    name=template["name"],
                    question_format=protobuf.get_str(template_config, TEMPLATE_QUESTION_FORMAT),
                )
            )

        return NoteModel(
            id=row["id"],
            name=row["name"],
            fields=fields,
            templates=templates,
            is_cloze=protobuf.get_int(config, NOTETYPE_KIND) == NOTETYPE_KIND_CLOZE,
        )

    def resolve_model(self, name: str) -> NoteModel | None:
        # notetypes.name uses the unicase collation, so this ignores case
        row = self.conn.execute(
            "SELECT id, name, config FROM notetypes WHERE name = ? ORDER BY id LIMIT 1", (name,)
        ).fetchone()
        return self._load_model(row) if row else None

    def get_model(self, model_id: int) -> NoteModel | None:
        row = self.conn.execute(
            "SELECT id, name, config FROM notetypes WHERE id = ?", (model_id,)
        ).fetchone()
        return self._load_model(row) if row else None

    def resolve_deck(self, name: str) -> int | None:
        search_name = name.replace("::", "\x1f")
        row = self.conn.execute("SELECT id FROM decks WHERE name = ?", (search_name,)).fetchone()
        return row["id"] if row else None

    def deck_kind(self, deck_id: int) -> DeckKind:
        row = self.conn.execute("SELECT kind FROM decks WHERE id = ?", (deck_id,)).fetchone()
        kind = protobuf.decode_message(row["kind"] if row else None)

        if DECK_KIND_FILTERED in kind:
            return DeckKind(filtered=True)

        normal = protobuf.decode_message(protobuf.get_bytes(kind, DECK_KIND_NORMAL))
        config_id = protobuf.get_int(normal, NORMAL_DECK_CONFIG_ID, default=1)

        row = self.conn.execute(
            "SELECT config FROM deck_config WHERE id = ?", (config_id,)
        ).fetchone()
        options = protobuf.decode_message(row["config"] if row else None)
        order = protobuf.get_int(options, DECK_CONFIG_NEW_CARD_INSERT_ORDER)

        return DeckKind(
            config_id=config_id,
            new_card_order=NewCardOrder.RANDOM if order == NewCardOrder.RANDOM else NewCardOrder.DUE,
        )

    def _get_config(self, key: str, default: Any = None) -> Any:
        row = self.conn.execute("SELECT val FROM config WHERE KEY = ?", (key,)).fetchone()
        return json.loads(row["val"]) if row else default

    def _set_config(self, key: str, value: Any) -> None:
        self.conn.execute(
            "INSERT OR REPLACE INTO config (KEY, usn, mtime_secs, val) VALUES (?, ?, ?, ?)",
            (key, self.usn(), int(time.time()), json.dumps(value).encode("utf-8")),
        )

    def set_last_deck(self, model_id: int, deck_id: int) -> None:
        self._set_config(last_deck_key(model_id), deck_id)

    def last_deck(self, model_id: int) -> int | None:
        deck_id = self._get_config(last_deck_key(model_id))
        return int(deck_id) if deck_id is not None else None

    def next_position(self) -> int:
        return int(self._get_config("nextPos", 1))

    def set_next_position(self, position: int) -> None:
        self._set_config("nextPos", position)
