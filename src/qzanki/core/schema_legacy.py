"""Collections using the legacy schema (version 11).

Note types, decks and deck options are JSON documents stored in the single
row of the ``col`` table, the layout genanki and Anki releases before 2.1.28
write.
"""

import json
import logging
import time
from typing import Any

from qzanki.core.anki_db import unicase_key
from qzanki.core.store import CollectionStore
from qzanki.models.collection import CardTemplate, DeckKind, NewCardOrder, NoteModel

logger = logging.getLogger(__name__)

MODEL_TYPE_CLOZE = 1
# Legacy deck options number their new card orders the other way round.
NEW_CARDS_RANDOM = 0


def model_from_json(model_id: int, model_data: dict[str, Any]) -> NoteModel:
    fields = sorted(model_data["flds"], key=lambda f: f.get("ord", 0))
    templates = sorted(model_data["tmpls"], key=lambda t: t.get("ord", 0))
    return NoteModel(
        id=model_id,
        name=model_data["name"],
        fields=[field["name"] for field in fields],
        templates=[
            CardTemplate(ord=i, name=template["name"], question_format=template.get("qfmt", ""))
            for i, template in enumerate(templates)
        ],
        is_cloze=model_data.get("type") == MODEL_TYPE_CLOZE,
    )


class LegacyCollection(CollectionStore):
    schema_name = "legacy"

    def __init__(self, conn):
        super().__init__(conn)
        self._models: dict[int, NoteModel] | None = None

    def _load_col_json(self, column: str) -> dict[str, Any]:
        row = self.conn.execute(f"SELECT {column} FROM col LIMIT 1").fetchone()
        return json.loads(row[column]) if row and row[column] else {}

    def _write_col_json(self, column: str, value: dict[str, Any]) -> None:
        self.conn.execute(
            f"UPDATE col SET {column} = ?, mod = ?",
            (json.dumps(value), int(time.time() * 1000)),
        )

    def load_models(self) -> dict[int, NoteModel]:
        """Load every note type, keyed by id.

        The parsed note types are kept until this store writes ``col.models``.
        """
        if self._models is None:
            self._models = {
                int(model_id): model_from_json(int(model_id), model_data)
                for model_id, model_data in self._load_col_json("models").items()
            }
        return self._models

    def resolve_model(self, name: str) -> NoteModel | None:
        key = unicase_key(name)
        for model in self.load_models().values():
            if unicase_key(model.name) == key:
                return model
        return None

    def get_model(self, model_id: int) -> NoteModel | None:
        return self.load_models().get(model_id)

    def resolve_deck(self, name: str) -> int | None:
        key = unicase_key(name)
        for deck_id, deck_info in self._load_col_json("decks").items():
            if unicase_key(deck_info["name"]) == key:
                return int(deck_id)
        return None

    def deck_kind(self, deck_id: int) -> DeckKind:
        deck_info = self._load_col_json("decks").get(str(deck_id), {})
        if deck_info.get("dyn"):
            return DeckKind(filtered=True)

        config_id = deck_info.get("conf", 1)
        options = self._load_col_json("dconf").get(str(config_id), {})
        order = options.get("new", {}).get("order")
        return DeckKind(
            config_id=config_id,
            new_card_order=NewCardOrder.RANDOM if order == NEW_CARDS_RANDOM else NewCardOrder.DUE,
        )

    def set_last_deck(self, model_id: int, deck_id: int) -> None:
        models = self._load_col_json("models")
        model_data = models.get(str(model_id))
        if model_data is None:
            return
        model_data["did"] = deck_id
        model_data["mod"] = int(time.time())
        model_data["usn"] = self.usn()
        self._write_col_json("models", models)
        self._models = None

    def last_deck(self, model_id: int) -> int | None:
        model_data = self._load_col_json("models").get(str(model_id), {})
        deck_id = model_data.get("did")
        return int(deck_id) if deck_id is not None else None

    def next_position(self) -> int:
        return int(self._load_col_json("conf").get("nextPos", 1))

    def set_next_position(self, position: int) -> None:
        conf = self._load_col_json("conf")
        conf["nextPos"] = position
        self._write_col_json("conf", conf)
