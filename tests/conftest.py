"""Shared fixtures: baseline Anki collections in both schemas.

Each baseline is built once per test session and removed at teardown. Tests
get their own copy of it.
"""

import itertools
import json
import shutil
import sqlite3
from pathlib import Path

import genanki
import pytest

from qzanki.core.anki_db import COLLECTION_FILENAME, setup_anki_connection

TESTDATA = Path(__file__).parent / "testdata"

BASIC_MODEL_ID = 1607392319
REVERSED_MODEL_ID = 1607392320
CLOZE_MODEL_ID = 1607392321

DEFAULT_DECK_ID = 1
EXAMPLE_DECK_ID = 2
SHUFFLED_DECK_ID = 3
FILTERED_DECK_ID = 4
NESTED_DECK_ID = 5


# Protobuf encoding for the blobs of the modern schema


def _varint(value: int) -> bytes:
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def pb_int(number: int, value: int) -> bytes:
    return _varint(number << 3) + _varint(value)


def pb_bytes(number: int, value: bytes | str) -> bytes:
    if isinstance(value, str):
        value = value.encode("utf-8")
    return _varint((number << 3) | 2) + _varint(len(value)) + value


def normal_deck_kind(config_id: int) -> bytes:
    return pb_bytes(1, pb_int(1, config_id))


def filtered_deck_kind() -> bytes:
    # a filtered deck with a single search term
    return pb_bytes(2, pb_bytes(2, pb_bytes(1, "deck:example")))


MODERN_SCHEMA = """
CREATE TABLE col (
  id integer PRIMARY KEY,
  crt integer NOT NULL,
  mod integer NOT NULL,
  scm integer NOT NULL,
  ver integer NOT NULL,
  dty integer NOT NULL,
  usn integer NOT NULL,
  ls integer NOT NULL,
  conf text NOT NULL,
  models text NOT NULL,
  decks text NOT NULL,
  dconf text NOT NULL,
  tags text NOT NULL
);
CREATE TABLE notes (
  id integer PRIMARY KEY,
  guid text NOT NULL,
  mid integer NOT NULL,
  mod integer NOT NULL,
  usn integer NOT NULL,
  tags text NOT NULL,
  flds text NOT NULL,
  sfld integer NOT NULL,
  csum integer NOT NULL,
  flags integer NOT NULL,
  data text NOT NULL
);
CREATE TABLE cards (
  id integer PRIMARY KEY,
  nid integer NOT NULL,
  did integer NOT NULL,
  ord integer NOT NULL,
  mod integer NOT NULL,
  usn integer NOT NULL,
  type integer NOT NULL,
  queue integer NOT NULL,
  due integer NOT NULL,
  ivl integer NOT NULL,
  factor integer NOT NULL,
  reps integer NOT NULL,
  lapses integer NOT NULL,
  left integer NOT NULL,
  odue integer NOT NULL,
  odid integer NOT NULL,
  flags integer NOT NULL,
  data text NOT NULL
);
CREATE TABLE deck_config (
  id integer PRIMARY KEY NOT NULL,
  name text NOT NULL COLLATE unicase,
  mtime_secs integer NOT NULL,
  usn integer NOT NULL,
  config blob NOT NULL
);
CREATE TABLE config (
  KEY text NOT NULL PRIMARY KEY,
  usn integer NOT NULL,
  mtime_secs integer NOT NULL,
  val blob NOT NULL
) without rowid;
CREATE TABLE fields (
  ntid integer NOT NULL,
  ord integer NOT NULL,
  name text NOT NULL COLLATE unicase,
  config blob NOT NULL,
  PRIMARY KEY (ntid, ord)
) without rowid;
CREATE TABLE templates (
  ntid integer NOT NULL,
  ord integer NOT NULL,
  name text NOT NULL COLLATE unicase,
  mtime_secs integer NOT NULL,
  usn integer NOT NULL,
  config blob NOT NULL,
  PRIMARY KEY (ntid, ord)
) without rowid;
CREATE TABLE notetypes (
  id integer NOT NULL PRIMARY KEY,
  name text NOT NULL COLLATE unicase,
  mtime_secs integer NOT NULL,
  usn integer NOT NULL,
  config blob NOT NULL
);
CREATE TABLE decks (
  id integer PRIMARY KEY NOT NULL,
  name text NOT NULL COLLATE unicase,
  mtime_secs integer NOT NULL,
  usn integer NOT NULL,
  common blob NOT NULL,
  kind blob NOT NULL
);
CREATE INDEX ix_notes_csum ON notes (csum);
CREATE INDEX ix_cards_nid ON cards (nid);
CREATE INDEX ix_cards_sched ON cards (did, queue, due);
"""

MODERN_NOTETYPES = [
    # id, name, kind, fields, question formats
    (BASIC_MODEL_ID, "basic", 0, ["Id", "Front", "Back"], ["{{Front}}"]),
    (REVERSED_MODEL_ID, "Basic (and reversed card)", 0, ["Id", "Front", "Back"], ["{{Front}}", "{{Back}}"]),
    (CLOZE_MODEL_ID, "cloze", 1, ["Id", "Text", "Back Extra"], ["{{cloze:Text}}"]),
]

MODERN_DECKS = [
    (DEFAULT_DECK_ID, "Default", normal_deck_kind(1)),
    (EXAMPLE_DECK_ID, "example", normal_deck_kind(1)),
    (SHUFFLED_DECK_ID, "shuffled", normal_deck_kind(2)),
    (FILTERED_DECK_ID, "Filtered", filtered_deck_kind()),
    (NESTED_DECK_ID, "parent\x1fchild", normal_deck_kind(1)),
]


def build_modern_collection(path: Path) -> None:
    with setup_anki_connection(path) as conn:
        conn.executescript(MODERN_SCHEMA)
        conn.execute(
            "INSERT INTO col VALUES (1, 1411124400, 0, 0, 18, 0, 0, 0, '', '', '', '', '')"
        )

        conn.execute(
            "INSERT INTO deck_config VALUES (1, 'Default', 0, 0, ?)",
            (pb_int(20, 0),),
        )
        conn.execute(
            "INSERT INTO deck_config VALUES (2, 'Shuffled', 0, 0, ?)",
            (pb_int(20, 1),),
        )
        for deck_id, name, kind in MODERN_DECKS:
            conn.execute(
                "INSERT INTO decks VALUES (?, ?, 0, 0, ?, ?)", (deck_id, name, b"", kind)
            )

        for model_id, name, kind, fields, question_formats in MODERN_NOTETYPES:
            config = pb_int(1, kind) if kind else b""
            conn.execute(
                "INSERT INTO notetypes VALUES (?, ?, 0, 0, ?)", (model_id, name, config)
            )
            for ord_, field in enumerate(fields):
                conn.execute("INSERT INTO fields VALUES (?, ?, ?, ?)", (model_id, ord_, field, b""))
            for ord_, qfmt in enumerate(question_formats):
                conn.execute(
                    "INSERT INTO templates VALUES (?, ?, ?, 0, 0, ?)",
                    (model_id, ord_, f"Card {ord_ + 1}", pb_bytes(1, qfmt) + pb_bytes(2, "{{Back}}")),
                )

        conn.execute("INSERT INTO config VALUES ('nextPos', 0, 0, ?)", (b"1",))


def build_legacy_collection(path: Path) -> None:
    fields = [{"name": "Id"}, {"name": "Front"}, {"name": "Back"}]
    basic = genanki.Model(
        BASIC_MODEL_ID,
        "basic",
        fields=fields,
        templates=[{"name": "Card 1", "qfmt": "{{Front}}", "afmt": "{{Back}}"}],
    )
    reversed_basic = genanki.Model(
        REVERSED_MODEL_ID,
        "Basic (and reversed card)",
        fields=[dict(field) for field in fields],
        templates=[
            {"name": "Card 1", "qfmt": "{{Front}}", "afmt": "{{Back}}"},
            {"name": "Card 2", "qfmt": "{{Back}}", "afmt": "{{Front}}"},
        ],
    )

    example = genanki.Deck(EXAMPLE_DECK_ID, "example")
    example.add_model(basic)
    example.add_model(reversed_basic)
    decks = [
        example,
        genanki.Deck(SHUFFLED_DECK_ID, "shuffled"),
        genanki.Deck(FILTERED_DECK_ID, "Filtered"),
        genanki.Deck(NESTED_DECK_ID, "parent::child"),
    ]

    conn = sqlite3.connect(str(path))
    try:
        cursor = conn.cursor()
        genanki.Package(decks).write_to_db(cursor, 1411124400.0, itertools.count(1411124400000))

        # genanki writes only one set of deck options and no filtered decks
        deck_json = json.loads(cursor.execute("SELECT decks FROM col").fetchone()[0])
        dconf = json.loads(cursor.execute("SELECT dconf FROM col").fetchone()[0])
        shuffled = json.loads(json.dumps(dconf["1"]))
        shuffled.update(id=2, name="Shuffled")
        shuffled["new"]["order"] = 0
        dconf["2"] = shuffled
        deck_json[str(SHUFFLED_DECK_ID)]["conf"] = 2
        deck_json[str(FILTERED_DECK_ID)]["dyn"] = 1
        cursor.execute(
            "UPDATE col SET decks = ?, dconf = ?", (json.dumps(deck_json), json.dumps(dconf))
        )
        conn.commit()
    finally:
        conn.close()


@pytest.fixture(scope="session")
def baseline_collections(tmp_path_factory):
    """Build one collection per schema for the whole session."""
    base = tmp_path_factory.mktemp("baseline")
    baselines = {
        "legacy": base / "legacy.anki2",
        "modern": base / "modern.anki2",
    }
    build_legacy_collection(baselines["legacy"])
    build_modern_collection(baselines["modern"])

    yield baselines

    for path in baselines.values():
        path.unlink(missing_ok=True)


def _copy_baseline(baselines, schema, tmp_path) -> Path:
    anki_dir = tmp_path / schema / "anki"
    anki_dir.mkdir(parents=True, exist_ok=True)
    collection = anki_dir / COLLECTION_FILENAME
    shutil.copy(baselines[schema], collection)
    return collection


@pytest.fixture(params=["legacy", "modern"])
def collection_path(request, baseline_collections, tmp_path):
    """A fresh collection of each schema."""
    return _copy_baseline(baseline_collections, request.param, tmp_path)


@pytest.fixture
def modern_collection_path(baseline_collections, tmp_path):
    return _copy_baseline(baseline_collections, "modern", tmp_path)


@pytest.fixture
def legacy_collection_path(baseline_collections, tmp_path):
    return _copy_baseline(baseline_collections, "legacy", tmp_path)


@pytest.fixture
def project(tmp_path, collection_path, monkeypatch):
    """An initialized project saving to a fresh collection, used as the working directory."""
    root = tmp_path / "cards"
    config_dir = root / ".qzanki"
    (config_dir / "hooks").mkdir(parents=True)
    (config_dir / "config").write_text(f'anki_dir = "{collection_path.parent.as_posix()}"\n')
    monkeypatch.chdir(root)
    monkeypatch.delenv("ANKI_DIR", raising=False)
    return root


def fetch_notes(collection: Path) -> list[sqlite3.Row]:
    with setup_anki_connection(collection) as conn:
        return conn.execute("SELECT * FROM notes ORDER BY id").fetchall()


def fetch_cards(collection: Path) -> list[sqlite3.Row]:
    with setup_anki_connection(collection) as conn:
        return conn.execute("SELECT * FROM cards ORDER BY id").fetchall()


@pytest.fixture
def notes():
    """Read back every note of a collection."""
    return fetch_notes


@pytest.fixture
def cards():
    """Read back every card of a collection."""
    return fetch_cards
