"""Test deciding which cards a note needs."""

from qzanki.core.cardgen import card_ordinals, cloze_fields, missing_ordinals, referenced_fields
from qzanki.core.protobuf import decode_message, get_int, get_str
from qzanki.models.collection import CardTemplate, NoteModel

from conftest import pb_bytes, pb_int

BASIC = NoteModel(
    id=1,
    name="basic",
    fields=["Id", "Front", "Back"],
    templates=[
        CardTemplate(ord=0, name="Card 1", question_format="{{Front}}"),
        CardTemplate(ord=1, name="Card 2", question_format="{{#Back}}{{text:Back}}{{/Back}}"),
    ],
)

CLOZE = NoteModel(
    id=2,
    name="cloze",
    fields=["Id", "Text", "Back Extra"],
    templates=[CardTemplate(ord=0, name="Cloze", question_format="{{cloze:Text}}")],
    is_cloze=True,
)


def test_referenced_fields():
    """Test that filters are stripped and special fields ignored."""
    question = "{{FrontSide}} {{text:Front}} {{#Back}}x{{/Back}} {{! note }} {{Tags}}"
    assert referenced_fields(question) == ["Front"]


def test_cloze_fields():
    assert cloze_fields("{{cloze:Text}}<br>{{Extra}}") == ["Text"]


def test_front_back_ordinals():
    assert card_ordinals(BASIC, ["id", "front", "back"]) == {0, 1}
    assert card_ordinals(BASIC, ["id", "front", ""]) == {0}
    assert card_ordinals(BASIC, ["id", "<br>", "&nbsp;"]) == set()


def test_cloze_ordinals():
    """One card per cloze number, numbered from zero."""
    fields = ["id", "{{c1::Paris}} is in {{c3::France}}, {{c1::again}}", "{{c5::ignored}}"]
    assert card_ordinals(CLOZE, fields) == {0, 2}


def test_missing_ordinals():
    """Existing cards are never generated again."""
    assert missing_ordinals(BASIC, ["id", "front", "back"], {0}) == [1]
    assert missing_ordinals(BASIC, ["id", "front", "back"], {0, 1}) == []


def test_note_without_cards_gets_first_ordinal():
    assert missing_ordinals(BASIC, ["id", "", ""], set()) == [0]
    assert missing_ordinals(CLOZE, ["id", "no clozes", ""], set()) == [0]


def test_decode_message():
    """Test reading scalar and nested protobuf fields."""
    data = pb_int(1, 300) + pb_bytes(2, "hello") + pb_bytes(3, pb_int(1, 7))
    fields = decode_message(data)

    assert get_int(fields, 1) == 300
    assert get_str(fields, 2) == "hello"
    assert get_int(decode_message(fields[3][0]), 1) == 7
    assert get_int(fields, 9, default=5) == 5
    assert decode_message(None) == {}
