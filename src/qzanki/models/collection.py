"""Pydantic models for records read from an Anki collection."""

from enum import IntEnum

from pydantic import BaseModel, Field


class NewCardOrder(IntEnum):
    """Where new cards of a deck are inserted."""

    DUE = 0
    RANDOM = 1


class CardTemplate(BaseModel):
    """One card template of a note type."""

    ord: int
    name: str
    question_format: str = ""


class NoteModel(BaseModel):
    """Represents an Anki note type."""

    id: int
    name: str
    fields: list[str]  # field names, in ordinal order
    templates: list[CardTemplate] = Field(default_factory=list)
    is_cloze: bool = False

    @property
    def field_count(self) -> int:
        return len(self.fields)


class ExistingNote(BaseModel):
    """A note already stored in the collection, as raw column values."""

    id: int
    flds: str
    tags: str


class DeckKind(BaseModel):
    """How a deck is configured."""

    filtered: bool = False
    config_id: int | None = None
    new_card_order: NewCardOrder = NewCardOrder.DUE


class DeckReport(BaseModel):
    """Outcome of reconciling one deck."""

    name: str
    added: int = 0
    updated: int = 0
    errors: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def changed(self) -> bool:
        return bool(self.added or self.updated)
