"""Pydantic models for cards and collection records."""

from qzanki.models.cards import *
from qzanki.models.collection import *

__all__ = [
    "RawBlock",
    "Frontmatter",
    "Card",
    "TypeGroup",
    "Deck",
    "NewCardOrder",
    "CardTemplate",
    "NoteModel",
    "ExistingNote",
    "DeckKind",
    "DeckReport",
]
