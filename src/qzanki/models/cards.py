"""Pydantic models for parsed card sources."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# One card as read from a source: frontmatter first, then field bodies.
RawBlock = list[str]


def _scalar_to_str(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, int | float):
        return str(value)
    return value


class Frontmatter(BaseModel):
    """The YAML header of a card block."""

    model_config = ConfigDict(extra="ignore")

    deck: str
    type: str
    id: str | None = None
    tags: str | None = None
    html: bool = False

    @field_validator("deck", "type", "id", mode="before")
    @classmethod
    def _coerce_scalars(cls, value: Any) -> Any:
        return _scalar_to_str(value)

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, value: Any) -> Any:
        if isinstance(value, list):
            return " ".join(str(tag) for tag in value)
        return _scalar_to_str(value)


class Card(BaseModel):
    """A card ready for reconciliation.

    ``fields[0]`` is the identity used to find the matching note.
    """

    model: str
    fields: list[str] = Field(min_length=1)
    tags: str | None = None

    @property
    def identity(self) -> str:
        return self.fields[0]


class TypeGroup(BaseModel):
    """Cards of one deck sharing a model, in encounter order."""

    model: str
    cards: list[Card]


class Deck(BaseModel):
    """Cards destined for one deck, grouped by model."""

    name: str
    groups: list[TypeGroup]

    @property
    def card_count(self) -> int:
        return sum(len(group.cards) for group in self.groups)
