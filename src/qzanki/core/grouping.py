"""Group parsed cards into decks and note types."""

from collections.abc import Iterable

from tidylinq import from_iterable

from qzanki.models.cards import Card, Deck, TypeGroup


def group_cards(cards: Iterable[tuple[str, Card]]) -> list[Deck]:
    """Partition ``(deck_name, card)`` pairs by deck, then by model.

    Decks and models keep the order they were first seen in; cards keep
    their order within a group.
    """
    return (
        from_iterable(cards)
        .group_by(lambda pair: pair[0])
        .select(
            lambda deck: Deck(
                name=deck.key,
                groups=from_iterable(card for _, card in deck)
                .group_by(lambda card: card.model)
                .select(lambda group: TypeGroup(model=group.key, cards=list(group)))
                .to_list(),
            )
        )
        .to_list()
    )
