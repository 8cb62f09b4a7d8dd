"""Parse card source files into cards.

A source holds one or more cards separated by a line reading ``###``. Each
card is a YAML frontmatter segment followed by field bodies, every segment
opened by a line reading ``---``::

    ---
    deck: example
    type: basic
    ---
    Question
    ---
    Answer
"""

import html
import logging
from collections.abc import Callable, Iterable, Iterator
from functools import partial
from pathlib import Path

import yaml
from pydantic import ValidationError

from qzanki.core.anki_db import unicase_key
from qzanki.core.errors import (
    BadFrontmatterError,
    DuplicateIdentityError,
    EmptyBlockError,
    MissingIdentifierError,
    ParseError,
    ParseErrors,
    UnreadableSourceError,
)
from qzanki.core.grouping import group_cards
from qzanki.models.cards import Card, Deck, Frontmatter, RawBlock

logger = logging.getLogger(__name__)

SEGMENT_DELIMITER = "---"
CARD_SEPARATOR = "###"

ParsedCard = tuple[str, Card]


def split_blocks(lines: Iterable[str]) -> list[RawBlock]:
    """Split lines into raw card blocks.

    Lines before the first ``---`` of a block open its frontmatter, except
    blank ones which are skipped.
    """
    blocks: list[RawBlock] = [[]]
    for line in lines:
        text = line.rstrip("\r\n")
        marker = text.strip()
        block = blocks[-1]
        if marker == SEGMENT_DELIMITER:
            block.append("")
        elif marker == CARD_SEPARATOR:
            blocks.append([])
        elif block:
            block[-1] += text + "\n"
        elif marker:
            block.append(text + "\n")
    return blocks


def plaintext(text: str) -> str:
    """Convert plain text to the HTML Anki stores."""
    return html.escape(text.strip(), quote=False).replace("\n", "<br/>")


def parse_frontmatter(text: str, source: str | None = None, position: int = 1) -> Frontmatter:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise BadFrontmatterError(source, position, [str(e).replace("\n", " ")]) from e

    if not isinstance(data, dict):
        raise BadFrontmatterError(source, position, ["expected a mapping of keys to values"])

    try:
        return Frontmatter.model_validate(data)
    except ValidationError as e:
        problems = [
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in e.errors()
        ]
        raise BadFrontmatterError(source, position, problems) from e


def build_card(block: RawBlock, source: str | None, position: int) -> ParsedCard:
    """Turn a raw block into ``(deck_name, card)``.

    Args:
        block: Frontmatter segment followed by field bodies
        source: Name of the stream the block came from, None for anonymous streams
        position: 1-based position of the block within its stream

    Returns:
        The target deck name and the card
    """
    if not block:
        raise EmptyBlockError(source, position)

    frontmatter = parse_frontmatter(block[0], source, position)

    identity = frontmatter.id
    if identity is None:
        if source is None:
            raise MissingIdentifierError(source, position)
        identity = f"{source}#{position}"

    if frontmatter.html:
        bodies = [plaintext(part) for part in block[1:]]
    else:
        bodies = [part.strip() for part in block[1:]]

    card = Card(model=frontmatter.type, fields=[identity, *bodies], tags=frontmatter.tags)
    return frontmatter.deck, card


def _decoded(lines: Iterable[str | bytes]) -> Iterator[str]:
    for line in lines:
        yield line.decode("utf-8") if isinstance(line, bytes) else line


def parse_stream(lines: Iterable[str | bytes], source: str | None = None) -> list[ParsedCard]:
    """Parse every card of one stream.

    Raises:
        ParseErrors: with one entry per bad block of the stream
    """
    try:
        blocks = split_blocks(_decoded(lines))
    except UnicodeDecodeError as e:
        raise ParseErrors([UnreadableSourceError(source, f"not valid UTF-8 ({e.reason})")]) from e

    cards = []
    errors: list[ParseError] = []
    for position, block in enumerate(blocks, start=1):
        try:
            cards.append(build_card(block, source, position))
        except ParseError as e:
            errors.append(e)

    if errors:
        raise ParseErrors(errors)

    logger.debug("Parsed %d cards from %s", len(cards), source or "<stdin>")
    return cards


def parse_file(path: Path, source: str | None = None) -> list[ParsedCard]:
    """Parse a card source file."""
    source = source or path.as_posix()
    try:
        with open(path, "rb") as f:
            return parse_stream(f, source)
    except OSError as e:
        raise ParseErrors([UnreadableSourceError(source, f"could not open ({e.strerror or e})")]) from e


def source_name(path: Path, root: Path | None = None) -> str:
    """Name a file by its path relative to the project root."""
    if root is not None:
        try:
            return path.resolve().relative_to(root.resolve()).as_posix()
        except ValueError:
            pass
    return path.as_posix()


def duplicate_identities(
    cards: Iterable[ParsedCard],
    source: str | None,
    seen: dict[str, str],
    case_insensitive: bool = False,
) -> list[ParseError]:
    """Report cards whose id is already used earlier in the run.

    Args:
        cards: Cards of one stream
        source: Name of that stream
        seen: Source of every id so far, updated in place
        case_insensitive: Treat ids differing only in case or accents as equal
    """
    errors: list[ParseError] = []
    for _, card in cards:
        key = unicase_key(card.identity) if case_insensitive else card.identity
        if key in seen:
            errors.append(DuplicateIdentityError(source, card.identity, seen[key]))
        else:
            seen[key] = source or "<stdin>"
    return errors


def _collect(
    batches: Iterable[tuple[str | None, Callable[[], list[ParsedCard]]]],
    case_insensitive: bool = False,
) -> list[Deck]:
    cards: list[ParsedCard] = []
    errors: list[ParseError] = []
    seen: dict[str, str] = {}
    for source, batch in batches:
        try:
            parsed = batch()
        except ParseErrors as e:
            errors.extend(e.errors)
            continue
        errors.extend(duplicate_identities(parsed, source, seen, case_insensitive))
        cards.extend(parsed)

    if errors:
        raise ParseErrors(errors)

    return group_cards(cards)


def parse_sources(
    sources: Iterable[tuple[str | None, Iterable[str | bytes]]], case_insensitive: bool = False
) -> list[Deck]:
    """Parse named streams into decks, reporting the errors of all streams together."""
    return _collect(
        ((source, partial(parse_stream, lines, source)) for source, lines in sources),
        case_insensitive,
    )


def parse_files(
    paths: Iterable[Path], root: Path | None = None, case_insensitive: bool = False
) -> list[Deck]:
    """Parse card source files into decks, reporting the errors of all files together.

    Every card id may be used once per run.

    Args:
        paths: Files to read, in processing order
        root: Directory the derived card ids are relative to
        case_insensitive: Compare ids ignoring case, as identity matching will
    """
    batches = []
    for path in paths:
        source = source_name(path, root)
        batches.append((source, partial(parse_file, path, source)))
    return _collect(batches, case_insensitive)
