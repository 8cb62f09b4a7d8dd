"""Exceptions raised while parsing sources and reconciling them with a collection."""


class QzAnkiError(Exception):
    """Base class for all qzanki errors."""


class ConfigError(QzAnkiError):
    """The project or the collection could not be located or configured."""


class ParseError(QzAnkiError):
    """A problem attributable to one input source."""

    def __init__(self, source: str | None, message: str):
        self.source = source or "<stdin>"
        self.message = message
        super().__init__(f"{self.source}: {message}")


class EmptyBlockError(ParseError):
    def __init__(self, source: str | None, position: int):
        self.position = position
        super().__init__(source, f"card {position} is empty")


class BadFrontmatterError(ParseError):
    def __init__(self, source: str | None, position: int, problems: list[str]):
        self.position = position
        self.problems = problems
        super().__init__(
            source, f"error parsing frontmatter of card {position}: {'; '.join(problems)}"
        )


class MissingIdentifierError(ParseError):
    def __init__(self, source: str | None, position: int):
        self.position = position
        super().__init__(source, f"card {position} needs an id in its frontmatter")


class DuplicateIdentityError(ParseError):
    def __init__(self, source: str | None, identity: str, first_source: str):
        self.identity = identity
        self.first_source = first_source
        super().__init__(source, f"card id '{identity}' is already used in {first_source}")


class UnreadableSourceError(ParseError):
    pass


class HookError(ParseError):
    pass


class ParseErrors(QzAnkiError):
    """Every parse error of a run, collected before reconciliation."""

    def __init__(self, errors: list[ParseError]):
        self.errors = errors
        super().__init__("\n".join(str(e) for e in errors))


class ReconcileError(QzAnkiError):
    """A problem attributable to one (deck, model) group."""


class UnknownModelError(ReconcileError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown model '{name}'")


class UnknownDeckError(ReconcileError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Deck '{name}' does not exist")


class FilteredDeckError(ReconcileError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Deck '{name}' is a filtered deck and cannot hold new notes")


class CardGenerationError(ReconcileError):
    """The collection could not generate cards for changed notes."""


class TransactionError(QzAnkiError):
    """One or more decks failed; nothing was written."""

    def __init__(self, messages: list[str], reports=None):
        self.messages = messages
        self.reports = reports or []
        super().__init__("\n".join(messages))
