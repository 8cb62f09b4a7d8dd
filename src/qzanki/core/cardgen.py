"""Decide which cards a note needs from its note type's templates."""

import re

from qzanki.models.collection import NoteModel

# Replacements that render something other than a note field.
SPECIAL_FIELDS = {"FrontSide", "Tags", "Type", "Deck", "Subdeck", "Card", "CardFlag", "CardID"}

_TAG_RE = re.compile(r"\{\{(.*?)\}\}", re.DOTALL)
_CLOZE_RE = re.compile(r"\{\{c(\d+)::", re.DOTALL)
_HTML_RE = re.compile(r"<[^>]+>")


def _replacements(question_format: str) -> list[list[str]]:
    """Filter chains of the field replacements in a template, e.g. ``["text", "Front"]``."""
    chains = []
    for tag in _TAG_RE.findall(question_format):
        tag = tag.strip()
        # sections and comments render no field content themselves
        if not tag or tag[0] in "#^/!":
            continue
        chains.append([part.strip() for part in tag.split(":")])
    return chains


def referenced_fields(question_format: str) -> list[str]:
    """Note fields whose content a template renders."""
    return [chain[-1] for chain in _replacements(question_format) if chain[-1] not in SPECIAL_FIELDS]


def cloze_fields(question_format: str) -> list[str]:
    return [chain[-1] for chain in _replacements(question_format) if "cloze" in chain[:-1]]


def has_content(value: str) -> bool:
    return bool(_HTML_RE.sub("", value).replace("&nbsp;", " ").strip())


def card_ordinals(model: NoteModel, fields: list[str]) -> set[int]:
    """Template ordinals that would produce a non-empty card for these fields.

    Fields beyond the note type's declared count are ignored.
    """
    values = dict(zip(model.fields, fields, strict=False))

    if model.is_cloze:
        names = set()
        for template in model.templates[:1]:
            names.update(cloze_fields(template.question_format))
        return {
            int(number) - 1
            for name in names
            for number in _CLOZE_RE.findall(values.get(name, ""))
            if int(number) > 0
        }

    return {
        template.ord
        for template in model.templates
        if any(has_content(values.get(name, "")) for name in referenced_fields(template.question_format))
    }


def missing_ordinals(model: NoteModel, fields: list[str], existing: set[int]) -> list[int]:
    """Ordinals of the cards a note still needs.

    A note without any card gets ordinal 0 even when every template is empty.
    """
    ordinals = card_ordinals(model, fields)
    if not ordinals and not existing:
        ordinals = {0}
    return sorted(ordinals - existing)
