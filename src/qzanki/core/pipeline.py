"""Save the card files of a project to its collection."""

import logging
from pathlib import Path

from qzanki.core.collection import open_collection
from qzanki.core.config import CONFIG_DIR_NAME, ProjectConfig, load_config
from qzanki.core.hooks import find_pre_parse_hook, run_pre_parse_hook
from qzanki.core.parsing import parse_files
from qzanki.core.transaction import save_decks
from qzanki.models.cards import Deck
from qzanki.models.collection import DeckReport

logger = logging.getLogger(__name__)

CARD_EXTENSION = "qz"


def find_card_files(root: Path, extension: str = CARD_EXTENSION) -> list[Path]:
    """Find card files below ``root``, skipping the project's config directory."""
    return sorted(
        path
        for path in root.rglob(f"*.{extension}")
        if path.is_file() and CONFIG_DIR_NAME not in path.relative_to(root).parts
    )


def load_decks(
    config: ProjectConfig, paths: list[Path], case_insensitive: bool = False
) -> list[Deck]:
    """Parse card files, through the pre-parse hook when the project has one."""
    hook = find_pre_parse_hook(config.hooks_dir)
    if hook is not None:
        return run_pre_parse_hook(hook, paths, cwd=config.root, case_insensitive=case_insensitive)
    return parse_files(paths, config.root, case_insensitive)


def save_project(config: ProjectConfig, case_insensitive: bool | None = None) -> list[DeckReport]:
    """Parse every card file of a project and save it to the collection.

    Args:
        config: Project settings
        case_insensitive: Overrides the project's ``ignore_case`` setting

    Raises:
        ParseErrors: if any card file does not parse or a card id is used twice;
            the collection is not opened
        TransactionError: if any deck failed; nothing was written
    """
    if case_insensitive is None:
        case_insensitive = config.ignore_case

    paths = find_card_files(config.root)
    logger.info("Found %d card files in %s", len(paths), config.root)
    decks = load_decks(config, paths, case_insensitive)

    with open_collection(config.collection_path) as store:
        return save_decks(store, decks, case_insensitive=case_insensitive)


def run(source_dir: Path, collection_path: Path | None = None) -> list[DeckReport]:
    """Save the project containing ``source_dir``."""
    return save_project(load_config(source_dir, collection_path))
