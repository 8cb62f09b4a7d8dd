"""Locate a qzanki project and the collection it saves to."""

import logging
import os
import shutil
import tomllib
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from qzanki.core.anki_db import COLLECTION_FILENAME, get_anki_dir
from qzanki.core.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".qzanki"
CONFIG_FILENAME = "config"
HOOKS_DIR_NAME = "hooks"
ANKI_DIR_ENV = "ANKI_DIR"

DEFAULT_CONFIG = """\
# Anki profile directory holding collection.anki2
# anki_dir = "~/.local/share/Anki2/User 1"

# Match card ids against existing notes ignoring case
# ignore_case = false
"""


class ConfigFile(BaseModel):
    """Settings read from ``.qzanki/config``."""

    model_config = ConfigDict(extra="forbid")

    anki_dir: Path | None = None
    ignore_case: bool = False

    @field_validator("anki_dir")
    @classmethod
    def _expand_user(cls, value: Path | None) -> Path | None:
        return value.expanduser() if value is not None else None


class ProjectConfig(BaseModel):
    """Resolved settings of a project."""

    config_dir: Path
    collection_path: Path
    ignore_case: bool = False

    @property
    def root(self) -> Path:
        return self.config_dir.parent

    @property
    def hooks_dir(self) -> Path:
        return self.config_dir / HOOKS_DIR_NAME


def find_config_dir(start: Path | None = None) -> Path | None:
    """Walk up from ``start`` to the nearest directory holding ``.qzanki``."""
    path = (start or Path.cwd()).resolve()
    for directory in [path, *path.parents]:
        candidate = directory / CONFIG_DIR_NAME
        if candidate.is_dir():
            return candidate
    return None


def read_config_file(config_dir: Path) -> ConfigFile:
    path = config_dir / CONFIG_FILENAME
    if not path.exists():
        return ConfigFile()
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
        return ConfigFile.model_validate(data)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"{path}: {e}") from e
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in e.errors()
        )
        raise ConfigError(f"{path}: {problems}") from e


def resolve_collection(config_file: ConfigFile, collection: Path | None = None) -> Path:
    """Pick the collection to save to.

    An explicit path wins, then ``anki_dir`` from the config file, then
    ``$ANKI_DIR``, then the first Anki profile holding a collection.
    """
    if collection is not None:
        return Path(collection).expanduser()

    anki_dir = config_file.anki_dir
    if anki_dir is None and os.environ.get(ANKI_DIR_ENV):
        anki_dir = Path(os.environ[ANKI_DIR_ENV]).expanduser()
    if anki_dir is None:
        anki_dir = get_anki_dir()
    if anki_dir is None:
        raise ConfigError(f"Set anki_dir in {CONFIG_DIR_NAME}/{CONFIG_FILENAME} or set ${ANKI_DIR_ENV}")

    return anki_dir / COLLECTION_FILENAME


def load_config(start: Path | None = None, collection: Path | None = None) -> ProjectConfig:
    """Load the settings of the project containing ``start``.

    Args:
        start: Directory to search from, the working directory by default
        collection: Collection file overriding every configured location

    Raises:
        ConfigError: if there is no project or no collection
    """
    config_dir = find_config_dir(start)
    if config_dir is None:
        raise ConfigError(f"Not a qzanki project (no {CONFIG_DIR_NAME} directory found). Run 'qzanki init' first.")

    config_file = read_config_file(config_dir)
    collection_path = resolve_collection(config_file, collection)
    if not collection_path.is_file():
        raise ConfigError(f"Anki collection not found: {collection_path}")

    logger.debug("Project %s saves to %s", config_dir.parent, collection_path)
    return ProjectConfig(
        config_dir=config_dir,
        collection_path=collection_path,
        ignore_case=config_file.ignore_case,
    )


def init_project(root: Path | None = None) -> Path:
    """Create the ``.qzanki`` directory of a new project.

    Returns:
        The created directory

    Raises:
        ConfigError: if the project already exists or could not be created
    """
    config_dir = (root or Path.cwd()) / CONFIG_DIR_NAME
    if config_dir.exists():
        raise ConfigError(f"{config_dir} already exists")

    try:
        (config_dir / HOOKS_DIR_NAME).mkdir(parents=True)
        (config_dir / CONFIG_FILENAME).write_text(DEFAULT_CONFIG, encoding="utf-8")
    except OSError as e:
        shutil.rmtree(config_dir, ignore_errors=True)
        raise ConfigError(f"Error creating {config_dir}: {e}") from e

    logger.info("Initialized %s", config_dir)
    return config_dir
