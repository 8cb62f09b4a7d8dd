"""Run the project's pre-parse hook.

The hook receives the absolute path of every card file on stdin, one per
line, and writes card source text to stdout. Its output is parsed as a single
anonymous stream, so every card it emits needs an explicit ``id``.
"""

import logging
import subprocess
import threading
from collections.abc import Iterable
from pathlib import Path
from typing import IO

from qzanki.core.errors import HookError, ParseErrors
from qzanki.core.grouping import group_cards
from qzanki.core.parsing import ParsedCard, duplicate_identities, parse_stream
from qzanki.models.cards import Deck

logger = logging.getLogger(__name__)

PRE_PARSE_HOOK = "pre-parse"


def find_pre_parse_hook(hooks_dir: Path) -> Path | None:
    hook = hooks_dir / PRE_PARSE_HOOK
    return hook if hook.is_file() else None


def _write_paths(stdin: IO[bytes], paths: list[Path]) -> None:
    try:
        for path in paths:
            stdin.write(f"{path.resolve()}\n".encode("utf-8"))
            stdin.flush()
    except BrokenPipeError:
        logger.debug("Hook closed its input before reading every path")
    finally:
        try:
            stdin.close()
        except BrokenPipeError:
            pass


def run_pre_parse_hook(
    hook: Path,
    paths: Iterable[Path],
    cwd: Path | None = None,
    case_insensitive: bool = False,
) -> list[Deck]:
    """Pipe card file paths through the hook and parse what it prints.

    Args:
        hook: Executable to run
        paths: Card files, in processing order
        cwd: Directory to run the hook in
        case_insensitive: Compare card ids ignoring case when checking for repeats

    Raises:
        ParseErrors: if the hook fails or its output does not parse
    """
    paths = list(paths)
    logger.info("Running pre-parse hook %s on %d files", hook, len(paths))
    try:
        proc = subprocess.Popen(
            [str(hook.resolve())], stdin=subprocess.PIPE, stdout=subprocess.PIPE, cwd=cwd
        )
    except OSError as e:
        raise ParseErrors([HookError(str(hook), f"could not start hook ({e.strerror or e})")]) from e

    writer = threading.Thread(target=_write_paths, args=(proc.stdin, paths), daemon=True)
    writer.start()

    cards: list[ParsedCard] = []
    errors = []
    try:
        cards = parse_stream(proc.stdout)
        errors.extend(duplicate_identities(cards, None, {}, case_insensitive))
    except ParseErrors as e:
        errors.extend(e.errors)
    finally:
        # drain whatever is left so the hook never blocks on a full pipe
        for _ in proc.stdout:
            pass
        proc.stdout.close()
        returncode = proc.wait()
        writer.join()

    logger.info("Pre-parse hook exited with status %d", returncode)
    if returncode != 0:
        errors.append(HookError(str(hook), f"hook exited with status {returncode}"))
    if errors:
        raise ParseErrors(errors)

    return group_cards(cards)
