"""Temp-then-rename helpers so partial output is never visible."""

from __future__ import annotations

import errno
import logging
import os
import secrets
import shutil
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)

_NAME_ATTEMPTS = 100


def discard(path: Path) -> None:
    """Remove a temporary file or tree, ignoring a path that is already gone."""
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Could not remove temporary {path}: {e}")


def _create_temporary(parent: Path, prefix: str, suffix: str, directory: bool) -> Path:
    """
    Create a uniquely named sibling with the default creation mode.

    The kernel applies the process umask to 0o666/0o777, so the committed
    output gets the same mode a plain open() or mkdir() would give it.
    """
    for _ in range(_NAME_ATTEMPTS):
        candidate = parent / f"{prefix}{secrets.token_hex(6)}{suffix}"
        try:
            if directory:
                os.mkdir(candidate, 0o777)
            else:
                os.close(os.open(candidate, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o666))
        except FileExistsError:
            continue
        return candidate
    raise FileExistsError(errno.EEXIST, "No unused temporary name", str(parent))


@contextmanager
def staged_output(final_path: Path, directory: bool = False, suffix: str = ".part") -> Iterator[Path]:
    """
    Yield a hidden temporary sibling of ``final_path`` and commit it on exit.

    The temporary is renamed onto ``final_path`` only if the block finishes
    without raising. Any exception, cancellation included, removes it.

    Args:
        final_path: Where the output becomes visible
        directory: Stage a directory instead of a file
        suffix: Suffix of the temporary name

    Yields:
        Path of the temporary file or directory
    """
    temp_path = _create_temporary(final_path.parent, f".{final_path.name}.", suffix, directory)

    try:
        yield temp_path
    except BaseException:
        discard(temp_path)
        raise

    try:
        os.replace(temp_path, final_path)
    except BaseException:
        discard(temp_path)
        raise
    logger.debug(f"Committed {temp_path.name} -> {final_path}")
