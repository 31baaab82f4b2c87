"""Path confinement for every filesystem-touching operation.

All paths handed to the file manager pass through ``PathGuard.resolve`` before
anything reads or writes them. Resolution is strict and fails closed.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Union

from ..exceptions import OutOfBoundsError

PathLike = Union[str, os.PathLike]

_INVALID_LEAVES = ("", ".", "..")


class PathGuard:
    """Canonicalizes paths and confines them to a root directory.

    Example:
        >>> guard = PathGuard(Path("/srv/files"))
        >>> guard.resolve("docs/report.txt")
        PosixPath('/srv/files/docs/report.txt')
        >>> guard.resolve("/srv/files/../../etc/passwd")
        Traceback (most recent call last):
        ...
        fileward.exceptions.OutOfBoundsError: [OUT_OF_BOUNDS] ...
    """

    def __init__(self, root: PathLike) -> None:
        """Initialize the guard.

        Args:
            root: Directory that serves as the confinement root. It must exist.

        Raises:
            ValueError: If the root does not exist or is not a directory
        """
        try:
            self.root = Path(root).resolve(strict=True)
        except (OSError, RuntimeError) as exc:
            raise ValueError(f"Confinement root is not accessible: {root}") from exc
        if not self.root.is_dir():
            raise ValueError(f"Confinement root is not a directory: {self.root}")

    def resolve(self, candidate: PathLike, follow_leaf: bool = True) -> Path:
        """Resolve a candidate path to its canonical form inside the root.

        Relative candidates are taken relative to the root. The parent chain
        is resolved strictly; the leaf may be absent so callers can create it.

        Args:
            candidate: Absolute or root-relative path
            follow_leaf: If True, a symlink leaf is replaced by its target.
                         If False, the link itself is returned.

        Returns:
            Canonical absolute path, equal to or below the root

        Raises:
            OutOfBoundsError: If the path escapes the root or cannot be resolved
        """
        raw = os.fspath(candidate)
        if "\x00" in raw:
            raise OutOfBoundsError(f"Path contains a NUL byte: {raw!r}", root=self.root)

        path = Path(raw)
        if not path.is_absolute():
            path = self.root / path

        try:
            if path.name in _INVALID_LEAVES:
                # Trailing '.', '..' or the filesystem root: nothing to keep lexical
                canonical = path.resolve(strict=True)
            else:
                parent = path.parent.resolve(strict=True)
                canonical = parent / path.name
                if follow_leaf and os.path.lexists(canonical):
                    canonical = canonical.resolve(strict=True)
        except (OSError, RuntimeError) as exc:
            raise OutOfBoundsError(
                f"Path cannot be resolved safely: {raw} ({exc})",
                root=self.root,
                path=raw,
            ) from exc

        if not self.contains(canonical):
            raise OutOfBoundsError(
                f"Path escapes confined root: {raw}",
                root=self.root,
                path=raw,
            )
        return canonical

    def resolve_child(self, directory: PathLike, name: str) -> Path:
        """Resolve ``name`` as a direct child of ``directory``.

        The child itself is not followed, so an existing link named ``name``
        is returned as the link.

        Raises:
            OutOfBoundsError: If the name would land anywhere but directly
                              inside ``directory``
        """
        parent = self.resolve(directory)
        if not name or "/" in name or (os.sep in name) or (os.altsep and os.altsep in name):
            raise OutOfBoundsError(f"Name must be a single path component: {name!r}", root=self.root)
        child = self.resolve(parent / name, follow_leaf=False)
        if child.parent != parent:
            raise OutOfBoundsError(f"Name resolves outside {parent}: {name!r}", root=self.root)
        return child

    def contains(self, path: PathLike) -> bool:
        """Check component-wise that an absolute path is the root or below it."""
        path = Path(path)
        return path == self.root or path.is_relative_to(self.root)

    def relative(self, path: PathLike) -> str:
        """Root-relative POSIX form of a confined path ('.' for the root)."""
        rel = Path(path).relative_to(self.root).as_posix()
        return rel if rel else "."

    def __repr__(self) -> str:
        return f"PathGuard(root={self.root})"
