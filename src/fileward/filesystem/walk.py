"""Deterministic, iterative directory traversal."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Iterator, List, Optional


@dataclass(frozen=True)
class TreeNode:
    """One entry below the traversal top."""
    path: Path  # Absolute path of the entry itself (links not followed)
    relative: PurePosixPath  # Path relative to the top
    is_dir: bool  # Real directory (never true for a link)
    is_symlink: bool
    error: Optional[OSError] = None  # Set when a directory could not be listed


def _children(directory: Path, relative: PurePosixPath) -> List[TreeNode]:
    with os.scandir(directory) as it:
        entries = sorted(it, key=lambda e: e.name)
    nodes = []
    for entry in entries:
        is_symlink = entry.is_symlink()
        nodes.append(TreeNode(
            path=directory / entry.name,
            relative=relative / entry.name,
            is_dir=(not is_symlink) and entry.is_dir(follow_symlinks=False),
            is_symlink=is_symlink,
        ))
    return nodes


def walk_preorder(top: Path) -> Iterator[TreeNode]:
    """
    Yield every descendant of ``top`` depth-first, pre-order.

    Children are visited in name order and a directory is yielded before its
    contents. Symbolic links are yielded but never descended into. A directory
    that cannot be listed is yielded a second time with ``error`` set.

    Uses an explicit stack, so tree depth does not grow the call stack.
    """
    stack: List[TreeNode] = []
    try:
        roots = _children(top, PurePosixPath())
    except OSError as e:
        yield TreeNode(path=top, relative=PurePosixPath(), is_dir=True, is_symlink=False, error=e)
        return

    stack.extend(reversed(roots))
    while stack:
        node = stack.pop()
        yield node
        if not node.is_dir:
            continue
        try:
            children = _children(node.path, node.relative)
        except OSError as e:
            yield TreeNode(path=node.path, relative=node.relative, is_dir=True, is_symlink=False, error=e)
            continue
        stack.extend(reversed(children))


def walk_postorder(top: Path) -> List[TreeNode]:
    """Descendants of ``top`` with every directory after its contents."""
    return [node for node in walk_preorder(top) if node.error is None][::-1]
