"""Path confinement and staged output for the file manager.

Example:
    >>> from fileward.filesystem import PathGuard
    >>> guard = PathGuard(Path.cwd())
    >>> guard.resolve("./downloads/file.txt")
"""

from .core import PathGuard
from .staging import discard, staged_output
from .walk import TreeNode, walk_postorder, walk_preorder

__all__ = ["PathGuard", "staged_output", "discard", "TreeNode", "walk_preorder", "walk_postorder"]
