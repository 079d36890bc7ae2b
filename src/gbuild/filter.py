"""Listed-target filter.

Directories named on the command line restrict which units an action applies
to. An empty filter lets every unit through. Otherwise a unit matches when its
directory equals a listed path or lies below one; exclusive matching accepts
exact matches only.
"""

import posixpath
from pathlib import Path
from typing import Iterable, Union


def clean_path(path: Union[str, Path]) -> str:
    """Normalize a directory path for comparison ("./a//b/" -> "a/b")."""
    text = str(path).replace("\\", "/")
    return posixpath.normpath(text) if text else "."


def has_path_prefix(path: str, prefix: str) -> bool:
    """Check whether path equals prefix or lies below it.

    Matching is per path component: "sub/dirx" does not start with "sub/dir".
    """
    path = clean_path(path)
    prefix = clean_path(prefix)
    if prefix == ".":
        return True
    return path == prefix or path.startswith(prefix + "/")


class ListedTargetFilter:
    """Set of listed directories plus the exclusive-match flag."""

    def __init__(self, paths: Iterable[Union[str, Path]] = (), exclusive: bool = False):
        self.paths = frozenset(clean_path(p) for p in paths)
        self.exclusive = exclusive

    @property
    def is_empty(self) -> bool:
        return not self.paths

    def __len__(self) -> int:
        return len(self.paths)

    def is_listed(self, directory: Union[str, Path]) -> bool:
        """Return True if a unit rooted at directory takes part in the action."""
        if not self.paths:
            return True
        directory = clean_path(directory)
        if self.exclusive:
            return directory in self.paths
        return any(has_path_prefix(directory, listed) for listed in self.paths)

    def __repr__(self) -> str:
        return f"ListedTargetFilter({sorted(self.paths)!r}, exclusive={self.exclusive})"
