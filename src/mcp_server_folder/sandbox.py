"""
Path Sandbox

Resolves user-supplied relative paths against a fixed root directory. The check
runs on the fully resolved path (symbolic links and ``..`` segments collapsed),
so a path is accepted only when it equals the root or lies strictly below it.
"""

from __future__ import annotations

import os
from pathlib import Path, PurePosixPath

from .errors import PathTraversal, ValidationFailure


class PathSandbox:
    """Confines every filesystem path to ``root``."""

    def __init__(self, root: str | os.PathLike[str]) -> None:
        self._root = Path(root).expanduser().resolve()
        # Root plus a trailing separator; "/" stays "/"
        self._prefix = os.path.join(str(self._root), "")

    @property
    def root(self) -> Path:
        return self._root

    def resolve(self, relative_path: str | os.PathLike[str] = "") -> Path:
        """Return the absolute path for ``relative_path`` or raise ``PathTraversal``.

        Absolute inputs are joined like any other path, which makes them replace
        the root and therefore fail the containment check unless they already
        point inside the sandbox.
        """
        try:
            candidate = (self._root / relative_path).resolve()
        except ValueError as exc:  # embedded NUL and similar
            raise ValidationFailure(f"Invalid path: {exc}") from exc

        if candidate != self._root and not str(candidate).startswith(self._prefix):
            raise PathTraversal()
        return candidate

    def relative(self, path: str | os.PathLike[str]) -> str:
        """Express a sandboxed absolute path relative to the root, with '/' separators."""
        rel = Path(path).relative_to(self._root)
        return PurePosixPath(*rel.parts).as_posix() if rel.parts else ""

    def ensure_dirs(self, *subdirs: str) -> None:
        """Create the root and the given subdirectories if missing."""
        self._root.mkdir(parents=True, exist_ok=True)
        for subdir in subdirs:
            self.resolve(subdir).mkdir(parents=True, exist_ok=True)


def safe_name(name: str) -> str:
    """Strip directory components from a client-supplied file name.

    Both separator styles are removed so that ``..\\x`` cannot climb out of the
    subdirectory the name is about to be joined to.
    """
    base = name.replace("\\", "/").rstrip("/").rsplit("/", 1)[-1].strip()
    if base in ("", ".", ".."):
        raise ValidationFailure(f"Invalid file name: {name!r}")
    return base
