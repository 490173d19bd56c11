"""Path containment check for playspace file helpers.

resolve_in_scratch() maps a requested path to the absolute path a write
should target, or rejects it with OutsidePlayspaceError. It only reads
the filesystem (exists/resolve); it never creates anything.
"""

from __future__ import annotations

import os
from pathlib import Path

from playspace.exceptions import OutsidePlayspaceError


def resolve_in_scratch(root: Path, requested: str | os.PathLike[str]) -> Path:
    """Resolve *requested* against the scratch directory *root*.

    Relative paths are joined to *root*, whatever the process working
    directory is at call time. The result is then accepted only if the
    nearest ancestor that exists on disk (the path itself included)
    canonicalises to a location inside the canonical *root*. Symlinks
    pointing out of the scratch directory, dangling ones included, are
    therefore rejected.

    Paths containing ``..`` are normalised lexically first: walking the
    ancestors of ``root/missing/../../x`` would otherwise stop at
    ``root`` while the OS would resolve the write to ``root/../x``.

    Args:
        root: Scratch directory (should already be canonical).
        requested: Path as given by the caller.

    Returns:
        Absolute path inside the scratch directory.

    Raises:
        OutsidePlayspaceError: The path escapes the scratch directory, has
            no existing ancestor, or an ancestor cannot be inspected (name
            too long, permission denied, symlink loop).
    """
    original = Path(requested)
    candidate = original if original.is_absolute() else root / original
    if ".." in candidate.parts:
        candidate = Path(os.path.normpath(candidate))

    canonical_root = root.resolve()
    for ancestor in (candidate, *candidate.parents):
        try:
            # A dangling symlink does not exist, but writes would follow it
            if not (ancestor.exists() or ancestor.is_symlink()):
                continue
            canonical_ancestor = ancestor.resolve()
        except (OSError, RuntimeError) as e:
            raise OutsidePlayspaceError(
                requested,
                context={"error": str(e), "error_type": type(e).__name__, "checked": str(ancestor)},
            ) from e
        if canonical_ancestor.is_symlink():
            # Non-strict resolve gives up on a loop and returns the link itself
            raise OutsidePlayspaceError(requested, context={"reason": "symlink loop", "checked": str(ancestor)})
        if not canonical_ancestor.is_relative_to(canonical_root):
            raise OutsidePlayspaceError(requested, context={"resolved": str(canonical_ancestor)})
        return candidate

    raise OutsidePlayspaceError(requested, context={"reason": "no existing ancestor"})
