"""fullstack_deploy.files — Recursive file listing for the upload root."""

from __future__ import annotations

from pathlib import Path

from fullstack_deploy.exceptions import PathTraversalError


def list_files(root: str | Path) -> list[Path]:
    """Return every regular file under root, depth first, in name order.

    Entries are resolved before use; an entry (typically a symlink) that
    resolves outside root raises PathTraversalError. Symlinked directories
    are listed under the link's own path; a link back to one of its
    ancestors is skipped.
    """
    base = Path(root).resolve()
    files: list[Path] = []
    _walk(base, base, files, frozenset({base}))
    return files


def _walk(base: Path, directory: Path, files: list[Path], ancestors: frozenset[Path]) -> None:
    for member in sorted(directory.iterdir(), key=lambda p: p.name):
        resolved = member.resolve()
        if not resolved.is_relative_to(base):
            raise PathTraversalError(root=str(base), entry=str(member))
        if resolved.is_dir():
            if resolved in ancestors:
                continue
            _walk(base, member, files, ancestors | {resolved})
        else:
            files.append(member)


def object_key(root: str | Path, path: str | Path) -> str:
    """Return the forward-slash key of path relative to root."""
    return Path(path).absolute().relative_to(Path(root).resolve()).as_posix()
