from __future__ import annotations

import os
from pathlib import Path

from ..errors import PathEscape


def resolve(mount_root: str | Path, requested_path: str) -> Path:
    """Return the canonical path for ``requested_path`` under ``mount_root``.

    The join follows :mod:`pathlib` semantics, so an absolute ``requested_path``
    replaces the root and is rejected like any other escape. Symlinks that
    already exist are followed before the containment check.
    """
    if '\x00' in (requested_path or ''):
        raise PathEscape()
    base = Path(mount_root).resolve(strict=False)
    candidate = (base / (requested_path or '')).resolve(strict=False)
    if base != candidate and base not in candidate.parents:
        raise PathEscape()
    return candidate


def resolve_entry(
    mount_root: str | Path,
    directory: str,
    name: str,
    follow_symlinks: bool = True,
) -> Path:
    """Resolve a single entry ``name`` inside ``directory``.

    Both parts are untrusted. The entry may resolve neither to the mount root
    nor to ``directory`` itself. With ``follow_symlinks=False`` only the parent
    is canonicalised, so a symlink leaf denotes the link rather than its target.
    """
    if not name or not name.strip() or '\x00' in name:
        raise PathEscape()

    base = Path(mount_root).resolve(strict=False)
    directory_path = resolve(base, directory)
    lexical = Path(os.path.normpath(directory_path / name))
    if lexical.name in ('', '.', '..'):
        raise PathEscape()

    target = resolve(base, str(lexical.parent)) / lexical.name
    if follow_symlinks:
        target = resolve(base, str(target))
    if target in (base, directory_path):
        raise PathEscape()
    return target
