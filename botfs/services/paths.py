from __future__ import annotations

import os
from pathlib import Path

from .errors import InvalidPathError

ROOT_REL = '.'


def _escapes(rel: str) -> bool:
    return rel == os.pardir or rel.startswith(os.pardir + os.sep)


def resolve_bot_path(root: str | Path, requested_path: str, allow_root: bool) -> tuple[Path, str]:
    """Map an untrusted bot-relative path onto the bot root.

    Purely lexical: nothing here touches the filesystem or follows symlinks.
    Returns the absolute target and the forward-slash relative path, with
    ``'.'`` standing for the root itself.
    """
    base = os.path.abspath(os.fspath(root))
    raw = (requested_path or '').strip()
    if not raw:
        if allow_root:
            return Path(base), ROOT_REL
        raise InvalidPathError('path is required')
    if '\x00' in raw:
        raise InvalidPathError('invalid path')

    clean = os.path.normpath(raw.replace('/', os.sep))
    if clean in ('', os.curdir):
        if allow_root:
            return Path(base), ROOT_REL
        raise InvalidPathError('path is required')

    if os.path.isabs(clean) or _escapes(clean):
        raise InvalidPathError('invalid path', raw)

    target = os.path.join(base, clean)
    rel = os.path.relpath(target, base)
    if _escapes(rel):
        raise InvalidPathError('invalid path', raw)
    if rel in ('', os.curdir):
        return Path(base), ROOT_REL
    return Path(target), rel.replace(os.sep, '/')


def relative_to_root(root: str | Path, target: str | Path) -> str:
    rel = os.path.relpath(os.fspath(target), os.path.abspath(os.fspath(root)))
    if _escapes(rel):
        raise InvalidPathError('path escapes bot root')
    if rel == os.curdir:
        return ROOT_REL
    return rel.replace(os.sep, '/')


def ensure_real_containment(root: str | Path, target: str | Path, follow_final: bool = True) -> None:
    """Re-check containment after resolving symlinks on disk.

    With ``follow_final`` false only the parent chain is resolved, so a link
    can be removed even when it points outside the root.
    """
    real_root = os.path.realpath(root)
    target = os.fspath(target)
    if follow_final:
        real_target = os.path.realpath(target)
    else:
        real_target = os.path.join(os.path.realpath(os.path.dirname(target)), os.path.basename(target))

    if real_target == real_root:
        return
    if not real_target.startswith(real_root.rstrip(os.sep) + os.sep):
        raise InvalidPathError('path escapes bot root through a symlink')
