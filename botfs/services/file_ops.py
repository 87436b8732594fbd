from __future__ import annotations

import logging
import os
import posixpath
import shutil
import stat
import tempfile
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator, Optional

from .errors import (
    DirectoryNotEmptyError,
    InvalidPathError,
    OperationCancelledError,
    PathConflictError,
    RootDeletionError,
    WrongKindError,
    translate_os_error,
)
from .paths import ROOT_REL, ensure_real_containment, relative_to_root, resolve_bot_path

logger = logging.getLogger(__name__)

DEFAULT_FILE_MODE = 0o644
DEFAULT_DIR_MODE = 0o755
COPY_CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class EntryInfo:
    path: str
    is_dir: bool
    size: int
    mode: int
    mod_time: datetime


@dataclass(frozen=True)
class Listing:
    path: str
    entries: list[EntryInfo]


@dataclass(frozen=True)
class FileContent:
    path: str
    content: bytes
    size: int
    mode: int
    mod_time: datetime


@dataclass(frozen=True)
class UsageSummary:
    path: str
    total_bytes: int
    file_count: int
    dir_count: int


def _entry(rel: str, st: os.stat_result) -> EntryInfo:
    return EntryInfo(
        path=rel,
        is_dir=stat.S_ISDIR(st.st_mode),
        size=st.st_size,
        mode=st.st_mode & 0o777,
        mod_time=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
    )


def _children(directory: Path) -> list[os.DirEntry]:
    with os.scandir(directory) as it:
        return sorted(it, key=lambda e: e.name)


def walk_tree(directory: Path, cancel: Optional[threading.Event] = None) -> Iterator[tuple[Path, os.stat_result]]:
    """Yield every descendant of ``directory`` in pre-order, excluding itself.

    Symlinked directories are reported but not entered. Any ``OSError`` aborts
    the walk.
    """
    stack = [iter(_children(directory))]
    while stack:
        child = next(stack[-1], None)
        if child is None:
            stack.pop()
            continue
        if cancel is not None and cancel.is_set():
            raise OperationCancelledError('walk cancelled')
        st = child.stat(follow_symlinks=False)
        yield Path(child.path), st
        if stat.S_ISDIR(st.st_mode):
            stack.append(iter(_children(Path(child.path))))


def upload_destination(requested_path: Optional[str], filename: Optional[str]) -> str:
    raw = (requested_path or '').strip()
    name = filename or ''
    if not raw:
        return name
    if raw.endswith('/') or raw.endswith(os.sep):
        return posixpath.join(raw.replace(os.sep, '/'), name)
    return raw


class FileOps:
    """Filesystem operations confined to a single bot root."""

    def __init__(self, root: str | Path, file_mode: int = DEFAULT_FILE_MODE, dir_mode: int = DEFAULT_DIR_MODE):
        self.root = Path(root).resolve()
        self.file_mode = file_mode
        self.dir_mode = dir_mode

    def safe_path(self, rel: str, allow_root: bool = False, follow_final: bool = True) -> tuple[Path, str]:
        target, canonical = resolve_bot_path(self.root, rel, allow_root)
        if canonical != ROOT_REL:
            ensure_real_containment(self.root, target, follow_final=follow_final)
        return target, canonical

    def _stat(self, target: Path, rel: str, follow: bool = True) -> os.stat_result:
        try:
            return os.stat(target) if follow else os.lstat(target)
        except OSError as exc:
            raise translate_os_error(exc, rel) from exc

    def list_dir(self, rel: str = '', recursive: bool = False, cancel: Optional[threading.Event] = None) -> Listing:
        target, canonical = self.safe_path(rel, allow_root=True)
        if not stat.S_ISDIR(self._stat(target, canonical).st_mode):
            raise WrongKindError('path is not a directory', canonical)

        logger.debug('listing %s in %s (recursive=%s)', canonical, self.root.name, recursive)
        try:
            if recursive:
                entries = [_entry(relative_to_root(self.root, p), st) for p, st in walk_tree(target, cancel)]
            else:
                entries = [
                    _entry(relative_to_root(self.root, child.path), child.stat(follow_symlinks=False))
                    for child in _children(target)
                ]
        except OSError as exc:
            raise translate_os_error(exc, canonical) from exc
        return Listing(path=canonical, entries=entries)

    def read_file(self, rel: str) -> FileContent:
        target, canonical = self.safe_path(rel)
        mode = self._stat(target, canonical).st_mode
        if stat.S_ISDIR(mode):
            raise WrongKindError('path is a directory', canonical)
        if not stat.S_ISREG(mode):
            raise WrongKindError('path is not a regular file', canonical)
        try:
            # O_NONBLOCK keeps a FIFO swapped in after the stat from blocking open
            fd = os.open(target, os.O_RDONLY | os.O_NONBLOCK)
            with os.fdopen(fd, 'rb') as handle:
                st = os.fstat(handle.fileno())
                if not stat.S_ISREG(st.st_mode):
                    raise WrongKindError('path is not a regular file', canonical)
                data = handle.read()
        except OSError as exc:
            raise translate_os_error(exc, canonical) from exc
        return FileContent(
            path=canonical,
            content=data,
            size=st.st_size,
            mode=st.st_mode & 0o777,
            mod_time=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
        )

    def stat(self, rel: str) -> EntryInfo:
        target, canonical = self.safe_path(rel)
        return _entry(canonical, self._stat(target, canonical))

    def usage(self, rel: str = '', cancel: Optional[threading.Event] = None) -> UsageSummary:
        target, canonical = self.safe_path(rel, allow_root=True)
        st = self._stat(target, canonical)
        if not stat.S_ISDIR(st.st_mode):
            return UsageSummary(path=canonical, total_bytes=st.st_size, file_count=1, dir_count=0)

        total_bytes = file_count = dir_count = 0
        try:
            for _, child in walk_tree(target, cancel):
                if stat.S_ISDIR(child.st_mode):
                    dir_count += 1
                else:
                    file_count += 1
                    total_bytes += child.st_size
        except OSError as exc:
            raise translate_os_error(exc, canonical) from exc
        return UsageSummary(path=canonical, total_bytes=total_bytes, file_count=file_count, dir_count=dir_count)

    def write_file(self, rel: str, content: bytes | str, overwrite: bool = True) -> str:
        if not (rel or '').strip():
            raise InvalidPathError('path is required')
        target, canonical = self.safe_path(rel)
        if os.path.lexists(target):
            if not overwrite:
                raise PathConflictError('file already exists', canonical)
            if os.path.isdir(target):
                raise WrongKindError('path is a directory', canonical)

        if isinstance(content, str):
            content = content.encode('utf-8')
        self._replace_file(target, canonical, [content])
        logger.info('wrote %s in %s (%d bytes)', canonical, self.root.name, len(content))
        return canonical

    def mkdir(self, rel: str, parents: bool = True) -> str:
        target, canonical = self.safe_path(rel)
        try:
            if parents:
                if os.path.exists(target) and not os.path.isdir(target):
                    raise WrongKindError('path exists and is not a directory', canonical)
                os.makedirs(target, mode=self.dir_mode, exist_ok=True)
            else:
                os.mkdir(target, self.dir_mode)
        except OSError as exc:
            raise translate_os_error(exc, canonical) from exc
        logger.info('created directory %s in %s', canonical, self.root.name)
        return canonical

    def upload(
        self,
        requested_path: Optional[str],
        filename: Optional[str],
        source: BinaryIO,
        chunk_size: int = COPY_CHUNK_SIZE,
    ) -> str:
        """Stream ``source`` to the destination, always replacing what is there."""
        target, canonical = self.safe_path(upload_destination(requested_path, filename))
        if os.path.isdir(target):
            raise WrongKindError('path is a directory', canonical)

        self._replace_file(target, canonical, iter(lambda: source.read(chunk_size), b''))
        logger.info('uploaded %s in %s', canonical, self.root.name)
        return canonical

    def delete(self, rel: str, recursive: bool = False) -> str:
        target, canonical = self.safe_path(rel, allow_root=True, follow_final=False)
        if canonical == ROOT_REL:
            raise RootDeletionError('refuse to delete root')

        st = self._stat(target, canonical, follow=False)
        try:
            if stat.S_ISDIR(st.st_mode):
                if recursive:
                    shutil.rmtree(target)
                else:
                    os.rmdir(target)
            else:
                os.unlink(target)
        except OSError as exc:
            err = translate_os_error(exc, canonical)
            if isinstance(err, DirectoryNotEmptyError):
                raise DirectoryNotEmptyError('directory not empty, set recursive to delete it', canonical) from exc
            raise err from exc
        logger.info('deleted %s in %s (recursive=%s)', canonical, self.root.name, recursive)
        return canonical

    def _replace_file(self, target: Path, rel: str, chunks: Iterable[bytes]) -> None:
        # write through in-root symlinks; safe_path already checked the real target
        if target.is_symlink():
            target = Path(os.path.realpath(target))
        try:
            target.parent.mkdir(mode=self.dir_mode, parents=True, exist_ok=True)
        except FileExistsError as exc:
            raise WrongKindError('parent path is not a directory', rel) from exc
        except OSError as exc:
            raise translate_os_error(exc, rel) from exc

        mode = self.file_mode
        try:
            if target.is_file():
                mode = target.stat().st_mode & 0o777
            _atomic_write(target, chunks, mode)
        except OSError as exc:
            raise translate_os_error(exc, rel) from exc


def _atomic_write(path: Path, chunks: Iterable[bytes], mode: int) -> None:
    fd, tmp_path = tempfile.mkstemp(prefix=f'.{path.name}.', suffix='.tmp', dir=str(path.parent))
    try:
        with os.fdopen(fd, 'wb') as handle:
            for chunk in chunks:
                handle.write(chunk)
            handle.flush()
            os.fsync(handle.fileno())
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
        dir_fd = os.open(str(path.parent), os.O_RDONLY)
        try:
            os.fsync(dir_fd)
        finally:
            os.close(dir_fd)
    except Exception:
        Path(tmp_path).unlink(missing_ok=True)
        raise
