from __future__ import annotations

import errno


class FileOpsError(Exception):
    """Base class for failures raised by bot filesystem operations."""

    def __init__(self, message: str, path: str = ''):
        super().__init__(message)
        self.message = message
        self.path = path

    def __str__(self) -> str:
        if self.path:
            return f'{self.message}: {self.path}'
        return self.message


class InvalidPathError(FileOpsError):
    """Path is empty where a node is required, absolute, or escapes the bot root."""


class RootDeletionError(InvalidPathError):
    pass


class PathNotFoundError(FileOpsError):
    pass


class WrongKindError(FileOpsError):
    """A directory was given where a file is required, or the other way round."""


class PathConflictError(FileOpsError):
    pass


class DirectoryNotEmptyError(FileOpsError):
    pass


class StorageIOError(FileOpsError):
    pass


class OperationCancelledError(StorageIOError):
    pass


def translate_os_error(exc: OSError, path: str = '') -> FileOpsError:
    if isinstance(exc, FileNotFoundError):
        return PathNotFoundError('path not found', path)
    if isinstance(exc, FileExistsError):
        return PathConflictError('path already exists', path)
    if isinstance(exc, IsADirectoryError):
        return WrongKindError('path is a directory', path)
    if isinstance(exc, NotADirectoryError):
        return WrongKindError('path component is not a directory', path)
    if exc.errno == errno.ENOTEMPTY:
        return DirectoryNotEmptyError('directory not empty', path)
    return StorageIOError(exc.strerror or exc.__class__.__name__, path)
