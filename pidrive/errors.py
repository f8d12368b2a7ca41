from __future__ import annotations


class PathEscape(PermissionError):
    """A request-derived path resolved outside the mount root."""

    def __init__(self, message: str = 'Invalid path'):
        super().__init__(message)


class InvalidState(Exception):
    """The filesystem is not in a state that allows the operation."""


class MountError(RuntimeError):
    def __init__(self, message: str, exit_code: int = 1):
        super().__init__(message)
        self.exit_code = exit_code
