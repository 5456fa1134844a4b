"""
Error kinds raised by Repobot.

The CLI translates each kind into a distinct exit status.
"""

from __future__ import annotations


class RepobotError(Exception):
    """Base class for all Repobot errors."""
    exit_code = 1


class ConfigurationError(RepobotError):
    """Configuration is unusable, or a required rule source is missing."""
    exit_code = 2


class NotFoundError(RepobotError):
    """Path does not exist or is excluded by ignore rules."""
    exit_code = 3

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class StorageError(RepobotError):
    """Underlying read or write failure."""
    exit_code = 4

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class GitError(RepobotError):
    """A git command failed or the directory is not a repository."""


class TelegramError(RepobotError):
    """Error from the Telegram Bot API."""
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
