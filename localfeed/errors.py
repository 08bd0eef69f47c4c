from __future__ import annotations


class LocalFeedError(RuntimeError):
    """Base class for every error raised by localfeed."""


class ConfigError(LocalFeedError):
    """Raised when configuration is missing or invalid."""


class EmptyPostError(LocalFeedError):
    """Raised when a post or comment has neither text nor media."""


class PolicyViolation(LocalFeedError):
    """Raised when text matches the content denylist."""


class UnsupportedMediaType(LocalFeedError):
    """Raised when a file is neither image/* nor video/*."""


class StorageError(LocalFeedError):
    """Raised when the state file cannot be opened or queried."""


class StorageParseError(StorageError):
    """Raised when a stored value cannot be decoded."""


class StorageWriteError(StorageError):
    """Raised when writing a value to the state file fails."""


class NotFoundError(LocalFeedError):
    """Raised when an operation targets a post that does not exist."""


class AuthRequired(LocalFeedError):
    """Raised when a mutation is attempted without a signed-in identity."""


class PermissionDenied(LocalFeedError):
    """Raised when the identity may not touch another author's content."""
