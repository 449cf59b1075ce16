"""Custom exceptions for Decision Memory."""

from pathlib import Path


def sanitize_path_for_error(path: str | Path) -> str:
    """Extract only the filename from a path for safe error messages.

    Args:
        path: Full path or filename.

    Returns:
        Just the filename portion.
    """
    if isinstance(path, Path):
        return path.name
    return Path(path).name


class DecisionMemoryError(Exception):
    """Base exception for all decision memory errors."""

    pass


class PreconditionError(DecisionMemoryError):
    """Raised when an installation precondition has no degraded path.

    Carries operator-facing remediation text; the CLI prints it and exits
    with a non-zero status.
    """

    def __init__(self, message: str, remediation: str = "") -> None:
        self.remediation = remediation
        super().__init__(message)


class InvalidInputError(DecisionMemoryError):
    """Raised when a caller passes an empty or wrongly-typed value."""

    pass


class StorageError(DecisionMemoryError):
    """Raised when decision store operations fail."""

    pass


class EmbeddingError(DecisionMemoryError):
    """Raised when embedding generation fails."""

    pass


class ConfigurationError(DecisionMemoryError):
    """Raised when configuration is invalid."""

    pass


class RecordWriteError(DecisionMemoryError):
    """Raised when the session environment record cannot be updated.

    Note:
        Error messages only include the filename, not the full path.
    """

    def __init__(self, path: str | Path, reason: str) -> None:
        self.path = str(path)
        self.reason = reason
        super().__init__(
            f"Failed to update env record {sanitize_path_for_error(path)}: {reason}"
        )
