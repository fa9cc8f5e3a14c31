"""Exceptions that abort an operation outright.

Everything else (validation failures, unknown ids, storage I/O errors
during CRUD) is reported through result objects with a ``success`` flag.
"""


class ConfigurationError(ValueError):
    """Setup parameters or the persisted schema record are unusable."""

    def __init__(self, message: str, issues: list[str] | None = None):
        self.issues = issues or []
        if self.issues:
            message = message + ":\n  - " + "\n  - ".join(self.issues)
        super().__init__(message)


class StorageUnavailableError(RuntimeError):
    """The configured storage location cannot be reached."""
