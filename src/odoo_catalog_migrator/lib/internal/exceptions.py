"""This module defines custom exceptions used throughout the odoo-catalog-migrator library."""

from typing import Any, Optional


class MigrationError(Exception):
    """Base class for every error raised by the migration engine."""

    def __init__(self, message: str, *args: Any):
        """Initializes the exception with a descriptive message.

        Args:
            message: A human-readable description of the failure.
        """
        self.message = message
        super().__init__(message, *args)


class RemoteError(MigrationError):
    """A call to the remote catalog failed.

    Covers both transport failures (``code="NETWORK_ERROR"``) and logical
    errors reported by the server (validation, access rights). Some carry a
    machine-readable ``code`` and a short ``title``.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        title: Optional[str] = None,
    ):
        """Initializes the remote error.

        Args:
            message: The extracted, human-readable server message.
            code: Optional machine-readable error code.
            title: Optional short title reported by the server.
        """
        super().__init__(message)
        self.code = code
        self.title = title


class DependencyError(MigrationError):
    """A task needs an entity that an earlier task should have created."""


class StateVersionError(MigrationError):
    """The persisted migration state is unreadable or has an unknown shape."""
