"""Persistence of the migration state.

The whole ``MigrationState`` is written as one JSON document tagged with a
schema version. Writes go through a temporary file in the same directory so
that a crash never leaves a truncated document behind.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from ..logging_config import log
from ..models import MigrationState
from .internal.exceptions import StateVersionError

SCHEMA_VERSION = 1


class StateStore:
    """Stores one migration state under a fixed file path."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def load(self) -> Optional[MigrationState]:
        """Loads the persisted state.

        Returns:
            The state, or None if nothing has been persisted yet.

        Raises:
            StateVersionError: If the document is unreadable, was written by
                another schema version, or does not have the expected shape.
        """
        if not self.path.exists():
            return None

        try:
            with open(self.path, encoding="utf-8") as f:
                blob = json.load(f)
        except (OSError, ValueError) as e:
            raise StateVersionError(f"Cannot read state file {self.path}: {e}") from e

        if not isinstance(blob, dict):
            raise StateVersionError(f"State file {self.path} is not a JSON object.")

        version = blob.get("schema_version")
        if version != SCHEMA_VERSION:
            raise StateVersionError(
                f"State file {self.path} has schema version {version!r}, "
                f"expected {SCHEMA_VERSION}."
            )

        try:
            return MigrationState.from_dict(blob["state"])
        except (KeyError, TypeError, ValueError) as e:
            raise StateVersionError(f"State file {self.path} is malformed: {e}") from e

    def save(self, state: MigrationState) -> None:
        """Writes the full state, replacing the previous document atomically."""
        blob = {"schema_version": SCHEMA_VERSION, "state": state.to_dict()}
        directory = self.path.parent
        directory.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=directory
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(blob, f, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        log.debug(f"Migration state saved to {self.path}.")

    def clear(self) -> None:
        """Removes the persisted state, if any."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
