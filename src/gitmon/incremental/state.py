"""Watermark persistence.

Tracks the last reported tip commit per repository and branch so that each
run only reports commits that appeared since the previous one.
"""

import json
import os
import tempfile
import threading
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import structlog
from pydantic import BaseModel, Field, ValidationError

from gitmon.errors import StoreUnavailable

logger = structlog.get_logger(__name__)


class Watermark(BaseModel):
    """Last reported state of a single repository."""

    branches: Dict[str, str] = Field(
        default_factory=dict, description="Branch name to last reported commit SHA"
    )
    last_checked_at: Optional[datetime] = Field(
        None, description="Timestamp of the check that produced this watermark"
    )

    @property
    def is_empty(self) -> bool:
        return not self.branches


class WatermarkFile(BaseModel):
    """Root object of the state file."""

    version: str = Field("1.0", description="State file format version")
    repositories: Dict[str, Watermark] = Field(
        default_factory=dict, description="Watermark per repository id"
    )


class WatermarkStore:
    """Persists watermarks in ``state.json`` inside a state directory.

    Every save rewrites the whole file through a temporary file and an atomic
    rename, so a partially written state is never observable.
    """

    STATE_FILE_NAME = "state.json"

    def __init__(self, state_dir: Path):
        """Initialize the watermark store.

        Args:
            state_dir: Directory holding the state file
        """
        self.state_dir = Path(state_dir).expanduser()
        self.state_file = self.state_dir / self.STATE_FILE_NAME
        self._lock = threading.Lock()

    def _ensure_state_dir(self) -> None:
        try:
            self.state_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreUnavailable(f"Cannot create state directory {self.state_dir}: {e}") from e

    def _read(self) -> WatermarkFile:
        """Read the state file, or an empty state when it does not exist yet.

        Raises:
            StoreUnavailable: If the file cannot be read or parsed
        """
        if not self.state_file.exists():
            return WatermarkFile()

        try:
            with open(self.state_file, "r") as f:
                data = json.load(f)
            return WatermarkFile(**data)
        except OSError as e:
            raise StoreUnavailable(f"Cannot read state file {self.state_file}: {e}") from e
        except (json.JSONDecodeError, ValidationError, TypeError) as e:
            raise StoreUnavailable(f"State file {self.state_file} is corrupt: {e}") from e

    def _write(self, state: WatermarkFile) -> None:
        """Write the state file atomically.

        Uses a temporary file and rename to ensure atomicity.
        """
        self._ensure_state_dir()

        try:
            fd, temp_path = tempfile.mkstemp(
                dir=self.state_dir, prefix=".state_", suffix=".json.tmp"
            )
        except OSError as e:
            raise StoreUnavailable(f"Cannot write to {self.state_dir}: {e}") from e

        try:
            with os.fdopen(fd, "w") as f:
                json.dump(state.model_dump(mode="json"), f, indent=2, sort_keys=True)
                f.flush()
                os.fsync(f.fileno())

            # Atomic rename
            os.replace(temp_path, self.state_file)
        except OSError as e:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise StoreUnavailable(f"Cannot write state file {self.state_file}: {e}") from e

    def check(self) -> None:
        """Verify the store can be used for a run.

        Raises:
            StoreUnavailable: If the directory is not usable or the file is corrupt
        """
        self._ensure_state_dir()
        if not os.access(self.state_dir, os.R_OK | os.W_OK | os.X_OK):
            raise StoreUnavailable(f"State directory {self.state_dir} is not readable and writable")
        with self._lock:
            self._read()

    def load(self, repository_id: str) -> Watermark:
        """Get the persisted watermark of a repository.

        Args:
            repository_id: Repository identifier

        Returns:
            The stored Watermark, or an empty one on first sight of the repository
        """
        with self._lock:
            state = self._read()
        watermark = state.repositories.get(repository_id)
        if watermark is None:
            return Watermark()
        return watermark.model_copy(deep=True)

    def save(self, repository_id: str, watermark: Watermark) -> None:
        """Replace the persisted watermark of one repository.

        Args:
            repository_id: Repository identifier
            watermark: New watermark
        """
        with self._lock:
            state = self._read()
            state.repositories[repository_id] = watermark.model_copy(deep=True)
            self._write(state)
        logger.debug(
            "watermark_saved",
            repository=repository_id,
            branches=len(watermark.branches),
        )

    def delete(self, repository_id: str) -> bool:
        """Delete the watermark of a repository.

        Returns:
            True if a watermark was deleted, False if none existed
        """
        with self._lock:
            state = self._read()
            if repository_id not in state.repositories:
                return False
            del state.repositories[repository_id]
            self._write(state)
        logger.info("watermark_deleted", repository=repository_id)
        return True

    def list_repositories(self) -> List[str]:
        """Get the ids of all repositories with a stored watermark."""
        with self._lock:
            state = self._read()
        return list(state.repositories.keys())
