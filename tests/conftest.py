"""Shared test fixtures for gitmon."""

from pathlib import Path
from typing import Optional

import git
import pytest

from gitmon.incremental import ChangeDetector, MonitorEngine, WatermarkStore
from gitmon.extraction import RepositorySnapshotter
from gitmon.models import RepositoryConfig


class UpstreamRepo:
    """A repository playing the remote, plus helpers to clone and change it."""

    BASE_TIME = 1_700_000_000

    def __init__(self, root: Path):
        self.root = root
        self.path = root / "upstream"
        self.repo = git.Repo.init(self.path)

        # Configure git
        self.repo.config_writer().set_value("user", "name", "Test User").release()
        self.repo.config_writer().set_value("user", "email", "test@example.com").release()

        self._counter = 0
        self.commit("Initial commit")
        self.repo.git.branch("-M", "main")

    def commit(self, message: str, branch: Optional[str] = None) -> str:
        """Commit a new file on a branch and return the commit SHA."""
        if branch is not None and self.repo.active_branch.name != branch:
            self.repo.heads[branch].checkout()

        self._counter += 1
        filename = f"file_{self._counter}.txt"
        (self.path / filename).write_text(f"{message}\n")
        self.repo.index.add([filename])

        # Strictly increasing commit times keep ordering deterministic
        date = f"{self.BASE_TIME + self._counter * 60} +0000"
        commit = self.repo.index.commit(message, author_date=date, commit_date=date)

        if branch is not None and branch != "main":
            self.repo.heads["main"].checkout()
        return commit.hexsha

    def create_branch(self, name: str, start: str = "main") -> str:
        head = self.repo.create_head(name, start)
        return head.commit.hexsha

    def delete_branch(self, name: str) -> None:
        self.repo.delete_head(name, force=True)

    def rewrite_main(self, message: str) -> str:
        """Drop the tip of main and commit something else in its place."""
        self.repo.head.reset("HEAD~1", index=True, working_tree=True)
        return self.commit(message)

    def head(self, branch: str = "main") -> str:
        return self.repo.heads[branch].commit.hexsha

    def clone(self, name: str = "clone") -> Path:
        target = self.root / name
        git.Repo.clone_from(str(self.path), str(target))
        return target


@pytest.fixture
def upstream(tmp_path: Path) -> UpstreamRepo:
    """Provide an upstream repository with one commit on main."""
    return UpstreamRepo(tmp_path)


@pytest.fixture
def clone_config(upstream: UpstreamRepo) -> RepositoryConfig:
    """Provide the config of a fresh clone of the upstream repository."""
    return RepositoryConfig(path=upstream.clone(), name="clone")


@pytest.fixture
def store(tmp_path: Path) -> WatermarkStore:
    """Provide a watermark store in a temp directory."""
    return WatermarkStore(tmp_path / "state")


@pytest.fixture
def engine(store: WatermarkStore) -> MonitorEngine:
    """Provide an engine with default components and a short fetch timeout."""
    return MonitorEngine(
        store=store,
        snapshotter=RepositorySnapshotter(fetch_timeout=60),
        detector=ChangeDetector(),
        max_workers=2,
    )
