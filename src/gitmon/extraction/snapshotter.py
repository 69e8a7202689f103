"""Fetching repositories and capturing their branch tips."""

import shutil
from pathlib import Path
from typing import Dict, Optional

import git
import structlog
from git import Repo

from gitmon.errors import FetchFailed, FetchFailureCause, RepositoryInvalid
from gitmon.models import RepositoryConfig, Snapshot

logger = structlog.get_logger(__name__)

# Never let git block on a credential prompt
GIT_ENV = {"GIT_TERMINAL_PROMPT": "0", "GIT_ASKPASS": "echo"}

AUTH_MARKERS = (
    "authentication failed",
    "permission denied",
    "could not read username",
    "could not read password",
    "access denied",
    "invalid username or password",
    "the requested url returned error: 401",
    "the requested url returned error: 403",
)
TIMEOUT_MARKERS = ("timed out", "timeout")


def classify_fetch_error(message: str) -> FetchFailureCause:
    """Map git's error output to a fetch failure cause."""
    lowered = message.lower()
    if any(marker in lowered for marker in TIMEOUT_MARKERS):
        return FetchFailureCause.TIMEOUT
    if any(marker in lowered for marker in AUTH_MARKERS):
        return FetchFailureCause.AUTH
    return FetchFailureCause.NETWORK


def _error_text(error: git.GitCommandError) -> str:
    stderr = error.stderr
    if isinstance(stderr, bytes):
        stderr = stderr.decode("utf-8", errors="replace")
    text = (stderr or "").strip()
    if text.startswith("stderr:"):
        text = text[len("stderr:"):].strip()
    return text.strip("'\" \n") or str(error)


class RepositorySnapshotter:
    """Opens monitored repositories, fetches them and reads their branch tips.

    Performs exactly one fetch attempt per call; retrying is left to the
    caller.
    """

    def __init__(self, fetch_timeout: Optional[float] = 120.0) -> None:
        """Initialize the snapshotter.

        Args:
            fetch_timeout: Seconds after which a fetch or clone is killed
        """
        self.fetch_timeout = fetch_timeout

    def open(self, config: RepositoryConfig) -> Repo:
        """Open the local repository, cloning it first when only a URL is known.

        Raises:
            RepositoryInvalid: If the path is missing or not a Git repository
            FetchFailed: If the initial clone fails
        """
        path = config.path.expanduser()
        if not path.exists() and config.url:
            return self._clone(config.url, path)

        if not path.exists():
            raise RepositoryInvalid(f"Repository path does not exist: {path}")

        try:
            return Repo(path)
        except git.exc.NoSuchPathError as e:
            raise RepositoryInvalid(f"Repository path does not exist: {path}") from e
        except git.exc.InvalidGitRepositoryError as e:
            raise RepositoryInvalid(f"Invalid Git repository: {path}") from e
        except git.exc.GitError as e:
            raise RepositoryInvalid(f"Cannot open repository {path}: {e}") from e

    def _clone(self, url: str, path: Path) -> Repo:
        logger.info("cloning_repository", url=url, path=str(path))
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            # Plain git command, so that kill_after_timeout applies
            git.Git().clone(url, str(path), kill_after_timeout=self.fetch_timeout, env=GIT_ENV)
        except git.GitCommandError as e:
            # An existing path is never cloned again, so drop the partial clone
            shutil.rmtree(path, ignore_errors=True)
            text = _error_text(e)
            raise FetchFailed(f"Clone of {url} failed: {text}", classify_fetch_error(text)) from e
        return Repo(path)

    def fetch(self, repo: Repo, config: RepositoryConfig) -> Optional[str]:
        """Fetch the configured remote, pruning deleted branches.

        Returns:
            URL of the fetched remote

        Raises:
            RepositoryInvalid: If the remote is not configured
            FetchFailed: If the fetch fails or times out
        """
        try:
            remote = repo.remote(config.remote)
        except ValueError as e:
            raise RepositoryInvalid(
                f"Repository {config.display_name} has no remote named {config.remote!r}"
            ) from e

        remote_url = remote.url
        logger.debug("fetching", repository=config.display_name, remote=config.remote)

        try:
            with repo.git.custom_environment(**GIT_ENV):
                remote.fetch(prune=True, kill_after_timeout=self.fetch_timeout)
        except git.GitCommandError as e:
            text = _error_text(e)
            raise FetchFailed(
                f"Fetch of {config.remote} failed: {text}", classify_fetch_error(text)
            ) from e
        except ValueError as e:
            # GitPython raises ValueError when it cannot match fetch output to refs
            raise FetchFailed(f"Fetch of {config.remote} failed: {e}") from e

        return remote_url

    def read_tips(self, repo: Repo, config: RepositoryConfig) -> Dict[str, str]:
        """Read the current tip of every monitored branch.

        Remote-tracking branches of the configured remote are read when
        fetching, local heads otherwise.

        Raises:
            RepositoryInvalid: If refs cannot be resolved
        """
        tips: Dict[str, str] = {}
        try:
            if config.fetch:
                prefix = f"refs/remotes/{config.remote}/"
                for ref in repo.refs:
                    if not ref.path.startswith(prefix):
                        continue
                    branch = ref.path[len(prefix):]
                    if branch == "HEAD":
                        continue
                    tips[branch] = ref.commit.hexsha
            else:
                for head in repo.heads:
                    tips[head.name] = head.commit.hexsha
        except (ValueError, git.exc.GitError) as e:
            raise RepositoryInvalid(f"Cannot read branches of {config.display_name}: {e}") from e

        if config.branches is not None:
            wanted = set(config.branches)
            tips = {branch: sha for branch, sha in tips.items() if branch in wanted}
        return tips

    def snapshot(self, config: RepositoryConfig) -> Snapshot:
        """Fetch a repository and capture its branch tips.

        Args:
            config: Repository configuration

        Returns:
            Snapshot holding the tips and the open repository handle
        """
        repo = self.open(config)
        remote_url = None
        if config.fetch:
            remote_url = self.fetch(repo, config)
        elif config.remote in [remote.name for remote in repo.remotes]:
            remote_url = repo.remote(config.remote).url

        tips = self.read_tips(repo, config)
        logger.debug("snapshot_taken", repository=config.display_name, branches=len(tips))
        return Snapshot(
            repository_id=config.repository_id,
            tips=tips,
            remote_url=remote_url,
            branch_order=list(config.branches) if config.branches is not None else None,
            repo=repo,
        )
