"""Data models for snapshots, change sets and run reports."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from gitmon.errors import ErrorKind, FetchFailureCause, GitmonError
from gitmon.models.commit import CommitInfo


class Snapshot(BaseModel):
    """Branch tips of a repository captured right after a fetch."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    repository_id: str = Field(..., description="Repository the snapshot was taken of")
    tips: Dict[str, str] = Field(default_factory=dict, description="Branch name to tip commit SHA")
    taken_at: datetime = Field(default_factory=datetime.now, description="When the tips were read")
    remote_url: Optional[str] = Field(None, description="URL of the fetched remote")
    branch_order: Optional[List[str]] = Field(
        None, description="Configured branch order, lexical order when unset"
    )

    # Open git.Repo handle used to walk history; never serialized
    repo: Any = Field(None, exclude=True, repr=False)


class ChangeKind(str, Enum):
    """What happened to a branch since the watermark."""

    NEW_COMMITS = "new_commits"
    NEW_BRANCH = "new_branch"
    DELETED = "deleted"
    HISTORY_REWRITTEN = "history_rewritten"


class BranchChange(BaseModel):
    """Changes of one branch, commits newest first."""

    branch: str = Field(..., description="Branch name")
    kind: ChangeKind = Field(..., description="Kind of change")
    commits: List[CommitInfo] = Field(default_factory=list, description="New commits, newest first")
    previous_tip: Optional[str] = Field(None, description="Watermarked tip SHA")
    current_tip: Optional[str] = Field(None, description="Tip SHA in the snapshot")
    truncated: bool = Field(False, description="Commit list was capped by max_commits")


class ChangeSet(BaseModel):
    """Everything new in one repository since its watermark."""

    repository_id: str
    branches: List[BranchChange] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.branches

    @property
    def commit_count(self) -> int:
        return sum(len(change.commits) for change in self.branches)

    def for_branch(self, branch: str) -> Optional[BranchChange]:
        for change in self.branches:
            if change.branch == branch:
                return change
        return None


class RepositoryFailure(BaseModel):
    """Why a repository check did not complete."""

    kind: ErrorKind
    reason: str
    fetch_cause: Optional[FetchFailureCause] = None

    @classmethod
    def from_error(cls, error: BaseException) -> "RepositoryFailure":
        if isinstance(error, GitmonError):
            return cls(
                kind=error.kind,
                reason=error.reason,
                fetch_cause=getattr(error, "cause", None),
            )
        return cls(kind=ErrorKind.INTERNAL, reason=f"{type(error).__name__}: {error}")


class RepositoryResult(BaseModel):
    """Outcome of checking one repository: either changes or a failure."""

    repository_id: str
    name: str
    remote_url: Optional[str] = None
    changes: Optional[ChangeSet] = None
    failure: Optional[RepositoryFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def has_changes(self) -> bool:
        return self.changes is not None and not self.changes.is_empty


class RunReport(BaseModel):
    """Results of one run over all configured repositories, in configured order."""

    started_at: datetime = Field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None
    entries: List[RepositoryResult] = Field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return any(entry.has_changes for entry in self.entries)

    @property
    def failures(self) -> List[RepositoryResult]:
        return [entry for entry in self.entries if not entry.ok]

    @property
    def is_noteworthy(self) -> bool:
        """Whether the report carries anything worth sending."""
        return self.has_changes or bool(self.failures)

    def entry(self, repository_id: str) -> Optional[RepositoryResult]:
        for entry in self.entries:
            if entry.repository_id == repository_id:
                return entry
        return None
