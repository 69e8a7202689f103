"""Data models for repository monitoring."""

from gitmon.models.commit import CommitInfo
from gitmon.models.config import MailConfig, MonitorConfig, NewBranchPolicy, RepositoryConfig
from gitmon.models.report import (
    BranchChange,
    ChangeKind,
    ChangeSet,
    RepositoryFailure,
    RepositoryResult,
    RunReport,
    Snapshot,
)

__all__ = [
    "CommitInfo",
    "RepositoryConfig",
    "MailConfig",
    "MonitorConfig",
    "NewBranchPolicy",
    "Snapshot",
    "ChangeKind",
    "BranchChange",
    "ChangeSet",
    "RepositoryFailure",
    "RepositoryResult",
    "RunReport",
]
