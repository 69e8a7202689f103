"""Configuration models."""

import hashlib
import os
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class NewBranchPolicy(str, Enum):
    """How much of a newly discovered branch is reported."""

    TIP = "tip"
    FULL = "full"


def default_cache_dir() -> Path:
    """Cache directory used for clones and state when none is configured."""
    base = os.environ.get("XDG_CACHE_HOME")
    return (Path(base) if base else Path.home() / ".cache") / "gitmon"


def hash_repo_url(url: str) -> str:
    """Directory name used for the clone of a remote URL."""
    return hashlib.sha1(url.encode()).hexdigest()


def is_remote_url(value: str) -> bool:
    """Whether a ``repos`` entry names a remote rather than a local path."""
    return "://" in value or (value.startswith("git@") and ":" in value)


class RepositoryConfig(BaseModel):
    """Configuration for a monitored Git repository."""

    model_config = ConfigDict(frozen=True)

    path: Path = Field(..., description="Path to the local clone")
    name: Optional[str] = Field(None, description="Display name")
    url: Optional[str] = Field(None, description="Remote URL to clone from when path is missing")
    branches: Optional[List[str]] = Field(
        None, description="Branches to monitor, in display order (all when unset)"
    )
    remote: str = Field("origin", description="Remote to fetch from")
    fetch: bool = Field(True, description="Fetch before reading branch tips")

    @field_validator("path", mode="before")
    @classmethod
    def _path_not_empty(cls, value: Any) -> Any:
        if value is None or not str(value).strip():
            raise ValueError("repository path must not be empty")
        return value

    @property
    def repository_id(self) -> str:
        """Stable key of this repository in the watermark store."""
        return str(self.path.expanduser().absolute())

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        if self.url:
            return self.url
        return self.path.name or str(self.path)


class MailConfig(BaseModel):
    """SMTP settings for report delivery."""

    sender: str = Field(..., alias="from", description="Sender address, also the SMTP login")
    recipient: str = Field(..., alias="to", description="Recipient address")
    token: str = Field("", description="SMTP password or app token")
    smtp_host: str = Field("smtp.gmail.com", description="SMTP relay host")
    smtp_port: int = Field(465, description="SMTP relay port")
    use_ssl: bool = Field(True, description="Implicit TLS; STARTTLS is used when false")
    subject: str = Field("Git Commit Notification", description="Mail subject")
    timeout: float = Field(30.0, description="SMTP connection timeout in seconds")

    model_config = ConfigDict(populate_by_name=True)


class MonitorConfig(BaseModel):
    """Top-level gitmon configuration, usually loaded from config.toml."""

    repos: List[RepositoryConfig] = Field(default_factory=list, description="Monitored repositories")
    mail: Optional[MailConfig] = Field(None, description="Mail delivery settings")
    template_path: Optional[Path] = Field(None, description="HTML template with a {{tables}} marker")
    cache_dir: Path = Field(default_factory=default_cache_dir, description="Directory for clones")
    state_dir: Optional[Path] = Field(None, description="Directory for state.json (defaults to cache_dir)")
    max_commits: Optional[int] = Field(None, ge=1, description="Maximum commits listed per branch")
    max_workers: int = Field(4, ge=1, description="Repositories checked concurrently")
    fetch_timeout: float = Field(120.0, gt=0, description="Timeout for a single fetch in seconds")
    repository_timeout: Optional[float] = Field(
        None, gt=0, description="Timeout for a whole repository check (defaults to 2x fetch_timeout)"
    )
    fetch_retries: int = Field(0, ge=0, description="Extra fetch attempts after a failure")
    new_branch_policy: NewBranchPolicy = Field(NewBranchPolicy.TIP, description="Reporting of new branches")
    send_empty: bool = Field(False, description="Send a report even when nothing changed")

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)

        # Flat from/to/token keys as written by older configs
        flat = {key: data.pop(key) for key in ("from", "to", "token") if key in data}
        if flat and "mail" not in data:
            data["mail"] = flat

        cache_dir = Path(data.get("cache_dir") or default_cache_dir()).expanduser()
        data["cache_dir"] = cache_dir

        repos = []
        for entry in data.get("repos") or []:
            if isinstance(entry, str):
                entry = {"url": entry} if is_remote_url(entry) else {"path": entry}
            if isinstance(entry, dict):
                entry = dict(entry)
                if not entry.get("path") and entry.get("url"):
                    entry["path"] = cache_dir / hash_repo_url(entry["url"])
                if entry.get("path"):
                    entry["path"] = Path(entry["path"]).expanduser()
            repos.append(entry)
        data["repos"] = repos
        return data

    @model_validator(mode="after")
    def _check_repos(self) -> "MonitorConfig":
        validate_repositories(self.repos)
        return self

    @property
    def resolved_state_dir(self) -> Path:
        return (self.state_dir or self.cache_dir).expanduser()

    @property
    def resolved_repository_timeout(self) -> float:
        return self.repository_timeout or self.fetch_timeout * 2


def validate_repositories(repos: List[RepositoryConfig]) -> None:
    """Reject empty or duplicated repository paths.

    Raises:
        ValueError: If a path is empty or appears more than once
    """
    seen = set()
    for repo in repos:
        if not str(repo.path).strip():
            raise ValueError(f"Repository {repo.display_name!r} has an empty path")
        if repo.repository_id in seen:
            raise ValueError(f"Repository path configured twice: {repo.path}")
        seen.add(repo.repository_id)
