"""Conversion of GitPython commits into report records."""

from datetime import datetime
from typing import Optional

from git import Commit

from gitmon.models import CommitInfo

CHANGE_ID_PREFIX = "Change-Id:"


def parse_change_id(message: str) -> Optional[str]:
    """Return the Gerrit Change-Id trailer of a commit message, if present."""
    for line in message.splitlines():
        if line.startswith(CHANGE_ID_PREFIX):
            return line[len(CHANGE_ID_PREFIX):].strip() or None
    return None


def extract_commit_info(commit: Commit) -> CommitInfo:
    """Extract report metadata from a GitPython Commit object.

    Args:
        commit: GitPython Commit object

    Returns:
        CommitInfo object
    """
    message = commit.message
    if isinstance(message, bytes):
        message = message.decode("utf-8", errors="replace")

    # Extract message summary (first line)
    message_lines = message.strip().split("\n")
    summary = message_lines[0] if message_lines else ""

    return CommitInfo(
        hash=commit.hexsha,
        short_hash=commit.hexsha[:7],
        author_name=commit.author.name or "Unknown",
        author_email=commit.author.email or "",
        timestamp=datetime.fromtimestamp(commit.committed_date),
        summary=summary,
        change_id=parse_change_id(message),
    )
