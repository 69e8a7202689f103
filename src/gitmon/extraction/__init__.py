"""Git repository access: fetching, branch tips and commit metadata."""

from gitmon.extraction.commits import extract_commit_info, parse_change_id
from gitmon.extraction.snapshotter import RepositorySnapshotter, classify_fetch_error

__all__ = [
    "RepositorySnapshotter",
    "classify_fetch_error",
    "extract_commit_info",
    "parse_change_id",
]
