"""HTML rendering of run reports."""

from html import escape
from pathlib import Path
from typing import List, Optional

import structlog

from gitmon.errors import RenderFailed
from gitmon.models import BranchChange, ChangeKind, CommitInfo, RepositoryResult, RunReport

logger = structlog.get_logger(__name__)

TABLES_MARKER = "{{tables}}"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def web_url(remote_url: Optional[str]) -> Optional[str]:
    """Turn a clone URL into the https URL of the project page.

    ``git@host:owner/repo.git`` becomes ``https://host/owner/repo``.
    """
    if not remote_url:
        return None
    url = remote_url.strip()
    if url.startswith("git@") and ":" in url:
        host, _, path = url[len("git@"):].partition(":")
        url = f"https://{host}/{path}"
    elif url.startswith("ssh://"):
        url = "https://" + url[len("ssh://"):].split("@", 1)[-1]
    if url.endswith(".git"):
        url = url[: -len(".git")]
    return url.rstrip("/")


def trim_after_domain(url: str) -> str:
    """Keep scheme and host of a URL, drop the path."""
    scheme, sep, rest = url.partition("://")
    if not sep:
        scheme, rest = "", url
    host = rest.split("/", 1)[0]
    return f"{scheme}://{host}" if scheme else host


def commit_url(remote_url: Optional[str], commit: CommitInfo) -> Optional[str]:
    """Link to a commit on its forge, when the forge is recognised."""
    base = web_url(remote_url)
    if not base or not base.startswith("http"):
        return None
    if "github.com" in base:
        return f"{base}/commit/{commit.hash}"
    if "gitlab.com" in base:
        return f"{base}/-/commit/{commit.hash}.patch"
    if "bitbucket.org" in base:
        return f"{base}/commits/{commit.hash}.patch"
    if "gerrit" in base and commit.change_id:
        return f"{trim_after_domain(base)}/r/q/{commit.change_id}"
    return None


class ReportRenderer:
    """Renders a RunReport as an HTML document.

    A template file, when given, must contain a ``{{tables}}`` marker which
    is replaced by the generated sections.
    """

    def __init__(self, template_path: Optional[Path] = None) -> None:
        self.template_path = Path(template_path).expanduser() if template_path else None

    def _commit_row(self, entry: RepositoryResult, commit: CommitInfo) -> str:
        url = commit_url(entry.remote_url, commit)
        if url:
            id_cell = f'<a href="{escape(url)}">{escape(commit.hash)}</a>'
        else:
            id_cell = escape(commit.hash)
        return (
            f"<tr><td>{id_cell}</td>"
            f"<td>{commit.timestamp.strftime(DATE_FORMAT)}</td>"
            f"<td>{escape(commit.author_name)}</td>"
            f"<td>{escape(commit.summary)}</td></tr>"
        )

    def _branch_heading(self, change: BranchChange) -> str:
        notes: List[str] = []
        if change.kind == ChangeKind.NEW_BRANCH:
            notes.append("new branch")
        elif change.kind == ChangeKind.DELETED:
            notes.append(f"deleted, was {(change.previous_tip or '')[:7]}")
        elif change.kind == ChangeKind.HISTORY_REWRITTEN:
            notes.append(f"history rewritten, tip is now {(change.current_tip or '')[:7]}")
        if change.truncated:
            notes.append(f"showing latest {len(change.commits)} commits")
        suffix = f" ({'; '.join(notes)})" if notes else ""
        return f"<h3>Branch: {escape(change.branch)}{escape(suffix)}</h3>"

    def _branch_section(self, entry: RepositoryResult, change: BranchChange) -> str:
        parts = [self._branch_heading(change)]
        if change.commits:
            parts.append(
                '<table border="1"><tr><th>ID</th><th>Date</th>'
                "<th>Author</th><th>Message</th></tr>"
            )
            parts.extend(self._commit_row(entry, commit) for commit in change.commits)
            parts.append("</table>")
        return "".join(parts)

    def render_entry(self, entry: RepositoryResult) -> str:
        """Render one repository section, or an empty string if nothing to show."""
        heading = f"<h2>Repository: {escape(entry.name)}</h2>"
        if entry.failure is not None:
            return (
                f'{heading}<p class="failure"><b>{escape(entry.failure.kind.value)}</b>: '
                f"{escape(entry.failure.reason)}</p>"
            )
        if not entry.has_changes:
            return ""
        sections = [self._branch_section(entry, change) for change in entry.changes.branches]
        return heading + "".join(sections)

    def render_tables(self, report: RunReport) -> str:
        return "".join(self.render_entry(entry) for entry in report.entries)

    def render(self, report: RunReport) -> str:
        """Render the full HTML document.

        Raises:
            RenderFailed: If the template cannot be read
        """
        tables = self.render_tables(report)

        if self.template_path is not None:
            try:
                template = self.template_path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                raise RenderFailed(f"Cannot read template {self.template_path}: {e}") from e
            if TABLES_MARKER not in template:
                logger.warning("template_marker_missing", template=str(self.template_path))
            return template.replace(TABLES_MARKER, tables)

        return f"<html><body><h1>Git Commit Report</h1>{tables}</body></html>"
