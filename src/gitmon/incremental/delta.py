"""Delta detection between a watermark and a fresh snapshot.

Detects new commits per branch since the last report and handles edge cases
like new branches, deleted branches, rebases and force pushes.
"""

from typing import List, Optional, Tuple

import git

from gitmon.errors import HistoryRewritten
from gitmon.extraction.commits import extract_commit_info
from gitmon.incremental.state import Watermark
from gitmon.models import BranchChange, ChangeKind, ChangeSet, NewBranchPolicy, Snapshot


class ChangeDetector:
    """Computes the change set of a repository.

    Has no side effects: it only reads the commit graph through the
    repository handle carried by the snapshot.
    """

    def __init__(
        self,
        new_branch_policy: NewBranchPolicy = NewBranchPolicy.TIP,
        max_commits: Optional[int] = None,
    ):
        """Initialize the change detector.

        Args:
            new_branch_policy: Whether a new branch lists only its tip or its history
            max_commits: Maximum number of commits listed per branch
        """
        self.new_branch_policy = new_branch_policy
        self.max_commits = max_commits

    def find_new_commits(
        self, repo: git.Repo, branch: str, last_commit: str, tip: str
    ) -> List[git.Commit]:
        """Find all commits reachable from the tip but not from the last commit.

        Args:
            repo: GitPython repository object
            branch: Branch name, for error reporting
            last_commit: SHA of the watermarked commit
            tip: SHA of the current tip

        Returns:
            New commits, newest first by commit time

        Raises:
            HistoryRewritten: If last_commit is gone or no longer an ancestor of tip
        """
        if last_commit == tip:
            return []

        try:
            repo.commit(last_commit)
        except (git.exc.BadName, git.exc.BadObject, ValueError) as e:
            raise HistoryRewritten(branch, last_commit, tip) from e

        try:
            if not repo.is_ancestor(last_commit, tip):
                raise HistoryRewritten(branch, last_commit, tip)
        except git.GitCommandError as e:
            raise HistoryRewritten(branch, last_commit, tip) from e

        # "last..tip" means all commits reachable from tip but not from last
        commits = list(repo.iter_commits(f"{last_commit}..{tip}"))

        # Stable sort keeps git's topological order for equal commit times
        return sorted(commits, key=lambda commit: commit.committed_date, reverse=True)

    def _cap(self, commits: List[git.Commit]) -> Tuple[List[git.Commit], bool]:
        if self.max_commits and len(commits) > self.max_commits:
            return commits[: self.max_commits], True
        return commits, False

    def _new_branch(self, repo: git.Repo, branch: str, tip: str) -> BranchChange:
        if self.new_branch_policy == NewBranchPolicy.FULL:
            kwargs = {"max_count": self.max_commits + 1} if self.max_commits else {}
            commits = list(repo.iter_commits(tip, **kwargs))
            commits.sort(key=lambda commit: commit.committed_date, reverse=True)
        else:
            commits = [repo.commit(tip)]
        commits, truncated = self._cap(commits)
        return BranchChange(
            branch=branch,
            kind=ChangeKind.NEW_BRANCH,
            commits=[extract_commit_info(commit) for commit in commits],
            current_tip=tip,
            truncated=truncated,
        )

    def _existing_branch(
        self, repo: git.Repo, branch: str, last_commit: str, tip: str
    ) -> Optional[BranchChange]:
        try:
            commits = self.find_new_commits(repo, branch, last_commit, tip)
        except HistoryRewritten:
            return BranchChange(
                branch=branch,
                kind=ChangeKind.HISTORY_REWRITTEN,
                commits=[extract_commit_info(repo.commit(tip))],
                previous_tip=last_commit,
                current_tip=tip,
            )

        if not commits:
            return None

        commits, truncated = self._cap(commits)
        return BranchChange(
            branch=branch,
            kind=ChangeKind.NEW_COMMITS,
            commits=[extract_commit_info(commit) for commit in commits],
            previous_tip=last_commit,
            current_tip=tip,
            truncated=truncated,
        )

    def _sort_key(self, snapshot: Snapshot):
        order = {name: index for index, name in enumerate(snapshot.branch_order or [])}
        return lambda change: (order.get(change.branch, len(order)), change.branch)

    def diff(self, watermark: Watermark, snapshot: Snapshot) -> ChangeSet:
        """Compare a snapshot against the watermark of the same repository.

        Args:
            watermark: Last reported state
            snapshot: Fresh branch tips, with an open repository handle

        Returns:
            ChangeSet with one entry per changed branch, in stable branch order
        """
        repo = snapshot.repo
        changes: List[BranchChange] = []

        for branch, tip in snapshot.tips.items():
            last_commit = watermark.branches.get(branch)
            if last_commit is None:
                changes.append(self._new_branch(repo, branch, tip))
                continue
            change = self._existing_branch(repo, branch, last_commit, tip)
            if change is not None:
                changes.append(change)

        monitored = set(snapshot.branch_order) if snapshot.branch_order is not None else None
        for branch, last_commit in watermark.branches.items():
            if branch in snapshot.tips:
                continue
            if monitored is not None and branch not in monitored:
                continue
            changes.append(
                BranchChange(branch=branch, kind=ChangeKind.DELETED, previous_tip=last_commit)
            )

        changes.sort(key=self._sort_key(snapshot))
        return ChangeSet(repository_id=snapshot.repository_id, branches=changes)

    def advance(self, watermark: Watermark, snapshot: Snapshot) -> Watermark:
        """Build the watermark to persist once the check has succeeded.

        Every monitored branch moves to the tip seen in the snapshot; deleted
        branches are dropped. Branches outside a configured filter keep their
        stored tip, so widening the filter later resumes where they left off.
        An unchanged repository keeps its watermark as is.
        """
        branches = dict(snapshot.tips)
        if snapshot.branch_order is not None:
            monitored = set(snapshot.branch_order)
            for branch, sha in watermark.branches.items():
                if branch not in monitored:
                    branches[branch] = sha

        if watermark.branches == branches:
            return watermark.model_copy(deep=True)
        return Watermark(branches=branches, last_checked_at=snapshot.taken_at)
