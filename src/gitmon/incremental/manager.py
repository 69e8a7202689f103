"""Monitor engine - orchestrates a check of all configured repositories."""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import List, Optional, Sequence

import structlog

from gitmon.errors import (
    ConfigInvalid,
    FetchFailed,
    FetchFailureCause,
    GitmonError,
    StoreUnavailable,
)
from gitmon.extraction.snapshotter import RepositorySnapshotter
from gitmon.incremental.delta import ChangeDetector
from gitmon.incremental.state import Watermark, WatermarkStore
from gitmon.models import (
    MonitorConfig,
    RepositoryConfig,
    RepositoryFailure,
    RepositoryResult,
    RunReport,
    Snapshot,
)
from gitmon.models.config import validate_repositories

logger = structlog.get_logger(__name__)


class RepositoryOutcome:
    """Result of checking one repository, with the watermark staged for commit."""

    def __init__(
        self,
        result: RepositoryResult,
        previous: Optional[Watermark] = None,
        staged: Optional[Watermark] = None,
    ):
        self.result = result
        self.previous = previous
        self.staged = staged

    @property
    def needs_commit(self) -> bool:
        return self.result.ok and self.staged is not None and self.staged != self.previous


class MonitorEngine:
    """Checks repositories concurrently and advances their watermarks.

    Each repository is checked independently in a worker thread: load the
    watermark, fetch and snapshot, diff. Failures are recorded per repository
    and never stop the others. Watermarks are written only after every
    repository has been processed, and only for repositories whose check
    succeeded.
    """

    def __init__(
        self,
        store: WatermarkStore,
        snapshotter: Optional[RepositorySnapshotter] = None,
        detector: Optional[ChangeDetector] = None,
        max_workers: int = 4,
        repository_timeout: Optional[float] = None,
        fetch_retries: int = 0,
    ):
        """Initialize the monitor engine.

        Args:
            store: Watermark store
            snapshotter: Repository snapshotter (default settings when omitted)
            detector: Change detector (default settings when omitted)
            max_workers: Number of repositories checked concurrently
            repository_timeout: Seconds allowed for one repository check
            fetch_retries: Extra snapshot attempts after a non-auth fetch failure
        """
        self.store = store
        self.snapshotter = snapshotter or RepositorySnapshotter()
        self.detector = detector or ChangeDetector()
        self.max_workers = max(1, max_workers)
        self.repository_timeout = repository_timeout
        self.fetch_retries = max(0, fetch_retries)

    @classmethod
    def from_config(cls, config: MonitorConfig) -> "MonitorEngine":
        """Build an engine wired from a loaded configuration."""
        return cls(
            store=WatermarkStore(config.resolved_state_dir),
            snapshotter=RepositorySnapshotter(fetch_timeout=config.fetch_timeout),
            detector=ChangeDetector(
                new_branch_policy=config.new_branch_policy,
                max_commits=config.max_commits,
            ),
            max_workers=config.max_workers,
            repository_timeout=config.resolved_repository_timeout,
            fetch_retries=config.fetch_retries,
        )

    def _snapshot(self, config: RepositoryConfig) -> Snapshot:
        attempt = 0
        while True:
            try:
                return self.snapshotter.snapshot(config)
            except FetchFailed as e:
                if e.cause == FetchFailureCause.AUTH or attempt >= self.fetch_retries:
                    raise
                attempt += 1
                logger.info(
                    "fetch_retry",
                    repository=config.display_name,
                    attempt=attempt,
                    reason=e.reason,
                )

    def check_repository(self, config: RepositoryConfig) -> RepositoryOutcome:
        """Run the load, snapshot and diff pipeline for one repository.

        Never raises: any error becomes a failure entry.

        Args:
            config: Repository configuration

        Returns:
            RepositoryOutcome with the change set and the staged watermark
        """
        result = RepositoryResult(repository_id=config.repository_id, name=config.display_name)
        try:
            watermark = self.store.load(config.repository_id)
            snapshot = self._snapshot(config)
            result.remote_url = snapshot.remote_url or config.url
            changes = self.detector.diff(watermark, snapshot)
            staged = self.detector.advance(watermark, snapshot)
        except GitmonError as e:
            logger.warning(
                "repository_failed",
                repository=config.display_name,
                kind=e.kind.value,
                reason=e.reason,
            )
            result.failure = RepositoryFailure.from_error(e)
            return RepositoryOutcome(result)
        except Exception as e:
            logger.exception("repository_crashed", repository=config.display_name)
            result.failure = RepositoryFailure.from_error(e)
            return RepositoryOutcome(result)

        result.changes = changes
        logger.info(
            "repository_checked",
            repository=config.display_name,
            branches=len(changes.branches),
            commits=changes.commit_count,
        )
        return RepositoryOutcome(result, previous=watermark, staged=staged)

    async def _check_bounded(
        self, executor: ThreadPoolExecutor, config: RepositoryConfig
    ) -> RepositoryOutcome:
        """Check one repository on the engine's worker pool.

        The timeout starts when a worker picks the check up. A check that
        times out is abandoned but keeps its worker until git returns, so the
        pool never runs more than max_workers checks at once.
        """
        loop = asyncio.get_running_loop()
        started = asyncio.Event()

        def work() -> RepositoryOutcome:
            loop.call_soon_threadsafe(started.set)
            return self.check_repository(config)

        future = loop.run_in_executor(executor, work)
        await started.wait()
        try:
            return await asyncio.wait_for(future, timeout=self.repository_timeout)
        except asyncio.TimeoutError:
            error = FetchFailed(
                f"Check did not finish within {self.repository_timeout:g} seconds",
                FetchFailureCause.TIMEOUT,
            )
            logger.warning(
                "repository_timeout",
                repository=config.display_name,
                timeout=self.repository_timeout,
            )
            result = RepositoryResult(
                repository_id=config.repository_id,
                name=config.display_name,
                remote_url=config.url,
                failure=RepositoryFailure.from_error(error),
            )
            return RepositoryOutcome(result)

    def commit(self, outcomes: List[RepositoryOutcome]) -> None:
        """Persist staged watermarks of successful repositories, one at a time.

        A repository whose watermark cannot be written is turned into a
        failure entry; its commits are reported again on the next run.
        """
        for outcome in outcomes:
            if not outcome.needs_commit:
                continue
            result = outcome.result
            try:
                self.store.save(result.repository_id, outcome.staged)
            except StoreUnavailable as e:
                logger.error("watermark_commit_failed", repository=result.name, reason=e.reason)
                result.changes = None
                result.failure = RepositoryFailure.from_error(e)

    def validate(self, repositories: Sequence[RepositoryConfig]) -> None:
        """Run-level preconditions.

        Raises:
            ConfigInvalid: If a repository path is empty or duplicated
            StoreUnavailable: If the watermark store cannot be used
        """
        try:
            validate_repositories(list(repositories))
        except ValueError as e:
            raise ConfigInvalid(str(e)) from e
        self.store.check()

    async def run_async(self, repositories: Sequence[RepositoryConfig]) -> RunReport:
        """Check all repositories and commit the watermarks of successful ones.

        Args:
            repositories: Repositories in report order

        Returns:
            RunReport with one entry per repository, in input order
        """
        self.validate(repositories)

        report = RunReport(started_at=datetime.now())
        logger.info("run_started", repositories=len(repositories), workers=self.max_workers)

        executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="gitmon")
        try:
            tasks = [self._check_bounded(executor, config) for config in repositories]
            outcomes = list(await asyncio.gather(*tasks))
        finally:
            # Timed-out checks are left to finish on their own, never joined
            executor.shutdown(wait=False, cancel_futures=True)

        self.commit(outcomes)

        report.entries = [outcome.result for outcome in outcomes]
        report.finished_at = datetime.now()
        logger.info(
            "run_finished",
            repositories=len(report.entries),
            failures=len(report.failures),
            has_changes=report.has_changes,
        )
        return report

    def run(self, repositories: Sequence[RepositoryConfig]) -> RunReport:
        """Synchronous wrapper around :meth:`run_async`."""
        return asyncio.run(self.run_async(repositories))
