"""Error kinds raised by gitmon components.

Errors inside a single repository's pipeline are caught by the monitor engine
and turned into report entries. Configuration and store-wide errors are
run-level and abort the run before any repository is checked.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Kinds of failure a run or a repository check can end with."""

    CONFIG_INVALID = "config_invalid"
    REPOSITORY_INVALID = "repository_invalid"
    FETCH_FAILED = "fetch_failed"
    STORE_UNAVAILABLE = "store_unavailable"
    HISTORY_REWRITTEN = "history_rewritten"
    RENDER_FAILED = "render_failed"
    DELIVERY_FAILED = "delivery_failed"
    INTERNAL = "internal"


class FetchFailureCause(str, Enum):
    """Why a fetch (or initial clone) did not complete."""

    TIMEOUT = "timeout"
    AUTH = "auth"
    NETWORK = "network"


class GitmonError(Exception):
    """Base class for all gitmon errors."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class ConfigInvalid(GitmonError):
    """Configuration could not be loaded or is inconsistent."""

    kind = ErrorKind.CONFIG_INVALID


class RepositoryInvalid(GitmonError):
    """Local repository is missing, not a git repository, or corrupt."""

    kind = ErrorKind.REPOSITORY_INVALID


class FetchFailed(GitmonError):
    """Fetching from the remote failed."""

    kind = ErrorKind.FETCH_FAILED

    def __init__(
        self, reason: str, cause: FetchFailureCause = FetchFailureCause.NETWORK
    ) -> None:
        super().__init__(reason)
        self.cause = cause


class StoreUnavailable(GitmonError):
    """Watermark state cannot be read or written."""

    kind = ErrorKind.STORE_UNAVAILABLE


class HistoryRewritten(GitmonError):
    """A branch tip no longer descends from its watermark.

    Never raised across a repository boundary: the change detector reports it
    as a ``history_rewritten`` branch entry instead.
    """

    kind = ErrorKind.HISTORY_REWRITTEN

    def __init__(self, branch: str, previous_tip: str, current_tip: str) -> None:
        super().__init__(
            f"History of {branch} rewritten, tip is now {current_tip[:12]} "
            f"(was {previous_tip[:12]})"
        )
        self.branch = branch
        self.previous_tip = previous_tip
        self.current_tip = current_tip


class RenderFailed(GitmonError):
    """The report document could not be produced."""

    kind = ErrorKind.RENDER_FAILED


class DeliveryFailed(GitmonError):
    """The report could not be handed to the mail transport."""

    kind = ErrorKind.DELIVERY_FAILED

