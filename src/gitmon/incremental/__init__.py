"""Incremental change detection for gitmon.

This package keeps a watermark per repository and branch, compares it with a
fresh snapshot after each fetch, and reports only the commits that appeared
since the previous run.
"""

from gitmon.incremental.state import Watermark, WatermarkFile, WatermarkStore
from gitmon.incremental.delta import ChangeDetector
from gitmon.incremental.manager import MonitorEngine, RepositoryOutcome

__all__ = [
    "Watermark",
    "WatermarkFile",
    "WatermarkStore",
    "ChangeDetector",
    "MonitorEngine",
    "RepositoryOutcome",
]
