# -*- coding: utf-8 -*-
"""
Data types shared by the sync engine, the git backend and the reporters.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from git_sync_util import short_hash


@dataclass(frozen=True)
class Remote:
    """A configured remote, resolved once per run."""

    name: str
    url: str


@dataclass(frozen=True)
class CommitRecord:
    """One entry of a commit gap: full hash and a truncated subject line."""

    commit_id: str
    summary: str

    @property
    def short_id(self) -> str:
        return short_hash(self.commit_id)

    def __str__(self):
        return f"{self.short_id} - {self.summary}"


@dataclass(frozen=True)
class ProgressEvent:
    """Emitted once for every gap entry the push loop attempts."""

    remote: str
    phase: str
    index: int
    total: int
    commit_id: str
    summary: str


class SyncOutcome(Enum):
    UP_TO_DATE = "up-to-date"
    SYNCHRONIZED = "synchronized"
    PARTIALLY_SYNCHRONIZED = "partially-synchronized"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class SyncResult:
    """Final state of one remote for one run.

    Attributes:
        remote: Remote name
        outcome: Terminal state of the push loop, or SKIPPED
        total: Size of the commit gap
        pushed: Number of gap entries pushed (or planned, in dry-run)
        failed_index: 1-based position of the commit that failed to push
        failed_commit: Hash of the commit that failed to push
        reason: Why the remote was skipped or why the push failed
        dry_run: True when no push was actually performed
    """

    remote: str
    outcome: SyncOutcome
    total: int = 0
    pushed: int = 0
    failed_index: Optional[int] = None
    failed_commit: Optional[str] = None
    reason: Optional[str] = None
    dry_run: bool = False

    def describe(self) -> str:
        if self.outcome == SyncOutcome.UP_TO_DATE:
            return f"Remote '{self.remote}' is already up to date."
        if self.outcome == SyncOutcome.SKIPPED:
            return f"Remote '{self.remote}' skipped: {self.reason}"
        if self.outcome == SyncOutcome.PARTIALLY_SYNCHRONIZED:
            return (
                f"Remote '{self.remote}' partially synchronized: failed at commit "
                f"{self.failed_index} of {self.total} ({short_hash(self.failed_commit or '')})"
            )
        if self.dry_run:
            return f"DRY RUN: Would have synchronized '{self.remote}' completely ({self.total} commits)."
        return f"'{self.remote}' is now fully synchronized! ({self.pushed} commits pushed)"
