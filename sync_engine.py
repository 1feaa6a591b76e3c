# -*- coding: utf-8 -*-
"""
Per-remote commit gap synchronization.

For every remote the engine validates the name, checks that the remote is
reachable, fetches it, computes the commits that are on the local branch but
not on ``remote/branch`` (ancestors first) and pushes them one commit at a
time. The first failed push stops that remote; other remotes still run.

Remotes are processed sequentially in lexicographic order. A computed gap is
never recomputed during the push loop.
"""

import time
from typing import List, Optional

from git_sync_util import is_valid_remote_name, sanitize_remote_url
from sync_errors import CommandError, GitCommandError, PushError, RemoteUnavailableError
from sync_models import CommitRecord, ProgressEvent, Remote, SyncOutcome, SyncResult
from sync_reporter import SyncReporter

PUSH_PHASE = "push"
RETRY_BACKOFF_BASE = 1.0


class NullLogger:
    def info(self, message):
        pass

    def warning(self, message):
        pass

    def error(self, message):
        pass


class SyncEngine:
    """Synchronize one local branch to every configured remote."""

    def __init__(self, backend, config, reporter=None, logger=None, sleep=time.sleep):
        """
        :param backend: A VcsBackend implementation
        :param config: SyncConfig for this run
        :param reporter: Receives progress events and one SyncResult per remote
        :param logger: A python logger alike object (info, warning, error)
        :param sleep: Injected for tests, called for throttling and retry backoff
        """
        self.backend = backend
        self.config = config
        self.reporter = reporter or SyncReporter()
        self.logger = logger or NullLogger()
        self._sleep = sleep

    def discover_remotes(self) -> List[str]:
        """Remote names sorted lexicographically, backend order is not stable."""
        return sorted(self.backend.list_remotes())

    def run(self, branch: Optional[str] = None) -> List[SyncResult]:
        """Synchronize ``branch`` (default: the checked-out branch) to all remotes."""
        if branch is None:
            branch = self.backend.resolve_branch()
        self.logger.info(f"Starting commitsledger synchronization for branch: {branch}")

        results = []
        for name in self.discover_remotes():
            result = self.sync_remote(name, branch)
            self.reporter.result(result)
            results.append(result)
        return results

    def _skip(self, name, reason) -> SyncResult:
        self.logger.error(f"Skipping remote '{name}': {reason}")
        return SyncResult(name, SyncOutcome.SKIPPED, reason=reason, dry_run=self.config.dry_run)

    def resolve_remote(self, name: str) -> Remote:
        """Validate a remote and make sure it can be used for this run.

        :raises RemoteUnavailableError: invalid name, unknown remote, unreachable or unfetchable
        """
        if not is_valid_remote_name(name):
            raise RemoteUnavailableError(name, "invalid remote name")
        url = self.backend.remote_url(name)
        if not url:
            raise RemoteUnavailableError(name, "remote does not exist")
        self.logger.info(f"Connecting to remote '{name}' ({sanitize_remote_url(url)})")
        self.backend.check_connectivity(name)
        self.backend.fetch(name)
        return Remote(name, url)

    def compute_gap(self, remote: Remote, branch: str) -> List[CommitRecord]:
        """Commits on the local branch missing from ``remote/branch``, oldest first.

        When the remote has no such branch yet the whole local history is the gap.
        """
        base = self.backend.remote_tracking_ref(remote.name, branch)
        if base is None:
            self.logger.warning(
                f"Branch '{branch}' not found on '{remote.name}', assuming all commits need to be pushed"
            )
        return list(self.backend.commits_between(base, branch))

    def sync_remote(self, name: str, branch: str) -> SyncResult:
        self.reporter.remote_started(name)
        try:
            remote = self.resolve_remote(name)
        except RemoteUnavailableError as e:
            return self._skip(name, e.reason)

        try:
            gap = self.compute_gap(remote, branch)
        except (CommandError, GitCommandError) as e:
            return self._skip(name, f"unable to compute commit gap ({e})")
        self.reporter.gap_computed(remote.name, gap)
        if not gap:
            self.logger.info(f"Remote '{remote.name}' is already up to date")
            return SyncResult(remote.name, SyncOutcome.UP_TO_DATE, dry_run=self.config.dry_run)

        self.logger.info(f"Found {len(gap)} unpushed commits for '{remote.name}'")
        return self.push_gap(remote, branch, tuple(gap))

    def push_gap(self, remote: Remote, branch: str, gap) -> SyncResult:
        """Push the gap entries in order, stopping at the first failure."""
        total = len(gap)
        for index, record in enumerate(gap, start=1):
            self.reporter.progress(
                ProgressEvent(remote.name, PUSH_PHASE, index, total, record.commit_id, record.summary)
            )

            if self.config.dry_run:
                self.logger.info(f"DRY RUN: Would push {record} to {remote.name}")
                continue

            try:
                self.push_with_retry(remote.name, record, branch)
            except PushError as e:
                self.logger.error(f"Failed to push {record.short_id} to {remote.name}: {e}")
                return SyncResult(
                    remote.name,
                    SyncOutcome.PARTIALLY_SYNCHRONIZED,
                    total=total,
                    pushed=index - 1,
                    failed_index=index,
                    failed_commit=record.commit_id,
                    reason=str(e),
                )

            if index < total and self.config.push_delay > 0:
                self._sleep(self.config.push_delay)

        return SyncResult(
            remote.name,
            SyncOutcome.SYNCHRONIZED,
            total=total,
            pushed=total,
            dry_run=self.config.dry_run,
        )

    def push_with_retry(self, remote_name: str, record: CommitRecord, branch: str) -> None:
        """Push one commit, retrying the same commit with exponential backoff.

        Only the failing commit is retried, later commits wait for it.
        """
        attempts = 1 + max(0, self.config.push_retries)
        for attempt in range(1, attempts + 1):
            try:
                self.backend.push_one(remote_name, record.commit_id, branch)
                if attempt > 1:
                    self.logger.info(f"Push of {record.short_id} succeeded on attempt {attempt}")
                return
            except PushError as e:
                if attempt == attempts:
                    raise
                wait = RETRY_BACKOFF_BASE * 2 ** (attempt - 1)
                self.logger.warning(
                    f"Push of {record.short_id} to {remote_name} failed (attempt {attempt}/{attempts}), "
                    f"retrying in {wait:g}s: {e}"
                )
                self._sleep(wait)
