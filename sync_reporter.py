# -*- coding: utf-8 -*-
"""
Rendering of sync events.

``SyncReporter`` is the interface the engine reports to: a progress event per
attempted push and one result per remote. ``ConsoleReporter`` prints them the
way the command line tool shows them, ``write_summary_report`` produces the
end-of-run text file.
"""

import sys
from datetime import datetime
from pathlib import Path

from sync_models import SyncOutcome

PROGRESS_BAR_WIDTH = 50
SEPARATOR = "-" * 42


class SyncReporter:
    """Receives events from the sync engine. Every hook is optional."""

    def remote_started(self, remote):
        pass

    def gap_computed(self, remote, gap):
        pass

    def progress(self, event):
        pass

    def result(self, result):
        pass


def render_progress_bar(current, total, width=PROGRESS_BAR_WIDTH):
    """Return ``Progress: [====    ] 40% (2/5)``."""
    if total <= 0:
        return f"Progress: [{' ' * width}] 0% (0/0)"
    percentage = current * 100 // total
    completed = width * current // total
    return f"Progress: [{'=' * completed}{' ' * (width - completed)}] {percentage}% ({current}/{total})"


class ConsoleReporter(SyncReporter):
    """Print progress and results for a human watching the run."""

    def __init__(self, config, stream=None):
        self.config = config
        self.stream = stream if stream is not None else sys.stdout
        self.results = []

    def _print(self, message=""):
        print(message, file=self.stream)

    def print_header(self, branch):
        if self.config.dry_run:
            self._print("DRY RUN MODE: No actual pushes will be performed")
        self._print(SEPARATOR)
        self._print("MODE:      Smart Auto-Detect")
        self._print(f"BRANCH:    {branch}")
        if self.config.dry_run:
            self._print("DRY RUN:   Enabled")
        self._print(SEPARATOR)

    def remote_started(self, remote):
        self._print("")
        self._print(f"CONNECTING TO REMOTE: [{remote}]...")

    def gap_computed(self, remote, gap):
        if gap:
            self._print(f"Found {len(gap)} unpushed commits for '{remote}'.")

    def progress(self, event):
        if self.config.verbose:
            self._print(render_progress_bar(event.index, event.total))
        self._print(
            f"[{event.index}/{event.total}] Pushing {event.commit_id[:7]} to {event.remote}... ({event.summary})"
        )

    def result(self, result):
        self.results.append(result)
        if result.outcome == SyncOutcome.PARTIALLY_SYNCHRONIZED:
            self._print(f"Error pushing to {result.remote}. Stopping operations for this remote.")
        self._print(result.describe())

    def print_footer(self):
        failed = [
            r for r in self.results
            if r.outcome in (SyncOutcome.SKIPPED, SyncOutcome.PARTIALLY_SYNCHRONIZED)
        ]
        self._print("")
        if self.config.dry_run:
            self._print("DRY RUN COMPLETED - No changes made to remotes")
        elif failed:
            self._print(f"SYNC FINISHED WITH PROBLEMS ON {len(failed)} REMOTE(S): "
                        + ", ".join(r.remote for r in failed))
        else:
            self._print("ALL REMOTES UPDATED SUCCESSFULLY!")


def summary_report_path(report_dir=None, now=None):
    now = now or datetime.now()
    directory = Path(report_dir).expanduser() if report_dir else Path.home()
    return directory / f".commitsledger_summary_{now.strftime('%Y%m%d_%H%M%S')}.txt"


def write_summary_report(config, branch, results, stats=None, now=None):
    """Write the end-of-run summary and return its path.

    Args:
        config: SyncConfig of the run
        branch: Synchronized branch name
        results: SyncResult list in processing order
        stats: Optional repository statistics from the backend
        now: Timestamp used in the file name and the header

    Returns:
        Path of the written report
    """
    now = now or datetime.now()
    report_file = summary_report_path(config.report_dir, now)
    report_file.parent.mkdir(parents=True, exist_ok=True)

    lines = [
        "CommitsLedger Summary Report",
        f"Generated on: {now.strftime('%Y-%m-%d %H:%M:%S')}",
        "=" * 40,
        f"Branch: {branch}",
        f"Operation mode: {config.mode}",
        f"Log file: {config.log_file or ''}",
        f"Verbose mode: {str(config.verbose).lower()}",
        f"Push delay: {config.push_delay:g} seconds",
        "",
    ]

    if stats:
        lines.append("Git Statistics:")
        lines.append(f"  Total commits: {stats.get('total_commits', 0)}")
        lines.append(f"  Total branches: {stats.get('branches', 0)}")
        lines.append(f"  Total remotes: {stats.get('remotes', 0)}")
        lines.append(f"  Total tags: {stats.get('tags', 0)}")
        lines.append("")

    lines.append("Remote Synchronization Details:")
    if not results:
        lines.append("  (no remotes configured)")
    for result in results:
        lines.append(f"  Remote: {result.remote}")
        lines.append(f"    Outcome: {result.outcome.value}")
        lines.append(f"    Commits in gap: {result.total}")
        if result.outcome == SyncOutcome.PARTIALLY_SYNCHRONIZED:
            lines.append(f"    Failed at: {result.failed_index} of {result.total} ({result.failed_commit})")
        if result.reason:
            lines.append(f"    Reason: {result.reason}")

    with open(report_file, "w", encoding="utf-8", newline="\n") as f:
        f.write("\n".join(lines) + "\n")
    return report_file
