#!/usr/bin/env python3
# -*- coding: utf-8 -*-

###############################################################################
# CommitsLedger - Smart Git Synchronization Utility
###############################################################################
#
# DESCRIPTION:
#   Pushes the checked-out branch to every configured remote, one commit at a
#   time. For each remote it calculates which commits are missing and pushes
#   them oldest first, so a remote that stops halfway is always left on a
#   commit that has all its parents.
#
# USAGE:
#   commitsledger [-n] [-v] [-c FILE] [-l FILE] [-C DIR] [--retries N]
#                 [--report-dir DIR] [--no-backup] [--no-checks]
#
# CONFIGURATION (~/.commitsledger.conf, KEY=value lines):
#   PUSH_DELAY    - Seconds to wait between two pushes (default: 0.5)
#   PUSH_RETRIES  - Extra attempts for a failed push, with backoff (default: 0)
#   GIT_TIMEOUT   - Timeout in seconds for every git command (default: 300)
#   LOG_FILE      - Append timestamped log lines to this file
#   VERBOSE       - true/false, mirror the log and show a progress bar
#   DRY_RUN       - true/false, only show what would be pushed
#   REPORT_DIR    - Where to write the summary report (default: home)
#   BACKUP        - true/false, archive the refs before pushing (default: true)
#   Command line options always win over the file.
#
# HOW IT WORKS:
#   1. Check git, permissions and that the workspace is a repository
#   2. Run advisory checks (disk, memory, network, credentials, hooks)
#   3. Back up the refs (skipped in dry-run)
#   4. For every remote, sorted by name:
#        validate name -> ls-remote -> fetch -> remote/branch..branch
#        push each missing commit to refs/heads/<branch>, stop at first error
#   5. Print the results and write a summary report
#
# EXIT CODES:
#   0 - run completed, even if some remotes were skipped or failed
#   1 - fatal error (no git, not a repository, no branch, bad permissions)
#
###############################################################################

import argparse
import os
import signal
import sys

from backup import create_backup, prune_old_backups
from health_checks import check_permissions, run_health_checks
from sync_config import DEFAULT_CONFIG_FILE, build_config, load_config_file
from sync_engine import SyncEngine
from sync_errors import FatalSyncError
from sync_logger import BufferedLogger, SyncLogger
from sync_reporter import ConsoleReporter, write_summary_report
from vcs_backend import GitBackend

__version__ = "1.0.0"

EPILOG = """
Examples:
  %(prog)s                                   # Run normally
  %(prog)s --dry-run                         # Show what would be pushed
  %(prog)s --verbose --log /tmp/commitsledger.log
  %(prog)s -C /path/to/repo --retries 2
"""


def parse_arguments(argv=None):
    """Parse command line arguments.

    Boolean options default to None so that an option which was not given
    does not hide the configuration file value.
    """
    parser = argparse.ArgumentParser(
        prog="commitsledger",
        description="Push the current branch to every remote, one missing commit at a time",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=EPILOG,
    )
    parser.add_argument(
        "-n", "--dry-run",
        action="store_true",
        default=None,
        help="Show what would be pushed without actually pushing",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        default=None,
        help="Show log lines and a progress bar on the console",
    )
    parser.add_argument(
        "-c", "--config",
        metavar="FILE",
        help=f"Use specified configuration file (default: {DEFAULT_CONFIG_FILE})",
    )
    parser.add_argument(
        "-l", "--log",
        metavar="FILE",
        help="Append timestamped log lines to FILE",
    )
    parser.add_argument(
        "-C", "--workspace",
        metavar="DIR",
        default=".",
        help="Path to the git repository (default: current directory)",
    )
    parser.add_argument(
        "--retries",
        type=int,
        help="Extra attempts for a failed push, with exponential backoff",
    )
    parser.add_argument(
        "--report-dir",
        metavar="DIR",
        help="Directory for the summary report (default: home directory)",
    )
    parser.add_argument(
        "--no-backup",
        action="store_true",
        help="Do not archive the repository refs before pushing",
    )
    parser.add_argument(
        "--no-checks",
        action="store_true",
        help="Skip the advisory environment checks",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser.parse_args(argv)


def _terminate(signum, frame):
    # turn SIGTERM into SystemExit so the log file is closed on the way out
    sys.exit(128 + signum)


def prepare_repository(backend, config, logger):
    """Fatal checks, in the order they make sense. Returns the branch name."""
    if not os.path.isdir(config.workspace_dir):
        raise FatalSyncError(f"Workspace directory '{config.workspace_dir}' does not exist")

    logger.info(f"Git version: {backend.git_version()}")
    check_permissions(config.workspace_dir)
    backend.ensure_repository()
    return backend.resolve_branch()


def run_sync(config, logger, backend_factory=GitBackend, stream=None):
    """Run one synchronization. Returns the SyncResult list.

    :raises FatalSyncError: when the run cannot start at all
    """
    backend = backend_factory(config.workspace_dir, timeout=config.git_timeout, logger=logger)
    branch = prepare_repository(backend, config, logger)

    if config.health_checks:
        run_health_checks(backend, config, logger)

    stats = backend.repository_stats()
    if stats:
        logger.info(
            f"Total commits in repository: {stats.get('total_commits', 0)}, "
            f"branches: {stats.get('branches', 0)}, remotes: {stats.get('remotes', 0)}"
        )

    if config.backup and not config.dry_run:
        create_backup(backend.git_dir(), logger)
        prune_old_backups(logger)

    reporter = ConsoleReporter(config, stream=stream)
    reporter.print_header(branch)

    engine = SyncEngine(backend, config, reporter=reporter, logger=logger)
    results = engine.run(branch)
    reporter.print_footer()

    if config.dry_run:
        logger.info("Dry run completed successfully")
    else:
        logger.info("All remotes processed")

    try:
        report_file = write_summary_report(config, branch, results, stats)
        logger.info(f"Summary report created at {report_file}")
    except OSError as e:
        logger.warning(f"Could not write summary report: {e}")

    return results


def main(argv=None, backend_factory=GitBackend, stream=None):
    """Command line entry point. Returns the process exit code."""
    args = parse_arguments(argv)

    # the log file may come from the configuration file, hold messages until then
    boot_logger = BufferedLogger()
    try:
        file_values = load_config_file(args.config or DEFAULT_CONFIG_FILE, boot_logger)
    except OSError as e:
        print(f"Error: cannot read configuration file: {e}", file=sys.stderr)
        return 1
    config = build_config(args, file_values, boot_logger)

    logger = SyncLogger(config.log_file, config.verbose)
    boot_logger.replay(logger)

    previous_handler = signal.signal(signal.SIGTERM, _terminate)
    try:
        run_sync(config, logger, backend_factory, stream)
        return 0
    except FatalSyncError as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted, remotes are left as they are")
        print("Interrupted.", file=sys.stderr)
        return 130
    finally:
        logger.info("Performing cleanup operations")
        logger.close()
        signal.signal(signal.SIGTERM, previous_handler)


if __name__ == "__main__":
    sys.exit(main())
