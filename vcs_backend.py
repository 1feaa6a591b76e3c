# -*- coding: utf-8 -*-
"""
Version control access for commitsledger.

The sync engine only talks to the small ``VcsBackend`` interface below.
``GitBackend`` implements it by running the git binary; tests use an
in-memory implementation instead of a real repository.
"""

from pathlib import Path
from typing import Dict, List, Optional

from git_sync_util import truncate_summary
from run_command import DEFAULT_TIMEOUT, PrefixedCommandLogger, execute
from sync_errors import (
    CommandError,
    FatalSyncError,
    GitCommandError,
    PushError,
    RemoteUnavailableError,
)
from sync_models import CommitRecord


class VcsBackend:
    """Capabilities the sync engine needs from a repository."""

    def resolve_branch(self) -> str:
        """Name of the checked-out branch. Raises FatalSyncError when there is none."""
        raise NotImplementedError

    def list_remotes(self) -> List[str]:
        """Configured remote names, in whatever order the backend reports them."""
        raise NotImplementedError

    def remote_url(self, remote: str) -> Optional[str]:
        """URL of a remote, None when the remote does not exist."""
        raise NotImplementedError

    def check_connectivity(self, remote: str) -> None:
        """Raise RemoteUnavailableError when the remote cannot be reached."""
        raise NotImplementedError

    def fetch(self, remote: str) -> None:
        """Update the local copy of the remote's refs. Raises RemoteUnavailableError."""
        raise NotImplementedError

    def remote_tracking_ref(self, remote: str, branch: str) -> Optional[str]:
        """Ref of ``remote/branch`` after fetch, None when the remote lacks the branch."""
        raise NotImplementedError

    def commits_between(self, base: Optional[str], tip: str) -> List[CommitRecord]:
        """Commits reachable from ``tip`` but not from ``base``, ancestors first.

        A ``base`` of None means the full history of ``tip``.
        """
        raise NotImplementedError

    def push_one(self, remote: str, commit_id: str, branch: str) -> None:
        """Push exactly one commit to ``refs/heads/<branch>``. Raises PushError."""
        raise NotImplementedError

    def repository_stats(self) -> Dict[str, int]:
        return {}


class GitBackend(VcsBackend):
    """VcsBackend that shells out to the git binary inside a workspace."""

    def __init__(self, workspace_dir, timeout=DEFAULT_TIMEOUT, logger=None):
        self.workspace_dir = str(workspace_dir)
        self.timeout = timeout
        self.logger = logger
        self.cmd_logger = PrefixedCommandLogger(logger, prefix="[CMD]")

    def _git(self, args, check=True, forward=False, timeout=None):
        """Run ``git <args>`` in the workspace.

        :param forward: Send the command output to the run log
        :raises GitCommandError: on non-zero return code when ``check`` is set
        :raises CommandError: when git is missing or the command times out
        """
        cmd = ["git"] + list(args)
        result = execute(
            cmd,
            cwd=self.workspace_dir,
            logger=self.cmd_logger if forward else None,
            timeout=timeout or self.timeout,
            # git reports progress on stderr
            stderr_to_stdout=True,
            error_regex=r"^(error|fatal):",
        )
        if check and not result.ok:
            raise GitCommandError(args, result.returncode, result.stderr.strip())
        return result

    def _output(self, args):
        return self._git(args).stdout.strip()

    # repository level checks

    def git_version(self) -> str:
        """Return the git version string. Raises FatalSyncError when git is absent."""
        try:
            output = self._output(["--version"])
        except (CommandError, GitCommandError) as e:
            raise FatalSyncError(f"Git is not installed or not in PATH: {e}")
        return output.replace("git version", "").strip()

    def ensure_repository(self) -> None:
        try:
            self._git(["rev-parse", "--git-dir"])
        except GitCommandError:
            raise FatalSyncError(f"'{self.workspace_dir}' is not a git repository.")
        except CommandError as e:
            raise FatalSyncError(str(e))

    def git_dir(self) -> Path:
        return Path(self._output(["rev-parse", "--absolute-git-dir"]))

    def resolve_branch(self) -> str:
        try:
            branch = self._output(["rev-parse", "--abbrev-ref", "HEAD"])
        except (GitCommandError, CommandError) as e:
            raise FatalSyncError(f"Unable to determine current branch: {e}")
        if not branch or branch == "HEAD":
            raise FatalSyncError("Unable to determine current branch (detached HEAD).")
        return branch

    # remotes

    def list_remotes(self) -> List[str]:
        output = self._output(["remote"])
        return [line.strip() for line in output.splitlines() if line.strip()]

    def remote_url(self, remote: str) -> Optional[str]:
        try:
            return self._output(["remote", "get-url", remote]) or None
        except (GitCommandError, CommandError):
            return None

    def check_connectivity(self, remote: str) -> None:
        try:
            self._git(["ls-remote", "--heads", remote])
        except GitCommandError as e:
            raise RemoteUnavailableError(
                remote, f"cannot connect, check authentication and network ({e.stderr or e})"
            )
        except CommandError as e:
            raise RemoteUnavailableError(remote, str(e))

    def fetch(self, remote: str) -> None:
        try:
            self._git(["fetch", "--prune", remote], forward=True)
        except (GitCommandError, CommandError) as e:
            raise RemoteUnavailableError(remote, f"unable to fetch ({e})")

    def remote_tracking_ref(self, remote: str, branch: str) -> Optional[str]:
        ref = f"refs/remotes/{remote}/{branch}"
        result = self._git(["show-ref", "--verify", "--quiet", ref], check=False)
        return ref if result.ok else None

    # commits

    def commits_between(self, base: Optional[str], tip: str) -> List[CommitRecord]:
        revision = f"{base}..{tip}" if base else tip
        # topo order guarantees every parent is listed before its children
        output = self._git(
            ["log", "--topo-order", "--reverse", "--format=%H %s", revision, "--"]
        ).stdout
        commits = []
        for line in output.splitlines():
            line = line.strip()
            if not line:
                continue
            commit_id, _, subject = line.partition(" ")
            commits.append(CommitRecord(commit_id, truncate_summary(subject)))
        return commits

    def push_one(self, remote: str, commit_id: str, branch: str) -> None:
        refspec = f"{commit_id}:refs/heads/{branch}"
        try:
            self._git(["push", remote, refspec], forward=True)
        except GitCommandError as e:
            raise PushError(e.stderr or str(e))
        except CommandError as e:
            raise PushError(str(e))

    def repository_stats(self) -> Dict[str, int]:
        """Counts used in the start-of-run log and the summary report."""

        def count_lines(args):
            try:
                output = self._output(args)
            except (GitCommandError, CommandError):
                return 0
            return len([line for line in output.splitlines() if line.strip()])

        try:
            total_commits = int(self._output(["rev-list", "--count", "HEAD"]))
        except (GitCommandError, CommandError, ValueError):
            total_commits = 0

        return {
            "total_commits": total_commits,
            "branches": count_lines(["branch", "-a"]),
            "remotes": count_lines(["remote"]),
            "tags": count_lines(["tag"]),
        }
