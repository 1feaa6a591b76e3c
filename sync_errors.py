# -*- coding: utf-8 -*-
"""
Exception types used by commitsledger.

Fatal errors abort the whole run, remote-level errors only skip one remote.
"""


class CommitsLedgerError(Exception):
    """Base class for all commitsledger errors."""


class CommandError(CommitsLedgerError):
    """Raised when an external command cannot be run or times out."""


class GitCommandError(CommitsLedgerError):
    """Raised when a git command exits with a non-zero status."""

    def __init__(self, args, returncode, stderr=""):
        self.git_args = list(args)
        self.returncode = returncode
        self.stderr = stderr
        message = f"git {' '.join(self.git_args)} failed with return code {returncode}"
        if stderr:
            message += f": {stderr}"
        super().__init__(message)


class FatalSyncError(CommitsLedgerError):
    """Process-level failure: not a repository, no branch, no git, bad permissions."""


class RemoteUnavailableError(CommitsLedgerError):
    """A remote is invalid, unreachable or cannot be fetched. The remote is skipped."""

    def __init__(self, remote_name, reason):
        self.remote_name = remote_name
        self.reason = reason
        super().__init__(f"Remote '{remote_name}' unavailable: {reason}")


class PushError(CommitsLedgerError):
    """A single commit push was rejected by the remote."""
