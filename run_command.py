# -*- coding: utf-8 -*-
"""
Run external commands (git) with timeouts and forward their output to a
python logger alike object.
"""

import re
import subprocess

from sync_errors import CommandError

DEFAULT_TIMEOUT = 300


class PrefixedCommandLogger:
    """Forward command output to another logger with a clear prefix."""

    def __init__(self, target, prefix="[CMD]"):
        """
        Initialize prefixed logger.

        :param target: A python logger alike object with info and error, may be None
        :param prefix: Prefix to use for separating command logs from main process logs
        """
        self.target = target
        self.prefix = prefix

    def info(self, message):
        if self.target:
            self.target.info(f"{self.prefix} {message}")

    def error(self, message):
        if self.target:
            self.target.error(f"{self.prefix} {message}")


class CommandResult:
    """Return code and decoded output of a finished command."""

    def __init__(self, cmd, returncode, stdout="", stderr=""):
        self.cmd = cmd
        self.returncode = returncode
        self.stdout = stdout or ""
        self.stderr = stderr or ""

    @property
    def ok(self):
        return self.returncode == 0

    def __repr__(self):
        return f"CommandResult(returncode={self.returncode}, cmd={self.cmd!r})"


def _forward_lines(text, logger, error_pattern, as_error):
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        is_error = as_error or (error_pattern and error_pattern.search(line))
        if is_error:
            logger.error(line)
        else:
            logger.info(line)


def execute(
    cmd,
    cwd=None,
    logger=None,
    timeout=DEFAULT_TIMEOUT,
    stderr_to_stdout=False,
    error_regex=None,
):
    """Run a command and return a CommandResult.

    Output is always captured. When a logger is given every non-empty line is
    forwarded to it.

    :param cmd: Command as a list of arguments, never run through a shell
    :param cwd: Optional current directory
    :param logger: A python logger alike class instance to accept info or error
    :param timeout: Timeout in seconds
    :param stderr_to_stdout: If True, treat stderr lines as normal output
    :param error_regex: Optional regex pattern to detect error lines (case-insensitive)
    :return: CommandResult
    :raises CommandError: when the executable is missing or the command times out
    """
    if logger:
        logger.info(f"Running: {' '.join(cmd)}")
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        error_msg = f"Command timed out after {timeout} seconds: {' '.join(cmd)}"
        if logger:
            logger.error(error_msg)
        raise CommandError(error_msg)
    except OSError as e:
        error_msg = f"Cannot run {cmd[0]}: {e}"
        if logger:
            logger.error(error_msg)
        raise CommandError(error_msg) from e

    if logger:
        error_pattern = re.compile(error_regex, re.IGNORECASE) if error_regex else None
        _forward_lines(result.stdout, logger, error_pattern, False)
        # git writes progress to stderr, callers decide whether it is an error
        _forward_lines(result.stderr, logger, error_pattern, not stderr_to_stdout)
        logger.info("Return: " + str(result.returncode))

    return CommandResult(cmd, result.returncode, result.stdout, result.stderr)


def run_command_and_get_return_info(cmd, cwd=None, timeout=DEFAULT_TIMEOUT):
    """Run command and return its stdout.

    :raises subprocess.CalledProcessError: on non-zero return code
    :raises CommandError: when the command cannot be started or times out
    """
    result = execute(cmd, cwd=cwd, timeout=timeout)
    if not result.ok:
        raise subprocess.CalledProcessError(
            result.returncode, cmd, output=result.stdout, stderr=result.stderr
        )
    return result.stdout
