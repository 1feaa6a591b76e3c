# -*- coding: utf-8 -*-
"""
Timestamped run logger.

A python logger alike object (``info``, ``warning``, ``error``) whose lines
look like ``[YYYY-MM-DD HH:MM:SS] message``. Lines are appended to the log
file when one is configured and mirrored to stderr in verbose mode.
"""

import sys
from datetime import datetime
from pathlib import Path

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_log_line(message, now=None):
    """Prefix a message with the current timestamp."""
    now = now or datetime.now()
    return f"[{now.strftime(TIMESTAMP_FORMAT)}] {message}"


class SyncLogger:
    """Append-only, line oriented logger for a sync run."""

    def __init__(self, log_file=None, verbose=False, stream=None):
        self.log_file = Path(log_file).expanduser() if log_file else None
        self.verbose = verbose
        self.stream = stream if stream is not None else sys.stderr
        self._handle = None
        self._open_failed = False

    def _file(self):
        if self.log_file is None or self._open_failed:
            return None
        if self._handle is None:
            try:
                self._handle = open(self.log_file, "a", encoding="utf-8", newline="\n")
            except OSError as e:
                # keep running without the file, but say so once
                self._open_failed = True
                print(f"Warning: cannot open log file '{self.log_file}': {e}", file=self.stream)
                return None
        return self._handle

    def log(self, message):
        line = format_log_line(message)
        if self.verbose:
            print(line, file=self.stream)
        handle = self._file()
        if handle:
            handle.write(line + "\n")
            handle.flush()

    def info(self, message):
        self.log(message)

    def warning(self, message):
        self.log(f"WARNING: {message}")

    def error(self, message):
        self.log(f"ERROR: {message}")

    def close(self):
        if self._handle is not None:
            self._handle.close()
            self._handle = None


class BufferedLogger:
    """Capture messages until the real logger exists, then replay them.

    Configuration is loaded before the log file is known, so whatever the
    loader reports is held here first.
    """

    def __init__(self):
        self.captured = []

    def info(self, message):
        self.captured.append(("info", message))

    def warning(self, message):
        self.captured.append(("warning", message))

    def error(self, message):
        self.captured.append(("error", message))

    def replay(self, target):
        for level, message in self.captured:
            getattr(target, level)(message)
        self.captured = []
