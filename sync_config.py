# -*- coding: utf-8 -*-
"""
Run configuration for commitsledger.

The configuration file holds ``KEY=value`` lines. It is parsed as data, only
recognized keys are kept and nothing in it is ever executed. Values coming
from the command line win over the file, the file wins over the defaults.
"""

import math
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Optional

DEFAULT_CONFIG_FILE = "~/.commitsledger.conf"
DEFAULT_PUSH_DELAY = 0.5
DEFAULT_PUSH_RETRIES = 0
DEFAULT_GIT_TIMEOUT = 300.0

KNOWN_KEYS = (
    "PUSH_DELAY",
    "LOG_FILE",
    "VERBOSE",
    "DRY_RUN",
    "PUSH_RETRIES",
    "GIT_TIMEOUT",
    "REPORT_DIR",
    "BACKUP",
)

TRUE_VALUES = ("1", "true", "yes", "y", "on")
FALSE_VALUES = ("0", "false", "no", "n", "off", "")


@dataclass(frozen=True)
class SyncConfig:
    """Immutable settings for one run, built once at startup."""

    workspace_dir: str = "."
    dry_run: bool = False
    verbose: bool = False
    log_file: Optional[str] = None
    config_file: Optional[str] = None
    push_delay: float = DEFAULT_PUSH_DELAY
    push_retries: int = DEFAULT_PUSH_RETRIES
    git_timeout: float = DEFAULT_GIT_TIMEOUT
    report_dir: Optional[str] = None
    backup: bool = True
    health_checks: bool = True

    @property
    def mode(self) -> str:
        return "DRY RUN" if self.dry_run else "NORMAL"


def parse_bool(value: Optional[str]) -> Optional[bool]:
    """Parse a truthy / falsy string, None when it is neither."""
    if value is None:
        return None
    value = value.strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    return None


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def parse_config_text(text: str, logger=None) -> Dict[str, str]:
    """Parse ``KEY=value`` lines into a dict of recognized keys.

    Blank lines and ``#`` comments are skipped, a leading ``export`` is
    tolerated, surrounding quotes are removed. Unknown keys and malformed
    lines are reported to the logger and ignored.
    """
    values: Dict[str, str] = {}
    for line_no, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export "):].strip()
        if "=" not in line:
            if logger:
                logger.warning(f"Ignoring malformed configuration line {line_no}: {raw_line}")
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = _strip_quotes(value.strip())
        if key not in KNOWN_KEYS:
            if logger:
                logger.warning(f"Unknown configuration key: {key}")
            continue
        values[key] = value
    return values


def load_config_file(path, logger=None) -> Dict[str, str]:
    """Read a configuration file, an absent file yields no values."""
    config_path = Path(path).expanduser()
    if not config_path.is_file():
        if logger:
            logger.info(f"Configuration file {config_path} not found, using defaults")
        return {}
    if logger:
        logger.info(f"Loading configuration from {config_path}")
    with open(config_path, "r", encoding="utf-8") as f:
        return parse_config_text(f.read(), logger)


def _parse_number(key, value, default, logger, minimum=0.0, strict=False, cast=float):
    try:
        number = cast(value)
    except (TypeError, ValueError):
        number = None
    invalid = number is None or not math.isfinite(number) or number < minimum
    if invalid or (strict and number == minimum):
        if logger:
            logger.warning(f"Invalid {key} value: {value}, using default {default}")
        return default
    return number


def apply_file_values(config: SyncConfig, values: Dict[str, str], logger=None) -> SyncConfig:
    """Return a copy of ``config`` with the file values applied and validated."""
    changes = {}

    if "PUSH_DELAY" in values:
        changes["push_delay"] = _parse_number(
            "PUSH_DELAY", values["PUSH_DELAY"], DEFAULT_PUSH_DELAY, logger
        )
    if "PUSH_RETRIES" in values:
        changes["push_retries"] = _parse_number(
            "PUSH_RETRIES", values["PUSH_RETRIES"], DEFAULT_PUSH_RETRIES, logger, cast=int
        )
    if "GIT_TIMEOUT" in values:
        changes["git_timeout"] = _parse_number(
            "GIT_TIMEOUT", values["GIT_TIMEOUT"], DEFAULT_GIT_TIMEOUT, logger, strict=True
        )
    if values.get("LOG_FILE"):
        changes["log_file"] = values["LOG_FILE"]
    if values.get("REPORT_DIR"):
        changes["report_dir"] = values["REPORT_DIR"]

    for key, field_name in (("VERBOSE", "verbose"), ("DRY_RUN", "dry_run"), ("BACKUP", "backup")):
        if key not in values:
            continue
        flag = parse_bool(values[key])
        if flag is None:
            if logger:
                logger.warning(f"Invalid {key} value: {values[key]}, ignoring")
            continue
        changes[field_name] = flag

    return replace(config, **changes)


def build_config(args, file_values: Dict[str, str], logger=None) -> SyncConfig:
    """Merge defaults, configuration file values and parsed CLI arguments.

    CLI options left at ``None`` fall through to the file, then the defaults.
    """
    config = SyncConfig(
        workspace_dir=os.path.normpath(getattr(args, "workspace", None) or "."),
        config_file=getattr(args, "config", None),
    )
    config = apply_file_values(config, file_values, logger)

    overrides = {}
    if getattr(args, "dry_run", None) is not None:
        overrides["dry_run"] = args.dry_run
    if getattr(args, "verbose", None) is not None:
        overrides["verbose"] = args.verbose
    if getattr(args, "log", None):
        overrides["log_file"] = args.log
    if getattr(args, "report_dir", None):
        overrides["report_dir"] = args.report_dir
    if getattr(args, "retries", None) is not None:
        if args.retries < 0:
            if logger:
                logger.warning(f"Invalid --retries value: {args.retries}, using {config.push_retries}")
        else:
            overrides["push_retries"] = args.retries
    if getattr(args, "no_backup", False):
        overrides["backup"] = False
    if getattr(args, "no_checks", False):
        overrides["health_checks"] = False

    return replace(config, **overrides)
