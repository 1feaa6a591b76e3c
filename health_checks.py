# -*- coding: utf-8 -*-
"""
Environment checks run before a sync.

Everything here is advisory: problems are logged as warnings and never stop
the run. The one exception is ``check_permissions``, an unreadable or
unwritable workspace is fatal.
"""

import os
import shutil
import socket
import subprocess
from pathlib import Path
from typing import Dict, List, Optional

import requests

from git_sync_util import (
    extract_remote_host,
    is_valid_remote_name,
    sanitize_remote_url,
    url_has_credentials,
)
from run_command import DEFAULT_TIMEOUT, run_command_and_get_return_info
from sync_errors import CommandError, FatalSyncError, GitCommandError

MIN_FREE_BYTES = 1000000
MEMORY_WARNING_PERCENT = 90.0
PROBE_TIMEOUT = 5
DEFAULT_PORTS = {"ssh": 22, "git": 9418, "http": 80, "https": 443}


def check_permissions(workspace_dir) -> None:
    """Raise FatalSyncError when the workspace is not readable and writable."""
    if not os.access(workspace_dir, os.R_OK) or not os.access(workspace_dir, os.W_OK):
        raise FatalSyncError(f"Insufficient permissions for directory '{workspace_dir}'")


def _git_output(args, workspace_dir, timeout=DEFAULT_TIMEOUT) -> Optional[str]:
    try:
        return run_command_and_get_return_info(["git"] + args, cwd=workspace_dir, timeout=timeout).strip()
    except (subprocess.CalledProcessError, CommandError):
        return None


def check_git_identity(workspace_dir, logger, timeout=DEFAULT_TIMEOUT) -> bool:
    ok = True
    for key in ("user.name", "user.email"):
        if not _git_output(["config", "--get", key], workspace_dir, timeout):
            logger.warning(f"Git {key} is not configured")
            ok = False
    return ok


def _directory_size(path: Path) -> int:
    total = 0
    for root, _dirs, files in os.walk(path):
        for name in files:
            try:
                total += os.path.getsize(os.path.join(root, name))
            except OSError:
                continue
    return total


def check_disk_space(workspace_dir, logger, git_dir=None) -> bool:
    """Require max(1 MB, 10% of the .git directory) of free space."""
    required = MIN_FREE_BYTES
    if git_dir is not None and Path(git_dir).is_dir():
        required = max(MIN_FREE_BYTES, _directory_size(Path(git_dir)) // 10)

    available = shutil.disk_usage(workspace_dir).free
    if available < required:
        logger.warning(
            f"Insufficient disk space for git operations. Available: {available} bytes, "
            f"estimated needed: {required} bytes"
        )
        return False
    logger.info(f"Sufficient disk space: {available} bytes available, {required} bytes needed")
    return True


def read_memory_usage(meminfo_path="/proc/meminfo") -> Optional[float]:
    """Percentage of memory in use, None where /proc/meminfo is not available."""
    values = {}
    try:
        with open(meminfo_path, "r", encoding="utf-8") as f:
            for line in f:
                key, _, rest = line.partition(":")
                parts = rest.split()
                if parts and parts[0].isdigit():
                    values[key.strip()] = int(parts[0])
    except OSError:
        return None

    total = values.get("MemTotal")
    available = values.get("MemAvailable", values.get("MemFree"))
    if not total or available is None:
        return None
    return (total - available) * 100.0 / total


def check_system_resources(logger, meminfo_path="/proc/meminfo") -> Optional[float]:
    usage = read_memory_usage(meminfo_path)
    if usage is None:
        logger.info("System resources - Memory usage: N/A")
    else:
        logger.info(f"System resources - Memory usage: {usage:.2f}%")
        if usage > MEMORY_WARNING_PERCENT:
            logger.warning(f"High memory usage detected ({usage:.2f}%)")

    if hasattr(os, "getloadavg"):
        try:
            load1, _load5, _load15 = os.getloadavg()
            logger.info(f"System resources - Load average (1 min): {load1:.2f}")
        except OSError:
            pass
    return usage


def probe_host(scheme, host, port=None, timeout=PROBE_TIMEOUT) -> bool:
    """Check that a remote host answers.

    HTTP(S) hosts count as reachable when they return any HTTP response,
    other hosts when a TCP connection to the git or ssh port succeeds.
    """
    if scheme in ("http", "https"):
        netloc = f"{host}:{port}" if port else host
        try:
            requests.head(f"{scheme}://{netloc}/", timeout=timeout, allow_redirects=False)
            return True
        except requests.RequestException:
            return False

    port = port or DEFAULT_PORTS.get(scheme.split("+")[-1], DEFAULT_PORTS["ssh"])
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


def check_network(remotes: Dict[str, str], logger, timeout=PROBE_TIMEOUT) -> Dict[str, bool]:
    """Probe the host of every remote URL; local remotes are not probed."""
    reachable = {}
    for name, url in remotes.items():
        target = extract_remote_host(url)
        if target is None:
            continue
        scheme, host, port = target
        ok = probe_host(scheme, host, port, timeout)
        reachable[name] = ok
        if not ok:
            logger.warning(f"Cannot reach remote host {host} for '{name}'")
    return reachable


def check_credentials(remotes: Dict[str, str], logger) -> List[str]:
    """Names of remotes whose URL embeds a token or password."""
    flagged = []
    for name, url in remotes.items():
        if url_has_credentials(url):
            logger.warning(
                f"Credentials detected in remote URL for '{name}' ({sanitize_remote_url(url)}). "
                "Consider using a credential manager."
            )
            flagged.append(name)
    return flagged


def check_hooks(git_dir, logger) -> int:
    hooks_dir = Path(git_dir) / "hooks"
    if not hooks_dir.is_dir():
        return 0
    hooks = [p for p in hooks_dir.iterdir() if p.is_file() and os.access(p, os.X_OK)]
    logger.info(f"Found {len(hooks)} git hooks in repository")
    if (hooks_dir / "pre-push").is_file():
        logger.warning("pre-push hook detected, this may affect push operations")
    return len(hooks)


def check_working_tree(workspace_dir, logger, timeout=DEFAULT_TIMEOUT) -> None:
    status = _git_output(["status", "--porcelain"], workspace_dir, timeout)
    if status:
        logger.info("Uncommitted changes detected in the repository")
    elif status is not None:
        logger.info("No uncommitted changes in the repository")

    stash = _git_output(["stash", "list"], workspace_dir, timeout)
    stash_count = len(stash.splitlines()) if stash else 0
    if stash_count:
        logger.info(f"Found {stash_count} stashed changes in the repository")


def collect_remote_urls(backend) -> Dict[str, str]:
    remotes = {}
    for name in backend.list_remotes():
        if not is_valid_remote_name(name):
            continue
        url = backend.remote_url(name)
        if url:
            remotes[name] = url
    return remotes


def run_health_checks(backend, config, logger) -> None:
    """Run every advisory check and log the findings."""
    workspace_dir = config.workspace_dir
    try:
        git_dir = backend.git_dir()
    except (GitCommandError, CommandError):
        git_dir = None

    check_git_identity(workspace_dir, logger, config.git_timeout)
    check_system_resources(logger)
    check_disk_space(workspace_dir, logger, git_dir)

    remotes = collect_remote_urls(backend)
    check_network(remotes, logger)
    check_credentials(remotes, logger)

    if git_dir is not None:
        check_hooks(git_dir, logger)
    check_working_tree(workspace_dir, logger, config.git_timeout)
