# -*- coding: utf-8 -*-
"""
Backup of the repository refs before pushing.

Only ``HEAD``, the refs and ``config`` of the git directory are archived,
enough to restore where every branch pointed before the run.
"""

import tarfile
import time
from datetime import datetime
from pathlib import Path
from typing import Optional

DEFAULT_BACKUP_DIR = "~/.commitsledger_backups"
BACKUP_ENTRIES = ("HEAD", "refs", "packed-refs", "config")
MAX_BACKUP_AGE_DAYS = 7


def create_backup(git_dir, logger, backup_dir=DEFAULT_BACKUP_DIR, now=None) -> Optional[Path]:
    """Archive the refs of ``git_dir`` into ``backup_dir``.

    Returns the archive path, or None when the backup could not be written.
    A failed backup is only a warning.
    """
    now = now or datetime.now()
    git_dir = Path(git_dir)
    target_dir = Path(backup_dir).expanduser()
    backup_file = target_dir / f"backup_{now.strftime('%Y%m%d_%H%M%S')}.tar.gz"

    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        with tarfile.open(backup_file, "w:gz") as tar:
            for entry in BACKUP_ENTRIES:
                path = git_dir / entry
                if path.exists():
                    tar.add(str(path), arcname=f".git/{entry}")
    except (OSError, tarfile.TarError) as e:
        logger.warning(f"Could not create backup at {backup_file}: {e}")
        return None

    logger.info(f"Backup created at {backup_file}")
    return backup_file


def prune_old_backups(logger, backup_dir=DEFAULT_BACKUP_DIR, max_age_days=MAX_BACKUP_AGE_DAYS, now_ts=None) -> int:
    """Delete backup archives older than ``max_age_days``. Returns how many were removed."""
    target_dir = Path(backup_dir).expanduser()
    if not target_dir.is_dir():
        return 0

    cutoff = (now_ts or time.time()) - max_age_days * 24 * 3600
    removed = 0
    for archive in target_dir.glob("backup_*.tar.gz"):
        try:
            if archive.stat().st_mtime < cutoff:
                archive.unlink()
                removed += 1
        except OSError as e:
            logger.warning(f"Could not remove old backup {archive}: {e}")
    if removed:
        logger.info(f"Removed {removed} backups older than {max_age_days} days")
    return removed
