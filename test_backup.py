#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Unit tests for backup module.

Run with: python -m pytest test_backup.py
Or: python test_backup.py
"""

import os
import tarfile
import tempfile
import time
import unittest
from datetime import datetime
from pathlib import Path

from backup import create_backup, prune_old_backups
from sync_logger import BufferedLogger


class TestBackup(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.git_dir = self.tmp / "repo" / ".git"
        (self.git_dir / "refs" / "heads").mkdir(parents=True)
        (self.git_dir / "HEAD").write_text("ref: refs/heads/main\n")
        (self.git_dir / "refs" / "heads" / "main").write_text("0" * 40 + "\n")
        (self.git_dir / "config").write_text("[core]\n")
        (self.git_dir / "objects").mkdir()
        self.backup_dir = self.tmp / "backups"

    def tearDown(self):
        self._tmp.cleanup()

    def test_create_backup(self):
        logger = BufferedLogger()
        path = create_backup(self.git_dir, logger, self.backup_dir, now=datetime(2024, 5, 6, 7, 8, 9))

        self.assertEqual(path.name, "backup_20240506_070809.tar.gz")
        with tarfile.open(path, "r:gz") as tar:
            names = tar.getnames()
        self.assertIn(".git/HEAD", names)
        self.assertIn(".git/refs/heads/main", names)
        self.assertIn(".git/config", names)
        self.assertFalse(any(name.startswith(".git/objects") for name in names))

    def test_failed_backup_is_a_warning(self):
        logger = BufferedLogger()
        blocker = self.tmp / "not_a_dir"
        blocker.write_text("")
        self.assertIsNone(create_backup(self.git_dir, logger, blocker / "backups"))
        self.assertEqual(logger.captured[0][0], "warning")

    def test_prune_old_backups(self):
        self.backup_dir.mkdir()
        old = self.backup_dir / "backup_20200101_000000.tar.gz"
        recent = self.backup_dir / "backup_20240101_000000.tar.gz"
        unrelated = self.backup_dir / "notes.txt"
        for path in (old, recent, unrelated):
            path.write_text("")
        now = time.time()
        eight_days = 8 * 24 * 3600
        os.utime(old, (now - eight_days, now - eight_days))
        os.utime(unrelated, (now - eight_days, now - eight_days))

        logger = BufferedLogger()
        self.assertEqual(prune_old_backups(logger, self.backup_dir, now_ts=now), 1)
        self.assertFalse(old.exists())
        self.assertTrue(recent.exists())
        self.assertTrue(unrelated.exists())

    def test_prune_without_directory(self):
        self.assertEqual(prune_old_backups(BufferedLogger(), self.tmp / "absent"), 0)


if __name__ == "__main__":
    unittest.main()
