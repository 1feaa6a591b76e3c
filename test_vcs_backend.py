#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Tests for vcs_backend.GitBackend against real repositories in a temp dir.

A bare repository plays the remote. Skipped when git is not installed.

Run with: python -m pytest test_vcs_backend.py
Or: python test_vcs_backend.py
"""

import io
import os
import shutil
import subprocess
import tempfile
import unittest

from commitsledger import main
from sync_config import SyncConfig
from sync_engine import SyncEngine
from sync_errors import FatalSyncError, PushError, RemoteUnavailableError
from sync_models import SyncOutcome
from vcs_backend import GitBackend

IDENTITY = ["-c", "user.name=Ledger Test", "-c", "user.email=ledger@example.com"]


def git(*args, cwd):
    return subprocess.run(
        ["git"] + IDENTITY + list(args), cwd=cwd, check=True, capture_output=True, text=True
    ).stdout.strip()


@unittest.skipUnless(shutil.which("git"), "git is not installed")
class GitBackendTestCase(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = self._tmp.name
        self.remote_dir = os.path.join(self.tmp, "remote.git")
        self.work_dir = os.path.join(self.tmp, "work")
        git("init", "-q", "--bare", self.remote_dir, cwd=self.tmp)
        git("init", "-q", self.work_dir, cwd=self.tmp)
        git("symbolic-ref", "HEAD", "refs/heads/main", cwd=self.work_dir)
        git("remote", "add", "origin", self.remote_dir, cwd=self.work_dir)
        self.backend = GitBackend(self.work_dir, timeout=60)

    def tearDown(self):
        self._tmp.cleanup()

    def commit(self, message):
        git("commit", "-q", "--allow-empty", "-m", message, cwd=self.work_dir)
        return git("rev-parse", "HEAD", cwd=self.work_dir)

    def remote_head(self, branch="main"):
        return git("rev-parse", f"refs/heads/{branch}", cwd=self.remote_dir)


class TestRepositoryQueries(GitBackendTestCase):

    def test_git_version(self):
        self.assertRegex(self.backend.git_version(), r"^\d+\.\d+")

    def test_resolve_branch(self):
        self.commit("first")
        self.assertEqual(self.backend.resolve_branch(), "main")

    def test_detached_head_is_fatal(self):
        self.commit("first")
        git("checkout", "-q", "--detach", cwd=self.work_dir)
        with self.assertRaises(FatalSyncError):
            self.backend.resolve_branch()

    def test_not_a_repository(self):
        plain = os.path.join(self.tmp, "plain")
        os.mkdir(plain)
        with self.assertRaises(FatalSyncError):
            GitBackend(plain).ensure_repository()

    def test_remotes(self):
        git("remote", "add", "mirror", "https://example.com/mirror.git", cwd=self.work_dir)
        self.assertEqual(sorted(self.backend.list_remotes()), ["mirror", "origin"])
        self.assertEqual(self.backend.remote_url("mirror"), "https://example.com/mirror.git")
        self.assertIsNone(self.backend.remote_url("absent"))

    def test_repository_stats(self):
        self.commit("one")
        self.commit("two")
        git("tag", "v1", cwd=self.work_dir)
        stats = self.backend.repository_stats()
        self.assertEqual(stats["total_commits"], 2)
        self.assertEqual(stats["remotes"], 1)
        self.assertEqual(stats["tags"], 1)


class TestCommitsBetween(GitBackendTestCase):

    def test_full_history_oldest_first(self):
        ids = [self.commit(f"commit {n}") for n in range(3)]
        commits = self.backend.commits_between(None, "main")
        self.assertEqual([c.commit_id for c in commits], ids)
        self.assertEqual(commits[0].summary, "commit 0")

    def test_range(self):
        first = self.commit("first")
        second = self.commit("second")
        self.assertEqual([c.commit_id for c in self.backend.commits_between(first, "main")], [second])

    def test_merge_parents_come_first(self):
        base = self.commit("base")
        git("checkout", "-q", "-b", "feature", cwd=self.work_dir)
        side = self.commit("side")
        git("checkout", "-q", "main", cwd=self.work_dir)
        self.commit("main work")
        git("merge", "-q", "--no-ff", "-m", "merge feature", "feature", cwd=self.work_dir)
        merge = git("rev-parse", "HEAD", cwd=self.work_dir)

        order = [c.commit_id for c in self.backend.commits_between(None, "main")]
        self.assertEqual(order[0], base)
        self.assertEqual(order[-1], merge)
        self.assertLess(order.index(side), order.index(merge))

    def test_long_subject_is_truncated(self):
        self.commit("x" * 80)
        self.assertEqual(len(self.backend.commits_between(None, "main")[0].summary), 50)


class TestRemoteOperations(GitBackendTestCase):

    def test_fetch_and_tracking_ref(self):
        commit = self.commit("first")
        self.backend.check_connectivity("origin")
        self.backend.fetch("origin")
        self.assertIsNone(self.backend.remote_tracking_ref("origin", "main"))

        self.backend.push_one("origin", commit, "main")
        self.backend.fetch("origin")
        self.assertEqual(self.backend.remote_tracking_ref("origin", "main"), "refs/remotes/origin/main")

    def test_push_one_creates_branch(self):
        first = self.commit("first")
        self.commit("second")
        self.backend.push_one("origin", first, "main")
        self.assertEqual(self.remote_head(), first)

    def test_non_fast_forward_is_rejected(self):
        first = self.commit("first")
        second = self.commit("second")
        self.backend.push_one("origin", second, "main")
        with self.assertRaises(PushError):
            self.backend.push_one("origin", first, "main")
        self.assertEqual(self.remote_head(), second)

    def test_unreachable_remote(self):
        git("remote", "add", "ghost", os.path.join(self.tmp, "missing.git"), cwd=self.work_dir)
        with self.assertRaises(RemoteUnavailableError) as ctx:
            self.backend.check_connectivity("ghost")
        self.assertEqual(ctx.exception.remote_name, "ghost")


class TestEndToEnd(GitBackendTestCase):

    def test_engine_synchronizes_then_reports_up_to_date(self):
        ids = [self.commit(f"commit {n}") for n in range(3)]
        engine = SyncEngine(self.backend, SyncConfig(workspace_dir=self.work_dir, push_delay=0))

        result = engine.run()[0]
        self.assertEqual(result.outcome, SyncOutcome.SYNCHRONIZED)
        self.assertEqual(result.pushed, 3)
        self.assertEqual(self.remote_head(), ids[-1])

        self.assertEqual(engine.run()[0].outcome, SyncOutcome.UP_TO_DATE)

    def test_dry_run_leaves_remote_untouched(self):
        self.commit("first")
        engine = SyncEngine(self.backend, SyncConfig(workspace_dir=self.work_dir, dry_run=True))
        result = engine.run()[0]
        self.assertEqual(result.outcome, SyncOutcome.SYNCHRONIZED)
        self.assertTrue(result.dry_run)
        self.assertEqual(git("branch", "--list", cwd=self.remote_dir), "")

    def test_command_line_run(self):
        last = [self.commit(f"commit {n}") for n in range(2)][-1]
        log_file = os.path.join(self.tmp, "run.log")
        argv = [
            "-c", os.path.join(self.tmp, "none.conf"),
            "-C", self.work_dir,
            "-l", log_file,
            "--report-dir", self.tmp,
            "--no-backup",
            "--no-checks",
        ]
        stream = io.StringIO()
        self.assertEqual(main(argv, stream=stream), 0)
        self.assertEqual(self.remote_head(), last)
        self.assertIn("'origin' is now fully synchronized! (2 commits pushed)", stream.getvalue())
        with open(log_file, "r", encoding="utf-8") as f:
            self.assertIn("[CMD] Running: git push origin", f.read())


if __name__ == "__main__":
    unittest.main()
