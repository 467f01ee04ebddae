"""
Tests for algorithm.diff_session - only the newest diff run may commit its result.
"""

from __future__ import annotations

from unittest.mock import patch

from algorithm.diff_session import DiffSession
from algorithm.text_diff import compute_diff


class TestGenerations:
    def test_begin_auto_increments(self):
        ds = DiffSession()
        assert ds.begin() == 1
        assert ds.begin() == 2
        assert ds.latest == 2

    def test_caller_numbered_generation_moves_latest_forward(self):
        ds = DiffSession()
        assert ds.begin(5) == 5
        assert ds.begin(3) == 3
        assert ds.latest == 5
        assert not ds.is_current(3)

    def test_older_run_finishing_late_is_dropped(self):
        ds = DiffSession()
        first = ds.begin()
        second = ds.begin()
        newer = compute_diff("a", "b")
        assert ds.commit(second, newer)
        assert not ds.commit(first, compute_diff("a", "a"))
        assert ds.lines == newer
        assert ds.committed == second

    def test_run_commits_when_current(self):
        ds = DiffSession()
        gen, lines = ds.run("a", "b")
        assert gen == 1
        assert lines == ds.lines
        assert [l.kind for l in lines] == ["removed", "added"]

    def test_run_with_stale_generation_skips_the_work(self):
        ds = DiffSession()
        ds.run("a", "b", generation=4)
        with patch("algorithm.diff_session.compute_diff") as mock_diff:
            gen, lines = ds.run("x", "y", generation=2)
        assert (gen, lines) == (2, None)
        mock_diff.assert_not_called()
        assert ds.committed == 4

    def test_clear_supersedes_pending_runs(self):
        ds = DiffSession()
        pending = ds.begin()
        ds.clear()
        assert ds.lines == []
        assert not ds.commit(pending, compute_diff("a", "b"))
        assert ds.lines == []
