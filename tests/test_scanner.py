"""Tests for repo discovery scanner."""

import os
import tempfile
import threading
import time

import pytest

from gitdash import scanner
from gitdash.cancel import CancelToken
from gitdash.constants import UNLIMITED
from gitdash.scanner import SKIP_DIRS, find_repos, iter_repos, make_record


def test_find_repos_single():
    with tempfile.TemporaryDirectory() as tmp:
        os.makedirs(os.path.join(tmp, "project-a", ".git"))
        repos = find_repos(tmp)
        assert len(repos) == 1
        assert repos[0] == os.path.join(os.path.abspath(tmp), "project-a")


def test_find_repos_multiple():
    with tempfile.TemporaryDirectory() as tmp:
        os.makedirs(os.path.join(tmp, "alpha", ".git"))
        os.makedirs(os.path.join(tmp, "beta", ".git"))
        os.makedirs(os.path.join(tmp, "gamma", ".git"))
        repos = find_repos(tmp)
        assert len(repos) == 3


def test_find_repos_nested_not_counted():
    """Repos inside other repos are not reported: a found root is never descended."""
    with tempfile.TemporaryDirectory() as tmp:
        os.makedirs(os.path.join(tmp, "repoA", ".git"))
        os.makedirs(os.path.join(tmp, "repoA", "vendor", "repoB", ".git"))
        os.makedirs(os.path.join(tmp, "repoA", "child", ".git"))
        repos = find_repos(tmp)
        assert [os.path.basename(r) for r in repos] == ["repoA"]


def test_find_repos_skips_node_modules():
    with tempfile.TemporaryDirectory() as tmp:
        os.makedirs(os.path.join(tmp, "node_modules", "pkg", ".git"))
        os.makedirs(os.path.join(tmp, "real-project", ".git"))
        repos = find_repos(tmp)
        assert len(repos) == 1
        assert "real-project" in repos[0]


def test_skip_set_is_exact_and_case_sensitive():
    assert "node_modules" in SKIP_DIRS
    with tempfile.TemporaryDirectory() as tmp:
        os.makedirs(os.path.join(tmp, "Node_Modules", "pkg", ".git"))
        os.makedirs(os.path.join(tmp, "node_modules_old", "pkg", ".git"))
        repos = find_repos(tmp)
        assert len(repos) == 2


def test_extra_skip_names():
    with tempfile.TemporaryDirectory() as tmp:
        os.makedirs(os.path.join(tmp, "archive", "old", ".git"))
        os.makedirs(os.path.join(tmp, "work", "new", ".git"))
        repos = find_repos(tmp, skip=["archive"])
        assert [os.path.basename(r) for r in repos] == ["new"]


def test_hidden_dirs_are_walked():
    with tempfile.TemporaryDirectory() as tmp:
        os.makedirs(os.path.join(tmp, ".config", "dotfiles", ".git"))
        os.makedirs(os.path.join(tmp, ".cache", "clone", ".git"))
        repos = find_repos(tmp)
        assert [os.path.basename(r) for r in repos] == ["dotfiles"]


def test_find_repos_empty():
    with tempfile.TemporaryDirectory() as tmp:
        repos = find_repos(tmp)
        assert repos == []


def test_root_is_repo():
    with tempfile.TemporaryDirectory() as tmp:
        os.makedirs(os.path.join(tmp, ".git"))
        os.makedirs(os.path.join(tmp, "sub", ".git"))
        records = list(iter_repos(tmp))
        assert len(records) == 1
        assert records[0].rel_path == "."


def test_depth_limit():
    with tempfile.TemporaryDirectory() as tmp:
        os.makedirs(os.path.join(tmp, "a", "b", "c", ".git"))
        assert find_repos(tmp, max_depth=1) == []
        assert find_repos(tmp, max_depth=2) == []
        assert len(find_repos(tmp, max_depth=3)) == 1
        assert len(find_repos(tmp, max_depth=UNLIMITED)) == 1


def test_depth_two_finds_repo_two_levels_down():
    with tempfile.TemporaryDirectory() as tmp:
        os.makedirs(os.path.join(tmp, "a", "b", ".git"))
        repos = find_repos(tmp, max_depth=2)
        assert repos == [os.path.join(os.path.abspath(tmp), "a", "b")]
        assert find_repos(tmp, max_depth=1) == []


def test_depth_zero_checks_root_only():
    with tempfile.TemporaryDirectory() as tmp:
        os.makedirs(os.path.join(tmp, "a", ".git"))
        assert find_repos(tmp, max_depth=0) == []


def test_unlimited_depth_goes_deep():
    with tempfile.TemporaryDirectory() as tmp:
        deep = os.path.join(tmp, "a", "b", "c", "d", "e", "f", "g", "h", ".git")
        os.makedirs(deep)
        assert len(find_repos(tmp)) == 1


def test_find_repos_sorted():
    with tempfile.TemporaryDirectory() as tmp:
        os.makedirs(os.path.join(tmp, "zebra", ".git"))
        os.makedirs(os.path.join(tmp, "alpha", ".git"))
        os.makedirs(os.path.join(tmp, "middle", ".git"))
        repos = find_repos(tmp)
        names = [os.path.basename(r) for r in repos]
        assert names == ["alpha", "middle", "zebra"]


def test_git_file_is_not_a_repo_marker():
    with tempfile.TemporaryDirectory() as tmp:
        os.makedirs(os.path.join(tmp, "worktree"))
        with open(os.path.join(tmp, "worktree", ".git"), "w") as f:
            f.write("gitdir: /elsewhere\n")
        assert find_repos(tmp) == []


def test_symlinks_not_followed():
    with tempfile.TemporaryDirectory() as tmp:
        os.makedirs(os.path.join(tmp, "real", "repo", ".git"))
        os.symlink(os.path.join(tmp, "real"), os.path.join(tmp, "link"))
        repos = find_repos(tmp)
        assert [os.path.relpath(r, tmp) for r in repos] == [os.path.join("real", "repo")]


@pytest.mark.skipif(hasattr(os, "geteuid") and os.geteuid() == 0, reason="root ignores permissions")
def test_unreadable_directory_skipped():
    with tempfile.TemporaryDirectory() as tmp:
        locked = os.path.join(tmp, "locked")
        os.makedirs(os.path.join(locked, "hidden-repo", ".git"))
        os.makedirs(os.path.join(tmp, "open", ".git"))
        os.chmod(locked, 0)
        try:
            repos = find_repos(tmp)
        finally:
            os.chmod(locked, 0o755)
        assert [os.path.basename(r) for r in repos] == ["open"]


def test_missing_root_yields_nothing():
    with tempfile.TemporaryDirectory() as tmp:
        assert list(iter_repos(os.path.join(tmp, "gone"))) == []


def test_iter_repos_records():
    with tempfile.TemporaryDirectory() as tmp:
        os.makedirs(os.path.join(tmp, "group", "proj", ".git"))
        os.makedirs(os.path.join(tmp, "solo", ".git"))
        records = sorted(iter_repos(tmp), key=lambda r: r.path)
        assert [r.rel_path for r in records] == [os.path.join("group", "proj"), "solo"]
        assert [r.name for r in records] == ["proj", "solo"]
        assert sorted(r.order for r in records) == [0, 1]
        assert all(r.modified_at.timestamp() > 0 for r in records)


def test_iter_repos_is_lazy():
    with tempfile.TemporaryDirectory() as tmp:
        for i in range(30):
            os.makedirs(os.path.join(tmp, f"repo{i:02d}", ".git"))
        walker = iter_repos(tmp)
        first = next(walker)
        assert first.path.startswith(os.path.abspath(tmp))
        walker.close()


def test_cancelled_token_stops_walk():
    with tempfile.TemporaryDirectory() as tmp:
        os.makedirs(os.path.join(tmp, "a", ".git"))
        token = CancelToken()
        token.cancel()
        assert list(iter_repos(tmp, token=token)) == []


def test_wide_tree_with_small_fanout():
    with tempfile.TemporaryDirectory() as tmp:
        for i in range(50):
            os.makedirs(os.path.join(tmp, f"d{i}", "inner", ".git"))
        assert len(list(iter_repos(tmp, fanout=1))) == 50
        assert len(list(iter_repos(tmp, fanout=8))) == 50


def test_fanout_bounds_concurrent_listings(monkeypatch):
    real_list_dir = scanner._list_dir
    lock = threading.Lock()
    active = 0
    peak = 0

    def slow_list_dir(path):
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        try:
            time.sleep(0.02)
            return real_list_dir(path)
        finally:
            with lock:
                active -= 1

    monkeypatch.setattr(scanner, "_list_dir", slow_list_dir)
    with tempfile.TemporaryDirectory() as tmp:
        for i in range(30):
            os.makedirs(os.path.join(tmp, f"d{i}", "inner", ".git"))
        assert len(list(iter_repos(tmp, fanout=3))) == 30
    assert 1 < peak <= 3


def test_invalid_fanout():
    with pytest.raises(ValueError):
        list(iter_repos(".", fanout=0))


def test_make_record_missing_path():
    record = make_record("/nonexistent/path/repo", "/nonexistent")
    assert record.rel_path == os.path.join("path", "repo")
    assert record.modified_at.timestamp() == 0
