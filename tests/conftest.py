"""Shared helpers for building real and fake git repositories."""

import os
import stat
import subprocess

import pytest

GIT_ENV = {
    **os.environ,
    "GIT_AUTHOR_NAME": "Test User",
    "GIT_AUTHOR_EMAIL": "test@test.com",
    "GIT_COMMITTER_NAME": "Test User",
    "GIT_COMMITTER_EMAIL": "test@test.com",
    "GIT_CONFIG_NOSYSTEM": "1",
}


def git(path, *args):
    """Run git in path, failing the test on error."""
    return subprocess.run(
        ["git", "-C", str(path), *args],
        capture_output=True, text=True, check=True, env=GIT_ENV,
    ).stdout


def commit(path, name="file.txt", content="hello\n", message=None):
    with open(os.path.join(path, name), "a") as f:
        f.write(content)
    git(path, "add", name)
    git(path, "commit", "-q", "-m", message or f"Update {name}")


def init_repo(path):
    """A repo with one commit and no upstream."""
    os.makedirs(path, exist_ok=True)
    git(path, "init", "-q")
    commit(path, "README.md", "# test\n", "Initial commit")
    return str(path)


def clone_with_upstream(origin, path):
    """Clone origin (a bare repo); the checked-out branch tracks origin."""
    subprocess.run(
        ["git", "clone", "-q", str(origin), str(path)],
        capture_output=True, check=True, env=GIT_ENV,
    )
    return str(path)


@pytest.fixture
def origin(tmp_path):
    """A bare remote holding one commit on its default branch."""
    bare = tmp_path / "remotes" / "origin.git"
    git(tmp_path, "init", "-q", "--bare", str(bare))
    seed = tmp_path / "remotes" / "seed"
    clone_with_upstream(bare, seed)
    commit(seed, "README.md", "# seed\n", "Initial commit")
    git(seed, "push", "-q", "-u", "origin", "HEAD")
    # Point the bare repo's HEAD at whatever branch the seed pushed
    branch = git(seed, "rev-parse", "--abbrev-ref", "HEAD").strip()
    git(bare, "symbolic-ref", "HEAD", f"refs/heads/{branch}")
    return bare


@pytest.fixture
def fake_git(tmp_path):
    """Write an executable shell script standing in for git; returns its path.

    The script sees git's argv: $1=-C $2=<repo> $3=<subcommand> ...
    """
    counter = iter(range(1000))

    def _make(body):
        script = tmp_path / f"fake-git-{next(counter)}"
        script.write_text("#!/bin/sh\n" + body + "\n")
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return str(script)

    return _make


SYNCED_GIT = """\
case "$3" in
  status) exit 0 ;;
  rev-list) echo 0 ;;
  rev-parse) echo main ;;
  log) echo "abc1234 2 hours ago Test User" ;;
esac
"""

HANGING_GIT = "exec sleep 30"
