"""Integration tests for stack-doctor workflows

These tests run the installed hooks under a real git.
"""
import shutil
import subprocess
from datetime import datetime

import pytest
from click.testing import CliRunner

from stack_doctor.cli import cli

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


def git(repo, *args, check=True):
    return subprocess.run(
        ["git", "-c", "user.email=test@example.com", "-c", "user.name=Test User", *args],
        cwd=repo,
        capture_output=True,
        text=True,
        check=check,
    )


@pytest.fixture
def upstream(tmp_path):
    """Create a repository with one commit to deploy from"""
    repo = tmp_path / "upstream"
    repo.mkdir()
    git(repo, "init", "-q")
    (repo / "index.php").write_text("<?php echo 'v1';\n")
    git(repo, "add", ".")
    git(repo, "commit", "-q", "-m", "v1")
    return repo


@pytest.fixture
def deployment(tmp_path, upstream):
    """Clone of upstream with the hooks installed"""
    repo = tmp_path / "deploy"
    git(tmp_path, "clone", "-q", str(upstream), str(repo))

    result = CliRunner().invoke(cli, ["install-hooks", "--project", str(repo)])
    assert result.exit_code == 0
    return repo


def test_pull_creates_backup_tags(upstream, deployment):
    """Test a pull leaves tags on the old and new heads"""
    old_head = git(deployment, "rev-parse", "HEAD").stdout.strip()

    (upstream / "index.php").write_text("<?php echo 'v2';\n")
    git(upstream, "commit", "-q", "-am", "v2")
    new_head = git(upstream, "rev-parse", "HEAD").stdout.strip()

    pulled = git(deployment, "pull", "--no-rebase")
    assert "Backup Tags Created" in pulled.stdout + pulled.stderr

    tags = git(deployment, "tag", "--list", "backup-pull-*").stdout.split()
    assert len(tags) == 2
    pre_tag, post_tag = sorted(tags)
    assert pre_tag.endswith("-0-pre-tag")
    assert post_tag.endswith("-1-post-tag")
    assert pre_tag[: -len("-0-pre-tag")] == post_tag[: -len("-1-post-tag")]

    stamp = pre_tag[len("backup-pull-"): -len("-0-pre-tag")]
    datetime.strptime(stamp, "%Y%m%d-%H%M%S")

    assert git(deployment, "rev-list", "-n", "1", pre_tag).stdout.strip() == old_head
    assert git(deployment, "rev-list", "-n", "1", post_tag).stdout.strip() == new_head


def test_push_is_blocked(deployment):
    """Test pushes from the deployment checkout are rejected"""
    (deployment / "local.txt").write_text("hotfix\n")
    git(deployment, "add", ".")
    git(deployment, "commit", "-q", "-m", "hotfix")

    pushed = git(deployment, "push", "origin", "HEAD:refs/heads/hotfix", check=False)

    assert pushed.returncode != 0
    assert "ACTION BLOCKED" in pushed.stdout + pushed.stderr
    assert "--no-verify" in pushed.stdout + pushed.stderr


def test_disable_push_replaces_pre_push(deployment):
    """Test disable-push rewrites the blocker without the bypass hint"""
    result = CliRunner().invoke(cli, ["disable-push", "--project", str(deployment)])
    assert result.exit_code == 0

    pushed = git(deployment, "push", "origin", "HEAD:refs/heads/other", check=False)

    assert pushed.returncode != 0
    assert "ACTION BLOCKED" in pushed.stdout + pushed.stderr
    assert "--no-verify" not in pushed.stdout + pushed.stderr
