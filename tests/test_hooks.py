"""Tests for Git hook installation"""
import os
import stat

import pytest

from stack_doctor.core.config import Config
from stack_doctor.hooks import HookInstaller, HookInstallError


def is_executable(path) -> bool:
    return bool(path.stat().st_mode & stat.S_IXUSR) and os.access(path, os.X_OK)


def test_install_writes_both_hooks(temp_git_project):
    """Test install creates post-merge and pre-push"""
    paths = HookInstaller(str(temp_git_project)).install()

    hooks_dir = temp_git_project / ".git" / "hooks"
    assert [p.name for p in paths] == ["post-merge", "pre-push"]
    assert (hooks_dir / "post-merge").exists()
    assert (hooks_dir / "pre-push").exists()
    assert is_executable(hooks_dir / "post-merge")
    assert is_executable(hooks_dir / "pre-push")


def test_post_merge_content(temp_git_project):
    """Test the post-merge hook tags ORIG_HEAD and HEAD"""
    HookInstaller(str(temp_git_project)).install()

    content = (temp_git_project / ".git" / "hooks" / "post-merge").read_text()

    assert content.startswith("#!/bin/bash\n")
    assert 'TIMESTAMP=$(date +"%Y%m%d-%H%M%S")' in content
    assert 'TAG_PRE="backup-pull-$TIMESTAMP-0-pre-tag"' in content
    assert 'TAG_POST="backup-pull-$TIMESTAMP-1-post-tag"' in content
    assert 'git tag "$TAG_PRE" ORIG_HEAD' in content
    assert 'git tag "$TAG_POST" HEAD' in content
    assert content.endswith("fi\n")


def test_pre_push_blocks_with_bypass_hint(temp_git_project):
    """Test the full install mentions --no-verify"""
    HookInstaller(str(temp_git_project)).install()

    content = (temp_git_project / ".git" / "hooks" / "pre-push").read_text()

    assert "ACTION BLOCKED" in content
    assert "--no-verify" in content
    assert content.rstrip().endswith("exit 1")


def test_install_push_blocker_only(temp_git_project):
    """Test the push blocker variant writes only pre-push"""
    paths = HookInstaller(str(temp_git_project)).install_push_blocker()

    hooks_dir = temp_git_project / ".git" / "hooks"
    assert [p.name for p in paths] == ["pre-push"]
    assert not (hooks_dir / "post-merge").exists()

    content = (hooks_dir / "pre-push").read_text()
    assert "ACTION BLOCKED" in content
    assert "--no-verify" not in content
    assert is_executable(hooks_dir / "pre-push")


def test_install_outside_repo(tmp_path):
    """Test install fails without .git and writes nothing"""
    installer = HookInstaller(str(tmp_path))

    with pytest.raises(HookInstallError):
        installer.install()

    assert list(tmp_path.iterdir()) == []


def test_install_with_git_file_fails(tmp_path):
    """Test a .git file (not a directory) is rejected"""
    (tmp_path / ".git").write_text("gitdir: elsewhere\n")

    with pytest.raises(HookInstallError):
        HookInstaller(str(tmp_path)).install_push_blocker()


def test_install_is_idempotent(temp_git_project):
    """Test a second run overwrites with identical content"""
    installer = HookInstaller(str(temp_git_project))
    installer.install()
    hooks_dir = temp_git_project / ".git" / "hooks"
    first = {name: (hooks_dir / name).read_text() for name in ("post-merge", "pre-push")}

    (hooks_dir / "pre-push").chmod(0o644)
    installer.install()

    for name, content in first.items():
        assert (hooks_dir / name).read_text() == content
        assert is_executable(hooks_dir / name)


def test_install_overwrites_existing_hook(temp_git_project):
    """Test a foreign hook is replaced"""
    hooks_dir = temp_git_project / ".git" / "hooks"
    hooks_dir.mkdir()
    (hooks_dir / "pre-push").write_text("#!/bin/sh\nexit 0\n")

    HookInstaller(str(temp_git_project)).install()

    assert "ACTION BLOCKED" in (hooks_dir / "pre-push").read_text()


def test_custom_tag_prefix(temp_git_project):
    """Test tag prefix from .stack-doctor.yml"""
    (temp_git_project / ".stack-doctor.yml").write_text("hooks:\n  tag_prefix: rollback\n")

    installer = HookInstaller(str(temp_git_project), Config(str(temp_git_project)))
    installer.install()

    content = (temp_git_project / ".git" / "hooks" / "post-merge").read_text()
    assert 'TAG_PRE="rollback-$TIMESTAMP-0-pre-tag"' in content


def test_unsafe_tag_prefix_is_refused(temp_git_project):
    """Test a prefix that would break out of the shell assignment writes nothing"""
    (temp_git_project / ".stack-doctor.yml").write_text(
        "hooks:\n  tag_prefix: 'x\"; touch PWNED; echo \"'\n"
    )

    installer = HookInstaller(str(temp_git_project), Config(str(temp_git_project)))

    with pytest.raises(HookInstallError):
        installer.install()

    assert not (temp_git_project / ".git" / "hooks" / "post-merge").exists()
    assert not (temp_git_project / ".git" / "hooks" / "pre-push").exists()
