"""Unit tests for workspace provisioner.

Tests writability probing, in-place use of writable sources, copy
creation for unwritable sources, skip-on-conflict copying,
and failure wrapping for the WorkspaceProvisioner.
"""
import asyncio
import os
from pathlib import Path
import pytest
from workspace_setup.provisioner.workspace import (
    ProvisionedWorkspace, WorkspaceConfig, WorkspaceProvisionError,
    WorkspaceProvisioner, WORKSPACE_DIR_PERMISSIONS, WORKSPACE_DIR_PREFIX, is_writable,
    resolve_source_path,
)


def run_async(coro):
    return asyncio.run(coro)


def never_writable(path):
    return False


@pytest.fixture
def scratch_root(tmp_path):
    return tmp_path / "repos"


@pytest.fixture
def source_dir(tmp_path):
    source = tmp_path / "source"
    (source / "pkg").mkdir(parents=True)
    (source / "README.md").write_text("hello")
    (source / "pkg" / "module.py").write_text("x = 1\n")
    return source


@pytest.fixture
def copying_provisioner(scratch_root):
    return WorkspaceProvisioner(
        WorkspaceConfig(scratch_root=scratch_root), writable_check=never_writable)


class TestWritabilityProbe:

    def test_writable_directory(self, tmp_path):
        assert is_writable(tmp_path) is True

    def test_missing_directory_is_not_writable(self, tmp_path):
        assert is_writable(tmp_path / "missing") is False

    def test_invalid_path_is_not_writable(self):
        assert is_writable("bad\0path") is False

    @pytest.mark.skipif(
        not hasattr(os, "geteuid") or os.geteuid() == 0,
        reason="root bypasses permission bits")
    def test_read_only_directory(self, tmp_path):
        locked = tmp_path / "locked"
        locked.mkdir()
        locked.chmod(0o555)
        try:
            assert is_writable(locked) is False
        finally:
            locked.chmod(0o755)

    def test_probe_does_not_mutate(self, tmp_path):
        before = sorted(tmp_path.iterdir())
        is_writable(tmp_path)
        assert sorted(tmp_path.iterdir()) == before


class TestInPlace:

    def test_writable_source_is_returned_unchanged(self, source_dir, scratch_root):
        provisioner = WorkspaceProvisioner(WorkspaceConfig(scratch_root=scratch_root))
        result = run_async(provisioner.provision(source_dir))
        assert isinstance(result, ProvisionedWorkspace)
        assert result.path == source_dir.resolve()
        assert result.copied is False
        assert not scratch_root.exists()

    def test_relative_source_is_resolved(self, source_dir, scratch_root, monkeypatch):
        monkeypatch.chdir(source_dir.parent)
        provisioner = WorkspaceProvisioner(WorkspaceConfig(scratch_root=scratch_root))
        result = run_async(provisioner.provision("source"))
        assert result.path == source_dir.resolve()
        assert result.path.is_absolute()

    def test_explicit_writable_flag_skips_probe(self, source_dir, scratch_root):
        provisioner = WorkspaceProvisioner(
            WorkspaceConfig(scratch_root=scratch_root), writable_check=never_writable)
        result = run_async(provisioner.provision(source_dir, writable=True))
        assert result.path == source_dir.resolve()
        assert not scratch_root.exists()

    def test_tilde_is_an_ordinary_directory_name(self, tmp_path, scratch_root, monkeypatch):
        (tmp_path / "~").mkdir()
        monkeypatch.chdir(tmp_path)
        provisioner = WorkspaceProvisioner(WorkspaceConfig(scratch_root=scratch_root))
        result = run_async(provisioner.provision("~"))
        assert result.path == (tmp_path / "~").resolve()


class TestSourceResolution:

    def test_relative_path_becomes_absolute(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert resolve_source_path("a/b") == (tmp_path / "a" / "b").resolve()

    def test_unknown_user_prefix_is_not_expanded(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        resolved = resolve_source_path("~nosuchuser/proj")
        assert resolved == (tmp_path / "~nosuchuser" / "proj").resolve()

    def test_resolution_failure_raises_provision_error(self, monkeypatch):
        def loop(self, strict=False):
            raise RuntimeError(f"Symlink loop from {str(self)!r}")

        monkeypatch.setattr(Path, "resolve", loop)
        with pytest.raises(WorkspaceProvisionError, match="Failed to resolve") as exc_info:
            resolve_source_path("LOOP")
        assert exc_info.value.source_path == "LOOP"
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_nul_byte_source_is_not_provisioned(self, copying_provisioner, scratch_root):
        with pytest.raises(WorkspaceProvisionError):
            run_async(copying_provisioner.provision("bad\0path"))
        assert not scratch_root.exists() or list(scratch_root.iterdir()) == []


class TestCopyMode:

    def test_copy_created_under_scratch_root(self, copying_provisioner, source_dir, scratch_root):
        result = run_async(copying_provisioner.provision(source_dir))
        assert result.copied is True
        assert result.path.parent == scratch_root.resolve()
        assert result.path.name.startswith(WORKSPACE_DIR_PREFIX)
        assert result.path != source_dir.resolve()
        assert result.source_path == source_dir.resolve()
        assert is_writable(result.path)

    def test_copy_contains_source_tree(self, copying_provisioner, source_dir):
        result = run_async(copying_provisioner.provision(source_dir))
        assert (result.path / "README.md").read_text() == "hello"
        assert (result.path / "pkg" / "module.py").read_text() == "x = 1\n"

    def test_copy_leaves_source_untouched(self, copying_provisioner, source_dir):
        run_async(copying_provisioner.provision(source_dir))
        assert sorted(p.name for p in source_dir.iterdir()) == ["README.md", "pkg"]

    def test_existing_scratch_root_is_reused(self, copying_provisioner, source_dir, scratch_root):
        scratch_root.mkdir()
        (scratch_root / "keep.txt").write_text("keep")
        run_async(copying_provisioner.provision(source_dir))
        assert (scratch_root / "keep.txt").read_text() == "keep"

    def test_each_call_gets_a_distinct_copy(self, copying_provisioner, source_dir):
        first = run_async(copying_provisioner.provision(source_dir))
        second = run_async(copying_provisioner.provision(source_dir))
        assert first.path != second.path
        assert first.path.exists() and second.path.exists()

    def test_read_only_source_yields_writable_copy(self, copying_provisioner, source_dir):
        source_dir.chmod(0o555)
        try:
            result = run_async(copying_provisioner.provision(source_dir))
        finally:
            source_dir.chmod(0o755)
        assert result.path.stat().st_mode & 0o777 == WORKSPACE_DIR_PERMISSIONS

    def test_symlinks_are_preserved(self, copying_provisioner, source_dir):
        (source_dir / "link.md").symlink_to("README.md")
        result = run_async(copying_provisioner.provision(source_dir))
        copied_link = result.path / "link.md"
        assert copied_link.is_symlink()
        assert os.readlink(copied_link) == "README.md"


class TestSkipOnConflict:

    def test_existing_file_is_not_overwritten(self, copying_provisioner, source_dir, tmp_path):
        destination = tmp_path / "dest"
        (destination / "pkg").mkdir(parents=True)
        (destination / "README.md").write_text("local edit")
        copying_provisioner._copy_source(source_dir, destination)
        assert (destination / "README.md").read_text() == "local edit"
        assert (destination / "pkg" / "module.py").read_text() == "x = 1\n"

    def test_existing_directory_is_merged(self, copying_provisioner, source_dir, tmp_path):
        destination = tmp_path / "dest"
        (destination / "pkg").mkdir(parents=True)
        (destination / "pkg" / "extra.py").write_text("y = 2\n")
        copying_provisioner._copy_source(source_dir, destination)
        assert (destination / "pkg" / "extra.py").read_text() == "y = 2\n"
        assert (destination / "pkg" / "module.py").exists()


class TestProvisionFailures:

    def test_missing_source_raises(self, copying_provisioner, tmp_path):
        missing = tmp_path / "does-not-exist"
        with pytest.raises(WorkspaceProvisionError, match="Failed to copy") as exc_info:
            run_async(copying_provisioner.provision(missing))
        assert exc_info.value.source_path == str(missing.resolve())

    def test_failed_copy_removes_partial_workspace(self, copying_provisioner, tmp_path, scratch_root):
        with pytest.raises(WorkspaceProvisionError):
            run_async(copying_provisioner.provision(tmp_path / "does-not-exist"))
        assert list(scratch_root.iterdir()) == []

    def test_unusable_scratch_root_raises(self, source_dir, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        provisioner = WorkspaceProvisioner(
            WorkspaceConfig(scratch_root=blocker / "repos"), writable_check=never_writable)
        with pytest.raises(WorkspaceProvisionError, match="scratch root"):
            run_async(provisioner.provision(source_dir))

    def test_error_chains_underlying_os_error(self, copying_provisioner, tmp_path):
        with pytest.raises(WorkspaceProvisionError) as exc_info:
            run_async(copying_provisioner.provision(tmp_path / "nope"))
        assert isinstance(exc_info.value.__cause__, OSError)

