"""Unit tests for setup error construction and fault classification."""
from pathlib import Path
import pytest
from workspace_setup.errors import ErrorKind, SetupError, classify_fault
from workspace_setup.provisioner.workspace import WorkspaceProvisionError


class TestSetupError:

    def test_filesystem_factory_populates_all_fields(self):
        error = SetupError.filesystem(Path("/data/repo"), "Permission denied")
        assert error.message == "Local repository setup failed: Permission denied"
        assert error.kind is ErrorKind.FILESYSTEM
        assert error.retryable is False
        assert error.context == {
            "source_path": "/data/repo",
            "underlying_message": "Permission denied",
        }
        assert str(error) == error.message

    def test_to_dict(self):
        error = SetupError.filesystem("repo", "boom")
        assert error.to_dict() == {
            "message": "Local repository setup failed: boom",
            "kind": "filesystem",
            "retryable": False,
            "context": {"source_path": "repo", "underlying_message": "boom"},
        }

    def test_context_is_copied(self):
        context = {"source_path": "repo", "underlying_message": "boom"}
        error = SetupError("msg", ErrorKind.FILESYSTEM, False, context)
        context["source_path"] = "changed"
        assert error.context["source_path"] == "repo"


class TestClassifyFault:

    def test_wraps_os_error(self):
        error = classify_fault(FileNotFoundError("No such file"), "missing/dir")
        assert isinstance(error, SetupError)
        assert error.kind is ErrorKind.FILESYSTEM
        assert error.retryable is False
        assert error.context["source_path"] == "missing/dir"
        assert error.context["underlying_message"] == "No such file"

    def test_wraps_provision_error(self):
        fault = WorkspaceProvisionError("/src", "Failed to copy /src")
        error = classify_fault(fault, "/src")
        assert error.context["underlying_message"] == "Failed to copy /src"

    def test_existing_setup_error_is_not_rewrapped(self):
        original = SetupError.filesystem("a", "b")
        assert classify_fault(original, "other") is original

    def test_empty_message_falls_back_to_type_name(self):
        error = classify_fault(PermissionError(), "repo")
        assert error.context["underlying_message"] == "PermissionError"

    def test_result_is_raisable(self):
        with pytest.raises(SetupError):
            raise classify_fault(OSError("x"), "repo")
