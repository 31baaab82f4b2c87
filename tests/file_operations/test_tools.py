"""
Tests for the FileManagerTools facade and its tool dictionary.

This module tests:
- Construction (explicit and probed capability profiles)
- Tool wrappers returning plain dictionaries
- Request validation surfaced as INVALID_REQUEST
- Deadlines turning into TIMEOUT results
"""

import asyncio
import io
import os

import pytest

from fileward import FileManagerTools as PublicFileManagerTools
from fileward.exceptions import ErrorKind
from fileward.file_operations import create_file_manager_tools
from fileward.file_operations.capabilities import CapabilityProfile
from fileward.file_operations.config import FileManagerConfig
from fileward.file_operations.core import FileManagerTools
from fileward.file_operations.data_models import Outcome


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def root(tmp_path):
    root = tmp_path / "root"
    (root / "docs").mkdir(parents=True)
    (root / "docs" / "readme.md").write_text("# hello")
    (root / "top.txt").write_text("top")
    return root.resolve()


@pytest.fixture
def profile():
    return CapabilityProfile(
        has_native_archive=True,
        has_shell_exec=False,
        has_outbound_http=False,
        has_http_client=False,
        is_posix=os.name == "posix",
    )


@pytest.fixture
def manager(root, profile):
    return FileManagerTools(FileManagerConfig.create_offline(root), profile=profile)


@pytest.fixture
def tools(manager):
    return manager.get_tools()


# =============================================================================
# Construction Tests
# =============================================================================

class TestConstruction:

    def test_public_export(self):
        assert PublicFileManagerTools is FileManagerTools

    def test_profile_probed_when_missing(self, root):
        manager = FileManagerTools(FileManagerConfig.create_offline(root))

        assert manager.get_profile().has_native_archive
        assert not manager.get_profile().can_fetch

    def test_root(self, manager, root):
        assert manager.root == root

    def test_create_file_manager_tools(self, root):
        tools = create_file_manager_tools(FileManagerConfig.create_offline(root))

        assert set(tools) == {
            "list", "download", "create_file", "create_folder", "delete", "rename",
            "chmod", "upload", "zip", "unzip", "fetch", "server_info",
        }


# =============================================================================
# Tool Wrapper Tests
# =============================================================================

class TestToolWrappers:

    @pytest.mark.asyncio
    async def test_list(self, tools):
        listing = await tools["list"](".")

        assert listing["success"] is True
        assert [entry["name"] for entry in listing["entries"]] == ["docs", "top.txt"]
        assert listing["directory_count"] == 1
        assert listing["file_count"] == 1
        assert listing["total_size"] == 3

    @pytest.mark.asyncio
    async def test_list_outside_root(self, tools):
        listing = await tools["list"]("../")

        assert listing["success"] is False
        assert listing["error"]["error_kind"] == "out_of_bounds"

    @pytest.mark.asyncio
    async def test_download(self, tools):
        described = await tools["download"]("docs/readme.md")

        assert described["success"] is True
        assert described["entry"]["size"] == 7

    @pytest.mark.asyncio
    async def test_download_directory_rejected(self, tools):
        described = await tools["download"]("docs")

        assert described["success"] is False
        assert described["error"]["error_kind"] == "invalid_request"

    @pytest.mark.asyncio
    async def test_create_rename_delete(self, tools, root):
        created = await tools["create_folder"](".", "work")
        touched = await tools["create_file"]("work", "a.txt")
        renamed = await tools["rename"]("work/a.txt", "b.txt")
        removed = await tools["delete"]("work", recursive=True)

        assert [created["success"], touched["success"], renamed["success"], removed["success"]] == [True] * 4
        assert not (root / "work").exists()

    @pytest.mark.asyncio
    async def test_delete_non_empty_without_recursive(self, tools, root):
        result = await tools["delete"]("docs")

        assert result["success"] is False
        assert result["error_kind"] == "not_empty"
        assert (root / "docs" / "readme.md").exists()

    @pytest.mark.asyncio
    async def test_upload(self, tools, root):
        result = await tools["upload"]("docs", "data.bin", io.BytesIO(b"payload"))

        assert result["success"] is True
        assert (root / "docs" / "data.bin").read_bytes() == b"payload"

    @pytest.mark.skipif(os.name != "posix", reason="POSIX permissions")
    @pytest.mark.asyncio
    async def test_chmod(self, tools, root):
        result = await tools["chmod"]("top.txt", "640")

        assert result["success"] is True
        assert (root / "top.txt").stat().st_mode & 0o777 == 0o640

    @pytest.mark.asyncio
    async def test_zip_and_unzip(self, tools, root):
        zipped = await tools["zip"](["docs", "top.txt"], "bundle.zip")
        unzipped = await tools["unzip"]("bundle.zip")

        assert zipped["success"] is True
        assert zipped["strategy_used"] == "native_zip"
        assert unzipped["success"] is True
        assert (root / "bundle_extracted" / "docs" / "readme.md").read_text() == "# hello"

    @pytest.mark.asyncio
    async def test_fetch_unavailable(self, tools):
        result = await tools["fetch"]("http://example.com/a.bin")

        assert result["success"] is False
        assert result["error_kind"] == "capability_unavailable"

    @pytest.mark.asyncio
    async def test_server_info(self, tools, root):
        info = await tools["server_info"]()

        assert info["root"] == str(root)
        assert info["has_native_archive"] is True
        assert info["can_fetch"] is False


# =============================================================================
# Validation and Deadline Tests
# =============================================================================

class TestFacadeValidation:

    @pytest.mark.asyncio
    async def test_single_source_accepted(self, manager, root):
        result = await manager.create_archive("top.txt", "one.zip")

        assert result.succeeded
        assert (root / "one.zip").exists()

    @pytest.mark.asyncio
    async def test_bad_archive_name(self, manager):
        result = await manager.create_archive(["docs"], "../escape.zip")

        assert result.outcome == Outcome.FAILURE
        assert result.error_kind == ErrorKind.INVALID_REQUEST
        assert "archive_name" in result.message

    @pytest.mark.asyncio
    async def test_no_sources(self, manager):
        result = await manager.create_archive([], "empty.zip")

        assert result.error_kind == ErrorKind.INVALID_REQUEST

    @pytest.mark.asyncio
    async def test_bad_url(self, manager):
        result = await manager.fetch("not a url")

        assert result.error_kind == ErrorKind.INVALID_REQUEST

    @pytest.mark.asyncio
    async def test_deadline(self, manager):
        async def never_finishes():
            await asyncio.sleep(30)

        result = await manager._with_deadline("extract_archive", never_finishes(), 0.05)

        assert result.outcome == Outcome.FAILURE
        assert result.error_kind == ErrorKind.TIMEOUT
        assert "0.05" in result.message

    @pytest.mark.asyncio
    async def test_no_deadline_passes_result_through(self, manager):
        result = await manager.extract_archive("missing.zip", timeout=None)

        assert result.error_kind == ErrorKind.NOT_FOUND
