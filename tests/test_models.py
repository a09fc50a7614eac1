"""Tests for report_uploader models."""
from pathlib import Path

import pytest

from report_uploader.models import (
    MB,
    BaseState,
    BatchResult,
    UploadConfig,
    UploadItem,
    UploadStatus,
    readable_size,
)


class TestUploadConfig:
    def test_defaults(self):
        config = UploadConfig()
        assert config.max_batch_files == 5
        assert config.max_batch_bytes == 20 * MB
        assert config.max_file_size == 15 * MB
        assert config.max_preview_items == 12

    def test_frozen(self):
        config = UploadConfig()
        with pytest.raises(Exception):
            config.max_batch_files = 10

    def test_endpoint_prefix(self):
        assert UploadConfig().endpoint("/api/reports/upload") == "/api/reports/upload"
        config = UploadConfig(api_base_path="/app/")
        assert config.endpoint("/api/reports/upload") == "/app/api/reports/upload"


class TestUploadItem:
    def test_from_path(self, tmp_path):
        photo = tmp_path / "photo.jpg"
        photo.write_bytes(b"x" * 1234)

        item = UploadItem.from_path(photo)

        assert item.size == 1234
        assert item.name == "photo.jpg"
        assert item.status == UploadStatus.READY
        assert item.progress == 0
        assert item.id.startswith("photo.jpg-")

    def test_duplicate_names_get_distinct_ids(self, tmp_path):
        photo = tmp_path / "photo.jpg"
        photo.write_bytes(b"abc")

        first = UploadItem.from_path(photo)
        second = UploadItem.from_path(photo)

        assert first.id != second.id

    def test_removable_unless_uploading(self):
        item = UploadItem(id="a", path=Path("a.jpg"), size=1)
        assert item.removable is True
        item.status = UploadStatus.UPLOADING
        assert item.removable is False
        item.status = UploadStatus.ERROR
        assert item.removable is True

    def test_terminal_statuses(self):
        assert UploadStatus.DONE.is_terminal
        assert UploadStatus.ERROR.is_terminal
        assert UploadStatus.CANCELED.is_terminal
        assert not UploadStatus.READY.is_terminal
        assert not UploadStatus.UPLOADING.is_terminal


class TestBatchResult:
    def test_success(self):
        result = BatchResult.success(["u1", "u2"])
        assert result.ok is True
        assert result.urls == ["u1", "u2"]
        assert result.error is None

    def test_fail(self):
        result = BatchResult.fail("boom")
        assert result.ok is False
        assert result.error == "boom"
        assert result.canceled is False

    def test_aborted(self):
        result = BatchResult.aborted("Canceled")
        assert result.ok is False
        assert result.canceled is True


class TestBaseState:
    def test_set_files_updates_flags(self):
        state = BaseState("BS-1")
        state.set_files(["a", "", "b"])
        assert state.files == ["a", "b"]
        assert state.file_count == 2
        assert state.uploaded is True

        state.set_files([])
        assert state.uploaded is False
        assert state.file_count == 0

    def test_expanded_starts_unset(self):
        assert BaseState("BS-1").expanded is None


def test_readable_size():
    assert readable_size(0) == "0.00 MB"
    assert readable_size(MB + MB // 2) == "1.50 MB"
