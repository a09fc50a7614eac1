"""Tests for the upload queue and Pillow previews."""
from pathlib import Path
from unittest.mock import MagicMock

from PIL import Image

from report_uploader.models import MB, UploadConfig, UploadStatus
from report_uploader.orchestrator.queue import UploadQueue
from report_uploader.services.preview import PreviewService


def make_image(path: Path, size=(640, 480)) -> Path:
    Image.new("RGB", size, color=(200, 30, 30)).save(path)
    return path


class TestPreviewService:
    def test_create_thumbnail(self, tmp_path):
        source = make_image(tmp_path / "photo.png")
        service = PreviewService(UploadConfig(preview_size=100), cache_dir=tmp_path / "previews")

        preview = service.create(source)

        assert preview is not None and preview.exists()
        with Image.open(preview) as img:
            assert max(img.size) <= 100
            assert img.format == "JPEG"

    def test_unreadable_image(self, tmp_path):
        broken = tmp_path / "broken.jpg"
        broken.write_bytes(b"not an image")
        service = PreviewService(cache_dir=tmp_path / "previews")

        assert service.create(broken) is None

    def test_release_and_close(self, tmp_path):
        source = make_image(tmp_path / "photo.png")
        service = PreviewService()

        preview = service.create(source)
        cache_dir = preview.parent
        service.release(preview)
        assert not preview.exists()

        service.close()
        assert not cache_dir.exists()


class TestUploadQueue:
    def test_rejections(self, tmp_path):
        config = UploadConfig(max_file_size_mb=1)
        notes = tmp_path / "notes.txt"
        notes.write_text("hello")
        huge = tmp_path / "huge.jpg"
        huge.write_bytes(b"x" * (2 * MB))
        good = make_image(tmp_path / "ok.jpg")
        queue = UploadQueue(config)

        result = queue.add([notes, huge, tmp_path / "missing.jpg", good])

        assert [item.name for item in result.accepted] == ["ok.jpg"]
        reasons = {path.name: reason for path, reason in result.rejected}
        assert reasons == {
            "notes.txt": "only image files are accepted",
            "huge.jpg": "file is larger than 1 MB",
            "missing.jpg": "file not found",
        }
        assert result.error == "notes.txt: only image files are accepted"
        assert len(queue) == 1

    def test_preview_cap(self, tmp_path):
        config = UploadConfig(max_preview_items=2)
        previews = PreviewService(config, cache_dir=tmp_path / "previews")
        files = [make_image(tmp_path / f"p{i}.png", (32, 32)) for i in range(4)]
        queue = UploadQueue(config, previews)

        queue.add(files)

        assert len(queue) == 4
        assert queue.preview_count == 2
        assert [item.preview is not None for item in queue.items] == [True, True, False, False]

    def test_remove_releases_preview(self, tmp_path):
        previews = MagicMock()
        previews.create.return_value = tmp_path / "thumb.jpg"
        queue = UploadQueue(UploadConfig(), previews)
        item = queue.add([make_image(tmp_path / "a.png", (8, 8))]).accepted[0]

        assert queue.remove(item.id) is True

        previews.release.assert_called_once_with(tmp_path / "thumb.jpg")
        assert len(queue) == 0

    def test_uploading_item_not_removable(self, tmp_path):
        queue = UploadQueue(UploadConfig())
        item = queue.add([make_image(tmp_path / "a.png", (8, 8))]).accepted[0]
        item.status = UploadStatus.UPLOADING

        assert queue.remove(item.id) is False
        assert queue.remove("unknown") is False
        assert len(queue) == 1

    def test_pending_items_include_failed_and_canceled(self, tmp_path):
        queue = UploadQueue(UploadConfig())
        items = queue.add([make_image(tmp_path / f"{n}.png", (8, 8)) for n in "abcde"]).accepted
        items[1].status = UploadStatus.DONE
        items[2].status = UploadStatus.ERROR
        items[3].status = UploadStatus.CANCELED
        items[4].status = UploadStatus.UPLOADING

        assert queue.pending_items() == [items[0], items[2], items[3]]
        assert queue.total_bytes == sum(i.size for i in items)

        queue.clear()
        assert len(queue) == 0
