"""Local upload queue: intake validation, removal and preview bookkeeping."""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Tuple
import logging
import mimetypes

from ..models import UploadConfig, UploadItem, UploadStatus
from ..protocols import IPreviewGenerator

logger = logging.getLogger(__name__)


@dataclass
class IntakeResult:
    """Files accepted into the queue and files rejected with a reason."""
    accepted: List[UploadItem] = field(default_factory=list)
    rejected: List[Tuple[Path, str]] = field(default_factory=list)

    @property
    def error(self) -> Optional[str]:
        """First rejection reason, shown as the selection error."""
        if not self.rejected:
            return None
        path, reason = self.rejected[0]
        return f"{path.name}: {reason}"


class UploadQueue:
    """
    Ordered list of UploadItems for the active base.

    Previews are materialized only while fewer than max_preview_items
    exist; they are released when an item is removed or the queue cleared.
    """

    def __init__(self, config: Optional[UploadConfig] = None, previews: Optional[IPreviewGenerator] = None):
        self._config = config or UploadConfig()
        self._previews = previews
        self._items: List[UploadItem] = []

    def __iter__(self) -> Iterator[UploadItem]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    @property
    def items(self) -> List[UploadItem]:
        return list(self._items)

    @property
    def preview_count(self) -> int:
        return sum(1 for item in self._items if item.preview is not None)

    @property
    def total_bytes(self) -> int:
        return sum(item.size for item in self._items)

    def get(self, item_id: str) -> Optional[UploadItem]:
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    def pending_items(self) -> List[UploadItem]:
        """Items still to send: ready ones plus earlier failures and cancellations."""
        return [
            item for item in self._items
            if item.status not in (UploadStatus.DONE, UploadStatus.UPLOADING)
        ]

    def validate(self, path: Path) -> Optional[str]:
        """Reason a file cannot be queued, or None."""
        if not path.is_file():
            return "file not found"
        mime = mimetypes.guess_type(path.name)[0] or ""
        if not mime.startswith("image/"):
            return "only image files are accepted"
        if path.stat().st_size > self._config.max_file_size:
            return f"file is larger than {self._config.max_file_size_mb} MB"
        return None

    def add(self, paths: Iterable[Path]) -> IntakeResult:
        result = IntakeResult()
        previews = self.preview_count
        for path in paths:
            path = Path(path)
            reason = self.validate(path)
            if reason:
                logger.info(f"Rejected {path.name}: {reason}")
                result.rejected.append((path, reason))
                continue

            preview = None
            if self._previews is not None and previews < self._config.max_preview_items:
                preview = self._previews.create(path)
                if preview is not None:
                    previews += 1

            item = UploadItem.from_path(path, preview=preview)
            self._items.append(item)
            result.accepted.append(item)

        logger.debug(f"Queued {len(result.accepted)} file(s), rejected {len(result.rejected)}")
        return result

    def remove(self, item_id: str) -> bool:
        """Drop an item unless it is uploading."""
        item = self.get(item_id)
        if item is None or not item.removable:
            return False
        self._release(item)
        self._items.remove(item)
        return True

    def clear(self) -> None:
        for item in self._items:
            self._release(item)
        self._items = []

    def _release(self, item: UploadItem) -> None:
        if self._previews is not None and item.preview is not None:
            self._previews.release(item.preview)
        item.preview = None
