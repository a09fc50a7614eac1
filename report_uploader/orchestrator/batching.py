"""Batch planning and per-item byte ranges."""
from dataclasses import dataclass
from typing import List, Sequence

from ..models import UploadItem, UploadStatus, UploadConfig


@dataclass(frozen=True)
class ByteRange:
    """Position of one item inside the concatenated batch payload."""
    item_id: str
    start: int
    end: int

    @property
    def size(self) -> int:
        return self.end - self.start

    def percent(self, loaded: int) -> int:
        """Item progress for a batch-wide byte counter, clamped to 0..100."""
        fraction = (loaded - self.start) / self.size
        return round(max(0.0, min(1.0, fraction)) * 100)


def safe_size(item: UploadItem) -> int:
    """Sizes are floored at 1 byte so no range is empty."""
    return max(1, item.size)


def plan_batches(items: Sequence[UploadItem], config: UploadConfig) -> List[List[UploadItem]]:
    """
    Greedy partition preserving input order.

    A batch is closed before an item that would exceed the file cap or push
    the byte sum over the byte cap. A file larger than the byte cap alone
    still gets a batch of its own; its bytes are never split.
    """
    batches: List[List[UploadItem]] = []
    current: List[UploadItem] = []
    current_bytes = 0

    for item in items:
        if item.status == UploadStatus.DONE:
            continue
        size = safe_size(item)
        would_exceed = bool(current) and (
            len(current) >= config.max_batch_files
            or current_bytes + size > config.max_batch_bytes
        )
        if would_exceed:
            batches.append(current)
            current = []
            current_bytes = 0
        current.append(item)
        current_bytes += size

    if current:
        batches.append(current)
    return batches


def byte_ranges(batch: Sequence[UploadItem]) -> List[ByteRange]:
    ranges: List[ByteRange] = []
    offset = 0
    for item in batch:
        end = offset + safe_size(item)
        ranges.append(ByteRange(item.id, offset, end))
        offset = end
    return ranges


def batch_bytes(batch: Sequence[UploadItem]) -> int:
    return sum(safe_size(item) for item in batch)
