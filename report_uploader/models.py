"""
Models for report_uploader module.

Configuration and results are immutable dataclasses; UploadItem and BaseState
are mutable because the transfer executor and the session update them in place.
"""
from dataclasses import dataclass, field
from typing import Optional, List, Set
from pathlib import Path
from enum import Enum
import secrets


MB = 1024 * 1024


class UploadStatus(Enum):
    """Lifecycle of a single queued file."""
    READY = "ready"
    UPLOADING = "uploading"
    DONE = "done"
    ERROR = "error"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in (UploadStatus.DONE, UploadStatus.ERROR, UploadStatus.CANCELED)


def make_item_id(path: Path, mtime_ns: int) -> str:
    """Identity tolerant to duplicate names: name + mtime + random salt."""
    return f"{path.name}-{mtime_ns}-{secrets.token_hex(4)}"


@dataclass(eq=False)
class UploadItem:
    """One locally selected file pending or being transferred."""
    id: str
    path: Path
    size: int
    preview: Optional[Path] = None
    progress: int = 0
    status: UploadStatus = UploadStatus.READY
    error: Optional[str] = None

    @classmethod
    def from_path(cls, path: Path, preview: Optional[Path] = None) -> "UploadItem":
        path = Path(path)
        stat = path.stat()
        return cls(
            id=make_item_id(path, stat.st_mtime_ns),
            path=path,
            size=stat.st_size,
            preview=preview,
        )

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def removable(self) -> bool:
        return self.status != UploadStatus.UPLOADING


@dataclass(frozen=True)
class BatchResult:
    """Outcome of one batch transfer. Failures are values, not exceptions."""
    ok: bool
    urls: List[str] = field(default_factory=list)
    error: Optional[str] = None
    canceled: bool = False

    @classmethod
    def success(cls, urls: List[str]):
        return cls(ok=True, urls=list(urls))

    @classmethod
    def fail(cls, error: str):
        return cls(ok=False, error=error)

    @classmethod
    def aborted(cls, error: str):
        return cls(ok=False, error=error, canceled=True)


@dataclass(frozen=True)
class FolderPath:
    """Canonical folder schema entry: node id and its slash-joined path."""
    id: str
    path: str


@dataclass
class BaseState:
    """Per destination unit ("base") state kept by the session."""
    base_id: str
    uploaded: bool = False
    file_count: int = 0
    files: List[str] = field(default_factory=list)
    selected_folder_id: Optional[str] = None  # None means root
    # None = not customized yet, the tree computes "all expanded"
    expanded: Optional[Set[str]] = None

    def set_files(self, files: List[str]) -> None:
        self.files = [f for f in files if f]
        self.file_count = len(self.files)
        self.uploaded = self.file_count > 0


@dataclass(frozen=True)
class UploadConfig:
    """Immutable configuration for upload sessions."""
    max_batch_files: int = 5
    max_batch_mb: int = 20
    max_file_size_mb: int = 15
    max_preview_items: int = 12
    preview_size: int = 320
    alert_dismiss_seconds: float = 3.0
    api_base_path: str = ""
    canceled_message: str = "Canceled"
    network_error_message: str = "Network failure"
    upload_error_message: str = "Upload failed"
    read_only_message: str = "Storage is read-only"

    @property
    def max_batch_bytes(self) -> int:
        return self.max_batch_mb * MB

    @property
    def max_file_size(self) -> int:
        return self.max_file_size_mb * MB

    def endpoint(self, path: str) -> str:
        """Prefix an API path with the configured base path."""
        base = self.api_base_path.rstrip("/")
        return f"{base}{path}" if base else path


def readable_size(size: int) -> str:
    """Format bytes as megabytes with two decimals."""
    return f"{size / MB:.2f} MB"
