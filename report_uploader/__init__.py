"""
report_uploader - photo report upload client for field-operation tasks.

Pieces:
- Batch planning: pending photos are grouped into bounded multipart requests
- Transfer execution: sequential batches, per-file progress, cancellation
- Folder schema: org-defined folders resolved into a navigable tree
- Classification: stored file URLs mapped back onto that tree

Usage:
    from report_uploader import ReportUploadSession

    async with ReportUploadSession(api_url, "T-100", ["BS-1", "BS-2"]) as session:
        await session.load_folder_config()
        await session.open_base("BS-1")
        session.select_folder(folder_id)
        session.add_files([Path("photo1.jpg"), Path("photo2.jpg")])
        run = await session.upload()
        if session.all_uploaded:
            await session.submit()
"""
from .orchestrator import (
    ReportUploadSession,
    TransferExecutor,
    UploadRun,
    RunOutcome,
    CancellationToken,
    plan_batches,
)
from .models import UploadItem, UploadStatus, UploadConfig, BatchResult, FolderPath, BaseState
from .folders import FolderTree, OccupancyIndex, can_upload
from .services import (
    APIError,
    HTTPAPIClient,
    PreviewService,
    ReportRepository,
    FolderSchemaService,
)

__version__ = "0.1.0"
__all__ = [
    # Main
    "ReportUploadSession",
    "TransferExecutor",
    "UploadRun",
    "RunOutcome",
    "CancellationToken",
    "plan_batches",
    # Models
    "UploadItem",
    "UploadStatus",
    "UploadConfig",
    "BatchResult",
    "FolderPath",
    "BaseState",
    # Folders
    "FolderTree",
    "OccupancyIndex",
    "can_upload",
    # Services
    "APIError",
    "HTTPAPIClient",
    "PreviewService",
    "ReportRepository",
    "FolderSchemaService",
]
