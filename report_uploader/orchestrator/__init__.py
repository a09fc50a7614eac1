"""Orchestrator package - batch planning, transfers and the upload session."""
from .batching import ByteRange, plan_batches, byte_ranges
from .core import ReportUploadSession, SessionMessages
from .queue import IntakeResult, UploadQueue
from .transfer import CancellationToken, RunOutcome, TransferExecutor, UploadRun

__all__ = [
    "ByteRange",
    "plan_batches",
    "byte_ranges",
    "ReportUploadSession",
    "SessionMessages",
    "IntakeResult",
    "UploadQueue",
    "CancellationToken",
    "RunOutcome",
    "TransferExecutor",
    "UploadRun",
]
