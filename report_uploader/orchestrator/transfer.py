"""
Transfer Executor - drains planned batches one network request at a time.

Batches run strictly sequentially. Each batch resolves to a BatchResult;
the first unsuccessful one halts the run and leaves later batches ready.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence
import asyncio
import logging

import httpx

from ..models import BatchResult, UploadConfig, UploadItem, UploadStatus
from ..protocols import ITransferClient
from ..services.api_client import APIError
from ..utils.events import EventEmitter
from .batching import batch_bytes, byte_ranges, plan_batches

logger = logging.getLogger(__name__)


class CancellationToken:
    """
    Shared cancel flag plus abort callbacks for whatever is in flight.

    Usage:
        token = CancellationToken()
        unregister = token.register(task.cancel)
        ...
        token.cancel()  # flips the flag and calls task.cancel()
    """

    def __init__(self):
        self._cancelled = False
        self._callbacks: List[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        for callback in self._callbacks[:]:
            try:
                callback()
            except Exception as e:
                logger.error(f"Abort callback failed: {e}")

    def register(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Add an abort callback; returns a function that removes it."""
        if self._cancelled:
            callback()
        self._callbacks.append(callback)

        def unregister():
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unregister


class RunOutcome(Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELED = "canceled"


@dataclass
class UploadRun:
    """Planned batches, the index of the next batch and how the run ended."""
    batches: List[List[UploadItem]]
    cursor: int = 0
    outcome: RunOutcome = RunOutcome.PENDING
    urls: List[str] = field(default_factory=list)
    error: Optional[str] = None
    uploaded_items: int = 0

    @property
    def items(self) -> List[UploadItem]:
        return [item for batch in self.batches for item in batch]

    @property
    def finished(self) -> bool:
        return self.outcome in (RunOutcome.COMPLETED, RunOutcome.CANCELED)

    @property
    def success(self) -> bool:
        return self.outcome == RunOutcome.COMPLETED


class TransferExecutor:
    """
    Sends batches and keeps UploadItem status/progress in sync.

    Only this class writes item status and progress while a run is active.
    """

    def __init__(
        self,
        client: ITransferClient,
        config: Optional[UploadConfig] = None,
        events: Optional[EventEmitter] = None,
    ):
        self._client = client
        self._config = config or UploadConfig()
        self._events = events or EventEmitter()

    def plan(self, items: Sequence[UploadItem]) -> UploadRun:
        return UploadRun(batches=plan_batches(items, self._config))

    async def run(
        self,
        run: UploadRun,
        token: CancellationToken,
        task_id: str,
        base_id: str,
        folder_id: Optional[str] = None,
    ) -> UploadRun:
        """
        Drain the remaining batches of a run.

        A failed run can be passed in again to continue with the batches
        that were never attempted.
        """
        if run.finished or run.outcome == RunOutcome.RUNNING:
            raise RuntimeError(f"Cannot start run in state: {run.outcome.value}")

        fields = {"baseId": base_id, "taskId": task_id}
        if folder_id:
            fields["folderId"] = folder_id

        run.outcome = RunOutcome.RUNNING
        run.error = None
        total = len(run.batches)

        while run.cursor < total:
            if token.cancelled:
                await self._cancel_pending(run)
                break

            index = run.cursor
            batch = run.batches[index]
            logger.info(
                f"[{index + 1}/{total}] Uploading batch of {len(batch)} file(s) "
                f"({batch_bytes(batch) / (1024 * 1024):.2f} MB) to {base_id}"
            )
            await self._events.emit("batch_start", index, batch)
            result = await self._send_batch(batch, token, fields)
            run.cursor += 1
            await self._events.emit("batch_complete", index, result)

            if result.ok:
                run.urls.extend(result.urls)
                run.uploaded_items += len(batch)
                continue

            if result.canceled or token.cancelled:
                await self._cancel_pending(run)
                break

            logger.error(f"[{index + 1}/{total}] Batch failed: {result.error}")
            run.outcome = RunOutcome.FAILED
            run.error = result.error
            break
        else:
            run.outcome = RunOutcome.COMPLETED

        await self._events.emit("run_finish", run)
        return run

    async def _set_status(self, item: UploadItem, status: UploadStatus, error: Optional[str] = None):
        item.status = status
        item.error = error
        if status == UploadStatus.DONE:
            item.progress = 100
        await self._events.emit("item_status", item)

    async def _cancel_pending(self, run: UploadRun) -> None:
        run.outcome = RunOutcome.CANCELED
        run.error = self._config.canceled_message
        for item in run.items:
            if item.status in (UploadStatus.READY, UploadStatus.UPLOADING):
                await self._set_status(item, UploadStatus.CANCELED, self._config.canceled_message)
        logger.info("Upload canceled")

    async def _send_batch(
        self,
        batch: List[UploadItem],
        token: CancellationToken,
        fields: Dict[str, str],
    ) -> BatchResult:
        for item in batch:
            item.progress = 0
            await self._set_status(item, UploadStatus.UPLOADING)

        ranges = byte_ranges(batch)
        by_id = {item.id: item for item in batch}
        payload_bytes = batch_bytes(batch)

        async def on_progress(sent: int, total: int) -> None:
            if token.cancelled:
                return
            # sent counts multipart framing too; scale it onto file bytes
            loaded = sent * payload_bytes // total if total else sent
            for byte_range in ranges:
                item = by_id[byte_range.item_id]
                if item.status != UploadStatus.UPLOADING:
                    continue
                percent = byte_range.percent(loaded)
                if percent > item.progress:
                    item.progress = percent
                    await self._events.emit("item_progress", item)

        task = asyncio.ensure_future(
            self._client.upload_files(
                self._config.endpoint("/api/reports/upload"),
                fields,
                [item.path for item in batch],
                on_progress,
            )
        )
        unregister = token.register(task.cancel)
        try:
            payload = await task
        except asyncio.CancelledError:
            if not token.cancelled:
                raise
            await self._mark(batch, UploadStatus.CANCELED, self._config.canceled_message)
            return BatchResult.aborted(self._config.canceled_message)
        except APIError as e:
            if e.read_only:
                message = self._config.read_only_message
            else:
                message = e.error or self._config.upload_error_message
            await self._mark(batch, UploadStatus.ERROR, self._config.upload_error_message)
            return BatchResult.fail(message)
        except (httpx.HTTPError, OSError) as e:
            logger.warning(f"Network error during batch upload: {e}")
            await self._mark(batch, UploadStatus.ERROR, self._config.network_error_message)
            return BatchResult.fail(self._config.network_error_message)
        except Exception as e:
            logger.error(f"Unexpected batch upload failure: {e}", exc_info=True)
            await self._mark(batch, UploadStatus.ERROR, self._config.upload_error_message)
            return BatchResult.fail(str(e) or self._config.upload_error_message)
        finally:
            unregister()

        urls = payload.get("urls") if isinstance(payload, dict) else None
        urls = [u for u in urls if isinstance(u, str) and u] if isinstance(urls, list) else []
        for item in batch:
            await self._set_status(item, UploadStatus.DONE)
        return BatchResult.success(urls)

    async def _mark(self, batch: List[UploadItem], status: UploadStatus, error: str) -> None:
        for item in batch:
            if item.status == UploadStatus.UPLOADING:
                await self._set_status(item, status, error)
