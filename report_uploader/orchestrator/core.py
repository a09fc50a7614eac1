"""Core session - coordinates the photo report upload workflow of one task."""
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional
import asyncio
import logging

from ..folders.classifier import OccupancyIndex, visible_files
from ..folders.gate import can_upload
from ..folders.tree import FolderTree, ROOT_ID
from ..models import BaseState, UploadConfig
from ..protocols import IPreviewGenerator
from ..services.api_client import APIError, HTTPAPIClient
from ..services.preview import PreviewService
from ..services.reports import ReportRepository
from ..services.schema import FolderSchemaService
from ..utils.events import EventEmitter
from .queue import IntakeResult, UploadQueue
from .transfer import CancellationToken, RunOutcome, TransferExecutor, UploadRun

logger = logging.getLogger(__name__)


@dataclass
class SessionMessages:
    """Most recent message per concern; None when nothing to show."""
    upload: Optional[str] = None
    schema: Optional[str] = None
    existing: Optional[str] = None
    delete: Optional[str] = None
    submit: Optional[str] = None
    submit_success: Optional[str] = None
    alert: Optional[str] = None

    def dismiss(self, concern: str) -> None:
        if not hasattr(self, concern):
            raise ValueError(f"Unknown message concern: {concern}")
        setattr(self, concern, None)


def normalize_base_ids(base_ids: Iterable[Optional[str]]) -> List[str]:
    """Trimmed, non-empty, first occurrence wins."""
    seen: Dict[str, None] = {}
    for base_id in base_ids:
        value = (base_id or "").strip()
        if value and value not in seen:
            seen[value] = None
    return list(seen)


class ReportUploadSession:
    """
    Photo report upload session for one task.

    Usage:
        async with ReportUploadSession(api_url, "T-1", ["BS-1", "BS-2"]) as session:
            await session.open_base("BS-1")
            session.select_folder(folder_id)
            session.add_files([Path("a.jpg"), Path("b.jpg")])
            run = await session.upload()
            await session.submit()
    """

    def __init__(
        self,
        api_url: str,
        task_id: str,
        base_ids: Iterable[str],
        photo_reports: Optional[Mapping[str, List[str]]] = None,
        config: Optional[UploadConfig] = None,
        read_only: bool = False,
        api_client=None,
        previews: Optional[IPreviewGenerator] = None,
    ):
        """
        Initialize session.

        Args:
            api_url: Base URL of the report API
            task_id: Task whose report is uploaded
            base_ids: Destination units of the task
            photo_reports: Already known stored files per base
            config: Upload configuration
            read_only: Block every mutating action
            api_client: Pre-built client (IAPIClient and ITransferClient)
            previews: Preview generator (defaults to PreviewService)
        """
        self._api_url = api_url
        self.task_id = (task_id or "").strip()
        self.base_ids = normalize_base_ids(base_ids)
        self._initial_reports = {
            k.strip(): [f for f in v if f]
            for k, v in (photo_reports or {}).items()
            if k and k.strip()
        }
        self._config = config or UploadConfig()
        self.read_only = read_only
        self._external_client = api_client
        self._previews = previews

        self._api_client = None
        self._owns_client = False
        self._schema: Optional[FolderSchemaService] = None
        self._reports: Optional[ReportRepository] = None
        self._executor: Optional[TransferExecutor] = None

        self.events = EventEmitter()
        self.messages = SessionMessages()
        self.queue = UploadQueue(self._config, self._previews)
        self.tree = FolderTree()
        self.bases: Dict[str, BaseState] = {}
        self.active_base: Optional[str] = None
        self.uploading = False
        self.submitting = False
        self._token: Optional[CancellationToken] = None
        self._timers: Dict[str, asyncio.TimerHandle] = {}
        self._reset_bases()

    async def __aenter__(self):
        """Initialize services."""
        if self._external_client is not None:
            self._api_client = self._external_client
        else:
            self._api_client = HTTPAPIClient(self._api_url)
            await self._api_client.__aenter__()
            self._owns_client = True

        if self._previews is None:
            self._previews = PreviewService(self._config)
            self.queue = UploadQueue(self._config, self._previews)

        self._wire(self._api_client)
        return self

    async def __aexit__(self, *args):
        """Release previews and close the HTTP client."""
        self.close()
        if self._owns_client and self._api_client:
            await self._api_client.__aexit__(*args)

    def _wire(self, client) -> None:
        # one client serves both the JSON endpoints and the multipart upload
        self._schema = FolderSchemaService(client, self._config)
        self._reports = ReportRepository(client, self._config)
        self._executor = TransferExecutor(client, self._config, self.events)

    def close(self) -> None:
        self.queue.clear()
        self._cancel_timers()
        close = getattr(self._previews, "close", None)
        if callable(close):
            close()

    def _cancel_timers(self) -> None:
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()

    @property
    def config(self) -> UploadConfig:
        return self._config

    # State

    def _reset_bases(self) -> None:
        self.bases = {}
        for base_id in self.base_ids:
            state = BaseState(base_id)
            files = self._initial_reports.get(base_id)
            if files:
                state.set_files(files)
            self.bases[base_id] = state

    def reset(self) -> None:
        """Back to the state the session was created with."""
        self.queue.clear()
        self._cancel_timers()
        self.active_base = None
        self.messages = SessionMessages()
        self.tree = FolderTree()
        self._reset_bases()

    def base_state(self, base_id: str) -> BaseState:
        if base_id not in self.bases:
            self.bases[base_id] = BaseState(base_id)
        return self.bases[base_id]

    @property
    def active_state(self) -> Optional[BaseState]:
        return self.bases.get(self.active_base) if self.active_base else None

    @property
    def selected_folder_id(self) -> Optional[str]:
        state = self.active_state
        return state.selected_folder_id if state else None

    @property
    def can_upload(self) -> bool:
        return self.active_base is not None and can_upload(self.tree, self.selected_folder_id)

    @property
    def all_uploaded(self) -> bool:
        return bool(self.base_ids) and all(self.bases[b].uploaded for b in self.base_ids)

    def occupancy(self, base_id: Optional[str] = None) -> OccupancyIndex:
        base_id = base_id or self.active_base or ""
        state = self.bases.get(base_id)
        return OccupancyIndex(self.tree, base_id, state.files if state else [])

    def visible_files(self) -> List[str]:
        """Stored files of the selected folder of the active base."""
        state = self.active_state
        if state is None:
            return []
        folder_path = self.tree.path_of(state.selected_folder_id)
        return visible_files(state.files, state.base_id, folder_path)

    def _require_services(self) -> None:
        if self._executor is None:
            raise RuntimeError("ReportUploadSession not initialized. Use 'async with' context.")

    # Folder schema and bases

    async def load_folder_config(self) -> FolderTree:
        self._require_services()
        self.messages.schema = None
        paths, warning = await self._schema.load(self.task_id)
        self.messages.schema = warning
        self.tree = FolderTree(paths)
        # node ids may have changed, expand state starts over
        for state in self.bases.values():
            state.expanded = None
            if state.selected_folder_id not in self.tree:
                state.selected_folder_id = None
        if self.active_state is not None:
            self.tree.ensure_expanded(self.active_state)
        return self.tree

    async def open_base(self, base_id: str) -> bool:
        """Make a base active and refresh its stored files."""
        if self.uploading or self.submitting:
            return False
        base_id = (base_id or "").strip()
        if not base_id:
            return False
        self.active_base = base_id
        self.messages.upload = None
        self.messages.existing = None
        self.messages.alert = None
        state = self.base_state(base_id)
        self.tree.ensure_expanded(state)
        await self.load_existing_files(base_id)
        return True

    def back_to_bases(self) -> bool:
        if self.uploading:
            return False
        self.queue.clear()
        self.messages.upload = None
        self.messages.existing = None
        self.active_base = None
        return True

    async def load_existing_files(self, base_id: str) -> Optional[List[str]]:
        self._require_services()
        if not self.task_id or not base_id:
            return None
        self.messages.existing = None
        try:
            files = await self._reports.fetch_files(self.task_id, base_id)
        except APIError as e:
            self.messages.existing = e.error or "Could not load the photo report"
            return None
        except Exception as e:
            logger.warning(f"Loading files of {base_id} failed: {e}")
            self.messages.existing = str(e) or "Could not load the photo report"
            return None
        self.base_state(base_id).set_files(files)
        return files

    def select_folder(self, folder_id: Optional[str]) -> bool:
        state = self.active_state
        if state is None:
            return False
        if not folder_id or folder_id == ROOT_ID:
            state.selected_folder_id = None
            return True
        if folder_id not in self.tree:
            return False
        state.selected_folder_id = folder_id
        return True

    def toggle_folder(self, node_id: str) -> bool:
        state = self.active_state
        if state is None:
            return False
        return self.tree.toggle_expanded(state, node_id)

    # Queue

    def add_files(self, paths: Iterable[Path]) -> IntakeResult:
        if self.read_only or self.uploading:
            return IntakeResult()
        result = self.queue.add(paths)
        self.messages.upload = result.error
        return result

    def remove_item(self, item_id: str) -> bool:
        return self.queue.remove(item_id)

    # Upload

    async def upload(self) -> Optional[UploadRun]:
        """
        Upload every item of the queue that is not stored yet into the selected folder.

        Returns:
            The finished run, or None when the upload was not started
        """
        self._require_services()
        if self.read_only or self.uploading:
            return None
        state = self.active_state
        if state is None:
            self.messages.upload = "Select a base folder first"
            return None
        if not can_upload(self.tree, state.selected_folder_id):
            self.messages.upload = "Select a folder without subfolders"
            return None
        if len(self.queue) == 0:
            self.messages.upload = "Add at least one photo"
            return None
        pending = self.queue.pending_items()
        if not pending:
            self.messages.upload = "Every photo is already uploaded"
            return None

        self.uploading = True
        self._token = CancellationToken()
        self.messages.upload = None
        run = self._executor.plan(pending)
        try:
            await self._executor.run(
                run,
                self._token,
                task_id=self.task_id,
                base_id=state.base_id,
                folder_id=state.selected_folder_id,
            )
        finally:
            self.uploading = False
            self._token = None

        self._merge_run(state, run)
        return run

    def _merge_run(self, state: BaseState, run: UploadRun) -> None:
        if run.urls:
            state.files.extend(run.urls)
        if run.uploaded_items:
            state.uploaded = True
            state.file_count += len(run.urls) if run.urls else run.uploaded_items

        if run.outcome == RunOutcome.CANCELED:
            self.messages.upload = "Upload canceled"
            return
        if run.outcome == RunOutcome.FAILED:
            self.messages.upload = run.error or self._config.upload_error_message
            return
        left = len(self.queue.pending_items())
        if left:
            # the queue only empties once every photo is stored
            self.messages.upload = f"{left} photo(s) still need to be uploaded"
            return

        logger.info(f"Uploaded {run.uploaded_items} file(s) to {state.base_id}")
        self.queue.clear()
        self.active_base = None
        self._show("alert", f"Photos in folder {state.base_id} uploaded")
        self.events.emit_nowait("uploaded", state.base_id, list(run.urls))

    def cancel_upload(self) -> None:
        """Cancel the running upload; safe to call from a signal handler."""
        if self._token is None:
            return
        self._token.cancel()
        self.messages.upload = "Upload canceled"

    # Deletion and submission

    async def delete_existing(self, url: str, base_id: Optional[str] = None) -> bool:
        self._require_services()
        if self.read_only:
            return False
        base_id = base_id or self.active_base
        if not base_id or not url:
            return False
        self.messages.delete = None
        try:
            files = await self._reports.delete_file(self.task_id, base_id, url)
        except APIError as e:
            self.messages.delete = e.error or "Could not delete the photo"
            return False
        except Exception as e:
            logger.warning(f"Deleting {url} failed: {e}")
            self.messages.delete = str(e) or "Could not delete the photo"
            return False

        state = self.base_state(base_id)
        if files is None:
            files = [f for f in state.files if f != url]
        state.set_files(files)
        return True

    async def submit(self) -> bool:
        """Send the report once every base has uploaded files."""
        self._require_services()
        if self.read_only or self.submitting:
            return False
        if not self.all_uploaded:
            self.messages.submit = "Upload photos for every base first"
            return False

        self.submitting = True
        self.messages.submit = None
        self.messages.submit_success = None
        try:
            message = await self._reports.submit(self.task_id, self.base_ids)
        except APIError as e:
            self.messages.submit = e.error or "Could not submit the photo report"
            return False
        except Exception as e:
            logger.warning(f"Submitting report of {self.task_id} failed: {e}")
            self.messages.submit = str(e) or "Could not submit the photo report"
            return False
        finally:
            self.submitting = False

        self._show(
            "submit_success",
            message or "Photo report sent to the manager",
            on_dismiss=lambda: self.events.emit_nowait("submitted", self.task_id),
        )
        return True

    # Messages

    def _show(self, concern: str, text: str, on_dismiss=None) -> None:
        """Set a success message that clears itself after a fixed delay."""
        setattr(self.messages, concern, text)
        self.events.emit_nowait("alert", concern, text)
        previous = self._timers.pop(concern, None)
        if previous:
            previous.cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return

        def dismiss():
            self._timers.pop(concern, None)
            if getattr(self.messages, concern) == text:
                self.messages.dismiss(concern)
            if on_dismiss:
                on_dismiss()

        self._timers[concern] = loop.call_later(self._config.alert_dismiss_seconds, dismiss)
