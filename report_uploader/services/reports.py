"""
Report Repository - Single Responsibility: talk to the report endpoints.

Existing files, file deletion and report submission. Upload transfers go
through the TransferExecutor, not through this repository.
"""
from typing import Dict, Any, List, Optional
from urllib.parse import quote
import logging

from ..models import UploadConfig
from ..protocols import IAPIClient
from .api_client import APIError

logger = logging.getLogger(__name__)


def _clean_files(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str) and item]


class ReportRepository:
    """
    Repository for photo report files of a task.

    Implements Repository Pattern over the report API.
    """

    def __init__(self, api_client: IAPIClient, config: Optional[UploadConfig] = None):
        """
        Initialize repository.

        Args:
            api_client: HTTP client for API calls
            config: Upload configuration (for the API base path)
        """
        self._api = api_client
        self._config = config or UploadConfig()

    def _base_endpoint(self, task_id: str, base_id: str) -> str:
        return self._config.endpoint(
            f"/api/reports/{quote(task_id, safe='')}/{quote(base_id, safe='')}"
        )

    async def fetch_files(self, task_id: str, base_id: str) -> List[str]:
        """
        Stored file URLs of one base.

        A 404 means the base was never uploaded and yields an empty list.
        """
        try:
            response = await self._api.get(self._base_endpoint(task_id, base_id))
        except APIError as e:
            if e.status_code == 404:
                logger.debug(f"No report yet for {task_id}/{base_id}")
                return []
            raise
        return _clean_files(response.json().get("files"))

    async def delete_file(self, task_id: str, base_id: str, url: str) -> Optional[List[str]]:
        """
        Delete one stored file.

        Returns:
            The updated file list, or None when the server did not send one
        """
        response = await self._api.delete(
            f"{self._base_endpoint(task_id, base_id)}/files",
            json={"url": url},
        )
        data: Dict[str, Any] = response.json() if response.content else {}
        files = data.get("files") if isinstance(data, dict) else None
        return _clean_files(files) if isinstance(files, list) else None

    async def submit(self, task_id: str, base_ids: List[str]) -> Optional[str]:
        """
        Submit the report of every base.

        Returns:
            Server confirmation message, if any
        """
        response = await self._api.post(
            self._config.endpoint("/api/reports/submit"),
            json={"taskId": task_id, "baseIds": list(base_ids)},
        )
        data = response.json() if response.content else {}
        message = data.get("message") if isinstance(data, dict) else None
        return message if isinstance(message, str) else None
