"""
Protocols (Interfaces) for Dependency Inversion.

Small interfaces for the HTTP collaborators the engine talks to.
"""
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, runtime_checkable


ProgressCallback = Callable[[int, int], Awaitable[None]]


@runtime_checkable
class IAPIClient(Protocol):
    """Interface for JSON API operations."""

    async def get(self, endpoint: str, params: Optional[Dict] = None) -> Any:
        """GET request to API."""
        ...

    async def post(self, endpoint: str, json: Dict) -> Any:
        """POST request to API."""
        ...

    async def delete(self, endpoint: str, json: Optional[Dict] = None) -> Any:
        """DELETE request to API."""
        ...


@runtime_checkable
class ITransferClient(Protocol):
    """Interface for the multipart batch upload."""

    async def upload_files(
        self,
        endpoint: str,
        fields: Dict[str, str],
        files: List[Path],
        progress_callback: Optional[ProgressCallback] = None,
    ) -> Dict[str, Any]:
        """Send files in one request and return the decoded JSON body."""
        ...


class IPreviewGenerator(ABC):
    """Interface for local preview generation."""

    @abstractmethod
    def create(self, path: Path) -> Optional[Path]:
        """Create a preview for an image, or None when not possible."""
        pass

    @abstractmethod
    def release(self, preview: Optional[Path]) -> None:
        """Free a previously created preview."""
        pass
