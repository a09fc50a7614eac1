"""Services for report_uploader module."""
from .api_client import APIError, HTTPAPIClient
from .preview import PreviewService
from .reports import ReportRepository
from .schema import FolderSchemaService

__all__ = [
    "APIError",
    "HTTPAPIClient",
    "PreviewService",
    "ReportRepository",
    "FolderSchemaService",
]
