"""HTTP adapter for report API operations."""
from __future__ import annotations

import asyncio
import logging
import mimetypes
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from ..protocols import ProgressCallback

logger = logging.getLogger(__name__)

UPLOAD_CHUNK_SIZE = 64 * 1024


class APIError(RuntimeError):
    """Non-success response from the report API."""

    def __init__(
        self,
        status_code: int,
        message: str,
        error: Optional[str] = None,
        read_only: bool = False,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.error = error
        self.read_only = read_only


def _decode_json(response: httpx.Response) -> Dict[str, Any]:
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


def _raise_for_status(response: httpx.Response, method: str, endpoint: str) -> None:
    if response.status_code < 400:
        return
    payload = _decode_json(response)
    error = payload.get("error") if isinstance(payload.get("error"), str) else None
    detail = payload or response.text
    raise APIError(
        response.status_code,
        f"API error {response.status_code} on {method} {endpoint}: {detail}",
        error=error,
        read_only=bool(payload.get("readOnly")),
    )


class HTTPAPIClient:
    """
    HTTP client adapter for API calls.

    Implements IAPIClient and ITransferClient protocols.
    """

    def __init__(
        self,
        base_url: str,
        timeout: int = 60,
        max_retries: int = 3,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url
        self._timeout = timeout
        self._max_retries = max_retries
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    def _require_client(self) -> httpx.AsyncClient:
        if not self._client:
            raise RuntimeError("HTTPAPIClient not initialized. Use 'async with' context.")
        return self._client

    async def _request(self, method: str, endpoint: str, **kwargs) -> httpx.Response:
        client = self._require_client()
        last_exception: Optional[Exception] = None

        for attempt in range(self._max_retries):
            try:
                response = await client.request(method, endpoint, **kwargs)

                if response.status_code >= 500 and attempt < self._max_retries - 1:
                    await asyncio.sleep(0.5 * (attempt + 1))
                    continue

                _raise_for_status(response, method, endpoint)
                return response
            except (httpx.RequestError, httpx.TimeoutException) as exc:
                last_exception = exc
                if attempt < self._max_retries - 1:
                    logger.debug(f"{method} {endpoint} failed ({exc}), retrying")
                    await asyncio.sleep(0.5 * (attempt + 1))
                    continue
                raise

        if last_exception:
            raise last_exception
        raise RuntimeError(f"Failed to {method} {endpoint} after {self._max_retries} attempts")

    async def get(self, endpoint: str, params: Optional[Dict] = None) -> httpx.Response:
        return await self._request("GET", endpoint, params=params)

    async def post(self, endpoint: str, json: Dict) -> httpx.Response:
        return await self._request("POST", endpoint, json=json)

    async def delete(self, endpoint: str, json: Optional[Dict] = None) -> httpx.Response:
        return await self._request("DELETE", endpoint, json=json)

    async def upload_files(
        self,
        endpoint: str,
        fields: Dict[str, str],
        files: List[Path],
        progress_callback: Optional[ProgressCallback] = None,
    ) -> Dict[str, Any]:
        """
        Send one multipart request carrying every file under the "files" field.

        The encoded body is streamed in chunks so progress can be reported as
        (bytes sent, body length). Not retried: the caller decides what a failed
        batch means.

        Raises:
            APIError: on a non-success response (read_only set when the
                server flags the storage as read-only)
            httpx.RequestError: on transport failure
        """
        client = self._require_client()

        multipart = []
        for path in files:
            path = Path(path)
            content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
            multipart.append(("files", (path.name, path.read_bytes(), content_type)))

        encoded = client.build_request("POST", endpoint, data=fields, files=multipart)
        body = encoded.read()
        total = len(body)

        async def stream() -> AsyncIterator[bytes]:
            sent = 0
            for offset in range(0, total, UPLOAD_CHUNK_SIZE):
                chunk = body[offset:offset + UPLOAD_CHUNK_SIZE]
                yield chunk
                sent += len(chunk)
                if progress_callback:
                    await progress_callback(sent, total)

        response = await client.post(
            endpoint,
            content=stream(),
            headers={
                "Content-Type": encoded.headers["Content-Type"],
                "Content-Length": str(total),
            },
        )
        _raise_for_status(response, "POST", endpoint)
        return _decode_json(response)
