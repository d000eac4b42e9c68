"""HTTP multipart transfer endpoint built on httpx.

Posts each payload as a ``multipart/form-data`` body (single file field) to
the server's upload route and reports progress as the body is streamed.
"""

from __future__ import annotations

import logging
import os
from typing import IO

import httpx
from pydantic import ValidationError

from shareline.config import QueueConfig
from shareline.models import Payload, UploadReceipt
from shareline.upload.endpoint import ProgressCallback
from shareline.upload.exceptions import TransferError

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "Upload failed"


class _ProgressReader:
    """File-like wrapper that reports bytes handed to the multipart encoder.

    httpx reads the file field in chunks while writing the request body, so
    every ``read`` corresponds to bytes about to go on the wire.
    """

    def __init__(self, fileobj: IO[bytes], total: int, on_progress: ProgressCallback) -> None:
        self._file = fileobj
        self._total = total
        self._on_progress = on_progress
        self._sent = 0

    def read(self, size: int = -1) -> bytes:
        chunk = self._file.read(size)
        if chunk:
            self._sent += len(chunk)
            self._on_progress(min(self._sent, self._total), self._total)
        return chunk

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        position = self._file.seek(offset, whence)
        self._sent = self._file.tell()
        return position

    def tell(self) -> int:
        return self._file.tell()


class HttpTransferEndpoint:
    """Upload payloads to the Shareline file API.

    Usage::

        async with HttpTransferEndpoint(config) as endpoint:
            receipt = await endpoint.send(payload, on_progress)

    Args:
        config: Queue configuration (URL, form field, timeout, token).
        client: Optional pre-built ``httpx.AsyncClient`` (tests inject one
            with a ``MockTransport``).  The endpoint only closes clients it
            created itself.
    """

    def __init__(self, config: QueueConfig, client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=config.timeout_seconds)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> HttpTransferEndpoint:
        return self

    async def __aexit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.aclose()

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._config.api_token:
            headers["Authorization"] = f"Bearer {self._config.api_token}"
        return headers

    async def send(self, payload: Payload, on_progress: ProgressCallback) -> UploadReceipt | None:
        """POST *payload* and return the server's receipt.

        Raises:
            TransferError: On transport errors or a non-2xx response.
        """
        url = self._config.upload_url
        with payload.open() as fh:
            reader = _ProgressReader(fh, payload.size, on_progress)
            files = {self._config.form_field: (payload.name, reader, payload.content_type)}
            try:
                response = await self._client.post(url, files=files, headers=self._headers())
            except httpx.HTTPError as exc:
                logger.warning("Transport error uploading %s: %r", payload.name, exc)
                raise TransferError(str(exc) or GENERIC_FAILURE) from exc

        if not response.is_success:
            reason = _failure_reason(response)
            logger.warning("Server rejected %s: %s", payload.name, reason)
            raise TransferError(reason)

        logger.debug("Uploaded %s -> HTTP %d", payload.name, response.status_code)
        return _parse_receipt(response)


def _failure_reason(response: httpx.Response) -> str:
    """Prefer the server's own message, else ``"<status> <reason phrase>"``."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("message", "error"):
            if isinstance(body.get(key), str) and body[key]:
                return body[key]
    reason = f"{response.status_code} {response.reason_phrase}".strip()
    return reason or GENERIC_FAILURE


def _parse_receipt(response: httpx.Response) -> UploadReceipt | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    try:
        return UploadReceipt.model_validate(body)
    except ValidationError as exc:
        # The file is stored either way; only the receipt is unusable.
        logger.warning("Ignoring malformed upload receipt: %s", exc)
        return None
