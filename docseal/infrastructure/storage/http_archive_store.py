"""
Adapter: HTTP Archive Store

Uploads encrypted blobs to a permanent-storage gateway (Arweave
bundler, object-locked bucket proxy, ...). Tags travel as
`X-Tag-<Name>` headers so the gateway can index them.

    POST {base}/blobs          body=bytes → {"locator": "..."}
    GET  {base}/blobs/{loc}    → bytes
"""

import logging

import httpx

from docseal.core.errors import NotFoundError, TransientExternalError
from docseal.core.interfaces.archive_store import IArchiveStore

logger = logging.getLogger(__name__)

SERVICE = "archive"


class HttpArchiveStore(IArchiveStore):
    """Adapter: IArchiveStore over HTTP."""

    def __init__(self, http_client: httpx.AsyncClient, base_url: str):
        self.client = http_client
        self.base_url = base_url.rstrip("/")

    async def put(self, encrypted_bytes: bytes, tags: dict[str, str]) -> str:
        headers = {"Content-Type": "application/octet-stream"}
        headers.update({f"X-Tag-{name}": value for name, value in tags.items()})
        resp = await self._send("POST", f"{self.base_url}/blobs", content=encrypted_bytes, headers=headers)
        locator = resp.json().get("locator")
        if not locator:
            raise ValueError("Archive response did not include a locator")
        logger.info(f"Archived {len(encrypted_bytes)} bytes as {locator}")
        return locator

    async def get(self, locator: str) -> bytes:
        resp = await self._send("GET", f"{self.base_url}/blobs/{locator}")
        return resp.content

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            resp = await self.client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise TransientExternalError(SERVICE, "Timeout", url=url) from e
        except httpx.TransportError as e:
            raise TransientExternalError(SERVICE, f"Transport error: {e}", url=url) from e

        if resp.status_code == 404:
            raise NotFoundError("Archive blob", url.rsplit("/", 1)[-1])
        if resp.status_code == 429 or resp.status_code >= 500:
            raise TransientExternalError(SERVICE, f"HTTP {resp.status_code}", url=url, status=resp.status_code)
        resp.raise_for_status()
        return resp
