"""
certchain — Content Upload Client

Uploads certificate metadata to content-addressed storage and returns a
stable locator. The default backend is Pinata's pinJSONToIPFS endpoint;
the locator is `ipfs://<IpfsHash>`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

import httpx
import structlog

if TYPE_CHECKING:
    from certchain.config import UploadConfig

logger = structlog.get_logger("certchain.clients.ipfs")


class UploadFailure(RuntimeError):
    """The content-distribution service did not accept the upload."""


class ContentUploader(ABC):
    """Abstract interface for content-addressed uploads."""

    @abstractmethod
    async def upload(self, record: dict[str, Any]) -> str:
        """Store a JSON object. Returns its content locator."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Clean up resources."""
        ...


class PinataUploader(ContentUploader):
    """
    Pinata JSON pinning.

    Credentials travel as `pinata_api_key` / `pinata_secret_api_key`
    headers. Pass `client` to reuse a connection pool (or a mock transport).
    """

    def __init__(self, config: UploadConfig, client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._client = client or httpx.AsyncClient(timeout=config.timeout_s)

    async def upload(self, record: dict[str, Any]) -> str:
        if not self._config.api_key or not self._config.api_secret:
            logger.warning("upload_credentials_missing", endpoint=self._config.endpoint)

        try:
            response = await self._client.post(
                self._config.endpoint,
                json=record,
                headers={
                    "pinata_api_key": self._config.api_key,
                    "pinata_secret_api_key": self._config.api_secret,
                },
            )
        except httpx.HTTPError as e:
            raise UploadFailure(f"IPFS upload failed: {e}") from e

        if not response.is_success:
            raise UploadFailure(f"IPFS upload failed: {response.text}")

        try:
            ipfs_hash = response.json()["IpfsHash"]
        except (ValueError, KeyError, TypeError) as e:
            raise UploadFailure(f"IPFS upload failed: unexpected response {response.text}") from e

        locator = f"ipfs://{ipfs_hash}"
        logger.info("metadata_uploaded", locator=locator)
        return locator

    async def close(self) -> None:
        await self._client.aclose()
