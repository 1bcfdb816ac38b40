"""
Unit tests for the Pinata content uploader, over an httpx mock transport.
"""

from __future__ import annotations

import json

import httpx
import pytest

from certchain.clients.ipfs import PinataUploader, UploadFailure
from certchain.config import UploadConfig

RECORD = {"name": "Certificate", "attributes": [{"trait_type": "Category", "value": "E"}]}


def make_uploader(handler, **overrides) -> PinataUploader:
    config = UploadConfig(api_key="key", api_secret="secret", **overrides)
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return PinataUploader(config, client=client)


class TestPinataUploader:
    @pytest.mark.asyncio
    async def test_upload_returns_ipfs_locator(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"IpfsHash": "QmAbc", "PinSize": 120})

        uploader = make_uploader(handler)
        try:
            locator = await uploader.upload(RECORD)
        finally:
            await uploader.close()

        assert locator == "ipfs://QmAbc"
        (request,) = seen
        assert request.method == "POST"
        assert str(request.url) == "https://api.pinata.cloud/pinning/pinJSONToIPFS"
        assert request.headers["pinata_api_key"] == "key"
        assert request.headers["pinata_secret_api_key"] == "secret"
        assert json.loads(request.content) == RECORD

    @pytest.mark.asyncio
    async def test_rejected_upload(self):
        uploader = make_uploader(lambda request: httpx.Response(401, text="Invalid API key"))

        with pytest.raises(UploadFailure, match="IPFS upload failed: Invalid API key"):
            await uploader.upload(RECORD)

    @pytest.mark.asyncio
    async def test_response_without_hash(self):
        uploader = make_uploader(lambda request: httpx.Response(200, json={"ok": True}))

        with pytest.raises(UploadFailure, match="unexpected response"):
            await uploader.upload(RECORD)

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(UploadFailure, match="connection refused"):
            await make_uploader(handler).upload(RECORD)

    @pytest.mark.asyncio
    async def test_custom_endpoint(self):
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, json={"IpfsHash": "QmLocal"})

        uploader = make_uploader(handler, endpoint="http://127.0.0.1:9999/pin")
        assert await uploader.upload(RECORD) == "ipfs://QmLocal"
        assert seen == ["http://127.0.0.1:9999/pin"]

    def test_credentials_are_stripped(self):
        config = UploadConfig(api_key=" key\r\n", api_secret="secret\n")
        assert config.api_key == "key"
        assert config.api_secret == "secret"
