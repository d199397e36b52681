"""
HttpMetadataPublisher tests using httpx.MockTransport.
"""

import json

import httpx
import pytest

from mintflow.engine.exceptions import MetadataPublishError
from mintflow.metadata import build_employee_metadata
from mintflow.ports.http import HttpMetadataPublisher

ENDPOINT = "https://app.example/api/metadata"
URL = "https://pub.example.r2.dev/what-x-are-you/metadata-1234-1700000000000.json"


def document():
    return build_employee_metadata("Pam Beesly", "Pam", "Artistic.", 1234, "https://img.example/pam.png")


def publisher_for(handler) -> HttpMetadataPublisher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpMetadataPublisher(ENDPOINT, client=client)


@pytest.mark.asyncio
async def test_publish_returns_metadata_url():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"metadataUrl": URL})

    url = await publisher_for(handler).publish(document(), fid=1234)

    assert url == URL
    assert seen["url"] == ENDPOINT
    assert seen["body"]["fid"] == 1234
    assert seen["body"]["metadata"]["properties"]["employeeName"] == "Pam"


@pytest.mark.asyncio
async def test_http_error_becomes_publish_error():
    publisher = publisher_for(lambda request: httpx.Response(500, text="upload failed"))

    with pytest.raises(MetadataPublishError, match="HTTP 500"):
        await publisher.publish(document(), fid=1234)


@pytest.mark.asyncio
async def test_transport_error_becomes_publish_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(MetadataPublishError):
        await publisher_for(handler).publish(document(), fid=1234)


@pytest.mark.asyncio
async def test_missing_url_is_rejected():
    publisher = publisher_for(lambda request: httpx.Response(200, json={"success": True}))

    with pytest.raises(MetadataPublishError, match="metadata URL"):
        await publisher.publish(document(), fid=1234)


@pytest.mark.asyncio
async def test_invalid_json_is_rejected():
    publisher = publisher_for(lambda request: httpx.Response(200, text="<html>"))

    with pytest.raises(MetadataPublishError, match="invalid JSON"):
        await publisher.publish(document(), fid=1234)
