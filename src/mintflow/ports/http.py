"""
HTTP metadata publisher.

Posts the token metadata document to the metadata service, which stores it
in object storage and answers with the public URL the token URI points to.
"""

import logging
from typing import Optional

import httpx

from ..engine.exceptions import MetadataPublishError
from ..schemas.metadata import EmployeeMetadata
from .bases import MetadataPublisher

logger = logging.getLogger(__name__)


class HttpMetadataPublisher(MetadataPublisher):
    """
    MetadataPublisher backed by an HTTP endpoint.

    Request body: ``{"fid": <int>, "metadata": <document>}``.
    Response body: ``{"metadataUrl": "<stable url>"}``.

    Usage:
        async with httpx.AsyncClient() as client:
            publisher = HttpMetadataPublisher("https://app.example/api/metadata", client=client)
            url = await publisher.publish(document, fid=1234)
    """

    def __init__(self, endpoint: str, client: Optional[httpx.AsyncClient] = None, timeout: float = 15.0):
        self.endpoint = endpoint
        self._client = client
        self._timeout = timeout

    async def publish(self, metadata: EmployeeMetadata, *, fid: int) -> str:
        payload = {"fid": fid, "metadata": metadata.to_document()}
        try:
            if self._client is not None:
                response = await self._client.post(self.endpoint, json=payload, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(self.endpoint, json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as exc:
            raise MetadataPublishError(
                f"HTTP {exc.response.status_code} from metadata service: {exc.response.text[:100]}"
            ) from exc
        except httpx.RequestError as exc:
            raise MetadataPublishError(f"Failed to reach metadata service at {self.endpoint}: {exc}") from exc
        except ValueError as exc:
            raise MetadataPublishError("Metadata service returned invalid JSON") from exc

        url = body.get("metadataUrl") if isinstance(body, dict) else None
        if not url:
            raise MetadataPublishError("Metadata service did not return a metadata URL")
        logger.info("Published metadata for fid %s at %s", fid, url)
        return url
