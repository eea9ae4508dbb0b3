"""
Encrypted storage network client.

Uploads content on behalf of a principal, authenticating with the
capability token the principal obtained from the token issuer.
"""
import logging
from typing import Optional

import httpx

from ..errors import ConfigurationError, ExternalServiceError

logger = logging.getLogger(__name__)


class StorageClient:
    def __init__(
        self,
        base_url: Optional[str],
        api_key: Optional[str],
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not base_url or not api_key:
            raise ConfigurationError("Storage network not configured")
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self.timeout = timeout
        self._transport = transport

    async def upload(self, data: bytes, filename: str, principal: str, token: str) -> str:
        """Upload encrypted for `principal`. Returns the content identifier."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self.base_url}/upload",
                    headers={
                        "Authorization": f"Bearer {self._api_key}",
                        "X-Capability-Token": token,
                    },
                    data={"publicKey": principal, "encrypted": "true"},
                    files={"file": (filename, data)},
                )
        except httpx.TimeoutException:
            logger.error(f"Storage upload timeout for {principal}")
            raise ExternalServiceError("Storage network timeout", timeout=True)
        except httpx.HTTPError as e:
            logger.error(f"Storage upload failed for {principal}: {e}")
            raise ExternalServiceError("Storage network unreachable")

        if response.status_code not in (200, 201):
            logger.error(f"Storage upload failed: {response.status_code} - {response.text[:200]}")
            raise ExternalServiceError(f"Storage network returned {response.status_code}")

        try:
            body = response.json()
            # {"data": [{"Name", "Hash", "Size"}]} or {"Hash": ...}
            entry = body["data"][0] if "data" in body else body
            return entry["Hash"]
        except (ValueError, KeyError, IndexError, TypeError):
            raise ExternalServiceError("Storage network sent an invalid response")
