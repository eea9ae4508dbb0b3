"""
Settlement authority client.

Looks up a payment transaction by its externally assigned id. The
authority is the system of record for whether a payment happened; this
module only fetches and normalises what it reports. Judging the result
against a payment reference is the verifier's job.

Every failure to get a usable answer is an ExternalServiceError, so the
caller leaves the reference PENDING and the client may retry.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

import httpx

from ..errors import ConfigurationError, ExternalServiceError, NotFoundError

logger = logging.getLogger(__name__)

# Statuses the authority uses for a transaction that will never settle
FAILED_STATUSES = frozenset({"failed"})

# Connection-establishment retries only; a request that reached the
# authority is never replayed by the transport
CONNECT_RETRIES = 2


@dataclass
class SettlementTransaction:
    transaction_id: str
    reference: Optional[str]
    status: Optional[str]
    recipient: Optional[str] = None
    asset: Optional[str] = None
    amount: Optional[str] = None
    raw: dict = field(default_factory=dict, repr=False)

    @property
    def failed(self) -> bool:
        return (self.status or "").lower() in FAILED_STATUSES

    @classmethod
    def from_payload(cls, transaction_id: str, payload: dict) -> "SettlementTransaction":
        """
        Raises:
            ExternalServiceError: a reported field has the wrong type
        """
        fields = {
            "reference": payload.get("reference"),
            "status": payload.get("transaction_status", payload.get("status")),
            "recipient": payload.get("to", payload.get("recipient_address")),
            "asset": payload.get("token", payload.get("asset")),
        }
        for name, value in fields.items():
            if value is not None and not isinstance(value, str):
                logger.error(f"Settlement authority sent non-string {name} for transaction {transaction_id}")
                raise ExternalServiceError("Settlement authority sent an invalid response")

        amount = payload.get("token_amount", payload.get("amount"))
        if amount is not None and (isinstance(amount, bool) or not isinstance(amount, (str, int, float))):
            logger.error(f"Settlement authority sent malformed amount for transaction {transaction_id}")
            raise ExternalServiceError("Settlement authority sent an invalid response")

        return cls(
            transaction_id=transaction_id,
            amount=None if amount is None else str(amount),
            raw=payload,
            **fields,
        )


class SettlementClient:
    """
    Read-only client for the settlement authority's transaction API.

    `transport` is injectable for tests (httpx.MockTransport).
    """

    def __init__(
        self,
        app_id: Optional[str],
        api_key: Optional[str],
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not app_id or not api_key:
            raise ConfigurationError("Settlement authority credentials not configured")
        self.app_id = app_id
        self._api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        transport = self._transport or httpx.AsyncHTTPTransport(retries=CONNECT_RETRIES)
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=transport,
            headers={"Authorization": f"Bearer {self._api_key}"},
        )

    async def get_transaction(self, transaction_id: str) -> SettlementTransaction:
        """
        Fetch one transaction.

        Raises:
            NotFoundError: the authority does not know the transaction id
            ExternalServiceError: timeout, transport error, bad status or body
        """
        url = f"{self.base_url}/minikit/transaction/{transaction_id}"
        try:
            async with self._client() as client:
                response = await client.get(url, params={"app_id": self.app_id, "type": "payment"})
        except httpx.TimeoutException:
            logger.error(f"Settlement authority timeout for transaction {transaction_id}")
            raise ExternalServiceError("Settlement authority timeout", timeout=True)
        except httpx.HTTPError as e:
            logger.error(f"Settlement authority unreachable for transaction {transaction_id}: {e}")
            raise ExternalServiceError("Settlement authority unreachable")

        if response.status_code == 404:
            raise NotFoundError("Transaction not found at settlement authority")
        if response.status_code != 200:
            logger.error(
                f"Settlement lookup failed for transaction {transaction_id}: "
                f"{response.status_code} - {response.text[:200]}"
            )
            raise ExternalServiceError(f"Settlement authority returned {response.status_code}")

        try:
            payload = response.json()
        except ValueError:
            logger.error(f"Settlement authority sent non-JSON body for transaction {transaction_id}")
            raise ExternalServiceError("Settlement authority sent an invalid response")
        if not isinstance(payload, dict):
            raise ExternalServiceError("Settlement authority sent an invalid response")

        return SettlementTransaction.from_payload(transaction_id, payload)
