import httpx
import pytest
from eth_account import Account
from eth_account.messages import encode_defunct

from bridge.lib.settlement import SettlementClient
from bridge.services.catalog import InMemoryCatalog, Resource
from bridge.services.ledger import ReferenceLedger
from bridge.services.signer import AttestationSigner

# Well-known throwaway keys; never hold value
ATTESTOR_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
WALLET_KEY = "0x" + "5a" * 32
OTHER_WALLET_KEY = "0x" + "7e" * 32

SETTLEMENT_BASE = "https://settlement.test/api/v2"


def wallet_sign(message: str, key: str = WALLET_KEY) -> str:
    signed = Account.sign_message(encode_defunct(text=message), private_key=key)
    return "0x" + bytes(signed.signature).hex()


def wallet_address(key: str = WALLET_KEY) -> str:
    return Account.from_key(key).address


class FakeSettlementAuthority:
    """In-process stand-in for the settlement authority's transaction API."""

    def __init__(self):
        self.transactions: dict[str, dict] = {}
        self.requests: list[httpx.Request] = []

    def add(self, transaction_id: str, reference: str, status: str = "mined",
            amount: str = "10", to: str = "0xabc", token: str = "SIT") -> None:
        self.transactions[transaction_id] = {
            "transaction_id": transaction_id,
            "reference": reference,
            "transaction_status": status,
            "token_amount": amount,
            "to": to,
            "token": token,
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        transaction_id = request.url.path.rsplit("/", 1)[-1]
        payload = self.transactions.get(transaction_id)
        if payload is None:
            return httpx.Response(404, json={"detail": "not found"})
        return httpx.Response(200, json=payload)

    def client(self, handler=None) -> SettlementClient:
        return SettlementClient(
            "app_test",
            "test-api-key",
            base_url=SETTLEMENT_BASE,
            timeout=2.0,
            transport=httpx.MockTransport(handler or self.handler),
        )


@pytest.fixture
def authority():
    return FakeSettlementAuthority()


@pytest.fixture
def ledger():
    return ReferenceLedger()


@pytest.fixture
def signer():
    return AttestationSigner(ATTESTOR_KEY)


@pytest.fixture
def catalog():
    owner = wallet_address()
    return InMemoryCatalog([
        Resource(resource_id=12, owner=owner, content_hash="aa" * 32, labels=("cat",)),
        Resource(resource_id=45, owner=owner, content_hash="bb" * 32, labels=("cat", "animal")),
        Resource(resource_id=99, owner=owner, content_hash="cc" * 32, labels=("dog",)),
    ])
