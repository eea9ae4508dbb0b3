"""
Reference Ledger

One record per pending payment intent, keyed by an unguessable reference id.

Lifecycle:
    create()   -> PENDING
    complete() -> CONFIRMED | FAILED   (exactly once)

INVARIANT: the terminal transition is a compare-and-set on the stored
status. Two completions of the same reference can never both succeed;
the loser gets ReplayError.

Each record keeps its own append-only transition history for post-hoc
reconciliation.
"""
import logging
import secrets
import shelve
import threading
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Optional

from ..errors import NotFoundError, ReplayError, StorageError, ValidationError

logger = logging.getLogger(__name__)

# 16 random bytes -> 32 hex chars
REFERENCE_ID_BYTES = 16


class ReferenceStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self is not ReferenceStatus.PENDING


@dataclass
class PaymentReference:
    reference_id: str
    amount: str
    recipient: str
    asset: str
    subject_id: Optional[int] = None
    status: ReferenceStatus = ReferenceStatus.PENDING
    created_at: int = 0
    completed_at: Optional[int] = None
    transaction_id: Optional[str] = None
    reason: Optional[str] = None
    history: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        d = asdict(self)
        d["status"] = self.status.value
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "PaymentReference":
        data = dict(data)
        data["status"] = ReferenceStatus(data["status"])
        data["history"] = list(data.get("history", []))
        return cls(**data)


class InMemoryReferenceStore:
    """Process-local store. Used in tests and single-process deployments."""

    def __init__(self):
        self._records: dict[str, dict] = {}
        self._lock = threading.Lock()

    def get(self, reference_id: str) -> Optional[dict]:
        with self._lock:
            rec = self._records.get(reference_id)
            return dict(rec) if rec is not None else None

    def insert(self, reference_id: str, record: dict) -> bool:
        """Insert a new record. False if the id is already taken."""
        with self._lock:
            if reference_id in self._records:
                return False
            self._records[reference_id] = dict(record)
            return True

    def compare_and_set(self, reference_id: str, expected_status: str, record: dict) -> bool:
        """Replace the record only if its stored status is still `expected_status`."""
        with self._lock:
            current = self._records.get(reference_id)
            if current is None or current["status"] != expected_status:
                return False
            self._records[reference_id] = dict(record)
            return True


class ShelveReferenceStore:
    """
    Durable store on a shelve file.

    The lock makes compare_and_set atomic within one process. Run a single
    worker process per ledger file.
    """

    def __init__(self, path: str):
        self.path = str(path)
        self._lock = threading.Lock()

    def get(self, reference_id: str) -> Optional[dict]:
        with self._lock, shelve.open(self.path) as db:
            return db.get(reference_id)

    def insert(self, reference_id: str, record: dict) -> bool:
        with self._lock, shelve.open(self.path) as db:
            if reference_id in db:
                return False
            db[reference_id] = record
            return True

    def compare_and_set(self, reference_id: str, expected_status: str, record: dict) -> bool:
        with self._lock, shelve.open(self.path) as db:
            current = db.get(reference_id)
            if current is None or current["status"] != expected_status:
                return False
            db[reference_id] = record
            return True


class ReferenceLedger:
    def __init__(self, store=None):
        self.store = store if store is not None else InMemoryReferenceStore()

    def create(
        self,
        amount: str,
        recipient: str,
        asset: str,
        subject_id: Optional[int] = None,
    ) -> PaymentReference:
        """Persist a new PENDING reference with a fresh random id."""
        now = int(time.time())
        # A collision on 128 random bits means the RNG is broken; don't loop on it
        for _ in range(3):
            reference_id = secrets.token_hex(REFERENCE_ID_BYTES)
            record = PaymentReference(
                reference_id=reference_id,
                amount=amount,
                recipient=recipient,
                asset=asset,
                subject_id=subject_id,
                created_at=now,
                history=[{"at": now, "status": ReferenceStatus.PENDING.value}],
            )
            try:
                inserted = self.store.insert(reference_id, record.to_dict())
            except Exception as e:
                logger.error(f"Failed to persist payment reference: {e}")
                raise StorageError("Failed to persist payment reference") from e
            if inserted:
                logger.info(f"Payment reference created: {reference_id} ({amount} {asset} -> {recipient})")
                return record
        raise StorageError("Could not allocate a unique reference id")

    def lookup(self, reference_id: str) -> PaymentReference:
        try:
            data = self.store.get(reference_id)
        except Exception as e:
            logger.error(f"Failed to read payment reference {reference_id}: {e}")
            raise StorageError("Failed to read payment reference") from e
        if data is None:
            raise NotFoundError("Unknown payment reference")
        return PaymentReference.from_dict(data)

    def complete(
        self,
        reference_id: str,
        outcome: ReferenceStatus,
        transaction_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> PaymentReference:
        """
        Move a PENDING reference to `outcome`, exactly once.

        Raises:
            ValidationError: outcome is not terminal
            NotFoundError: unknown reference
            ReplayError: reference already terminal (including losing a race)
        """
        outcome = ReferenceStatus(outcome)
        if not outcome.terminal:
            raise ValidationError("Outcome must be confirmed or failed")

        record = self.lookup(reference_id)
        if record.status.terminal:
            raise ReplayError(f"Payment reference already {record.status.value}")

        now = int(time.time())
        record.status = outcome
        record.completed_at = now
        record.transaction_id = transaction_id
        record.reason = reason
        record.history.append({
            "at": now,
            "status": outcome.value,
            "transaction_id": transaction_id,
            "reason": reason,
        })

        try:
            swapped = self.store.compare_and_set(
                reference_id, ReferenceStatus.PENDING.value, record.to_dict()
            )
        except Exception as e:
            logger.error(f"Failed to update payment reference {reference_id} (tx {transaction_id}): {e}")
            raise StorageError("Failed to update payment reference") from e
        if not swapped:
            raise ReplayError("Payment reference already completed")

        logger.info(f"Payment reference {reference_id} -> {outcome.value} (tx {transaction_id})")
        return record
