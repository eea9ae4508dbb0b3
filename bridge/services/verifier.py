"""
Payment Verifier

Confirms a payment reference against the settlement authority:

1. reference must exist (NotFoundError) and be PENDING (ReplayError)
2. fetch the transaction by its external id
3. transaction.reference must equal the reference id
4. transaction status must not be a failure
5. amount, recipient and asset must match what was stored at initiation
6. compare-and-set PENDING -> CONFIRMED

Failure policy:
- REFERENCE_MISMATCH leaves the record PENDING. The caller presented an
  unrelated transaction; the intent itself is still payable.
- STATUS_FAILED and the amount/recipient/asset mismatches move the record
  to FAILED. The transaction bound to this reference will never be valid.
- Settlement errors and timeouts leave the record PENDING and propagate as
  ExternalServiceError. Nothing is retried here; the client resubmits.

A confirmation that has started runs to completion even if the caller
goes away, so its result is always persisted.
"""
import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional

from ..errors import BridgeError, ReplayError
from ..lib.settlement import SettlementClient, SettlementTransaction
from .ledger import PaymentReference, ReferenceLedger, ReferenceStatus

logger = logging.getLogger(__name__)


class VerificationOutcome(str, Enum):
    VERIFIED = "verified"
    REFERENCE_MISMATCH = "reference_mismatch"
    STATUS_FAILED = "status_failed"
    AMOUNT_MISMATCH = "amount_mismatch"
    RECIPIENT_MISMATCH = "recipient_mismatch"
    ASSET_MISMATCH = "asset_mismatch"


REASONS = {
    VerificationOutcome.REFERENCE_MISMATCH: "Reference ID mismatch",
    VerificationOutcome.STATUS_FAILED: "Transaction failed",
    VerificationOutcome.AMOUNT_MISMATCH: "Amount mismatch",
    VerificationOutcome.RECIPIENT_MISMATCH: "Recipient mismatch",
    VerificationOutcome.ASSET_MISMATCH: "Asset mismatch",
}

# Outcomes that leave the reference open for another attempt
RETRYABLE_OUTCOMES = frozenset({VerificationOutcome.REFERENCE_MISMATCH})


@dataclass
class ConfirmationResult:
    reference_id: str
    outcome: VerificationOutcome
    status: ReferenceStatus
    transaction_id: str

    @property
    def success(self) -> bool:
        return self.outcome is VerificationOutcome.VERIFIED

    @property
    def reason(self) -> Optional[str]:
        return REASONS.get(self.outcome)


def _same_amount(expected: str, reported: Optional[str]) -> bool:
    if reported is None:
        return False
    try:
        return Decimal(expected) == Decimal(reported)
    except InvalidOperation:
        return False


def _same_text(expected: str, reported: Optional[str]) -> bool:
    return reported is not None and expected.strip().lower() == reported.strip().lower()


def evaluate(record: PaymentReference, tx: SettlementTransaction) -> VerificationOutcome:
    """Judge a settlement transaction against a stored reference. Pure."""
    if tx.reference != record.reference_id:
        return VerificationOutcome.REFERENCE_MISMATCH
    if tx.failed:
        return VerificationOutcome.STATUS_FAILED
    # Missing fields fail closed
    if not _same_amount(record.amount, tx.amount):
        return VerificationOutcome.AMOUNT_MISMATCH
    if not _same_text(record.recipient, tx.recipient):
        return VerificationOutcome.RECIPIENT_MISMATCH
    if not _same_text(record.asset, tx.asset):
        return VerificationOutcome.ASSET_MISMATCH
    return VerificationOutcome.VERIFIED


class PaymentVerifier:
    def __init__(self, ledger: ReferenceLedger, settlement: SettlementClient):
        self.ledger = ledger
        self.settlement = settlement
        self._inflight: set[asyncio.Task] = set()

    async def confirm(self, reference_id: str, transaction_id: str) -> ConfirmationResult:
        """
        Run one confirmation. Shielded: cancelling the caller does not
        cancel the verification or its write.
        """
        task = asyncio.ensure_future(self._confirm(reference_id, transaction_id))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return await asyncio.shield(task)

    async def _confirm(self, reference_id: str, transaction_id: str) -> ConfirmationResult:
        # Store calls may block on file I/O; keep them off the event loop
        record = await asyncio.to_thread(self.ledger.lookup, reference_id)
        if record.status.terminal:
            logger.warning(
                f"Replay: confirm on {record.status.value} reference {reference_id} (tx {transaction_id})"
            )
            raise ReplayError(f"Payment reference already {record.status.value}")

        try:
            tx = await self.settlement.get_transaction(transaction_id)
        except BridgeError as e:
            logger.error(
                f"Settlement lookup failed for reference {reference_id} (tx {transaction_id}): {e.reason}"
            )
            raise

        outcome = evaluate(record, tx)
        if outcome in RETRYABLE_OUTCOMES:
            logger.warning(
                f"Reference {reference_id} rejected tx {transaction_id}: "
                f"{REASONS[outcome]} (tx reference {tx.reference!r})"
            )
            return ConfirmationResult(reference_id, outcome, ReferenceStatus.PENDING, transaction_id)

        terminal = ReferenceStatus.CONFIRMED if outcome is VerificationOutcome.VERIFIED else ReferenceStatus.FAILED
        try:
            await asyncio.to_thread(
                self.ledger.complete,
                reference_id,
                terminal,
                transaction_id=transaction_id,
                reason=REASONS.get(outcome),
            )
        except ReplayError:
            logger.warning(f"Lost confirmation race on reference {reference_id} (tx {transaction_id})")
            raise

        if outcome is not VerificationOutcome.VERIFIED:
            logger.warning(f"Reference {reference_id} failed with tx {transaction_id}: {REASONS[outcome]}")
        return ConfirmationResult(reference_id, outcome, terminal, transaction_id)
