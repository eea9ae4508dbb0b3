"""
Direct payment flow.

POST /v1/payment/initiate {amount, recipient, asset, subjectId} -> {referenceId}
POST /v1/payment/confirm  {referenceId, externalTransactionId}  -> {success, reason?}
GET  /v1/payment/{referenceId}                                  -> record status

Confirm answers 200 on success, 400 with {success: false, reason} when the
transaction does not satisfy the reference, 409 on replay, 5xx when the
settlement authority could not be reached (reference stays PENDING).
"""
from fastapi import APIRouter, Depends, Response

from ..deps import get_ledger, get_verifier
from ..models.payments import (
    ConfirmPaymentRequest,
    ConfirmPaymentResponse,
    InitiatePaymentRequest,
    InitiatePaymentResponse,
    PaymentStatusResponse,
)
from ..services.ledger import ReferenceLedger
from ..services.verifier import PaymentVerifier

router = APIRouter(prefix="/v1/payment", tags=["payments"])


@router.post("/initiate", response_model=InitiatePaymentResponse)
def initiate_payment(body: InitiatePaymentRequest, ledger: ReferenceLedger = Depends(get_ledger)):
    record = ledger.create(
        amount=body.amount,
        recipient=body.recipient,
        asset=body.asset,
        subject_id=body.subject_id,
    )
    return InitiatePaymentResponse(reference_id=record.reference_id)


@router.post("/confirm", response_model=ConfirmPaymentResponse)
async def confirm_payment(
    body: ConfirmPaymentRequest,
    response: Response,
    verifier: PaymentVerifier = Depends(get_verifier),
):
    result = await verifier.confirm(body.reference_id, body.external_transaction_id)
    if not result.success:
        response.status_code = 400
    return ConfirmPaymentResponse(
        success=result.success,
        reason=result.reason,
        outcome=result.outcome.value,
        status=result.status.value,
    )


@router.get("/{reference_id}", response_model=PaymentStatusResponse)
def payment_status(reference_id: str, ledger: ReferenceLedger = Depends(get_ledger)):
    record = ledger.lookup(reference_id)
    return PaymentStatusResponse(
        reference_id=record.reference_id,
        status=record.status.value,
        amount=record.amount,
        recipient=record.recipient,
        asset=record.asset,
        subject_id=record.subject_id,
        created_at=record.created_at,
        completed_at=record.completed_at,
        transaction_id=record.transaction_id,
        reason=record.reason,
    )
