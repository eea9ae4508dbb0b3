from decimal import Decimal, InvalidOperation
from typing import Optional

from pydantic import Field, field_validator

from .common import CamelModel


class InitiatePaymentRequest(CamelModel):
    amount: str = Field(
        ...,
        description=(
            "Decimal string in the units the settlement authority reports "
            "(its token_amount field, typically base units). Compared exactly at "
            "confirm time; a mismatch marks the reference FAILED for good."
        ),
    )
    recipient: str = Field(..., min_length=1)
    asset: str = Field(..., min_length=1)
    subject_id: Optional[int] = Field(None, alias="subjectId")

    @field_validator("amount")
    @classmethod
    def _positive_amount(cls, v: str) -> str:
        try:
            value = Decimal(v)
        except InvalidOperation:
            raise ValueError("amount must be a decimal string")
        if not value.is_finite() or value <= 0:
            raise ValueError("amount must be positive")
        return v


class InitiatePaymentResponse(CamelModel):
    reference_id: str = Field(..., alias="referenceId")


class ConfirmPaymentRequest(CamelModel):
    reference_id: str = Field(..., alias="referenceId", min_length=1)
    external_transaction_id: str = Field(..., alias="externalTransactionId", min_length=1)


class ConfirmPaymentResponse(CamelModel):
    success: bool
    reason: Optional[str] = None
    outcome: str
    status: str


class PaymentStatusResponse(CamelModel):
    reference_id: str = Field(..., alias="referenceId")
    status: str
    amount: str
    recipient: str
    asset: str
    subject_id: Optional[int] = Field(None, alias="subjectId")
    created_at: int = Field(..., alias="createdAt")
    completed_at: Optional[int] = Field(None, alias="completedAt")
    transaction_id: Optional[str] = Field(None, alias="transactionId")
    reason: Optional[str] = None
