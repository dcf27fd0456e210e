from typing import Optional
from pydantic import BaseModel
from fightbet.models.transaction import TransactionStatus


class PaymentRequest(BaseModel):
    # Limits depend on the provider, so bounds are checked by validate_payment_request.
    amount: int
    provider: str
    phone_number: str


class WebhookPayload(BaseModel):
    transaction_id: int
    external_ref: Optional[str] = None
    status: TransactionStatus


class ConfirmRequest(BaseModel):
    external_ref: Optional[str] = None
    status: TransactionStatus
