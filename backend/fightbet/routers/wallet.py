import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import ValidationError as PydanticValidationError
from fightbet.config import Settings
from fightbet.core.deps import get_current_user, get_cashier, get_transaction_log, get_wallet_store, get_settings
from fightbet.core.errors import InvalidStateError
from fightbet.core.security import verify_signature
from fightbet.core.validation import validate_payment_request
from fightbet.models.user import User
from fightbet.models.transaction import TransactionType, TransactionStatus
from fightbet.schemas.wallet import PaymentRequest, WebhookPayload
from fightbet.services.cashier import Cashier, transaction_dict, wallet_dict
from fightbet.services.transaction_log import TransactionLog
from fightbet.services.wallet_store import WalletStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/wallet", tags=["wallet"])

@router.get("")
async def get_wallet(user: User = Depends(get_current_user), wallets: WalletStore = Depends(get_wallet_store)):
    wallet = await wallets.get(user.id)
    return wallet_dict(wallet)

@router.post("/deposit", status_code=201)
async def deposit(
    body: PaymentRequest,
    user: User = Depends(get_current_user),
    cashier: Cashier = Depends(get_cashier),
    cfg: Settings = Depends(get_settings),
):
    data = validate_payment_request(body.model_dump(), "deposit", cfg).unwrap()
    return await cashier.deposit(user.id, data["amount"], data["provider"], data["phone_number"])

@router.post("/withdraw", status_code=201)
async def withdraw(
    body: PaymentRequest,
    user: User = Depends(get_current_user),
    cashier: Cashier = Depends(get_cashier),
    cfg: Settings = Depends(get_settings),
):
    data = validate_payment_request(body.model_dump(), "withdrawal", cfg).unwrap()
    return await cashier.withdraw(user.id, data["amount"], data["provider"], data["phone_number"])

@router.get("/transactions")
async def list_transactions(
    type: Optional[TransactionType] = None,
    status: Optional[TransactionStatus] = None,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user: User = Depends(get_current_user),
    ledger: TransactionLog = Depends(get_transaction_log),
):
    txs = await ledger.list_for_user(user.id, type=type, status=status, limit=limit, offset=offset)
    return [transaction_dict(tx) for tx in txs]

@router.get("/transactions/{transaction_id}")
async def get_transaction(
    transaction_id: int,
    user: User = Depends(get_current_user),
    ledger: TransactionLog = Depends(get_transaction_log),
):
    tx = await ledger.get(transaction_id)
    if tx.user_id != user.id:
        # Same answer as a missing row so ids of other users cannot be discovered.
        raise HTTPException(404, "Transaction not found")
    return transaction_dict(tx)

@router.post("/transactions/{transaction_id}/cancel")
async def cancel_transaction(
    transaction_id: int,
    user: User = Depends(get_current_user),
    cashier: Cashier = Depends(get_cashier),
):
    tx = await cashier.cancel(transaction_id, user.id)
    return transaction_dict(tx)

@router.post("/webhook")
async def payment_webhook(
    request: Request,
    cashier: Cashier = Depends(get_cashier),
    cfg: Settings = Depends(get_settings),
):
    """Payment provider callback. The provider may deliver the same event more than once."""
    body = await request.body()
    if cfg.PAYMENT_WEBHOOK_SECRET and not verify_signature(
        body, request.headers.get("x-signature"), cfg.PAYMENT_WEBHOOK_SECRET
    ):
        logger.warning("Rejected webhook with bad signature")
        raise HTTPException(401, "Invalid signature")
    try:
        payload = WebhookPayload.model_validate_json(body)
    except PydanticValidationError as e:
        raise HTTPException(422, e.errors(include_url=False))
    if payload.status not in (TransactionStatus.CONFIRMED, TransactionStatus.FAILED):
        raise HTTPException(400, "status must be CONFIRMED or FAILED")

    try:
        tx = await cashier.confirm(payload.transaction_id, payload.external_ref, payload.status)
    except InvalidStateError:
        logger.info("Duplicate webhook for transaction %s ignored", payload.transaction_id)
        raise
    return {"message": "processed", "transaction_id": tx.id, "status": tx.status.value}
