# JUAKALI/backend/juakali/routes/payments.py : M-Pesa and bank payments

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from juakali import constants
from juakali.auth import get_current_user
from juakali.config import PAYMENTS_SIMULATION
from juakali.database import get_db
from juakali.models import models as db_models
from juakali.schemas import schemas
from juakali.services.banking_service import BankingService, get_banking_service
from juakali.services.mpesa_service import MpesaService, get_mpesa_service
from juakali.services.pagination import paginate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments", tags=["payments"])

CALLBACK_ACK = {"ResultCode": 0, "ResultDesc": "Accepted"}


def payments_simulated() -> bool:
    return PAYMENTS_SIMULATION


def _record_completed_transaction(db: Session, payment: db_models.PaymentTransaction, amount: float,
                                  transaction_type: str):
    db.add(db_models.Transaction(
        user_id=payment.user_id,
        amount=amount,
        transaction_type=transaction_type,
        status=constants.TX_COMPLETED,
        reference=payment.receipt_number or payment.reference,
        description=payment.description,
    ))


@router.post("/mpesa/stk-push")
async def stk_push(
    payload: schemas.StkPushRequest,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(get_current_user),
    mpesa: MpesaService = Depends(get_mpesa_service),
    banking: BankingService = Depends(get_banking_service),
    simulated: bool = Depends(payments_simulated),
):
    """Prompts the payer's phone; the outcome arrives later on the callback"""
    reference = payload.reference or banking.generate_reference()
    description = payload.description or "JuaKali Lend Payment"

    payment = db_models.PaymentTransaction(
        user_id=current_user.id,
        provider="mpesa",
        amount=payload.amount,
        recipient_phone=payload.phone,
        reference=reference,
        description=description,
        status=constants.TX_PENDING,
    )
    db.add(payment)
    db.commit()

    if simulated:
        result = await mpesa.simulate_stk_push(payload.phone, payload.amount, reference)
    else:
        result = await mpesa.stk_push(payload.phone, payload.amount, reference, description)

    if result["success"]:
        payment.checkout_request_id = result.get("checkoutRequestId")
        payment.merchant_request_id = result.get("merchantRequestId")
    else:
        payment.status = constants.TX_FAILED
        payment.result_description = result.get("error")
    db.commit()
    db.refresh(payment)

    return {**result, "paymentId": payment.id, "reference": reference}


@router.post("/mpesa/callback")
async def mpesa_callback(
    request: Request,
    db: Session = Depends(get_db),
    mpesa: MpesaService = Depends(get_mpesa_service),
):
    """Daraja webhook; always acknowledged so Safaricom stops retrying"""
    try:
        body = await request.json()
    except ValueError:
        body = None

    result = mpesa.process_callback(body)
    if result.get("checkoutRequestId") is None:
        logger.warning(f"⚠️ M-Pesa callback ignored: {result.get('error', 'no checkout id')}")
        return CALLBACK_ACK

    payment = db.query(db_models.PaymentTransaction).filter(
        db_models.PaymentTransaction.checkout_request_id == result["checkoutRequestId"]
    ).first()
    if payment is None:
        logger.warning(f"⚠️ M-Pesa callback for unknown request {result['checkoutRequestId']}")
        return CALLBACK_ACK
    if payment.status != constants.TX_PENDING:
        # Daraja may deliver the same callback more than once
        return CALLBACK_ACK

    payment.result_description = result.get("resultDesc")
    if result["success"]:
        payment.status = constants.TX_COMPLETED
        payment.receipt_number = result.get("mpesaReceiptNumber")
        payment.provider_transaction_id = result.get("mpesaReceiptNumber")
        amount = result.get("amount")
        if isinstance(amount, bool) or not isinstance(amount, (int, float)):
            amount = payment.amount
        _record_completed_transaction(db, payment, float(amount), "mpesa_payment")
        logger.info(f"✅ M-Pesa payment {payment.id} completed: {payment.receipt_number}")
    else:
        payment.status = constants.TX_FAILED
        logger.info(f"❌ M-Pesa payment {payment.id} failed: {payment.result_description}")
    db.commit()
    return CALLBACK_ACK


@router.get("/mpesa/{checkout_request_id}/status")
async def mpesa_status(
    checkout_request_id: str,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(get_current_user),
    mpesa: MpesaService = Depends(get_mpesa_service),
    simulated: bool = Depends(payments_simulated),
):
    query = db.query(db_models.PaymentTransaction).filter(
        db_models.PaymentTransaction.checkout_request_id == checkout_request_id
    )
    if current_user.role != constants.ROLE_ADMIN:
        query = query.filter(db_models.PaymentTransaction.user_id == current_user.id)
    payment = query.first()
    if payment is None:
        raise HTTPException(status_code=404, detail="Payment not found")

    result = None
    if not simulated and payment.status == constants.TX_PENDING:
        result = await mpesa.query_transaction(checkout_request_id)
        code = result.get("resultCode") if result["success"] else None
        if code is not None:
            completed = str(code) == "0"
            payment.status = constants.TX_COMPLETED if completed else constants.TX_FAILED
            payment.result_description = result.get("resultDesc")
            if completed:
                _record_completed_transaction(db, payment, payment.amount, "mpesa_payment")
            db.commit()
            db.refresh(payment)

    return {
        "success": True,
        "data": schemas.PaymentTransactionOut.model_validate(payment),
        "query": result,
    }


@router.post("/bank/{bank}")
async def bank_payment(
    bank: str,
    payload: schemas.BankPaymentRequest,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(get_current_user),
    banking: BankingService = Depends(get_banking_service),
    simulated: bool = Depends(payments_simulated),
):
    bank = bank.lower()
    if bank not in constants.SUPPORTED_BANKS:
        raise HTTPException(status_code=400, detail=f"Unsupported bank: {bank}")

    reference = payload.reference or banking.generate_reference()
    description = payload.description or "JuaKali Lend Payment"

    if simulated:
        result = await banking.simulate_payment(bank, payload.account_number, payload.amount, reference)
    else:
        result = await banking.process_payment(bank, payload.account_number, payload.amount, reference, description)

    payment = db_models.PaymentTransaction(
        user_id=current_user.id,
        provider=bank,
        amount=payload.amount,
        recipient_account=payload.account_number,
        reference=reference,
        description=description,
        provider_transaction_id=result.get("transactionId"),
        status=constants.TX_COMPLETED if result["success"] else constants.TX_FAILED,
        result_description=result.get("error") or result.get("status"),
    )
    db.add(payment)
    if result["success"]:
        _record_completed_transaction(db, payment, payload.amount, "bank_payment")
    db.commit()
    db.refresh(payment)

    return {**result, "paymentId": payment.id, "reference": reference}


@router.get("/banks")
def supported_banks(banking: BankingService = Depends(get_banking_service)):
    return {"success": True, "data": banking.get_supported_banks()}


@router.get("")
def my_payments(
    page: int = Query(1, ge=1),
    limit: int = Query(constants.DEFAULT_PAGE_SIZE, ge=1, le=constants.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(get_current_user),
):
    query = db.query(db_models.PaymentTransaction).filter(
        db_models.PaymentTransaction.user_id == current_user.id
    ).order_by(db_models.PaymentTransaction.created_at.desc(), db_models.PaymentTransaction.id.desc())
    items, pagination = paginate(query, page, limit)
    return {
        "payments": [schemas.PaymentTransactionOut.model_validate(p) for p in items],
        "pagination": pagination,
    }
