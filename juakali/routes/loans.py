# JUAKALI/backend/juakali/routes/loans.py : loan book, repayments, delivery and recovery

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from juakali import constants
from juakali.auth import require_roles
from juakali.database import get_db
from juakali.models import models as db_models
from juakali.schemas import schemas
from juakali.services.loan_service import LoanError, LoanService
from juakali.services.pagination import paginate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/loans", tags=["loans"])

require_loan_user = require_roles("admin", "lender", "retailer", "customer")
require_borrower = require_roles("retailer", "customer")
require_lender = require_roles("lender", "admin")


def _visible(query, current_user: db_models.User):
    """Admins see the whole book, lenders their loans plus open requests, borrowers their own"""
    if current_user.role == constants.ROLE_ADMIN:
        return query
    if current_user.role == constants.ROLE_LENDER:
        return query.filter(or_(
            db_models.Loan.lender_id == current_user.id,
            and_(db_models.Loan.lender_id.is_(None), db_models.Loan.status == constants.LOAN_PENDING),
        ))
    return query.filter(db_models.Loan.retailer_id == current_user.id)


def _get_loan(db: Session, loan_id: int, current_user: db_models.User) -> db_models.Loan:
    loan = _visible(db.query(db_models.Loan), current_user).filter(db_models.Loan.id == loan_id).first()
    if not loan:
        raise HTTPException(status_code=404, detail="Loan not found")
    return loan


def _loan_out(loan: db_models.Loan) -> dict:
    data = schemas.LoanOut.model_validate(loan).model_dump(mode="json")
    data.update({
        "retailer_name": loan.retailer.full_name if loan.retailer else None,
        "lender_name": loan.lender.full_name if loan.lender else None,
        "supplier_name": loan.supplier.name if loan.supplier else None,
    })
    return data


@router.get("")
def list_loans(
    status: Optional[schemas.LoanStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(constants.DEFAULT_PAGE_SIZE, ge=1, le=constants.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(require_loan_user),
):
    query = _visible(db.query(db_models.Loan), current_user)
    if status:
        query = query.filter(db_models.Loan.status == status)
    items, pagination = paginate(
        query.order_by(db_models.Loan.created_at.desc(), db_models.Loan.id.desc()), page, limit
    )
    return {"loans": [_loan_out(loan) for loan in items], "pagination": pagination}


@router.post("", status_code=201)
def create_loan(
    payload: schemas.LoanCreate,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(require_borrower),
):
    if payload.lender_id is not None:
        lender = db.query(db_models.User).filter(
            db_models.User.id == payload.lender_id, db_models.User.role == constants.ROLE_LENDER
        ).first()
        if not lender:
            raise HTTPException(status_code=404, detail="Lender not found")
    if payload.supplier_id is not None:
        supplier = db.query(db_models.Supplier).filter(db_models.Supplier.id == payload.supplier_id).first()
        if not supplier:
            raise HTTPException(status_code=404, detail="Supplier not found")

    try:
        loan = LoanService(db).create(
            current_user,
            payload.principal_amount,
            payload.daily_interest_rate,
            payload.loan_term_days,
            lender_id=payload.lender_id,
            supplier_id=payload.supplier_id,
            goods_category=payload.goods_category,
            goods_description=payload.goods_description or "",
        )
    except LoanError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "loan": _loan_out(loan)}


@router.get("/{loan_id}")
def get_loan(
    loan_id: int,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(require_loan_user),
):
    return {"success": True, "loan": _loan_out(_get_loan(db, loan_id, current_user))}


@router.patch("/{loan_id}/status")
def update_loan_status(
    loan_id: int,
    payload: schemas.LoanStatusUpdate,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(require_lender),
):
    loan = _get_loan(db, loan_id, current_user)
    try:
        loan = LoanService(db).change_status(loan, payload.status, current_user, notes=payload.notes)
    except LoanError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "loan": _loan_out(loan)}


# ---------- REPAYMENT LEDGER ----------
@router.get("/{loan_id}/repayments")
def get_repayments(
    loan_id: int,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(require_loan_user),
):
    loan = _get_loan(db, loan_id, current_user)
    repayments = db.query(db_models.LoanRepayment).filter(
        db_models.LoanRepayment.loan_id == loan.id
    ).order_by(db_models.LoanRepayment.payment_date.desc(), db_models.LoanRepayment.id.desc()).all()
    return {
        "success": True,
        "repayments": [schemas.RepaymentOut.model_validate(r).model_dump(mode="json") for r in repayments],
        "totalRepaid": loan.total_repaid,
        "outstanding": loan.outstanding_amount,
    }


@router.post("/{loan_id}/repayments", status_code=201)
def add_repayment(
    loan_id: int,
    payload: schemas.RepaymentCreate,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(require_loan_user),
):
    loan = _get_loan(db, loan_id, current_user)
    try:
        repayment = LoanService(db).record_repayment(
            loan, payload.amount, payload.payment_method, current_user,
            transaction_reference=payload.transaction_reference,
            payment_date=payload.payment_date,
        )
    except LoanError as e:
        raise HTTPException(status_code=400, detail=str(e))
    db.refresh(loan)
    return {
        "success": True,
        "repayment": schemas.RepaymentOut.model_validate(repayment).model_dump(mode="json"),
        "loan": _loan_out(loan),
    }


# ---------- DELIVERY ----------
@router.get("/{loan_id}/delivery")
def get_delivery_confirmations(
    loan_id: int,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(require_loan_user),
):
    loan = _get_loan(db, loan_id, current_user)
    confirmations = db.query(db_models.LoanDeliveryConfirmation).filter(
        db_models.LoanDeliveryConfirmation.loan_id == loan.id
    ).order_by(db_models.LoanDeliveryConfirmation.created_at.desc(), db_models.LoanDeliveryConfirmation.id.desc()).all()
    return {
        "success": True,
        "confirmations": [schemas.DeliveryConfirmationOut.model_validate(c).model_dump(mode="json")
                          for c in confirmations],
    }


@router.post("/{loan_id}/delivery", status_code=201)
def add_delivery_confirmation(
    loan_id: int,
    payload: schemas.DeliveryConfirmationCreate,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(require_loan_user),
):
    loan = _get_loan(db, loan_id, current_user)
    try:
        confirmation = LoanService(db).confirm_delivery(loan, current_user, **payload.model_dump())
    except LoanError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "confirmationId": confirmation.id, "status": loan.status}


# ---------- RECOVERY ----------
@router.post("/{loan_id}/escalate", status_code=201)
def escalate_loan(
    loan_id: int,
    payload: schemas.EscalationCreate,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(require_lender),
):
    loan = _get_loan(db, loan_id, current_user)
    try:
        escalation = LoanService(db).escalate(loan, current_user, **payload.model_dump())
    except LoanError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "escalationId": escalation.id}


@router.get("/{loan_id}/escalations")
def get_escalations(
    loan_id: int,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(require_loan_user),
):
    loan = _get_loan(db, loan_id, current_user)
    escalations = db.query(db_models.LoanEscalation).filter(
        db_models.LoanEscalation.loan_id == loan.id
    ).order_by(db_models.LoanEscalation.created_at.desc(), db_models.LoanEscalation.id.desc()).all()
    return {
        "success": True,
        "escalations": [schemas.EscalationOut.model_validate(e).model_dump(mode="json") for e in escalations],
    }


# ---------- STATEMENTS ----------
@router.post("/{loan_id}/statement", status_code=201)
def generate_statement(
    loan_id: int,
    payload: schemas.StatementRequest,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(require_loan_user),
):
    loan = _get_loan(db, loan_id, current_user)
    result = LoanService(db).statement(loan, payload.start_date, payload.end_date)
    record = result["record"]
    return {
        "success": True,
        "statementId": record.id,
        "statement": {
            "loanId": loan.id,
            "period": {"start": record.period_start.isoformat(), "end": record.period_end.isoformat()},
            "totalExpected": record.total_expected,
            "totalPaid": record.total_paid,
            "penaltiesApplied": record.penalties_applied,
            "outstandingBalance": record.outstanding_balance,
            "payments": [schemas.RepaymentOut.model_validate(r).model_dump(mode="json") for r in result["repayments"]],
        },
    }


@router.get("/{loan_id}/statements")
def get_statements(
    loan_id: int,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(require_loan_user),
):
    loan = _get_loan(db, loan_id, current_user)
    statements = db.query(db_models.LoanStatement).filter(
        db_models.LoanStatement.loan_id == loan.id
    ).order_by(db_models.LoanStatement.created_at.desc(), db_models.LoanStatement.id.desc()).all()
    return {
        "success": True,
        "statements": [schemas.StatementOut.model_validate(s).model_dump(mode="json") for s in statements],
    }
