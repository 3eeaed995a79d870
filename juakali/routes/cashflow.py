# JUAKALI/backend/juakali/routes/cashflow.py : lender cash flow

from datetime import date
from typing import Optional, Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from juakali import constants
from juakali.auth import require_roles
from juakali.database import get_db
from juakali.models import models as db_models
from juakali.schemas import schemas
from juakali.services.cashflow_service import CashFlowService
from juakali.services.pagination import paginate

router = APIRouter(prefix="/api/cashflow", tags=["cashflow"])


def get_cashflow_service(
    lender_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(require_roles(constants.ROLE_LENDER, constants.ROLE_ADMIN)),
) -> CashFlowService:
    """Lenders work on their own book; admins name the lender explicitly"""
    if current_user.role == constants.ROLE_LENDER:
        return CashFlowService(db, current_user.id)
    if lender_id is None:
        raise HTTPException(status_code=400, detail="lender_id is required")
    return CashFlowService(db, lender_id)


@router.get("")
def get_cashflow(
    time_range: Literal["7d", "30d", "90d", "all"] = Query("7d", alias="range"),
    service: CashFlowService = Depends(get_cashflow_service),
):
    return {"cashflow": service.daily(time_range)}


@router.get("/summary")
def get_summary(service: CashFlowService = Depends(get_cashflow_service)):
    return {"summary": service.summary()}


@router.post("/transactions", status_code=201)
def record_transaction(
    payload: schemas.CashFlowCreate,
    service: CashFlowService = Depends(get_cashflow_service),
):
    entry = service.record(
        payload.transaction_type, payload.amount, payload.transaction_date,
        description=payload.description, reference_id=payload.reference_id,
    )
    return {"id": entry.id, "success": True}


@router.get("/transactions")
def get_history(
    page: int = Query(1, ge=1),
    limit: int = Query(constants.DEFAULT_PAGE_SIZE, ge=1, le=constants.MAX_PAGE_SIZE),
    service: CashFlowService = Depends(get_cashflow_service),
):
    items, pagination = paginate(service.history_query(), page, limit)
    return {
        "transactions": [schemas.CashFlowOut.model_validate(t) for t in items],
        "pagination": pagination,
    }


@router.post("/deposit", status_code=201)
def deposit(
    payload: schemas.CashFlowAmount,
    service: CashFlowService = Depends(get_cashflow_service),
):
    entry = service.record("deposit", payload.amount, date.today(), description=payload.description or "Deposit")
    return {"id": entry.id, "success": True}


@router.post("/withdraw", status_code=201)
def withdraw(
    payload: schemas.CashFlowAmount,
    service: CashFlowService = Depends(get_cashflow_service),
):
    entry = service.record("withdrawal", payload.amount, date.today(), description=payload.description or "Withdrawal")
    return {"id": entry.id, "success": True}
