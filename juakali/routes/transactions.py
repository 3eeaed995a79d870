# JUAKALI/backend/juakali/routes/transactions.py

from typing import Optional, Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from juakali import constants
from juakali.auth import get_current_user, require_admin
from juakali.database import get_db
from juakali.models import models as db_models
from juakali.schemas import schemas
from juakali.services.pagination import paginate

router = APIRouter(prefix="/api/transactions", tags=["transactions"])


def _scoped(query, current_user: db_models.User, status: Optional[str]):
    if current_user.role != constants.ROLE_ADMIN:
        query = query.filter(db_models.Transaction.user_id == current_user.id)
    if status:
        query = query.filter(db_models.Transaction.status == status)
    return query


@router.get("")
def get_transactions(
    status: Optional[Literal["pending", "completed", "failed", "cancelled"]] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(constants.DEFAULT_PAGE_SIZE, ge=1, le=constants.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(get_current_user),
):
    """Admins see every transaction, everyone else their own"""
    query = db.query(
        db_models.Transaction,
        db_models.User,
        db_models.Retailer.business_name,
    ).join(
        db_models.User, db_models.Transaction.user_id == db_models.User.id
    ).outerjoin(
        db_models.Retailer, db_models.Transaction.retailer_id == db_models.Retailer.id
    )
    query = _scoped(query, current_user, status).order_by(
        db_models.Transaction.created_at.desc(), db_models.Transaction.id.desc()
    )
    count_query = _scoped(db.query(db_models.Transaction), current_user, status)

    rows, pagination = paginate(query, page, limit, count_query=count_query)
    transactions = []
    for tx, user, retailer_name in rows:
        data = schemas.TransactionOut.model_validate(tx).model_dump(mode="json")
        data.update({"user_name": user.full_name, "user_email": user.email, "retailer_name": retailer_name})
        transactions.append(data)

    return {"transactions": transactions, "pagination": pagination}


@router.post("", response_model=schemas.TransactionOut, status_code=201)
def create_transaction(
    transaction: schemas.TransactionCreate,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(get_current_user),
):
    if transaction.retailer_id is not None:
        retailer = db.query(db_models.Retailer).filter(db_models.Retailer.id == transaction.retailer_id).first()
        if not retailer:
            raise HTTPException(status_code=404, detail="Retailer not found")

    new_tx = db_models.Transaction(user_id=current_user.id, **transaction.model_dump())
    db.add(new_tx)
    db.commit()
    db.refresh(new_tx)
    return new_tx


@router.get("/{transaction_id}", response_model=schemas.TransactionOut)
def get_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(get_current_user),
):
    transaction = _scoped(db.query(db_models.Transaction), current_user, None).filter(
        db_models.Transaction.id == transaction_id
    ).first()
    if not transaction:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return transaction


@router.patch("/{transaction_id}", response_model=schemas.TransactionOut)
def update_transaction(
    transaction_id: int,
    payload: schemas.TransactionUpdate,
    db: Session = Depends(get_db),
    admin: db_models.User = Depends(require_admin),
):
    transaction = db.query(db_models.Transaction).filter(db_models.Transaction.id == transaction_id).first()
    if not transaction:
        raise HTTPException(status_code=404, detail="Transaction not found")

    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if transaction.status == constants.TX_COMPLETED and changes:
        raise HTTPException(status_code=400, detail="Completed transactions cannot be modified")

    try:
        for field, value in changes.items():
            setattr(transaction, field, value)
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))

    db.commit()
    db.refresh(transaction)
    return transaction
