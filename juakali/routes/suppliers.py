# JUAKALI/backend/juakali/routes/suppliers.py : supplier catalog

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session

from juakali import constants
from juakali.auth import get_current_user, require_roles
from juakali.database import get_db
from juakali.models import models as db_models
from juakali.schemas import schemas

router = APIRouter(prefix="/api/suppliers", tags=["suppliers"])

require_catalog_editor = require_roles(constants.ROLE_ADMIN, constants.ROLE_LENDER)


def _get_or_404(db: Session, supplier_id: int) -> db_models.Supplier:
    supplier = db.query(db_models.Supplier).filter(db_models.Supplier.id == supplier_id).first()
    if not supplier:
        raise HTTPException(status_code=404, detail="Supplier not found")
    return supplier


@router.get("")
def list_suppliers(
    category: Optional[str] = None,
    rating: Optional[str] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(get_current_user),
):
    """Preferred suppliers first, then by rating; ``all`` disables a filter"""
    query = db.query(db_models.Supplier)

    if category and category != "all":
        query = query.filter(db_models.Supplier.category == category)

    if rating and rating != "all":
        try:
            min_rating = float(rating)
        except ValueError:
            raise HTTPException(status_code=400, detail="rating must be a number or 'all'")
        query = query.filter(db_models.Supplier.rating >= min_rating)

    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            db_models.Supplier.name.ilike(pattern),
            db_models.Supplier.location.ilike(pattern),
        ))

    suppliers = query.order_by(
        db_models.Supplier.is_preferred.desc(), db_models.Supplier.rating.desc(), db_models.Supplier.id
    ).all()
    return {"suppliers": [schemas.SupplierOut.model_validate(s) for s in suppliers]}


@router.get("/{supplier_id}")
def get_supplier(
    supplier_id: int,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(get_current_user),
):
    return {"supplier": schemas.SupplierOut.model_validate(_get_or_404(db, supplier_id))}


@router.post("", status_code=201)
def create_supplier(
    payload: schemas.SupplierCreate,
    db: Session = Depends(get_db),
    editor: db_models.User = Depends(require_catalog_editor),
):
    supplier = db_models.Supplier(
        name=payload.name,
        category=payload.category,
        rating=payload.rating,
        total_orders=payload.total_orders or 0,
        delivery_success_rate=payload.delivery_success_rate or 0,
        is_preferred=bool(payload.is_preferred),
        location=payload.location or "",
        contact_info=payload.contact_info or "",
        phone=payload.phone or "",
        email=payload.email or "",
    )
    db.add(supplier)
    db.commit()
    db.refresh(supplier)
    return {"id": supplier.id, "success": True}


@router.patch("/{supplier_id}")
def update_supplier(
    supplier_id: int,
    payload: schemas.SupplierUpdate,
    db: Session = Depends(get_db),
    editor: db_models.User = Depends(require_catalog_editor),
):
    supplier = _get_or_404(db, supplier_id)
    for field, value in payload.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(supplier, field, value)
    db.commit()
    return {"success": True}


@router.patch("/{supplier_id}/preferred")
def set_preferred(
    supplier_id: int,
    payload: schemas.SupplierPreferred,
    db: Session = Depends(get_db),
    editor: db_models.User = Depends(require_catalog_editor),
):
    supplier = _get_or_404(db, supplier_id)
    supplier.is_preferred = payload.is_preferred
    db.commit()
    return {"success": True}


@router.delete("/{supplier_id}")
def delete_supplier(
    supplier_id: int,
    db: Session = Depends(get_db),
    editor: db_models.User = Depends(require_catalog_editor),
):
    supplier = _get_or_404(db, supplier_id)
    db.delete(supplier)
    db.commit()
    return {"success": True}
