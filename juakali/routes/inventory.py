# JUAKALI/backend/juakali/routes/inventory.py : supplier products and stock movements

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from juakali import constants
from juakali.auth import require_roles
from juakali.database import get_db
from juakali.models import models as db_models
from juakali.schemas import schemas
from juakali.services.pagination import paginate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/inventory", tags=["inventory"])

require_stock_manager = require_roles(constants.ROLE_SUPPLIER, constants.ROLE_ADMIN)


def _own_products(db: Session, user: db_models.User):
    query = db.query(db_models.Product)
    if user.role != constants.ROLE_ADMIN:
        query = query.filter(db_models.Product.supplier_id == user.id)
    return query


@router.get("/products")
def list_products(
    category: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(require_stock_manager),
):
    query = _own_products(db, current_user).filter(db_models.Product.is_active.is_(True))
    if category:
        query = query.filter(db_models.Product.category == category)
    products = query.order_by(db_models.Product.name).all()
    return {"products": [schemas.ProductOut.model_validate(p) for p in products]}


@router.post("/products", response_model=schemas.ProductOut, status_code=201)
def create_product(
    product: schemas.ProductCreate,
    db: Session = Depends(get_db),
    supplier: db_models.User = Depends(require_roles(constants.ROLE_SUPPLIER)),
):
    new_product = db_models.Product(supplier_id=supplier.id, **product.model_dump())
    db.add(new_product)
    db.commit()
    db.refresh(new_product)
    return new_product


@router.post("/movement")
def record_movement(
    movement: schemas.InventoryMovementCreate,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(require_stock_manager),
):
    """Applies a stock change; stock never goes below zero"""
    product = _own_products(db, current_user).filter(db_models.Product.id == movement.product_id).first()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    old_stock = product.stock_quantity or 0
    new_stock = old_stock + movement.quantity_change
    if new_stock < 0:
        raise HTTPException(status_code=400, detail="Insufficient stock")

    db.add(db_models.InventoryMovement(
        supplier_id=product.supplier_id,
        product_id=product.id,
        movement_type=movement.movement_type,
        reference_type=movement.reference_type,
        reference_id=movement.reference_id,
        quantity_change=movement.quantity_change,
        quantity_before=old_stock,
        quantity_after=new_stock,
        unit_cost=movement.unit_cost,
        total_value=movement.unit_cost * abs(movement.quantity_change) if movement.unit_cost else None,
        reason=movement.reason,
        notes=movement.notes,
    ))
    product.stock_quantity = new_stock
    db.commit()

    logger.info(f"📦 Product {product.id} stock {old_stock} -> {new_stock} ({movement.movement_type})")
    return {"message": "Inventory updated successfully", "old_stock": old_stock, "new_stock": new_stock}


@router.get("/movements")
def list_movements(
    product_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(constants.DEFAULT_PAGE_SIZE, ge=1, le=constants.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(require_stock_manager),
):
    query = db.query(db_models.InventoryMovement)
    if current_user.role != constants.ROLE_ADMIN:
        query = query.filter(db_models.InventoryMovement.supplier_id == current_user.id)
    if product_id is not None:
        query = query.filter(db_models.InventoryMovement.product_id == product_id)
    query = query.order_by(db_models.InventoryMovement.created_at.desc(), db_models.InventoryMovement.id.desc())

    items, pagination = paginate(query, page, limit)
    return {
        "movements": [schemas.InventoryMovementOut.model_validate(m) for m in items],
        "pagination": pagination,
    }
