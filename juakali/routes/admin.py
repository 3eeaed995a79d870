# JUAKALI/backend/juakali/routes/admin.py : admin back office

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy import or_
from sqlalchemy.orm import Session

from juakali import constants
from juakali.auth import require_admin
from juakali.database import get_db
from juakali.models import models as db_models
from juakali.schemas import schemas
from juakali.services.audit_service import log_admin_access
from juakali.services.dashboard_service import DashboardService
from juakali.services.pagination import paginate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


def _user_filters(query, search: Optional[str], role: Optional[str], status: Optional[str]):
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            db_models.User.first_name.ilike(pattern),
            db_models.User.last_name.ilike(pattern),
            db_models.User.email.ilike(pattern),
            db_models.User.phone_number.ilike(pattern),
        ))
    if role:
        query = query.filter(db_models.User.role == role)
    if status:
        query = query.filter(db_models.User.status == status)
    return query


@router.get("/users")
def list_users(
    request: Request,
    search: Optional[str] = None,
    role: Optional[str] = None,
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(constants.DEFAULT_PAGE_SIZE, ge=1, le=constants.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    admin: db_models.User = Depends(require_admin),
):
    """Users with their credit figures, filtered and paginated"""
    log_admin_access(db, request, admin, "LIST_USERS", "admin/users")

    query = db.query(
        db_models.User,
        db_models.CreditProfile.credit_score,
        db_models.CreditProfile.credit_limit,
        db_models.CreditProfile.outstanding_balance,
    ).outerjoin(db_models.CreditProfile, db_models.CreditProfile.user_id == db_models.User.id)
    query = _user_filters(query, search, role, status).order_by(
        db_models.User.created_at.desc(), db_models.User.id.desc()
    )
    count_query = _user_filters(db.query(db_models.User), search, role, status)

    rows, pagination = paginate(query, page, limit, count_query=count_query)
    users = []
    for user, credit_score, credit_limit, outstanding_balance in rows:
        data = schemas.UserOut.model_validate(user).model_dump(mode="json")
        data.update({
            "full_name": user.full_name,
            "credit_score": credit_score,
            "credit_limit": credit_limit,
            "outstanding_balance": outstanding_balance,
        })
        users.append(data)

    return {"users": users, "pagination": pagination}


@router.post("/users", status_code=201)
def create_user(
    payload: schemas.AdminUserCreate,
    request: Request,
    db: Session = Depends(get_db),
    admin: db_models.User = Depends(require_admin),
):
    existing = db.query(db_models.User).filter(db_models.User.email == payload.email).first()
    if existing:
        log_admin_access(db, request, admin, "CREATE_USER", "admin/users", success=False,
                         failure_reason="duplicate email")
        raise HTTPException(status_code=400, detail="User already exists with this email")

    first_name, _, last_name = payload.full_name.strip().partition(" ")
    user = db_models.User(
        email=payload.email,
        first_name=first_name,
        last_name=last_name.strip(),
        phone_number=payload.phone,
        role=payload.role,
        region=payload.region,
        address=payload.address,
        status="active",
        is_active=True,
        security_level=3 if payload.role == constants.ROLE_ADMIN else 1,
    )
    user.preferences = db_models.UserPreferences()
    if payload.role != constants.ROLE_ADMIN:
        user.credit_profile = db_models.CreditProfile()
    db.add(user)
    db.commit()
    db.refresh(user)

    log_admin_access(db, request, admin, "CREATE_USER", f"admin/users/{user.id}")
    logger.info(f"✅ Admin {admin.id} created user {user.email} ({user.role})")
    return {"message": "User created successfully", "id": user.id}


@router.patch("/users/{user_id}")
def update_user(
    user_id: int,
    payload: schemas.AdminUserUpdate,
    request: Request,
    db: Session = Depends(get_db),
    admin: db_models.User = Depends(require_admin),
):
    """Activation, status and location; a role never changes"""
    user = db.query(db_models.User).filter(db_models.User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    changes = payload.model_dump(exclude_unset=True)
    # is_active and status describe the same switch; one given alone drives the other
    if "is_active" in changes and "status" not in changes:
        changes["status"] = "active" if changes["is_active"] else "inactive"
    elif "status" in changes and "is_active" not in changes:
        changes["is_active"] = changes["status"] == "active"

    for field, value in changes.items():
        setattr(user, field, value)
    db.commit()
    db.refresh(user)

    log_admin_access(db, request, admin, "UPDATE_USER", f"admin/users/{user.id}")
    return {"success": True, "data": schemas.UserOut.model_validate(user)}


@router.patch("/users/{user_id}/credit")
def update_credit(
    user_id: int,
    payload: schemas.CreditUpdate,
    request: Request,
    db: Session = Depends(get_db),
    admin: db_models.User = Depends(require_admin),
):
    """Sets the credit limit, score or risk band a borrower's loan requests are checked against"""
    user = db.query(db_models.User).filter(db_models.User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if user.role == constants.ROLE_ADMIN:
        raise HTTPException(status_code=400, detail="Admins have no credit profile")

    credit = user.credit_profile
    if credit is None:
        credit = db_models.CreditProfile()
        user.credit_profile = credit
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(credit, field, value)
    db.commit()
    db.refresh(credit)

    log_admin_access(db, request, admin, "UPDATE_CREDIT", f"admin/users/{user.id}/credit")
    logger.info(f"💳 Admin {admin.id} updated credit of user {user.id}")
    return {
        "success": True,
        "data": {
            "credit_score": credit.credit_score,
            "credit_limit": credit.credit_limit,
            "outstanding_balance": credit.outstanding_balance,
            "total_borrowed": credit.total_borrowed,
            "total_repaid": credit.total_repaid,
            "risk_category": credit.risk_category,
        },
    }


@router.get("/access-logs")
def access_logs(
    request: Request,
    db: Session = Depends(get_db),
    admin: db_models.User = Depends(require_admin),
):
    log_admin_access(db, request, admin, "VIEW_ACCESS_LOGS", "admin/access-logs")
    rows = db.query(db_models.AdminAccessLog, db_models.User).join(
        db_models.User, db_models.AdminAccessLog.user_id == db_models.User.id
    ).order_by(
        db_models.AdminAccessLog.created_at.desc(), db_models.AdminAccessLog.id.desc()
    ).limit(constants.ACCESS_LOG_LIMIT).all()

    return {
        "success": True,
        "data": [
            {
                "id": log.id,
                "user_id": log.user_id,
                "action": log.action,
                "resource": log.resource,
                "ip_address": log.ip_address,
                "user_agent": log.user_agent,
                "success": log.success,
                "failure_reason": log.failure_reason,
                "created_at": log.created_at.isoformat(),
                "email": user.email,
                "first_name": user.first_name,
                "last_name": user.last_name,
            }
            for log, user in rows
        ],
    }


@router.get("/dashboard/stats", response_model=schemas.AdminDashboardStats)
def dashboard_stats(
    request: Request,
    db: Session = Depends(get_db),
    admin: db_models.User = Depends(require_admin),
):
    log_admin_access(db, request, admin, "VIEW_STATS", "admin/dashboard/stats")
    service = DashboardService(db)
    return {"stats": service.admin_stats(), "chartData": service.chart_data()}
