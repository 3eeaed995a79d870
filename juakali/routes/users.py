# JUAKALI/backend/juakali/routes/users.py

import logging

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from juakali import auth, constants
from juakali.database import get_db
from juakali.models import models as db_models
from juakali.schemas import schemas

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


@router.post("/register", status_code=201)
def register(user: schemas.UserRegister, db: Session = Depends(get_db)):
    """Registration with role selection; the role is fixed from here on"""
    existing = db.query(db_models.User).filter(db_models.User.email == user.email).first()
    if existing:
        raise HTTPException(status_code=400, detail="User already exists with this email")

    is_admin = user.role == constants.ROLE_ADMIN
    new_user = db_models.User(
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        phone_number=user.phone_number,
        company_name=user.company_name,
        role=user.role,
        password_hash=auth.hash_password(user.password) if user.password else None,
        # Self-registered admins wait for approval by an existing admin
        is_active=not is_admin,
        status="pending" if is_admin else "active",
        is_verified=False,
        profile_completed=False,
        security_level=3 if is_admin else 1,
    )
    new_user.profile = db_models.UserProfile(
        business_license=user.business_license,
        tax_id=user.tax_id,
        business_type=user.business_type,
        annual_revenue=user.annual_revenue,
        years_in_business=user.years_in_business,
        profile_data=user.profile_data or {},
        verification_status="manual_review" if is_admin else "pending",
    )
    new_user.security_settings = db_models.SecuritySettings(
        password_expiry_days=30 if is_admin else 90,
        require_password_change=is_admin,
        login_notification_enabled=True,
        suspicious_activity_alerts=True,
        admin_approval_required=is_admin,
    )
    new_user.preferences = db_models.UserPreferences()
    if not is_admin:
        new_user.credit_profile = db_models.CreditProfile()

    db.add(new_user)
    db.flush()
    if user.role == constants.ROLE_RETAILER:
        db.add(db_models.Retailer(
            user_id=new_user.id,
            business_name=user.company_name or new_user.full_name,
        ))

    # User and all its satellite rows land in one commit
    db.commit()
    db.refresh(new_user)
    logger.info(f"✅ User registered: {new_user.email} ({new_user.role})")

    return {
        "success": True,
        "message": "Registration successful",
        "data": {"userId": new_user.id},
    }


@router.post("/login")
def login(credentials: schemas.UserLogin, response: Response, db: Session = Depends(get_db)):
    db_user = db.query(db_models.User).filter(db_models.User.email == credentials.email).first()
    if not db_user or not auth.verify_password(credentials.password, db_user.password_hash):
        raise HTTPException(status_code=400, detail="Invalid email or password")
    if not db_user.is_active:
        raise HTTPException(status_code=403, detail="Account is not active")

    db_user.last_login_at = db_models.utcnow()
    db.commit()

    token = auth.create_access_token({"sub": str(db_user.id)})
    auth.set_session_cookie(response, token)
    return {
        "success": True,
        "access_token": token,
        "token_type": "bearer",
        "data": schemas.UserOut.model_validate(db_user),
    }


@router.get("/me")
def me(current_user: db_models.User = Depends(auth.get_current_user)):
    return {"success": True, "data": schemas.UserOut.model_validate(current_user)}
