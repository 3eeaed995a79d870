# JUAKALI/backend/juakali/routes/profile.py

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from juakali.auth import get_current_user
from juakali.database import get_db
from juakali.models import models as db_models
from juakali.schemas import schemas

router = APIRouter(prefix="/api/profile", tags=["profile"])


@router.get("")
def get_profile(current_user: db_models.User = Depends(get_current_user)):
    """The signed-in user with their preferences (defaults when never saved)"""
    preferences = current_user.preferences
    return {
        "profile": schemas.UserOut.model_validate(current_user),
        "preferences": schemas.PreferencesOut.model_validate(preferences) if preferences else schemas.PreferencesOut(),
    }


@router.patch("")
def update_profile(
    payload: schemas.ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(get_current_user),
):
    updates = payload.model_dump(exclude_unset=True, exclude_none=True)

    new_email = updates.get("email")
    if new_email and new_email != current_user.email:
        taken = db.query(db_models.User).filter(
            db_models.User.email == new_email, db_models.User.id != current_user.id
        ).first()
        if taken:
            raise HTTPException(status_code=400, detail="Email already in use")

    for field, value in updates.items():
        setattr(current_user, field, value)
    db.commit()
    return {"success": True}


@router.patch("/preferences")
def update_preferences(
    payload: schemas.PreferencesUpdate,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(get_current_user),
):
    preferences = current_user.preferences
    if preferences is None:
        preferences = db_models.UserPreferences(user_id=current_user.id)
        db.add(preferences)

    for field, value in payload.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(preferences, field, value)
    db.commit()
    db.refresh(preferences)
    return {"success": True, "preferences": schemas.PreferencesOut.model_validate(preferences)}
