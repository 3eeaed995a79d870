# JUAKALI/backend/juakali/routes/notifications.py : lender notifications

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from juakali import constants
from juakali.auth import get_current_user, require_admin
from juakali.database import get_db
from juakali.models import models as db_models
from juakali.schemas import schemas

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


def _owned(db: Session, notification_id: int, user: db_models.User) -> db_models.Notification:
    notification = db.query(db_models.Notification).filter(db_models.Notification.id == notification_id).first()
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    if notification.lender_id != user.id:
        raise HTTPException(status_code=403, detail="Not allowed to modify this notification")
    return notification


@router.get("")
def list_notifications(
    unread_only: bool = False,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(get_current_user),
):
    query = db.query(db_models.Notification).filter(db_models.Notification.lender_id == current_user.id)
    if unread_only:
        query = query.filter(db_models.Notification.is_read.is_(False))
    notifications = query.order_by(
        db_models.Notification.created_at.desc(), db_models.Notification.id.desc()
    ).all()
    return {"notifications": [schemas.NotificationOut.model_validate(n) for n in notifications]}


@router.post("", status_code=201)
def create_notification(
    payload: schemas.NotificationCreate,
    db: Session = Depends(get_db),
    admin: db_models.User = Depends(require_admin),
):
    lender = db.query(db_models.User).filter(db_models.User.id == payload.lender_id).first()
    if not lender or lender.role != constants.ROLE_LENDER:
        raise HTTPException(status_code=404, detail="Lender not found")

    notification = db_models.Notification(**payload.model_dump())
    db.add(notification)
    db.commit()
    db.refresh(notification)
    logger.info(f"🔔 Notification {notification.id} created for lender {lender.id}")
    return {"id": notification.id, "success": True}


@router.patch("/read-all")
def mark_all_read(
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(get_current_user),
):
    updated = db.query(db_models.Notification).filter(
        db_models.Notification.lender_id == current_user.id,
        db_models.Notification.is_read.is_(False),
    ).update({db_models.Notification.is_read: True}, synchronize_session=False)
    db.commit()
    return {"success": True, "updated": updated}


@router.patch("/{notification_id}/read")
def mark_read(
    notification_id: int,
    payload: schemas.NotificationRead,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(get_current_user),
):
    notification = _owned(db, notification_id, current_user)
    notification.is_read = payload.is_read
    db.commit()
    return {"success": True}


@router.delete("/{notification_id}")
def delete_notification(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(get_current_user),
):
    notification = _owned(db, notification_id, current_user)
    db.delete(notification)
    db.commit()
    return {"success": True}
