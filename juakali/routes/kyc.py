# JUAKALI/backend/juakali/routes/kyc.py : KYC submissions and review

import logging
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from juakali import constants
from juakali.auth import get_current_user, require_admin
from juakali.database import get_db
from juakali.models import models as db_models
from juakali.schemas import schemas
from juakali.services.audit_service import log_admin_access

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["kyc"])


@router.post("/kyc", status_code=201)
def submit_document(
    document: schemas.KYCCreate,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(get_current_user),
):
    kyc = db_models.KYCDocument(
        user_id=current_user.id,
        document_type=document.document_type,
        document_number=document.document_number,
        file_url=document.file_url,
        verification_status=constants.KYC_PENDING,
    )
    db.add(kyc)
    db.commit()
    db.refresh(kyc)
    logger.info(f"📄 KYC document {kyc.id} submitted by user {current_user.id}")
    return {"success": True, "data": schemas.KYCOut.model_validate(kyc)}


@router.get("/kyc/mine")
def my_documents(
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(get_current_user),
):
    documents = db.query(db_models.KYCDocument).filter(
        db_models.KYCDocument.user_id == current_user.id
    ).order_by(db_models.KYCDocument.created_at.desc(), db_models.KYCDocument.id.desc()).all()
    return {"success": True, "data": [schemas.KYCOut.model_validate(d) for d in documents]}


@router.get("/admin/kyc")
def review_queue(
    request: Request,
    status: Literal["pending", "verified", "rejected"] = constants.KYC_PENDING,
    db: Session = Depends(get_db),
    admin: db_models.User = Depends(require_admin),
):
    """Latest documents in one verification status, with their owners"""
    log_admin_access(db, request, admin, "LIST_KYC", f"admin/kyc?status={status}")

    rows = db.query(db_models.KYCDocument, db_models.User).join(
        db_models.User, db_models.KYCDocument.user_id == db_models.User.id
    ).filter(
        db_models.KYCDocument.verification_status == status
    ).order_by(
        db_models.KYCDocument.created_at.desc(), db_models.KYCDocument.id.desc()
    ).limit(constants.KYC_QUEUE_LIMIT).all()

    kyc = []
    for document, user in rows:
        data = schemas.KYCOut.model_validate(document).model_dump(mode="json")
        data.update({"full_name": user.full_name, "email": user.email, "phone": user.phone_number})
        kyc.append(data)
    return {"kyc": kyc}


@router.patch("/admin/kyc/{document_id}")
def review_document(
    document_id: int,
    review: schemas.KYCReview,
    request: Request,
    db: Session = Depends(get_db),
    admin: db_models.User = Depends(require_admin),
):
    document = db.query(db_models.KYCDocument).filter(db_models.KYCDocument.id == document_id).first()
    if not document:
        raise HTTPException(status_code=404, detail="KYC document not found")

    document.verification_status = review.status
    document.review_notes = review.notes
    document.reviewed_by = admin.id
    document.reviewed_at = db_models.utcnow()

    if review.status == constants.KYC_VERIFIED:
        profile = db.query(db_models.UserProfile).filter(
            db_models.UserProfile.user_id == document.user_id
        ).first()
        if profile:
            profile.verification_status = constants.KYC_VERIFIED

    db.commit()
    db.refresh(document)
    log_admin_access(db, request, admin, "REVIEW_KYC", f"admin/kyc/{document.id}")
    logger.info(f"🛂 KYC document {document.id} marked {review.status} by admin {admin.id}")
    return {"success": True, "data": schemas.KYCOut.model_validate(document)}
