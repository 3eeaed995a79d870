# JUAKALI/backend/juakali/routes/otp.py : one-time password delivery and verification

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from juakali.database import get_db
from juakali.schemas import schemas
from juakali.services.email_service import EmailService, get_email_service
from juakali.services.otp_service import OTPService
from juakali.services.sms_service import SMSService, get_sms_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/otp", tags=["otp"])


@router.post("/send")
async def send_otp(
    payload: schemas.OTPSend,
    db: Session = Depends(get_db),
    sms_service: SMSService = Depends(get_sms_service),
    email_service: EmailService = Depends(get_email_service),
):
    service = OTPService(db)
    otp = service.issue(payload.otp_type, payload.purpose, email=payload.email, phone_number=payload.phone_number)

    # A failed delivery is logged; the user can ask for a new code
    try:
        await service.deliver(otp, sms_service, email_service)
    except Exception as e:
        logger.exception(f"❌ OTP delivery raised for {payload.email or payload.phone_number}: {e}")
    return {"success": True, "message": "OTP sent successfully"}


@router.post("/verify")
def verify_otp(payload: schemas.OTPVerify, db: Session = Depends(get_db)):
    verified = OTPService(db).verify(
        payload.code, payload.otp_type, payload.purpose,
        email=payload.email, phone_number=payload.phone_number,
    )
    if not verified:
        raise HTTPException(status_code=400, detail="Invalid or expired OTP")
    return {"success": True, "message": "OTP verified successfully"}
