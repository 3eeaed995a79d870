# JUAKALI/backend/juakali/services/otp_service.py : one-time passwords

import logging
import secrets
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session

from juakali.config import OTP_EXPIRY_MINUTES, OTP_LENGTH, OTP_MAX_ATTEMPTS
from juakali.models import models

logger = logging.getLogger(__name__)


def generate_code(length: int = OTP_LENGTH) -> str:
    return "".join(secrets.choice("0123456789") for _ in range(length))


class OTPService:
    """Issues and consumes OTP codes; a code verifies at most once and only before it expires."""

    def __init__(self, db: Session):
        self.db = db

    def issue(self, otp_type: str, purpose: str, email: Optional[str] = None,
              phone_number: Optional[str] = None) -> models.OTPCode:
        if not email and not phone_number:
            raise ValueError("Either email or phoneNumber is required")

        otp = models.OTPCode(
            email=email,
            phone_number=phone_number,
            code=generate_code(),
            otp_type=otp_type,
            purpose=purpose,
            expires_at=models.utcnow() + timedelta(minutes=OTP_EXPIRY_MINUTES),
        )
        self.db.add(otp)
        self.db.commit()
        self.db.refresh(otp)
        logger.info(f"🔐 OTP issued for {email or phone_number} ({otp_type}/{purpose})")
        return otp

    def find_valid(self, code: str, otp_type: str, purpose: str, email: Optional[str] = None,
                   phone_number: Optional[str] = None) -> Optional[models.OTPCode]:
        """Newest unused, unexpired code; every contact given must be the one the code was issued to."""
        if not email and not phone_number:
            return None

        query = self.db.query(models.OTPCode).filter(
            models.OTPCode.code == code,
            models.OTPCode.otp_type == otp_type,
            models.OTPCode.purpose == purpose,
            models.OTPCode.used_at.is_(None),
            models.OTPCode.expires_at > models.utcnow(),
        )
        if email:
            query = query.filter(models.OTPCode.email == email)
        if phone_number:
            query = query.filter(models.OTPCode.phone_number == phone_number)
        return query.order_by(models.OTPCode.created_at.desc(), models.OTPCode.id.desc()).first()

    def verify(self, code: str, otp_type: str, purpose: str, email: Optional[str] = None,
               phone_number: Optional[str] = None) -> bool:
        """Consumes the matching code and applies its purpose; False when none matches."""
        otp = self.find_valid(code, otp_type, purpose, email, phone_number)
        if otp is None:
            logger.warning(f"⚠️ Invalid or expired OTP for {email or phone_number}")
            return False

        otp.used_at = models.utcnow()

        # Only the contact the code was delivered to is proven
        if purpose == "registration" and otp.email:
            self.db.query(models.User).filter(models.User.email == otp.email).update(
                {models.User.is_verified: True}, synchronize_session=False
            )
        elif purpose == "phone_verification" and otp.phone_number:
            self.db.query(models.User).filter(models.User.phone_number == otp.phone_number).update(
                {models.User.phone_verified: True}, synchronize_session=False
            )

        self.db.commit()
        logger.info(f"✅ OTP verified for {otp.email or otp.phone_number} ({purpose})")
        return True

    async def deliver(self, otp: models.OTPCode, sms_service, email_service) -> dict:
        """Sends the code over the channel of its type. Failures are reported, never raised."""
        if otp.otp_type == "sms" and otp.phone_number:
            result = await sms_service.send_otp(otp.phone_number, otp.code)
        elif otp.otp_type == "email" and otp.email:
            result = await email_service.send_otp_email(otp.email, otp.code)
        elif otp.otp_type == "authenticator":
            # Authenticator codes are read from the user's app
            return {"success": True, "provider": None}
        else:
            logger.error(f"❌ OTP {otp.id} has no contact for its {otp.otp_type} channel")
            return {"success": False, "error": f"No contact for {otp.otp_type} delivery", "provider": None}

        if not result.get("success"):
            logger.error(f"❌ OTP delivery failed for {otp.email or otp.phone_number}: {result.get('error')}")
        return result


# ---------- CLIENT VERIFICATION FLOW ----------

class InvalidTransition(ValueError):
    pass


class OTPFlow:
    """Verification flow of one OTP prompt.

    idle -> sent -> verifying -> success | error. From error the user may
    resend (back to sent, attempts reset) or retry while attempts remain.
    success is terminal.
    """

    IDLE = "idle"
    SENT = "sent"
    VERIFYING = "verifying"
    SUCCESS = "success"
    ERROR = "error"

    def __init__(self, max_attempts: int = OTP_MAX_ATTEMPTS):
        self.state = self.IDLE
        self.max_attempts = max_attempts
        self.attempts = 0
        self.error: Optional[str] = None

    @property
    def attempts_remaining(self) -> int:
        return max(self.max_attempts - self.attempts, 0)

    def _require(self, *states: str):
        if self.state not in states:
            raise InvalidTransition(f"Cannot go from '{self.state}' with this action")

    def send(self):
        self._require(self.IDLE, self.SENT, self.ERROR)
        self.state = self.SENT
        self.attempts = 0
        self.error = None

    def verify(self):
        self._require(self.SENT, self.ERROR)
        if self.attempts >= self.max_attempts:
            raise InvalidTransition("No attempts left, request a new code")
        self.attempts += 1
        self.state = self.VERIFYING

    def succeed(self):
        self._require(self.VERIFYING)
        self.state = self.SUCCESS
        self.error = None

    def fail(self, error: str = "Invalid or expired OTP"):
        self._require(self.VERIFYING)
        self.state = self.ERROR
        self.error = error

    def resolve(self, verified: bool):
        if verified:
            self.succeed()
        else:
            self.fail()
