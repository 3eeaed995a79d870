# JUAKALI/backend/juakali/services/email_service.py : transactional emails over SMTP

import asyncio
import logging
import re
import smtplib
from datetime import date
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid
from typing import Any, Dict, List, Optional

from juakali.config import SMTP_CONFIG, FRONTEND_URL, OTP_EXPIRY_MINUTES

logger = logging.getLogger(__name__)

PROVIDER = "smtp"
BULK_BATCH_SIZE = 10

_LAYOUT = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="font-family: Arial, sans-serif; background-color: #f5f5f5; padding: 20px;">
  <div style="max-width: 600px; margin: 0 auto; background-color: white; padding: 40px; border-radius: 10px;">
    <div style="text-align: center; font-size: 28px; font-weight: bold; color: #2563eb;">JuaKali Lend</div>
    {body}
    <p style="text-align: center; margin-top: 30px; font-size: 14px; color: #6b7280;">
      &copy; {year} JuaKali Lend. All rights reserved.
    </p>
  </div>
</body>
</html>"""


def _ksh(amount: float) -> str:
    return f"{amount:,.0f}" if float(amount).is_integer() else f"{amount:,.2f}"


def replace_placeholders(template: str, data: Dict[str, Any]) -> str:
    """Fills every {{key}} of ``template`` from ``data``; missing values become empty."""
    def lookup(match):
        value = data.get(match.group(1))
        return "" if value is None else str(value)
    return re.sub(r"\{\{(\w+)\}\}", lookup, template)


def render(body: str) -> str:
    return _LAYOUT.format(body=body, year=date.today().year)


class EmailService:
    def __init__(self, config: Optional[Dict[str, Any]] = None, frontend_url: str = FRONTEND_URL):
        self.config = config or SMTP_CONFIG
        self.from_email = self.config.get("from") or self.config.get("user")
        self.frontend_url = frontend_url.rstrip("/")
        if not self.enabled:
            logger.warning("⚠️ SMTP credentials not configured. Email service will not work.")

    @property
    def enabled(self) -> bool:
        return bool(self.config.get("user") and self.config.get("password"))

    def _deliver(self, msg: MIMEMultipart):
        cfg = self.config
        if cfg.get("secure"):
            server = smtplib.SMTP_SSL(cfg["host"], cfg["port"])
        else:
            server = smtplib.SMTP(cfg["host"], cfg["port"])
        with server:
            if not cfg.get("secure"):
                server.starttls()
            server.login(cfg["user"], cfg["password"])
            server.send_message(msg)

    async def send_email(self, to: str, subject: str, html: Optional[str] = None,
                         text: Optional[str] = None) -> Dict[str, Any]:
        if not self.enabled:
            return {"success": False, "error": "Email service not configured", "to": to, "provider": PROVIDER}

        msg = MIMEMultipart("alternative")
        msg["From"] = f'"JuaKali Lend" <{self.from_email}>'
        msg["To"] = to
        msg["Subject"] = subject
        msg["Message-ID"] = make_msgid(domain="juakalilend.co.ke")
        if text:
            msg.attach(MIMEText(text, "plain"))
        if html:
            msg.attach(MIMEText(html, "html"))

        try:
            # smtplib is blocking
            await asyncio.to_thread(self._deliver, msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"❌ Email sending error to {to}: {e}")
            return {"success": False, "error": str(e), "to": to, "provider": PROVIDER}

        logger.info(f"📧 Email sent to {to}: {msg['Message-ID']}")
        return {"success": True, "messageId": msg["Message-ID"], "to": to, "subject": subject, "provider": PROVIDER}

    async def send_welcome_email(self, email: str, name: str) -> Dict[str, Any]:
        html = render(f"""
    <h1>Welcome to Smart Retail Credit!</h1>
    <p>Dear {name},</p>
    <p>Welcome to JuaKali Lend! Shop with instant credit, pay with M-Pesa and bank transfers,
    and track your credit score as your business grows.</p>
    <p><a href="{self.frontend_url}/products">Start Shopping Now</a></p>
    <p>Best regards,<br>The JuaKali Lend Team</p>""")
        text = f"Welcome to JuaKali Lend, {name}! Start shopping with 5% credit discount."
        return await self.send_email(email, "Welcome to JuaKali Lend!", html, text)

    async def send_payment_confirmation(self, email: str, details: Dict[str, Any]) -> Dict[str, Any]:
        amount = _ksh(details["amount"])
        html = render(f"""
    <h2>Payment Confirmed!</h2>
    <p><strong>Amount:</strong> KSh {amount}</p>
    <p><strong>Reference:</strong> {details.get('reference', '')}</p>
    <p><strong>Payment Method:</strong> {details.get('method', '')}</p>
    <p><strong>Date:</strong> {date.today().isoformat()}</p>""")
        text = f"Payment of KSh {amount} has been received successfully. Reference: {details.get('reference', '')}"
        return await self.send_email(email, "Payment Confirmation - JuaKali Lend", html, text)

    async def send_loan_approval(self, email: str, details: Dict[str, Any]) -> Dict[str, Any]:
        amount = _ksh(details["amount"])
        html = render(f"""
    <h1>Loan Approved!</h1>
    <p><strong>Principal Amount:</strong> KSh {amount}</p>
    <p><strong>Interest Rate:</strong> {details.get('interestRate', 0) * 100:.2f}% daily</p>
    <p><strong>Loan Term:</strong> {details.get('termDays', '')} days</p>
    <p><strong>Daily Payment:</strong> KSh {_ksh(details.get('dailyPayment', 0))}</p>
    <p><strong>Total Repayment:</strong> KSh {_ksh(details.get('totalAmount', 0))}</p>
    <p><a href="{self.frontend_url}/loans">View Loan Details</a></p>""")
        text = f"Congratulations! Your loan of KSh {amount} has been approved."
        return await self.send_email(email, "Loan Approved - JuaKali Lend", html, text)

    async def send_payment_reminder(self, email: str, details: Dict[str, Any]) -> Dict[str, Any]:
        amount = _ksh(details["amount"])
        html = render(f"""
    <h2>Payment Reminder</h2>
    <p>Your daily payment of <strong>KSh {amount}</strong> is due {details.get('dueDate', 'today')}.</p>
    <p><a href="{self.frontend_url}/payments">Make Payment Now</a></p>""")
        text = f"Payment reminder: Your daily payment of KSh {amount} is due today."
        return await self.send_email(email, "Payment Reminder - JuaKali Lend", html, text)

    async def send_password_reset(self, email: str, reset_token: str, name: str) -> Dict[str, Any]:
        reset_url = f"{self.frontend_url}/reset-password?token={reset_token}"
        html = render(f"""
    <h2>Reset Your Password</h2>
    <p>Dear {name},</p>
    <p>We received a request to reset your password. This link expires in 1 hour.</p>
    <p><a href="{reset_url}">Reset Password</a></p>""")
        text = f"Click this link to reset your password: {reset_url}"
        return await self.send_email(email, "Reset Your Password - JuaKali Lend", html, text)

    async def send_otp_email(self, email: str, code: str) -> Dict[str, Any]:
        html = render(f"""
    <h2>Your verification code</h2>
    <p style="font-size: 32px; letter-spacing: 8px; font-weight: bold;">{code}</p>
    <p>This code is valid for {OTP_EXPIRY_MINUTES} minutes. Do not share it with anyone.</p>""")
        text = f"Your JuaKali Lend verification code is: {code}. Valid for {OTP_EXPIRY_MINUTES} minutes."
        return await self.send_email(email, "Your JuaKali Lend verification code", html, text)

    async def send_bulk_email(self, recipients: List[Dict[str, Any]], subject: str, html_template: str,
                              text_template: str = "", batch_delay: float = 1.0) -> Dict[str, Any]:
        """Personalized sends in batches of ten; each recipient dict fills the {{placeholders}}."""
        results = []
        for start in range(0, len(recipients), BULK_BATCH_SIZE):
            batch = recipients[start:start + BULK_BATCH_SIZE]
            sends = [
                self.send_email(
                    r["email"],
                    replace_placeholders(subject, r),
                    replace_placeholders(html_template, r),
                    replace_placeholders(text_template, r),
                )
                for r in batch
            ]
            for recipient, result in zip(batch, await asyncio.gather(*sends)):
                results.append({"recipient": recipient["email"], "result": result})
            if batch_delay and start + BULK_BATCH_SIZE < len(recipients):
                await asyncio.sleep(batch_delay)

        successful = sum(1 for r in results if r["result"]["success"])
        logger.info(f"📊 Bulk email completed: {successful} sent, {len(results) - successful} failed")
        return {
            "success": True,
            "total": len(results),
            "successful": successful,
            "failed": len(results) - successful,
            "results": results,
        }


email_service = EmailService()


def get_email_service() -> EmailService:
    return email_service
