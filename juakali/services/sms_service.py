# JUAKALI/backend/juakali/services/sms_service.py : Africa's Talking and Twilio SMS

import asyncio
import logging
import re
from typing import Any, Dict, List, Optional, Union

import requests
from twilio.base.exceptions import TwilioException
from twilio.rest import Client

from juakali.config import AFRICASTALKING_CONFIG, TWILIO_CONFIG, SMS_PROVIDER, OTP_EXPIRY_MINUTES
from juakali.services.http import ProviderError, request_json

logger = logging.getLogger(__name__)


def format_sms_phone(phone: str) -> str:
    """Normalizes a Kenyan number to the international +2547XXXXXXXX form."""
    cleaned = re.sub(r"[\s\-\(\)]", "", phone)
    if cleaned.startswith("0"):
        cleaned = "+254" + cleaned[1:]
    if cleaned.startswith("254"):
        cleaned = "+" + cleaned
    if not cleaned.startswith("+"):
        cleaned = "+254" + cleaned
    return cleaned


def _ksh(amount: float) -> str:
    return f"{amount:,.0f}" if float(amount).is_integer() else f"{amount:,.2f}"


class AfricasTalkingService:
    provider = "africastalking"

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or AFRICASTALKING_CONFIG
        self.username = self.config.get("username")
        self.api_key = self.config.get("api_key")
        self.sender_id = self.config.get("sender_id") or "JuaKali"
        if self.username == "sandbox":
            self.base_url = "https://api.sandbox.africastalking.com"
        else:
            self.base_url = "https://api.africastalking.com"

        if not self.enabled:
            logger.warning("⚠️ AfricasTalking credentials not configured. SMS via AfricasTalking will not work.")

    @property
    def enabled(self) -> bool:
        return bool(self.username and self.api_key)

    async def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        return await request_json(method, url, **kwargs)

    async def _send(self, recipients: List[str], message: str, sender: Optional[str] = None) -> List[Dict[str, Any]]:
        if not self.enabled:
            raise ProviderError("AfricasTalking service not initialized")
        data = await self._request(
            "POST", self.base_url + "/version1/messaging",
            data={
                "username": self.username,
                "to": ",".join(recipients),
                "message": message,
                "from": sender or self.sender_id,
            },
            headers={"apiKey": self.api_key, "Accept": "application/json"},
        )
        recipients_data = (data.get("SMSMessageData") or {}).get("Recipients")
        if not recipients_data:
            raise ProviderError("Invalid response from AfricasTalking", data=data)
        return recipients_data

    async def send_sms(self, to: str, message: str, sender: Optional[str] = None) -> Dict[str, Any]:
        formatted_phone = format_sms_phone(to)
        try:
            recipient = (await self._send([formatted_phone], message, sender))[0]
            logger.info(f"📱 SMS sent via AfricasTalking to {formatted_phone}: {recipient.get('messageId')}")
            return {
                "success": True,
                "messageId": recipient.get("messageId"),
                "status": recipient.get("status"),
                "cost": recipient.get("cost"),
                "to": formatted_phone,
                "provider": self.provider,
            }
        except ProviderError as e:
            logger.error(f"❌ AfricasTalking SMS error: {e}")
            return {"success": False, "error": str(e), "provider": self.provider}

    async def send_bulk_sms(self, recipients: List[Union[str, Dict[str, str]]], message: str,
                            sender: Optional[str] = None) -> Dict[str, Any]:
        phones = [format_sms_phone(r if isinstance(r, str) else r["phone"]) for r in recipients]
        try:
            results = [
                {
                    "phone": r.get("number"),
                    "messageId": r.get("messageId"),
                    "status": r.get("status"),
                    "cost": r.get("cost"),
                    "success": r.get("status") == "Success",
                }
                for r in await self._send(phones, message, sender)
            ]
            successful = sum(1 for r in results if r["success"])
            logger.info(f"📊 Bulk SMS completed via AfricasTalking: {successful} sent, {len(results) - successful} failed")
            return {
                "success": True,
                "total": len(results),
                "successful": successful,
                "failed": len(results) - successful,
                "results": results,
                "provider": self.provider,
            }
        except ProviderError as e:
            logger.error(f"❌ AfricasTalking bulk SMS error: {e}")
            return {"success": False, "error": str(e), "provider": self.provider}


class TwilioService:
    provider = "twilio"

    def __init__(self, config: Optional[Dict[str, Any]] = None, client: Optional[Client] = None):
        self.config = config or TWILIO_CONFIG
        self.from_number = self.config.get("phone_number")
        self.client = client
        if self.client is None and self.enabled:
            self.client = Client(self.config["account_sid"], self.config["auth_token"])
        if self.client is None:
            logger.warning("⚠️ Twilio credentials not configured. SMS via Twilio will not work.")

    @property
    def enabled(self) -> bool:
        return bool(self.config.get("account_sid") and self.config.get("auth_token") and self.from_number)

    async def send_sms(self, to: str, message: str, sender: Optional[str] = None) -> Dict[str, Any]:
        if self.client is None:
            return {"success": False, "error": "Twilio service not initialized", "provider": self.provider}
        formatted_phone = format_sms_phone(to)
        try:
            # The Twilio SDK is blocking
            sms = await asyncio.to_thread(
                self.client.messages.create, body=message, from_=sender or self.from_number, to=formatted_phone,
            )
            logger.info(f"📱 SMS sent via Twilio to {formatted_phone}: {sms.sid}")
            return {
                "success": True,
                "messageId": sms.sid,
                "status": sms.status,
                "to": formatted_phone,
                "provider": self.provider,
            }
        except (TwilioException, requests.RequestException, OSError) as e:
            logger.error(f"❌ Twilio SMS error: {e}")
            return {"success": False, "error": str(e), "provider": self.provider}

    async def send_bulk_sms(self, recipients: List[Union[str, Dict[str, str]]], message: str,
                            sender: Optional[str] = None) -> Dict[str, Any]:
        results = []
        for recipient in recipients:
            phone = recipient if isinstance(recipient, str) else recipient["phone"]
            result = await self.send_sms(phone, message, sender)
            results.append({"phone": format_sms_phone(phone), **result})
        successful = sum(1 for r in results if r["success"])
        logger.info(f"📊 Bulk SMS completed via Twilio: {successful} sent, {len(results) - successful} failed")
        return {
            "success": True,
            "total": len(results),
            "successful": successful,
            "failed": len(results) - successful,
            "results": results,
            "provider": self.provider,
        }


class SMSService:
    """Message templates on top of the configured SMS provider."""

    def __init__(self, providers: Optional[Dict[str, Any]] = None, default_provider: str = SMS_PROVIDER):
        self.providers = providers or {
            "africastalking": AfricasTalkingService(),
            "twilio": TwilioService(),
        }
        self.default_provider = default_provider

    def _provider(self, name: Optional[str] = None):
        provider = self.providers.get(name or self.default_provider)
        if provider is None:
            raise ValueError(f"Unknown SMS provider: {name or self.default_provider}")
        return provider

    async def send_sms(self, to: str, message: str, provider: Optional[str] = None) -> Dict[str, Any]:
        return await self._provider(provider).send_sms(to, message)

    async def send_bulk_sms(self, recipients, message: str, provider: Optional[str] = None) -> Dict[str, Any]:
        return await self._provider(provider).send_bulk_sms(recipients, message)

    async def send_otp(self, phone: str, code: str, template: Optional[str] = None) -> Dict[str, Any]:
        message = template or (
            f"Your JuaKali Lend verification code is: {code}. Valid for {OTP_EXPIRY_MINUTES} minutes. "
            "Do not share this code with anyone."
        )
        return await self.send_sms(phone, message)

    async def send_payment_notification(self, phone: str, amount: float, reference: str,
                                        status: str = "completed") -> Dict[str, Any]:
        if status == "completed":
            message = (f"Payment of KSh {_ksh(amount)} has been received successfully. Reference: {reference}. "
                       "Thank you for using JuaKali Lend!")
        elif status == "failed":
            message = (f"Payment of KSh {_ksh(amount)} failed. Reference: {reference}. "
                       "Please try again or contact support.")
        else:
            message = (f"Payment of KSh {_ksh(amount)} is being processed. Reference: {reference}. "
                       "You will receive confirmation shortly.")
        return await self.send_sms(phone, message)

    async def send_loan_notification(self, phone: str, kind: str, data: Dict[str, Any]) -> Dict[str, Any]:
        if kind == "approved":
            message = (f"Congratulations! Your loan of KSh {_ksh(data['amount'])} has been approved. "
                       "Funds will be disbursed within 24 hours.")
        elif kind == "due_reminder":
            message = (f"Payment reminder: Your daily payment of KSh {_ksh(data['amount'])} is due today. "
                       "Please pay to avoid late fees.")
        elif kind == "overdue":
            message = (f"URGENT: Your payment of KSh {_ksh(data['amount'])} is {data['days']} days overdue. "
                       "Please pay immediately to avoid penalties.")
        elif kind == "completed":
            message = ("Congratulations! You have successfully completed your loan. Your credit score has been "
                       "updated. Thank you for using JuaKali Lend!")
        else:
            message = f"Loan update: {data.get('message', '')}"
        return await self.send_sms(phone, message)


sms_service = SMSService()


def get_sms_service() -> SMSService:
    return sms_service
