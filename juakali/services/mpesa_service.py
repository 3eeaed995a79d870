# JUAKALI/backend/juakali/services/mpesa_service.py : M-Pesa Daraja adapter

import asyncio
import base64
import logging
import random
import re
import time
from datetime import datetime
from typing import Any, Callable, Dict, Optional

import aiohttp

from juakali.config import MPESA_CONFIG, SIMULATION_DELAY_SECONDS
from juakali.services.http import ProviderError, request_json
from juakali.services.token_cache import TokenCache

logger = logging.getLogger(__name__)

PROVIDER = "mpesa"


def format_mpesa_phone(phone: str) -> str:
    """Normalizes a Kenyan number to the 2547XXXXXXXX form Daraja expects."""
    cleaned = re.sub(r"[\s\-\(\)]", "", phone)
    if cleaned.startswith("0"):
        cleaned = "254" + cleaned[1:]
    if cleaned.startswith("+"):
        cleaned = cleaned[1:]
    if not cleaned.startswith("254"):
        cleaned = "254" + cleaned
    return cleaned


class MpesaService:
    """STK Push, B2C, C2B registration and status queries over Daraja."""

    endpoints = {
        "token": "/oauth/v1/generate?grant_type=client_credentials",
        "stk_push": "/mpesa/stkpush/v1/processrequest",
        "query": "/mpesa/stkpushquery/v1/query",
        "c2b_register": "/mpesa/c2b/v1/registerurl",
        "b2c": "/mpesa/b2c/v1/paymentrequest",
        "balance": "/mpesa/accountbalance/v1/query",
        "transaction_status": "/mpesa/transactionstatus/v1/query",
    }

    def __init__(self, config: Optional[Dict[str, Any]] = None, clock: Callable[[], float] = time.monotonic,
                 rng: Callable[[], float] = random.random, simulation_delay: float = SIMULATION_DELAY_SECONDS):
        self.config = config or MPESA_CONFIG
        self.base_url = self.config["base_url"]
        self.shortcode = self.config["shortcode"]
        self.passkey = self.config["passkey"]
        self.callback_url = self.config["callback_url"]
        self.token_cache = TokenCache("M-Pesa", clock=clock)
        self.rng = rng
        self.simulation_delay = simulation_delay

        if not self.config.get("consumer_key") or not self.config.get("consumer_secret"):
            logger.warning("⚠️ M-Pesa credentials not configured. M-Pesa payments will not work.")

    async def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        return await request_json(method, url, **kwargs)

    async def _fetch_token(self):
        auth = aiohttp.BasicAuth(self.config["consumer_key"], self.config["consumer_secret"])
        data = await self._request("GET", self.base_url + self.endpoints["token"], auth=auth)
        return data["access_token"], int(data["expires_in"])

    async def get_access_token(self) -> str:
        try:
            return await self.token_cache.get(self._fetch_token)
        except (ProviderError, KeyError, ValueError) as e:
            logger.error(f"❌ Failed to get M-Pesa access token: {e}")
            raise ProviderError("Failed to authenticate with M-Pesa API") from e

    @staticmethod
    def get_timestamp(now: Optional[datetime] = None) -> str:
        return (now or datetime.now()).strftime("%Y%m%d%H%M%S")

    def generate_password(self, timestamp: Optional[str] = None):
        timestamp = timestamp or self.get_timestamp()
        raw = f"{self.shortcode}{self.passkey}{timestamp}".encode()
        return base64.b64encode(raw).decode(), timestamp

    async def _post(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        token = await self.get_access_token()
        headers = {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}
        return await self._request("POST", self.base_url + self.endpoints[endpoint], json=payload, headers=headers)

    @staticmethod
    def _failure(error: Exception) -> Dict[str, Any]:
        result = {"success": False, "error": str(error), "provider": PROVIDER}
        if isinstance(error, ProviderError) and error.error_code:
            result["errorCode"] = error.error_code
        return result

    async def stk_push(self, phone: str, amount: float, reference: Optional[str] = None,
                       description: str = "JuaKali Lend Payment") -> Dict[str, Any]:
        try:
            password, timestamp = self.generate_password()
            formatted_phone = format_mpesa_phone(phone)
            payload = {
                "BusinessShortCode": self.shortcode,
                "Password": password,
                "Timestamp": timestamp,
                "TransactionType": "CustomerPayBillOnline",
                "Amount": int(amount),  # Whole shillings only
                "PartyA": formatted_phone,
                "PartyB": self.shortcode,
                "PhoneNumber": formatted_phone,
                "CallBackURL": self.callback_url,
                "AccountReference": reference or "JuaKali",
                "TransactionDesc": description,
            }
            data = await self._post("stk_push", payload)
            logger.info(f"💳 STK Push initiated for {formatted_phone}: {data.get('CheckoutRequestID')}")
            return {
                "success": True,
                "checkoutRequestId": data.get("CheckoutRequestID"),
                "merchantRequestId": data.get("MerchantRequestID"),
                "responseCode": data.get("ResponseCode"),
                "responseDescription": data.get("ResponseDescription"),
                "customerMessage": data.get("CustomerMessage"),
                "amount": amount,
                "phone": formatted_phone,
                "provider": PROVIDER,
            }
        except ProviderError as e:
            logger.error(f"❌ M-Pesa STK Push error: {e}")
            return self._failure(e)

    async def query_transaction(self, checkout_request_id: str) -> Dict[str, Any]:
        try:
            password, timestamp = self.generate_password()
            data = await self._post("query", {
                "BusinessShortCode": self.shortcode,
                "Password": password,
                "Timestamp": timestamp,
                "CheckoutRequestID": checkout_request_id,
            })
            logger.info(f"🔍 M-Pesa transaction query: {checkout_request_id}")
            return {
                "success": True,
                "resultCode": data.get("ResultCode"),
                "resultDesc": data.get("ResultDesc"),
                "merchantRequestId": data.get("MerchantRequestID"),
                "checkoutRequestId": data.get("CheckoutRequestID"),
                "provider": PROVIDER,
            }
        except ProviderError as e:
            logger.error(f"❌ M-Pesa query error: {e}")
            return self._failure(e)

    async def register_c2b_urls(self, validation_url: str, confirmation_url: str) -> Dict[str, Any]:
        try:
            data = await self._post("c2b_register", {
                "ShortCode": self.shortcode,
                "ResponseType": "Completed",
                "ConfirmationURL": confirmation_url,
                "ValidationURL": validation_url,
            })
            logger.info("🔗 M-Pesa C2B URLs registered")
            return {
                "success": True,
                "responseCode": data.get("ResponseCode"),
                "responseDescription": data.get("ResponseDescription"),
                "provider": PROVIDER,
            }
        except ProviderError as e:
            logger.error(f"❌ M-Pesa C2B registration error: {e}")
            return self._failure(e)

    def _initiator_payload(self, command_id: str, remarks: str) -> Dict[str, Any]:
        return {
            "Initiator": self.config.get("initiator_name"),
            "SecurityCredential": self.config.get("security_credential"),
            "CommandID": command_id,
            "PartyA": self.shortcode,
            "Remarks": remarks,
            "QueueTimeOutURL": self.callback_url + "/timeout",
            "ResultURL": self.callback_url + "/result",
        }

    @staticmethod
    def _conversation(data: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "success": True,
            "conversationId": data.get("ConversationID"),
            "originatorConversationId": data.get("OriginatorConversationID"),
            "responseCode": data.get("ResponseCode"),
            "responseDescription": data.get("ResponseDescription"),
            "provider": PROVIDER,
        }

    async def b2c_payment(self, phone: str, amount: float, remarks: str = "JuaKali Lend Payout",
                          occasion: str = "Payment") -> Dict[str, Any]:
        try:
            formatted_phone = format_mpesa_phone(phone)
            payload = self._initiator_payload("BusinessPayment", remarks)
            # B2C names the initiator field differently
            payload["InitiatorName"] = payload.pop("Initiator")
            payload.update({"Amount": int(amount), "PartyB": formatted_phone, "Occasion": occasion})
            data = await self._post("b2c", payload)
            logger.info(f"💸 B2C payment initiated to {formatted_phone}: {data.get('ConversationID')}")
            return self._conversation(data)
        except ProviderError as e:
            logger.error(f"❌ M-Pesa B2C error: {e}")
            return self._failure(e)

    async def check_account_balance(self) -> Dict[str, Any]:
        try:
            payload = self._initiator_payload("AccountBalance", "Account balance query")
            payload["IdentifierType"] = "4"
            data = await self._post("balance", payload)
            logger.info("💰 M-Pesa account balance query initiated")
            return self._conversation(data)
        except ProviderError as e:
            logger.error(f"❌ M-Pesa balance query error: {e}")
            return self._failure(e)

    async def check_transaction_status(self, transaction_id: str) -> Dict[str, Any]:
        try:
            payload = self._initiator_payload("TransactionStatusQuery", "Transaction status query")
            payload.update({"TransactionID": transaction_id, "IdentifierType": "4", "Occasion": "Status Check"})
            data = await self._post("transaction_status", payload)
            logger.info(f"🔍 M-Pesa transaction status query: {transaction_id}")
            return self._conversation(data)
        except ProviderError as e:
            logger.error(f"❌ M-Pesa status query error: {e}")
            return self._failure(e)

    def process_callback(self, callback_data: Dict[str, Any]) -> Dict[str, Any]:
        """Parses the STK result webhook Daraja posts to the callback URL."""
        body = callback_data.get("Body") if isinstance(callback_data, dict) else None
        callback = body.get("stkCallback") if isinstance(body, dict) else None
        if not isinstance(callback, dict):
            return {"success": False, "error": "Invalid callback format", "provider": PROVIDER}

        result = {
            "merchantRequestId": callback.get("MerchantRequestID"),
            "checkoutRequestId": callback.get("CheckoutRequestID"),
            "resultCode": callback.get("ResultCode"),
            "resultDesc": callback.get("ResultDesc"),
            "success": callback.get("ResultCode") == 0,
            "provider": PROVIDER,
        }

        if result["success"] and callback.get("CallbackMetadata") is not None:
            metadata = callback["CallbackMetadata"]
            entries = metadata.get("Item") if isinstance(metadata, dict) else None
            if not isinstance(entries, list) or not all(isinstance(item, dict) for item in entries):
                logger.warning(f"⚠️ M-Pesa callback with malformed metadata: {result['checkoutRequestId']}")
                return {"success": False, "error": "Invalid callback format", "provider": PROVIDER}
            items = {item.get("Name"): item.get("Value") for item in entries}
            result["amount"] = items.get("Amount")
            result["mpesaReceiptNumber"] = items.get("MpesaReceiptNumber")
            result["transactionDate"] = items.get("TransactionDate")
            result["phoneNumber"] = items.get("PhoneNumber")

        logger.info(f"📨 M-Pesa callback processed: {result['checkoutRequestId']} -> {result['resultCode']}")
        return result

    async def simulate_stk_push(self, phone: str, amount: float, reference: Optional[str] = None) -> Dict[str, Any]:
        """Local stand-in for stk_push: succeeds 80% of the time."""
        logger.info(f"🧪 Simulating STK Push for {phone}: KSh {amount}")
        if self.simulation_delay:
            await asyncio.sleep(self.simulation_delay)

        stamp = int(time.time() * 1000)
        if self.rng() > 0.2:
            return {
                "success": True,
                "checkoutRequestId": f"ws_co_{stamp}",
                "merchantRequestId": f"mr_{stamp}",
                "responseCode": "0",
                "responseDescription": "Success. Request accepted for processing",
                "customerMessage": "Success. Request accepted for processing",
                "amount": amount,
                "phone": format_mpesa_phone(phone),
                "provider": "mpesa_simulation",
            }
        return {
            "success": False,
            "error": "The service request failed",
            "errorCode": "1",
            "provider": "mpesa_simulation",
        }


mpesa_service = MpesaService()


def get_mpesa_service() -> MpesaService:
    return mpesa_service
