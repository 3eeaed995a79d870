# JUAKALI/backend/juakali/config.py

import os
from dotenv import load_dotenv
from pathlib import Path

# Absolute path of the folder holding this file (juakali/)
BASE_DIR = Path(__file__).parent.absolute()
env_path = BASE_DIR / '.env'

# Load variables from the .env file when there is one
if env_path.exists():
    load_dotenv(dotenv_path=env_path)
    print(f"✅ .env loaded from {env_path}")

# ============================================
# ENVIRONMENT
# ============================================
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
DEBUG = os.getenv("DEBUG", "false").lower() == "true"

# ============================================
# DATABASE
# ============================================
DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    if ENVIRONMENT == "production":
        raise ValueError("DATABASE_URL must be set in production")
    DATABASE_URL = "sqlite:///./juakali.db"

# ============================================
# JWT / SESSIONS
# ============================================
SECRET_KEY = os.getenv("SECRET_KEY", "change_this_secret_key_in_production")
if SECRET_KEY == "change_this_secret_key_in_production" and ENVIRONMENT == "production":
    raise ValueError("SECRET_KEY must be changed in production")

ALGORITHM = os.getenv("ALGORITHM", "HS256")
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "juakali_session_token")
SESSION_MAX_AGE_SECONDS = int(os.getenv("SESSION_MAX_AGE_SECONDS", str(60 * 24 * 60 * 60)))  # 60 days
SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "true" if ENVIRONMENT == "production" else "false").lower() == "true"

# Bank account numbers are encrypted at rest with this secret
ENCRYPTION_KEY = os.getenv("ENCRYPTION_KEY", "")
if not ENCRYPTION_KEY and ENVIRONMENT == "production":
    raise ValueError("ENCRYPTION_KEY must be set in production")

# Users service handling the Google OAuth handshake
USERS_SERVICE_CONFIG = {
    "api_url": os.getenv("USERS_SERVICE_API_URL", ""),
    "api_key": os.getenv("USERS_SERVICE_API_KEY", ""),
}

# ============================================
# OTP
# ============================================
OTP_EXPIRY_MINUTES = int(os.getenv("OTP_EXPIRY_MINUTES", "10"))
OTP_LENGTH = 6
OTP_MAX_ATTEMPTS = int(os.getenv("OTP_MAX_ATTEMPTS", "3"))

# ============================================
# SMTP (EMAILS)
# ============================================
SMTP_CONFIG = {
    "host": os.getenv("SMTP_HOST", "smtp.gmail.com"),
    "port": int(os.getenv("SMTP_PORT", "587")),
    "secure": os.getenv("SMTP_SECURE", "false").lower() == "true",
    "user": os.getenv("SMTP_USER", ""),
    "password": os.getenv("SMTP_PASSWORD", ""),
    "from": os.getenv("EMAIL_FROM", os.getenv("SMTP_USER", "noreply@juakalilend.co.ke")),
    "enabled": bool(os.getenv("SMTP_USER") and os.getenv("SMTP_PASSWORD")),
}

# ============================================
# SMS: AFRICA'S TALKING AND TWILIO
# ============================================
AFRICASTALKING_CONFIG = {
    "username": os.getenv("AFRICASTALKING_USERNAME", ""),
    "api_key": os.getenv("AFRICASTALKING_API_KEY", ""),
    "sender_id": os.getenv("AFRICASTALKING_SENDER_ID", "JuaKali"),
    "enabled": bool(os.getenv("AFRICASTALKING_USERNAME") and os.getenv("AFRICASTALKING_API_KEY")),
}

TWILIO_CONFIG = {
    "account_sid": os.getenv("TWILIO_ACCOUNT_SID", ""),
    "auth_token": os.getenv("TWILIO_AUTH_TOKEN", ""),
    "phone_number": os.getenv("TWILIO_PHONE_NUMBER", ""),
    "enabled": all([
        os.getenv("TWILIO_ACCOUNT_SID"),
        os.getenv("TWILIO_AUTH_TOKEN"),
        os.getenv("TWILIO_PHONE_NUMBER")
    ])
}

SMS_PROVIDER = os.getenv("SMS_PROVIDER", "africastalking")

# ============================================
# M-PESA (DARAJA)
# ============================================
MPESA_CONFIG = {
    "consumer_key": os.getenv("MPESA_CONSUMER_KEY", ""),
    "consumer_secret": os.getenv("MPESA_CONSUMER_SECRET", ""),
    "shortcode": os.getenv("MPESA_SHORTCODE", "174379"),
    "passkey": os.getenv("MPESA_PASSKEY", ""),
    "callback_url": os.getenv("MPESA_CALLBACK_URL", "http://localhost:8000/api/payments/mpesa/callback"),
    "initiator_name": os.getenv("MPESA_INITIATOR_NAME", ""),
    "security_credential": os.getenv("MPESA_SECURITY_CREDENTIAL", ""),
    "base_url": "https://api.safaricom.co.ke" if ENVIRONMENT == "production" else "https://sandbox.safaricom.co.ke",
    "enabled": bool(os.getenv("MPESA_CONSUMER_KEY") and os.getenv("MPESA_CONSUMER_SECRET")),
}

# ============================================
# BANKS
# ============================================
BANK_CONFIG = {
    "absa": {
        "api_key": os.getenv("ABSA_API_KEY", ""),
        "api_secret": os.getenv("ABSA_API_SECRET", ""),
        "source_account": os.getenv("ABSA_FROM_ACCOUNT", ""),
        "base_url": "https://api.absa.co.ke" if ENVIRONMENT == "production" else "https://sandbox-api.absa.co.ke",
    },
    "equity": {
        "api_key": os.getenv("EQUITY_API_KEY", ""),
        "api_secret": os.getenv("EQUITY_API_SECRET", ""),
        "source_account": os.getenv("EQUITY_SOURCE_ACCOUNT", ""),
        "base_url": "https://api.equitybank.co.ke" if ENVIRONMENT == "production" else "https://sandbox-api.equitybank.co.ke",
    },
    "kcb": {
        "api_key": os.getenv("KCB_API_KEY", ""),
        "api_secret": os.getenv("KCB_API_SECRET", ""),
        "source_account": os.getenv("KCB_DEBIT_ACCOUNT", ""),
        "base_url": "https://api.kcbgroup.com" if ENVIRONMENT == "production" else "https://sandbox-api.kcbgroup.com",
    },
}

# Random success/failure instead of calling the providers (local testing)
PAYMENTS_SIMULATION = os.getenv("PAYMENTS_SIMULATION", "true" if ENVIRONMENT != "production" else "false").lower() == "true"
SIMULATION_DELAY_SECONDS = float(os.getenv("SIMULATION_DELAY_SECONDS", "2"))

# Seconds shaved off provider token lifetimes before they are considered stale
TOKEN_EXPIRY_BUFFER_SECONDS = 60

# ============================================
# CORS (Frontend)
# ============================================
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

# ============================================
# LOGGING
# ============================================
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def is_development():
    return ENVIRONMENT == "development"
