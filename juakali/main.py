# JUAKALI/backend/juakali/main.py

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from juakali.routes import (
    admin, cashflow, dashboards, inventory, kyc, loans, notifications,
    otp, payments, profile, sessions, suppliers, transactions, users,
)
from juakali.database import check_connection, create_tables
from juakali.config import ALLOWED_ORIGINS, ENVIRONMENT, LOG_LEVEL, PAYMENTS_SIMULATION, is_development
import logging
import datetime
import sys
import fastapi
import sqlalchemy

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Starting the JuaKali Lend API...")

    if check_connection():
        logger.info("✅ Database connection established")
        # Migrations own the schema outside development
        if is_development():
            create_tables()
    else:
        logger.error("❌ Could not connect to the database")

    if PAYMENTS_SIMULATION:
        logger.warning("⚠️ Payments run in simulation mode")

    yield

    logger.info("👋 JuaKali Lend API stopped")


app = FastAPI(
    title="JuaKali Lend API",
    description="Lending, payments and supply-chain backend for Kenyan informal-sector businesses",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "sessions", "description": "Google sign-in through the users service"},
        {"name": "users", "description": "Registration, login and the current user"},
        {"name": "admin", "description": "User administration, access logs and statistics"},
        {"name": "kyc", "description": "Identity document submission and review"},
        {"name": "transactions", "description": "Retailer and payment transactions"},
        {"name": "notifications", "description": "Lender notifications"},
        {"name": "suppliers", "description": "Supplier directory"},
        {"name": "cashflow", "description": "Lender cash flow"},
        {"name": "profile", "description": "Profile and preferences"},
        {"name": "otp", "description": "One-time passwords"},
        {"name": "payments", "description": "M-Pesa and bank payments"},
        {"name": "inventory", "description": "Supplier products and stock movements"},
        {"name": "dashboards", "description": "Role dashboards"},
    ]
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def error_response(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message, **extra})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    response = error_response(exc.status_code, str(exc.detail))
    for name, value in (getattr(exc, "headers", None) or {}).items():
        response.headers[name] = value
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = [
        {"field": ".".join(str(part) for part in error["loc"] if part != "body"), "message": error["msg"]}
        for error in exc.errors()
    ]
    return error_response(400, "Validation failed", details=details)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"❌ Unhandled error on {request.method} {request.url.path}: {exc}")
    return error_response(500, "Internal server error")


app.include_router(sessions.router)
app.include_router(users.router)
app.include_router(admin.router)
app.include_router(kyc.router)
app.include_router(transactions.router)
app.include_router(notifications.router)
app.include_router(suppliers.router)
app.include_router(cashflow.router)
app.include_router(profile.router)
app.include_router(otp.router)
app.include_router(payments.router)
app.include_router(inventory.router)
app.include_router(loans.router)
app.include_router(dashboards.router)


@app.get("/")
def root():
    """
    API root - general information
    """
    return {
        "success": True,
        "message": "JuaKali Lend backend running 🚀",
        "version": app.version,
        "environment": ENVIRONMENT,
        "documentation": {
            "swagger": "/docs",
            "redoc": "/redoc"
        },
        "endpoints": {
            "users": "/api/users",
            "admin": "/api/admin",
            "kyc": "/api/kyc",
            "transactions": "/api/transactions",
            "notifications": "/api/notifications",
            "suppliers": "/api/suppliers",
            "cashflow": "/api/cashflow",
            "profile": "/api/profile",
            "otp": "/api/otp",
            "payments": "/api/payments",
            "inventory": "/api/inventory",
            "loans": "/api/loans",
            "docs": "/docs"
        },
        "health_check": "/health"
    }


@app.get("/health")
def health_check():
    """
    Health endpoint for monitoring
    """
    db_status = check_connection()

    return {
        "status": "healthy" if db_status else "unhealthy",
        "database": "connected" if db_status else "disconnected",
        "version": app.version,
        "timestamp": datetime.datetime.now().isoformat()
    }


@app.get("/info")
def info():
    return {
        "name": app.title,
        "description": app.description,
        "version": app.version,
        "python_version": sys.version,
        "fastapi_version": fastapi.__version__,
        "sqlalchemy_version": sqlalchemy.__version__,
        "environment": ENVIRONMENT,
        "payments_simulation": PAYMENTS_SIMULATION
    }
