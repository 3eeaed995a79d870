# JUAKALI/backend/juakali/auth.py

from datetime import timedelta
from typing import Optional
import logging

from fastapi import Depends, HTTPException, Request, Response
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from juakali.config import (
    SECRET_KEY, ALGORITHM, SESSION_COOKIE_NAME, SESSION_MAX_AGE_SECONDS, SESSION_COOKIE_SECURE,
)
from juakali.database import get_db
from juakali.models import models

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = models.utcnow() + (expires_delta or timedelta(seconds=SESSION_MAX_AGE_SECONDS))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None


def set_session_cookie(response: Response, token: str):
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        path="/",
        samesite="none" if SESSION_COOKIE_SECURE else "lax",
        secure=SESSION_COOKIE_SECURE,
        max_age=SESSION_MAX_AGE_SECONDS,
    )


def clear_session_cookie(response: Response):
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value="",
        httponly=True,
        path="/",
        samesite="none" if SESSION_COOKIE_SECURE else "lax",
        secure=SESSION_COOKIE_SECURE,
        max_age=0,
    )


def _token_from_request(request: Request) -> Optional[str]:
    authorization = request.headers.get("Authorization", "")
    if authorization.lower().startswith("bearer "):
        return authorization[7:].strip()
    return request.cookies.get(SESSION_COOKIE_NAME)


def session_claims(request: Request) -> Optional[dict]:
    """Decoded claims of the session carried by the request, if any"""
    token = _token_from_request(request)
    if not token:
        return None
    return decode_token(token)


def get_optional_user(request: Request, db: Session = Depends(get_db)) -> Optional[models.User]:
    payload = session_claims(request)
    if not payload or "sub" not in payload:
        return None
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        return None
    return db.query(models.User).filter(models.User.id == user_id).first()


def get_current_user(user: Optional[models.User] = Depends(get_optional_user)) -> models.User:
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account is not active")
    return user


def require_roles(*roles: str):
    """Dependency factory: the current user must hold one of ``roles``."""
    label = "/".join(role.capitalize() for role in roles)

    def checker(current_user: models.User = Depends(get_current_user)) -> models.User:
        if current_user.role not in roles:
            logger.warning(f"🚫 User {current_user.id} ({current_user.role}) denied, needs {roles}")
            raise HTTPException(status_code=403, detail=f"{label} access required")
        return current_user

    return checker


require_admin = require_roles("admin")
