# JUAKALI/backend/juakali/routes/sessions.py : Google OAuth sessions

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy import or_
from sqlalchemy.orm import Session

from juakali import constants
from juakali.auth import create_access_token, set_session_cookie, clear_session_cookie, session_claims
from juakali.database import get_db
from juakali.models import models
from juakali.schemas import schemas
from juakali.services.http import ProviderError
from juakali.services.oauth_service import UsersServiceClient, get_users_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["sessions"])

UPSTREAM_CLAIM = "ust"


@router.get("/oauth/google/redirect_url")
async def google_redirect_url(users_service: UsersServiceClient = Depends(get_users_service)):
    try:
        redirect_url = await users_service.get_redirect_url("google")
    except ProviderError as e:
        logger.error(f"❌ OAuth redirect URL error: {e}")
        raise HTTPException(status_code=500, detail="Failed to get OAuth redirect URL")
    return {"redirectUrl": redirect_url}


@router.post("/sessions")
async def create_session(
    payload: schemas.SessionCreate,
    response: Response,
    db: Session = Depends(get_db),
    users_service: UsersServiceClient = Depends(get_users_service),
):
    """Exchanges the OAuth code and opens a local session for the upstream user"""
    if not payload.code:
        raise HTTPException(status_code=400, detail="No authorization code provided")

    try:
        session_token = await users_service.exchange_code(payload.code)
        upstream_user = await users_service.get_current_user(session_token)
    except ProviderError as e:
        logger.error(f"❌ Session creation error: {e}")
        raise HTTPException(status_code=500, detail="Failed to create session")

    if not upstream_user or not upstream_user.get("email"):
        logger.error("❌ Session creation error: users service returned no user")
        raise HTTPException(status_code=500, detail="Failed to create session")

    external_id = str(upstream_user.get("id", ""))
    user = db.query(models.User).filter(
        or_(models.User.external_user_id == external_id, models.User.email == upstream_user["email"])
    ).first()

    if user is None:
        google = upstream_user.get("google_user_data") or {}
        user = models.User(
            external_user_id=external_id or None,
            email=upstream_user["email"],
            first_name=google.get("given_name") or "",
            last_name=google.get("family_name") or "",
            role=constants.ROLE_CUSTOMER,
            is_verified=True,
            last_login_at=models.utcnow(),
        )
        db.add(user)
        logger.info(f"✅ New OAuth user: {upstream_user['email']}")
    else:
        user.last_login_at = models.utcnow()
        if not user.external_user_id and external_id:
            user.external_user_id = external_id
    db.commit()
    db.refresh(user)

    token = create_access_token({"sub": str(user.id), UPSTREAM_CLAIM: session_token})
    set_session_cookie(response, token)
    return {"success": True}


@router.get("/logout")
async def logout(
    request: Request,
    response: Response,
    users_service: UsersServiceClient = Depends(get_users_service),
):
    claims = session_claims(request) or {}
    upstream_token = claims.get(UPSTREAM_CLAIM)
    if upstream_token:
        try:
            await users_service.delete_session(upstream_token)
        except ProviderError as e:
            # The local session is closed regardless
            logger.warning(f"⚠️ Could not delete upstream session: {e}")

    clear_session_cookie(response)
    return {"success": True}
