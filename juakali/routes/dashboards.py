# JUAKALI/backend/juakali/routes/dashboards.py : role dashboards behind a redirecting guard

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from juakali import constants
from juakali.auth import get_optional_user
from juakali.database import get_db
from juakali.models import models as db_models
from juakali.services.dashboard_service import DashboardService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["dashboards"])

LOGIN_PATH = "/login"
FALLBACK_PATH = "/dashboard"

# Roles admitted on each dashboard
ALLOWED_ROLES = {
    "/admin": (constants.ROLE_ADMIN,),
    "/lender": (constants.ROLE_LENDER,),
    "/supplier": (constants.ROLE_SUPPLIER,),
    "/retailer": (constants.ROLE_RETAILER, constants.ROLE_CUSTOMER),
}


def guard(user: Optional[db_models.User], path: str) -> Optional[RedirectResponse]:
    """Redirect for a visitor who may not see ``path``, None when they may.

    Only steers the browser; the API endpoints check roles themselves.
    """
    if user is None or not user.is_active:
        return RedirectResponse(LOGIN_PATH, status_code=302)
    if user.role not in ALLOWED_ROLES[path]:
        logger.info(f"↪️ User {user.id} ({user.role}) redirected away from {path}")
        return RedirectResponse(FALLBACK_PATH, status_code=302)
    return None


@router.get("/dashboard")
def dashboard_home(user: Optional[db_models.User] = Depends(get_optional_user)):
    if user is None or not user.is_active:
        return RedirectResponse(LOGIN_PATH, status_code=302)
    return {"success": True, "role": user.role, "home": constants.ROLE_HOME[user.role]}


@router.get("/admin")
def admin_dashboard(
    db: Session = Depends(get_db),
    user: Optional[db_models.User] = Depends(get_optional_user),
):
    redirect = guard(user, "/admin")
    if redirect:
        return redirect
    service = DashboardService(db)
    return {"success": True, "stats": service.admin_stats(), "chartData": service.chart_data()}


@router.get("/lender")
def lender_dashboard(
    db: Session = Depends(get_db),
    user: Optional[db_models.User] = Depends(get_optional_user),
):
    redirect = guard(user, "/lender")
    if redirect:
        return redirect
    return {"success": True, "data": DashboardService(db).lender_summary(user)}


@router.get("/supplier")
def supplier_dashboard(
    db: Session = Depends(get_db),
    user: Optional[db_models.User] = Depends(get_optional_user),
):
    redirect = guard(user, "/supplier")
    if redirect:
        return redirect
    return {"success": True, "data": DashboardService(db).supplier_summary(user)}


@router.get("/retailer")
def retailer_dashboard(
    db: Session = Depends(get_db),
    user: Optional[db_models.User] = Depends(get_optional_user),
):
    redirect = guard(user, "/retailer")
    if redirect:
        return redirect
    return {"success": True, "data": DashboardService(db).retailer_summary(user)}
