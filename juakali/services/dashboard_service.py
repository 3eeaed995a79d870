# JUAKALI/backend/juakali/services/dashboard_service.py : figures behind the role dashboards

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import case, extract, func
from sqlalchemy.orm import Session

from juakali import constants
from juakali.models import models
from juakali.services.cashflow_service import CashFlowService
from juakali.services.loan_service import LoanService

LOW_STOCK_THRESHOLD = 10


def _month_start(day: date, months_back: int) -> date:
    month_index = day.year * 12 + (day.month - 1) - months_back
    return date(month_index // 12, month_index % 12 + 1, 1)


class DashboardService:
    """Aggregations for the admin, lender, supplier and retailer dashboards"""

    def __init__(self, db: Session, today: Optional[date] = None):
        self.db = db
        self.today = today or date.today()

    # ---------- ADMIN ----------
    def admin_stats(self) -> Dict[str, Any]:
        users = self.db.query(
            func.count(models.User.id),
            func.count(case((models.User.status == "active", 1))),
        ).one()

        transactions = self.db.query(
            func.count(models.Transaction.id),
            func.coalesce(func.sum(models.Transaction.amount), 0),
        ).filter(models.Transaction.status == constants.TX_COMPLETED).one()

        kyc = self.db.query(
            func.count(case((models.KYCDocument.verification_status == constants.KYC_PENDING, 1))),
            func.count(case((models.KYCDocument.verification_status == constants.KYC_VERIFIED, 1))),
        ).one()

        # Only profiles that ever borrowed take part in the credit ratios
        credit = self.db.query(
            func.avg(case((models.CreditProfile.risk_category == "high", 1.0), else_=0.0)) * 100,
            func.avg(case(
                (models.CreditProfile.total_repaid > 0,
                 models.CreditProfile.total_repaid * 100.0 / models.CreditProfile.total_borrowed),
                else_=0.0,
            )),
        ).filter(models.CreditProfile.total_borrowed > 0).one()

        return {
            "totalUsers": users[0] or 0,
            "activeUsers": users[1] or 0,
            "totalTransactions": transactions[0] or 0,
            "transactionVolume": float(transactions[1] or 0),
            "pendingKYC": kyc[0] or 0,
            "verifiedKYC": kyc[1] or 0,
            "defaultRate": round(float(credit[0] or 0), 2),
            "collectionRate": round(float(credit[1] or 0), 2),
        }

    def chart_data(self, months: int = 6) -> List[Dict[str, Any]]:
        """Completed transactions, their volume and new users for each of the last ``months`` months"""
        start = datetime.combine(_month_start(self.today, months - 1), datetime.min.time())
        year_col = extract("year", models.Transaction.created_at)
        month_col = extract("month", models.Transaction.created_at)

        tx_rows = self.db.query(
            year_col.label("year"),
            month_col.label("month"),
            func.count(models.Transaction.id),
            func.coalesce(func.sum(models.Transaction.amount), 0),
        ).filter(
            models.Transaction.status == constants.TX_COMPLETED,
            models.Transaction.created_at >= start,
        ).group_by(year_col, month_col).all()

        user_year = extract("year", models.User.created_at)
        user_month = extract("month", models.User.created_at)
        user_rows = self.db.query(
            user_year.label("year"),
            user_month.label("month"),
            func.count(models.User.id),
        ).filter(models.User.created_at >= start).group_by(user_year, user_month).all()

        tx_by_month = {(int(r[0]), int(r[1])): (r[2], float(r[3])) for r in tx_rows}
        users_by_month = {(int(r[0]), int(r[1])): r[2] for r in user_rows}

        points = []
        for back in range(months - 1, -1, -1):
            month = _month_start(self.today, back)
            key = (month.year, month.month)
            count, volume = tx_by_month.get(key, (0, 0.0))
            points.append({
                "name": constants.MONTHS_SHORT[month.month - 1],
                "transactions": count,
                "volume": volume,
                "users": users_by_month.get(key, 0),
            })
        return points

    # ---------- LENDER ----------
    def lender_summary(self, lender: models.User) -> Dict[str, Any]:
        unread = self.db.query(func.count(models.Notification.id)).filter(
            models.Notification.lender_id == lender.id,
            models.Notification.is_read.is_(False),
        ).scalar()
        preferred = self.db.query(func.count(models.Supplier.id)).filter(
            models.Supplier.is_preferred.is_(True)
        ).scalar()
        return {
            "cashflow": CashFlowService(self.db, lender.id, today=self.today).summary(),
            "unreadNotifications": unread or 0,
            "preferredSuppliers": preferred or 0,
        }

    # ---------- SUPPLIER ----------
    def supplier_summary(self, supplier: models.User) -> Dict[str, Any]:
        row = self.db.query(
            func.count(models.Product.id),
            func.coalesce(func.sum(models.Product.stock_quantity * models.Product.price), 0),
            func.count(case((models.Product.stock_quantity < LOW_STOCK_THRESHOLD, 1))),
        ).filter(
            models.Product.supplier_id == supplier.id,
            models.Product.is_active.is_(True),
        ).one()
        movements = self.db.query(func.count(models.InventoryMovement.id)).filter(
            models.InventoryMovement.supplier_id == supplier.id
        ).scalar()
        return {
            "products": row[0] or 0,
            "stockValue": float(row[1] or 0),
            "lowStock": row[2] or 0,
            "movements": movements or 0,
        }

    # ---------- RETAILER / CUSTOMER ----------
    def retailer_summary(self, user: models.User) -> Dict[str, Any]:
        tx = self.db.query(
            func.count(models.Transaction.id),
            func.coalesce(func.sum(case((models.Transaction.status == constants.TX_COMPLETED, models.Transaction.amount), else_=0)), 0),
            func.count(case((models.Transaction.status == constants.TX_PENDING, 1))),
        ).filter(models.Transaction.user_id == user.id).one()

        credit = user.credit_profile
        latest_kyc = self.db.query(models.KYCDocument).filter(
            models.KYCDocument.user_id == user.id
        ).order_by(models.KYCDocument.created_at.desc(), models.KYCDocument.id.desc()).first()

        return {
            "credit": {
                "creditScore": credit.credit_score if credit else constants.DEFAULT_CREDIT_SCORE,
                "creditLimit": credit.credit_limit if credit else 0,
                "outstandingBalance": credit.outstanding_balance if credit else 0,
            },
            "transactions": {
                "total": tx[0] or 0,
                "completedVolume": float(tx[1] or 0),
                "pending": tx[2] or 0,
            },
            "kycStatus": latest_kyc.verification_status if latest_kyc else None,
            "loans": LoanService(self.db).retailer_totals(user.id),
        }
