# JUAKALI/backend/juakali/services/cashflow_service.py : lender cash flow aggregation

import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from juakali import constants
from juakali.models import models

logger = logging.getLogger(__name__)

CF = models.CashFlowTransaction


def _inflow_sum():
    return func.coalesce(func.sum(case((CF.transaction_type.in_(constants.CASHFLOW_INFLOW_TYPES), CF.amount), else_=0)), 0)


def _outflow_sum():
    return func.coalesce(func.sum(case((CF.transaction_type.in_(constants.CASHFLOW_OUTFLOW_TYPES), CF.amount), else_=0)), 0)


class CashFlowService:
    """Money in and out of one lender's book."""

    def __init__(self, db: Session, lender_id: int, today: Optional[date] = None):
        self.db = db
        self.lender_id = lender_id
        self.today = today or date.today()

    def _base(self, *columns):
        return self.db.query(*columns).filter(CF.lender_id == self.lender_id)

    def daily(self, time_range: str = "7d") -> List[Dict[str, Any]]:
        """Per-day inflow/outflow totals, newest day first. ``all`` disables the window."""
        if time_range != "all" and time_range not in constants.CASHFLOW_RANGES:
            raise ValueError(f"Unknown range: {time_range}")

        query = self._base(
            CF.transaction_date,
            _inflow_sum().label("inflow"),
            _outflow_sum().label("outflow"),
        )
        if time_range in constants.CASHFLOW_RANGES:
            since = self.today - timedelta(days=constants.CASHFLOW_RANGES[time_range])
            query = query.filter(CF.transaction_date >= since)

        rows = query.group_by(CF.transaction_date).order_by(CF.transaction_date.desc()).all()
        return [
            {
                "transaction_date": r.transaction_date.isoformat(),
                "inflow": float(r.inflow),
                "outflow": float(r.outflow),
            }
            for r in rows
        ]

    def summary(self, days: int = 30) -> Dict[str, Any]:
        since = self.today - timedelta(days=days)
        row = self._base(
            _inflow_sum().label("total_inflow"),
            _outflow_sum().label("total_outflow"),
            func.count(CF.id).label("total_transactions"),
        ).filter(CF.transaction_date >= since).one()

        total_inflow = float(row.total_inflow or 0)
        total_outflow = float(row.total_outflow or 0)
        return {
            "total_inflow": total_inflow,
            "total_outflow": total_outflow,
            "net_flow": total_inflow - total_outflow,
            "total_transactions": row.total_transactions or 0,
            "period_days": days,
        }

    def record(self, transaction_type: str, amount: float, transaction_date: date,
               description: Optional[str] = None, reference_id: Optional[str] = None) -> models.CashFlowTransaction:
        if transaction_type not in constants.CASHFLOW_TYPES:
            raise ValueError(f"Unknown cash flow type: {transaction_type}")
        if amount <= 0:
            raise ValueError("Amount must be positive")

        entry = CF(
            lender_id=self.lender_id,
            transaction_type=transaction_type,
            amount=amount,
            description=description or "",
            reference_id=reference_id or "",
            transaction_date=transaction_date,
        )
        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        logger.info(f"💰 Cash flow {transaction_type} of {amount} recorded for lender {self.lender_id}")
        return entry

    def history_query(self):
        return self.db.query(CF).filter(CF.lender_id == self.lender_id).order_by(
            CF.transaction_date.desc(), CF.created_at.desc(), CF.id.desc()
        )
