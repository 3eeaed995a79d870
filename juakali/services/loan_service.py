# JUAKALI/backend/juakali/services/loan_service.py : loan lifecycle and repayment ledger

import logging
from datetime import date, timedelta
from typing import Any, Dict, Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from juakali import constants
from juakali.models import models

logger = logging.getLogger(__name__)


class LoanError(ValueError):
    """A loan operation the loan's state does not allow"""


def loan_terms(principal: float, daily_rate: float, term_days: int) -> Dict[str, float]:
    """Simple daily interest over the whole term, repaid in equal daily instalments."""
    total = round(principal * (1 + daily_rate * term_days), 2)
    return {"total_amount": total, "daily_payment_amount": round(total / term_days, 2)}


class LoanService:
    """Moves loans through their statuses and keeps the borrower's credit profile in step."""

    def __init__(self, db: Session, today: Optional[date] = None):
        self.db = db
        self.today = today or date.today()

    def _credit(self, loan: models.Loan) -> models.CreditProfile:
        credit = self.db.query(models.CreditProfile).filter(
            models.CreditProfile.user_id == loan.retailer_id
        ).first()
        if credit is None:
            credit = models.CreditProfile(user_id=loan.retailer_id)
            self.db.add(credit)
            self.db.flush()
        return credit

    def _notify(self, loan: models.Loan, title: str, message: str, type_: str = "system",
                priority: str = "medium", amount: Optional[float] = None):
        if loan.lender_id is None:
            return
        self.db.add(models.Notification(
            lender_id=loan.lender_id,
            type=type_,
            priority=priority,
            title=title,
            message=message,
            retailer_name=loan.retailer.full_name if loan.retailer else None,
            amount=amount,
        ))

    def _cash_flow(self, loan: models.Loan, transaction_type: str, amount: float, description: str):
        if loan.lender_id is None:
            return
        self.db.add(models.CashFlowTransaction(
            lender_id=loan.lender_id,
            transaction_type=transaction_type,
            amount=amount,
            description=description,
            reference_id=f"LOAN-{loan.id}",
            transaction_date=self.today,
        ))

    # ---------- APPLICATION ----------
    def create(self, borrower: models.User, principal: float, daily_rate: float, term_days: int,
               **fields) -> models.Loan:
        credit = borrower.credit_profile
        available = (credit.credit_limit or 0) - (credit.outstanding_balance or 0) if credit else 0
        if principal > available:
            raise LoanError(f"Loan amount exceeds available credit of KSh {max(available, 0):,.0f}")

        loan = models.Loan(
            retailer_id=borrower.id,
            principal_amount=principal,
            daily_interest_rate=daily_rate,
            loan_term_days=term_days,
            status=constants.LOAN_PENDING,
            **loan_terms(principal, daily_rate, term_days),
            **fields,
        )
        self.db.add(loan)
        self.db.commit()
        self.db.refresh(loan)
        logger.info(f"📝 Loan {loan.id} requested by user {borrower.id}: KSh {principal}")
        return loan

    # ---------- STATUS ----------
    def change_status(self, loan: models.Loan, status: str, actor: models.User,
                      notes: Optional[str] = None) -> models.Loan:
        current = loan.status
        if status == current:
            return loan
        if status not in constants.LOAN_TRANSITIONS.get(current, set()):
            raise LoanError(f"Cannot change loan status from {current} to {status}")
        if status == constants.LOAN_COMPLETED and loan.outstanding_amount > 0:
            raise LoanError("Loan still has an outstanding balance")

        if status == constants.LOAN_APPROVED:
            if loan.lender_id is None and actor.role == constants.ROLE_LENDER:
                loan.lender_id = actor.id
            loan.approved_at = models.utcnow()
        elif status == constants.LOAN_ACTIVE:
            self._disburse(loan)
        elif status == constants.LOAN_DEFAULTED:
            self._credit(loan).risk_category = "high"

        loan.status = status
        message = f"Loan {loan.id} status changed from {current} to {status}"
        if notes:
            message += f": {notes}"
        self._notify(loan, "Loan Status Updated", message)
        self.db.commit()
        self.db.refresh(loan)
        logger.info(f"🔄 Loan {loan.id}: {current} -> {status} by user {actor.id}")
        return loan

    def _disburse(self, loan: models.Loan):
        loan.disbursed_at = models.utcnow()
        loan.due_date = self.today + timedelta(days=loan.loan_term_days)

        credit = self._credit(loan)
        credit.total_borrowed = (credit.total_borrowed or 0) + loan.principal_amount
        credit.outstanding_balance = (credit.outstanding_balance or 0) + loan.total_amount
        self._cash_flow(loan, "lending", loan.principal_amount, f"Loan {loan.id} disbursed")
        logger.info(f"💸 Loan {loan.id} disbursed: KSh {loan.principal_amount}")

    # ---------- REPAYMENTS ----------
    def record_repayment(self, loan: models.Loan, amount: float, payment_method: str, actor: models.User,
                         transaction_reference: Optional[str] = None,
                         payment_date: Optional[date] = None) -> models.LoanRepayment:
        if loan.status not in constants.LOAN_OPEN_STATUSES:
            raise LoanError(f"Repayments are not accepted on a {loan.status} loan")
        remaining = loan.outstanding_amount
        if amount > remaining:
            raise LoanError(f"Repayment exceeds the outstanding amount of KSh {remaining:,.2f}")

        repayment = models.LoanRepayment(
            loan_id=loan.id,
            amount=amount,
            payment_method=payment_method,
            transaction_reference=transaction_reference,
            payment_date=payment_date or self.today,
            recorded_by=actor.id,
        )
        self.db.add(repayment)
        loan.total_repaid = round((loan.total_repaid or 0) + amount, 2)

        credit = self._credit(loan)
        credit.total_repaid = (credit.total_repaid or 0) + amount
        credit.outstanding_balance = round(max((credit.outstanding_balance or 0) - amount, 0), 2)
        self._cash_flow(loan, "repayment", amount, f"Repayment on loan {loan.id}")
        self._notify(loan, "Payment received", f"KSh {amount:,.0f} received on loan {loan.id}",
                     type_="payment", priority="low", amount=amount)

        if loan.outstanding_amount <= 0:
            loan.status = constants.LOAN_COMPLETED
            self._notify(loan, "Loan Completed", f"Loan {loan.id} has been fully repaid")
            logger.info(f"🎉 Loan {loan.id} fully repaid")

        self.db.commit()
        self.db.refresh(repayment)
        logger.info(f"💰 Repayment of KSh {amount} recorded on loan {loan.id}")
        return repayment

    # ---------- DELIVERY / RECOVERY ----------
    def confirm_delivery(self, loan: models.Loan, actor: models.User, **fields) -> models.LoanDeliveryConfirmation:
        if loan.status not in constants.LOAN_OPEN_STATUSES:
            raise LoanError("Goods can only be confirmed on a disbursed loan")
        confirmation = models.LoanDeliveryConfirmation(loan_id=loan.id, confirmed_by=actor.id, **fields)
        self.db.add(confirmation)
        # Delivered goods start the repayment period
        if loan.status == constants.LOAN_ACTIVE:
            loan.status = constants.LOAN_REPAYING
        self.db.commit()
        self.db.refresh(confirmation)
        logger.info(f"📦 Delivery confirmed on loan {loan.id} ({confirmation.confirmation_type})")
        return confirmation

    def escalate(self, loan: models.Loan, actor: models.User, escalation_type: str, escalation_reason: str,
                 notes: Optional[str] = None) -> models.LoanEscalation:
        if loan.status != constants.LOAN_RECOVERY and \
                constants.LOAN_RECOVERY not in constants.LOAN_TRANSITIONS.get(loan.status, set()):
            raise LoanError(f"A {loan.status} loan cannot be escalated")

        escalation = models.LoanEscalation(
            loan_id=loan.id,
            escalation_type=escalation_type,
            escalation_reason=escalation_reason,
            notes=notes,
            escalated_by=actor.id,
        )
        self.db.add(escalation)
        loan.status = constants.LOAN_RECOVERY
        self._credit(loan).risk_category = "high"
        self._notify(loan, "Loan Escalated for Recovery",
                     f"Loan {loan.id} has been escalated for {escalation_type} recovery",
                     type_="risk", priority="high", amount=loan.outstanding_amount)
        self.db.commit()
        self.db.refresh(escalation)
        logger.warning(f"🚨 Loan {loan.id} escalated for {escalation_type}: {escalation_reason}")
        return escalation

    # ---------- STATEMENTS ----------
    def statement(self, loan: models.Loan, start: date, end: date) -> Dict[str, Any]:
        """Expected versus paid over a period.

        Only days the loan was running count: from disbursement to the due date, never past
        today. Every elapsed scheduled day without a repayment costs a penalty of
        ``MISSED_PAYMENT_PENALTY`` times the daily instalment.
        """
        repayments = self.db.query(models.LoanRepayment).filter(
            models.LoanRepayment.loan_id == loan.id,
            models.LoanRepayment.payment_date >= start,
            models.LoanRepayment.payment_date <= end,
        ).order_by(models.LoanRepayment.payment_date, models.LoanRepayment.id).all()
        total_paid = round(sum(r.amount for r in repayments), 2)

        scheduled_days = missed_days = 0
        if loan.disbursed_at is not None:
            first = max(start, loan.disbursed_at.date() + timedelta(days=1))
            last = min(end, loan.due_date or end, self.today)
            paid_days = {r.payment_date for r in repayments}
            day = first
            while day <= last:
                scheduled_days += 1
                if day < self.today and day not in paid_days:
                    missed_days += 1
                day += timedelta(days=1)

        daily = loan.daily_payment_amount
        record = models.LoanStatement(
            loan_id=loan.id,
            period_start=start,
            period_end=end,
            total_expected=round(scheduled_days * daily, 2),
            total_paid=total_paid,
            penalties_applied=round(missed_days * daily * constants.MISSED_PAYMENT_PENALTY, 2),
            outstanding_balance=loan.outstanding_amount,
        )
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return {"record": record, "repayments": repayments}

    def retailer_totals(self, retailer_id: int) -> Dict[str, Any]:
        row = self.db.query(
            func.count(models.Loan.id),
            func.count(case((models.Loan.status.in_(constants.LOAN_OPEN_STATUSES), 1))),
            func.coalesce(func.sum(models.Loan.total_repaid), 0),
        ).filter(models.Loan.retailer_id == retailer_id).one()
        return {"total": row[0] or 0, "open": row[1] or 0, "repaid": float(row[2] or 0)}
