# JUAKALI/backend/juakali/models/models.py

from sqlalchemy import Column, Integer, String, Float, ForeignKey, DateTime, Date, Boolean, Text, JSON
from sqlalchemy.orm import relationship, validates
from datetime import datetime, timezone
from juakali.database import Base
from juakali import constants
from juakali.encryption import EncryptedString


def utcnow():
    """Naive UTC timestamp, the form stored in every DateTime column"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    external_user_id = Column(String, unique=True, nullable=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=True)
    first_name = Column(String, default="")
    last_name = Column(String, default="")
    phone_number = Column(String, nullable=True, index=True)
    company_name = Column(String, nullable=True)
    role = Column(String, nullable=False, default=constants.ROLE_CUSTOMER)
    status = Column(String, default="active")
    region = Column(String, nullable=True)
    address = Column(String, nullable=True)
    is_active = Column(Boolean, default=True)
    is_verified = Column(Boolean, default=False)
    phone_verified = Column(Boolean, default=False)
    profile_completed = Column(Boolean, default=False)
    security_level = Column(Integer, default=1)
    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    profile = relationship("UserProfile", back_populates="user", uselist=False, cascade="all, delete-orphan")
    security_settings = relationship("SecuritySettings", back_populates="user", uselist=False, cascade="all, delete-orphan")
    preferences = relationship("UserPreferences", back_populates="user", uselist=False, cascade="all, delete-orphan")
    credit_profile = relationship("CreditProfile", back_populates="user", uselist=False, cascade="all, delete-orphan")
    kyc_documents = relationship("KYCDocument", back_populates="user", foreign_keys="KYCDocument.user_id", cascade="all, delete-orphan")
    transactions = relationship("Transaction", back_populates="user", cascade="all, delete-orphan")

    @property
    def full_name(self):
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @validates("role")
    def validate_role(self, key, value):
        if value not in constants.ROLES:
            raise ValueError(f"Unknown role: {value}")
        if self.role is not None and self.role != value:
            raise ValueError("A user's role cannot be changed")
        return value


class UserProfile(Base):
    __tablename__ = "user_profiles"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    business_license = Column(String, nullable=True)
    tax_id = Column(String, nullable=True)
    business_type = Column(String, nullable=True)
    annual_revenue = Column(Float, nullable=True)
    years_in_business = Column(Integer, nullable=True)
    profile_data = Column(JSON, default=dict)
    verification_status = Column(String, default="pending")
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="profile")


class SecuritySettings(Base):
    __tablename__ = "user_security_settings"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    password_expiry_days = Column(Integer, default=90)
    require_password_change = Column(Boolean, default=False)
    login_notification_enabled = Column(Boolean, default=True)
    suspicious_activity_alerts = Column(Boolean, default=True)
    admin_approval_required = Column(Boolean, default=False)
    created_at = Column(DateTime, default=utcnow)

    user = relationship("User", back_populates="security_settings")


class UserPreferences(Base):
    __tablename__ = "user_preferences"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    language = Column(String, default="en")
    timezone = Column(String, default="Africa/Nairobi")
    email_notifications = Column(Boolean, default=True)
    sms_notifications = Column(Boolean, default=True)
    push_notifications = Column(Boolean, default=True)
    two_factor_enabled = Column(Boolean, default=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="preferences")


class CreditProfile(Base):
    __tablename__ = "credit_profiles"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    credit_score = Column(Integer, default=constants.DEFAULT_CREDIT_SCORE)
    credit_limit = Column(Float, default=0)
    outstanding_balance = Column(Float, default=0)
    total_borrowed = Column(Float, default=0)
    total_repaid = Column(Float, default=0)
    risk_category = Column(String, default="low")
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="credit_profile")


class Retailer(Base):
    __tablename__ = "retailers"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    business_name = Column(String, nullable=False)
    location = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow)


class KYCDocument(Base):
    __tablename__ = "kyc_documents"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    document_type = Column(String, nullable=False)
    document_number = Column(String, nullable=True)
    file_url = Column(String, nullable=True)
    verification_status = Column(String, default=constants.KYC_PENDING, index=True)
    reviewed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    review_notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="kyc_documents", foreign_keys=[user_id])


class Transaction(Base):
    __tablename__ = "transactions"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    retailer_id = Column(Integer, ForeignKey("retailers.id"), nullable=True)
    amount = Column(Float, nullable=False)
    transaction_type = Column(String, default="payment")
    status = Column(String, default=constants.TX_PENDING, index=True)
    reference = Column(String, nullable=True)
    description = Column(String, default="")
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="transactions")
    retailer = relationship("Retailer")

    @validates("amount")
    def validate_amount(self, key, value):
        # The amount of a completed transaction is frozen
        if self.status == constants.TX_COMPLETED and self.amount is not None and value != self.amount:
            raise ValueError("Completed transactions cannot be modified")
        return value


class Notification(Base):
    __tablename__ = "notifications"
    id = Column(Integer, primary_key=True)
    lender_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String, nullable=False)
    priority = Column(String, nullable=False)
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    retailer_name = Column(String, nullable=True)
    amount = Column(Float, nullable=True)
    is_read = Column(Boolean, default=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class Supplier(Base):
    __tablename__ = "suppliers"
    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    category = Column(String, nullable=True)
    rating = Column(Float, default=0)
    total_orders = Column(Integer, default=0)
    delivery_success_rate = Column(Float, default=0)
    is_preferred = Column(Boolean, default=False)
    location = Column(String, default="")
    contact_info = Column(String, default="")
    phone = Column(String, default="")
    email = Column(String, default="")
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class CashFlowTransaction(Base):
    __tablename__ = "cash_flow_transactions"
    id = Column(Integer, primary_key=True)
    lender_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    transaction_type = Column(String, nullable=False)
    amount = Column(Float, nullable=False)
    description = Column(String, default="")
    reference_id = Column(String, default="")
    transaction_date = Column(Date, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow)


class OTPCode(Base):
    __tablename__ = "otp_codes"
    id = Column(Integer, primary_key=True)
    email = Column(String, nullable=True, index=True)
    phone_number = Column(String, nullable=True, index=True)
    code = Column(String, nullable=False)
    otp_type = Column(String, nullable=False)
    purpose = Column(String, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    used_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)


class AdminAccessLog(Base):
    __tablename__ = "admin_access_logs"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    action = Column(String, nullable=False)
    resource = Column(String, nullable=True)
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    success = Column(Boolean, default=True)
    failure_reason = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    user = relationship("User")


class Product(Base):
    __tablename__ = "products"
    id = Column(Integer, primary_key=True)
    supplier_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    category = Column(String, nullable=True)
    price = Column(Float, nullable=False)
    stock_quantity = Column(Integer, default=0)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    movements = relationship("InventoryMovement", back_populates="product", cascade="all, delete-orphan")


class InventoryMovement(Base):
    __tablename__ = "inventory_movements"
    id = Column(Integer, primary_key=True)
    supplier_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    movement_type = Column(String, nullable=False)
    reference_type = Column(String, nullable=True)
    reference_id = Column(Integer, nullable=True)
    quantity_change = Column(Integer, nullable=False)
    quantity_before = Column(Integer, nullable=False)
    quantity_after = Column(Integer, nullable=False)
    unit_cost = Column(Float, nullable=True)
    total_value = Column(Float, nullable=True)
    reason = Column(String, nullable=False)
    notes = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    product = relationship("Product", back_populates="movements")


class PaymentTransaction(Base):
    __tablename__ = "payment_transactions"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    provider = Column(String, nullable=False)
    amount = Column(Float, nullable=False)
    recipient_phone = Column(String, nullable=True)
    recipient_account = Column(EncryptedString, nullable=True)
    reference = Column(String, nullable=True)
    description = Column(String, default="")
    checkout_request_id = Column(String, nullable=True, index=True)
    merchant_request_id = Column(String, nullable=True)
    provider_transaction_id = Column(String, nullable=True)
    receipt_number = Column(String, nullable=True)
    result_description = Column(String, nullable=True)
    status = Column(String, default=constants.TX_PENDING)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class Loan(Base):
    __tablename__ = "loans"
    id = Column(Integer, primary_key=True)
    retailer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    lender_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=True)
    principal_amount = Column(Float, nullable=False)
    daily_interest_rate = Column(Float, default=constants.DEFAULT_DAILY_INTEREST_RATE)
    loan_term_days = Column(Integer, nullable=False)
    total_amount = Column(Float, nullable=False)
    daily_payment_amount = Column(Float, nullable=False)
    total_repaid = Column(Float, default=0)
    status = Column(String, default=constants.LOAN_PENDING, index=True)
    goods_category = Column(String, nullable=True)
    goods_description = Column(String, default="")
    approved_at = Column(DateTime, nullable=True)
    disbursed_at = Column(DateTime, nullable=True)
    due_date = Column(Date, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    retailer = relationship("User", foreign_keys=[retailer_id])
    lender = relationship("User", foreign_keys=[lender_id])
    supplier = relationship("Supplier")
    repayments = relationship("LoanRepayment", back_populates="loan", cascade="all, delete-orphan")

    @property
    def outstanding_amount(self):
        return round(max((self.total_amount or 0) - (self.total_repaid or 0), 0), 2)

    @validates("status")
    def validate_status(self, key, value):
        if value not in constants.LOAN_STATUSES:
            raise ValueError(f"Unknown loan status: {value}")
        return value


class LoanRepayment(Base):
    __tablename__ = "loan_repayments"
    id = Column(Integer, primary_key=True)
    loan_id = Column(Integer, ForeignKey("loans.id"), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    payment_date = Column(Date, nullable=False, index=True)
    payment_method = Column(String, nullable=False)
    transaction_reference = Column(String, nullable=True)
    recorded_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow)

    loan = relationship("Loan", back_populates="repayments")


class LoanDeliveryConfirmation(Base):
    __tablename__ = "loan_delivery_confirmations"
    id = Column(Integer, primary_key=True)
    loan_id = Column(Integer, ForeignKey("loans.id"), nullable=False, index=True)
    confirmation_type = Column(String, nullable=False)
    confirmation_code = Column(String, nullable=True)
    confirmation_images = Column(JSON, nullable=True)
    supplier_invoice_url = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    delivery_date = Column(DateTime, default=utcnow)
    confirmed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow)


class LoanEscalation(Base):
    __tablename__ = "loan_recovery_escalations"
    id = Column(Integer, primary_key=True)
    loan_id = Column(Integer, ForeignKey("loans.id"), nullable=False, index=True)
    escalation_type = Column(String, nullable=False)
    escalation_reason = Column(Text, nullable=False)
    notes = Column(Text, nullable=True)
    escalation_date = Column(DateTime, default=utcnow)
    escalated_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow)


class LoanStatement(Base):
    __tablename__ = "loan_statements"
    id = Column(Integer, primary_key=True)
    loan_id = Column(Integer, ForeignKey("loans.id"), nullable=False, index=True)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    total_expected = Column(Float, default=0)
    total_paid = Column(Float, default=0)
    penalties_applied = Column(Float, default=0)
    outstanding_balance = Column(Float, default=0)
    created_at = Column(DateTime, default=utcnow)
