# JUAKALI/backend/juakali/schemas/schemas.py

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_serializer, model_validator
from typing import Optional, List, Literal, Dict, Any
from datetime import datetime, date

from juakali.encryption import mask_account

RoleName = Literal["admin", "lender", "supplier", "retailer", "customer"]
OTPType = Literal["email", "sms", "authenticator"]
OTPPurpose = Literal["registration", "login", "password_reset", "phone_verification"]


# ---------- USER SCHEMAS ----------
class UserRegister(BaseModel):
    email: EmailStr
    first_name: str = Field(alias="firstName", min_length=1)
    last_name: str = Field(alias="lastName", min_length=1)
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
    company_name: Optional[str] = Field(default=None, alias="companyName")
    role: RoleName
    password: Optional[str] = Field(default=None, min_length=6)
    business_license: Optional[str] = Field(default=None, alias="businessLicense")
    tax_id: Optional[str] = Field(default=None, alias="taxId")
    business_type: Optional[str] = Field(default=None, alias="businessType")
    annual_revenue: Optional[float] = Field(default=None, alias="annualRevenue")
    years_in_business: Optional[int] = Field(default=None, alias="yearsInBusiness")
    profile_data: Optional[Dict[str, Any]] = Field(default=None, alias="profileData")

    model_config = ConfigDict(populate_by_name=True)


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserOut(BaseModel):
    id: int
    email: str
    first_name: Optional[str] = ""
    last_name: Optional[str] = ""
    phone_number: Optional[str] = None
    company_name: Optional[str] = None
    role: str
    status: Optional[str] = None
    region: Optional[str] = None
    is_active: bool
    is_verified: bool
    phone_verified: bool
    profile_completed: bool
    security_level: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer('created_at')
    def serialize_datetime(self, value: datetime) -> str:
        return value.isoformat()


class AdminUserCreate(BaseModel):
    email: EmailStr
    full_name: str = Field(min_length=1)
    phone: Optional[str] = None
    role: Literal["admin", "retailer", "lender", "supplier", "customer"]
    region: Optional[str] = None
    address: Optional[str] = None


class AdminUserUpdate(BaseModel):
    """Role is deliberately absent: it is fixed at registration."""
    is_active: Optional[bool] = None
    status: Optional[str] = None
    region: Optional[str] = None
    address: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


# ---------- TOKEN / SESSION SCHEMAS ----------
class Token(BaseModel):
    access_token: str
    token_type: str


class SessionCreate(BaseModel):
    code: Optional[str] = None


# ---------- OTP SCHEMAS ----------
class OTPSend(BaseModel):
    email: Optional[EmailStr] = None
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
    otp_type: OTPType = Field(alias="otpType")
    purpose: OTPPurpose

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="after")
    def check_contact(self):
        if not self.email and not self.phone_number:
            raise ValueError("Either email or phoneNumber is required")
        if self.otp_type == "sms" and not self.phone_number:
            raise ValueError("phoneNumber is required for sms codes")
        if self.otp_type == "email" and not self.email:
            raise ValueError("email is required for email codes")
        return self


class OTPVerify(OTPSend):
    code: str = Field(min_length=4, max_length=8)


# ---------- KYC SCHEMAS ----------
class KYCCreate(BaseModel):
    document_type: str = Field(min_length=1)
    document_number: Optional[str] = None
    file_url: Optional[str] = None


class KYCReview(BaseModel):
    status: Literal["verified", "rejected"]
    notes: Optional[str] = None


class KYCOut(BaseModel):
    id: int
    user_id: int
    document_type: str
    document_number: Optional[str] = None
    file_url: Optional[str] = None
    verification_status: str
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    review_notes: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ---------- TRANSACTION SCHEMAS ----------
class TransactionCreate(BaseModel):
    amount: float = Field(gt=0)
    transaction_type: Optional[str] = "payment"
    status: Literal["pending", "completed", "failed", "cancelled"] = "pending"
    retailer_id: Optional[int] = None
    reference: Optional[str] = None
    description: Optional[str] = ""


class TransactionUpdate(BaseModel):
    amount: Optional[float] = Field(default=None, gt=0)
    status: Optional[Literal["pending", "completed", "failed", "cancelled"]] = None
    description: Optional[str] = None


class TransactionOut(BaseModel):
    id: int
    user_id: int
    retailer_id: Optional[int] = None
    amount: float
    transaction_type: Optional[str] = None
    status: str
    reference: Optional[str] = None
    description: Optional[str] = ""
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer('created_at')
    def serialize_datetime(self, value: datetime) -> str:
        return value.isoformat()


# ---------- NOTIFICATION SCHEMAS ----------
class NotificationCreate(BaseModel):
    lender_id: int
    type: Literal["payment", "risk", "opportunity", "system"]
    priority: Literal["high", "medium", "low"]
    title: str
    message: str
    retailer_name: Optional[str] = None
    amount: Optional[float] = None


class NotificationRead(BaseModel):
    is_read: bool = Field(alias="isRead")

    model_config = ConfigDict(populate_by_name=True)


class NotificationOut(BaseModel):
    id: int
    lender_id: int
    type: str
    priority: str
    title: str
    message: str
    retailer_name: Optional[str] = None
    amount: Optional[float] = None
    is_read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ---------- SUPPLIER SCHEMAS ----------
class SupplierCreate(BaseModel):
    name: str = Field(min_length=1)
    category: Optional[str] = None
    rating: float = Field(ge=0, le=5)
    total_orders: Optional[int] = Field(default=None, ge=0)
    delivery_success_rate: Optional[float] = Field(default=None, ge=0, le=100)
    is_preferred: Optional[bool] = None
    location: Optional[str] = None
    contact_info: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None


class SupplierUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    category: Optional[str] = None
    rating: Optional[float] = Field(default=None, ge=0, le=5)
    total_orders: Optional[int] = Field(default=None, ge=0)
    delivery_success_rate: Optional[float] = Field(default=None, ge=0, le=100)
    is_preferred: Optional[bool] = None
    location: Optional[str] = None
    contact_info: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None


class SupplierPreferred(BaseModel):
    is_preferred: bool = Field(alias="isPreferred")

    model_config = ConfigDict(populate_by_name=True)


class SupplierOut(BaseModel):
    id: int
    name: str
    category: Optional[str] = None
    rating: float
    total_orders: int
    delivery_success_rate: float
    is_preferred: bool
    location: Optional[str] = ""
    contact_info: Optional[str] = ""
    phone: Optional[str] = ""
    email: Optional[str] = ""

    model_config = ConfigDict(from_attributes=True)


# ---------- CASH FLOW SCHEMAS ----------
class CashFlowCreate(BaseModel):
    transaction_type: Literal["inflow", "outflow", "deposit", "withdrawal", "lending", "repayment"]
    amount: float = Field(gt=0)
    description: Optional[str] = None
    reference_id: Optional[str] = None
    transaction_date: date


class CashFlowAmount(BaseModel):
    amount: float = Field(gt=0)
    description: Optional[str] = None


class CashFlowOut(BaseModel):
    id: int
    lender_id: int
    transaction_type: str
    amount: float
    description: Optional[str] = ""
    reference_id: Optional[str] = ""
    transaction_date: date
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ---------- PROFILE SCHEMAS ----------
class ProfileUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone_number: Optional[str] = None
    company_name: Optional[str] = None


class PreferencesUpdate(BaseModel):
    language: Optional[str] = None
    timezone: Optional[str] = None
    email_notifications: Optional[bool] = None
    sms_notifications: Optional[bool] = None
    push_notifications: Optional[bool] = None
    two_factor_enabled: Optional[bool] = None


class PreferencesOut(BaseModel):
    language: str = "en"
    timezone: str = "Africa/Nairobi"
    email_notifications: bool = True
    sms_notifications: bool = True
    push_notifications: bool = True
    two_factor_enabled: bool = False

    model_config = ConfigDict(from_attributes=True)


# ---------- INVENTORY SCHEMAS ----------
class ProductCreate(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    category: Optional[str] = None
    price: float = Field(gt=0)
    stock_quantity: int = Field(default=0, ge=0)


class ProductOut(BaseModel):
    id: int
    supplier_id: int
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    price: float
    stock_quantity: int
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class InventoryMovementCreate(BaseModel):
    product_id: int
    movement_type: Literal["in", "out", "adjustment", "transfer"]
    quantity_change: int
    reason: str = Field(min_length=1)
    notes: Optional[str] = None
    unit_cost: Optional[float] = None
    reference_type: Optional[str] = None
    reference_id: Optional[int] = None


class InventoryMovementOut(BaseModel):
    id: int
    product_id: int
    movement_type: str
    quantity_change: int
    quantity_before: int
    quantity_after: int
    unit_cost: Optional[float] = None
    total_value: Optional[float] = None
    reason: str
    notes: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ---------- PAYMENT SCHEMAS ----------
class StkPushRequest(BaseModel):
    phone: str = Field(min_length=9)
    amount: float = Field(gt=0)
    description: Optional[str] = None
    reference: Optional[str] = None


class BankPaymentRequest(BaseModel):
    account_number: str = Field(alias="accountNumber", min_length=4)
    amount: float = Field(gt=0)
    reference: Optional[str] = None
    description: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class PaymentTransactionOut(BaseModel):
    id: int
    provider: str
    amount: float
    recipient_phone: Optional[str] = None
    recipient_account: Optional[str] = None
    reference: Optional[str] = None
    checkout_request_id: Optional[str] = None
    receipt_number: Optional[str] = None
    status: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("recipient_account")
    def serialize_account(self, value: Optional[str]) -> Optional[str]:
        return mask_account(value)


# ---------- LOAN SCHEMAS ----------
LoanStatus = Literal["pending", "approved", "rejected", "active", "repaying", "completed", "defaulted", "recovery"]


class LoanCreate(BaseModel):
    principal_amount: float = Field(alias="principalAmount", gt=0)
    daily_interest_rate: float = Field(default=0.05, alias="dailyInterestRate", ge=0, le=1)
    loan_term_days: int = Field(alias="loanTermDays", gt=0, le=365)
    lender_id: Optional[int] = Field(default=None, alias="lenderId")
    supplier_id: Optional[int] = Field(default=None, alias="supplierId")
    goods_category: Optional[str] = Field(default=None, alias="goodsCategory")
    goods_description: Optional[str] = Field(default=None, alias="goodsDescription")

    model_config = ConfigDict(populate_by_name=True)


class LoanStatusUpdate(BaseModel):
    status: LoanStatus
    notes: Optional[str] = None


class LoanOut(BaseModel):
    id: int
    retailer_id: int
    lender_id: Optional[int] = None
    supplier_id: Optional[int] = None
    principal_amount: float
    daily_interest_rate: float
    loan_term_days: int
    total_amount: float
    daily_payment_amount: float
    total_repaid: float
    outstanding_amount: float
    status: str
    goods_category: Optional[str] = None
    goods_description: Optional[str] = ""
    approved_at: Optional[datetime] = None
    disbursed_at: Optional[datetime] = None
    due_date: Optional[date] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RepaymentCreate(BaseModel):
    amount: float = Field(gt=0)
    payment_method: Literal["mpesa", "bank_transfer", "mobile_wallet", "cash"] = Field(alias="paymentMethod")
    transaction_reference: Optional[str] = Field(default=None, alias="transactionReference")
    payment_date: Optional[date] = Field(default=None, alias="paymentDate")

    model_config = ConfigDict(populate_by_name=True)


class RepaymentOut(BaseModel):
    id: int
    loan_id: int
    amount: float
    payment_date: date
    payment_method: str
    transaction_reference: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DeliveryConfirmationCreate(BaseModel):
    confirmation_type: Literal["pin", "qr", "invoice"] = Field(alias="confirmationType")
    confirmation_code: Optional[str] = Field(default=None, alias="confirmationCode")
    confirmation_images: Optional[List[str]] = Field(default=None, alias="confirmationImages")
    supplier_invoice_url: Optional[str] = Field(default=None, alias="supplierInvoiceUrl")
    notes: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class DeliveryConfirmationOut(BaseModel):
    id: int
    loan_id: int
    confirmation_type: str
    confirmation_code: Optional[str] = None
    confirmation_images: Optional[List[str]] = None
    supplier_invoice_url: Optional[str] = None
    notes: Optional[str] = None
    delivery_date: datetime

    model_config = ConfigDict(from_attributes=True)


class EscalationCreate(BaseModel):
    escalation_type: Literal["recovery", "legal", "insurance"] = Field(alias="escalationType")
    escalation_reason: str = Field(alias="escalationReason", min_length=1)
    notes: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class EscalationOut(BaseModel):
    id: int
    loan_id: int
    escalation_type: str
    escalation_reason: str
    notes: Optional[str] = None
    escalation_date: datetime

    model_config = ConfigDict(from_attributes=True)


class StatementRequest(BaseModel):
    start_date: date = Field(alias="startDate")
    end_date: date = Field(alias="endDate")

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="after")
    def check_period(self):
        if self.end_date < self.start_date:
            raise ValueError("endDate must not be before startDate")
        return self


class StatementOut(BaseModel):
    id: int
    loan_id: int
    period_start: date
    period_end: date
    total_expected: float
    total_paid: float
    penalties_applied: float
    outstanding_balance: float
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CreditUpdate(BaseModel):
    credit_limit: Optional[float] = Field(default=None, ge=0)
    credit_score: Optional[int] = Field(default=None, ge=300, le=850)
    risk_category: Optional[Literal["low", "medium", "high"]] = None

    model_config = ConfigDict(extra="forbid")


# ---------- DASHBOARD SCHEMAS ----------
class AdminStats(BaseModel):
    totalUsers: int
    activeUsers: int
    totalTransactions: int
    transactionVolume: float
    pendingKYC: int
    verifiedKYC: int
    defaultRate: float
    collectionRate: float


class ChartPoint(BaseModel):
    name: str
    transactions: int
    volume: float
    users: int


class AdminDashboardStats(BaseModel):
    stats: AdminStats
    chartData: List[ChartPoint]
