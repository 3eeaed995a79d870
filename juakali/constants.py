# JUAKALI/backend/juakali/constants.py

# Roles
ROLE_ADMIN = "admin"
ROLE_LENDER = "lender"
ROLE_SUPPLIER = "supplier"
ROLE_RETAILER = "retailer"
ROLE_CUSTOMER = "customer"
ROLES = [ROLE_ADMIN, ROLE_LENDER, ROLE_SUPPLIER, ROLE_RETAILER, ROLE_CUSTOMER]

# Home dashboard of each role
ROLE_HOME = {
    ROLE_ADMIN: "/admin",
    ROLE_LENDER: "/lender",
    ROLE_SUPPLIER: "/supplier",
    ROLE_RETAILER: "/retailer",
    ROLE_CUSTOMER: "/retailer",
}

# OTP
OTP_TYPES = ["email", "sms", "authenticator"]
OTP_PURPOSES = ["registration", "login", "password_reset", "phone_verification"]

# KYC
KYC_PENDING = "pending"
KYC_VERIFIED = "verified"
KYC_REJECTED = "rejected"
KYC_STATUSES = [KYC_PENDING, KYC_VERIFIED, KYC_REJECTED]

# Transactions
TX_PENDING = "pending"
TX_COMPLETED = "completed"
TX_FAILED = "failed"
TX_CANCELLED = "cancelled"
TRANSACTION_STATUSES = [TX_PENDING, TX_COMPLETED, TX_FAILED, TX_CANCELLED]

# Notifications
NOTIFICATION_TYPES = ["payment", "risk", "opportunity", "system"]
NOTIFICATION_PRIORITIES = ["high", "medium", "low"]

# Cash flow
CASHFLOW_TYPES = ["inflow", "outflow", "deposit", "withdrawal", "lending", "repayment"]
CASHFLOW_INFLOW_TYPES = ("inflow", "repayment", "deposit")
CASHFLOW_OUTFLOW_TYPES = ("outflow", "lending", "withdrawal")
CASHFLOW_RANGES = {"7d": 7, "30d": 30, "90d": 90}

# Loans
LOAN_PENDING = "pending"
LOAN_APPROVED = "approved"
LOAN_REJECTED = "rejected"
LOAN_ACTIVE = "active"
LOAN_REPAYING = "repaying"
LOAN_COMPLETED = "completed"
LOAN_DEFAULTED = "defaulted"
LOAN_RECOVERY = "recovery"
LOAN_STATUSES = [LOAN_PENDING, LOAN_APPROVED, LOAN_REJECTED, LOAN_ACTIVE, LOAN_REPAYING,
                 LOAN_COMPLETED, LOAN_DEFAULTED, LOAN_RECOVERY]
# Statuses a loan may move to from each status
LOAN_TRANSITIONS = {
    LOAN_PENDING: {LOAN_APPROVED, LOAN_REJECTED},
    LOAN_APPROVED: {LOAN_ACTIVE, LOAN_REJECTED},
    LOAN_ACTIVE: {LOAN_REPAYING, LOAN_COMPLETED, LOAN_DEFAULTED, LOAN_RECOVERY},
    LOAN_REPAYING: {LOAN_COMPLETED, LOAN_DEFAULTED, LOAN_RECOVERY},
    LOAN_RECOVERY: {LOAN_REPAYING, LOAN_COMPLETED, LOAN_DEFAULTED},
    LOAN_DEFAULTED: {LOAN_RECOVERY},
    LOAN_REJECTED: set(),
    LOAN_COMPLETED: set(),
}
# Statuses in which the principal is out with the borrower
LOAN_OPEN_STATUSES = (LOAN_ACTIVE, LOAN_REPAYING, LOAN_RECOVERY, LOAN_DEFAULTED)
DEFAULT_DAILY_INTEREST_RATE = 0.05
MISSED_PAYMENT_PENALTY = 0.05
DELIVERY_CONFIRMATION_TYPES = ["pin", "qr", "invoice"]
ESCALATION_TYPES = ["recovery", "legal", "insurance"]
REPAYMENT_METHODS = ["mpesa", "bank_transfer", "mobile_wallet", "cash"]

# Inventory
MOVEMENT_TYPES = ["in", "out", "adjustment", "transfer"]

# Banks
SUPPORTED_BANKS = {
    "absa": {"name": "ABSA Bank Kenya", "logo": "/images/banks/absa.png", "processing_fee": 0.025},
    "equity": {"name": "Equity Bank", "logo": "/images/banks/equity.png", "processing_fee": 0.020},
    "kcb": {"name": "KCB Bank", "logo": "/images/banks/kcb.png", "processing_fee": 0.022},
}

CURRENCY = "KES"
COUNTRY_CODE = "254"

# Limits
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
KYC_QUEUE_LIMIT = 50
ACCESS_LOG_LIMIT = 100
DEFAULT_CREDIT_SCORE = 500

MONTHS_SHORT = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
