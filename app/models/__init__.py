from app.models.company import Company
from app.models.affiliate import Affiliate, AccountStatus
from app.models.product import Product, CommissionType, DiscountType
from app.models.partnership import Partnership, PartnershipStatus
from app.models.purchase import Purchase, PurchaseStatus, PurchasePaymentMethod
from app.models.lead import Lead, LeadType
from app.models.commission import Commission, CommissionStatus, CompanyCommissionStatus
from app.models.company_payment import CompanyCommissionPayment, CompanyPaymentStatus
from app.models.payout_preference import PayoutPreference
from app.models.payout import Payout, PayoutStatus
from app.models.payout_lock import PayoutLock
from app.models.audit_log import AuditLog

__all__ = [
    "Company",
    "Affiliate",
    "AccountStatus",
    "Product",
    "CommissionType",
    "DiscountType",
    "Partnership",
    "PartnershipStatus",
    "Purchase",
    "PurchaseStatus",
    "PurchasePaymentMethod",
    "Lead",
    "LeadType",
    "Commission",
    "CommissionStatus",
    "CompanyCommissionStatus",
    "CompanyCommissionPayment",
    "CompanyPaymentStatus",
    "PayoutPreference",
    "Payout",
    "PayoutStatus",
    "PayoutLock",
    "AuditLog",
]
