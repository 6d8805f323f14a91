"""
Loan Engine Data Model

Loans, their installment schedules and the payments allocated against them.
Money fields are Money (Decimal at minor-unit precision); rates are Decimal.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from .currency import Money
from .due_dates import RepaymentAnchor, RepaymentFrequency
from .storage import StorageRecord


class LoanStatus(Enum):
    """Loan lifecycle states"""
    ACTIVE = "active"
    OVERDUE = "overdue"    # Projected at read time, never written by the engine
    CLOSED = "closed"
    DEFAULT = "default"    # Set externally only


class InstallmentStatus(Enum):
    """Schedule row states"""
    PENDING = "pending"
    PAID = "paid"
    SKIPPED = "skipped"


class PaymentMode(Enum):
    """How a payment was received"""
    CASH = "cash"
    UPI = "upi"
    BANK = "bank"
    CHEQUE = "cheque"


@dataclass
class LoanTerms:
    """Loan terms supplied at creation"""
    customer_id: str
    principal: Money
    annual_rate_percent: Decimal        # e.g. Decimal('12') for 12% p.a.
    tenure_periods: int                 # Number of installments
    anchor: RepaymentAnchor
    start_date: Optional[date] = None   # Defaults to today at creation
    product_type: Optional[str] = None

    @property
    def frequency(self) -> RepaymentFrequency:
        return self.anchor.frequency


@dataclass
class Loan(StorageRecord):
    """Loan with its derived installment amount and running balance"""
    loan_number: str
    customer_id: str
    principal: Money
    annual_rate_percent: Decimal
    tenure_periods: int
    anchor: RepaymentAnchor
    start_date: date
    installment_amount: Money
    outstanding_principal: Money
    status: LoanStatus = LoanStatus.ACTIVE
    next_due_date: Optional[date] = None
    product_type: Optional[str] = None

    @property
    def frequency(self) -> RepaymentFrequency:
        return self.anchor.frequency

    @property
    def currency(self):
        return self.principal.currency

    @property
    def display_outstanding(self) -> Money:
        """Outstanding principal clamped at zero for presentation"""
        if self.outstanding_principal.is_negative():
            return Money.zero(self.currency)
        return self.outstanding_principal

    @property
    def is_open(self) -> bool:
        return self.status in (LoanStatus.ACTIVE, LoanStatus.OVERDUE)


@dataclass
class Installment:
    """One row of a loan's amortization schedule"""
    id: str
    loan_id: str
    sequence_number: int
    due_date: date
    principal_component: Money
    interest_component: Money
    installment_amount: Money
    status: InstallmentStatus = InstallmentStatus.PENDING
    paid_amount: Money = None
    paid_date: Optional[date] = None

    def __post_init__(self):
        if self.paid_amount is None:
            self.paid_amount = Money.zero(self.installment_amount.currency)

    @property
    def pending_amount(self) -> Money:
        return self.installment_amount - self.paid_amount

    @property
    def is_pending(self) -> bool:
        return self.status == InstallmentStatus.PENDING

    @property
    def principal_ratio(self) -> Decimal:
        """Share of this installment that repays principal"""
        return self.principal_component.ratio_to(self.installment_amount)


@dataclass
class Payment(StorageRecord):
    """Immutable record of money received against a loan"""
    loan_id: str
    amount: Money
    payment_date: date
    mode: PaymentMode
    reference: Optional[str] = None
    notes: Optional[str] = None
    installment_id: Optional[str] = None  # First installment the payment touched


@dataclass
class AllocationResult:
    """Outcome of allocating one payment"""
    payment_id: str
    loan: Loan
    updated_installments: List[Installment] = field(default_factory=list)
    new_next_due_date: Optional[date] = None
    unapplied_amount: Optional[Money] = None

    @property
    def fully_applied(self) -> bool:
        return self.unapplied_amount is None or self.unapplied_amount.is_zero()


@dataclass
class OverdueInstallment:
    """A pending installment past its due date"""
    loan_id: str
    loan_number: str
    customer_id: str
    installment: Installment
    days_overdue: int
