"""
Pydantic schemas for API requests and responses
"""

from datetime import date
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from ..currency import Currency, Money, to_decimal
from ..due_dates import anchor_from_frequency
from ..exceptions import InvalidLoanTerms, InvalidPayment
from ..models import Installment, Loan, LoanStatus, LoanTerms, OverdueInstallment, Payment


class MoneyModel(BaseModel):
    amount: str = Field(..., description="Decimal amount as string")
    currency: str = Field(..., description="Currency code (INR, USD, etc.)")

    @classmethod
    def from_money(cls, money: Money) -> 'MoneyModel':
        return cls(amount=str(money.amount), currency=money.currency.code)


def _parse_currency(code: str) -> Currency:
    try:
        return Currency[code.upper()]
    except KeyError:
        raise ValueError(f"Unsupported currency: {code}")


def _parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    return date.fromisoformat(value)


class CreateLoanRequest(BaseModel):
    customer_id: str
    principal: str = Field(..., description="Decimal amount as string")
    currency: Optional[str] = Field(None, description="Currency code, defaults to the configured currency")
    annual_rate_percent: str = Field(..., description="Annual rate in percent, e.g. '12' for 12%")
    tenure_periods: int = Field(..., description="Number of installments")
    frequency: str = Field("monthly", description="monthly, weekly or daily")
    anchor_day: int = Field(..., description="Day of month, weekday (0=Sunday) or interval in days")
    start_date: Optional[str] = None  # ISO date string
    product_type: Optional[str] = None

    def to_loan_terms(self, default_currency: str) -> LoanTerms:
        try:
            currency = _parse_currency(self.currency or default_currency)
            principal = Money(to_decimal(self.principal), currency)
            rate = to_decimal(self.annual_rate_percent)
            start_date = _parse_date(self.start_date)
        except ValueError as e:
            raise InvalidLoanTerms(str(e))

        return LoanTerms(
            customer_id=self.customer_id,
            principal=principal,
            annual_rate_percent=rate,
            tenure_periods=self.tenure_periods,
            anchor=anchor_from_frequency(self.frequency, self.anchor_day),
            start_date=start_date,
            product_type=self.product_type
        )


class PaymentRequest(BaseModel):
    amount: str = Field(..., description="Decimal amount as string")
    payment_date: Optional[str] = None  # ISO date string, defaults to today
    mode: str = Field("cash", description="cash, upi, bank or cheque")
    reference: Optional[str] = None
    notes: Optional[str] = None

    def parsed_amount(self, currency: Currency) -> Money:
        try:
            return Money(to_decimal(self.amount), currency)
        except ValueError as e:
            raise InvalidPayment(str(e))

    def parsed_date(self) -> Optional[date]:
        try:
            return _parse_date(self.payment_date)
        except ValueError as e:
            raise InvalidPayment(str(e))


def money_dict(money: Optional[Money]) -> Optional[Dict[str, str]]:
    if money is None:
        return None
    return MoneyModel.from_money(money).model_dump()


def loan_response(loan: Loan, status: LoanStatus) -> Dict[str, Any]:
    return {
        "id": loan.id,
        "loan_number": loan.loan_number,
        "customer_id": loan.customer_id,
        "status": status.value,
        "principal": money_dict(loan.principal),
        "annual_rate_percent": str(loan.annual_rate_percent),
        "tenure_periods": loan.tenure_periods,
        "frequency": loan.frequency.value,
        "anchor_day": loan.anchor.anchor_day,
        "start_date": loan.start_date.isoformat(),
        "installment_amount": money_dict(loan.installment_amount),
        "outstanding_principal": money_dict(loan.display_outstanding),
        "next_due_date": loan.next_due_date.isoformat() if loan.next_due_date else None,
        "product_type": loan.product_type
    }


def installment_response(installment: Installment) -> Dict[str, Any]:
    return {
        "id": installment.id,
        "sequence_number": installment.sequence_number,
        "due_date": installment.due_date.isoformat(),
        "principal_component": money_dict(installment.principal_component),
        "interest_component": money_dict(installment.interest_component),
        "installment_amount": money_dict(installment.installment_amount),
        "status": installment.status.value,
        "paid_amount": money_dict(installment.paid_amount),
        "paid_date": installment.paid_date.isoformat() if installment.paid_date else None
    }


def payment_response(payment: Payment) -> Dict[str, Any]:
    return {
        "id": payment.id,
        "loan_id": payment.loan_id,
        "amount": money_dict(payment.amount),
        "payment_date": payment.payment_date.isoformat(),
        "mode": payment.mode.value,
        "reference": payment.reference,
        "notes": payment.notes,
        "installment_id": payment.installment_id
    }


def overdue_response(overdue: OverdueInstallment) -> Dict[str, Any]:
    return {
        "loan_id": overdue.loan_id,
        "loan_number": overdue.loan_number,
        "customer_id": overdue.customer_id,
        "days_overdue": overdue.days_overdue,
        "installment": installment_response(overdue.installment)
    }
