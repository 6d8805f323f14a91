"""
Loan Repository

Maps loans, installments and payments to storage records. The engine
components receive one repository instance; it owns no global state and
hands transactions through to the underlying storage backend.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from .currency import Currency, Money
from .due_dates import anchor_from_frequency
from .models import (
    Installment, InstallmentStatus, Loan, LoanStatus, Payment, PaymentMode
)
from .storage import StorageInterface


def _money_to_dict(result: Dict[str, Any], name: str, money: Money) -> None:
    result[f'{name}_amount'] = str(money.amount)
    result[f'{name}_currency'] = money.currency.code


def _money_from_dict(data: Dict[str, Any], name: str) -> Money:
    return Money(Decimal(data[f'{name}_amount']), Currency[data[f'{name}_currency']])


def _date_or_none(value: Optional[str]) -> Optional[date]:
    if value:
        return date.fromisoformat(value)
    return None


def _iso_or_none(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


class LoanRepository:
    """Persistence for the loan aggregate"""

    loans_table = "loans"
    installments_table = "installments"
    payments_table = "payments"

    def __init__(self, storage: StorageInterface):
        self.storage = storage

    def atomic(self):
        """Unit of work spanning every table"""
        return self.storage.atomic()

    # Loans

    def save_loan(self, loan: Loan) -> None:
        self.storage.save(self.loans_table, loan.id, self._loan_to_dict(loan))

    def get_loan(self, loan_id: str) -> Optional[Loan]:
        data = self.storage.load(self.loans_table, loan_id)
        if data:
            return self._loan_from_dict(data)
        return None

    def find_loans(self, filters: Optional[Dict[str, Any]] = None) -> List[Loan]:
        return [self._loan_from_dict(data) for data in self.storage.find(self.loans_table, filters or {})]

    def delete_loan(self, loan_id: str) -> bool:
        return self.storage.delete(self.loans_table, loan_id)

    # Installments

    def save_installment(self, installment: Installment) -> None:
        self.storage.save(self.installments_table, installment.id, self._installment_to_dict(installment))

    def get_schedule(self, loan_id: str) -> List[Installment]:
        """All installments of a loan ordered by sequence number"""
        rows = self.storage.find(self.installments_table, {"loan_id": loan_id})
        schedule = [self._installment_from_dict(data) for data in rows]
        schedule.sort(key=lambda x: x.sequence_number)
        return schedule

    def get_pending_installments(self, loan_id: str) -> List[Installment]:
        return [i for i in self.get_schedule(loan_id) if i.is_pending]

    def find_installments(self, filters: Dict[str, Any]) -> List[Installment]:
        return [self._installment_from_dict(data) for data in self.storage.find(self.installments_table, filters)]

    def delete_installment(self, installment_id: str) -> bool:
        return self.storage.delete(self.installments_table, installment_id)

    # Payments

    def save_payment(self, payment: Payment) -> None:
        self.storage.save(self.payments_table, payment.id, self._payment_to_dict(payment))

    def get_payment(self, payment_id: str) -> Optional[Payment]:
        data = self.storage.load(self.payments_table, payment_id)
        if data:
            return self._payment_from_dict(data)
        return None

    def find_payments(self, filters: Optional[Dict[str, Any]] = None) -> List[Payment]:
        return [self._payment_from_dict(data) for data in self.storage.find(self.payments_table, filters or {})]

    def delete_payment(self, payment_id: str) -> bool:
        return self.storage.delete(self.payments_table, payment_id)

    # Conversions

    def _loan_to_dict(self, loan: Loan) -> Dict[str, Any]:
        result = {
            'id': loan.id,
            'created_at': loan.created_at.isoformat(),
            'updated_at': loan.updated_at.isoformat(),
            'loan_number': loan.loan_number,
            'customer_id': loan.customer_id,
            'annual_rate_percent': str(loan.annual_rate_percent),
            'tenure_periods': loan.tenure_periods,
            'frequency': loan.frequency.value,
            'anchor_day': loan.anchor.anchor_day,
            'start_date': loan.start_date.isoformat(),
            'status': loan.status.value,
            'next_due_date': _iso_or_none(loan.next_due_date),
            'product_type': loan.product_type
        }
        for name in ('principal', 'installment_amount', 'outstanding_principal'):
            _money_to_dict(result, name, getattr(loan, name))
        return result

    def _loan_from_dict(self, data: Dict[str, Any]) -> Loan:
        return Loan(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            loan_number=data['loan_number'],
            customer_id=data['customer_id'],
            principal=_money_from_dict(data, 'principal'),
            annual_rate_percent=Decimal(data['annual_rate_percent']),
            tenure_periods=data['tenure_periods'],
            anchor=anchor_from_frequency(data['frequency'], data['anchor_day']),
            start_date=date.fromisoformat(data['start_date']),
            installment_amount=_money_from_dict(data, 'installment_amount'),
            outstanding_principal=_money_from_dict(data, 'outstanding_principal'),
            status=LoanStatus(data['status']),
            next_due_date=_date_or_none(data.get('next_due_date')),
            product_type=data.get('product_type')
        )

    def _installment_to_dict(self, installment: Installment) -> Dict[str, Any]:
        result = {
            'id': installment.id,
            'loan_id': installment.loan_id,
            'sequence_number': installment.sequence_number,
            'due_date': installment.due_date.isoformat(),
            'status': installment.status.value,
            'paid_date': _iso_or_none(installment.paid_date)
        }
        for name in ('principal_component', 'interest_component', 'installment_amount', 'paid_amount'):
            _money_to_dict(result, name, getattr(installment, name))
        return result

    def _installment_from_dict(self, data: Dict[str, Any]) -> Installment:
        return Installment(
            id=data['id'],
            loan_id=data['loan_id'],
            sequence_number=data['sequence_number'],
            due_date=date.fromisoformat(data['due_date']),
            principal_component=_money_from_dict(data, 'principal_component'),
            interest_component=_money_from_dict(data, 'interest_component'),
            installment_amount=_money_from_dict(data, 'installment_amount'),
            status=InstallmentStatus(data['status']),
            paid_amount=_money_from_dict(data, 'paid_amount'),
            paid_date=_date_or_none(data.get('paid_date'))
        )

    def _payment_to_dict(self, payment: Payment) -> Dict[str, Any]:
        result = {
            'id': payment.id,
            'created_at': payment.created_at.isoformat(),
            'updated_at': payment.updated_at.isoformat(),
            'loan_id': payment.loan_id,
            'payment_date': payment.payment_date.isoformat(),
            'mode': payment.mode.value,
            'reference': payment.reference,
            'notes': payment.notes,
            'installment_id': payment.installment_id
        }
        _money_to_dict(result, 'amount', payment.amount)
        return result

    def _payment_from_dict(self, data: Dict[str, Any]) -> Payment:
        return Payment(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            loan_id=data['loan_id'],
            amount=_money_from_dict(data, 'amount'),
            payment_date=date.fromisoformat(data['payment_date']),
            mode=PaymentMode(data['mode']),
            reference=data.get('reference'),
            notes=data.get('notes'),
            installment_id=data.get('installment_id')
        )
