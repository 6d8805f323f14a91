"""
Payment Allocation Module

Spreads an incoming payment over a loan's pending installments in sequence
order under the rounding-tolerance policy:

- A payment within the rounding tolerance of what an installment still owes
  settles that installment in full. A small shortfall is forgiven; a small
  excess carries into the next installment.
- Otherwise the installment receives ``min(remaining, owed)`` and becomes
  paid only when nothing is left owing.
- Principal is reduced by the allocated amount times the installment's own
  principal share, never below zero.

The payment insert, every installment update and the loan update commit as
one unit of work.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional, Union
import uuid

from .config import EngineConfig, get_config
from .currency import Money
from .exceptions import InvalidPayment, LoanNotFound, NoPendingInstallments, PaymentExceedsDues
from .locking import LoanLockRegistry
from .logging_config import get_logger, log_action
from .models import (
    AllocationResult, Installment, InstallmentStatus, Loan, Payment, PaymentMode
)
from .repository import LoanRepository


class PaymentAllocator:
    """
    Allocates payments against loan schedules
    """

    def __init__(
        self,
        repository: LoanRepository,
        locks: Optional[LoanLockRegistry] = None,
        config: Optional[EngineConfig] = None
    ):
        self.repository = repository
        self.locks = locks or LoanLockRegistry()
        self.config = config or get_config()
        self.logger = get_logger("loan_engine.payments")

    @property
    def rounding_tolerance(self) -> Decimal:
        return self.config.rounding_tolerance_amount

    @property
    def paid_epsilon(self) -> Decimal:
        return self.config.paid_epsilon_amount

    def allocate_payment(
        self,
        loan_id: str,
        amount: Money,
        payment_date: date,
        mode: Union[PaymentMode, str],
        reference: Optional[str] = None,
        notes: Optional[str] = None
    ) -> AllocationResult:
        """
        Record a payment and allocate it across pending installments

        Args:
            loan_id: Loan being repaid
            amount: Payment amount, must be positive
            payment_date: Date the money was received; becomes paid_date of
                installments it settles
            mode: Payment mode
            reference: External reference number
            notes: Free text

        Returns:
            AllocationResult with the touched installments and new next due date

        Raises:
            InvalidPayment: If the amount or mode is unusable
            LoanNotFound: If the loan does not exist
            NoPendingInstallments: If nothing is owed on the loan
            PaymentExceedsDues: If overpayment rejection is enabled and the
                amount exceeds pending dues beyond the rounding tolerance
        """
        if not isinstance(amount, Money) or not amount.is_positive():
            raise InvalidPayment(f"Payment amount must be a positive Money value, got {amount!r}")
        try:
            mode = PaymentMode(mode)
        except ValueError:
            raise InvalidPayment(f"Unknown payment mode: {mode}")

        with self.locks.hold(loan_id), self.repository.atomic():
            loan = self.repository.get_loan(loan_id)
            if not loan:
                raise LoanNotFound(loan_id)

            if amount.currency != loan.currency:
                raise InvalidPayment(
                    f"Payment currency {amount.currency.code} does not match loan currency {loan.currency.code}"
                )

            pending = self.repository.get_pending_installments(loan_id)
            if not pending:
                raise NoPendingInstallments(f"No pending installments found for loan {loan_id}")

            if self.config.reject_overpayment:
                self._check_overpayment(loan, pending, amount)

            now = datetime.now(timezone.utc)
            payment = Payment(
                id=str(uuid.uuid4()),
                created_at=now,
                updated_at=now,
                loan_id=loan_id,
                amount=amount,
                payment_date=payment_date,
                mode=mode,
                reference=reference,
                notes=notes,
                installment_id=pending[0].id
            )
            self.repository.save_payment(payment)

            remaining = amount
            updated = []
            for installment in pending:
                if not remaining.is_positive():
                    break
                remaining = self._apply(loan, installment, remaining, payment_date)
                self.repository.save_installment(installment)
                updated.append(installment)

            still_pending = [i.due_date for i in pending if i.is_pending]
            loan.next_due_date = min(still_pending) if still_pending else None
            loan.touch()
            self.repository.save_loan(loan)

        unapplied = remaining if remaining.is_positive() else Money.zero(amount.currency)

        log_action(
            self.logger, "info", f"Payment allocated to loan {loan.loan_number}",
            action="allocate_payment", loan_id=loan.id,
            extra={
                "payment_id": payment.id,
                "amount": amount.to_string(),
                "mode": mode.value,
                "installments": [i.sequence_number for i in updated],
                "outstanding_principal": loan.outstanding_principal.to_string(),
                "next_due_date": loan.next_due_date.isoformat() if loan.next_due_date else None
            }
        )
        if unapplied.is_positive():
            log_action(
                self.logger, "warning",
                f"Payment {payment.id} exceeded pending dues; {unapplied.to_string()} left unapplied",
                action="allocate_payment", loan_id=loan.id,
                extra={"payment_id": payment.id, "unapplied_amount": unapplied.to_string()}
            )

        return AllocationResult(
            payment_id=payment.id,
            loan=loan,
            updated_installments=updated,
            new_next_due_date=loan.next_due_date,
            unapplied_amount=unapplied
        )

    def _apply(self, loan: Loan, installment: Installment, remaining: Money, payment_date: date) -> Money:
        """Allocate to one installment; returns what is left of the payment"""
        owed = installment.pending_amount

        if abs(remaining - owed).amount <= self.rounding_tolerance:
            allocated = owed
        else:
            allocated = min(remaining, owed)

        new_paid = installment.paid_amount + allocated
        if (installment.installment_amount - new_paid).amount < self.paid_epsilon:
            installment.paid_amount = installment.installment_amount
            installment.status = InstallmentStatus.PAID
            installment.paid_date = payment_date
        else:
            installment.paid_amount = new_paid

        principal_reduction = allocated * installment.principal_ratio
        outstanding = loan.outstanding_principal - principal_reduction
        if outstanding.is_negative():
            outstanding = Money.zero(loan.currency)
        loan.outstanding_principal = outstanding

        # A forgiven shortfall allocates more than was paid
        if allocated > remaining:
            return Money.zero(remaining.currency)
        return remaining - allocated

    def _check_overpayment(self, loan: Loan, pending: List[Installment], amount: Money) -> None:
        total_due = Money.zero(loan.currency)
        for installment in pending:
            total_due = total_due + installment.pending_amount

        if (amount - total_due).amount > self.rounding_tolerance:
            log_action(
                self.logger, "warning", f"Rejected overpayment on loan {loan.loan_number}",
                action="allocate_payment", loan_id=loan.id,
                extra={"amount": amount.to_string(), "total_due": total_due.to_string()}
            )
            raise PaymentExceedsDues(
                f"Payment {amount.to_string()} exceeds pending dues {total_due.to_string()} on loan {loan.id}"
            )

    def get_payment(self, payment_id: str) -> Optional[Payment]:
        """Get payment by ID"""
        return self.repository.get_payment(payment_id)

    def list_payments(
        self,
        loan_id: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        mode: Optional[Union[PaymentMode, str]] = None
    ) -> List[Payment]:
        """
        List payments, most recent first

        Args:
            loan_id: Only payments for this loan
            date_from: Inclusive lower bound on payment date
            date_to: Inclusive upper bound on payment date
            mode: Only payments received in this mode
        """
        filters = {}
        if loan_id:
            filters["loan_id"] = loan_id
        if mode:
            filters["mode"] = PaymentMode(mode).value

        payments = self.repository.find_payments(filters)
        if date_from:
            payments = [p for p in payments if p.payment_date >= date_from]
        if date_to:
            payments = [p for p in payments if p.payment_date <= date_to]

        payments.sort(key=lambda x: (x.payment_date, x.created_at), reverse=True)
        return payments
