"""
Loan Module

Handles loan creation with its amortization schedule, loan queries, and the
lifecycle state machine (close and reopen). Payment allocation lives in
``payments``; both work against the same repository and lock registry.
"""

from datetime import date, datetime, timezone
from typing import Callable, List, Optional, Tuple, Union
import uuid

from .config import EngineConfig, get_config
from .currency import Money
from .emi import calculate_emi, validate_terms
from .exceptions import InvalidLoanTerms, InvalidStateTransition, LoanNotFound, LoanNotFullyPaid
from .locking import LoanLockRegistry
from .logging_config import get_logger, log_action
from .models import Installment, Loan, LoanStatus, LoanTerms, OverdueInstallment
from .repository import LoanRepository
from .schedule import generate_schedule


CLOSABLE_STATES = (LoanStatus.ACTIVE, LoanStatus.OVERDUE)


class LoanManager:
    """
    Manages loans from creation through closure
    """

    def __init__(
        self,
        repository: LoanRepository,
        locks: Optional[LoanLockRegistry] = None,
        config: Optional[EngineConfig] = None,
        today: Optional[Callable[[], date]] = None
    ):
        self.repository = repository
        self.locks = locks or LoanLockRegistry()
        self.config = config or get_config()
        self.today = today or date.today
        self.logger = get_logger("loan_engine.loans")

    def create_loan(self, terms: LoanTerms) -> Tuple[Loan, List[Installment]]:
        """
        Create a loan together with its full installment schedule

        The loan and every installment are written in one unit of work; an
        invalid term or a storage failure leaves nothing behind.

        Args:
            terms: Loan terms

        Returns:
            Tuple of the created Loan and its installments in sequence order

        Raises:
            InvalidLoanTerms: If the terms cannot produce a schedule
        """
        if not terms.customer_id:
            raise InvalidLoanTerms("Customer id is required")

        annual_rate_percent = validate_terms(terms.principal, terms.annual_rate_percent, terms.tenure_periods)
        installment_amount = calculate_emi(terms.principal, annual_rate_percent, terms.tenure_periods)

        now = datetime.now(timezone.utc)
        loan_id = str(uuid.uuid4())
        start_date = terms.start_date or self.today()

        schedule = generate_schedule(
            loan_id=loan_id,
            principal=terms.principal,
            annual_rate_percent=annual_rate_percent,
            tenure_periods=terms.tenure_periods,
            installment_amount=installment_amount,
            start_date=start_date,
            anchor=terms.anchor
        )

        loan = Loan(
            id=loan_id,
            created_at=now,
            updated_at=now,
            loan_number=self._generate_loan_number(loan_id),
            customer_id=terms.customer_id,
            principal=terms.principal,
            annual_rate_percent=annual_rate_percent,
            tenure_periods=terms.tenure_periods,
            anchor=terms.anchor,
            start_date=start_date,
            installment_amount=installment_amount,
            outstanding_principal=terms.principal,
            status=LoanStatus.ACTIVE,
            next_due_date=schedule[0].due_date,
            product_type=terms.product_type
        )

        with self.locks.hold(loan_id), self.repository.atomic():
            self.repository.save_loan(loan)
            for installment in schedule:
                self.repository.save_installment(installment)

        log_action(
            self.logger, "info", f"Loan created: {loan.loan_number}",
            action="create_loan", loan_id=loan.id,
            extra={
                "customer_id": loan.customer_id,
                "principal": loan.principal.to_string(),
                "annual_rate_percent": str(loan.annual_rate_percent),
                "tenure_periods": loan.tenure_periods,
                "frequency": loan.frequency.value,
                "installment_amount": loan.installment_amount.to_string(),
                "first_due_date": loan.next_due_date.isoformat()
            }
        )

        return loan, schedule

    def get_loan(self, loan_id: str) -> Optional[Loan]:
        """Get loan by ID"""
        return self.repository.get_loan(loan_id)

    def require_loan(self, loan_id: str) -> Loan:
        loan = self.repository.get_loan(loan_id)
        if not loan:
            raise LoanNotFound(loan_id)
        return loan

    def get_schedule(self, loan_id: str) -> List[Installment]:
        """Get the installment schedule of a loan ordered by sequence number"""
        self.require_loan(loan_id)
        return self.repository.get_schedule(loan_id)

    def effective_status(self, loan: Loan, today: Optional[date] = None) -> LoanStatus:
        """
        Status as seen by readers: an active loan whose next due date has
        passed reads as OVERDUE. Nothing is written.
        """
        today = today or self.today()
        if (loan.status == LoanStatus.ACTIVE and loan.next_due_date
                and loan.next_due_date < today):
            return LoanStatus.OVERDUE
        return loan.status

    def list_loans(
        self,
        status: Optional[Union[LoanStatus, str]] = None,
        customer_id: Optional[str] = None,
        today: Optional[date] = None
    ) -> List[Loan]:
        """
        List loans, newest first

        Args:
            status: Filter on the effective status (OVERDUE matches projected loans)
            customer_id: Filter on borrower
            today: Reference date for the overdue projection
        """
        filters = {}
        if customer_id:
            filters["customer_id"] = customer_id

        loans = self.repository.find_loans(filters)
        if status is not None:
            status = LoanStatus(status)
            loans = [loan for loan in loans if self.effective_status(loan, today) == status]

        loans.sort(key=lambda x: x.created_at, reverse=True)
        return loans

    def overdue_installments(self, today: Optional[date] = None) -> List[OverdueInstallment]:
        """Pending installments past their due date on open loans, oldest first"""
        today = today or self.today()
        results = []

        for loan in self.repository.find_loans():
            if not loan.is_open:
                continue
            for installment in self.repository.get_pending_installments(loan.id):
                if installment.due_date < today:
                    results.append(OverdueInstallment(
                        loan_id=loan.id,
                        loan_number=loan.loan_number,
                        customer_id=loan.customer_id,
                        installment=installment,
                        days_overdue=(today - installment.due_date).days
                    ))

        results.sort(key=lambda x: (x.installment.due_date, x.loan_number, x.installment.sequence_number))
        return results

    def close_loan(self, loan_id: str) -> Loan:
        """
        Close a fully repaid loan

        Requires no pending installments and an outstanding principal within
        the configured tolerance. The residue is written off to zero.

        Raises:
            LoanNotFound: If the loan does not exist
            InvalidStateTransition: If the loan is not active or overdue
            LoanNotFullyPaid: If dues remain
        """
        with self.locks.hold(loan_id), self.repository.atomic():
            loan = self.require_loan(loan_id)

            if loan.status not in CLOSABLE_STATES:
                self._reject(loan, "close_loan", f"Cannot close a loan in status {loan.status.value}")
                raise InvalidStateTransition(
                    f"Cannot close loan {loan_id} from status {loan.status.value}"
                )

            pending = self.repository.get_pending_installments(loan_id)
            if pending:
                self._reject(loan, "close_loan", f"{len(pending)} pending installments")
                raise LoanNotFullyPaid(
                    f"Cannot close loan {loan_id} while {len(pending)} installments are pending"
                )

            tolerance = self.config.outstanding_tolerance_amount
            if loan.outstanding_principal.amount > tolerance:
                self._reject(loan, "close_loan", "outstanding principal above tolerance")
                raise LoanNotFullyPaid(
                    f"Cannot close loan {loan_id} with outstanding principal "
                    f"{loan.outstanding_principal.to_string()}"
                )

            written_off = loan.outstanding_principal
            loan.status = LoanStatus.CLOSED
            loan.outstanding_principal = Money.zero(loan.currency)
            loan.touch()
            self.repository.save_loan(loan)

        log_action(
            self.logger, "info", f"Loan closed: {loan.loan_number}",
            action="close_loan", loan_id=loan.id,
            extra={"written_off_residue": written_off.to_string()}
        )
        return loan

    def reopen_loan(self, loan_id: str) -> Loan:
        """
        Reopen a closed loan

        Only the status changes; the schedule and balance stay as they were
        at close time.

        Raises:
            LoanNotFound: If the loan does not exist
            InvalidStateTransition: If the loan is not closed
        """
        with self.locks.hold(loan_id), self.repository.atomic():
            loan = self.require_loan(loan_id)

            if loan.status != LoanStatus.CLOSED:
                self._reject(loan, "reopen_loan", f"Cannot reopen a loan in status {loan.status.value}")
                raise InvalidStateTransition(
                    f"Only closed loans can be reopened, loan {loan_id} is {loan.status.value}"
                )

            loan.status = LoanStatus.ACTIVE
            loan.touch()
            self.repository.save_loan(loan)

        log_action(
            self.logger, "info", f"Loan reopened: {loan.loan_number}",
            action="reopen_loan", loan_id=loan.id
        )
        return loan

    def delete_loan(self, loan_id: str) -> None:
        """
        Delete a loan with its payments and schedule

        Raises:
            LoanNotFound: If the loan does not exist
        """
        with self.locks.hold(loan_id), self.repository.atomic():
            self.require_loan(loan_id)

            payments = self.repository.find_payments({"loan_id": loan_id})
            for payment in payments:
                self.repository.delete_payment(payment.id)

            schedule = self.repository.get_schedule(loan_id)
            for installment in schedule:
                self.repository.delete_installment(installment.id)

            self.repository.delete_loan(loan_id)

        log_action(
            self.logger, "info", f"Loan deleted: {loan_id}",
            action="delete_loan", loan_id=loan_id,
            extra={"payments_deleted": len(payments), "installments_deleted": len(schedule)}
        )

    def _generate_loan_number(self, loan_id: str) -> str:
        return f"{self.config.loan_number_prefix}{loan_id.replace('-', '')[:10].upper()}"

    def _reject(self, loan: Loan, action: str, reason: str) -> None:
        log_action(
            self.logger, "warning", f"Rejected {action} for loan {loan.loan_number}: {reason}",
            action=action, loan_id=loan.id,
            extra={"status": loan.status.value,
                   "outstanding_principal": loan.outstanding_principal.to_string()}
        )
