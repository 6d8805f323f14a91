"""Exception hierarchy for the loan engine.

Every engine error is local and recoverable. They subclass ValueError so
callers that already guard engine calls with ``except ValueError`` keep
working.
"""


class LoanEngineError(ValueError):
    """Base exception for all loan engine errors."""


class InvalidLoanTerms(LoanEngineError):
    """Raised when loan terms cannot produce a schedule."""


class InvalidPayment(LoanEngineError):
    """Raised when a payment amount or mode is unusable."""


class LoanNotFound(LoanEngineError):
    """Raised when a loan id does not exist in the store."""

    def __init__(self, loan_id: str):
        super().__init__(f"Loan {loan_id} not found")
        self.loan_id = loan_id


class NoPendingInstallments(LoanEngineError):
    """Raised when a payment is allocated to a loan with nothing owed."""


class PaymentExceedsDues(LoanEngineError):
    """Raised when overpayment rejection is enabled and a payment exceeds pending dues."""


class LoanNotFullyPaid(LoanEngineError):
    """Raised when closing a loan that still has pending dues."""


class InvalidStateTransition(LoanEngineError):
    """Raised when a lifecycle transition is not allowed from the current status."""
