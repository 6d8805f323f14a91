"""
Engine wiring and FastAPI dependencies
"""

from datetime import date
from typing import Callable, Optional

from fastapi import HTTPException

from ..config import EngineConfig, get_config
from ..exceptions import (
    InvalidStateTransition, LoanEngineError, LoanNotFound, LoanNotFullyPaid,
    NoPendingInstallments, PaymentExceedsDues
)
from ..loans import LoanManager
from ..locking import LoanLockRegistry
from ..payments import PaymentAllocator
from ..repository import LoanRepository
from ..storage import StorageInterface, create_storage


class LoanSystem:
    """Loan engine with all components sharing one store and lock registry"""

    def __init__(
        self,
        storage: Optional[StorageInterface] = None,
        config: Optional[EngineConfig] = None,
        today: Optional[Callable[[], date]] = None
    ):
        self.config = config or get_config()
        self.storage = storage or create_storage(self.config.database_url)
        self.repository = LoanRepository(self.storage)
        self.locks = LoanLockRegistry()
        self.loan_manager = LoanManager(self.repository, self.locks, self.config, today)
        self.payment_allocator = PaymentAllocator(self.repository, self.locks, self.config)

    def close(self) -> None:
        self.storage.close()


_loan_system: Optional[LoanSystem] = None


def get_loan_system() -> LoanSystem:
    """Dependency returning the process-wide loan system, created on first use"""
    global _loan_system
    if _loan_system is None:
        _loan_system = LoanSystem()
    return _loan_system


CONFLICT_ERRORS = (InvalidStateTransition, LoanNotFullyPaid, NoPendingInstallments, PaymentExceedsDues)


def http_error(error: Exception) -> HTTPException:
    """Translate an engine error into an HTTP error"""
    if isinstance(error, LoanNotFound):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, CONFLICT_ERRORS):
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, (LoanEngineError, ValueError, KeyError)):
        return HTTPException(status_code=400, detail=str(error))
    return HTTPException(status_code=500, detail="Internal error")
