"""Pytest configuration and fixtures."""

from datetime import date
from decimal import Decimal

import pytest

from loan_engine.api.dependencies import LoanSystem
from loan_engine.config import EngineConfig
from loan_engine.currency import Currency, Money
from loan_engine.due_dates import MonthlyAnchor
from loan_engine.models import LoanTerms
from loan_engine.storage import InMemoryStorage


TODAY = date(2024, 1, 15)


def inr(amount: str) -> Money:
    return Money(Decimal(amount), Currency.INR)


def make_terms(
    principal: str = "12000.00",
    rate: str = "12",
    tenure: int = 12,
    anchor=None,
    start_date: date = TODAY,
    customer_id: str = "cust-test-001"
) -> LoanTerms:
    return LoanTerms(
        customer_id=customer_id,
        principal=inr(principal),
        annual_rate_percent=Decimal(rate),
        tenure_periods=tenure,
        anchor=anchor or MonthlyAnchor(5),
        start_date=start_date
    )


class FailingStorage(InMemoryStorage):
    """In-memory storage that raises on the n-th save into one table."""

    def __init__(self, table: str, fail_on: int):
        super().__init__()
        self.table = table
        self.fail_on = fail_on
        self.saves = 0

    def save(self, table, record_id, data):
        if table == self.table:
            self.saves += 1
            if self.saves == self.fail_on:
                raise RuntimeError("disk full")
        super().save(table, record_id, data)


@pytest.fixture
def config() -> EngineConfig:
    """Engine configuration with default business rules."""
    return EngineConfig(database_url="memory://", currency="INR")


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def system(storage, config) -> LoanSystem:
    """Loan system on in-memory storage with a fixed clock."""
    return LoanSystem(storage=storage, config=config, today=lambda: TODAY)


@pytest.fixture
def manager(system):
    return system.loan_manager


@pytest.fixture
def allocator(system):
    return system.payment_allocator


@pytest.fixture
def emi_loan(manager):
    """12000 at 12% over 12 monthly installments on the 5th."""
    return manager.create_loan(make_terms())


@pytest.fixture
def flat_loan(manager):
    """Zero-rate 12000 over 12 months: every installment is exactly 1000."""
    return manager.create_loan(make_terms(rate="0"))
