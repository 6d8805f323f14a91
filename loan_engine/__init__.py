"""
Loan Engine

Loan amortization and payment allocation: deterministic installment
schedules, tolerance-based payment allocation and the loan lifecycle, with
proper financial math using Decimal.
"""

__version__ = "1.0.0"
