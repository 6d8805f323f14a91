"""
EMI Module

Equated installment calculation on a reducing balance. The periodic rate is
always derived monthly (annual percent / 100 / 12) whatever the repayment
frequency; weekly and daily loans only differ in how due dates advance.
"""

from decimal import Decimal

from .currency import Money, to_decimal
from .exceptions import InvalidLoanTerms


MONTHS_PER_YEAR = Decimal('12')
HUNDRED = Decimal('100')


def monthly_rate(annual_rate_percent: Decimal) -> Decimal:
    """Convert an annual percentage (e.g. 12 for 12%) to the periodic rate"""
    return annual_rate_percent / HUNDRED / MONTHS_PER_YEAR


def validate_terms(principal: Money, annual_rate_percent: Decimal, tenure_periods: int) -> Decimal:
    """
    Validate the numeric loan terms

    Returns:
        The annual rate as a Decimal; whole-number rates may be given as int

    Raises:
        InvalidLoanTerms: If principal is not positive, the rate is negative
            or the tenure is not a positive whole number of periods
    """
    if not principal.is_positive():
        raise InvalidLoanTerms(f"Principal must be positive, got {principal.to_string()}")
    if isinstance(annual_rate_percent, bool) or not isinstance(annual_rate_percent, (Decimal, int)):
        raise InvalidLoanTerms(f"Annual rate must be a Decimal or int, got {annual_rate_percent!r}")
    try:
        rate = to_decimal(annual_rate_percent)
    except ValueError:
        raise InvalidLoanTerms(f"Annual rate must be finite, got {annual_rate_percent!r}")
    if rate < 0:
        raise InvalidLoanTerms(f"Annual rate cannot be negative, got {rate}")
    if isinstance(tenure_periods, bool) or not isinstance(tenure_periods, int) or tenure_periods < 1:
        raise InvalidLoanTerms(f"Tenure must be at least one period, got {tenure_periods!r}")
    return rate


def calculate_emi(principal: Money, annual_rate_percent: Decimal, tenure_periods: int) -> Money:
    """
    Calculate the fixed installment amount

    Standard reducing-balance formula: P * r * (1+r)^n / ((1+r)^n - 1).
    A zero rate makes the formula 0/0, so it falls back to P / n.

    Args:
        principal: Amount lent
        annual_rate_percent: Annual interest rate in percent
        tenure_periods: Number of installments

    Returns:
        Installment amount rounded to the currency's minor unit

    Raises:
        InvalidLoanTerms: If the terms are invalid
    """
    rate = monthly_rate(validate_terms(principal, annual_rate_percent, tenure_periods))
    if rate == 0:
        emi = principal / tenure_periods
    else:
        factor = (Decimal('1') + rate) ** tenure_periods
        emi = Money(principal.amount * rate * factor / (factor - Decimal('1')), principal.currency)

    if not emi.is_positive():
        raise InvalidLoanTerms(
            f"Principal {principal.to_string()} is too small to spread over {tenure_periods} periods"
        )
    return emi
