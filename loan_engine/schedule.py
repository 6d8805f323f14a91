"""
Schedule Generation

Materializes a loan's installments on a reducing balance. Interest for each
period is charged on the principal still outstanding after the previous
installments; the rest of the fixed installment repays principal.

The installment amount is rounded to the minor unit and that error grows
with every period. The final row absorbs it: its principal is whatever is
still outstanding and its interest is the rest of the installment, so the
principal components always sum to the principal.
"""

from datetime import date
from decimal import Decimal
from typing import List

from .currency import Money
from .due_dates import RepaymentAnchor, due_date
from .emi import monthly_rate, validate_terms
from .models import Installment


def installment_id(loan_id: str, sequence_number: int) -> str:
    return f"{loan_id}_{sequence_number}"


def generate_schedule(
    loan_id: str,
    principal: Money,
    annual_rate_percent: Decimal,
    tenure_periods: int,
    installment_amount: Money,
    start_date: date,
    anchor: RepaymentAnchor
) -> List[Installment]:
    """
    Generate the ordered installment rows for a loan

    Args:
        loan_id: Owning loan
        principal: Amount lent
        annual_rate_percent: Annual interest rate in percent
        tenure_periods: Number of installments
        installment_amount: Fixed installment from calculate_emi
        start_date: Date due dates are sequenced from
        anchor: Repayment anchor

    Returns:
        Installments numbered 1..tenure_periods in due-date order

    Raises:
        InvalidLoanTerms: If the terms are invalid
    """
    rate = monthly_rate(validate_terms(principal, annual_rate_percent, tenure_periods))
    remaining_principal = principal
    schedule = []

    for sequence_number in range(1, tenure_periods + 1):
        if sequence_number < tenure_periods:
            interest_component = remaining_principal * rate
            principal_component = installment_amount - interest_component
        else:
            principal_component = remaining_principal
            interest_component = max(installment_amount - principal_component, Money.zero(principal.currency))
        remaining_principal = remaining_principal - principal_component

        schedule.append(Installment(
            id=installment_id(loan_id, sequence_number),
            loan_id=loan_id,
            sequence_number=sequence_number,
            due_date=due_date(start_date, anchor, sequence_number),
            principal_component=principal_component,
            interest_component=interest_component,
            installment_amount=installment_amount
        ))

    return schedule
