"""
Loan endpoints
"""

from typing import Optional

from fastapi import APIRouter, Depends, status

from .dependencies import LoanSystem, get_loan_system, http_error
from .schemas import (
    CreateLoanRequest, PaymentRequest, installment_response, loan_response, money_dict
)


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_loan(
    request: CreateLoanRequest,
    system: LoanSystem = Depends(get_loan_system)
):
    """Create a loan and its installment schedule"""
    try:
        loan, schedule = system.loan_manager.create_loan(
            request.to_loan_terms(system.config.currency)
        )
    except Exception as e:
        raise http_error(e)

    return {
        "loan": loan_response(loan, loan.status),
        "schedule": [installment_response(i) for i in schedule],
        "message": "Loan created successfully"
    }


@router.get("")
async def list_loans(
    status: Optional[str] = None,
    customer_id: Optional[str] = None,
    system: LoanSystem = Depends(get_loan_system)
):
    """List loans, optionally filtered by status or customer"""
    manager = system.loan_manager
    try:
        loans = manager.list_loans(status=status, customer_id=customer_id)
    except Exception as e:
        raise http_error(e)

    return {"loans": [loan_response(loan, manager.effective_status(loan)) for loan in loans]}


@router.get("/{loan_id}")
async def get_loan(
    loan_id: str,
    system: LoanSystem = Depends(get_loan_system)
):
    """Get loan details"""
    manager = system.loan_manager
    try:
        loan = manager.require_loan(loan_id)
    except Exception as e:
        raise http_error(e)

    return loan_response(loan, manager.effective_status(loan))


@router.get("/{loan_id}/schedule")
async def get_loan_schedule(
    loan_id: str,
    system: LoanSystem = Depends(get_loan_system)
):
    """Get loan installment schedule"""
    try:
        schedule = system.loan_manager.get_schedule(loan_id)
    except Exception as e:
        raise http_error(e)

    return {"schedule": [installment_response(i) for i in schedule]}


@router.post("/{loan_id}/payments", status_code=status.HTTP_201_CREATED)
async def record_payment(
    loan_id: str,
    request: PaymentRequest,
    system: LoanSystem = Depends(get_loan_system)
):
    """Record a payment and allocate it across pending installments"""
    try:
        loan = system.loan_manager.require_loan(loan_id)
        result = system.payment_allocator.allocate_payment(
            loan_id=loan_id,
            amount=request.parsed_amount(loan.currency),
            payment_date=request.parsed_date() or system.loan_manager.today(),
            mode=request.mode,
            reference=request.reference,
            notes=request.notes
        )
    except Exception as e:
        raise http_error(e)

    return {
        "payment_id": result.payment_id,
        "updated_installments": [installment_response(i) for i in result.updated_installments],
        "new_next_due_date": result.new_next_due_date.isoformat() if result.new_next_due_date else None,
        "outstanding_principal": money_dict(result.loan.display_outstanding),
        "unapplied_amount": money_dict(result.unapplied_amount),
        "message": "Payment recorded successfully"
    }


@router.post("/{loan_id}/close")
async def close_loan(
    loan_id: str,
    system: LoanSystem = Depends(get_loan_system)
):
    """Close a fully repaid loan"""
    try:
        loan = system.loan_manager.close_loan(loan_id)
    except Exception as e:
        raise http_error(e)

    return loan_response(loan, loan.status)


@router.post("/{loan_id}/reopen")
async def reopen_loan(
    loan_id: str,
    system: LoanSystem = Depends(get_loan_system)
):
    """Reopen a closed loan"""
    manager = system.loan_manager
    try:
        loan = manager.reopen_loan(loan_id)
    except Exception as e:
        raise http_error(e)

    return loan_response(loan, manager.effective_status(loan))


@router.delete("/{loan_id}")
async def delete_loan(
    loan_id: str,
    system: LoanSystem = Depends(get_loan_system)
):
    """Delete a loan with its schedule and payments"""
    try:
        system.loan_manager.delete_loan(loan_id)
    except Exception as e:
        raise http_error(e)

    return {"loan_id": loan_id, "message": "Loan deleted successfully"}
