"""
Payment and collection endpoints
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends

from .dependencies import LoanSystem, get_loan_system, http_error
from .schemas import overdue_response, payment_response


router = APIRouter()


@router.get("/payments")
async def list_payments(
    loan_id: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    mode: Optional[str] = None,
    system: LoanSystem = Depends(get_loan_system)
):
    """List payments, most recent first"""
    try:
        payments = system.payment_allocator.list_payments(
            loan_id=loan_id, date_from=date_from, date_to=date_to, mode=mode
        )
    except Exception as e:
        raise http_error(e)

    return {"payments": [payment_response(p) for p in payments]}


@router.get("/installments/overdue")
async def list_overdue_installments(
    as_of: Optional[date] = None,
    system: LoanSystem = Depends(get_loan_system)
):
    """Pending installments past their due date"""
    overdue = system.loan_manager.overdue_installments(today=as_of)
    return {"installments": [overdue_response(o) for o in overdue]}
