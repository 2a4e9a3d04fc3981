from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from dependencies import get_db, get_loan_manager
from loans import LoanManager
from models import CheckoutIn, Loan

router = APIRouter(tags=["loans"])


@router.post("/loans", response_model=Loan, status_code=201)
def checkout_api(
    body: CheckoutIn,
    db: Session = Depends(get_db),
    loans: LoanManager = Depends(get_loan_manager),
):
    return loans.checkout(db, body.item_id, body.borrower_id, body.due_at)


@router.get("/loans", response_model=list[Loan])
def list_loans_api(
    db: Session = Depends(get_db),
    loans: LoanManager = Depends(get_loan_manager),
):
    return loans.list_loans(db)


@router.get("/loans/overdue", response_model=list[Loan])
def list_overdue_api(
    db: Session = Depends(get_db),
    loans: LoanManager = Depends(get_loan_manager),
):
    return loans.list_overdue(db)


@router.get("/loans/{loan_id}", response_model=Loan)
def get_loan_api(
    loan_id: str,
    db: Session = Depends(get_db),
    loans: LoanManager = Depends(get_loan_manager),
):
    return loans.get_loan(db, loan_id)


@router.post("/loans/{loan_id}/return", response_model=Loan)
def return_loan_api(
    loan_id: str,
    db: Session = Depends(get_db),
    loans: LoanManager = Depends(get_loan_manager),
):
    return loans.return_item(db, loan_id)


@router.post("/loans/{loan_id}/renew", response_model=Loan)
def renew_loan_api(
    loan_id: str,
    db: Session = Depends(get_db),
    loans: LoanManager = Depends(get_loan_manager),
):
    return loans.renew(db, loan_id)


@router.get("/borrowers/{borrower_id}/loans", response_model=list[Loan])
def list_borrower_loans_api(
    borrower_id: str,
    db: Session = Depends(get_db),
    loans: LoanManager = Depends(get_loan_manager),
):
    return loans.list_by_borrower(db, borrower_id)


@router.get("/borrowers/{borrower_id}/loans/active", response_model=list[Loan])
def list_borrower_active_loans_api(
    borrower_id: str,
    db: Session = Depends(get_db),
    loans: LoanManager = Depends(get_loan_manager),
):
    return loans.list_active_by_borrower(db, borrower_id)
