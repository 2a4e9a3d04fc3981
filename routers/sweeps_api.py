from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from dependencies import get_db, get_sweeper
from models import SweepResult
from sweeper import ExpirySweeper

router = APIRouter(tags=["sweeps"])


@router.post("/sweeps", response_model=SweepResult)
def run_sweep_api(
    db: Session = Depends(get_db),
    sweeper: ExpirySweeper = Depends(get_sweeper),
):
    return sweeper.run(db)


@router.post("/sweeps/late-fees", response_model=SweepResult)
def late_fees_sweep_api(
    db: Session = Depends(get_db),
    sweeper: ExpirySweeper = Depends(get_sweeper),
):
    return sweeper.recalculate_fees(db)


@router.post("/sweeps/expired-reservations", response_model=SweepResult)
def expired_reservations_sweep_api(
    db: Session = Depends(get_db),
    sweeper: ExpirySweeper = Depends(get_sweeper),
):
    return sweeper.expire_reservations(db)
