from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db.session import get_db
from ..services.reporting import calculate_dashboard_metrics

router = APIRouter(prefix="/api/v1/reports", tags=["reports"])


@router.get("/dashboard")
def api_dashboard(db: Session = Depends(get_db)):
    return calculate_dashboard_metrics(db)
