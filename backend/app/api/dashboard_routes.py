"""Dashboard route — headline payroll figures."""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends

from app.api.deps import get_store
from app.models.payroll_schema import DashboardStats
from app.services.dashboard_engine import DashboardEngine
from app.services.state_store import StateStore

router = APIRouter(prefix="/api/dashboard", tags=["Dashboard"])

engine = DashboardEngine()


@router.get("", response_model=DashboardStats)
async def dashboard(as_of: Optional[date] = None, store: StateStore = Depends(get_store)):
    """``as_of`` moves the end of the six-month series (defaults to today)."""
    state = store.state
    return engine.compute_stats(state.employees, state.payslips, state.overtime_records, today=as_of)
