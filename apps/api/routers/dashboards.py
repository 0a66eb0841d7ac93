"""
Dashboard data API Router

Read-only views for the player dashboard, the coach dashboard summary and
the analytics page.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core.config import settings
from core.database import DatabaseClientSelector, get_client_selector, get_db
from core.exceptions import MissingFieldsError
from services.dashboards import coach_summary, player_analytics, player_dashboard

router = APIRouter(prefix="/api", tags=["Dashboards"])


@router.get("/player-dashboard/{person_id}")
def get_player_dashboard(
    person_id: str,
    db: Session = Depends(get_db),
    selector: DatabaseClientSelector = Depends(get_client_selector),
):
    return {"success": True, **player_dashboard(db, person_id), "using_service_role": selector.using_service_role}


@router.get("/coach-dashboard/summary")
def get_coach_summary(
    group_id: Optional[str] = Query(None),
    coach_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    selector: DatabaseClientSelector = Depends(get_client_selector),
):
    group_id = group_id or settings.DEFAULT_TEAM_ID
    if not group_id:
        raise MissingFieldsError(["group_id"])
    summary = coach_summary(db, group_id, coach_id=coach_id or settings.DEFAULT_COACH_ID)
    return {"success": True, **summary, "using_service_role": selector.using_service_role}


@router.get("/analytics/players")
def get_player_analytics(
    group_id: Optional[str] = Query(None),
    days: Optional[int] = Query(None, ge=1, le=365),
    db: Session = Depends(get_db),
    selector: DatabaseClientSelector = Depends(get_client_selector),
):
    analytics = player_analytics(db, group_id=group_id, days=days)
    return {"success": True, **analytics, "using_service_role": selector.using_service_role}
