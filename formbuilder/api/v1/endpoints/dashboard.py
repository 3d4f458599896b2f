from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from formbuilder.core.auth import get_current_user
from formbuilder.core.database import get_db
from formbuilder.models.user import User
from formbuilder.schemas.dashboard import DashboardResponse
from formbuilder.services.dashboard import get_dashboard

router = APIRouter()


@router.get("/stats", response_model=DashboardResponse)
def dashboard_stats(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Summary statistics, recent activity and top forms for the current user."""
    return get_dashboard(db, current_user.id)
