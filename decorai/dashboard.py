# dashboard.py
import logging
import math
from typing import Iterable

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from decorai.auth import get_current_user
from decorai.db import get_db
from decorai.models import Profile, Project, STATUS_COMPLETED

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/dashboard", tags=["Dashboard"])

# Not computed yet: savings need stored item purchases, which do not exist.
TOTAL_SAVINGS_PLACEHOLDER = 0


class DashboardStats(BaseModel):
    """Summary cards for the dashboard."""
    model_config = ConfigDict(populate_by_name=True)

    total_projects: int = Field(alias="totalProjects")
    completed_projects: int = Field(alias="completedProjects")
    completion_rate: int = Field(alias="completionRate")
    total_savings: float = Field(alias="totalSavings")


def completion_rate(total_projects: int, completed_projects: int) -> int:
    """Percentage of completed projects, rounded half up; 0 when there are none."""
    if total_projects <= 0:
        return 0
    return int(math.floor(completed_projects / total_projects * 100 + 0.5))


def summarize_projects(statuses: Iterable[str]) -> DashboardStats:
    statuses = list(statuses)
    total = len(statuses)
    completed = sum(1 for s in statuses if s == STATUS_COMPLETED)
    return DashboardStats(
        total_projects=total,
        completed_projects=completed,
        completion_rate=completion_rate(total, completed),
        total_savings=TOTAL_SAVINGS_PLACEHOLDER,
    )


@router.get("/stats", response_model=DashboardStats)
async def get_stats(
    db: AsyncSession = Depends(get_db),
    current_user: Profile = Depends(get_current_user),
):
    """Project counts for the current user. `totalSavings` is a fixed placeholder."""
    result = await db.execute(select(Project.status).where(Project.user_id == current_user.id))
    stats = summarize_projects(result.scalars().all())
    logger.info(f"Stats for {current_user.id}: {stats.total_projects} project(s), {stats.completed_projects} completed")
    return stats
