"""Receiver for time-spent beacons sent when a page unloads."""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from db.session import get_async_session
from schemas.time_spent import TimeSpentBeacon, TimeSpentResponse
from services import progress_service
from services.stats_cache import invalidate_user_stats

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["progress"])


@router.post("/time-spent", response_model=TimeSpentResponse)
async def record_time_spent(
    beacon: TimeSpentBeacon,
    db: AsyncSession = Depends(get_async_session),
) -> TimeSpentResponse:
    """
    Add beacon seconds to the user's progress record.

    Beacons are fire-and-forget, so an unknown record is reported as not recorded
    rather than as an error.
    """
    recorded = await progress_service.update_time_spent(
        db, beacon.user_id, beacon.problem_id, beacon.seconds,
    )
    if recorded:
        await db.commit()
        await invalidate_user_stats(beacon.user_id)
    return TimeSpentResponse(recorded=recorded)
