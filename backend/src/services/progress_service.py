"""Service layer for user profiles, progress, stats and activity in the remote ledger."""
import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth_state import Identity
from models.activity import Event, Login
from models.progress import Progress
from models.user import User
from schemas.progress import ProgressRecord, ProgressStatus, category_of
from schemas.stats import CategoryStats, LoginRecord, OverallStats, UserStats, UserSummary
from services.remote_store import ensure_utc, progress_to_record

logger = logging.getLogger(__name__)


@dataclass
class DeviceInfo:
    """Client device details recorded with each login."""

    browser: str = "Unknown"
    device_type: str = "Desktop"
    os: str = "Unknown"
    user_agent: str = ""
    language: str | None = None
    timezone: str | None = None
    referrer: str = "direct"
    page: str | None = None


def parse_user_agent(user_agent: str, **extra: Any) -> DeviceInfo:
    """
    Derive browser, device type and OS from a User-Agent string.

    Order matters: Edge and Chrome user agents also contain "Chrome"/"Safari",
    and Android user agents also contain "Linux".
    """
    if "Firefox" in user_agent:
        browser = "Firefox"
    elif "Edg" in user_agent:
        browser = "Edge"
    elif "OPR" in user_agent or "Opera" in user_agent:
        browser = "Opera"
    elif "Chrome" in user_agent:
        browser = "Chrome"
    elif "Safari" in user_agent:
        browser = "Safari"
    else:
        browser = "Unknown"

    if re.search(r"Mobi|Android", user_agent, re.IGNORECASE):
        device_type = "Mobile"
    elif re.search(r"Tablet|iPad", user_agent, re.IGNORECASE):
        device_type = "Tablet"
    else:
        device_type = "Desktop"

    if "Windows" in user_agent:
        os_name = "Windows"
    elif "Android" in user_agent:
        os_name = "Android"
    elif "iPhone" in user_agent or "iPad" in user_agent or "iOS" in user_agent:
        os_name = "iOS"
    elif "Mac" in user_agent:
        os_name = "macOS"
    elif "Linux" in user_agent:
        os_name = "Linux"
    else:
        os_name = "Unknown"

    return DeviceInfo(
        browser=browser, device_type=device_type, os=os_name, user_agent=user_agent, **extra,
    )


async def get_user(db: AsyncSession, uid: str) -> User | None:
    """Fetch a user profile by uid."""
    result = await db.execute(
        select(User).where(User.uid == uid).execution_options(populate_existing=True),
    )
    return result.scalar_one_or_none()


async def create_or_update_user_profile(db: AsyncSession, identity: Identity) -> User:
    """
    Create the profile on first sign-in, or record another login.

    Profile fields are refreshed from the identity, keeping stored values where the
    identity has none.
    """
    now = datetime.now(UTC)
    user = await get_user(db, identity.uid)
    if user is None:
        user = User(
            uid=identity.uid,
            email=identity.email,
            display_name=identity.display_name or "",
            photo_url=identity.photo_url or "",
            email_verified=identity.email_verified,
            provider=identity.provider.value,
            last_login_at=now,
            total_logins=1,
            problems_solved=0,
            problems_accessed=0,
            total_time_spent=0,
            last_activity_at=now,
        )
        db.add(user)
        logger.info("Created user profile %s", identity.uid)
    else:
        user.last_login_at = now
        user.total_logins += 1
        user.display_name = identity.display_name or user.display_name
        user.photo_url = identity.photo_url or user.photo_url
        user.email_verified = identity.email_verified
        logger.info("Updated user profile %s", identity.uid)
    await db.flush()
    return user


async def record_login(db: AsyncSession, uid: str, device: DeviceInfo) -> int:
    """Append a login record; returns its id."""
    login = Login(
        uid=uid,
        timestamp=datetime.now(UTC),
        browser=device.browser,
        device_type=device.device_type,
        os=device.os,
        user_agent=device.user_agent,
        language=device.language,
        timezone=device.timezone,
        referrer=device.referrer or "direct",
        page=device.page,
    )
    db.add(login)
    await db.flush()
    return login.id


async def update_user_stats(
    db: AsyncSession,
    uid: str,
    problems_solved: int = 0,
    problems_accessed: int = 0,
    total_time_spent: int = 0,
) -> None:
    """Increment aggregate stats and touch last_activity_at."""
    values: dict[Any, Any] = {User.last_activity_at: datetime.now(UTC)}
    if problems_solved:
        values[User.problems_solved] = User.problems_solved + problems_solved
    if problems_accessed:
        values[User.problems_accessed] = User.problems_accessed + problems_accessed
    if total_time_spent:
        values[User.total_time_spent] = User.total_time_spent + total_time_spent
    await db.execute(update(User).where(User.uid == uid).values(values))


async def _get_progress(db: AsyncSession, uid: str, problem_id: str) -> Progress | None:
    result = await db.execute(
        select(Progress).where(Progress.uid == uid, Progress.problem_id == problem_id),
    )
    return result.scalar_one_or_none()


async def update_problem_progress(
    db: AsyncSession,
    uid: str,
    problem_id: str,
    status: ProgressStatus | str,
    local: ProgressRecord | None = None,
) -> Progress:
    """
    Set the status of a problem chosen by the user.

    Creates the record on first access. solved_at is stamped on the first
    transition into solved, and the user's stats are bumped accordingly.

    local, when given, is the page's copy of the record. Its counters are folded
    in: a new record starts from the local totals, an existing one gains only what
    accumulated locally since the last sync.
    """
    status = ProgressStatus.parse(status)
    now = datetime.now(UTC)
    progress = await _get_progress(db, uid, problem_id)

    if progress is not None:
        newly_solved = (
            status is ProgressStatus.SOLVED and progress.status != ProgressStatus.SOLVED.value
        )
        progress.status = status.value
        progress.last_updated_at = now
        if local is not None:
            progress.time_spent += local.unsynced_time_spent
            progress.view_count += local.unsynced_view_count
        if newly_solved:
            progress.solved_at = now
            await update_user_stats(db, uid, problems_solved=1)
    else:
        solved = status is ProgressStatus.SOLVED
        progress = Progress(
            uid=uid,
            problem_id=problem_id,
            category=category_of(problem_id),
            status=status.value,
            first_seen_at=local.first_seen_at if local else now,
            last_updated_at=now,
            solved_at=now if solved else None,
            time_spent=local.time_spent if local else 0,
            view_count=max(1, local.view_count) if local else 1,
        )
        db.add(progress)
        await update_user_stats(
            db, uid, problems_accessed=1, problems_solved=1 if solved else 0,
        )

    await db.flush()
    logger.info("Progress %s/%s set to %s", uid, problem_id, status.value)
    return progress


async def record_problem_view(db: AsyncSession, uid: str, problem_id: str) -> Progress:
    """Count a view of a problem, creating a not-started record on first access."""
    now = datetime.now(UTC)
    progress = await _get_progress(db, uid, problem_id)
    if progress is not None:
        progress.view_count += 1
        progress.last_viewed_at = now
    else:
        progress = Progress(
            uid=uid,
            problem_id=problem_id,
            category=category_of(problem_id),
            status=ProgressStatus.NOT_STARTED.value,
            first_seen_at=now,
            last_updated_at=now,
            last_viewed_at=now,
            solved_at=None,
            time_spent=0,
            view_count=1,
        )
        db.add(progress)
        await update_user_stats(db, uid, problems_accessed=1)
    await db.flush()
    return progress


async def update_time_spent(db: AsyncSession, uid: str, problem_id: str, seconds: int) -> bool:
    """
    Add seconds spent on a problem.

    Returns False (and changes nothing) for non-positive amounts or an unknown
    problem record.
    """
    if seconds <= 0:
        return False
    result = await db.execute(
        update(Progress)
        .where(Progress.uid == uid, Progress.problem_id == problem_id)
        .values(
            time_spent=Progress.time_spent + seconds,
            last_updated_at=datetime.now(UTC),
        ),
    )
    if result.rowcount == 0:
        logger.warning("No progress record for %s/%s, time not recorded", uid, problem_id)
        return False
    await update_user_stats(db, uid, total_time_spent=seconds)
    return True


async def get_all_progress(db: AsyncSession, uid: str) -> list[Progress]:
    """All progress rows for uid, most recently updated first."""
    result = await db.execute(
        select(Progress)
        .where(Progress.uid == uid)
        .order_by(Progress.last_updated_at.desc())
        .execution_options(populate_existing=True),
    )
    return list(result.scalars().all())


async def get_user_stats(db: AsyncSession, uid: str) -> UserStats | None:
    """Profile summary, overall totals and a per-category breakdown."""
    user = await get_user(db, uid)
    if user is None:
        return None

    by_category: dict[str, CategoryStats] = {}
    total_solved = 0
    total_accessed = 0
    for row in await get_all_progress(db, uid):
        record = progress_to_record(row)
        stats = by_category.setdefault(row.category or "Unknown", CategoryStats())
        stats.accessed += 1
        total_accessed += 1
        stats.time_spent += record.time_spent
        if record.status is ProgressStatus.SOLVED:
            stats.solved += 1
            total_solved += 1
        elif record.status is ProgressStatus.WORKING:
            stats.working += 1
        elif record.status is ProgressStatus.NEEDS_HELP:
            stats.needs_help += 1

    return UserStats(
        user=UserSummary(
            email=user.email,
            display_name=user.display_name,
            created_at=ensure_utc(user.created_at),
            last_login_at=ensure_utc(user.last_login_at),
            total_logins=user.total_logins,
        ),
        overall=OverallStats(
            problems_accessed=total_accessed,
            problems_solved=total_solved,
            total_time_spent=user.total_time_spent,
            last_activity_at=ensure_utc(user.last_activity_at),
        ),
        by_category=by_category,
    )


async def get_login_history(db: AsyncSession, uid: str, limit: int = 50) -> list[LoginRecord]:
    """Most recent logins first."""
    result = await db.execute(
        select(Login)
        .where(Login.uid == uid)
        .order_by(Login.timestamp.desc(), Login.id.desc())
        .limit(limit),
    )
    return [LoginRecord.model_validate(login) for login in result.scalars().all()]


async def track_event(
    db: AsyncSession,
    uid: str,
    event_name: str,
    data: dict[str, Any] | None = None,
    page: str | None = None,
    referrer: str | None = None,
) -> None:
    """Record a custom analytics event."""
    db.add(
        Event(
            uid=uid,
            event_name=event_name,
            data=data or {},
            page=page,
            referrer=referrer or "direct",
            timestamp=datetime.now(UTC),
        ),
    )
    await db.flush()


async def track_page_view(
    db: AsyncSession, uid: str, path: str, title: str | None = None,
) -> None:
    """Record a page_view event."""
    await track_event(db, uid, "page_view", {"path": path, "title": title}, page=path)
