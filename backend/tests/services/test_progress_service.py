"""Tests for the remote profile, progress and activity service."""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth_state import Identity
from models.activity import Event
from schemas.progress import ProgressStatus
from services import progress_service
from services.progress_service import DeviceInfo, parse_user_agent

CHROME_MAC = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0 Safari/537.36"
)
EDGE_WINDOWS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0 Safari/537.36 Edg/120.0"
)
SAFARI_IPHONE = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)
FIREFOX_ANDROID = "Mozilla/5.0 (Android 14; Mobile; rv:120.0) Gecko/120.0 Firefox/120.0"


class TestParseUserAgent:
    def test__chrome_on_mac(self) -> None:
        """Chrome on macOS."""
        device = parse_user_agent(CHROME_MAC)
        assert (device.browser, device.device_type, device.os) == ("Chrome", "Desktop", "macOS")

    def test__edge_on_windows(self) -> None:
        """Edge on Windows."""
        device = parse_user_agent(EDGE_WINDOWS)
        assert (device.browser, device.os) == ("Edge", "Windows")

    def test__safari_on_iphone(self) -> None:
        """Safari on iPhone is a mobile device."""
        device = parse_user_agent(SAFARI_IPHONE)
        assert (device.browser, device.device_type, device.os) == ("Safari", "Mobile", "iOS")

    def test__firefox_on_android(self) -> None:
        """Firefox on Android is a mobile device."""
        device = parse_user_agent(FIREFOX_ANDROID)
        assert (device.browser, device.device_type, device.os) == ("Firefox", "Mobile", "Android")

    def test__unknown(self) -> None:
        """An unrecognized user agent stays unknown."""
        device = parse_user_agent("curl/8.0", page="/problems")
        assert (device.browser, device.device_type, device.os) == ("Unknown", "Desktop", "Unknown")
        assert device.page == "/problems"


class TestUserProfile:
    async def test__create_profile(self, db_session: AsyncSession, alice: Identity) -> None:
        """A first sign-in creates the profile."""
        user = await progress_service.create_or_update_user_profile(db_session, alice)
        await db_session.commit()

        assert user.uid == alice.uid
        assert user.total_logins == 1
        assert user.problems_solved == 0
        assert user.provider == "google.com"

    async def test__update_profile_bumps_logins_and_keeps_fields(
        self, db_session: AsyncSession, alice: Identity,
    ) -> None:
        """A later sign-in bumps the login count and keeps existing fields."""
        await progress_service.create_or_update_user_profile(db_session, alice)
        await db_session.commit()

        user = await progress_service.create_or_update_user_profile(
            db_session, Identity(uid=alice.uid, display_name="Alice E."),
        )
        await db_session.commit()

        assert user.total_logins == 2
        assert user.display_name == "Alice E."
        assert user.photo_url == alice.photo_url

    async def test__record_login_and_history(
        self, db_session: AsyncSession, alice: Identity,
    ) -> None:
        """Logins are recorded and listed newest first."""
        first = await progress_service.record_login(db_session, alice.uid, parse_user_agent(CHROME_MAC))
        second = await progress_service.record_login(
            db_session, alice.uid, DeviceInfo(browser="Firefox", referrer=""),
        )
        await db_session.commit()

        history = await progress_service.get_login_history(db_session, alice.uid)

        assert [login.id for login in history] == [second, first]
        assert history[0].referrer == "direct"
        assert history[1].browser == "Chrome"

    async def test__login_history_limit(self, db_session: AsyncSession) -> None:
        """Login history honours its limit."""
        for _ in range(3):
            await progress_service.record_login(db_session, "u1", DeviceInfo())
        await db_session.commit()

        assert len(await progress_service.get_login_history(db_session, "u1", limit=2)) == 2


class TestProblemProgress:
    async def test__first_update_creates_record_and_bumps_stats(
        self, db_session: AsyncSession, alice: Identity,
    ) -> None:
        """The first status update creates the record and bumps stats."""
        await progress_service.create_or_update_user_profile(db_session, alice)

        progress = await progress_service.update_problem_progress(
            db_session, alice.uid, "lc_1", "solved",
        )
        await db_session.commit()

        assert progress.category == "LeetCode"
        assert progress.solved_at is not None
        user = await progress_service.get_user(db_session, alice.uid)
        assert user.problems_accessed == 1
        assert user.problems_solved == 1

    async def test__solved_counted_once(self, db_session: AsyncSession, alice: Identity) -> None:
        """Solving the same problem twice counts once."""
        await progress_service.create_or_update_user_profile(db_session, alice)
        await progress_service.update_problem_progress(db_session, alice.uid, "lc_1", "working")
        await progress_service.update_problem_progress(db_session, alice.uid, "lc_1", "solved")
        await progress_service.update_problem_progress(db_session, alice.uid, "lc_1", "solved")
        await db_session.commit()

        user = await progress_service.get_user(db_session, alice.uid)
        assert user.problems_accessed == 1
        assert user.problems_solved == 1

    async def test__record_problem_view(self, db_session: AsyncSession, alice: Identity) -> None:
        """Views are counted on the record."""
        await progress_service.create_or_update_user_profile(db_session, alice)
        await progress_service.record_problem_view(db_session, alice.uid, "mlsd_netflix")
        progress = await progress_service.record_problem_view(db_session, alice.uid, "mlsd_netflix")
        await db_session.commit()

        assert progress.view_count == 2
        assert progress.status == ProgressStatus.NOT_STARTED.value
        assert progress.last_viewed_at is not None

    async def test__update_time_spent(self, db_session: AsyncSession, alice: Identity) -> None:
        """Time spent is added to the record and the user's total."""
        await progress_service.create_or_update_user_profile(db_session, alice)
        await progress_service.record_problem_view(db_session, alice.uid, "lc_1")

        assert await progress_service.update_time_spent(db_session, alice.uid, "lc_1", 30) is True
        assert await progress_service.update_time_spent(db_session, alice.uid, "lc_1", 0) is False
        assert await progress_service.update_time_spent(db_session, alice.uid, "lc_2", 30) is False
        await db_session.commit()

        rows = await progress_service.get_all_progress(db_session, alice.uid)
        assert rows[0].time_spent == 30
        user = await progress_service.get_user(db_session, alice.uid)
        assert user.total_time_spent == 30


class TestUserStats:
    async def test__missing_user(self, db_session: AsyncSession) -> None:
        """Stats for an unknown user are None."""
        assert await progress_service.get_user_stats(db_session, "nobody") is None

    async def test__breakdown_by_category(self, db_session: AsyncSession, alice: Identity) -> None:
        """Stats break progress down by category."""
        await progress_service.create_or_update_user_profile(db_session, alice)
        await progress_service.update_problem_progress(db_session, alice.uid, "lc_1", "solved")
        await progress_service.update_problem_progress(db_session, alice.uid, "lc_2", "working")
        await progress_service.update_problem_progress(db_session, alice.uid, "mlsd_netflix", "help")
        await progress_service.update_time_spent(db_session, alice.uid, "lc_2", 120)
        await db_session.commit()

        stats = await progress_service.get_user_stats(db_session, alice.uid)

        assert stats.user.email == alice.email
        assert stats.user.total_logins == 1
        assert stats.overall.problems_accessed == 3
        assert stats.overall.problems_solved == 1
        assert stats.overall.total_time_spent == 120
        leetcode = stats.by_category["LeetCode"]
        assert (leetcode.accessed, leetcode.solved, leetcode.working) == (2, 1, 1)
        assert leetcode.time_spent == 120
        assert stats.by_category["ML System Design"].needs_help == 1


async def test__track_page_view(db_session: AsyncSession) -> None:
    """Page views are stored as events."""
    await progress_service.track_page_view(db_session, "u1", "/problems", "Problems")
    await db_session.commit()

    events = (await db_session.execute(select(Event))).scalars().all()
    assert len(events) == 1
    assert events[0].event_name == "page_view"
    assert events[0].data == {"path": "/problems", "title": "Problems"}
    assert events[0].referrer == "direct"
