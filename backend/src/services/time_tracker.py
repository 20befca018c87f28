"""Tracks time spent on a problem and flushes it periodically, on tab hide and on unload."""
import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from services.beacon import Beacon

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 30

TimeRecorder = Callable[[str, str, int], Awaitable[object]]


class TimeTracker:
    """
    Accumulates whole seconds for one (uid, problem_id) at a time.

    Periodic and on-hide flushes go through recorder. The unload flush goes
    through the beacon, which does not need the loop to stay alive.
    """

    def __init__(
        self,
        recorder: TimeRecorder,
        beacon: Beacon,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._recorder = recorder
        self._beacon = beacon
        self._interval = interval_seconds
        self._clock = clock
        self._uid: str | None = None
        self._problem_id: str | None = None
        self._started_at: float | None = None
        self._loop_task: asyncio.Task | None = None
        self._pending: set[asyncio.Task] = set()

    @property
    def is_tracking(self) -> bool:
        return self._problem_id is not None

    @property
    def uid(self) -> str | None:
        """User the current tracking is attributed to."""
        return self._uid

    def start(self, uid: str, problem_id: str) -> None:
        """Begin tracking problem_id, stopping (and flushing) any previous tracking."""
        self.stop()
        if not uid or not problem_id:
            return
        self._uid = uid
        self._problem_id = problem_id
        self._started_at = self._clock()
        try:
            self._loop_task = asyncio.get_running_loop().create_task(self._run())
        except RuntimeError:
            logger.warning("No running event loop, periodic flush disabled for %s", problem_id)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            await self.flush()

    def _take_elapsed(self) -> int:
        """Whole seconds since the last flush; resets the window when non-zero."""
        if self._started_at is None:
            return 0
        now = self._clock()
        elapsed = int(now - self._started_at)
        if elapsed > 0:
            self._started_at = now
        return elapsed

    async def flush(self) -> int:
        """Record elapsed time now; returns the seconds recorded."""
        uid, problem_id = self._uid, self._problem_id
        seconds = self._take_elapsed()
        if seconds <= 0 or uid is None or problem_id is None:
            return 0
        try:
            await self._recorder(uid, problem_id, seconds)
        except Exception:
            logger.exception(
                "Recording %ss on %s/%s failed", seconds, uid, problem_id,
            )
        return seconds

    def _flush_in_background(self) -> None:
        uid, problem_id = self._uid, self._problem_id
        seconds = self._take_elapsed()
        if seconds <= 0 or uid is None or problem_id is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._beacon.send({"userId": uid, "problemId": problem_id, "seconds": seconds})
            return
        task = loop.create_task(self._record_quietly(uid, problem_id, seconds))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _record_quietly(self, uid: str, problem_id: str, seconds: int) -> None:
        try:
            await self._recorder(uid, problem_id, seconds)
        except Exception:
            logger.exception(
                "Recording %ss on %s/%s failed", seconds, uid, problem_id,
            )

    def stop(self) -> None:
        """Stop the periodic flush and record what remains without waiting."""
        if self._loop_task is not None:
            self._loop_task.cancel()
            self._loop_task = None
        self._flush_in_background()
        self._uid = None
        self._problem_id = None
        self._started_at = None

    def on_visibility_change(self, hidden: bool) -> None:
        """Flush when the page is hidden."""
        if hidden:
            self._flush_in_background()

    def on_unload(self) -> bool:
        """Hand remaining time to the beacon; True if something was sent."""
        uid, problem_id = self._uid, self._problem_id
        seconds = self._take_elapsed()
        if seconds <= 0 or uid is None or problem_id is None:
            return False
        return self._beacon.send({"userId": uid, "problemId": problem_id, "seconds": seconds})

    async def wait_idle(self) -> None:
        """Wait for background flushes to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
