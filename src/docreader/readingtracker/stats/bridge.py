"""Offload bridge for analytics.

Runs the analytics functions in a worker process so heavy aggregation never
competes with the interactive path. Calls cross the process boundary as plain
data: a request names the function and carries JSON-compatible arguments, and
the response is ``{"ok": True, "value": ...}`` or ``{"ok": False, "error": ...}``.

When a worker process cannot be started or dies, the bridge runs the same
request in the calling process instead. Results are identical either way.
"""

import asyncio
import logging
import threading
from concurrent.futures import ProcessPoolExecutor
from concurrent.futures.process import BrokenProcessPool
from datetime import date, timedelta, timezone, tzinfo
from enum import Enum
from typing import Any, Optional, Sequence
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field

from ..db.schemas import ReadingEvent
from ..errors import AnalyticsError, OffloadUnavailable
from . import analytics
from .analytics import ActivityBucket, CategoryStats, DailyStats, ReadingStreak, WordCounts

logger = logging.getLogger(__name__)


class AnalyticsFunction(str, Enum):
    """Functions callable through the bridge."""

    TIME_SPENT_ON_DAY = "time_spent_on_day"
    TOTAL_WORDS_READ = "total_words_read"
    READING_SPEED = "reading_speed"
    DAILY_READING_STATS = "daily_reading_stats"
    CATEGORY_STATS = "category_stats"
    TOTAL_TIME_SPENT = "total_time_spent"
    READING_STREAK = "reading_streak"
    READING_BY_HOUR = "reading_by_hour"
    WEEKLY_ACTIVITY = "weekly_activity"


class OffloadRequest(BaseModel):
    """One analytics call."""

    function: AnalyticsFunction
    args: list[Any] = Field(default_factory=list)
    kwargs: dict[str, Any] = Field(default_factory=dict)


class OffloadResponse(BaseModel):
    """Result of one analytics call."""

    ok: bool
    value: Any = None
    error: Optional[str] = None


# ============================================================================
# Plain-data encoding
# ============================================================================


def encode_events(events: Sequence[ReadingEvent]) -> list[dict]:
    return [event.model_dump(mode="json") for event in events]


def decode_events(data: Sequence[dict]) -> list[ReadingEvent]:
    return [ReadingEvent.model_validate(item) for item in data]


def encode_tz(tz: Optional[tzinfo]) -> Optional[dict]:
    """Describe a timezone as plain data. None means the worker's local zone."""
    if tz is None:
        return None
    if isinstance(tz, ZoneInfo):
        return {"key": tz.key}
    offset = tz.utcoffset(None)
    if offset is None:
        raise ValueError(f"Cannot send timezone {tz!r} to the analytics worker")
    return {"offset_seconds": int(offset.total_seconds())}


def decode_tz(data: Optional[dict]) -> Optional[tzinfo]:
    if data is None:
        return None
    if "key" in data:
        return ZoneInfo(data["key"])
    return timezone(timedelta(seconds=data["offset_seconds"]))


def _encode_date(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _decode_date(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value is not None else None


def _encode_word_counts(counts: Optional[WordCounts]) -> Optional[dict]:
    if not counts:
        return None
    return {path: dict(sections) for path, sections in counts.items()}


# ============================================================================
# Worker side
# ============================================================================


class AnalyticsWorker:
    """Plain-data adapters around the analytics functions."""

    def time_spent_on_day(self, day: str, events: list[dict], tz: Optional[dict] = None) -> int:
        return analytics.time_spent_on_day(
            date.fromisoformat(day), decode_events(events), tz=decode_tz(tz)
        )

    def total_words_read(
        self, events: list[dict], word_count_overrides: Optional[dict] = None
    ) -> int:
        return analytics.total_words_read(decode_events(events), word_count_overrides)

    def reading_speed(
        self, events: list[dict], word_count_overrides: Optional[dict] = None
    ) -> float:
        return analytics.reading_speed(decode_events(events), word_count_overrides)

    def daily_reading_stats(
        self,
        events: list[dict],
        days: int = 7,
        today: Optional[str] = None,
        tz: Optional[dict] = None,
    ) -> list[dict]:
        stats = analytics.daily_reading_stats(
            decode_events(events), days, today=_decode_date(today), tz=decode_tz(tz)
        )
        return [entry.to_dict() for entry in stats]

    def category_stats(self, events: list[dict]) -> dict[str, dict]:
        stats = analytics.category_stats(decode_events(events))
        return {category: entry.to_dict() for category, entry in stats.items()}

    def total_time_spent(self, events: list[dict]) -> int:
        return analytics.total_time_spent(decode_events(events))

    def reading_streak(
        self, events: list[dict], today: Optional[str] = None, tz: Optional[dict] = None
    ) -> dict:
        streak = analytics.reading_streak(
            decode_events(events), today=_decode_date(today), tz=decode_tz(tz)
        )
        return streak.to_dict()

    def reading_by_hour(self, events: list[dict], tz: Optional[dict] = None) -> list[dict]:
        buckets = analytics.reading_by_hour(decode_events(events), tz=decode_tz(tz))
        return [bucket.to_dict() for bucket in buckets]

    def weekly_activity(self, events: list[dict], tz: Optional[dict] = None) -> list[dict]:
        buckets = analytics.weekly_activity(decode_events(events), tz=decode_tz(tz))
        return [bucket.to_dict() for bucket in buckets]


_worker = AnalyticsWorker()


def execute_request(payload: dict) -> dict:
    """Run one request and return a response, both as plain dicts.

    Failures of the analytics function are reported in the response rather
    than raised, so they cross the process boundary intact.
    """
    try:
        request = OffloadRequest.model_validate(payload)
        handler = getattr(_worker, request.function.value)
        value = handler(*request.args, **request.kwargs)
    except Exception as e:
        return OffloadResponse(ok=False, error=f"{type(e).__name__}: {e}").model_dump()
    return OffloadResponse(ok=True, value=value).model_dump()


# ============================================================================
# Caller side
# ============================================================================


class AnalyticsBridge:
    """Asynchronous front for the analytics worker process."""

    def __init__(self, use_worker: bool = True):
        """Initialize the bridge.

        Args:
            use_worker: Start a worker process; False computes in-process
        """
        self.use_worker = use_worker
        self._executor: Optional[ProcessPoolExecutor] = None
        self._lock = threading.Lock()
        self._unavailable: Optional[OffloadUnavailable] = None

    @property
    def offloading(self) -> bool:
        """True while calls are sent to a worker process."""
        return self.use_worker and self._unavailable is None

    def _get_executor(self) -> ProcessPoolExecutor:
        with self._lock:
            if self._unavailable is not None:
                raise self._unavailable
            if self._executor is None:
                try:
                    self._executor = ProcessPoolExecutor(max_workers=1)
                except (OSError, NotImplementedError, ImportError) as e:
                    self._unavailable = OffloadUnavailable(
                        f"Could not start analytics worker: {e}"
                    )
                    raise self._unavailable from e
            return self._executor

    def _mark_unavailable(self, error: Exception) -> None:
        with self._lock:
            if self._unavailable is None:
                self._unavailable = OffloadUnavailable(f"Analytics worker lost: {error}")
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)

    async def call(self, request: OffloadRequest) -> OffloadResponse:
        """Send one request to the worker, or run it here if that fails."""
        payload = request.model_dump(mode="json")

        if self.offloading:
            try:
                future = self._get_executor().submit(execute_request, payload)
                data = await asyncio.wrap_future(future)
                return OffloadResponse.model_validate(data)
            except OffloadUnavailable as e:
                logger.warning("%s; computing analytics in-process", e)
            except (BrokenProcessPool, OSError, RuntimeError) as e:
                self._mark_unavailable(e)
                logger.warning(
                    "Analytics worker failed (%s); computing analytics in-process", e
                )

        data = await asyncio.to_thread(execute_request, payload)
        return OffloadResponse.model_validate(data)

    async def _invoke(self, function: AnalyticsFunction, *args, **kwargs) -> Any:
        response = await self.call(
            OffloadRequest(function=function, args=list(args), kwargs=kwargs)
        )
        if not response.ok:
            raise AnalyticsError(function.value, response.error or "unknown error")
        return response.value

    def shutdown(self, wait: bool = True) -> None:
        """Stop the worker process."""
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)

    # ========================================================================
    # Analytics entry points
    # ========================================================================

    async def time_spent_on_day(
        self, day: date, events: Sequence[ReadingEvent], tz: Optional[tzinfo] = None
    ) -> int:
        return await self._invoke(
            AnalyticsFunction.TIME_SPENT_ON_DAY,
            day.isoformat(),
            encode_events(events),
            tz=encode_tz(tz),
        )

    async def total_words_read(
        self,
        events: Sequence[ReadingEvent],
        word_count_overrides: Optional[WordCounts] = None,
    ) -> int:
        return await self._invoke(
            AnalyticsFunction.TOTAL_WORDS_READ,
            encode_events(events),
            _encode_word_counts(word_count_overrides),
        )

    async def reading_speed(
        self,
        events: Sequence[ReadingEvent],
        word_count_overrides: Optional[WordCounts] = None,
    ) -> float:
        return await self._invoke(
            AnalyticsFunction.READING_SPEED,
            encode_events(events),
            _encode_word_counts(word_count_overrides),
        )

    async def daily_reading_stats(
        self,
        events: Sequence[ReadingEvent],
        days: int = 7,
        today: Optional[date] = None,
        tz: Optional[tzinfo] = None,
    ) -> list[DailyStats]:
        # Resolve "today" here so the worker's clock never matters
        if today is None:
            today = analytics.current_date(tz)
        value = await self._invoke(
            AnalyticsFunction.DAILY_READING_STATS,
            encode_events(events),
            days,
            today=_encode_date(today),
            tz=encode_tz(tz),
        )
        return [DailyStats.from_dict(item) for item in value]

    async def category_stats(self, events: Sequence[ReadingEvent]) -> dict[str, CategoryStats]:
        value = await self._invoke(AnalyticsFunction.CATEGORY_STATS, encode_events(events))
        return {category: CategoryStats.from_dict(item) for category, item in value.items()}

    async def total_time_spent(self, events: Sequence[ReadingEvent]) -> int:
        return await self._invoke(AnalyticsFunction.TOTAL_TIME_SPENT, encode_events(events))

    async def reading_streak(
        self,
        events: Sequence[ReadingEvent],
        today: Optional[date] = None,
        tz: Optional[tzinfo] = None,
    ) -> ReadingStreak:
        if today is None:
            today = analytics.current_date(tz)
        value = await self._invoke(
            AnalyticsFunction.READING_STREAK,
            encode_events(events),
            today=_encode_date(today),
            tz=encode_tz(tz),
        )
        return ReadingStreak.from_dict(value)

    async def reading_by_hour(
        self, events: Sequence[ReadingEvent], tz: Optional[tzinfo] = None
    ) -> list[ActivityBucket]:
        value = await self._invoke(
            AnalyticsFunction.READING_BY_HOUR, encode_events(events), tz=encode_tz(tz)
        )
        return [ActivityBucket.from_dict(item) for item in value]

    async def weekly_activity(
        self, events: Sequence[ReadingEvent], tz: Optional[tzinfo] = None
    ) -> list[ActivityBucket]:
        value = await self._invoke(
            AnalyticsFunction.WEEKLY_ACTIVITY, encode_events(events), tz=encode_tz(tz)
        )
        return [ActivityBucket.from_dict(item) for item in value]


# Global bridge instance: one worker per process
_bridge: Optional[AnalyticsBridge] = None
_bridge_lock = threading.Lock()


def get_analytics_bridge(use_worker: bool = True) -> AnalyticsBridge:
    """Get or create the process-wide analytics bridge."""
    global _bridge
    with _bridge_lock:
        if _bridge is None:
            _bridge = AnalyticsBridge(use_worker=use_worker)
        return _bridge


def reset_analytics_bridge() -> None:
    """Shut down and forget the global bridge. Used for testing."""
    global _bridge
    with _bridge_lock:
        bridge, _bridge = _bridge, None
    if bridge is not None:
        bridge.shutdown()
