import asyncio
from datetime import datetime, timezone
from typing import AsyncIterator, Awaitable, Callable, Optional

from app.schemas.countdown import RemainingTime

Clock = Callable[[], datetime]

EXPIRED = RemainingTime(expired=True)

SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 60 * SECONDS_PER_MINUTE
SECONDS_PER_DAY = 24 * SECONDS_PER_HOUR


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC and convert aware ones to UTC"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def remaining_time(end_time: datetime, now: datetime) -> RemainingTime:
    """
    Split `end_time - now` into day/hour/minute/second buckets.

    Buckets are floored, never rounded. A zero or negative difference
    returns EXPIRED.
    """
    delta = (ensure_utc(end_time) - ensure_utc(now)).total_seconds()
    if delta <= 0:
        return EXPIRED

    left = int(delta)

    days, left = divmod(left, SECONDS_PER_DAY)
    hours, left = divmod(left, SECONDS_PER_HOUR)
    minutes, seconds = divmod(left, SECONDS_PER_MINUTE)
    return RemainingTime(days=days, hours=hours, minutes=minutes, seconds=seconds)


def format_time_remaining(remaining: RemainingTime) -> str:
    if remaining.expired:
        return "Auction ended"

    parts = []
    if remaining.days:
        parts.append(f"{remaining.days}d")
    if remaining.days or remaining.hours:
        parts.append(f"{remaining.hours}h")
    if remaining.days or remaining.hours or remaining.minutes:
        parts.append(f"{remaining.minutes}m")
    parts.append(f"{remaining.seconds}s")
    return " ".join(parts)


async def countdown(
    end_time: datetime,
    clock: Clock = utc_now,
    interval: float = 1.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> AsyncIterator[RemainingTime]:
    """
    Yield the remaining time once per `interval` seconds.

    The first value is yielded immediately; the generator stops right after
    yielding EXPIRED. Each call is independent, so any number of auctions can
    be counted down side by side.
    """
    while True:
        remaining = remaining_time(end_time, clock())
        yield remaining
        if remaining.expired:
            return
        await sleep(interval)
