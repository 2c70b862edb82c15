"""Restricted time-of-day window during which automatic syncs are suppressed."""

from dataclasses import dataclass
from datetime import datetime, time, timedelta
from zoneinfo import ZoneInfo

from solarsync_engine.common.config import SolarSyncSettings

MINUTES_PER_DAY = 24 * 60


def is_interval_boundary(local: datetime, interval_minutes: int) -> bool:
    """True when the local wall-clock minute falls on an interval boundary.

    Boundaries are counted from local midnight, so interval 15 fires at
    :00/:15/:30/:45 and interval 120 at 00:00, 02:00, ...
    """
    minute_of_day = local.hour * 60 + local.minute
    return minute_of_day % interval_minutes == 0


def next_interval_boundary(local: datetime, interval_minutes: int, inclusive: bool = False) -> datetime:
    """First boundary at or after (``inclusive``) / strictly after ``local``."""
    floor = local.replace(second=0, microsecond=0)
    if inclusive and floor == local and is_interval_boundary(floor, interval_minutes):
        return floor
    midnight = floor.replace(hour=0, minute=0)
    elapsed = (floor - midnight) // timedelta(minutes=1)
    steps = elapsed // interval_minutes + 1
    candidate = midnight + timedelta(minutes=steps * interval_minutes)
    if candidate.date() != midnight.date():
        # Boundaries restart at the next local midnight
        candidate = midnight + timedelta(days=1)
    return candidate


@dataclass(frozen=True)
class RestrictedWindow:
    start: time
    end: time
    tz: ZoneInfo

    @classmethod
    def from_settings(cls, settings: SolarSyncSettings) -> "RestrictedWindow":
        return cls(
            start=settings.window_start,
            end=settings.window_end,
            tz=ZoneInfo(settings.sync_timezone),
        )

    @property
    def spans_midnight(self) -> bool:
        return self.start > self.end

    def contains(self, moment: time) -> bool:
        """Start is inside the window, end is outside."""
        if self.spans_midnight:
            return moment >= self.start or moment < self.end
        return self.start <= moment < self.end

    def localize(self, now: datetime) -> datetime:
        if now.tzinfo is None:
            return now.replace(tzinfo=self.tz)
        return now.astimezone(self.tz)

    def is_restricted(self, now: datetime) -> bool:
        return self.contains(self.localize(now).time())

    def next_eligible(self, now: datetime, interval_minutes: int) -> datetime:
        """Next moment an automatic sync could run, in the window's timezone."""
        local = self.localize(now)
        if not self.is_restricted(local):
            return next_interval_boundary(local, interval_minutes)

        window_end = local.replace(
            hour=self.end.hour, minute=self.end.minute, second=0, microsecond=0
        )
        if window_end <= local:
            window_end += timedelta(days=1)
        return next_interval_boundary(window_end, interval_minutes, inclusive=True)

    def describe(self, moment: datetime) -> str:
        local = self.localize(moment)
        return local.strftime("%Y-%m-%d %H:%M %Z")
