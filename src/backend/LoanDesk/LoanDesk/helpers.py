"""Provides helper functions used throughout the LoanDesk project."""

import datetime
from contextlib import contextmanager
from typing import Any, Optional

from django.conf import settings
from django.utils import timezone

import structlog

logger = structlog.get_logger('loandesk')


class Clock:
    """Source of the current instant.

    All overdue, late-return and suspension expiry comparisons read the
    time through the active clock, never directly from the system.
    """

    def now(self) -> datetime.datetime:
        """Return the current (timezone aware) time."""
        return timezone.now()


class FrozenClock(Clock):
    """A clock which only moves when told to."""

    def __init__(self, start: Optional[datetime.datetime] = None):
        """Initialize the clock at the provided instant (default: now)."""
        self.current = start or timezone.now()

        if timezone.is_naive(self.current):
            self.current = timezone.make_aware(self.current, datetime.timezone.utc)

    def now(self) -> datetime.datetime:
        """Return the frozen time."""
        return self.current

    def advance(self, **kwargs) -> datetime.datetime:
        """Move the clock forward by the provided timedelta arguments."""
        self.current = self.current + datetime.timedelta(**kwargs)
        return self.current

    def set(self, value: datetime.datetime) -> datetime.datetime:
        """Jump the clock to a specific instant."""
        self.current = value
        return self.current


_clock: Clock = Clock()


def get_clock() -> Clock:
    """Return the active clock."""
    return _clock


def set_clock(clock: Clock) -> Clock:
    """Install a new clock, returning the previous one."""
    global _clock

    previous = _clock
    _clock = clock
    return previous


@contextmanager
def use_clock(clock: Clock):
    """Temporarily install the provided clock."""
    previous = set_clock(clock)

    try:
        yield clock
    finally:
        set_clock(previous)


def current_time(local=True) -> datetime.datetime:
    """Return the current time according to the active clock.

    Arguments:
        local: If True, convert to the configured local timezone
    """
    now = get_clock().now()

    if local and settings.USE_TZ:
        now = timezone.localtime(now)

    return now


def str2bool(text, test=True):
    """Test if a string 'looks' like a boolean value.

    Args:
        text: Input text
        test (default = True): Set which boolean value to look for

    Returns:
        True if the text looks like the selected boolean value
    """
    if test:
        return str(text).lower() in ['1', 'y', 'yes', 't', 'true', 'ok', 'on']
    return str(text).lower() in ['0', 'n', 'no', 'none', 'f', 'false', 'off']


def get_global_setting(key: str, backup_value: Any = None) -> Any:
    """Return the value of a global policy setting.

    Arguments:
        key: Name of the setting (e.g. 'LOAN_DEFAULT_DURATION_MINUTES')
        backup_value: Value to return if the setting is not defined
    """
    return getattr(settings, key, backup_value)


def humanize_timedelta(delta: Optional[datetime.timedelta]) -> str:
    """Render a timedelta as a short string (e.g. '2 days', '3 hours')."""
    if delta is None:
        return ''

    seconds = int(delta.total_seconds())

    if seconds < 0:
        seconds = -seconds

    days, remainder = divmod(seconds, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes = remainder // 60

    if days > 0:
        return f'{days} day{"s" if days != 1 else ""}'
    if hours > 0:
        return f'{hours} hour{"s" if hours != 1 else ""}'
    if minutes > 0:
        return f'{minutes} minute{"s" if minutes != 1 else ""}'

    return 'less than a minute'
