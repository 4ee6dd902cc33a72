"""Event dispatch for LoanDesk.

Events are the hand-off point between the loan lifecycle, the student
risk engine and whatever delivers alerts to staff. Receivers connect to
the 'event_triggered' signal and filter on the event name.
"""

import enum

import django.dispatch

import structlog

logger = structlog.get_logger('loandesk')

# Sent with 'event' (str) plus the keyword arguments supplied to trigger_event
event_triggered = django.dispatch.Signal()


class BaseEventEnum(str, enum.Enum):
    """Base class for event enumerations.

    Subclasses list the event names for a single app, e.g. 'loan.returned'.
    """

    def __str__(self):
        """Return the event name."""
        return self.value


def trigger_event(event, *args, **kwargs):
    """Trigger an event with optional arguments.

    Receivers are run synchronously, so any database writes they make
    share the caller's transaction.

    Arguments:
        event: The event name (a BaseEventEnum member or string)
        kwargs: Data attached to the event, passed through to receivers
    """
    event = str(event)

    logger.debug('Event triggered', event_name=event, **kwargs)

    return event_triggered.send(sender=None, event=event, **kwargs)


def event_receiver(*events):
    """Decorator which connects a function to the named events only.

    The decorated function is called as func(event, **kwargs).
    """
    names = {str(e) for e in events}

    def _wrapper(func):
        def _receiver(sender, event=None, **kwargs):
            if event in names:
                return func(event, **kwargs)
            return None

        # Keep a strong reference, and make the connection idempotent
        func._event_receiver = _receiver
        event_triggered.connect(
            _receiver, weak=False, dispatch_uid=f'{func.__module__}.{func.__qualname__}'
        )
        return func

    return _wrapper
