"""Custom filters for the loan app."""

from django.db.models import F, Q


def filter_open_loans():
    """Return a Q filter for loans which have not been returned."""
    return Q(returned_at__isnull=True)


def filter_overdue_loans(now):
    """Return a Q filter for open loans whose due time has passed."""
    return filter_open_loans() & Q(due_at__lt=now)


def filter_late_loans():
    """Return a Q filter for loans which were returned after their due time."""
    return Q(returned_at__isnull=False) & Q(returned_at__gt=F('due_at'))
