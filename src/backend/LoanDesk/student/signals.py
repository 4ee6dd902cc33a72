"""Receivers which keep student data in step with loan events."""

import structlog

from LoanDesk.events import event_receiver
from loan.events import LoanEvents

logger = structlog.get_logger('loandesk')


@event_receiver(LoanEvents.LATE_RETURN, LoanEvents.LATE_RETURN_REVERTED)
def update_trust_score(event, student_id=None, **kwargs):
    """Recompute the cached trust score after the late-return count changes.

    Runs inside the transaction of the return (or undo) which sent the event.
    """
    from student.models import Student

    if student_id is None:
        return

    try:
        student = Student.objects.get(pk=student_id)
    except Student.DoesNotExist:
        logger.warning('Trust score update for missing student', student=student_id)
        return

    student.refresh_trust_score()
