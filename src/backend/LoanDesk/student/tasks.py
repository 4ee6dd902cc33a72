"""Background tasks for the student app."""

import structlog

from LoanDesk.events import trigger_event
from LoanDesk.helpers import get_global_setting
from LoanDesk.tasks import ScheduledTask, scheduled_task
from student.events import StudentEvents

logger = structlog.get_logger('loandesk')

SCAN_INTERVAL = get_global_setting('RISK_SCAN_INTERVAL_MINUTES', 15)


@scheduled_task(ScheduledTask.MINUTES, minutes=SCAN_INTERVAL)
def expire_suspensions():
    """Clear every suspension which has reached its end date."""
    from student.models import Student

    count = Student.auto_expire()

    if count:
        logger.info('Expired suspensions', count=count)

    return count


@scheduled_task(ScheduledTask.MINUTES, minutes=SCAN_INTERVAL)
def scan_at_risk_students():
    """Run the risk scan and announce the students who are at risk."""
    from student.risk import scan_at_risk

    results = scan_at_risk()

    if results:
        trigger_event(
            StudentEvents.AT_RISK,
            students=[entry.student.pk for entry in results],
        )

        logger.info('Students at risk', count=len(results))

    return [entry.student.pk for entry in results]
