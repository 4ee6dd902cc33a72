"""Background tasks for the loan module."""

from datetime import timedelta

import structlog

from LoanDesk.events import trigger_event
from LoanDesk.helpers import current_time, get_global_setting
from LoanDesk.tasks import ScheduledTask, scheduled_task

logger = structlog.get_logger('loandesk')

CHECK_INTERVAL = get_global_setting('RISK_SCAN_INTERVAL_MINUTES', 15)


def notify_overdue_loan(loan) -> None:
    """Announce that a Loan has just become overdue.

    Arguments:
        loan: The Loan object that is overdue.
    """
    from loan.events import LoanEvents

    trigger_event(
        LoanEvents.OVERDUE,
        id=loan.pk,
        student_id=loan.student_id,
        equipment_id=loan.equipment_id,
        due_at=loan.due_at.isoformat(),
    )


@scheduled_task(ScheduledTask.MINUTES, minutes=CHECK_INTERVAL)
def check_overdue_loans(now=None, interval=None):
    """Check for loans which became overdue since the last check.

    A loan is announced once: when its due time falls within the
    most recent check interval and it is still open.
    """
    from loan.models import Loan

    if not get_global_setting('LOAN_OVERDUE_ALERTS_ENABLED', True):
        logger.debug('Overdue loan alerts are disabled')
        return []

    now = now or current_time()
    interval = interval or timedelta(minutes=CHECK_INTERVAL)

    overdue_loans = Loan.objects.filter(
        Loan.overdue_filter(now), due_at__gte=now - interval
    ).select_related('student', 'equipment')

    logger.info(f'Found {overdue_loans.count()} newly overdue loans')

    for instance in overdue_loans:
        notify_overdue_loan(instance)
        logger.debug(
            f'Notified overdue for loan of {instance.equipment.item_code} '
            f'to {instance.student.student_number}'
        )

    return [instance.pk for instance in overdue_loans]
