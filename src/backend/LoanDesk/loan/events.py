"""Event definitions for the loan app."""

from LoanDesk.events import BaseEventEnum


class LoanEvents(BaseEventEnum):
    """Event definitions for the Loan model."""

    # Loan lifecycle events
    BORROWED = 'loan.borrowed'
    RETURNED = 'loan.returned'
    RETURN_UNDONE = 'loan.return_undone'

    # Late return events (drive the student trust score)
    LATE_RETURN = 'loan.late_return'
    LATE_RETURN_REVERTED = 'loan.late_return_reverted'

    # Special events
    OVERDUE = 'loan.overdue'  # Triggered by scheduled task, not status change


class EquipmentEvents(BaseEventEnum):
    """Event definitions for the EquipmentItem model."""

    CREATED = 'equipment.created'
    STATUS_CHANGED = 'equipment.status_changed'
