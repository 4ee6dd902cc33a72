"""Event definitions for the student app."""

from LoanDesk.events import BaseEventEnum


class StudentEvents(BaseEventEnum):
    """Event definitions for the Student model."""

    CREATED = 'student.created'

    # Suspension lifecycle events
    SUSPENDED = 'student.suspended'
    SUSPENSION_LIFTED = 'student.suspension_lifted'
    SUSPENSION_EXPIRED = 'student.suspension_expired'

    # Risk events
    AT_RISK = 'student.at_risk'  # Triggered by scheduled scan
    ALERT_DISMISSED = 'student.alert_dismissed'
    TRUST_SCORE_UPDATED = 'student.trust_score_updated'
