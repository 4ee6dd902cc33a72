"""At-risk student detection.

A student is at risk when the number of late returns since their last
suspension has reached the current warning threshold, and staff have not
dismissed an alert for exactly that count and threshold.
"""

from dataclasses import dataclass

from django.db.models import OuterRef, Subquery

import structlog
from sql_util.utils import SubqueryCount

import student.trust
from LoanDesk.helpers import current_time

logger = structlog.get_logger('loandesk')


@dataclass
class AtRiskStudent:
    """A student who has reached their warning threshold."""

    student: object
    late_returns_since_suspension: int
    warning_threshold: int
    total_suspensions: int
    total_late_returns: int
    trust_score: int
    is_blacklisted: bool

    @property
    def warning_level(self) -> int:
        """Return which warning this is (1 = first warning, 2 = second...)."""
        return self.total_suspensions + 1


def annotate_risk_counters(queryset):
    """Annotate a Student queryset with the counters used by the risk scan.

    Adds:
        - suspension_count: Number of suspensions ever issued
        - late_count: Lifetime number of late returns
        - last_suspension_end: End date of the most recent suspension
    """
    from loan.models import Loan
    from student.models import SuspensionEntry

    last_entry = SuspensionEntry.objects.filter(student=OuterRef('pk')).order_by(
        '-start_date', '-pk'
    )

    return queryset.annotate(
        suspension_count=SubqueryCount('suspensions'),
        late_count=SubqueryCount('loans', filter=Loan.late_filter()),
        last_suspension_end=Subquery(last_entry.values('end_date')[:1]),
    )


def evaluate(student_obj, now=None):
    """Return an AtRiskStudent for the provided student, or None if not at risk.

    Uses the annotated counters if present, otherwise queries them.
    """
    now = now or current_time()

    suspensions = getattr(student_obj, 'suspension_count', None)
    if suspensions is None:
        suspensions = student_obj.total_suspensions()

    lifetime = getattr(student_obj, 'late_count', None)
    if lifetime is None:
        lifetime = student_obj.total_late_returns()

    threshold = student.trust.warning_threshold(suspensions)

    # The window can only hold as many late returns as the lifetime total
    if lifetime < threshold:
        return None

    if hasattr(student_obj, 'last_suspension_end'):
        late_since = student_obj.late_returns_since(student_obj.last_suspension_end)
    else:
        late_since = student_obj.late_returns_since_last_suspension()

    if late_since < threshold:
        return None

    if student_obj.has_dismissed(late_since, threshold):
        return None

    return AtRiskStudent(
        student=student_obj,
        late_returns_since_suspension=late_since,
        warning_threshold=threshold,
        total_suspensions=suspensions,
        total_late_returns=lifetime,
        trust_score=student_obj.trust_score,
        is_blacklisted=student_obj.is_restricted(now),
    )


def scan_at_risk(now=None) -> list[AtRiskStudent]:
    """Return every student currently at risk, sorted by name.

    Lapsed suspensions are expired first, so the result reflects the
    state at 'now'.
    """
    from student.models import Student

    now = now or current_time()

    Student.auto_expire(now)

    queryset = annotate_risk_counters(Student.objects.all()).order_by(
        'full_name', 'pk'
    )

    results = []

    for student_obj in queryset:
        entry = evaluate(student_obj, now)

        if entry is not None:
            results.append(entry)

    logger.debug('Risk scan complete', at_risk=len(results))

    return results


def is_at_risk(student_obj, now=None) -> bool:
    """Return True if the provided student is currently at risk."""
    return evaluate(student_obj, now) is not None
