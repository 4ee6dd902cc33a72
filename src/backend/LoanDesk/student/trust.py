"""Trust score and warning threshold policy.

These are pure functions of a student's counters. Callers supply the
counts (see Student.total_late_returns and Student.total_suspensions),
so the policy can be tested without a database.
"""

from LoanDesk.helpers import get_global_setting

TRUST_MIN = 0
TRUST_MAX = 100

# Late returns needed to trigger the first warning
FIRST_WARNING_THRESHOLD = 3

# Once suspended, threshold = suspensions + this offset (3 -> 5 -> 6 -> 7 ...)
THRESHOLD_OFFSET = 4


def trust_score(total_late_returns: int, total_suspensions: int = 0) -> int:
    """Return the trust score for the provided counters.

    The score starts at STUDENT_TRUST_BASE and loses STUDENT_TRUST_LATE_PENALTY
    points per late return, floored at zero. Each suspension then halves the
    result (integer division), so issuing a suspension halves the current score.

    Arguments:
        total_late_returns: Lifetime number of loans returned late
        total_suspensions: Number of suspensions ever issued
    """
    if total_late_returns < 0 or total_suspensions < 0:
        raise ValueError('Counters cannot be negative')

    base = get_global_setting('STUDENT_TRUST_BASE', TRUST_MAX)
    penalty = get_global_setting('STUDENT_TRUST_LATE_PENALTY', 20)

    score = max(TRUST_MIN, base - penalty * total_late_returns)
    score >>= total_suspensions

    return max(TRUST_MIN, min(TRUST_MAX, score))


def warning_threshold(total_suspensions: int) -> int:
    """Return the late-return count which triggers the next at-risk alert.

    - No previous suspensions: 3
    - Otherwise: total_suspensions + 4
    """
    if total_suspensions < 0:
        raise ValueError('Suspension count cannot be negative')

    if total_suspensions == 0:
        return FIRST_WARNING_THRESHOLD

    return total_suspensions + THRESHOLD_OFFSET


def trust_level(score: int) -> str:
    """Return a coarse label for a trust score."""
    if score >= 80:
        return 'high'
    if score >= 50:
        return 'medium'
    return 'low'
