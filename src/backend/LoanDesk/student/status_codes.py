"""Student risk states."""

from django.db import models
from django.utils.translation import gettext_lazy as _


class StudentRiskState(models.TextChoices):
    """Where a student sits on the risk / suspension axis.

    The state is never stored; it is derived from the suspension log,
    the late-return count and the dismissal log every time it is read.
    """

    # Below the warning threshold
    CLEAR = 'clear', _('Clear')

    # At or above the warning threshold, alert not dismissed
    AT_RISK = 'at_risk', _('At Risk')

    # At or above the threshold, alert dismissed for the current count
    DISMISSED = 'dismissed', _('Dismissed')

    # Serving an unexpired suspension
    SUSPENDED = 'suspended', _('Suspended')
