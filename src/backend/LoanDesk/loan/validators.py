"""Validation methods for the loan app."""

import re

from django.core.exceptions import ValidationError
from django.utils.translation import gettext_lazy as _

ITEM_CODE_REGEX = re.compile(r'^[A-Za-z0-9][A-Za-z0-9\-_/.]*$')


def validate_item_code(value):
    """Validate that an equipment item code is a single token."""
    if not ITEM_CODE_REGEX.match(str(value)):
        raise ValidationError(
            _('Item code must start with a letter or digit and contain no spaces')
        )


def validate_loan_duration(duration):
    """Validate that a loan duration is positive."""
    if duration is None or duration.total_seconds() <= 0:
        raise ValidationError({'duration': _('Loan duration must be positive')})
