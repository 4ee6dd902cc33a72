"""Validation methods for the student app."""

import re

from django.core.exceptions import ValidationError
from django.utils.translation import gettext_lazy as _

STUDENT_NUMBER_PREFIX = 'STU'
STUDENT_NUMBER_REGEX = re.compile(r'^[A-Za-z0-9][A-Za-z0-9\-_/]*$')


def generate_next_student_number():
    """Generate the next available student number (e.g. STU000042)."""
    from student.models import Student

    highest = 0

    numbers = Student.objects.filter(
        student_number__startswith=STUDENT_NUMBER_PREFIX
    ).values_list('student_number', flat=True)

    for number in numbers:
        suffix = number[len(STUDENT_NUMBER_PREFIX):]

        if suffix.isdigit():
            highest = max(highest, int(suffix))

    return f'{STUDENT_NUMBER_PREFIX}{highest + 1:06d}'


def validate_student_number(value):
    """Validate that a student number is a single alphanumeric token."""
    if not STUDENT_NUMBER_REGEX.match(str(value)):
        raise ValidationError(
            _('Student number must start with a letter or digit and contain no spaces')
        )
