"""Custom exception handling for the LoanDesk project.

Domain errors raised by the loan and student engines all derive from
LoanDeskError. Each carries a machine readable 'code' (the error kind),
a 'retryable' flag, and a 'context' dict with the data a client needs
to render a precise message (e.g. the end date of a suspension).
"""

import sys
import traceback

from django.core.exceptions import ValidationError as DjangoValidationError
from django.utils.translation import gettext_lazy as _

import rest_framework.views as drfviews
import structlog
from rest_framework import serializers, status
from rest_framework.exceptions import ValidationError as DRFValidationError
from rest_framework.response import Response

logger = structlog.get_logger('loandesk')


def log_error(path, error_name=None, error_info=None, error_data=None):
    """Log an error to the server log.

    Arguments:
        path: The 'path' (most likely a URL) associated with this error (optional)

    kwargs:
        error_name: The name of the error (optional, overrides 'kind')
        error_info: The error information (optional, overrides 'info')
        error_data: The error data (optional, overrides 'data')
    """
    kind, info, data = sys.exc_info()

    # Check if the error is on the ignore list
    if kind in IGNORED_ERRORS:
        return

    if error_name:
        kind = error_name
    else:
        kind = getattr(kind, '__name__', 'Unknown Error')

    if error_info:
        info = error_info

    if error_data:
        data = error_data
    elif data is not None:
        data = '\n'.join(traceback.format_exception(None, info, data))

    logger.error('Unhandled error', path=path, kind=kind, info=str(info), data=data)


class LoanDeskError(Exception):
    """Base class for errors raised by the loan and student engines."""

    code = 'error'
    retryable = False
    http_status = status.HTTP_400_BAD_REQUEST
    default_message = _('An error occurred')

    def __init__(self, message=None, **context):
        """Initialize the error with an optional message and context values."""
        self.message = str(message or self.default_message)
        self.context = context
        super().__init__(self.message)

    def as_dict(self) -> dict:
        """Return a serializable representation of this error."""
        data = {
            'kind': self.code,
            'detail': self.message,
            'retryable': self.retryable,
        }

        for key, value in self.context.items():
            data[key] = value

        return data


class StudentRestricted(LoanDeskError):
    """The student is currently suspended from borrowing."""

    code = 'student_restricted'
    http_status = status.HTTP_403_FORBIDDEN
    default_message = _('Student is currently suspended from borrowing')


class EquipmentUnavailable(LoanDeskError):
    """One or more requested items are not available for loan."""

    code = 'equipment_unavailable'
    http_status = status.HTTP_409_CONFLICT
    default_message = _('Equipment is not available')


class ConcurrencyConflict(LoanDeskError):
    """A conditional update affected no rows; the caller should retry."""

    code = 'concurrency_conflict'
    retryable = True
    http_status = status.HTTP_409_CONFLICT
    default_message = _('The record was modified by another request, please retry')


class InvalidState(LoanDeskError):
    """The operation is not valid for the current state of the record."""

    code = 'invalid_state'
    http_status = status.HTTP_400_BAD_REQUEST
    default_message = _('Operation is not valid in the current state')


class AlreadySuspended(LoanDeskError):
    """The student is already serving an unexpired suspension."""

    code = 'already_suspended'
    http_status = status.HTTP_409_CONFLICT
    default_message = _('Student is already suspended')


# Errors which are expected and should not be logged as server errors
IGNORED_ERRORS = [
    StudentRestricted,
    EquipmentUnavailable,
    ConcurrencyConflict,
    InvalidState,
    AlreadySuspended,
    DjangoValidationError,
]


def exception_handler(exc, context):
    """Custom exception handler for DRF framework.

    Ref: https://www.django-rest-framework.org/api-guide/exceptions/#custom-exception-handling

    Engine errors are rendered with their kind and context data.
    Django ValidationError is converted to a DRF ValidationError.
    Any other error falls through to the default DRF handler.
    """
    if isinstance(exc, LoanDeskError):
        return Response(exc.as_dict(), status=exc.http_status)

    if isinstance(exc, DjangoValidationError):
        exc = DRFValidationError(detail=serializers.as_serializer_error(exc))

    response = drfviews.exception_handler(exc, context)

    if response is None:
        # An unhandled exception: record it before DRF returns a 500
        request = context.get('request')
        path = request.path if request else ''
        log_error(path)
    elif isinstance(exc, DRFValidationError) and isinstance(response.data, dict):
        response.data.setdefault('kind', 'validation_error')

    return response
