"""General filters for LoanDesk API views."""

from django.utils import timezone

import django_filters.rest_framework.filters as rest_filters
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework.filters import OrderingFilter, SearchFilter


class LoanDeskDateTimeFilter(rest_filters.IsoDateTimeFilter):
    """Datetime filter which treats naive input as server local time."""

    def filter(self, qs, value):
        """Make the provided value timezone aware before filtering."""
        if value and timezone.is_naive(value):
            value = timezone.make_aware(value)

        return super().filter(qs, value)


# Default filter backends for list views
SEARCH_ORDER_FILTER = [DjangoFilterBackend, SearchFilter, OrderingFilter]
