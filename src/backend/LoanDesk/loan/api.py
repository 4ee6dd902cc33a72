"""JSON API for the Loan app."""

from django.shortcuts import get_object_or_404
from django.urls import include, path
from django.utils.translation import gettext_lazy as _

import django_filters.rest_framework.filters as rest_filters
from django_filters.rest_framework.filterset import FilterSet
from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from LoanDesk.filters import SEARCH_ORDER_FILTER, LoanDeskDateTimeFilter
from LoanDesk.helpers import current_time, str2bool
from LoanDesk.mixins import (
    CreateAPI,
    ListAPI,
    ListCreateAPI,
    RetrieveAPI,
    RetrieveUpdateAPI,
    SerializerContextMixin,
)
from loan import models, serializers
from loan.status_codes import EquipmentStatus, LoanStatus
from student.models import Student


class EquipmentFilter(FilterSet):
    """Custom filters for the EquipmentList endpoint."""

    class Meta:
        """Metaclass options."""

        model = models.EquipmentItem
        fields = ['category', 'location']

    status = rest_filters.ChoiceFilter(
        label=_('Status'), choices=EquipmentStatus.choices, field_name='status'
    )

    available = rest_filters.BooleanFilter(
        label=_('Available'), method='filter_available'
    )

    def filter_available(self, queryset, name, value):
        """Filter by items which can be borrowed."""
        if str2bool(value):
            return queryset.filter(status=EquipmentStatus.AVAILABLE)
        return queryset.exclude(status=EquipmentStatus.AVAILABLE)


class EquipmentList(SerializerContextMixin, ListCreateAPI):
    """API endpoint for accessing a list of EquipmentItem objects.

    - GET: Return list of EquipmentItem objects (with filters)
    - POST: Create a new EquipmentItem
    """

    queryset = models.EquipmentItem.objects.all()
    serializer_class = serializers.EquipmentItemSerializer
    filterset_class = EquipmentFilter
    filter_backends = SEARCH_ORDER_FILTER

    ordering_fields = ['item_code', 'name', 'category', 'location', 'status']

    search_fields = ['item_code', 'name', 'category', 'location']

    ordering = 'item_code'


class EquipmentDetail(SerializerContextMixin, RetrieveUpdateAPI):
    """API endpoint for detail view of an EquipmentItem object."""

    queryset = models.EquipmentItem.objects.all()
    serializer_class = serializers.EquipmentItemSerializer


class EquipmentStatusUpdate(SerializerContextMixin, CreateAPI):
    """API endpoint to change the status of an EquipmentItem."""

    queryset = models.EquipmentItem.objects.all()
    serializer_class = serializers.EquipmentStatusSerializer
    permission_classes = [permissions.IsAdminUser]

    def get_object(self):
        """Return the EquipmentItem instance."""
        if not hasattr(self, '_object'):
            self._object = get_object_or_404(
                models.EquipmentItem, pk=self.kwargs.get('pk')
            )
        return self._object

    def get_serializer_context(self):
        """Add the item to the serializer context."""
        ctx = super().get_serializer_context()
        ctx['item'] = self.get_object()
        return ctx

    def create(self, request, *args, **kwargs):
        """Change the status and return the updated item."""
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        item = serializer.save()

        item_serializer = serializers.EquipmentItemSerializer(item)
        return Response(item_serializer.data, status=status.HTTP_200_OK)


class LoanFilter(FilterSet):
    """Custom filters for the LoanList endpoint."""

    class Meta:
        """Metaclass options."""

        model = models.Loan
        fields = []

    student = rest_filters.ModelChoiceFilter(
        queryset=Student.objects.all(), field_name='student', label=_('Student')
    )

    equipment = rest_filters.ModelChoiceFilter(
        queryset=models.EquipmentItem.objects.all(),
        field_name='equipment',
        label=_('Equipment'),
    )

    status = rest_filters.ChoiceFilter(
        label=_('Loan Status'), choices=LoanStatus.choices, field_name='status'
    )

    overdue = rest_filters.BooleanFilter(label='overdue', method='filter_overdue')

    def filter_overdue(self, queryset, name, value):
        """Filter by overdue status (computed from due_at and returned_at)."""
        overdue = models.Loan.overdue_filter(current_time())

        if str2bool(value):
            return queryset.filter(overdue)
        return queryset.exclude(overdue)

    late = rest_filters.BooleanFilter(label=_('Returned Late'), method='filter_late')

    def filter_late(self, queryset, name, value):
        """Filter by loans which were returned late."""
        if str2bool(value):
            return queryset.filter(models.Loan.late_filter())
        return queryset.exclude(models.Loan.late_filter())

    outstanding = rest_filters.BooleanFilter(
        label=_('Outstanding'), method='filter_outstanding'
    )

    def filter_outstanding(self, queryset, name, value):
        """Filter by loans which have not been returned."""
        return queryset.filter(returned_at__isnull=str2bool(value))

    borrowed_before = LoanDeskDateTimeFilter(
        label=_('Borrowed Before'), field_name='borrowed_at', lookup_expr='lt'
    )

    borrowed_after = LoanDeskDateTimeFilter(
        label=_('Borrowed After'), field_name='borrowed_at', lookup_expr='gt'
    )

    due_before = LoanDeskDateTimeFilter(
        label=_('Due Before'), field_name='due_at', lookup_expr='lt'
    )

    due_after = LoanDeskDateTimeFilter(
        label=_('Due After'), field_name='due_at', lookup_expr='gt'
    )


class LoanMixin(SerializerContextMixin):
    """Mixin class for Loan endpoints."""

    queryset = models.Loan.objects.all()
    serializer_class = serializers.LoanSerializer

    def get_queryset(self, *args, **kwargs):
        """Return annotated queryset for this endpoint."""
        queryset = super().get_queryset(*args, **kwargs)

        queryset = queryset.select_related('student', 'equipment')

        queryset = serializers.LoanSerializer.annotate_queryset(
            queryset, current_time()
        )

        return queryset


class LoanList(LoanMixin, ListAPI):
    """API endpoint for accessing a list of Loan objects.

    Loans are created through the borrow endpoint.
    """

    filterset_class = LoanFilter
    filter_backends = SEARCH_ORDER_FILTER

    ordering_fields = ['borrowed_at', 'due_at', 'returned_at', 'status']

    search_fields = [
        'student__full_name',
        'student__student_number',
        'equipment__item_code',
        'equipment__name',
    ]

    ordering = '-borrowed_at'


class LoanDetail(LoanMixin, RetrieveAPI):
    """API endpoint for detail view of a Loan object."""


class LoanBorrow(SerializerContextMixin, CreateAPI):
    """API endpoint to lend items to a student."""

    queryset = models.Loan.objects.all()
    serializer_class = serializers.LoanBorrowSerializer

    def create(self, request, *args, **kwargs):
        """Create the loans and return them."""
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        loans = serializer.save()

        loan_serializer = serializers.LoanSerializer(
            loans, many=True, context=self.get_serializer_context()
        )
        return Response(loan_serializer.data, status=status.HTTP_201_CREATED)


class LoanContextMixin(SerializerContextMixin):
    """Mixin to add the loan object as serializer context variable."""

    def get_serializer_context(self):
        """Add loan to the serializer context."""
        ctx = super().get_serializer_context()
        ctx['loan'] = self.get_object()
        return ctx

    def get_object(self):
        """Return the Loan instance."""
        if not hasattr(self, '_object'):
            self._object = get_object_or_404(
                models.Loan.objects.select_related('student', 'equipment'),
                pk=self.kwargs.get('pk'),
            )
        return self._object


class LoanReturn(LoanContextMixin, CreateAPI):
    """API endpoint to return a Loan."""

    queryset = models.Loan.objects.all()
    serializer_class = serializers.LoanReturnSerializer

    def create(self, request, *args, **kwargs):
        """Return the loan and respond with the receipt."""
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        receipt = serializer.save()

        receipt_serializer = serializers.ReturnReceiptSerializer(
            receipt, context=self.get_serializer_context()
        )
        return Response(receipt_serializer.data, status=status.HTTP_200_OK)


class LoanUndoReturn(LoanContextMixin, CreateAPI):
    """API endpoint to undo the return of a Loan."""

    queryset = models.Loan.objects.all()
    serializer_class = serializers.LoanUndoReturnSerializer

    def create(self, request, *args, **kwargs):
        """Undo the return and respond with the reopened loan."""
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        instance = serializer.save()

        loan_serializer = serializers.LoanSerializer(
            instance, context=self.get_serializer_context()
        )
        return Response(loan_serializer.data, status=status.HTTP_200_OK)


class LoanStatusView(APIView):
    """API endpoint listing the status codes used by the loan app."""

    def get(self, request, *args, **kwargs):
        """Return the status codes."""
        return Response(serializers.status_listing())


loan_api_urls = [
    path(
        'equipment/',
        include([
            path(
                '<int:pk>/',
                include([
                    path(
                        'status/',
                        EquipmentStatusUpdate.as_view(),
                        name='api-equipment-status',
                    ),
                    path('', EquipmentDetail.as_view(), name='api-equipment-detail'),
                ]),
            ),
            path('', EquipmentList.as_view(), name='api-equipment-list'),
        ]),
    ),
    path('status/', LoanStatusView.as_view(), name='api-loan-status-list'),
    path('borrow/', LoanBorrow.as_view(), name='api-loan-borrow'),
    path(
        '<int:pk>/',
        include([
            path('return/', LoanReturn.as_view(), name='api-loan-return'),
            path('undo-return/', LoanUndoReturn.as_view(), name='api-loan-undo-return'),
            path('', LoanDetail.as_view(), name='api-loan-detail'),
        ]),
    ),
    path('', LoanList.as_view(), name='api-loan-list'),
]
