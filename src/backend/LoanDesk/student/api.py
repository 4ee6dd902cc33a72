"""JSON API for the Student app."""

from django.shortcuts import get_object_or_404
from django.urls import include, path
from django.utils.translation import gettext_lazy as _

import django_filters.rest_framework.filters as rest_filters
from django_filters.rest_framework.filterset import FilterSet
from rest_framework import permissions, status
from rest_framework.response import Response

from LoanDesk.exceptions import InvalidState
from LoanDesk.filters import SEARCH_ORDER_FILTER
from LoanDesk.helpers import current_time, str2bool
from LoanDesk.mixins import (
    CreateAPI,
    ListAPI,
    ListCreateAPI,
    RetrieveAPI,
    RetrieveUpdateDestroyAPI,
    SerializerContextMixin,
)
from student import models, serializers
from student.risk import scan_at_risk


class StudentFilter(FilterSet):
    """Custom filters for the StudentList endpoint."""

    class Meta:
        """Metaclass options."""

        model = models.Student
        fields = ['year_group', 'class_name', 'house']

    restricted = rest_filters.BooleanFilter(
        label=_('Restricted'), method='filter_restricted'
    )

    def filter_restricted(self, queryset, name, value):
        """Filter by students currently serving a suspension."""
        restricted = models.Student.restricted_filter(current_time())

        if str2bool(value):
            return queryset.filter(restricted)
        return queryset.exclude(restricted)


class StudentMixin(SerializerContextMixin):
    """Mixin class for Student endpoints."""

    queryset = models.Student.objects.all()
    serializer_class = serializers.StudentSerializer

    def get_queryset(self, *args, **kwargs):
        """Return annotated queryset for this endpoint."""
        queryset = super().get_queryset(*args, **kwargs)
        queryset = serializers.StudentSerializer.annotate_queryset(queryset)
        return queryset


class StudentList(StudentMixin, ListCreateAPI):
    """API endpoint for accessing a list of Student objects.

    - GET: Return list of Student objects (with filters)
    - POST: Create a new Student
    """

    filterset_class = StudentFilter
    filter_backends = SEARCH_ORDER_FILTER

    ordering_fields = [
        'student_number',
        'full_name',
        'year_group',
        'class_name',
        'house',
        'trust_score',
        'created',
    ]

    search_fields = ['student_number', 'full_name', 'email', 'class_name']

    ordering = 'full_name'


class StudentDetail(StudentMixin, RetrieveUpdateDestroyAPI):
    """API endpoint for detail view of a Student object."""

    serializer_class = serializers.StudentDetailSerializer

    def perform_destroy(self, instance):
        """Students with loan history cannot be deleted."""
        if instance.loans.exists():
            raise InvalidState(
                _('Student has loan history and cannot be deleted'),
                student=instance.pk,
            )

        super().perform_destroy(instance)


class StudentProfile(StudentMixin, RetrieveAPI):
    """API endpoint returning the borrowing statistics for a Student."""

    serializer_class = serializers.StudentProfileSerializer

    def retrieve(self, request, *args, **kwargs):
        """Return the profile statistics."""
        instance = self.get_object()
        data = instance.profile_statistics(current_time())

        serializer = self.get_serializer(data)
        return Response(serializer.data)


class StudentContextMixin(SerializerContextMixin):
    """Mixin to add the student object as serializer context variable."""

    def get_serializer_context(self):
        """Add the student to the serializer context."""
        ctx = super().get_serializer_context()
        ctx['student'] = self.get_object()
        return ctx

    def get_object(self):
        """Return the Student instance."""
        if not hasattr(self, '_object'):
            self._object = get_object_or_404(models.Student, pk=self.kwargs.get('pk'))
        return self._object


class StudentActionMixin(StudentContextMixin):
    """Run a staff action against a Student and return the updated record."""

    queryset = models.Student.objects.all()
    permission_classes = [permissions.IsAdminUser]

    def create(self, request, *args, **kwargs):
        """Apply the action and return the updated student."""
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        serializer.save()

        instance = serializers.StudentSerializer.annotate_queryset(
            models.Student.objects.filter(pk=self.get_object().pk)
        ).get()

        student_serializer = serializers.StudentSerializer(
            instance, context=self.get_serializer_context()
        )
        return Response(student_serializer.data, status=status.HTTP_200_OK)


class StudentSuspend(StudentActionMixin, CreateAPI):
    """API endpoint to suspend a Student."""

    serializer_class = serializers.StudentSuspendSerializer


class StudentLift(StudentActionMixin, CreateAPI):
    """API endpoint to lift a Student suspension early."""

    serializer_class = serializers.StudentLiftSerializer


class StudentDismiss(StudentContextMixin, CreateAPI):
    """API endpoint to dismiss the at-risk alert for a Student."""

    queryset = models.Student.objects.all()
    serializer_class = serializers.StudentDismissSerializer
    permission_classes = [permissions.IsAdminUser]

    def create(self, request, *args, **kwargs):
        """Record the dismissal and return it."""
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        dismissal = serializer.save()

        output = serializers.DismissedNotificationSerializer(dismissal)
        return Response(output.data, status=status.HTTP_201_CREATED)


class AtRiskStudentList(ListAPI):
    """API endpoint which runs the risk scan.

    - GET: Return every student at or above their warning threshold
    """

    serializer_class = serializers.AtRiskStudentSerializer
    pagination_class = None
    filter_backends = []

    def get_queryset(self):
        """Run the scan (expiring lapsed suspensions first)."""
        return scan_at_risk(current_time())


class SuspensionFilter(FilterSet):
    """Custom filters for the SuspensionList endpoint."""

    class Meta:
        """Metaclass options."""

        model = models.SuspensionEntry
        fields = ['student']

    active = rest_filters.BooleanFilter(label=_('Active'), method='filter_active')

    def filter_active(self, queryset, name, value):
        """Filter by active suspensions."""
        return queryset.filter(is_active=str2bool(value))


class SuspensionList(ListAPI):
    """API endpoint for the suspension history (read only)."""

    queryset = models.SuspensionEntry.objects.select_related('student')
    serializer_class = serializers.SuspensionEntrySerializer
    filterset_class = SuspensionFilter
    filter_backends = SEARCH_ORDER_FILTER

    ordering_fields = ['start_date', 'end_date']
    search_fields = ['student__full_name', 'student__student_number', 'reason']
    ordering = '-start_date'


student_api_urls = [
    path('at-risk/', AtRiskStudentList.as_view(), name='api-student-at-risk'),
    path('suspension/', SuspensionList.as_view(), name='api-student-suspension-list'),
    path(
        '<int:pk>/',
        include([
            path('profile/', StudentProfile.as_view(), name='api-student-profile'),
            path('suspend/', StudentSuspend.as_view(), name='api-student-suspend'),
            path('lift/', StudentLift.as_view(), name='api-student-lift'),
            path('dismiss/', StudentDismiss.as_view(), name='api-student-dismiss'),
            path('', StudentDetail.as_view(), name='api-student-detail'),
        ]),
    ),
    path('', StudentList.as_view(), name='api-student-list'),
]
