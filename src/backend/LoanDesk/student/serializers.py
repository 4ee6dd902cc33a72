"""JSON serializers for the Student API."""

from django.db.models import Q
from django.utils.translation import gettext_lazy as _

from rest_framework import serializers
from sql_util.utils import SubqueryCount

import student.models
import student.risk
import student.trust
from LoanDesk.helpers import current_time, get_global_setting
from student.status_codes import StudentRiskState


class StudentBriefSerializer(serializers.ModelSerializer):
    """Minimal serializer for the Student model, used in nested output."""

    class Meta:
        """Metaclass options."""

        model = student.models.Student
        fields = [
            'pk',
            'student_number',
            'full_name',
            'year_group',
            'class_name',
            'trust_score',
            'is_blacklisted',
        ]
        read_only_fields = fields


class StudentSerializer(serializers.ModelSerializer):
    """Serializer for the Student model."""

    class Meta:
        """Metaclass options."""

        model = student.models.Student
        fields = [
            'pk',
            'student_number',
            'full_name',
            'year_group',
            'class_name',
            'house',
            'email',
            'trust_score',
            'trust_level',
            'is_blacklisted',
            'is_restricted',
            'blacklist_end_date',
            'blacklist_reason',
            'total_loans',
            'active_loans',
            'created',
            'updated',
        ]
        read_only_fields = [
            'trust_score',
            'is_blacklisted',
            'blacklist_end_date',
            'blacklist_reason',
            'created',
            'updated',
        ]
        extra_kwargs = {'student_number': {'required': False}}

    @staticmethod
    def annotate_queryset(queryset):
        """Add loan counts to the queryset."""
        queryset = queryset.annotate(
            total_loans=SubqueryCount('loans'),
            active_loans=SubqueryCount('loans', filter=Q(returned_at__isnull=True)),
        )

        return queryset

    total_loans = serializers.IntegerField(read_only=True, default=0)

    active_loans = serializers.IntegerField(read_only=True, default=0)

    trust_level = serializers.SerializerMethodField()

    is_restricted = serializers.SerializerMethodField()

    def get_trust_level(self, obj) -> str:
        """Return the coarse trust label."""
        return student.trust.trust_level(obj.trust_score)

    def get_is_restricted(self, obj) -> bool:
        """Return True if the student may not borrow right now."""
        return obj.is_restricted(current_time())


class StudentDetailSerializer(StudentSerializer):
    """Serializer for a single Student, including the current risk state."""

    class Meta(StudentSerializer.Meta):
        """Metaclass options."""

        fields = [*StudentSerializer.Meta.fields, 'at_risk', 'risk_state']

    at_risk = serializers.SerializerMethodField()

    risk_state = serializers.SerializerMethodField()

    def get_at_risk(self, obj) -> bool:
        """Return True if the student has reached their warning threshold."""
        return student.risk.is_at_risk(obj, current_time())

    def get_risk_state(self, obj) -> str:
        """Return the StudentRiskState for the student."""
        return obj.risk_state(current_time())


class SuspensionEntrySerializer(serializers.ModelSerializer):
    """Serializer for the SuspensionEntry model (read only)."""

    class Meta:
        """Metaclass options."""

        model = student.models.SuspensionEntry
        fields = [
            'pk',
            'student',
            'student_detail',
            'start_date',
            'end_date',
            'reason',
            'is_active',
            'issued_by',
        ]
        read_only_fields = fields

    student_detail = StudentBriefSerializer(source='student', read_only=True)


class DismissedNotificationSerializer(serializers.ModelSerializer):
    """Serializer for the DismissedNotification model."""

    class Meta:
        """Metaclass options."""

        model = student.models.DismissedNotification
        fields = [
            'pk',
            'student',
            'late_returns_count',
            'warning_threshold',
            'dismissed_at',
            'dismissed_by',
        ]
        read_only_fields = fields


class StudentSuspendSerializer(serializers.Serializer):
    """Serializer for suspending a Student."""

    class Meta:
        """Metaclass options."""

        fields = ['duration_days', 'reason']

    duration_days = serializers.IntegerField(
        required=False,
        min_value=1,
        label=_('Duration'),
        help_text=_('Length of the suspension in days'),
    )

    reason = serializers.CharField(
        required=True,
        allow_blank=False,
        label=_('Reason'),
        help_text=_('Why the student is being suspended'),
    )

    def save(self):
        """Suspend the student and return the updated record."""
        instance = self.context['student']
        data = self.validated_data

        duration = data.get('duration_days') or get_global_setting(
            'STUDENT_DEFAULT_SUSPENSION_DAYS', 7
        )

        instance.suspend(duration, data['reason'], user=self.context.get('user'))
        instance.refresh_from_db()
        return instance


class StudentLiftSerializer(serializers.Serializer):
    """Serializer for lifting a Student suspension."""

    class Meta:
        """Metaclass options."""

        fields = []

    def save(self):
        """Lift the suspension and return the updated record."""
        instance = self.context['student']
        instance.lift_suspension(user=self.context.get('user'))
        instance.refresh_from_db()
        return instance


class StudentDismissSerializer(serializers.Serializer):
    """Serializer for dismissing an at-risk alert."""

    class Meta:
        """Metaclass options."""

        fields = ['late_returns_count', 'warning_threshold']

    late_returns_count = serializers.IntegerField(
        required=True,
        min_value=0,
        label=_('Late Returns'),
        help_text=_('Late return count shown in the alert'),
    )

    warning_threshold = serializers.IntegerField(
        required=True,
        min_value=1,
        label=_('Warning Threshold'),
        help_text=_('Threshold shown in the alert'),
    )

    def save(self):
        """Record the dismissal."""
        instance = self.context['student']
        data = self.validated_data

        return instance.dismiss_alert(
            data['late_returns_count'],
            data['warning_threshold'],
            user=self.context.get('user'),
        )


class AtRiskStudentSerializer(serializers.Serializer):
    """Serializer for an entry in the at-risk list."""

    student = StudentBriefSerializer(read_only=True)
    late_returns_since_suspension = serializers.IntegerField(read_only=True)
    warning_threshold = serializers.IntegerField(read_only=True)
    warning_level = serializers.IntegerField(read_only=True)
    total_suspensions = serializers.IntegerField(read_only=True)
    total_late_returns = serializers.IntegerField(read_only=True)
    trust_score = serializers.IntegerField(read_only=True)
    is_blacklisted = serializers.BooleanField(read_only=True)


class StudentProfileSerializer(serializers.Serializer):
    """Serializer for the borrowing statistics shown on a student profile."""

    total_loans = serializers.IntegerField(read_only=True)
    active_loans = serializers.IntegerField(read_only=True)
    overdue_loans = serializers.IntegerField(read_only=True)
    total_late_returns = serializers.IntegerField(read_only=True)
    late_or_overdue = serializers.IntegerField(read_only=True)
    late_returns_since_suspension = serializers.IntegerField(read_only=True)
    total_suspensions = serializers.IntegerField(read_only=True)
    warning_threshold = serializers.IntegerField(read_only=True)
    trust_score = serializers.IntegerField(read_only=True)
    trust_level = serializers.CharField(read_only=True)
    risk_state = serializers.ChoiceField(choices=StudentRiskState.choices, read_only=True)
    recent_loans = serializers.SerializerMethodField()

    def get_recent_loans(self, data) -> list:
        """Serialize the most recent loans."""
        from loan.serializers import LoanSerializer

        return LoanSerializer(data['recent_loans'], many=True, context=self.context).data
