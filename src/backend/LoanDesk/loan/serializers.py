"""JSON serializers for the Loan API."""

from datetime import timedelta

from django.db.models import BooleanField, Case, Value, When
from django.utils.translation import gettext_lazy as _

from rest_framework import serializers
from rest_framework.serializers import ValidationError

import loan.models
import student.models
from LoanDesk.helpers import current_time, humanize_timedelta
from loan.status_codes import (
    EquipmentStatus,
    EquipmentStatusGroups,
    LoanState,
    LoanStatus,
)
from student.serializers import StudentBriefSerializer


class EquipmentItemSerializer(serializers.ModelSerializer):
    """Serializer for the EquipmentItem model."""

    class Meta:
        """Metaclass options."""

        model = loan.models.EquipmentItem
        fields = [
            'pk',
            'item_code',
            'name',
            'category',
            'location',
            'condition_notes',
            'status',
            'status_text',
        ]
        read_only_fields = ['status']

    status_text = serializers.CharField(source='get_status_display', read_only=True)


class EquipmentItemBriefSerializer(serializers.ModelSerializer):
    """Minimal serializer for the EquipmentItem model."""

    class Meta:
        """Metaclass options."""

        model = loan.models.EquipmentItem
        fields = ['pk', 'item_code', 'name', 'category', 'status']
        read_only_fields = fields


class EquipmentStatusSerializer(serializers.Serializer):
    """Serializer for changing the status of an EquipmentItem."""

    class Meta:
        """Metaclass options."""

        fields = ['status']

    status = serializers.ChoiceField(
        choices=[
            (value, label)
            for value, label in EquipmentStatus.choices
            if value in EquipmentStatusGroups.MANUAL
        ],
        label=_('Status'),
        help_text=_('New equipment status'),
    )

    def save(self):
        """Apply the status change and return the updated item."""
        item = self.context['item']
        item.set_status(self.validated_data['status'], user=self.context.get('user'))
        item.refresh_from_db()
        return item


class LoanSerializer(serializers.ModelSerializer):
    """Serializer for the Loan model."""

    class Meta:
        """Metaclass options."""

        model = loan.models.Loan
        fields = [
            'pk',
            'student',
            'student_detail',
            'equipment',
            'equipment_detail',
            'borrowed_by',
            'borrowed_at',
            'due_at',
            'returned_at',
            'status',
            'state',
            'overdue',
            'returned_late',
        ]
        read_only_fields = fields

    @staticmethod
    def annotate_queryset(queryset, now=None):
        """Add the overdue flag to the queryset."""
        now = now or current_time()

        queryset = queryset.annotate(
            overdue=Case(
                When(
                    loan.models.Loan.overdue_filter(now),
                    then=Value(True, output_field=BooleanField()),
                ),
                default=Value(False, output_field=BooleanField()),
            )
        )

        return queryset

    student_detail = StudentBriefSerializer(source='student', read_only=True)

    equipment_detail = EquipmentItemBriefSerializer(source='equipment', read_only=True)

    state = serializers.SerializerMethodField()

    overdue = serializers.SerializerMethodField()

    returned_late = serializers.BooleanField(source='is_returned_late', read_only=True)

    def get_state(self, obj) -> str:
        """Return the derived LoanState."""
        return obj.classify(current_time())

    def get_overdue(self, obj) -> bool:
        """Return the overdue flag (annotated where available)."""
        overdue = getattr(obj, 'overdue', None)

        if overdue is None:
            overdue = obj.is_overdue(current_time())

        return bool(overdue)


class LoanBorrowSerializer(serializers.Serializer):
    """Serializer for lending items to a student."""

    class Meta:
        """Metaclass options."""

        fields = ['student', 'equipment', 'duration_minutes']

    student = serializers.PrimaryKeyRelatedField(
        queryset=student.models.Student.objects.all(),
        label=_('Student'),
        help_text=_('Borrowing student'),
    )

    equipment = serializers.PrimaryKeyRelatedField(
        queryset=loan.models.EquipmentItem.objects.all(),
        many=True,
        label=_('Equipment'),
        help_text=_('Items to lend'),
    )

    duration_minutes = serializers.IntegerField(
        required=False,
        min_value=1,
        label=_('Duration'),
        help_text=_('Loan length in minutes'),
    )

    def validate_equipment(self, equipment):
        """Validate the equipment list."""
        if len(equipment) == 0:
            raise ValidationError(_('At least one item must be specified'))

        pks = [item.pk for item in equipment]

        if len(set(pks)) != len(pks):
            raise ValidationError(_('Duplicate items in request'))

        return equipment

    def save(self):
        """Create the loans."""
        data = self.validated_data

        duration = None

        if data.get('duration_minutes'):
            duration = timedelta(minutes=data['duration_minutes'])

        return loan.models.Loan.borrow(
            data['student'],
            data['equipment'],
            duration=duration,
            user=self.context.get('user'),
        )


class LoanReturnSerializer(serializers.Serializer):
    """Serializer for returning a Loan."""

    class Meta:
        """Metaclass options."""

        fields = []

    def save(self):
        """Return the loan and hand back the receipt."""
        instance = self.context['loan']
        return instance.return_loan(user=self.context.get('user'))


class LoanUndoReturnSerializer(serializers.Serializer):
    """Serializer for undoing the return of a Loan."""

    class Meta:
        """Metaclass options."""

        fields = []

    def save(self):
        """Undo the return and return the reopened loan."""
        instance = self.context['loan']
        instance.undo_return(user=self.context.get('user'))
        instance.refresh_from_db()
        return instance


class ReturnReceiptSerializer(serializers.Serializer):
    """Serializer for a ReturnReceipt."""

    loan = LoanSerializer(read_only=True)
    returned_at = serializers.DateTimeField(read_only=True)
    is_late = serializers.BooleanField(read_only=True)
    late_by = serializers.SerializerMethodField()
    late_by_text = serializers.SerializerMethodField()

    def get_late_by(self, receipt):
        """Return the lateness in seconds."""
        if receipt.late_by is None:
            return None
        return int(receipt.late_by.total_seconds())

    def get_late_by_text(self, receipt) -> str:
        """Return the lateness as text."""
        return humanize_timedelta(receipt.late_by)


def status_listing() -> dict:
    """Return the status codes used by the loan app."""

    def _codes(choices):
        return [{'key': value, 'label': str(label)} for value, label in choices]

    return {
        'equipment': _codes(EquipmentStatus.choices),
        'loan': _codes(LoanStatus.choices),
        'state': _codes(LoanState.choices),
    }
