"""Admin interface for student models."""

from django.contrib import admin

from student import models


class SuspensionEntryInline(admin.TabularInline):
    """Inline listing of the suspension history for a Student."""

    model = models.SuspensionEntry
    extra = 0
    can_delete = False
    fields = ['start_date', 'end_date', 'reason', 'is_active', 'issued_by']
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        """Suspensions are issued through Student.suspend only."""
        return False


@admin.register(models.Student)
class StudentAdmin(admin.ModelAdmin):
    """Admin interface for Student model."""

    list_display = [
        'student_number',
        'full_name',
        'year_group',
        'class_name',
        'house',
        'trust_score',
        'is_blacklisted',
        'blacklist_end_date',
    ]

    list_filter = ['is_blacklisted', 'year_group', 'house']

    search_fields = ['student_number', 'full_name', 'email']

    readonly_fields = [
        'trust_score',
        'is_blacklisted',
        'blacklist_end_date',
        'blacklist_reason',
        'created',
        'updated',
    ]

    inlines = [SuspensionEntryInline]


@admin.register(models.SuspensionEntry)
class SuspensionEntryAdmin(admin.ModelAdmin):
    """Admin interface for SuspensionEntry model (read only)."""

    list_display = ['student', 'start_date', 'end_date', 'is_active', 'issued_by']

    list_filter = ['is_active', 'start_date']

    search_fields = ['student__student_number', 'student__full_name', 'reason']

    raw_id_fields = ['student', 'issued_by']

    def has_add_permission(self, request):
        """Suspensions are issued through Student.suspend only."""
        return False

    def has_change_permission(self, request, obj=None):
        """Suspension history is append only."""
        return False

    def has_delete_permission(self, request, obj=None):
        """Suspension history is append only."""
        return False


@admin.register(models.DismissedNotification)
class DismissedNotificationAdmin(admin.ModelAdmin):
    """Admin interface for DismissedNotification model."""

    list_display = [
        'student',
        'late_returns_count',
        'warning_threshold',
        'dismissed_at',
        'dismissed_by',
    ]

    search_fields = ['student__student_number', 'student__full_name']

    raw_id_fields = ['student', 'dismissed_by']
