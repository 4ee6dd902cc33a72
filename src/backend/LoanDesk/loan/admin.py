"""Admin interface for loan models."""

from django.contrib import admin

from loan import models


@admin.register(models.EquipmentItem)
class EquipmentItemAdmin(admin.ModelAdmin):
    """Admin interface for EquipmentItem model."""

    list_display = ['item_code', 'name', 'category', 'location', 'status']

    list_filter = ['status', 'category', 'location']

    search_fields = ['item_code', 'name', 'category']


@admin.register(models.Loan)
class LoanAdmin(admin.ModelAdmin):
    """Admin interface for Loan model."""

    list_display = [
        'equipment',
        'student',
        'status',
        'borrowed_at',
        'due_at',
        'returned_at',
    ]

    list_filter = ['status', 'borrowed_at', 'due_at']

    search_fields = [
        'equipment__item_code',
        'equipment__name',
        'student__student_number',
        'student__full_name',
    ]

    readonly_fields = ['status', 'borrowed_at', 'returned_at']

    raw_id_fields = ['student', 'equipment', 'borrowed_by']
