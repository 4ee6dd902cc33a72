"""Loan status codes."""

from django.db import models
from django.utils.translation import gettext_lazy as _


class EquipmentStatus(models.TextChoices):
    """Defines the set of status codes for an EquipmentItem."""

    # Item can be borrowed
    AVAILABLE = 'available', _('Available')

    # Item is out on an open loan (set by the loan lifecycle only)
    BORROWED = 'borrowed', _('Borrowed')

    # Item is held back by staff
    RESERVED = 'reserved', _('Reserved')

    # Item is being repaired
    REPAIR = 'repair', _('Repair')


class EquipmentStatusGroups:
    """Groups for EquipmentStatus codes."""

    # Statuses which staff may set directly
    MANUAL = [
        EquipmentStatus.AVAILABLE.value,
        EquipmentStatus.RESERVED.value,
        EquipmentStatus.REPAIR.value,
    ]


class LoanStatus(models.TextChoices):
    """Defines the set of status codes for a Loan.

    Note: OVERDUE is NOT a status - it's computed from due_at and returned_at.
    """

    ACTIVE = 'active', _('Active')

    RETURNED = 'returned', _('Returned')


class LoanState(models.TextChoices):
    """Derived state of a Loan at a given instant (never stored)."""

    ACTIVE = 'active', _('Active')
    OVERDUE = 'overdue', _('Overdue')
    RETURNED_ON_TIME = 'returned_on_time', _('Returned On Time')
    RETURNED_LATE = 'returned_late', _('Returned Late')
