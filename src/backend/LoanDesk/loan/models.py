"""Loan model definitions."""

import datetime
from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import IntegrityError, models, transaction
from django.db.models import Q
from django.utils.translation import gettext_lazy as _

import structlog

import loan.filters
import loan.validators
from LoanDesk.events import trigger_event
from LoanDesk.exceptions import (
    ConcurrencyConflict,
    EquipmentUnavailable,
    InvalidState,
    StudentRestricted,
)
from LoanDesk.helpers import current_time, get_global_setting
from loan.events import EquipmentEvents, LoanEvents
from loan.status_codes import (
    EquipmentStatus,
    EquipmentStatusGroups,
    LoanState,
    LoanStatus,
)

logger = structlog.get_logger('loandesk')


# Allowed manual status transitions for EquipmentItem
# BORROWED is entered and left only by the loan lifecycle
ALLOWED_TRANSITIONS = {
    EquipmentStatus.AVAILABLE.value: [
        EquipmentStatus.RESERVED.value,
        EquipmentStatus.REPAIR.value,
    ],
    EquipmentStatus.RESERVED.value: [
        EquipmentStatus.AVAILABLE.value,
        EquipmentStatus.REPAIR.value,
    ],
    EquipmentStatus.REPAIR.value: [
        EquipmentStatus.AVAILABLE.value,
        EquipmentStatus.RESERVED.value,
    ],
    EquipmentStatus.BORROWED.value: [],
}


# region Loan state predicates


def is_overdue(now, due_at, returned_at) -> bool:
    """Return True if a loan is open and past its due time."""
    return returned_at is None and now > due_at


def is_returned_late(due_at, returned_at) -> bool:
    """Return True if a loan was returned after its due time."""
    return returned_at is not None and returned_at > due_at


def classify(now, due_at, returned_at) -> str:
    """Return the LoanState for a loan at the given instant."""
    if returned_at is None:
        return LoanState.OVERDUE if now > due_at else LoanState.ACTIVE

    if returned_at > due_at:
        return LoanState.RETURNED_LATE

    return LoanState.RETURNED_ON_TIME


# endregion


class EquipmentItem(models.Model):
    """A physical item which can be loaned to a student.

    Attributes:
        item_code: Unique label on the item
        name: Item name
        category: Item category (e.g. 'Sports')
        location: Where the item is kept
        condition_notes: Free text condition notes
        status: EquipmentStatus code
    """

    class Meta:
        """Model meta options."""

        verbose_name = _('Equipment Item')
        verbose_name_plural = _('Equipment Items')
        ordering = ['item_code']

    def __str__(self):
        """Render a string representation of this EquipmentItem."""
        return f'{self.item_code} - {self.name}'

    def save(self, *args, **kwargs):
        """Save the EquipmentItem, triggering an event for new records."""
        created = self.pk is None

        super().save(*args, **kwargs)

        if created:
            trigger_event(EquipmentEvents.CREATED, id=self.pk)

    item_code = models.CharField(
        unique=True,
        max_length=50,
        validators=[loan.validators.validate_item_code],
        verbose_name=_('Item Code'),
        help_text=_('Unique item code'),
    )

    name = models.CharField(max_length=150, verbose_name=_('Name'))

    category = models.CharField(max_length=100, blank=True, verbose_name=_('Category'))

    location = models.CharField(max_length=100, blank=True, verbose_name=_('Location'))

    condition_notes = models.TextField(blank=True, verbose_name=_('Condition Notes'))

    status = models.CharField(
        max_length=20,
        choices=EquipmentStatus.choices,
        default=EquipmentStatus.AVAILABLE,
        verbose_name=_('Status'),
    )

    @property
    def is_available(self) -> bool:
        """Return True if this item can be borrowed."""
        return self.status == EquipmentStatus.AVAILABLE

    @property
    def is_borrowed(self) -> bool:
        """Return True if this item is out on loan."""
        return self.status == EquipmentStatus.BORROWED

    def can_set_status(self, status: str) -> bool:
        """Return True if staff may move this item to the provided status."""
        return status in ALLOWED_TRANSITIONS.get(self.status, [])

    @transaction.atomic
    def set_status(self, status: str, user=None):
        """Change the status of this item.

        Only AVAILABLE, RESERVED and REPAIR can be set here. Items move in
        and out of BORROWED through Loan.borrow / Loan.return_loan.
        """
        if status not in EquipmentStatusGroups.MANUAL:
            raise ValidationError({'status': _('Invalid equipment status')})

        if status == self.status:
            return self

        if not self.can_set_status(status):
            raise InvalidState(
                _('Cannot change the status of a borrowed item'),
                item_code=self.item_code,
                status=self.status,
            )

        previous = self.status

        updated = EquipmentItem.objects.filter(pk=self.pk, status=previous).update(
            status=status
        )

        if updated == 0:
            raise ConcurrencyConflict(item_code=self.item_code)

        self.status = status

        trigger_event(
            EquipmentEvents.STATUS_CHANGED,
            id=self.pk,
            previous=previous,
            status=status,
            user=getattr(user, 'pk', None),
        )

        return self


@dataclass
class ReturnReceipt:
    """Outcome of returning a loan."""

    loan: 'Loan'
    returned_at: datetime.datetime
    is_late: bool
    late_by: Optional[datetime.timedelta] = None


class Loan(models.Model):
    """A single item lent to a student.

    Overdue and late are never stored; they are computed from the
    due and return times whenever they are read.

    Attributes:
        student: The borrowing student
        equipment: The borrowed item
        borrowed_by: Staff member who recorded the loan
        borrowed_at: When the item was borrowed
        due_at: When the item must be returned
        returned_at: When the item was returned (null while open)
        status: LoanStatus code
    """

    class Meta:
        """Model meta options."""

        verbose_name = _('Loan')
        verbose_name_plural = _('Loans')
        ordering = ['-borrowed_at', '-pk']
        constraints = [
            models.UniqueConstraint(
                fields=['equipment'],
                condition=Q(returned_at__isnull=True),
                name='unique_open_loan_per_equipment',
            )
        ]

    def __str__(self):
        """Render a string representation of this Loan."""
        return f'{self.equipment.item_code} -> {self.student.student_number}'

    student = models.ForeignKey(
        'student.Student',
        on_delete=models.PROTECT,
        related_name='loans',
        verbose_name=_('Student'),
    )

    equipment = models.ForeignKey(
        EquipmentItem,
        on_delete=models.PROTECT,
        related_name='loans',
        verbose_name=_('Equipment'),
    )

    borrowed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='+',
        verbose_name=_('Borrowed By'),
        help_text=_('User who recorded this loan'),
    )

    borrowed_at = models.DateTimeField(verbose_name=_('Borrowed At'))

    due_at = models.DateTimeField(verbose_name=_('Due At'))

    returned_at = models.DateTimeField(
        blank=True, null=True, verbose_name=_('Returned At')
    )

    status = models.CharField(
        max_length=20,
        choices=LoanStatus.choices,
        default=LoanStatus.ACTIVE,
        verbose_name=_('Status'),
    )

    # region Derived state

    @classmethod
    def overdue_filter(cls, now=None):
        """Return a Q filter for overdue loans.

        OVERDUE is NOT a status - it's computed from:
        - The loan has not been returned
        - due_at is in the past
        """
        return loan.filters.filter_overdue_loans(now or current_time())

    @classmethod
    def late_filter(cls):
        """Return a Q filter for loans which were returned late."""
        return loan.filters.filter_late_loans()

    @property
    def is_open(self) -> bool:
        """Return True if the loan has not been returned."""
        return self.returned_at is None

    def is_overdue(self, now=None) -> bool:
        """Return True if the loan is open and past its due time."""
        return is_overdue(now or current_time(), self.due_at, self.returned_at)

    @property
    def is_returned_late(self) -> bool:
        """Return True if the loan was returned after its due time."""
        return is_returned_late(self.due_at, self.returned_at)

    def classify(self, now=None) -> str:
        """Return the LoanState of this loan."""
        return classify(now or current_time(), self.due_at, self.returned_at)

    def can_undo_return(self, now=None) -> bool:
        """Return True if the return of this loan may still be undone."""
        try:
            self._check_undo(now or current_time())
        except InvalidState:
            return False
        return True

    # endregion

    # region Lifecycle

    @classmethod
    def default_duration(cls) -> datetime.timedelta:
        """Return the loan duration used when none is supplied."""
        minutes = get_global_setting('LOAN_DEFAULT_DURATION_MINUTES', 60)
        return datetime.timedelta(minutes=minutes)

    @classmethod
    def borrow(cls, student, equipment, duration=None, user=None) -> list['Loan']:
        """Lend one or more items to a student.

        All items are lent or none are.

        Arguments:
            student: The borrowing Student
            equipment: List of EquipmentItem objects
            duration: Loan length (timedelta, default from settings)
            user: The staff member recording the loan

        Raises:
            ValidationError: No items, duplicate items or a non-positive duration
            EquipmentUnavailable: One or more items cannot be borrowed
            StudentRestricted: The student is serving a suspension
            ConcurrencyConflict: Another request changed the items first
        """
        from student.models import Student

        items = list(equipment or [])

        if len(items) == 0:
            raise ValidationError({'equipment': _('At least one item must be specified')})

        pks = [item.pk for item in items]

        if len(set(pks)) != len(pks):
            raise ValidationError({'equipment': _('Duplicate items in request')})

        if duration is None:
            duration = cls.default_duration()

        loan.validators.validate_loan_duration(duration)

        now = current_time()
        due_at = now + duration

        try:
            with transaction.atomic():
                current = {
                    item.pk: item
                    for item in EquipmentItem.objects.select_for_update().filter(
                        pk__in=pks
                    )
                }

                unavailable = [
                    item.item_code
                    for item in items
                    if item.pk not in current or not current[item.pk].is_available
                ]

                if unavailable:
                    raise EquipmentUnavailable(item_codes=unavailable)

                borrower = Student.objects.select_for_update().get(pk=student.pk)

                if borrower.is_restricted(now):
                    raise StudentRestricted(
                        student=borrower.pk,
                        reason=borrower.blacklist_reason,
                        end_date=borrower.blacklist_end_date,
                    )

                updated = EquipmentItem.objects.filter(
                    pk__in=pks, status=EquipmentStatus.AVAILABLE
                ).update(status=EquipmentStatus.BORROWED)

                if updated != len(pks):
                    raise ConcurrencyConflict(item_codes=[i.item_code for i in items])

                loans = [
                    cls.objects.create(
                        student=borrower,
                        equipment=item,
                        borrowed_by=user,
                        borrowed_at=now,
                        due_at=due_at,
                        status=LoanStatus.ACTIVE,
                    )
                    for item in items
                ]

                for instance in loans:
                    trigger_event(
                        LoanEvents.BORROWED,
                        id=instance.pk,
                        student_id=borrower.pk,
                        equipment_id=instance.equipment_id,
                    )
        except IntegrityError as exc:
            # Another open loan was inserted for one of the items
            raise ConcurrencyConflict(item_codes=[i.item_code for i in items]) from exc

        for item in items:
            item.status = EquipmentStatus.BORROWED

        logger.info(
            f'{len(loans)} items lent to student {borrower.student_number}',
            due_at=due_at.isoformat(),
        )

        return loans

    @transaction.atomic
    def return_loan(self, user=None) -> ReturnReceipt:
        """Mark this loan as returned.

        Raises:
            InvalidState: The loan has already been returned
            ConcurrencyConflict: The loan was returned by another request
        """
        if not self.is_open:
            raise InvalidState(_('Loan has already been returned'), loan=self.pk)

        now = current_time()

        updated = Loan.objects.filter(pk=self.pk, returned_at__isnull=True).update(
            returned_at=now, status=LoanStatus.RETURNED
        )

        if updated == 0:
            raise ConcurrencyConflict(loan=self.pk)

        updated = EquipmentItem.objects.filter(
            pk=self.equipment_id, status=EquipmentStatus.BORROWED
        ).update(status=EquipmentStatus.AVAILABLE)

        if updated == 0:
            raise ConcurrencyConflict(loan=self.pk, item_code=self.equipment.item_code)

        self.returned_at = now
        self.status = LoanStatus.RETURNED
        self.equipment.status = EquipmentStatus.AVAILABLE

        late = self.is_returned_late
        late_by = now - self.due_at if late else None

        if late:
            trigger_event(
                LoanEvents.LATE_RETURN,
                id=self.pk,
                student_id=self.student_id,
                late_by=late_by.total_seconds(),
            )

        trigger_event(
            LoanEvents.RETURNED,
            id=self.pk,
            student_id=self.student_id,
            equipment_id=self.equipment_id,
            is_late=late,
            user=getattr(user, 'pk', None),
        )

        return ReturnReceipt(loan=self, returned_at=now, is_late=late, late_by=late_by)

    def _check_undo(self, now):
        """Raise InvalidState if the return of this loan cannot be undone."""
        if self.returned_at is None:
            raise InvalidState(_('Loan has not been returned'), loan=self.pk)

        window = get_global_setting('LOAN_UNDO_WINDOW_SECONDS', 600)

        if window and now - self.returned_at > datetime.timedelta(seconds=window):
            raise InvalidState(
                _('Return can no longer be undone'), loan=self.pk, window=window
            )

        reborrowed = (
            Loan.objects.filter(equipment=self.equipment_id, returned_at__isnull=True)
            .exclude(pk=self.pk)
            .exists()
        )

        if reborrowed:
            raise InvalidState(_('Item has been borrowed again'), loan=self.pk)

        status = (
            EquipmentItem.objects.filter(pk=self.equipment_id)
            .values_list('status', flat=True)
            .first()
        )

        if status != EquipmentStatus.AVAILABLE:
            raise InvalidState(
                _('Item is no longer available'), loan=self.pk, status=status
            )

    @transaction.atomic
    def undo_return(self, user=None):
        """Reopen a loan which was returned by mistake.

        Raises:
            InvalidState: The loan is open, the undo window has passed,
                or the item has since been borrowed or taken out of service
            ConcurrencyConflict: Another request changed the loan or item first
        """
        self._check_undo(current_time())

        was_late = self.is_returned_late

        try:
            with transaction.atomic():
                updated = Loan.objects.filter(
                    pk=self.pk, returned_at=self.returned_at
                ).update(returned_at=None, status=LoanStatus.ACTIVE)
        except IntegrityError as exc:
            raise ConcurrencyConflict(loan=self.pk) from exc

        if updated == 0:
            raise ConcurrencyConflict(loan=self.pk)

        updated = EquipmentItem.objects.filter(
            pk=self.equipment_id, status=EquipmentStatus.AVAILABLE
        ).update(status=EquipmentStatus.BORROWED)

        if updated == 0:
            raise ConcurrencyConflict(loan=self.pk)

        self.returned_at = None
        self.status = LoanStatus.ACTIVE
        self.equipment.status = EquipmentStatus.BORROWED

        if was_late:
            trigger_event(
                LoanEvents.LATE_RETURN_REVERTED, id=self.pk, student_id=self.student_id
            )

        trigger_event(
            LoanEvents.RETURN_UNDONE,
            id=self.pk,
            student_id=self.student_id,
            user=getattr(user, 'pk', None),
        )

        return self

    # endregion
