"""Student model definitions.

A Student owns the blacklist fields and the two append-only logs which
drive the risk engine: SuspensionEntry (one row per suspension ever
issued) and DismissedNotification (one row per dismissed alert).
"""

import datetime
from typing import Optional

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models, transaction
from django.db.models import Q
from django.utils.translation import gettext_lazy as _

import structlog

import student.trust
import student.validators
from LoanDesk.events import trigger_event
from LoanDesk.exceptions import AlreadySuspended, ConcurrencyConflict, InvalidState
from LoanDesk.helpers import current_time
from student.events import StudentEvents
from student.status_codes import StudentRiskState

logger = structlog.get_logger('loandesk')


class Student(models.Model):
    """A Student who may borrow equipment.

    Attributes:
        student_number: Unique school identifier (e.g. STU000123)
        full_name: Display name
        year_group: Year group (e.g. 'Year 7')
        class_name: Class / form
        house: House
        email: Contact email (optional)
        trust_score: Cached 0-100 reliability score (see student.trust)
        is_blacklisted: True while a suspension is recorded against the student
        blacklist_end_date: When the current suspension ends
        blacklist_reason: Why the student was suspended
    """

    class Meta:
        """Model meta options."""

        verbose_name = _('Student')
        verbose_name_plural = _('Students')
        ordering = ['full_name', 'pk']

    def __str__(self):
        """Render a string representation of this Student."""
        return f'{self.student_number} - {self.full_name}'

    def save(self, *args, **kwargs):
        """Save the Student, triggering an event for new records."""
        created = self.pk is None

        super().save(*args, **kwargs)

        if created:
            trigger_event(StudentEvents.CREATED, id=self.pk)

    student_number = models.CharField(
        unique=True,
        max_length=32,
        blank=False,
        default=student.validators.generate_next_student_number,
        validators=[student.validators.validate_student_number],
        verbose_name=_('Student Number'),
        help_text=_('Unique student identifier'),
    )

    full_name = models.CharField(
        max_length=150, verbose_name=_('Full Name'), help_text=_('Student name')
    )

    year_group = models.CharField(
        max_length=50, blank=True, verbose_name=_('Year Group')
    )

    class_name = models.CharField(max_length=50, blank=True, verbose_name=_('Class'))

    house = models.CharField(max_length=50, blank=True, verbose_name=_('House'))

    email = models.EmailField(blank=True, verbose_name=_('Email'))

    trust_score = models.PositiveSmallIntegerField(
        default=student.trust.TRUST_MAX,
        validators=[
            MinValueValidator(student.trust.TRUST_MIN),
            MaxValueValidator(student.trust.TRUST_MAX),
        ],
        verbose_name=_('Trust Score'),
        help_text=_('Return reliability score (0-100)'),
    )

    is_blacklisted = models.BooleanField(
        default=False,
        verbose_name=_('Blacklisted'),
        help_text=_('Student is suspended from borrowing'),
    )

    blacklist_end_date = models.DateTimeField(
        blank=True,
        null=True,
        verbose_name=_('Suspension End'),
        help_text=_('Date the current suspension ends'),
    )

    blacklist_reason = models.TextField(
        blank=True,
        null=True,
        verbose_name=_('Suspension Reason'),
    )

    created = models.DateTimeField(auto_now_add=True, verbose_name=_('Created'))

    updated = models.DateTimeField(auto_now=True, verbose_name=_('Updated'))

    @classmethod
    def restricted_filter(cls, now=None):
        """Return a Q filter for students currently serving a suspension."""
        now = now or current_time()
        return Q(is_blacklisted=True) & Q(blacklist_end_date__gt=now)

    def is_restricted(self, now=None) -> bool:
        """Return True if this student may not borrow at the provided time."""
        now = now or current_time()

        if not self.is_blacklisted or self.blacklist_end_date is None:
            return False

        return now < self.blacklist_end_date

    # region Risk queries

    def total_suspensions(self) -> int:
        """Return the number of suspensions ever issued to this student."""
        return self.suspensions.count()

    def last_suspension(self) -> Optional['SuspensionEntry']:
        """Return the most recently issued suspension, if any."""
        return self.suspensions.order_by('-start_date', '-pk').first()

    def late_loans(self):
        """Return all loans this student returned late."""
        from loan.models import Loan

        return self.loans.filter(Loan.late_filter())

    def total_late_returns(self) -> int:
        """Return the lifetime number of late returns."""
        return self.late_loans().count()

    def late_returns_since(self, since: Optional[datetime.datetime]) -> int:
        """Return the number of late returns on loans borrowed after 'since'.

        Arguments:
            since: Window start (None counts all loans)
        """
        loans = self.late_loans()

        if since is not None:
            loans = loans.filter(borrowed_at__gt=since)

        return loans.count()

    def late_returns_since_last_suspension(self) -> int:
        """Return the late returns counted towards the next warning.

        Only loans borrowed after the end of the most recent suspension
        are counted, so infractions which led to a served suspension
        cannot retrigger an alert.
        """
        last = self.last_suspension()
        return self.late_returns_since(last.end_date if last else None)

    def warning_threshold(self) -> int:
        """Return the warning threshold which currently applies."""
        return student.trust.warning_threshold(self.total_suspensions())

    def has_dismissed(self, late_returns_count: int, warning_threshold: int) -> bool:
        """Return True if an alert for exactly this count has been dismissed."""
        return self.dismissed_notifications.filter(
            late_returns_count=late_returns_count, warning_threshold=warning_threshold
        ).exists()

    def calculate_trust_score(self) -> int:
        """Compute the trust score from the current counters."""
        return student.trust.trust_score(
            self.total_late_returns(), self.total_suspensions()
        )

    def refresh_trust_score(self) -> int:
        """Recompute and store the cached trust score.

        Callers run this inside the transaction which changed the counters.
        """
        score = self.calculate_trust_score()

        changed = (
            Student.objects.filter(pk=self.pk)
            .exclude(trust_score=score)
            .update(trust_score=score)
        )

        if changed:
            trigger_event(
                StudentEvents.TRUST_SCORE_UPDATED,
                id=self.pk,
                previous=self.trust_score,
                trust_score=score,
            )

        self.trust_score = score
        return score

    def risk_state(self, now=None) -> str:
        """Return the current StudentRiskState for this student."""
        now = now or current_time()

        if self.is_restricted(now):
            return StudentRiskState.SUSPENDED

        late = self.late_returns_since_last_suspension()
        threshold = self.warning_threshold()

        if late < threshold:
            return StudentRiskState.CLEAR

        if self.has_dismissed(late, threshold):
            return StudentRiskState.DISMISSED

        return StudentRiskState.AT_RISK

    def profile_statistics(self, now=None, recent: int = 10) -> dict:
        """Return borrowing statistics for the student profile.

        'late_or_overdue' is a display figure (late returns plus loans
        which are currently overdue). It is deliberately separate from
        the late-return counter used for warnings.
        """
        from loan.models import Loan

        now = now or current_time()

        loans = self.loans.all()
        late = loans.filter(Loan.late_filter()).count()
        overdue = loans.filter(Loan.overdue_filter(now)).count()

        return {
            'total_loans': loans.count(),
            'active_loans': loans.filter(returned_at__isnull=True).count(),
            'overdue_loans': overdue,
            'total_late_returns': late,
            'late_or_overdue': late + overdue,
            'late_returns_since_suspension': self.late_returns_since_last_suspension(),
            'total_suspensions': self.total_suspensions(),
            'warning_threshold': self.warning_threshold(),
            'trust_score': self.trust_score,
            'trust_level': student.trust.trust_level(self.trust_score),
            'risk_state': self.risk_state(now),
            'recent_loans': list(
                loans.select_related('equipment').order_by('-borrowed_at', '-pk')[:recent]
            ),
        }

    # endregion

    # region Suspension Methods

    def suspend(self, duration_days, reason, user=None) -> 'SuspensionEntry':
        """Suspend this student from borrowing.

        Arguments:
            duration_days: Length of the suspension in days (must be positive)
            reason: Why the student is being suspended (required)
            user: The staff member issuing the suspension

        Raises:
            ValidationError: Blank reason or non-positive duration
            AlreadySuspended: The student is serving an unexpired suspension
            ConcurrencyConflict: The student was modified concurrently
        """
        reason = str(reason or '').strip()

        errors = {}

        if not reason:
            errors['reason'] = _('A reason must be provided')

        try:
            duration_days = int(duration_days)
        except (TypeError, ValueError):
            errors['duration_days'] = _('Duration must be a whole number of days')
        else:
            if duration_days <= 0:
                errors['duration_days'] = _('Duration must be greater than zero')

        if errors:
            raise ValidationError(errors)

        now = current_time()

        with transaction.atomic():
            current = Student.objects.select_for_update().get(pk=self.pk)

            if current.is_restricted(now):
                raise AlreadySuspended(
                    student=self.pk,
                    end_date=current.blacklist_end_date,
                    reason=current.blacklist_reason,
                )

            end_date = now + datetime.timedelta(days=duration_days)

            # A lapsed suspension which has not yet been expired is closed first
            self.suspensions.filter(is_active=True).update(is_active=False)

            updated = (
                Student.objects.filter(pk=self.pk)
                .exclude(Student.restricted_filter(now))
                .update(
                    is_blacklisted=True,
                    blacklist_end_date=end_date,
                    blacklist_reason=reason,
                )
            )

            if updated == 0:
                raise ConcurrencyConflict(student=self.pk)

            entry = SuspensionEntry.objects.create(
                student=self,
                start_date=now,
                end_date=end_date,
                reason=reason,
                is_active=True,
                issued_by=user,
            )

            self.is_blacklisted = True
            self.blacklist_end_date = end_date
            self.blacklist_reason = reason

            self.refresh_trust_score()

            trigger_event(
                StudentEvents.SUSPENDED,
                id=self.pk,
                suspension=entry.pk,
                end_date=end_date.isoformat(),
            )

        logger.info(
            f'Student {self.student_number} suspended until {end_date.isoformat()}',
            user=getattr(user, 'pk', None),
        )

        return entry

    @transaction.atomic
    def lift_suspension(self, user=None) -> None:
        """End the current suspension early.

        The active suspension entry is closed at the current time, so the
        late-return window restarts from the moment of lifting.
        """
        now = current_time()

        # A suspension which has already run out cannot be lifted
        if not self.is_restricted(now):
            raise InvalidState(
                _('Student is not suspended'), student=self.pk
            )

        updated = (
            Student.objects.filter(pk=self.pk)
            .filter(Student.restricted_filter(now))
            .update(is_blacklisted=False, blacklist_end_date=now)
        )

        if updated == 0:
            raise ConcurrencyConflict(student=self.pk)

        self.suspensions.filter(is_active=True, end_date__gt=now).update(
            end_date=now, is_active=False
        )

        self.is_blacklisted = False
        self.blacklist_end_date = now

        trigger_event(
            StudentEvents.SUSPENSION_LIFTED, id=self.pk, user=getattr(user, 'pk', None)
        )

        logger.info(f'Suspension lifted for student {self.student_number}')

    @classmethod
    def auto_expire(cls, now=None) -> int:
        """Clear every suspension which has reached its end date.

        Safe to call repeatedly: it does nothing when no suspension has lapsed.

        Returns:
            The number of students whose suspension was expired
        """
        now = now or current_time()

        with transaction.atomic():
            expired = list(
                cls.objects.filter(
                    is_blacklisted=True, blacklist_end_date__lte=now
                ).values_list('pk', flat=True)
            )

            if not expired:
                return 0

            count = cls.objects.filter(
                pk__in=expired, is_blacklisted=True, blacklist_end_date__lte=now
            ).update(is_blacklisted=False)

            SuspensionEntry.objects.filter(
                student__in=expired, is_active=True, end_date__lte=now
            ).update(is_active=False)

            for pk in expired:
                trigger_event(StudentEvents.SUSPENSION_EXPIRED, id=pk)

        logger.info(f'Expired {count} student suspensions')

        return count

    def dismiss_alert(
        self, late_returns_count: int, warning_threshold: int, user=None
    ) -> 'DismissedNotification':
        """Record that staff dismissed the at-risk alert for this exact count.

        The dismissal only covers this count: one more late return changes
        the count and the alert is raised again.
        """
        errors = {}

        try:
            late_returns_count = int(late_returns_count)
        except (TypeError, ValueError):
            errors['late_returns_count'] = _('Count must be a whole number')
        else:
            if late_returns_count < 0:
                errors['late_returns_count'] = _('Count cannot be negative')

        try:
            warning_threshold = int(warning_threshold)
        except (TypeError, ValueError):
            errors['warning_threshold'] = _('Threshold must be a whole number')
        else:
            if warning_threshold < 1:
                errors['warning_threshold'] = _('Threshold must be at least one')

        if errors:
            raise ValidationError(errors)

        dismissal, created = DismissedNotification.objects.get_or_create(
            student=self,
            late_returns_count=late_returns_count,
            warning_threshold=warning_threshold,
            defaults={'dismissed_at': current_time(), 'dismissed_by': user},
        )

        if created:
            trigger_event(
                StudentEvents.ALERT_DISMISSED,
                id=self.pk,
                late_returns_count=dismissal.late_returns_count,
                warning_threshold=dismissal.warning_threshold,
            )

        return dismissal

    # endregion


class SuspensionEntry(models.Model):
    """One suspension issued to a student.

    Entries are never deleted: the number of entries is the authoritative
    suspension count which drives the warning threshold.

    Attributes:
        student: The suspended student
        start_date: When the suspension was issued
        end_date: When the suspension ends (or was lifted)
        reason: Why the suspension was issued
        is_active: True until the suspension expires or is lifted
        issued_by: Staff member who issued the suspension
    """

    class Meta:
        """Model meta options."""

        verbose_name = _('Suspension')
        verbose_name_plural = _('Suspensions')
        ordering = ['-start_date', '-pk']

    def __str__(self):
        """Render a string representation of this SuspensionEntry."""
        return f'{self.student} ({self.start_date:%Y-%m-%d} - {self.end_date:%Y-%m-%d})'

    def delete(self, *args, **kwargs):
        """Suspension history cannot be deleted."""
        raise ValidationError(_('Suspension history cannot be deleted'))

    student = models.ForeignKey(
        Student,
        on_delete=models.CASCADE,
        related_name='suspensions',
        verbose_name=_('Student'),
    )

    start_date = models.DateTimeField(verbose_name=_('Start Date'))

    end_date = models.DateTimeField(verbose_name=_('End Date'))

    reason = models.TextField(verbose_name=_('Reason'))

    is_active = models.BooleanField(default=True, verbose_name=_('Active'))

    issued_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='+',
        verbose_name=_('Issued By'),
    )

    @property
    def duration(self) -> datetime.timedelta:
        """Return the length of this suspension."""
        return self.end_date - self.start_date


class DismissedNotification(models.Model):
    """Marker recording that staff dismissed an at-risk alert.

    Attributes:
        student: The student the alert was raised for
        late_returns_count: Late returns counted when the alert was dismissed
        warning_threshold: Threshold in force when the alert was dismissed
        dismissed_at: When the alert was dismissed
        dismissed_by: Staff member who dismissed the alert
    """

    class Meta:
        """Model meta options."""

        verbose_name = _('Dismissed Notification')
        verbose_name_plural = _('Dismissed Notifications')
        ordering = ['-dismissed_at', '-pk']
        constraints = [
            models.UniqueConstraint(
                fields=['student', 'late_returns_count', 'warning_threshold'],
                name='unique_dismissal_per_count',
            )
        ]

    def __str__(self):
        """Render a string representation of this DismissedNotification."""
        return f'{self.student} @ {self.late_returns_count}/{self.warning_threshold}'

    student = models.ForeignKey(
        Student,
        on_delete=models.CASCADE,
        related_name='dismissed_notifications',
        verbose_name=_('Student'),
    )

    late_returns_count = models.PositiveIntegerField(verbose_name=_('Late Returns'))

    warning_threshold = models.PositiveIntegerField(
        verbose_name=_('Warning Threshold')
    )

    dismissed_at = models.DateTimeField(verbose_name=_('Dismissed At'))

    dismissed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='+',
        verbose_name=_('Dismissed By'),
    )
