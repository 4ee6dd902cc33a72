"""Unit tests for the loan lifecycle."""

from datetime import timedelta

from django.core.exceptions import ValidationError
from django.forms.models import model_to_dict
from django.test import override_settings

from LoanDesk.exceptions import (
    ConcurrencyConflict,
    EquipmentUnavailable,
    InvalidState,
    StudentRestricted,
)
from LoanDesk.unit_test import TEST_EPOCH, LoanDeskTestCase, capture_events
from loan.events import LoanEvents
from loan.models import (
    EquipmentItem,
    Loan,
    classify,
    is_overdue,
    is_returned_late,
)
from loan.status_codes import EquipmentStatus, LoanState, LoanStatus
from student.models import Student


class LoanStatePredicateTest(LoanDeskTestCase):
    """Tests for the pure overdue / late predicates."""

    def test_classify(self):
        """Each combination of times maps onto one LoanState."""
        due = TEST_EPOCH + timedelta(hours=1)

        self.assertEqual(classify(TEST_EPOCH, due, None), LoanState.ACTIVE)
        self.assertEqual(classify(due, due, None), LoanState.ACTIVE)
        self.assertEqual(
            classify(due + timedelta(seconds=1), due, None), LoanState.OVERDUE
        )
        self.assertEqual(classify(due, due, due), LoanState.RETURNED_ON_TIME)
        self.assertEqual(
            classify(due, due, due + timedelta(minutes=1)), LoanState.RETURNED_LATE
        )

    def test_predicates(self):
        """Overdue applies to open loans only, late to returned loans only."""
        due = TEST_EPOCH
        later = TEST_EPOCH + timedelta(days=1)

        self.assertTrue(is_overdue(later, due, None))
        self.assertFalse(is_overdue(later, due, later))
        self.assertFalse(is_overdue(due, due, None))

        self.assertTrue(is_returned_late(due, later))
        self.assertFalse(is_returned_late(due, due))
        self.assertFalse(is_returned_late(due, None))


class LoanTestCase(LoanDeskTestCase):
    """Base class for loan lifecycle tests."""

    @classmethod
    def setUpTestData(cls):
        """Create a student and some equipment."""
        super().setUpTestData()

        cls.student = Student.objects.create(
            student_number='STU000001', full_name='Alice Archer', year_group='Year 9'
        )

        cls.other = Student.objects.create(
            student_number='STU000002', full_name='Ben Baker'
        )

        cls.ball = EquipmentItem.objects.create(item_code='BALL-01', name='Football')
        cls.racket = EquipmentItem.objects.create(item_code='RKT-01', name='Racket')
        cls.cones = EquipmentItem.objects.create(item_code='CONE-01', name='Cones')

    def borrow(self, *items, student=None, **kwargs):
        """Borrow the provided items (default: the football)."""
        items = items or [self.ball]
        return Loan.borrow(student or self.student, list(items), **kwargs)

    def late_return(self, item=None, student=None):
        """Borrow an item and return it two hours later."""
        [instance] = self.borrow(item or self.ball, student=student)
        self.advance(hours=2)
        return instance.return_loan()


class LoanBorrowTest(LoanTestCase):
    """Tests for Loan.borrow."""

    def test_borrow(self):
        """Borrowing creates one open loan per item and marks items borrowed."""
        with capture_events() as events:
            loans = self.borrow(self.ball, self.racket)

        self.assertEqual(len(loans), 2)

        for instance in loans:
            self.assertEqual(instance.status, LoanStatus.ACTIVE)
            self.assertEqual(instance.borrowed_at, TEST_EPOCH)
            self.assertEqual(instance.due_at, TEST_EPOCH + timedelta(minutes=60))
            self.assertIsNone(instance.returned_at)

        self.ball.refresh_from_db()
        self.racket.refresh_from_db()
        self.assertEqual(self.ball.status, EquipmentStatus.BORROWED)
        self.assertEqual(self.racket.status, EquipmentStatus.BORROWED)

        names = [name for name, _ in events]
        self.assertEqual(names.count(str(LoanEvents.BORROWED)), 2)

    def test_custom_duration(self):
        """A supplied duration sets the due time."""
        [instance] = self.borrow(duration=timedelta(days=2))
        self.assertEqual(instance.due_at, TEST_EPOCH + timedelta(days=2))

    @override_settings(LOAN_DEFAULT_DURATION_MINUTES=15)
    def test_default_duration_setting(self):
        """The default duration is read from settings."""
        [instance] = self.borrow()
        self.assertEqual(instance.due_at, TEST_EPOCH + timedelta(minutes=15))

    def test_invalid_requests(self):
        """Empty, duplicate or non-positive requests are rejected before any write."""
        with self.assertRaises(ValidationError):
            Loan.borrow(self.student, [])

        with self.assertRaises(ValidationError):
            self.borrow(self.ball, self.ball)

        with self.assertRaises(ValidationError):
            self.borrow(duration=timedelta(0))

        with self.assertRaises(ValidationError):
            self.borrow(duration=timedelta(minutes=-5))

        self.assertEqual(Loan.objects.count(), 0)

    def test_unavailable_item(self):
        """One unavailable item fails the whole batch."""
        self.cones.set_status(EquipmentStatus.REPAIR)

        with self.assertRaises(EquipmentUnavailable) as err:
            self.borrow(self.ball, self.cones)

        self.assertEqual(err.exception.context['item_codes'], ['CONE-01'])
        self.assertEqual(Loan.objects.count(), 0)

        self.ball.refresh_from_db()
        self.assertEqual(self.ball.status, EquipmentStatus.AVAILABLE)

    def test_already_borrowed(self):
        """An item on loan cannot be borrowed by someone else."""
        self.borrow(self.ball)

        with self.assertRaises(EquipmentUnavailable):
            self.borrow(self.ball, student=self.other)

        self.assertEqual(Loan.objects.count(), 1)

    def test_restricted_student(self):
        """A suspended student cannot borrow, and nothing is written."""
        self.student.suspend(7, 'Repeated late returns')

        with self.assertRaises(StudentRestricted) as err:
            self.borrow(self.ball, self.racket)

        self.assertEqual(err.exception.context['reason'], 'Repeated late returns')
        self.assertEqual(
            err.exception.context['end_date'], TEST_EPOCH + timedelta(days=7)
        )

        self.assertEqual(Loan.objects.count(), 0)
        self.ball.refresh_from_db()
        self.assertEqual(self.ball.status, EquipmentStatus.AVAILABLE)

    def test_lapsed_suspension(self):
        """A suspension past its end date does not block borrowing."""
        self.student.suspend(1, 'Late')
        self.advance(days=1)

        loans = self.borrow()
        self.assertEqual(len(loans), 1)

    def test_open_loan_race(self):
        """A conflicting open loan inserted concurrently rolls back the batch."""
        # Simulate another request which inserted a loan for the racket
        # before its status was updated
        Loan.objects.create(
            student=self.other,
            equipment=self.racket,
            borrowed_at=TEST_EPOCH,
            due_at=TEST_EPOCH + timedelta(hours=1),
        )

        with self.assertRaises(ConcurrencyConflict) as err:
            self.borrow(self.ball, self.racket)

        self.assertTrue(err.exception.retryable)

        self.assertEqual(Loan.objects.filter(student=self.student).count(), 0)
        self.ball.refresh_from_db()
        self.assertEqual(self.ball.status, EquipmentStatus.AVAILABLE)


    def test_batch_with_borrowed_middle_item(self):
        """A batch whose middle item is already out leaves the other items alone."""
        self.borrow(self.racket, student=self.other)

        before = [model_to_dict(item) for item in (self.ball, self.cones)]

        with self.assertRaises(EquipmentUnavailable) as err:
            self.borrow(self.ball, self.racket, self.cones)

        self.assertEqual(err.exception.context['item_codes'], ['RKT-01'])

        after = [
            model_to_dict(EquipmentItem.objects.get(pk=item.pk))
            for item in (self.ball, self.cones)
        ]
        self.assertEqual(before, after)

        self.assertFalse(Loan.objects.filter(student=self.student).exists())
        self.assertFalse(
            Loan.objects.filter(equipment__in=[self.ball, self.cones]).exists()
        )

    def test_batch_race_on_middle_item(self):
        """A concurrent loan on the middle item rolls back the whole batch."""
        before = [model_to_dict(item) for item in (self.ball, self.cones)]

        Loan.objects.create(
            student=self.other,
            equipment=self.racket,
            borrowed_at=TEST_EPOCH,
            due_at=TEST_EPOCH + timedelta(hours=1),
        )

        with self.assertRaises(ConcurrencyConflict):
            self.borrow(self.ball, self.racket, self.cones)

        after = [
            model_to_dict(EquipmentItem.objects.get(pk=item.pk))
            for item in (self.ball, self.cones)
        ]
        self.assertEqual(before, after)

        self.racket.refresh_from_db()
        self.assertEqual(self.racket.status, EquipmentStatus.AVAILABLE)
        self.assertEqual(Loan.objects.count(), 1)


class LoanReturnTest(LoanTestCase):
    """Tests for Loan.return_loan and Loan.undo_return."""

    def test_return_on_time(self):
        """Returning before the due time is not late."""
        [instance] = self.borrow()
        self.advance(minutes=30)

        with capture_events() as events:
            receipt = instance.return_loan()

        self.assertFalse(receipt.is_late)
        self.assertIsNone(receipt.late_by)
        self.assertEqual(receipt.returned_at, TEST_EPOCH + timedelta(minutes=30))

        instance.refresh_from_db()
        self.assertEqual(instance.status, LoanStatus.RETURNED)
        self.assertEqual(instance.classify(), LoanState.RETURNED_ON_TIME)

        self.ball.refresh_from_db()
        self.assertEqual(self.ball.status, EquipmentStatus.AVAILABLE)

        names = [name for name, _ in events]
        self.assertIn(str(LoanEvents.RETURNED), names)
        self.assertNotIn(str(LoanEvents.LATE_RETURN), names)

        self.student.refresh_from_db()
        self.assertEqual(self.student.trust_score, 100)

    def test_return_exactly_on_due_time(self):
        """Returning at the due time is on time."""
        [instance] = self.borrow()
        self.advance(minutes=60)

        receipt = instance.return_loan()
        self.assertFalse(receipt.is_late)

    def test_return_late(self):
        """Returning after the due time is late and lowers the trust score."""
        with capture_events() as events:
            receipt = self.late_return()

        self.assertTrue(receipt.is_late)
        self.assertEqual(receipt.late_by, timedelta(hours=1))

        names = [name for name, _ in events]
        self.assertIn(str(LoanEvents.LATE_RETURN), names)

        self.student.refresh_from_db()
        self.assertEqual(self.student.trust_score, 80)
        self.assertEqual(self.student.total_late_returns(), 1)

    def test_return_twice(self):
        """A returned loan cannot be returned again."""
        [instance] = self.borrow()
        instance.return_loan()

        with self.assertRaises(InvalidState):
            instance.return_loan()

    def test_stale_return(self):
        """Returning through a stale copy of the loan is a conflict."""
        [instance] = self.borrow()
        stale = Loan.objects.get(pk=instance.pk)

        instance.return_loan()

        with self.assertRaises(ConcurrencyConflict):
            stale.return_loan()

    def test_overdue_filters(self):
        """The overdue and late filters match the predicates."""
        [first] = self.borrow(self.ball)
        [second] = self.borrow(self.racket)

        self.advance(hours=2)
        now = self.clock.now()

        self.assertEqual(Loan.objects.filter(Loan.overdue_filter(now)).count(), 2)
        self.assertTrue(first.is_overdue(now))

        first.return_loan()

        self.assertEqual(Loan.objects.filter(Loan.overdue_filter(now)).count(), 1)
        self.assertEqual(Loan.objects.filter(Loan.late_filter()).count(), 1)
        self.assertEqual(second.classify(now), LoanState.OVERDUE)

    def test_undo_return(self):
        """Undoing a return reopens the loan and restores the item."""
        [instance] = self.borrow()
        self.advance(minutes=10)

        loan_before = model_to_dict(Loan.objects.get(pk=instance.pk))
        item_before = model_to_dict(EquipmentItem.objects.get(pk=self.ball.pk))

        instance.return_loan()
        self.advance(minutes=1)

        with capture_events() as events:
            instance.undo_return()

        instance.refresh_from_db()
        self.assertIsNone(instance.returned_at)
        self.assertEqual(instance.status, LoanStatus.ACTIVE)

        self.ball.refresh_from_db()
        self.assertEqual(self.ball.status, EquipmentStatus.BORROWED)

        names = [name for name, _ in events]
        self.assertIn(str(LoanEvents.RETURN_UNDONE), names)
        self.assertNotIn(str(LoanEvents.LATE_RETURN_REVERTED), names)

        self.assertEqual(model_to_dict(Loan.objects.get(pk=instance.pk)), loan_before)
        self.assertEqual(
            model_to_dict(EquipmentItem.objects.get(pk=self.ball.pk)), item_before
        )

    def test_undo_late_return(self):
        """Undoing a late return restores the trust score."""
        [instance] = self.borrow()
        self.advance(hours=2)

        loan_before = model_to_dict(Loan.objects.get(pk=instance.pk))
        item_before = model_to_dict(EquipmentItem.objects.get(pk=self.ball.pk))
        student_before = model_to_dict(Student.objects.get(pk=self.student.pk))

        receipt = instance.return_loan()

        self.student.refresh_from_db()
        self.assertEqual(self.student.trust_score, 80)

        with capture_events() as events:
            receipt.loan.undo_return()

        names = [name for name, _ in events]
        self.assertIn(str(LoanEvents.LATE_RETURN_REVERTED), names)

        self.student.refresh_from_db()
        self.assertEqual(self.student.trust_score, 100)

        self.assertEqual(model_to_dict(Loan.objects.get(pk=instance.pk)), loan_before)
        self.assertEqual(
            model_to_dict(EquipmentItem.objects.get(pk=self.ball.pk)), item_before
        )
        self.assertEqual(
            model_to_dict(Student.objects.get(pk=self.student.pk)), student_before
        )
        self.assertEqual(self.student.total_late_returns(), 0)

    def test_undo_twice(self):
        """A return can only be undone once."""
        [instance] = self.borrow()
        instance.return_loan()
        instance.undo_return()

        with self.assertRaises(InvalidState):
            instance.undo_return()

    def test_undo_open_loan(self):
        """An open loan has no return to undo."""
        [instance] = self.borrow()

        self.assertFalse(instance.can_undo_return())

        with self.assertRaises(InvalidState):
            instance.undo_return()

    def test_undo_after_window(self):
        """Returns older than the undo window are final."""
        [instance] = self.borrow()
        instance.return_loan()
        self.advance(seconds=601)

        self.assertFalse(instance.can_undo_return())

        with self.assertRaises(InvalidState):
            instance.undo_return()

    @override_settings(LOAN_UNDO_WINDOW_SECONDS=0)
    def test_undo_without_window(self):
        """A zero window means returns can always be undone."""
        [instance] = self.borrow()
        instance.return_loan()
        self.advance(days=30)

        instance.undo_return()
        self.assertTrue(instance.is_open)

    def test_undo_after_reborrow(self):
        """A return cannot be undone once the item is lent again."""
        [instance] = self.borrow()
        instance.return_loan()

        self.borrow(student=self.other)

        with self.assertRaises(InvalidState):
            instance.undo_return()

    def test_undo_item_in_repair(self):
        """A return cannot be undone once the item is out of service."""
        [instance] = self.borrow()
        instance.return_loan()

        self.ball.refresh_from_db()
        self.ball.set_status(EquipmentStatus.REPAIR)

        with self.assertRaises(InvalidState):
            instance.undo_return()


class EquipmentStatusTest(LoanTestCase):
    """Tests for EquipmentItem.set_status."""

    def test_manual_transitions(self):
        """Staff can move an item between available, reserved and repair."""
        self.cones.set_status(EquipmentStatus.RESERVED)
        self.cones.set_status(EquipmentStatus.REPAIR)
        self.cones.set_status(EquipmentStatus.AVAILABLE)

        self.cones.refresh_from_db()
        self.assertEqual(self.cones.status, EquipmentStatus.AVAILABLE)

    def test_cannot_set_borrowed(self):
        """BORROWED can only be set by borrowing."""
        with self.assertRaises(ValidationError):
            self.cones.set_status(EquipmentStatus.BORROWED)

    def test_borrowed_item(self):
        """A borrowed item cannot be moved by hand."""
        self.borrow(self.cones)
        self.cones.refresh_from_db()

        with self.assertRaises(InvalidState):
            self.cones.set_status(EquipmentStatus.REPAIR)

    def test_stale_item(self):
        """Changing the status through a stale copy is a conflict."""
        stale = EquipmentItem.objects.get(pk=self.cones.pk)

        self.cones.set_status(EquipmentStatus.RESERVED)

        with self.assertRaises(ConcurrencyConflict):
            stale.set_status(EquipmentStatus.REPAIR)
