"""Unit tests for the Student model and suspension management."""

from datetime import timedelta

from django.core.exceptions import ValidationError

from LoanDesk.exceptions import AlreadySuspended, InvalidState
from LoanDesk.unit_test import TEST_EPOCH, LoanDeskTestCase, capture_events
from loan.models import EquipmentItem, Loan
from student.events import StudentEvents
from student.models import DismissedNotification, Student, SuspensionEntry
from student.status_codes import StudentRiskState


class StudentTestCase(LoanDeskTestCase):
    """Base class for student tests."""

    @classmethod
    def setUpTestData(cls):
        """Create a student and an item to lend."""
        super().setUpTestData()

        cls.student = Student.objects.create(full_name='Chloe Carter', house='Red')
        cls.item = EquipmentItem.objects.create(item_code='BAT-01', name='Cricket Bat')

    def late_return(self, student=None):
        """Borrow the item and return it an hour after it was due."""
        [instance] = Loan.borrow(student or self.student, [self.item])
        self.advance(hours=2)
        instance.return_loan()
        return instance

    def on_time_return(self, student=None):
        """Borrow the item and return it before it is due."""
        [instance] = Loan.borrow(student or self.student, [self.item])
        self.advance(minutes=30)
        instance.return_loan()
        return instance


class StudentNumberTest(LoanDeskTestCase):
    """Tests for student number generation."""

    def test_generated_numbers(self):
        """Student numbers follow on from the highest existing number."""
        first = Student.objects.create(full_name='First')
        self.assertEqual(first.student_number, 'STU000001')

        Student.objects.create(full_name='Manual', student_number='STU000041')

        second = Student.objects.create(full_name='Second')
        self.assertEqual(second.student_number, 'STU000042')

    def test_invalid_number(self):
        """Student numbers cannot contain spaces."""
        instance = Student(full_name='Bad', student_number='STU 1')

        with self.assertRaises(ValidationError):
            instance.full_clean()


class StudentCounterTest(StudentTestCase):
    """Tests for the late-return counters."""

    def test_late_returns(self):
        """Only loans returned after their due time count as late."""
        self.late_return()
        self.on_time_return()
        self.late_return()

        self.assertEqual(self.student.total_late_returns(), 2)
        self.assertEqual(self.student.late_returns_since_last_suspension(), 2)

        self.student.refresh_from_db()
        self.assertEqual(self.student.trust_score, 60)

    def test_overdue_not_counted(self):
        """An open overdue loan is not a late return."""
        Loan.borrow(self.student, [self.item])
        self.advance(hours=5)

        self.assertEqual(self.student.total_late_returns(), 0)

        stats = self.student.profile_statistics()
        self.assertEqual(stats['overdue_loans'], 1)
        self.assertEqual(stats['late_or_overdue'], 1)
        self.assertEqual(stats['total_late_returns'], 0)

    def test_profile_statistics(self):
        """Profile statistics summarise the loan history."""
        self.late_return()
        self.on_time_return()
        Loan.borrow(self.student, [self.item])

        stats = self.student.profile_statistics()

        self.assertEqual(stats['total_loans'], 3)
        self.assertEqual(stats['active_loans'], 1)
        self.assertEqual(stats['overdue_loans'], 0)
        self.assertEqual(stats['total_late_returns'], 1)
        self.assertEqual(stats['late_or_overdue'], 1)
        self.assertEqual(stats['warning_threshold'], 3)
        self.assertEqual(stats['trust_score'], 80)
        self.assertEqual(stats['risk_state'], StudentRiskState.CLEAR)
        self.assertEqual(len(stats['recent_loans']), 3)


class SuspensionTest(StudentTestCase):
    """Tests for Student.suspend, lift_suspension and auto_expire."""

    def test_suspend(self):
        """Suspending records an entry and blacklists the student."""
        with capture_events() as events:
            entry = self.student.suspend(7, 'Three late returns')

        self.assertEqual(entry.start_date, TEST_EPOCH)
        self.assertEqual(entry.end_date, TEST_EPOCH + timedelta(days=7))
        self.assertTrue(entry.is_active)

        self.student.refresh_from_db()
        self.assertTrue(self.student.is_blacklisted)
        self.assertTrue(self.student.is_restricted())
        self.assertEqual(self.student.blacklist_reason, 'Three late returns')
        self.assertEqual(self.student.risk_state(), StudentRiskState.SUSPENDED)

        names = [name for name, _ in events]
        self.assertIn(str(StudentEvents.SUSPENDED), names)

    def test_suspend_halves_trust(self):
        """Each suspension halves the current trust score."""
        for _ in range(3):
            self.late_return()

        self.student.refresh_from_db()
        self.assertEqual(self.student.trust_score, 40)

        self.student.suspend(7, 'Late returns')

        self.student.refresh_from_db()
        self.assertEqual(self.student.trust_score, 20)

    def test_invalid_suspension(self):
        """A reason and a positive duration are required."""
        with self.assertRaises(ValidationError):
            self.student.suspend(7, '   ')

        with self.assertRaises(ValidationError):
            self.student.suspend(0, 'Late')

        with self.assertRaises(ValidationError):
            self.student.suspend('seven', 'Late')

        self.assertEqual(SuspensionEntry.objects.count(), 0)

        self.student.refresh_from_db()
        self.assertFalse(self.student.is_blacklisted)

    def test_already_suspended(self):
        """A student cannot be suspended twice at once."""
        self.student.suspend(7, 'Late')

        with self.assertRaises(AlreadySuspended):
            self.student.suspend(3, 'Again')

        self.assertEqual(self.student.total_suspensions(), 1)

    def test_suspend_after_lapse(self):
        """A lapsed (but not yet expired) suspension can be replaced."""
        self.student.suspend(1, 'First')
        self.advance(days=2)

        self.student.suspend(1, 'Second')

        self.assertEqual(self.student.total_suspensions(), 2)
        self.assertEqual(self.student.suspensions.filter(is_active=True).count(), 1)

    def test_auto_expire(self):
        """Expiry clears the blacklist and is idempotent."""
        self.student.suspend(3, 'Late')

        self.advance(days=2)
        self.assertEqual(Student.auto_expire(), 0)

        self.advance(days=1)

        with capture_events() as events:
            self.assertEqual(Student.auto_expire(), 1)

        self.assertEqual(Student.auto_expire(), 0)

        names = [name for name, _ in events]
        self.assertIn(str(StudentEvents.SUSPENSION_EXPIRED), names)

        self.student.refresh_from_db()
        self.assertFalse(self.student.is_blacklisted)

        # The end date and reason are kept for reference
        self.assertEqual(self.student.blacklist_end_date, TEST_EPOCH + timedelta(days=3))
        self.assertEqual(self.student.blacklist_reason, 'Late')

        entry = self.student.last_suspension()
        self.assertFalse(entry.is_active)

    def test_lift_suspension(self):
        """Lifting a suspension ends it now and restarts the window."""
        self.student.suspend(7, 'Late')
        self.advance(days=1)

        self.student.lift_suspension()

        self.student.refresh_from_db()
        self.assertFalse(self.student.is_blacklisted)
        self.assertFalse(self.student.is_restricted())

        entry = self.student.last_suspension()
        self.assertFalse(entry.is_active)
        self.assertEqual(entry.end_date, TEST_EPOCH + timedelta(days=1))

        self.advance(minutes=1)
        self.late_return()
        self.assertEqual(self.student.late_returns_since_last_suspension(), 1)

    def test_lift_not_suspended(self):
        """Lifting requires an active suspension."""
        with self.assertRaises(InvalidState):
            self.student.lift_suspension()

    def test_lift_lapsed_suspension(self):
        """A suspension which has run out cannot be lifted."""
        entry = self.student.suspend(1, 'Late')
        self.advance(days=1, minutes=1)

        for _ in range(5):
            self.late_return()

        self.assertEqual(self.student.late_returns_since_last_suspension(), 5)

        # Not yet expired by the task, but no longer in force
        self.student.refresh_from_db()
        self.assertTrue(self.student.is_blacklisted)

        with self.assertRaises(InvalidState):
            self.student.lift_suspension()

        entry.refresh_from_db()
        self.assertEqual(entry.end_date, TEST_EPOCH + timedelta(days=1))
        self.assertEqual(self.student.late_returns_since_last_suspension(), 5)
        self.assertEqual(self.student.risk_state(), StudentRiskState.AT_RISK)

    def test_history_kept(self):
        """Suspension entries cannot be deleted."""
        entry = self.student.suspend(7, 'Late')

        with self.assertRaises(ValidationError):
            entry.delete()

        self.assertEqual(SuspensionEntry.objects.count(), 1)

    def test_loan_spanning_suspension(self):
        """Loans borrowed before a suspension ends never count afterwards."""
        [instance] = Loan.borrow(self.student, [self.item])
        self.advance(minutes=5)

        self.student.suspend(1, 'Late')
        self.advance(days=2)
        instance.return_loan()

        self.assertEqual(self.student.total_late_returns(), 1)
        self.assertEqual(self.student.late_returns_since_last_suspension(), 0)


class DismissalTest(StudentTestCase):
    """Tests for Student.dismiss_alert."""

    def test_dismiss(self):
        """A dismissal silences the alert for exactly that count."""
        for _ in range(3):
            self.late_return()

        self.assertEqual(self.student.risk_state(), StudentRiskState.AT_RISK)

        self.student.dismiss_alert(3, 3)
        self.assertEqual(self.student.risk_state(), StudentRiskState.DISMISSED)

        # Dismissing again does not create a second record
        self.student.dismiss_alert(3, 3)
        self.assertEqual(DismissedNotification.objects.count(), 1)

        self.late_return()
        self.assertEqual(self.student.risk_state(), StudentRiskState.AT_RISK)

    def test_dismiss_invalid(self):
        """Dismissal values are validated."""
        with self.assertRaises(ValidationError):
            self.student.dismiss_alert(-1, 3)

        with self.assertRaises(ValidationError):
            self.student.dismiss_alert(3, 0)

        with self.assertRaises(ValidationError):
            self.student.dismiss_alert('three', 3)

        with self.assertRaises(ValidationError):
            self.student.dismiss_alert(3, None)

        self.assertEqual(DismissedNotification.objects.count(), 0)
