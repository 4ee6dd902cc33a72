"""Unit tests for the loan background tasks."""

from datetime import timedelta

from django.test import override_settings

from LoanDesk.unit_test import LoanDeskTestCase, capture_events
from loan.events import LoanEvents
from loan.models import EquipmentItem, Loan
from loan.tasks import check_overdue_loans
from student.models import Student


class OverdueLoanTaskTest(LoanDeskTestCase):
    """Tests for the check_overdue_loans task."""

    @classmethod
    def setUpTestData(cls):
        """Create a student and two items."""
        super().setUpTestData()

        cls.student = Student.objects.create(full_name='Ivy Irwin')
        cls.tent = EquipmentItem.objects.create(item_code='TENT-01', name='Tent')
        cls.stove = EquipmentItem.objects.create(item_code='STOVE-01', name='Stove')

    def overdue_events(self, events):
        """Return the loan ids from the captured overdue events."""
        return [
            kwargs['id'] for name, kwargs in events if name == str(LoanEvents.OVERDUE)
        ]

    def test_newly_overdue(self):
        """Only loans which became overdue in the last interval are reported."""
        [tent] = Loan.borrow(self.student, [self.tent], duration=timedelta(minutes=30))
        [stove] = Loan.borrow(self.student, [self.stove], duration=timedelta(hours=2))

        # Nothing is overdue yet
        self.assertEqual(check_overdue_loans(), [])

        self.advance(minutes=40)

        with capture_events() as events:
            self.assertEqual(check_overdue_loans(), [tent.pk])

        self.assertEqual(self.overdue_events(events), [tent.pk])

        # The tent was already reported; the stove is now overdue
        self.advance(hours=1, minutes=25)

        with capture_events() as events:
            self.assertEqual(check_overdue_loans(), [stove.pk])

        self.assertEqual(self.overdue_events(events), [stove.pk])

    def test_returned_not_reported(self):
        """Returned loans are never reported."""
        [tent] = Loan.borrow(self.student, [self.tent], duration=timedelta(minutes=5))
        self.advance(minutes=10)
        tent.return_loan()

        self.assertEqual(check_overdue_loans(), [])

    @override_settings(LOAN_OVERDUE_ALERTS_ENABLED=False)
    def test_disabled(self):
        """Overdue alerts can be switched off."""
        Loan.borrow(self.student, [self.tent], duration=timedelta(minutes=5))
        self.advance(minutes=10)

        with capture_events() as events:
            self.assertEqual(check_overdue_loans(), [])

        self.assertEqual(self.overdue_events(events), [])
