"""Register the periodic LoanDesk tasks with the background worker."""

from django.core.management.base import BaseCommand

from LoanDesk.tasks import schedule_registered_tasks


class Command(BaseCommand):
    """Create or update a django-q schedule for each registered task."""

    help = 'Create or update the schedules for all periodic LoanDesk tasks'

    def handle(self, *args, **kwargs):
        """Run the command."""
        schedules = schedule_registered_tasks()

        for schedule in schedules:
            self.stdout.write(f'Scheduled {schedule.func} ({schedule.schedule_type})')

        self.stdout.write(self.style.SUCCESS(f'{len(schedules)} tasks scheduled'))
