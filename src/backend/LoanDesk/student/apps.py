"""App configuration for the student module."""

from django.apps import AppConfig


class StudentConfig(AppConfig):
    """Configuration class for the 'student' app."""

    name = 'student'
    verbose_name = 'Students'

    def ready(self):
        """Initialize the student app when Django starts."""
        # Connect the loan event receivers
        import student.signals  # noqa: F401
