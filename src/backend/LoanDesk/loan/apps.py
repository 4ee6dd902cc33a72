"""AppConfig for the equipment loan app."""

from django.apps import AppConfig


class LoanConfig(AppConfig):
    """Equipment items and the loans made against them."""

    name = 'loan'
    verbose_name = 'Equipment Loans'
    default_auto_field = 'django.db.models.BigAutoField'
