"""AppConfig for the LoanDesk project package."""

from django.apps import AppConfig


class LoanDeskConfig(AppConfig):
    """Project-level app: provides shared helpers and management commands."""

    name = 'LoanDesk'
    verbose_name = 'LoanDesk'
