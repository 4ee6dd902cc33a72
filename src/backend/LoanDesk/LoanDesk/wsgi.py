"""WSGI config for LoanDesk."""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'LoanDesk.settings')

application = get_wsgi_application()
