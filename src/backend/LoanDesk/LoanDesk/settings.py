"""Django settings for the LoanDesk project.

Values are read via LoanDesk.config.get_setting, which checks
(in order) environment variables, the YAML config file and the
defaults listed here.
"""

import logging
import sys
from pathlib import Path

import structlog

from LoanDesk.config import get_boolean_setting, get_setting, to_list

BASE_DIR = Path(__file__).resolve().parent.parent

TESTING = get_boolean_setting(
    'LOANDESK_TESTING',
    default_value='test' in sys.argv or 'pytest' in sys.modules,
)

DEBUG = get_boolean_setting('LOANDESK_DEBUG', 'debug', False)

SECRET_KEY = get_setting(
    'LOANDESK_SECRET_KEY',
    'secret_key',
    'loandesk-insecure-development-key',
)

ALLOWED_HOSTS = to_list(
    get_setting('LOANDESK_ALLOWED_HOSTS', 'allowed_hosts', ['localhost', '127.0.0.1'])
)

# region Logging

LOG_LEVEL = str(get_setting('LOANDESK_LOG_LEVEL', 'log_level', 'WARNING')).upper()

if LOG_LEVEL not in ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']:
    LOG_LEVEL = 'WARNING'

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt='iso'),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ],
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'console': {
            '()': structlog.stdlib.ProcessorFormatter,
            'processor': structlog.dev.ConsoleRenderer(colors=False),
        },
        'json': {
            '()': structlog.stdlib.ProcessorFormatter,
            'processor': structlog.processors.JSONRenderer(),
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'json'
            if get_boolean_setting('LOANDESK_JSON_LOG', 'json_log', False)
            else 'console',
        },
    },
    'root': {'handlers': ['console'], 'level': LOG_LEVEL},
    'loggers': {
        'loandesk': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
    },
}

# Keep the test output clean
if TESTING:
    logging.disable(logging.CRITICAL)

# endregion

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    # Third-party apps
    'rest_framework',
    'django_filters',
    'django_q',
    # LoanDesk apps
    'LoanDesk.apps.LoanDeskConfig',
    'student.apps.StudentConfig',
    'loan.apps.LoanConfig',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'LoanDesk.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ]
        },
    }
]

WSGI_APPLICATION = 'LoanDesk.wsgi.application'

# region Database

DB_ENGINE = get_setting('LOANDESK_DB_ENGINE', 'database.ENGINE', 'sqlite3')

if '.' not in DB_ENGINE:
    DB_ENGINE = f'django.db.backends.{DB_ENGINE}'

DATABASES = {
    'default': {
        'ENGINE': DB_ENGINE,
        'NAME': get_setting(
            'LOANDESK_DB_NAME', 'database.NAME', str(BASE_DIR / 'loandesk.sqlite3')
        ),
        'USER': get_setting('LOANDESK_DB_USER', 'database.USER', ''),
        'PASSWORD': get_setting('LOANDESK_DB_PASSWORD', 'database.PASSWORD', ''),
        'HOST': get_setting('LOANDESK_DB_HOST', 'database.HOST', ''),
        'PORT': get_setting('LOANDESK_DB_PORT', 'database.PORT', ''),
    }
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# endregion

LANGUAGE_CODE = 'en-us'
TIME_ZONE = get_setting('LOANDESK_TIMEZONE', 'timezone', 'UTC')
USE_I18N = True
USE_TZ = True

STATIC_URL = '/static/'
STATIC_ROOT = get_setting(
    'LOANDESK_STATIC_ROOT', 'static_root', str(BASE_DIR / 'static')
)

REST_FRAMEWORK = {
    'EXCEPTION_HANDLER': 'LoanDesk.exceptions.exception_handler',
    'DEFAULT_AUTHENTICATION_CLASSES': (
        'rest_framework.authentication.BasicAuthentication',
        'rest_framework.authentication.SessionAuthentication',
    ),
    'DEFAULT_PERMISSION_CLASSES': ('rest_framework.permissions.IsAuthenticated',),
    'DEFAULT_FILTER_BACKENDS': ('django_filters.rest_framework.DjangoFilterBackend',),
    'TEST_REQUEST_DEFAULT_FORMAT': 'json',
}

# Background worker configuration (django-q2)
Q_CLUSTER = {
    'name': 'loandesk',
    'label': 'Background Tasks',
    'workers': get_setting('LOANDESK_BACKGROUND_WORKERS', 'background.workers', 2, typecast=int),
    'timeout': get_setting('LOANDESK_BACKGROUND_TIMEOUT', 'background.timeout', 90, typecast=int),
    'retry': 120,
    'max_attempts': 3,
    'queue_limit': 50,
    'catch_up': False,
    'bulk': 10,
    'orm': 'default',
    'sync': TESTING,
}

# region Loan and risk policy

# Default loan duration, used when the borrower does not supply one
LOAN_DEFAULT_DURATION_MINUTES = get_setting(
    'LOANDESK_LOAN_DURATION_MINUTES', 'loan.default_duration_minutes', 60, typecast=int
)

# How long after a return the return may still be undone (0 = no limit)
LOAN_UNDO_WINDOW_SECONDS = get_setting(
    'LOANDESK_UNDO_WINDOW_SECONDS', 'loan.undo_window_seconds', 600, typecast=int
)

LOAN_OVERDUE_ALERTS_ENABLED = get_boolean_setting(
    'LOANDESK_OVERDUE_ALERTS', 'loan.overdue_alerts', True
)

STUDENT_TRUST_BASE = get_setting(
    'LOANDESK_TRUST_BASE', 'student.trust_base', 100, typecast=int
)

STUDENT_TRUST_LATE_PENALTY = get_setting(
    'LOANDESK_TRUST_LATE_PENALTY', 'student.trust_late_penalty', 20, typecast=int
)

STUDENT_DEFAULT_SUSPENSION_DAYS = get_setting(
    'LOANDESK_SUSPENSION_DAYS', 'student.default_suspension_days', 7, typecast=int
)

RISK_SCAN_INTERVAL_MINUTES = get_setting(
    'LOANDESK_SCAN_INTERVAL_MINUTES', 'student.scan_interval_minutes', 15, typecast=int
)

# endregion
