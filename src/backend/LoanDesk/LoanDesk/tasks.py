"""Functions for scheduling and running background tasks."""

from dataclasses import dataclass
from typing import Callable, Optional

import structlog

logger = structlog.get_logger('loandesk')


@dataclass()
class ScheduledTask:
    """A scheduled task.

    - interval: The interval at which the task should be run
    - minutes: The number of minutes between task runs (MINUTES interval only)
    - func: The function to be run
    """

    func: Callable
    interval: str
    minutes: Optional[int] = None

    MINUTES: str = 'I'
    HOURLY: str = 'H'
    DAILY: str = 'D'
    WEEKLY: str = 'W'
    MONTHLY: str = 'M'

    @property
    def name(self) -> str:
        """Return the dotted path of the task function."""
        return f'{self.func.__module__}.{self.func.__name__}'


class TaskRegister:
    """Registry of periodic tasks."""

    def __init__(self):
        """Initialize an empty register."""
        self.task_list: list[ScheduledTask] = []

    def register(self, task, interval=ScheduledTask.DAILY, minutes=None):
        """Register a task with the que."""
        self.task_list.append(ScheduledTask(task, interval, minutes))

    def get(self, name: str) -> Optional[ScheduledTask]:
        """Return the registered task with the provided dotted name."""
        for task in self.task_list:
            if task.name == name:
                return task
        return None


tasks = TaskRegister()


def scheduled_task(interval: str, minutes: Optional[int] = None, tasks: TaskRegister = tasks):
    """Register the given task as a scheduled task.

    Example:
    ```python
    @scheduled_task(ScheduledTask.DAILY)
    def my_custom_function():
        ...
    ```

    Args:
        interval (str): The interval at which the task should be run
        minutes (int): The number of minutes between task runs (for the MINUTES interval)
        tasks (TaskRegister): The register to add the task to
    """

    def _task_wrapper(admin_class):
        tasks.register(admin_class, interval, minutes)
        return admin_class

    return _task_wrapper


def schedule_task(taskname, **kwargs):
    """Create a scheduled task.

    If the task has already been scheduled, the schedule is updated in place.
    """
    # If unspecified, repeat indefinitely
    repeats = kwargs.pop('repeats', -1)
    kwargs['repeats'] = repeats

    from django_q.models import Schedule

    schedule, created = Schedule.objects.update_or_create(
        func=taskname, defaults={'name': taskname, **kwargs}
    )

    if created:
        logger.info('Creating scheduled task', task=taskname)
    else:
        logger.debug('Updated scheduled task', task=taskname)

    return schedule


def schedule_registered_tasks(register: TaskRegister = tasks) -> list:
    """Create (or update) a django-q schedule for every registered task."""
    # Importing the task modules populates the register
    import loan.tasks  # noqa: F401
    import student.tasks  # noqa: F401

    schedules = []

    for task in register.task_list:
        kwargs = {'schedule_type': task.interval}

        if task.interval == ScheduledTask.MINUTES:
            kwargs['minutes'] = task.minutes or 1

        schedules.append(schedule_task(task.name, **kwargs))

    return schedules

