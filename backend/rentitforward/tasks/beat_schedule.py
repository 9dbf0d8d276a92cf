# backend/rentitforward/tasks/beat_schedule.py
"""
Celery Beat schedule configuration for Rent It Forward.

Periodic sweeps that keep the booking lifecycle moving without user action.
"""

from typing import Any

from celery.schedules import crontab

CELERYBEAT_SCHEDULE: dict[str, dict[str, Any]] = {
    # Cancel unanswered requests and abandoned authorizations
    "expire-overdue-bookings": {
        "task": "rentitforward.tasks.booking_tasks.expire_overdue_bookings",
        "schedule": crontab(minute="*/15"),
        "options": {"queue": "bookings", "priority": 8},
    },
    # Pay owners whose payout failed or who have since connected an account
    "retry-pending-payouts": {
        "task": "rentitforward.tasks.booking_tasks.retry_pending_payouts",
        "schedule": crontab(minute=5),
        "options": {"queue": "bookings", "priority": 6},
    },
}

SCHEDULE_CONFIG: dict[str, dict[str, dict[str, Any]]] = {
    "development": {
        "retry-pending-payouts": {"schedule": crontab(minute="*/30")},
    },
}


def get_beat_schedule(environment: str = "production") -> dict[str, dict[str, Any]]:
    """
    Get the beat schedule for the specified environment.

    Args:
        environment: The environment name (production, development, test)

    Returns:
        Mapping of task name to Celery beat configuration dict
    """
    base: dict[str, dict[str, Any]] = {name: dict(entry) for name, entry in CELERYBEAT_SCHEDULE.items()}
    for name, override in SCHEDULE_CONFIG.get(environment, {}).items():
        if name in base:
            base[name].update(override)
    return base
