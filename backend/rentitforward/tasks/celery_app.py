# backend/rentitforward/tasks/celery_app.py
"""
Celery application configuration for Rent It Forward.

Redis is the broker and result backend. Task modules are imported
explicitly so beat never schedules an unregistered task.
"""

import logging
import os
from typing import Any

from celery import Celery
from celery.signals import setup_logging

from ..core.config import settings

TASK_MODULES = ("rentitforward.tasks.booking_tasks",)


def _broker_url() -> str:
    # Priority: CELERY_BROKER_URL -> REDIS_URL -> settings.redis_url
    broker_url = os.getenv("CELERY_BROKER_URL") or os.getenv("REDIS_URL") or settings.redis_url
    # Ensure Redis URL includes database number
    if not any(broker_url.endswith(f"/{i}") for i in range(16)):
        broker_url = f"{broker_url}/0"
    return broker_url


def create_celery_app() -> Celery:
    """
    Create and configure the Celery application.

    Returns:
        Celery: Configured Celery application instance
    """
    broker_url = _broker_url()
    result_backend = os.getenv("CELERY_RESULT_BACKEND") or broker_url

    celery_app = Celery("rentitforward", broker=broker_url, backend=result_backend)

    celery_app.conf.update(
        {
            # Task settings
            "task_serializer": "json",
            "accept_content": ["json"],
            "result_serializer": "json",
            "timezone": "Australia/Sydney",
            "enable_utc": True,
            # Worker settings
            "worker_prefetch_multiplier": 4,
            "worker_max_tasks_per_child": 1000,
            # Task execution settings
            "task_soft_time_limit": 300,
            "task_time_limit": 600,
            "task_acks_late": True,
            "task_reject_on_worker_lost": True,
            "task_default_retry_delay": 60,
            # Keep the application's logging setup
            "worker_hijack_root_logger": False,
            "worker_redirect_stdouts": True,
            "worker_redirect_stdouts_level": "INFO",
            "broker_transport_options": {"visibility_timeout": 3600},
        }
    )

    celery_app.conf.imports = TASK_MODULES
    celery_app.conf.task_routes = {
        "rentitforward.tasks.booking_tasks.*": {"queue": "bookings"},
    }

    from .beat_schedule import get_beat_schedule

    celery_app.conf.beat_schedule = get_beat_schedule(settings.environment)
    return celery_app


# Disable Celery's default logging configuration
@setup_logging.connect  # type: ignore[misc]
def config_loggers(*args: Any, **kwargs: Any) -> None:
    """Configure logging to integrate with the application's logging setup."""
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


# Create the Celery app instance
celery_app = create_celery_app()
