"""Celery task infrastructure package.

Importing this module wires together the configured Celery app and the
lightweight dispatcher facade that higher layers depend upon.
"""
from .config.celery import celery_app
from .notifier import CeleryOrderNotifier
from .utils.dispatcher import TaskDispatcher
from . import tasks as _registered_tasks  # noqa: F401

__all__ = ["celery_app", "CeleryOrderNotifier", "TaskDispatcher"]
