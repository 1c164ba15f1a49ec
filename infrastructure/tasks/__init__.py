"""Celery task infrastructure package.

Importing this module wires the configured Celery app; task modules live
under ``infrastructure.tasks.tasks``.
"""
from .config.celery import celery_app

__all__ = ["celery_app"]
