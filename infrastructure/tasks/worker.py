"""Convenience entry point for running the Celery worker with the refund sweep.

Deployments usually invoke the Celery CLI directly
(``celery -A infrastructure.tasks worker -B``); this script does the same for
local runs and Procfile-style runners.
"""
from __future__ import annotations

from .config.celery import celery_app


def main() -> None:
    celery_app.worker_main(
        argv=["worker", "--beat", "--loglevel=INFO", "--hostname=worker@%h", "--queues=payments,default"],
    )


if __name__ == "__main__":
    main()
