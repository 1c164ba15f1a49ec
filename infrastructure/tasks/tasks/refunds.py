"""Refund compensation tasks.

The sweep runs the async service under ``asyncio.run`` with its own engine,
so connections never outlive the event loop that opened them.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

from celery import shared_task

from application.services.payment_service import PaymentLifecycleService
from core.config import settings
from core.logging_config import get_logger
from infrastructure.database import build_engine, build_session_factory
from infrastructure.external.payments import get_payment_gateway
from infrastructure.unit_of_work import make_uow_factory
from ..utils.base_task import BaseTask

logger = get_logger(__name__)

T = TypeVar("T")


async def _with_service(fn: Callable[[PaymentLifecycleService], Awaitable[T]]) -> T:
    engine = build_engine(settings.database.url)
    service = PaymentLifecycleService(
        make_uow_factory(build_session_factory(engine)),
        get_payment_gateway(),
    )
    try:
        return await fn(service)
    finally:
        await service.aclose()
        await engine.dispose()


@shared_task(name="payments.retry_refunds", bind=True, base=BaseTask)
def retry_refunds(self, limit: int = 50) -> dict[str, int]:
    """Sweep cancelled orders still waiting for a refund."""
    summary = asyncio.run(_with_service(lambda svc: svc.retry_pending_refunds(limit)))
    logger.info("refund_sweep_finished", **summary)
    return summary

