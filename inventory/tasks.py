"""
Inventory — Celery Tasks

Outbox worker for deferred Stockit calls and the periodic package
quantity consistency sweep.

@file inventory/tasks.py
"""

import logging

from celery import shared_task
from django.conf import settings

logger = logging.getLogger('stockroom')


@shared_task(bind=True, name='inventory.process_stockit_jobs', max_retries=None)
def process_stockit_jobs(self, package_ref: str):
    """
    Run the pending Stockit jobs of one package in order. A failing job
    stops the run and the task retries later with backoff.
    """
    from .sync import StockitOutbox

    failed = StockitOutbox.process(package_ref)
    if failed is not None:
        countdown = min(60 * 2 ** (failed.attempts - 1), 3600)
        raise self.retry(countdown=countdown, max_retries=settings.STOCKIT_SYNC_MAX_RETRIES)
    return {'package': package_ref}


@shared_task(name='inventory.check_package_quantities')
def check_package_quantities_task():
    """
    Nightly sweep: compare cached counters with ledger-derived ones for
    inventorized packages. Registered with Celery Beat.
    """
    from .services import ConsistencyService

    report = ConsistencyService.check_package_quantities()
    logger.info(
        'check_package_quantities completed: %d checked, %d drifted, %d unlocated.',
        report['checked'], len(report['drifted']), len(report['unlocated']),
    )
    return report
