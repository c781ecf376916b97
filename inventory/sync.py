"""
Inventory — Stockit Sync

Runs ItemSync calls for packages through the StockitSyncJob outbox.
Jobs are written inside the operation's transaction and processed per
package in id order under the package row lock, either right after
commit by the request itself or by the Celery worker, so a package's
calls never overtake each other.

@file inventory/sync.py
"""

import logging

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from stockit.item_sync import ItemSync

from .models import Package, StockitSyncJob

logger = logging.getLogger('stockroom')

SyncAction = StockitSyncJob.Action

# Calls Stockit only accepts for singleton packages.
SINGLETON_ONLY_ACTIONS = frozenset({SyncAction.MOVE, SyncAction.DISPATCH, SyncAction.UNDISPATCH})


def stockit_enabled() -> bool:
    return bool(getattr(settings, 'STOCKIT_ENABLED', False))


def should_sync(package, action: str, ctx) -> bool:
    """Whether a change to package must be mirrored to Stockit."""
    if not stockit_enabled() or ctx.from_stockit:
        return False
    if action == SyncAction.DELETE:
        return bool(package.inventory_number and package.stockit_id)
    if not package.inventory_number or package.is_container:
        return False
    return package.is_singleton or action not in SINGLETON_ONLY_ACTIONS


def delete_reference(package) -> dict:
    return {'inventory_number': package.inventory_number, 'stockit_id': package.stockit_id}


def run_sync(package_id, action: str, payload: dict | None = None) -> dict:
    """Perform one Stockit call for a package and store any returned item id."""
    if action == SyncAction.DELETE:
        payload = payload or {}
        result = ItemSync.delete(payload.get('inventory_number'), payload.get('stockit_id'))
        if not result.get('errors'):
            Package.objects.filter(pk=package_id, stockit_id=payload.get('stockit_id')).update(stockit_id=None)
        return result

    package = Package.objects.select_related(
        'package_type', 'storage_type', 'donor_condition', 'item__donor_condition', 'order', 'location',
    ).filter(pk=package_id).first()
    if package is None:
        return {}
    result = getattr(ItemSync(package), action)()
    item_id = result.get('item_id')
    if item_id and item_id != package.stockit_id:
        Package.objects.filter(pk=package.pk).update(stockit_id=item_id)
    return result


class StockitOutbox:

    @staticmethod
    def enqueue(package, action: str, payload: dict | None = None) -> StockitSyncJob:
        """Write a job in the current transaction; the worker is started on commit."""
        from .tasks import process_stockit_jobs

        ref = str(package.pk)
        job = StockitSyncJob.objects.create(
            package=package, package_ref=ref, action=action, payload=payload or {},
        )
        transaction.on_commit(lambda: process_stockit_jobs.delay(ref))
        logger.debug('Queued Stockit %s for package %s (job %s)', action, ref, job.pk)
        return job

    @staticmethod
    def pending(package_ref: str):
        return StockitSyncJob.objects.filter(
            package_ref=package_ref, status=StockitSyncJob.StatusChoices.PENDING,
        ).order_by('id')

    @classmethod
    @transaction.atomic
    def process(cls, package_ref: str, max_attempts: int | None = None) -> StockitSyncJob | None:
        """
        Run pending jobs of one package in order. Stops at the first job
        that fails and still has attempts left and returns it; a job out
        of attempts is marked failed and the next one runs.
        """
        if max_attempts is None:
            max_attempts = settings.STOCKIT_SYNC_MAX_RETRIES + 1
        Package.objects.select_for_update().filter(pk=package_ref).first()

        for job in cls.pending(package_ref).select_for_update():
            result = run_sync(package_ref, job.action, job.payload)
            job.attempts += 1
            errors = result.get('errors')
            if not errors:
                job.status = StockitSyncJob.StatusChoices.DONE
                job.errors = {}
                job.processed_at = timezone.now()
                job.save(update_fields=['status', 'errors', 'attempts', 'processed_at'])
                continue

            job.errors = errors
            if job.attempts >= max_attempts:
                job.status = StockitSyncJob.StatusChoices.FAILED
                job.processed_at = timezone.now()
                job.save(update_fields=['status', 'errors', 'attempts', 'processed_at'])
                logger.error('Stockit %s for package %s failed for good: %s', job.action, package_ref, errors)
                continue

            job.save(update_fields=['errors', 'attempts'])
            logger.warning(
                'Stockit %s for package %s failed (attempt %d): %s',
                job.action, package_ref, job.attempts, errors,
            )
            return job
        return None
