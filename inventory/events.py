"""
Inventory — Post-commit Events

Operations do not trigger side effects themselves. They collect Events
on their OperationResult; once the operation's transaction is over the
EventOrchestrator hands each event to its handler.

Every Stockit call goes through the StockitSyncJob outbox, written
inside the operation's transaction, so calls for one package run in
order under the package lock whoever runs them. Inline events process
the package's outbox right after commit and report their job's errors
on the result; deferred events are left to the Celery worker.

@file inventory/events.py
"""

import logging
from dataclasses import dataclass, field
from typing import Callable

from .models import StockitSyncJob
from .sync import SyncAction, StockitOutbox, delete_reference, should_sync

logger = logging.getLogger('stockroom')


@dataclass(frozen=True)
class Event:
    kind: str
    package_id: str
    job_id: int
    deferred: bool = False
    payload: dict = field(default_factory=dict)

    @property
    def name(self) -> str:
        return f'stockit.{self.kind}'


def _sync_inline(event: Event) -> dict:
    blocking = StockitOutbox.process(event.package_id)
    job = StockitSyncJob.objects.get(pk=event.job_id)
    if job.status == StockitSyncJob.StatusChoices.DONE:
        return {}
    if job.errors:
        return {'errors': job.errors}
    # Still pending behind an earlier job that keeps failing.
    return {'errors': blocking.errors if blocking is not None else {}}


def _log_deferred(event: Event) -> dict:
    logger.debug('Stockit %s for package %s deferred to outbox', event.kind, event.package_id)
    return {}


EVENT_HANDLERS: dict[bool, Callable[[Event], dict]] = {
    False: _sync_inline,
    True: _log_deferred,
}


class EventOrchestrator:

    @staticmethod
    def stage(result, package, kind: str, ctx, *, deferred: bool = False) -> Event | None:
        """
        Queue a Stockit call for package and record its event on result.
        Must be called inside the operation's transaction.
        """
        if not should_sync(package, kind, ctx):
            return None
        payload = delete_reference(package) if kind == SyncAction.DELETE else {}
        job = StockitOutbox.enqueue(package, kind, payload)
        event = Event(kind=kind, package_id=str(package.pk), job_id=job.pk, deferred=deferred, payload=payload)
        result.events.append(event)
        return event

    @staticmethod
    def process(result):
        """Run handlers for every event on result; errors land on result.errors."""
        for event in result.events:
            outcome = EVENT_HANDLERS[event.deferred](event)
            errors = outcome.get('errors') if outcome else None
            if errors:
                logger.warning('%s failed for package %s: %s', event.name, event.package_id, errors)
                result.add_errors(errors)
        return result
