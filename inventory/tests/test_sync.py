"""
Tests — Stockit mirroring of package operations: inline calls after
commit, the StockitSyncJob outbox and its Celery worker, the nightly
consistency task.

@file inventory/tests/test_sync.py
"""

from unittest.mock import patch

import pytest

from core.services import OperationContext
from inventory.models import Package, StockitSyncJob
from inventory.services import PackageOperations
from inventory.sync import StockitOutbox, run_sync
from inventory.tasks import check_package_quantities_task, process_stockit_jobs
from tests.factories import BoxFactory, LocationFactory, PackageFactory


pytestmark = pytest.mark.django_db

Status = StockitSyncJob.StatusChoices


def _received(ctx, quantity=1, location=None):
    package = PackageFactory(received_quantity=quantity)
    location = location or LocationFactory()
    PackageOperations.receive(package.pk, location_id=location.pk, ctx=ctx)
    package.refresh_from_db()
    return package, location


@pytest.fixture
def stockit_on(settings):
    settings.STOCKIT_ENABLED = True


def _job(package, action='update', **kwargs):
    return StockitSyncJob.objects.create(package=package, package_ref=str(package.pk), action=action, **kwargs)


@pytest.mark.usefixtures('stockit_on')
class TestInlineSync:
    def test_receive_stores_stockit_id(self, op_context):
        with patch('inventory.sync.ItemSync') as item_sync:
            item_sync.return_value.create.return_value = {'item_id': 42}
            package, _ = _received(op_context)
        assert package.stockit_id == 42
        item_sync.return_value.create.assert_called_once_with()
        job = StockitSyncJob.objects.get(package=package)
        assert job.action == StockitSyncJob.Action.CREATE
        assert job.status == Status.DONE

    def test_failed_inline_create_stays_ahead_of_later_calls(self, op_context):
        with patch('inventory.sync.ItemSync') as item_sync:
            item_sync.return_value.create.return_value = {'errors': {'connection': ['Stockit timed out']}}
            package, source = _received(op_context)
            PackageOperations.move(
                package.pk, quantity=1, from_location_id=source.pk,
                to_location_id=LocationFactory().pk, ctx=op_context,
            )
        assert package.stockit_id is None
        jobs = StockitSyncJob.objects.filter(package=package).order_by('id')
        assert [(j.action, j.status) for j in jobs] == [
            (StockitSyncJob.Action.CREATE, Status.PENDING),
            (StockitSyncJob.Action.MOVE, Status.PENDING),
        ]

        with patch('inventory.sync.ItemSync') as item_sync:
            item_sync.return_value.create.return_value = {'item_id': 31}
            item_sync.return_value.move.return_value = {}
            assert StockitOutbox.process(str(package.pk)) is None
        assert [c[0] for c in item_sync.return_value.method_calls] == ['create', 'move']
        package.refresh_from_db()
        assert package.stockit_id == 31

    def test_sync_error_is_reported_but_change_kept(self, op_context):
        package = PackageFactory()
        with patch('inventory.sync.ItemSync') as item_sync:
            item_sync.return_value.create.return_value = {'errors': {'connection': ['Stockit unreachable']}}
            result = PackageOperations.receive(package.pk, location_id=LocationFactory().pk, ctx=op_context)
        assert not result.success
        assert result.errors == {'connection': ['Stockit unreachable']}
        package.refresh_from_db()
        assert package.state == Package.StateChoices.RECEIVED

    def test_changes_from_stockit_are_not_mirrored(self, user):
        ctx = OperationContext(actor=user, origin='stockit')
        with patch('inventory.sync.ItemSync') as item_sync:
            _received(ctx)
        item_sync.assert_not_called()

    def test_containers_are_not_mirrored(self, op_context):
        box = BoxFactory()
        with patch('inventory.sync.ItemSync') as item_sync:
            PackageOperations.receive(box.pk, location_id=LocationFactory().pk, ctx=op_context)
        item_sync.assert_not_called()

    def test_disabled(self, op_context, settings):
        settings.STOCKIT_ENABLED = False
        with patch('inventory.sync.ItemSync') as item_sync:
            _received(op_context)
        item_sync.assert_not_called()


@pytest.mark.usefixtures('stockit_on')
class TestDeferredSync:
    def test_move_writes_outbox_job_and_starts_worker_on_commit(self, op_context, django_capture_on_commit_callbacks):
        with patch('inventory.sync.ItemSync') as item_sync:
            item_sync.return_value.create.return_value = {'item_id': 7}
            package, source = _received(op_context)
        with django_capture_on_commit_callbacks(execute=False) as callbacks:
            result = PackageOperations.move(
                package.pk, quantity=1, from_location_id=source.pk,
                to_location_id=LocationFactory().pk, ctx=op_context,
            )
        assert result.success
        assert [e.deferred for e in result.events] == [True]
        job = StockitSyncJob.objects.get(package=package, action=StockitSyncJob.Action.MOVE)
        assert job.status == Status.PENDING
        assert len(callbacks) == 1

    def test_multi_unit_move_is_not_mirrored(self, op_context):
        with patch('inventory.sync.ItemSync') as item_sync:
            item_sync.return_value.create.return_value = {'item_id': 8}
            package, source = _received(op_context, quantity=3)
        PackageOperations.move(
            package.pk, quantity=1, from_location_id=source.pk, to_location_id=LocationFactory().pk, ctx=op_context,
        )
        assert not StockitSyncJob.objects.filter(action=StockitSyncJob.Action.MOVE).exists()

    def test_destroy_queues_delete_by_reference(self, op_context):
        package = PackageFactory(inventory_number='000777', stockit_id=55)
        PackageOperations.destroy(package.pk, ctx=op_context)
        job = StockitSyncJob.objects.get()
        assert job.action == StockitSyncJob.Action.DELETE
        assert job.package is None
        assert job.package_ref == str(package.pk)
        assert job.payload == {'inventory_number': '000777', 'stockit_id': 55}


class TestOutbox:
    def test_jobs_run_in_order(self):
        package = PackageFactory(inventory_number='000001')
        first = _job(package, 'create')
        second = _job(package, 'move')
        calls = []
        with patch('inventory.sync.run_sync', side_effect=lambda ref, action, payload: calls.append(action) or {}):
            assert StockitOutbox.process(str(package.pk)) is None
        assert calls == ['create', 'move']
        first.refresh_from_db()
        second.refresh_from_db()
        assert first.status == second.status == Status.DONE
        assert first.processed_at is not None

    def test_failing_job_blocks_later_jobs(self):
        package = PackageFactory(inventory_number='000001')
        first = _job(package, 'create')
        second = _job(package, 'update')
        with patch('inventory.sync.run_sync', return_value={'errors': {'connection': ['timeout']}}) as run:
            failed = StockitOutbox.process(str(package.pk), max_attempts=3)
        assert failed == first
        assert run.call_count == 1
        first.refresh_from_db()
        second.refresh_from_db()
        assert first.attempts == 1
        assert first.status == Status.PENDING
        assert first.errors == {'connection': ['timeout']}
        assert second.status == Status.PENDING

    def test_exhausted_job_is_failed_and_next_runs(self):
        package = PackageFactory(inventory_number='000001')
        first = _job(package, 'create', attempts=2)
        second = _job(package, 'update')
        outcomes = [{'errors': {'detail': ['boom']}}, {}]
        with patch('inventory.sync.run_sync', side_effect=lambda *args: outcomes.pop(0)):
            assert StockitOutbox.process(str(package.pk), max_attempts=3) is None
        first.refresh_from_db()
        second.refresh_from_db()
        assert first.status == Status.FAILED
        assert second.status == Status.DONE

    def test_other_packages_are_untouched(self):
        package, other = PackageFactory(), PackageFactory()
        job = _job(other)
        with patch('inventory.sync.run_sync', return_value={}):
            StockitOutbox.process(str(package.pk))
        job.refresh_from_db()
        assert job.status == Status.PENDING


class TestRunSync:
    def test_create_result_updates_stockit_id(self):
        package = PackageFactory(inventory_number='000001')
        with patch('inventory.sync.ItemSync') as item_sync:
            item_sync.return_value.update.return_value = {'item_id': 99}
            run_sync(str(package.pk), 'update')
        package.refresh_from_db()
        assert package.stockit_id == 99

    def test_successful_delete_clears_stockit_id(self):
        package = PackageFactory(inventory_number='000001', stockit_id=12)
        with patch('inventory.sync.ItemSync.delete', return_value={}) as delete:
            run_sync(str(package.pk), 'delete', {'inventory_number': '000001', 'stockit_id': 12})
        delete.assert_called_once_with('000001', 12)
        package.refresh_from_db()
        assert package.stockit_id is None

    def test_missing_package_is_skipped(self):
        assert run_sync('00000000-0000-0000-0000-000000000000', 'update') == {}


class TestTasks:
    def test_process_stockit_jobs_task(self):
        package = PackageFactory()
        with patch('inventory.sync.StockitOutbox.process', return_value=None) as process:
            assert process_stockit_jobs.apply(args=[str(package.pk)]).get() == {'package': str(package.pk)}
        process.assert_called_once_with(str(package.pk))

    def test_check_package_quantities_task(self, op_context):
        _received(op_context, quantity=2)
        report = check_package_quantities_task()
        assert report['checked'] == 1
        assert report['drifted'] == []
