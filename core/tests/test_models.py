"""
Core — Model Tests

Tests for AuditLog, AuditService and the soft-delete mixin.

@file core/tests/test_models.py
"""

import pytest

from core.models import AuditLog
from core.services import AuditService, OperationContext
from tests.factories import AuditLogFactory, PackageFactory, UserFactory


@pytest.mark.django_db
class TestAuditLog:
    def test_create_audit_log(self):
        user = UserFactory()
        log = AuditService.log(
            actor=user,
            action=AuditLog.ActionChoices.CREATE,
            model_name='Package',
            object_id='test-123',
            new_values={'key': 'value'},
            origin='stock',
        )
        assert log.pk is not None
        assert log.action == 'CREATE'
        assert log.origin == 'stock'

    def test_audit_log_cannot_be_updated(self):
        log = AuditLogFactory()
        log.model_name = 'Other'
        with pytest.raises(NotImplementedError):
            log.save()

    def test_audit_log_cannot_be_deleted(self):
        log = AuditLogFactory()
        with pytest.raises(NotImplementedError):
            log.delete()
        assert AuditLog.objects.filter(pk=log.pk).exists()

    def test_snapshot_serialises_foreign_keys_and_uuids(self):
        package = PackageFactory()
        snapshot = AuditService.snapshot(package, fields=['package_type', 'received_quantity'])
        assert snapshot['package_type'] == str(package.package_type_id)
        assert snapshot['received_quantity'] == 1


@pytest.mark.django_db
class TestSoftDelete:
    def test_soft_delete_and_restore(self):
        user = UserFactory()
        package = PackageFactory()
        package.soft_delete(user=user)
        package.refresh_from_db()
        assert package.is_deleted
        assert package.deleted_by == user
        package.restore()
        package.refresh_from_db()
        assert not package.is_deleted
        assert package.deleted_at is None


class TestOperationContext:
    def test_defaults_to_stock_app(self):
        ctx = OperationContext()
        assert ctx.origin == 'stock'
        assert not ctx.from_stockit
        assert ctx.actor_id is None

    def test_stockit_origin(self):
        assert OperationContext(origin='stockit').from_stockit
