"""
Tests — Order status rules and status change audit.

@file orders/tests/test_models.py
"""

import pytest

from core.models import AuditLog
from orders.models import Order
from tests.factories import OrderFactory, UserFactory


pytestmark = pytest.mark.django_db


class TestOrder:
    def test_open_order_accepts_designations(self):
        order = OrderFactory(status=Order.StatusChoices.DISPATCHING)
        assert not order.is_final
        assert order.accepts_designations

    @pytest.mark.parametrize('status', [Order.StatusChoices.CLOSED, Order.StatusChoices.CANCELLED])
    def test_final_orders(self, status):
        order = OrderFactory(status=status)
        assert order.is_final
        assert not order.accepts_designations


class TestOrderAudit:
    def test_create_is_logged(self):
        order = OrderFactory()
        log = AuditLog.objects.get(model_name='Order', object_id=str(order.pk))
        assert log.action == AuditLog.ActionChoices.CREATE

    def test_status_change_is_logged_with_actor(self):
        order = OrderFactory()
        user = UserFactory()
        order.status = Order.StatusChoices.CLOSED
        order.updated_by = user
        order.save()
        log = AuditLog.objects.get(model_name='Order', object_id=str(order.pk), action='STATUS_CHANGE')
        assert log.actor == user
        assert log.old_values == {'status': 'processing'}
        assert log.new_values['status'] == 'closed'

    def test_save_without_status_change_is_not_logged(self):
        order = OrderFactory()
        order.description = 'Second shipment'
        order.save()
        assert AuditLog.objects.filter(model_name='Order', object_id=str(order.pk)).count() == 1
