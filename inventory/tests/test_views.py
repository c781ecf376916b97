"""
Tests — Package API endpoints.

@file inventory/tests/test_views.py
"""

import pytest
from django.urls import reverse

from core.models import AuditLog
from inventory.models import Package
from inventory.services import PackageOperations
from tests.factories import BoxFactory, LocationFactory, OrderFactory, PackageFactory, PackageTypeFactory


pytestmark = pytest.mark.django_db


def _url(action, package, **kwargs):
    return reverse(f'api-v1:inventory:package-{action}', kwargs={'pk': package.pk, **kwargs})


def _received(ctx, quantity=5):
    package = PackageFactory(received_quantity=quantity)
    location = LocationFactory()
    PackageOperations.receive(package.pk, location_id=location.pk, ctx=ctx)
    package.refresh_from_db()
    return package, location


class TestPackageCrud:
    def test_list_requires_auth(self, api_client):
        resp = api_client.get(reverse('api-v1:inventory:package-list'))
        assert resp.status_code == 401

    def test_list_and_filter_by_state(self, authenticated_client, op_context):
        _received(op_context)
        PackageFactory()
        url = reverse('api-v1:inventory:package-list')
        assert len(authenticated_client.get(url).data['results']) == 2
        resp = authenticated_client.get(url, {'state': 'received'})
        assert resp.status_code == 200
        assert len(resp.data['results']) == 1

    def test_create_package(self, authenticated_client):
        package_type = PackageTypeFactory()
        resp = authenticated_client.post(
            reverse('api-v1:inventory:package-list'),
            {'package_type': str(package_type.pk), 'received_quantity': 3, 'notes': 'Chairs'},
            format='json',
        )
        assert resp.status_code == 201
        assert resp.data['state'] == 'expecting'
        assert resp.data['received_quantity'] == 3
        assert resp.data['on_hand_quantity'] == 0

    def test_partial_update(self, authenticated_client):
        package = PackageFactory()
        resp = authenticated_client.patch(
            reverse('api-v1:inventory:package-detail', kwargs={'pk': package.pk}),
            {'notes': 'Two chairs'}, format='json',
        )
        assert resp.status_code == 200
        assert resp.data['notes'] == 'Two chairs'

    def test_destroy(self, authenticated_client):
        package = PackageFactory(inventory_number='000888')
        resp = authenticated_client.delete(reverse('api-v1:inventory:package-detail', kwargs={'pk': package.pk}))
        assert resp.status_code == 204
        assert not Package.objects.filter(pk=package.pk).exists()

    def test_destroy_inventorized(self, authenticated_client, op_context):
        package, _ = _received(op_context)
        resp = authenticated_client.delete(reverse('api-v1:inventory:package-detail', kwargs={'pk': package.pk}))
        assert resp.status_code == 409
        assert resp.data['code'] == 'INVENTORIZED_PACKAGE'


class TestOperationEndpoints:
    def test_receive(self, authenticated_client):
        package = PackageFactory(received_quantity=2)
        resp = authenticated_client.post(
            _url('receive', package), {'location_id': str(LocationFactory().pk)}, format='json',
        )
        assert resp.status_code == 200
        assert resp.data['success'] is True
        assert resp.data['errors'] == {}
        assert resp.data['item']['state'] == 'received'
        assert resp.data['packages_inventory'][0]['quantity'] == 2

    def test_receive_without_location(self, authenticated_client):
        package = PackageFactory()
        resp = authenticated_client.post(_url('receive', package), {}, format='json')
        assert resp.status_code == 400
        assert resp.data['success'] is False
        assert 'location_id' in resp.data['errors']
        package.refresh_from_db()
        assert package.state == Package.StateChoices.EXPECTING

    def test_request_origin_header(self, authenticated_client):
        package = PackageFactory()
        authenticated_client.post(
            _url('receive', package), {'location_id': str(LocationFactory().pk)},
            format='json', HTTP_X_REQUEST_ORIGIN='stockit',
        )
        assert AuditLog.objects.get(object_id=str(package.pk)).origin == 'stockit'

    def test_move_more_than_held(self, authenticated_client, op_context):
        package, source = _received(op_context, 5)
        resp = authenticated_client.post(_url('move', package), {
            'quantity': 10,
            'from_location_id': str(source.pk),
            'to_location_id': str(LocationFactory().pk),
        }, format='json')
        assert resp.status_code == 409
        assert resp.data['code'] == 'INSUFFICIENT_LOCATION_QUANTITY'

    def test_designate_and_dispatch(self, authenticated_client, op_context):
        package, _ = _received(op_context, 5)
        order = OrderFactory()
        resp = authenticated_client.post(
            _url('designate', package), {'quantity': 3, 'order_id': str(order.pk)}, format='json',
        )
        assert resp.data['item']['designated_quantity'] == 3
        assert resp.data['item']['available_quantity'] == 2

        resp = authenticated_client.post(
            _url('dispatch', package), {'quantity': 2, 'order_id': str(order.pk)}, format='json',
        )
        assert resp.status_code == 200
        assert resp.data['item']['dispatched_quantity'] == 2
        assert resp.data['item']['on_hand_quantity'] == 3

        resp = authenticated_client.post(_url('undispatch', package), {'order_id': str(order.pk)}, format='json')
        assert resp.data['item']['designated_quantity'] == 3

        resp = authenticated_client.post(_url('undesignate', package), {'order_id': str(order.pk)}, format='json')
        assert resp.data['item']['available_quantity'] == 5

    def test_mark_missing(self, authenticated_client, op_context):
        package, _ = _received(op_context, 1)
        resp = authenticated_client.post(_url('mark-missing', package), {}, format='json')
        assert resp.data['item']['state'] == 'missing'

    def test_register_quantity_change(self, authenticated_client, op_context):
        package, location = _received(op_context, 5)
        resp = authenticated_client.post(
            _url('register-quantity-change', package, action_name='trash'),
            {'quantity': 2, 'from_location_id': str(location.pk), 'description': 'broken'},
            format='json',
        )
        assert resp.status_code == 200
        assert resp.data['item']['on_hand_quantity'] == 3
        assert resp.data['packages_inventory'][0]['action'] == 'trash'

    def test_publish(self, authenticated_client, op_context):
        package, _ = _received(op_context, 1)
        resp = authenticated_client.post(_url('publish', package), {}, format='json')
        assert resp.data['allow_web_publish'] is True
        resp = authenticated_client.post(_url('unpublish', package), {}, format='json')
        assert resp.data['allow_web_publish'] is False


class TestContainmentEndpoints:
    def _pack(self, client, box, package, location, quantity=2, task='pack'):
        return client.post(_url('add-remove-item', box), {
            'item_id': str(package.pk),
            'quantity': quantity,
            'location_id': str(location.pk),
            'task': task,
        }, format='json')

    def test_zero_quantity_is_a_no_op(self, authenticated_client, op_context):
        package, location = _received(op_context)
        resp = self._pack(authenticated_client, BoxFactory(), package, location, quantity=0)
        assert resp.status_code == 204

    def test_pack_then_query(self, authenticated_client, op_context):
        package, location = _received(op_context)
        box = BoxFactory()
        resp = self._pack(authenticated_client, box, package, location)
        assert resp.status_code == 201
        assert resp.data['success'] is True
        assert resp.data['packages_inventory'][0]['quantity'] == -2

        resp = authenticated_client.get(_url('contained-packages', box))
        assert resp.data['total_quantity'] == 2
        assert [row['id'] for row in resp.data['results']] == [str(package.pk)]

        resp = authenticated_client.get(_url('parent-containers', package))
        assert [row['id'] for row in resp.data['results']] == [str(box.pk)]

        resp = authenticated_client.get(_url('added-quantity', package), {'entity_id': str(box.pk)})
        assert resp.data == {'added_quantity': 2}

    def test_pack_failure(self, authenticated_client, op_context):
        package, location = _received(op_context, 1)
        resp = self._pack(authenticated_client, BoxFactory(), package, location, quantity=3)
        assert resp.status_code == 422
        assert resp.data['success'] is False
        assert 'quantity' in resp.data['errors']


class TestLedgerEndpoint:
    def test_ledger_lists_entries(self, authenticated_client, op_context):
        package, location = _received(op_context, 5)
        PackageOperations.move(
            package.pk, quantity=1, from_location_id=location.pk,
            to_location_id=LocationFactory().pk, ctx=op_context,
        )
        resp = authenticated_client.get(_url('ledger', package))
        assert resp.status_code == 200
        assert [row['action'] for row in resp.data['results']] == ['receive', 'move', 'move']
