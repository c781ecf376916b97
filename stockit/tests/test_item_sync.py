"""
Tests — Stockit client and item sync: payloads, create / update
switching, singleton-only calls, error capture. HTTP is mocked at
requests.Session.request.

@file stockit/tests/test_item_sync.py
"""

from datetime import date
from unittest.mock import MagicMock, patch

import pytest
import requests

from catalog.models import Location
from core.exceptions import ExternalSyncError
from inventory.locations import LocationAllocator
from inventory.models import OrdersPackage
from stockit.base import StockitClient
from stockit.item_sync import (
    ItemSync,
    add_stockit_prefix,
    condition_to_stockit,
    stockit_location_id,
    strip_stockit_prefix,
)
from tests.factories import (
    BoxFactory,
    DonorConditionFactory,
    LocationFactory,
    OrderFactory,
    PackageFactory,
)


pytestmark = pytest.mark.django_db


def _response(status_code=200, body=None):
    resp = MagicMock(spec=requests.Response)
    resp.status_code = status_code
    resp.content = b'{}' if body is not None else b''
    resp.json.return_value = body
    return resp


class TestPrefix:
    def test_numeric_numbers_get_prefix(self):
        assert add_stockit_prefix('000123') == 'X000123'
        assert add_stockit_prefix('F00123') == 'F00123'
        assert add_stockit_prefix(None) is None

    def test_prefix_is_stripped(self):
        assert strip_stockit_prefix('X000123') == '000123'
        assert strip_stockit_prefix('x000123') == '000123'
        assert strip_stockit_prefix('000123') == '000123'


class TestParams:
    def test_condition_mapping(self):
        assert condition_to_stockit(PackageFactory(donor_condition=DonorConditionFactory(name='New'))) == 'N'
        explicit = DonorConditionFactory(name='Refurbished', stockit_code='R')
        assert condition_to_stockit(PackageFactory(donor_condition=explicit)) == 'R'
        assert condition_to_stockit(PackageFactory(donor_condition=None)) is None

    def test_item_params(self):
        order = OrderFactory(stockit_id=321)
        package = PackageFactory(
            inventory_number='000042', stockit_id=77, grade='A', case_number='',
            order=order, stockit_designated_on=date(2026, 3, 1),
        )
        params = ItemSync(package, client=MagicMock()).stockit_params()
        assert params['item']['inventory_number'] == 'X000042'
        assert params['item']['id'] == 77
        assert params['item']['code_id'] == package.package_type.stockit_id
        assert params['item']['case_number'] is None
        assert params['item']['designation_id'] == 321
        assert params['item']['designated_on'] == '2026-03-01'
        assert set(params['package']) == {'length', 'width', 'height', 'weight', 'description'}

    def test_location_of_spread_package_is_multiple(self):
        multiple = LocationFactory(kind=Location.KindChoices.MULTIPLE, stockit_id=2)
        package = PackageFactory(received_quantity=4)
        LocationAllocator.allocate(package, LocationFactory(), 2)
        LocationAllocator.allocate(package, LocationFactory(), 2)
        assert stockit_location_id(package) == multiple.stockit_id

    def test_location_of_dispatched_package(self):
        dispatch = LocationFactory(kind=Location.KindChoices.DISPATCH, stockit_id=3)
        package = PackageFactory()
        OrdersPackage.objects.create(
            package=package, order=OrderFactory(), quantity=1, dispatched_quantity=1,
            state=OrdersPackage.StateChoices.DISPATCHED,
        )
        assert stockit_location_id(package) == dispatch.stockit_id

    def test_location_of_single_location_package(self):
        location = LocationFactory()
        package = PackageFactory()
        LocationAllocator.allocate(package, location, 1)
        assert stockit_location_id(package) == location.stockit_id


class TestItemSyncCalls:
    def test_create_posts_new_item(self):
        client = MagicMock()
        client.post.return_value = {'item_id': 5}
        package = PackageFactory(inventory_number='000001')
        assert ItemSync(package, client=client).create() == {'item_id': 5}
        path, payload = client.post.call_args.args
        assert path == '/api/v1/items'
        assert payload['item']['inventory_number'] == 'X000001'

    def test_create_becomes_update_once_mirrored(self):
        client = MagicMock()
        client.put.return_value = {}
        ItemSync(PackageFactory(inventory_number='000001', stockit_id=9), client=client).create()
        client.post.assert_not_called()
        assert client.put.call_args.args[0] == '/api/v1/items/update'

    def test_update_becomes_create_without_stockit_id(self):
        client = MagicMock()
        client.post.return_value = {'item_id': 10}
        assert ItemSync(PackageFactory(inventory_number='000001'), client=client).update() == {'item_id': 10}

    def test_uninventorized_and_containers_are_skipped(self):
        client = MagicMock()
        assert ItemSync(PackageFactory(), client=client).create() == {}
        assert ItemSync(BoxFactory(inventory_number='000002'), client=client).update() == {}
        client.post.assert_not_called()
        client.put.assert_not_called()

    def test_move_is_singleton_only(self):
        client = MagicMock()
        client.put.return_value = {}
        ItemSync(PackageFactory(inventory_number='000001', received_quantity=3), client=client).move()
        client.put.assert_not_called()
        ItemSync(PackageFactory(inventory_number='000002'), client=client).dispatch()
        assert client.put.call_args.args[0] == '/api/v1/items/dispatch'

    def test_errors_are_returned_not_raised(self):
        client = MagicMock()
        client.post.side_effect = ExternalSyncError(detail={'connection': ['Stockit timed out after 2.0s.']})
        result = ItemSync(PackageFactory(inventory_number='000001'), client=client).create()
        assert result == {'errors': {'connection': ['Stockit timed out after 2.0s.']}}

    def test_delete_by_reference(self):
        client = MagicMock()
        client.put.return_value = {}
        ItemSync.delete('000001', 44, client=client)
        client.put.assert_called_once_with('/api/v1/items/destroy', {'id': 44})
        assert ItemSync.delete('000001', None, client=client) == {}


class TestStockitClient:
    def test_sends_token_and_decodes_body(self):
        client = StockitClient(base_url='http://stockit.test/', api_token='abc', timeout=2)
        assert client.session.headers['Authorization'] == 'Token token=abc'
        with patch.object(requests.Session, 'request', return_value=_response(200, {'item_id': 3})) as request:
            assert client.post('/api/v1/items', {'item': {}}) == {'item_id': 3}
        request.assert_called_once_with(
            'POST', 'http://stockit.test/api/v1/items', json={'item': {}}, timeout=2,
        )

    def test_timeout_raises_external_sync_error(self):
        client = StockitClient(base_url='http://stockit.test', api_token='abc', timeout=2)
        with patch.object(requests.Session, 'request', side_effect=requests.Timeout()):
            with pytest.raises(ExternalSyncError) as exc:
                client.put('/api/v1/items/update', {})
        assert 'connection' in exc.value.detail

    def test_error_status_carries_body_errors(self):
        client = StockitClient(base_url='http://stockit.test', api_token='abc', timeout=2)
        body = {'errors': {'inventory_number': ['has already been taken']}}
        with patch.object(requests.Session, 'request', return_value=_response(422, body)):
            with pytest.raises(ExternalSyncError) as exc:
                client.post('/api/v1/items', {})
        assert exc.value.detail['inventory_number'] == ['has already been taken']

    def test_safe_call(self):
        def failing():
            raise ExternalSyncError(detail={'detail': ['down']})

        assert StockitClient.safe_call(failing) == {'errors': {'detail': ['down']}}
        assert StockitClient.safe_call(lambda: None) == {}
