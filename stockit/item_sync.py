"""
Stockit — Item Sync

Mirrors a package to Stockit as an "item". Only inventorized packages
that are not containers are mirrored; move, dispatch and undispatch are
mirrored for singleton packages only. Every public method returns the
decoded Stockit answer ({'item_id': ...} on create) or
{'errors': {...}} and never raises.

@file stockit/item_sync.py
"""

import logging
import re

from catalog.models import Location
from core.constants import STOCKIT_PREFIX
from inventory.models import OrdersPackage

from .base import StockitClient

logger = logging.getLogger('stockroom')

ITEMS_PATH = '/api/v1/items'

# Donor condition name -> Stockit single letter code, used when the
# condition carries no explicit stockit_code.
CONDITION_CODES = {
    'New': 'N',
    'Lightly Used': 'M',
    'Heavily Used': 'U',
    'Broken': 'B',
}


def add_stockit_prefix(inventory_number: str | None) -> str | None:
    """Stockit expects numeric inventory numbers prefixed with X."""
    if inventory_number and inventory_number[0].isdigit():
        return f'{STOCKIT_PREFIX}{inventory_number}'
    return inventory_number


def strip_stockit_prefix(inventory_number: str | None) -> str | None:
    if not inventory_number:
        return inventory_number
    return re.sub(rf'^{STOCKIT_PREFIX}', '', inventory_number, flags=re.IGNORECASE)


def condition_to_stockit(package) -> str | None:
    condition = package.donor_condition or (package.item.donor_condition if package.item_id else None)
    if condition is None:
        return None
    return condition.stockit_code or CONDITION_CODES.get(condition.name)


def stockit_location_id(package) -> int | None:
    """Dispatched packages sit in the dispatch pseudo location, spread ones in the multiple one."""
    dispatched = package.stockit_sent_on or package.orders_packages.filter(
        state=OrdersPackage.StateChoices.DISPATCHED,
    ).exists()
    if dispatched:
        location = Location.dispatch_location()
        return location.stockit_id if location else None
    rows = list(package.packages_locations.select_related('location')[:2])
    if len(rows) > 1:
        location = Location.multiple_location()
        return location.stockit_id if location else None
    if rows:
        return rows[0].location.stockit_id
    return package.location.stockit_id if package.location_id else None


class ItemSync:

    def __init__(self, package, client: StockitClient | None = None):
        self.package = package
        self.client = client or StockitClient()

    # -- payload -----------------------------------------------------------

    def item_params(self) -> dict:
        package = self.package
        order = package.order if package.order_id else None
        return {
            'quantity': package.received_quantity,
            'code_id': package.package_type.stockit_id,
            'inventory_number': add_stockit_prefix(package.inventory_number),
            'case_number': package.case_number or None,
            'condition': condition_to_stockit(package),
            'grade': package.grade,
            'description': package.notes,
            'location_id': stockit_location_id(package),
            'id': package.stockit_id,
            'pieces': package.pieces,
            'designation_id': order.stockit_id if order else None,
            'designated_on': package.stockit_designated_on.isoformat() if package.stockit_designated_on else None,
        }

    def package_params(self) -> dict:
        package = self.package
        return {
            'length': package.length,
            'width': package.width,
            'height': package.height,
            'weight': str(package.weight) if package.weight is not None else None,
            'description': package.notes,
        }

    def stockit_params(self) -> dict:
        return {'item': self.item_params(), 'package': self.package_params()}

    # -- eligibility -------------------------------------------------------

    def syncable(self, singleton_only: bool = False) -> bool:
        package = self.package
        if not package.inventory_number or package.is_container:
            return False
        return package.is_singleton or not singleton_only

    # -- calls -------------------------------------------------------------

    def _put(self, suffix: str, singleton_only: bool = False) -> dict:
        if not self.syncable(singleton_only=singleton_only):
            return {}
        return StockitClient.safe_call(self.client.put, f'{ITEMS_PATH}/{suffix}', self.stockit_params())

    def create(self) -> dict:
        if not self.syncable():
            return {}
        if self.package.stockit_id:
            return self.update()
        return StockitClient.safe_call(self.client.post, ITEMS_PATH, self.stockit_params())

    def update(self) -> dict:
        if self.syncable() and not self.package.stockit_id:
            return self.create()
        return self._put('update')

    def move(self) -> dict:
        return self._put('move', singleton_only=True)

    def dispatch(self) -> dict:
        return self._put('dispatch', singleton_only=True)

    def undispatch(self) -> dict:
        return self._put('undispatch', singleton_only=True)

    @classmethod
    def delete(cls, inventory_number: str | None, stockit_id: int | None, client: StockitClient | None = None) -> dict:
        """Remove the Stockit item; works from a reference since the package may be gone."""
        if not inventory_number or not stockit_id:
            return {}
        client = client or StockitClient()
        return StockitClient.safe_call(client.put, f'{ITEMS_PATH}/destroy', {'id': stockit_id})
