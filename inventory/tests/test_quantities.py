"""
Tests — QuantityAggregator: derivation, validation, drift; LocationAllocator.

@file inventory/tests/test_quantities.py
"""

import pytest

from core.exceptions import InsufficientLocationQuantity, NegativeQuantityError, PackageValidationError
from inventory.ledger import Action, LedgerService
from inventory.locations import LocationAllocator
from inventory.models import OrdersPackage, Package, PackagesLocation
from inventory.quantities import Quantities, QuantityAggregator
from tests.factories import LocationFactory, OrderFactory, PackageFactory


pytestmark = pytest.mark.django_db


def _claim(package, quantity, dispatched=0, state=OrdersPackage.StateChoices.DESIGNATED):
    return OrdersPackage.objects.create(
        package=package, order=OrderFactory(), quantity=quantity,
        dispatched_quantity=dispatched, state=state,
    )


class TestCompute:
    def test_untracked_package_uses_received_quantity(self):
        package = PackageFactory(received_quantity=5)
        _claim(package, 3, dispatched=1)
        q = QuantityAggregator.compute(package)
        assert q == Quantities(on_hand=4, available=2, designated=2, dispatched=1)

    def test_designation_entries_keep_received_quantity(self):
        package = PackageFactory(received_quantity=5)
        LedgerService.record(package=package, action=Action.DESIGNATE, quantity=3, source=OrderFactory())
        _claim(package, 3)
        q = QuantityAggregator.compute(package)
        assert q == Quantities(on_hand=5, available=2, designated=3, dispatched=0)

    def test_tracked_package_uses_ledger(self):
        package = PackageFactory(received_quantity=5)
        LedgerService.record(package=package, action=Action.RECEIVE, quantity=5)
        LedgerService.record(package=package, action=Action.TRASH, quantity=1)
        _claim(package, 2)
        q = QuantityAggregator.compute(package)
        assert q.on_hand == 4
        assert q.designated == 2
        assert q.available == 2

    def test_cancelled_claims_are_ignored(self):
        package = PackageFactory(received_quantity=5)
        _claim(package, 3, state=OrdersPackage.StateChoices.CANCELLED)
        assert QuantityAggregator.compute(package).available == 5

    def test_available_plus_designated_is_on_hand(self):
        package = PackageFactory(received_quantity=9)
        LedgerService.record(package=package, action=Action.RECEIVE, quantity=9)
        _claim(package, 4, dispatched=2)
        q = QuantityAggregator.compute(package)
        assert q.available + q.designated == q.on_hand


class TestValidateAndRecompute:
    def test_negative_counter_raises(self):
        package = PackageFactory()
        with pytest.raises(NegativeQuantityError) as exc:
            QuantityAggregator.validate(package, Quantities(on_hand=1, available=-1, designated=2, dispatched=0))
        assert 'available_quantity' in exc.value.errors

    def test_located_above_on_hand_raises(self):
        package = PackageFactory(received_quantity=2)
        LedgerService.record(package=package, action=Action.RECEIVE, quantity=2)
        PackagesLocation.objects.create(package=package, location=LocationFactory(), quantity=3)
        with pytest.raises(PackageValidationError) as exc:
            QuantityAggregator.recompute(package)
        assert 'packages_locations' in exc.value.errors

    def test_recompute_persists_counters(self):
        package = PackageFactory(received_quantity=5)
        LedgerService.record(package=package, action=Action.RECEIVE, quantity=5)
        QuantityAggregator.recompute(package)
        package = Package.objects.get(pk=package.pk)
        assert package.on_hand_quantity == 5
        assert package.available_quantity == 5

    def test_drift_reports_cached_and_derived(self):
        package = PackageFactory(received_quantity=5)
        LedgerService.record(package=package, action=Action.RECEIVE, quantity=5)
        QuantityAggregator.recompute(package)
        Package.objects.filter(pk=package.pk).update(on_hand_quantity=7, available_quantity=7)
        package.refresh_from_db()
        assert QuantityAggregator.drift(package) == {
            'on_hand_quantity': (7, 5),
            'available_quantity': (7, 5),
        }


class TestLocationAllocator:
    def test_allocate_accumulates(self):
        package = PackageFactory(received_quantity=5)
        location = LocationFactory()
        LocationAllocator.allocate(package, location, 2)
        row = LocationAllocator.allocate(package, location, 3)
        assert row.quantity == 5
        assert LocationAllocator.total_allocated(package) == 5

    def test_deallocate_to_zero_deletes_row(self):
        package = PackageFactory(received_quantity=5)
        location = LocationFactory()
        LocationAllocator.allocate(package, location, 2)
        LocationAllocator.deallocate(package, location, 2)
        assert not PackagesLocation.objects.filter(package=package).exists()

    def test_deallocate_more_than_held(self):
        package = PackageFactory(received_quantity=5)
        location = LocationFactory()
        LocationAllocator.allocate(package, location, 2)
        with pytest.raises(InsufficientLocationQuantity) as exc:
            LocationAllocator.deallocate(package, location, 3)
        assert 'location_id' in exc.value.errors
        assert LocationAllocator.quantity_at(package, location) == 2

    def test_move_more_than_held_leaves_rows_untouched(self):
        package = PackageFactory(received_quantity=5)
        source, target = LocationFactory(), LocationFactory()
        LocationAllocator.allocate(package, source, 5)
        with pytest.raises(InsufficientLocationQuantity):
            LocationAllocator.move(package, 10, source, target)
        assert LocationAllocator.quantity_at(package, source) == 5
        assert LocationAllocator.quantity_at(package, target) == 0

    def test_move_to_same_location_is_a_no_op(self):
        package = PackageFactory(received_quantity=5)
        location = LocationFactory()
        LocationAllocator.allocate(package, location, 5)
        LocationAllocator.move(package, 3, location, location)
        assert LocationAllocator.quantity_at(package, location) == 5

    def test_non_positive_quantity_rejected(self):
        package = PackageFactory()
        with pytest.raises(PackageValidationError):
            LocationAllocator.allocate(package, LocationFactory(), 0)
