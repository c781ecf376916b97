"""
Inventory — Containment Manager

Packing puts part of a package's quantity inside a Box or Pallet. The
relation is derived from the ledger: pack (-q) and unpack (+q) entries
on the contained package with the container as source. A container's
contents are the per-package net of those entries, negative nets only
(a positive or zero net means nothing is left inside). Containers keep
their own counters untouched.

@file inventory/containment.py
"""

import logging

from django.db.models import Sum

from core.exceptions import InsufficientLocationQuantity, InvalidOperation, PackageValidationError

from .ledger import CONTAINMENT_ACTIONS, Action, LedgerService, source_reference
from .locations import LocationAllocator
from .models import InventoryEntry, Package
from .quantities import QuantityAggregator

logger = logging.getLogger('stockroom')


def _containment_entries():
    return InventoryEntry.objects.filter(action__in=list(CONTAINMENT_ACTIONS), source_type=Package.__name__)


class ContainmentManager:

    # -- queries -----------------------------------------------------------

    @staticmethod
    def contained_quantities(container) -> dict:
        """{package_id: quantity} of everything currently inside container."""
        _, source_id = source_reference(container)
        rows = (
            _containment_entries()
            .filter(source_id=source_id)
            .values('package_id')
            .annotate(total=Sum('quantity'))
            .filter(total__lt=0)
        )
        return {row['package_id']: -row['total'] for row in rows}

    @staticmethod
    def quantity_contained_in(package, container) -> int:
        return -LedgerService.quantity_delta(package.pk, CONTAINMENT_ACTIONS, source=container)

    @classmethod
    def total_quantity_in(cls, container) -> int:
        return sum(cls.contained_quantities(container).values())

    @classmethod
    def packages_contained_in(cls, container):
        return Package.objects.filter(
            pk__in=list(cls.contained_quantities(container)), is_deleted=False,
        ).order_by('-created_at')

    @staticmethod
    def containers_of(package):
        rows = (
            _containment_entries()
            .filter(package=package)
            .values('source_id')
            .annotate(total=Sum('quantity'))
            .filter(total__lt=0)
        )
        return Package.objects.filter(pk__in=[row['source_id'] for row in rows]).order_by('-created_at')

    @classmethod
    def is_contained(cls, package) -> bool:
        return cls.containers_of(package).exists()

    # -- mutations ---------------------------------------------------------

    @classmethod
    def pack(cls, container, package, quantity: int, location, actor=None) -> InventoryEntry:
        """
        Move quantity of package at location into container. The package
        loses it from its on-hand pool and from the location.
        """
        if not container.is_container:
            raise InvalidOperation(detail='Packages can only be added to a Box or a Pallet.')
        if container.pk == package.pk:
            raise InvalidOperation(detail='A package cannot be packed into itself.')
        if cls.quantity_contained_in(container, package) > 0:
            raise InvalidOperation(detail=f'{package} already contains {container}.')
        if quantity <= 0:
            raise PackageValidationError({'quantity': 'Quantity must be positive.'})
        if quantity > package.available_quantity:
            raise PackageValidationError({
                'quantity': f'Only {package.available_quantity} of {package} available to pack.',
            })
        held = LocationAllocator.quantity_at(package, location)
        if quantity > held:
            raise InsufficientLocationQuantity({
                'location_id': f'Location {location} holds {held} of {package}, cannot pack {quantity}.',
            })

        entry = LedgerService.record(
            package=package, action=Action.PACK, quantity=quantity,
            location=location, source=container, actor=actor,
        )
        LocationAllocator.deallocate(package, location, quantity)
        cls._set_parent(package, container)
        QuantityAggregator.recompute(package)
        logger.info('Packed %d of package %s into %s at %s', quantity, package.pk, container.pk, location)
        return entry

    @classmethod
    def unpack(cls, container, package, quantity: int, location, actor=None) -> InventoryEntry:
        """Take quantity of package out of container and put it at location."""
        if quantity <= 0:
            raise PackageValidationError({'quantity': 'Quantity must be positive.'})
        contained = cls.quantity_contained_in(package, container)
        if quantity > contained:
            raise PackageValidationError({
                'quantity': f'{container} only contains {contained} of {package}.',
            })

        entry = LedgerService.record(
            package=package, action=Action.UNPACK, quantity=quantity,
            location=location, source=container, actor=actor,
        )
        LocationAllocator.allocate(package, location, quantity)
        if contained == quantity:
            cls._clear_parent(package, container)
        QuantityAggregator.recompute(package)
        logger.info('Unpacked %d of package %s from %s to %s', quantity, package.pk, container.pk, location)
        return entry

    @staticmethod
    def _set_parent(package, container) -> None:
        field = 'box' if container.is_box else 'pallet'
        if getattr(package, f'{field}_id') != container.pk:
            setattr(package, field, container)
            package.save(update_fields=[field, 'updated_at'])

    @staticmethod
    def _clear_parent(package, container) -> None:
        changed = []
        for field in ('box', 'pallet'):
            if getattr(package, f'{field}_id') == container.pk:
                setattr(package, field, None)
                changed.append(field)
        if changed:
            package.save(update_fields=changed + ['updated_at'])
