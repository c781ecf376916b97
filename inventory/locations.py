"""
Inventory — Location Allocator

Keeps PackagesLocation rows in step with where a package's on-hand
quantity physically sits. Rows that reach zero are deleted. Checks run
before any row is touched, so a failed call leaves allocations as they
were.

@file inventory/locations.py
"""

import logging

from django.db.models import F, Sum

from core.exceptions import InsufficientLocationQuantity, PackageValidationError

from .models import PackagesLocation

logger = logging.getLogger('stockroom')


class LocationAllocator:

    @staticmethod
    def quantity_at(package, location) -> int:
        if location is None:
            return 0
        row = PackagesLocation.objects.filter(package=package, location=location).first()
        return row.quantity if row else 0

    @staticmethod
    def total_allocated(package) -> int:
        return PackagesLocation.objects.filter(package=package).aggregate(
            total=Sum('quantity'),
        )['total'] or 0

    @staticmethod
    def allocations(package):
        return PackagesLocation.objects.filter(package=package).select_related('location').order_by('created_at')

    @staticmethod
    def allocate(package, location, quantity: int) -> PackagesLocation:
        if quantity <= 0:
            raise PackageValidationError({'quantity': 'Quantity must be positive.'})
        row, created = PackagesLocation.objects.select_for_update().get_or_create(
            package=package, location=location,
            defaults={'quantity': quantity},
        )
        if not created:
            PackagesLocation.objects.filter(pk=row.pk).update(quantity=F('quantity') + quantity)
            row.refresh_from_db(fields=['quantity'])
        return row

    @staticmethod
    def deallocate(package, location, quantity: int) -> None:
        if quantity <= 0:
            raise PackageValidationError({'quantity': 'Quantity must be positive.'})
        row = PackagesLocation.objects.select_for_update().filter(package=package, location=location).first()
        held = row.quantity if row else 0
        if held < quantity:
            raise InsufficientLocationQuantity({
                'location_id': f'Location {location} holds {held}, cannot remove {quantity}.',
            })
        if held == quantity:
            row.delete()
        else:
            row.quantity = held - quantity
            row.save(update_fields=['quantity', 'updated_at'])

    @classmethod
    def move(cls, package, quantity: int, from_location, to_location) -> None:
        """Move quantity between locations. Same source and target leaves rows unchanged."""
        if quantity <= 0:
            raise PackageValidationError({'quantity': 'Quantity must be positive.'})
        held = cls.quantity_at(package, from_location)
        if held < quantity:
            raise InsufficientLocationQuantity({
                'location_id': f'Location {from_location} holds {held}, cannot move {quantity}.',
            })
        if from_location == to_location:
            return
        cls.deallocate(package, from_location, quantity)
        cls.allocate(package, to_location, quantity)

    @staticmethod
    def clear(package) -> int:
        deleted, _ = PackagesLocation.objects.filter(package=package).delete()
        if deleted:
            logger.debug('Cleared %d location rows for package %s', deleted, package.pk)
        return deleted
