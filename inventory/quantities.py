"""
Inventory — Quantity Aggregator

Derives the four package counters from the ledger and the order claims,
validates them and writes them back to the package row. Must run inside
the same transaction (and under the same package lock) as the ledger
write it responds to.

@file inventory/quantities.py
"""

import logging
from dataclasses import asdict, dataclass

from django.db.models import Sum

from core.exceptions import NegativeQuantityError, PackageValidationError

from .ledger import LedgerService
from .models import OrdersPackage, PackagesLocation

logger = logging.getLogger('stockroom')

COUNTER_FIELDS = ['on_hand_quantity', 'available_quantity', 'designated_quantity', 'dispatched_quantity']


@dataclass(frozen=True)
class Quantities:
    on_hand: int
    available: int
    designated: int
    dispatched: int

    def as_fields(self) -> dict[str, int]:
        return {f'{name}_quantity': value for name, value in asdict(self).items()}


class QuantityAggregator:

    @staticmethod
    def compute(package) -> Quantities:
        """
        on_hand    = ledger on-hand sum once stock has moved, or
                     received - dispatched before that
        designated = claimed but not yet dispatched
        dispatched = dispatched part of active claims
        available  = on_hand - designated
        """
        claims = OrdersPackage.objects.filter(
            package=package, state__in=OrdersPackage.ACTIVE_STATES,
        ).aggregate(claimed=Sum('quantity'), sent=Sum('dispatched_quantity'))
        dispatched = claims['sent'] or 0
        designated = (claims['claimed'] or 0) - dispatched

        if LedgerService.has_stock_history(package):
            on_hand = LedgerService.on_hand(package.pk)
        else:
            on_hand = package.received_quantity - dispatched

        return Quantities(
            on_hand=on_hand,
            available=on_hand - designated,
            designated=designated,
            dispatched=dispatched,
        )

    @staticmethod
    def validate(package, quantities: Quantities) -> None:
        negatives = {
            field: f'{field} cannot be negative (got {value}).'
            for field, value in quantities.as_fields().items()
            if value < 0
        }
        if negatives:
            logger.warning('Negative quantity on package %s: %s', package.pk, negatives)
            raise NegativeQuantityError(negatives)

        located = PackagesLocation.objects.filter(package=package).aggregate(
            total=Sum('quantity'),
        )['total'] or 0
        if located > quantities.on_hand:
            raise PackageValidationError({
                'packages_locations': (
                    f'Located quantity {located} exceeds on hand quantity {quantities.on_hand}.'
                ),
            })

    @classmethod
    def recompute(cls, package) -> Quantities:
        """Compute, validate and persist the counters of package."""
        quantities = cls.compute(package)
        cls.validate(package, quantities)
        for field, value in quantities.as_fields().items():
            setattr(package, field, value)
        package.save(update_fields=COUNTER_FIELDS + ['updated_at'])
        return quantities

    @classmethod
    def drift(cls, package) -> dict[str, tuple[int, int]]:
        """Counters whose cached value differs from the derived one: {field: (cached, derived)}."""
        derived = cls.compute(package).as_fields()
        return {
            field: (getattr(package, field), value)
            for field, value in derived.items()
            if getattr(package, field) != value
        }
