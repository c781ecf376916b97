"""
Inventory — Ledger

Append-only record of quantity-affecting actions on packages and the
aggregate queries built on it. The ledger never validates: callers
validate through the QuantityAggregator inside the same transaction.
INSERT ONLY — never update or delete InventoryEntry.

@file inventory/ledger.py
"""

import logging
from uuid import UUID

from django.db.models import Sum

from .models import InventoryEntry

logger = logging.getLogger('stockroom')

Action = InventoryEntry.Action

# Actions whose deltas make up the on-hand pool. Designation entries are
# recorded for history but do not move physical stock.
CLAIM_ACTIONS = frozenset({Action.DESIGNATE, Action.UNDESIGNATE})
ON_HAND_ACTIONS = frozenset(set(Action) - CLAIM_ACTIONS)

CONTAINMENT_ACTIONS = frozenset({Action.PACK, Action.UNPACK})
INVENTORY_ACTIONS = frozenset({Action.RECEIVE, Action.UNINVENTORY})

# register_quantity_change actions and the sign they apply.
LOSS_ACTIONS = frozenset({Action.TRASH, Action.PROCESS, Action.RECYCLE, Action.LOSS})
GAIN_ACTIONS = frozenset({Action.GAIN})
QUANTITY_CHANGE_ACTIONS = LOSS_ACTIONS | GAIN_ACTIONS

NEGATIVE_ACTIONS = LOSS_ACTIONS | frozenset({
    Action.UNINVENTORY, Action.PACK, Action.DISPATCH, Action.DESIGNATE,
})


def source_reference(source) -> tuple[str, str]:
    """(source_type, source_id) for a model instance, or blanks."""
    if source is None:
        return '', ''
    return type(source).__name__, str(source.pk)


class LedgerService:
    """Writes and sums ledger entries."""

    @staticmethod
    def record(
        *,
        package,
        action: str,
        quantity: int,
        location=None,
        source=None,
        actor=None,
        description: str = '',
    ) -> InventoryEntry:
        """
        Append one entry. quantity is given unsigned for actions with a
        fixed direction and signed as-is otherwise (move legs).
        """
        if action in NEGATIVE_ACTIONS:
            quantity = -abs(quantity)
        elif action != Action.MOVE:
            quantity = abs(quantity)

        source_type, source_id = source_reference(source)
        entry = InventoryEntry(
            package=package,
            action=action,
            quantity=quantity,
            location=location,
            source_type=source_type,
            source_id=source_id,
            description=description or '',
            created_by=actor,
        )
        entry.save()
        logger.debug(
            'Ledger %s %+d package=%s location=%s source=%s:%s',
            action, quantity, package.pk, getattr(location, 'pk', None), source_type, source_id,
        )
        return entry

    @staticmethod
    def quantity_delta(
        package_id: UUID,
        actions=None,
        *,
        source=None,
        location=None,
    ) -> int:
        """Sum of deltas for a package, optionally restricted by action / source / location."""
        qs = InventoryEntry.objects.filter(package_id=package_id)
        if actions is not None:
            qs = qs.filter(action__in=list(actions))
        if source is not None:
            source_type, source_id = source_reference(source)
            qs = qs.filter(source_type=source_type, source_id=source_id)
        if location is not None:
            qs = qs.filter(location=location)
        return qs.aggregate(total=Sum('quantity'))['total'] or 0

    @staticmethod
    def on_hand(package_id: UUID) -> int:
        return LedgerService.quantity_delta(package_id, ON_HAND_ACTIONS)

    @staticmethod
    def is_tracked(package) -> bool:
        """True once the package has any ledger history."""
        return InventoryEntry.objects.filter(package=package).exists()

    @staticmethod
    def has_stock_history(package) -> bool:
        """True once any entry has moved physical stock; claim entries do not count."""
        return InventoryEntry.objects.filter(package=package, action__in=list(ON_HAND_ACTIONS)).exists()

    @staticmethod
    def last_uninventoried_quantity(package) -> int | None:
        """Quantity the latest uninventory took out, or None if there was none."""
        entry = (
            InventoryEntry.objects.filter(package=package, action=Action.UNINVENTORY)
            .order_by('-created_at')
            .first()
        )
        return None if entry is None else -entry.quantity

    @staticmethod
    def is_inventorized(package) -> bool:
        """True if the package was received more often than uninventorized."""
        qs = InventoryEntry.objects.filter(package=package)
        receives = qs.filter(action=Action.RECEIVE).count()
        return receives > qs.filter(action=Action.UNINVENTORY).count()

    @staticmethod
    def entries_for(package):
        return InventoryEntry.objects.filter(package=package).select_related('location').order_by('created_at')
