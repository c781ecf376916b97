"""
Inventory — Service Layer

Package operations: receive, mark missing, move, designate, undesignate,
dispatch, undispatch, pack / unpack, register quantity change, destroy,
package sets and publishing. Each operation locks the package row, runs
in one transaction (guards, ledger, locations, claims, counters) and
returns an OperationResult. Stockit calls happen after the transaction
through the EventOrchestrator; their errors are reported on the result
and never undo the local change.

@file inventory/services.py
"""

import logging
from dataclasses import dataclass, field
from functools import wraps

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from catalog.models import Location, ProcessingDestination
from core.constants import (
    AUDIT_ACTION_CREATE,
    AUDIT_ACTION_DELETE,
    AUDIT_ACTION_SOFT_DELETE,
    AUDIT_ACTION_STATUS_CHANGE,
    AUDIT_ACTION_UPDATE,
)
from core.exceptions import (
    BadOrMissingField,
    BusinessRuleViolation,
    InventorizedPackageError,
    InvalidOperation,
    PackageValidationError,
    ResourceNotFoundError,
    normalize_errors,
)
from core.services import AuditService, OperationContext
from orders.models import Order
from stockit.item_sync import strip_stockit_prefix

from .containment import ContainmentManager
from .details import build_detail
from .events import EventOrchestrator
from .ledger import GAIN_ACTIONS, LOSS_ACTIONS, QUANTITY_CHANGE_ACTIONS, Action, LedgerService
from .locations import LocationAllocator
from .models import InventoryNumber, OrdersPackage, Package, PackageSet
from .quantities import COUNTER_FIELDS, QuantityAggregator
from .state_machine import CLAIM_MACHINE, PACKAGE_MACHINE
from .sync import SyncAction

logger = logging.getLogger('stockroom')

ClaimState = OrdersPackage.StateChoices


@dataclass
class OperationResult:
    package: Package | None
    entries: list = field(default_factory=list)
    events: list = field(default_factory=list)
    errors: dict = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return not self.errors

    def add_errors(self, errors) -> None:
        for key, messages in normalize_errors(errors).items():
            self.errors.setdefault(key, []).extend(messages)


def operation(fn):
    """Run fn in one transaction, then process the events it collected."""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        with transaction.atomic():
            result = fn(*args, **kwargs)
        return EventOrchestrator.process(result)
    return wrapper


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def _lock(package_id) -> Package:
    try:
        return Package.objects.select_for_update().get(pk=package_id, is_deleted=False)
    except (Package.DoesNotExist, ValueError, DjangoValidationError):
        raise ResourceNotFoundError(detail='Package not found.')


def _lock_pair(first_id, second_id) -> tuple[Package, Package]:
    """Lock two packages in a stable order."""
    locked = {}
    for pk in sorted({str(first_id), str(second_id)}):
        locked[pk] = _lock(pk)
    return locked[str(first_id)], locked[str(second_id)]


def _location(location_id, field_name: str = 'location_id') -> Location:
    if location_id in (None, ''):
        raise BadOrMissingField(field_name)
    try:
        return Location.objects.get(pk=location_id)
    except (Location.DoesNotExist, ValueError, DjangoValidationError):
        raise BadOrMissingField(field_name, f'Location {location_id} does not exist.')


def _optional_location(location_id, field_name: str = 'location_id') -> Location | None:
    if location_id in (None, ''):
        return None
    return _location(location_id, field_name)


def _order(order_id) -> Order:
    if order_id in (None, ''):
        raise BadOrMissingField('order_id')
    try:
        return Order.objects.get(pk=order_id)
    except (Order.DoesNotExist, ValueError, DjangoValidationError):
        raise BadOrMissingField('order_id', f'Order {order_id} does not exist.')


def _open_claim(package, order, *, required: bool = True) -> OrdersPackage | None:
    claim = (
        OrdersPackage.objects.select_for_update()
        .filter(package=package, order=order)
        .exclude(state=ClaimState.CANCELLED)
        .first()
    )
    if claim is None and required:
        raise PackageValidationError({'order_id': f'Package is not designated to order {order.code}.'})
    if claim is not None:
        claim.order = order
    return claim


def _positive(quantity) -> int:
    try:
        quantity = int(quantity)
    except (TypeError, ValueError):
        raise BadOrMissingField('quantity')
    if quantity <= 0:
        raise PackageValidationError({'quantity': 'Quantity must be positive.'})
    return quantity


def _counters(package) -> dict:
    return {name: getattr(package, name) for name in COUNTER_FIELDS}


def _audit(package, ctx: OperationContext, action: str, old: dict, new: dict) -> None:
    AuditService.log(
        actor=ctx.actor,
        action=action,
        model_name='Package',
        object_id=str(package.pk),
        old_values=old,
        new_values=new,
        origin=ctx.origin,
    )


def _leave_set(package) -> None:
    """Take package out of its set; a set left with one member is dissolved."""
    package_set = package.package_set
    if package_set is None:
        return
    package.package_set = None
    package.save(update_fields=['package_set', 'updated_at'])
    remaining = list(package_set.packages.all()[:2])
    if len(remaining) <= 1:
        for member in remaining:
            member.package_set = None
            member.save(update_fields=['package_set', 'updated_at'])
        set_id = package_set.pk
        package_set.delete()
        logger.info('Package set %s dissolved', set_id)


def _refresh_order_mirror(package) -> None:
    """Point package.order at its latest active claim."""
    latest = (
        OrdersPackage.objects.filter(package=package, state__in=OrdersPackage.ACTIVE_STATES)
        .order_by('-updated_at')
        .first()
    )
    package.order_id = latest.order_id if latest else None
    if latest is None:
        package.stockit_designated_on = None
        package.stockit_designated_by = None


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

class PackageOperations:
    """Every mutation of package state and quantities goes through here."""

    @staticmethod
    @operation
    def receive(package_id, *, location_id=None, inventory_number=None, ctx: OperationContext) -> OperationResult:
        """
        Check a package in. Not yet inventorized packages get an inventory
        number, a receive ledger entry for their whole received quantity
        and that quantity allocated at location_id.
        """
        package = _lock(package_id)
        result = OperationResult(package=package)
        inventorized = LedgerService.is_inventorized(package)
        if package.state == Package.StateChoices.RECEIVED and inventorized:
            return result

        location = _optional_location(location_id)
        PACKAGE_MACHINE.check(package, 'mark_received', location=location, inventorized=inventorized)
        old = {'state': package.state, **_counters(package)}

        if not package.inventory_number:
            code = strip_stockit_prefix(inventory_number) if inventory_number else None
            if code:
                if Package.objects.filter(inventory_number=code).exclude(pk=package.pk).exists():
                    raise PackageValidationError({'inventory_number': f'{code} is already in use.'})
                if code.isdigit():
                    InventoryNumber.objects.get_or_create(code=code)
            package.inventory_number = code or InventoryNumber.next_code()

        if not inventorized:
            # A package back from missing gets what left with it, not its original intake.
            returning = LedgerService.last_uninventoried_quantity(package)
            quantity = package.received_quantity if returning is None else returning
            result.entries.append(LedgerService.record(
                package=package, action=Action.RECEIVE, quantity=quantity,
                location=location, actor=ctx.actor,
            ))
            if quantity:
                LocationAllocator.allocate(package, location, quantity)
        if location is not None:
            package.location = location

        PACKAGE_MACHINE.fire(package, 'mark_received', location=location, inventorized=inventorized)
        package.updated_by = ctx.actor
        package.save()
        QuantityAggregator.recompute(package)

        EventOrchestrator.stage(result, package, SyncAction.CREATE, ctx)
        _audit(package, ctx, AUDIT_ACTION_STATUS_CHANGE, old, {'state': package.state, **_counters(package)})
        logger.info('Package %s received (%s) at %s', package.pk, package.inventory_number, location)
        return result

    @staticmethod
    @operation
    def mark_missing(package_id, *, ctx: OperationContext) -> OperationResult:
        """
        Mark a package missing: it leaves the inventory (when it was in),
        loses its locations, publishing, check-in time and set.
        """
        package = _lock(package_id)
        result = OperationResult(package=package)
        PACKAGE_MACHINE.check(package, 'mark_missing', contained=ContainmentManager.is_contained(package))
        old = {'state': package.state, **_counters(package)}

        if LedgerService.is_inventorized(package):
            undispatched = OrdersPackage.objects.filter(
                package=package, state__in=OrdersPackage.ACTIVE_STATES, quantity__gt=F('dispatched_quantity'),
            )
            if undispatched.exists():
                raise PackageValidationError({
                    'orders_packages': 'Package has active designations; undesignate it first.',
                })
            result.entries.append(LedgerService.record(
                package=package, action=Action.UNINVENTORY,
                quantity=LedgerService.on_hand(package.pk), actor=ctx.actor,
            ))

        LocationAllocator.clear(package)
        _leave_set(package)
        PACKAGE_MACHINE.fire(package, 'mark_missing')
        package.updated_by = ctx.actor
        package.save()
        QuantityAggregator.recompute(package)

        EventOrchestrator.stage(result, package, SyncAction.DELETE, ctx)
        if old['state'] != package.state:
            _audit(package, ctx, AUDIT_ACTION_STATUS_CHANGE, old, {'state': package.state, **_counters(package)})
            logger.info('Package %s marked missing', package.pk)
        return result

    @staticmethod
    @operation
    def move(package_id, *, quantity, from_location_id, to_location_id, ctx: OperationContext) -> OperationResult:
        package = _lock(package_id)
        quantity = _positive(quantity)
        source = _location(from_location_id, 'from_location_id')
        target = _location(to_location_id, 'to_location_id')
        result = OperationResult(package=package)

        LocationAllocator.move(package, quantity, source, target)
        result.entries.append(LedgerService.record(
            package=package, action=Action.MOVE, quantity=-quantity, location=source, actor=ctx.actor,
        ))
        result.entries.append(LedgerService.record(
            package=package, action=Action.MOVE, quantity=quantity, location=target, actor=ctx.actor,
        ))

        package.location = target
        package.stockit_moved_on = timezone.localdate()
        package.stockit_moved_by = ctx.actor
        package.updated_by = ctx.actor
        package.save(update_fields=['location', 'stockit_moved_on', 'stockit_moved_by', 'updated_by', 'updated_at'])
        QuantityAggregator.recompute(package)

        EventOrchestrator.stage(result, package, SyncAction.MOVE, ctx, deferred=True)
        logger.info('Moved %d of package %s from %s to %s', quantity, package.pk, source, target)
        return result

    @staticmethod
    @operation
    def designate(package_id, *, quantity=None, order_id, shipping_number=None, ctx: OperationContext) -> OperationResult:
        """
        Claim quantity of a package for an order. quantity is the total
        claimed for that order, so designating again adjusts the claim.
        Singleton packages are claimed whole.
        """
        package = _lock(package_id)
        order = _order(order_id)
        if package.is_singleton and quantity in (None, ''):
            quantity = 1
        quantity = _positive(quantity)
        if package.is_singleton and quantity != 1:
            raise PackageValidationError({'quantity': 'A singleton package is designated as a whole.'})
        result = OperationResult(package=package)
        old = _counters(package)

        claim = _open_claim(package, order, required=False)
        if claim is None:
            claim = (
                OrdersPackage.objects.select_for_update()
                .filter(package=package, order=order, state=ClaimState.CANCELLED)
                .order_by('-updated_at')
                .first()
            ) or OrdersPackage(package=package, order=order, quantity=quantity, created_by=ctx.actor)
            claim.order = order
        current = claim.quantity if claim.state in OrdersPackage.ACTIVE_STATES else 0

        if quantity < claim.dispatched_quantity:
            raise PackageValidationError({
                'quantity': f'{claim.dispatched_quantity} already dispatched for this order.',
            })
        available = QuantityAggregator.compute(package).available
        increase = quantity - current
        if increase > available:
            raise PackageValidationError({'quantity': f'Only {available} of {package} available.'})

        CLAIM_MACHINE.fire(claim, 'designate')
        claim.quantity = quantity
        if shipping_number:
            claim.shipping_number = shipping_number
        claim.updated_by = ctx.actor
        claim.save()

        if increase:
            result.entries.append(LedgerService.record(
                package=package,
                action=Action.DESIGNATE if increase > 0 else Action.UNDESIGNATE,
                quantity=abs(increase), source=order, actor=ctx.actor,
            ))

        package.order = order
        package.stockit_designated_on = timezone.localdate()
        package.stockit_designated_by = ctx.actor
        package.updated_by = ctx.actor
        package.save(update_fields=[
            'order', 'stockit_designated_on', 'stockit_designated_by', 'updated_by', 'updated_at',
        ])
        QuantityAggregator.recompute(package)

        EventOrchestrator.stage(result, package, SyncAction.UPDATE, ctx)
        _audit(package, ctx, AUDIT_ACTION_UPDATE, old, {**_counters(package), 'order': str(order.pk)})
        logger.info('Designated %d of package %s to order %s', quantity, package.pk, order.code)
        return result

    @staticmethod
    @operation
    def undesignate(package_id, *, order_id, ctx: OperationContext) -> OperationResult:
        package = _lock(package_id)
        order = _order(order_id)
        claim = _open_claim(package, order)
        result = OperationResult(package=package)
        old = _counters(package)

        was_active = claim.state in OrdersPackage.ACTIVE_STATES
        CLAIM_MACHINE.fire(claim, 'cancel')
        claim.updated_by = ctx.actor
        claim.save()
        if was_active:
            result.entries.append(LedgerService.record(
                package=package, action=Action.UNDESIGNATE, quantity=claim.quantity,
                source=order, actor=ctx.actor,
            ))

        _refresh_order_mirror(package)
        package.updated_by = ctx.actor
        package.save(update_fields=[
            'order', 'stockit_designated_on', 'stockit_designated_by', 'updated_by', 'updated_at',
        ])
        QuantityAggregator.recompute(package)

        EventOrchestrator.stage(result, package, SyncAction.UPDATE, ctx)
        _audit(package, ctx, AUDIT_ACTION_UPDATE, old, _counters(package))
        logger.info('Undesignated package %s from order %s', package.pk, order.code)
        return result

    @staticmethod
    @operation
    def dispatch(package_id, *, quantity=None, order_id, from_location_id=None, ctx: OperationContext) -> OperationResult:
        """
        Send designated quantity out. Without from_location_id the package's
        only location is used.
        """
        package = _lock(package_id)
        order = _order(order_id)
        claim = _open_claim(package, order)
        quantity = _positive(quantity if quantity is not None else claim.undispatched_quantity or 0)
        if quantity > claim.undispatched_quantity:
            raise PackageValidationError({
                'quantity': f'Only {claim.undispatched_quantity} designated to {order.code} is left to dispatch.',
            })
        location = _optional_location(from_location_id, 'from_location_id')
        if location is None:
            rows = list(LocationAllocator.allocations(package)[:2])
            if len(rows) != 1:
                raise BadOrMissingField('from_location_id')
            location = rows[0].location
        result = OperationResult(package=package)
        old = _counters(package)

        CLAIM_MACHINE.check(claim, 'dispatch')
        LocationAllocator.deallocate(package, location, quantity)
        result.entries.append(LedgerService.record(
            package=package, action=Action.DISPATCH, quantity=quantity,
            location=location, source=order, actor=ctx.actor,
        ))
        claim.dispatched_quantity += quantity
        claim.sent_on = timezone.now()
        if claim.dispatched_quantity == claim.quantity:
            CLAIM_MACHINE.fire(claim, 'dispatch')
        claim.updated_by = ctx.actor
        claim.save()

        if package.is_singleton:
            package.box = None
            package.pallet = None
            package.stockit_sent_on = timezone.localdate()
            package.stockit_sent_by = ctx.actor
            package.updated_by = ctx.actor
            package.save(update_fields=['box', 'pallet', 'stockit_sent_on', 'stockit_sent_by', 'updated_by', 'updated_at'])
            _leave_set(package)
        QuantityAggregator.recompute(package)

        EventOrchestrator.stage(result, package, SyncAction.DISPATCH, ctx)
        _audit(package, ctx, AUDIT_ACTION_UPDATE, old, _counters(package))
        logger.info('Dispatched %d of package %s for order %s', quantity, package.pk, order.code)
        return result

    @staticmethod
    @operation
    def undispatch(package_id, *, quantity=None, order_id, to_location_id=None, ctx: OperationContext) -> OperationResult:
        """
        Bring dispatched quantity back into stock at to_location_id
        (defaults to the package's check-in location).
        """
        package = _lock(package_id)
        order = _order(order_id)
        claim = _open_claim(package, order)
        quantity = _positive(quantity if quantity is not None else claim.dispatched_quantity or 0)
        if quantity > claim.dispatched_quantity:
            raise PackageValidationError({
                'quantity': f'Only {claim.dispatched_quantity} was dispatched for {order.code}.',
            })
        location = _optional_location(to_location_id, 'to_location_id') or package.location
        if location is None:
            raise BadOrMissingField('to_location_id')
        result = OperationResult(package=package)
        old = _counters(package)

        CLAIM_MACHINE.fire(claim, 'undispatch')
        claim.dispatched_quantity -= quantity
        if not claim.dispatched_quantity:
            claim.sent_on = None
        claim.updated_by = ctx.actor
        claim.save()

        result.entries.append(LedgerService.record(
            package=package, action=Action.UNDISPATCH, quantity=quantity,
            location=location, source=order, actor=ctx.actor,
        ))
        LocationAllocator.allocate(package, location, quantity)

        if package.is_singleton:
            package.stockit_sent_on = None
            package.stockit_sent_by = None
            package.updated_by = ctx.actor
            package.save(update_fields=['stockit_sent_on', 'stockit_sent_by', 'updated_by', 'updated_at'])
        QuantityAggregator.recompute(package)

        EventOrchestrator.stage(result, package, SyncAction.UNDISPATCH, ctx)
        _audit(package, ctx, AUDIT_ACTION_UPDATE, old, _counters(package))
        logger.info('Undispatched %d of package %s for order %s', quantity, package.pk, order.code)
        return result

    @staticmethod
    @operation
    def pack(container_id, package_id, *, quantity, location_id, ctx: OperationContext) -> OperationResult:
        container, package = _lock_pair(container_id, package_id)
        quantity = _positive(quantity)
        location = _location(location_id)
        result = OperationResult(package=package)
        result.entries.append(ContainmentManager.pack(container, package, quantity, location, actor=ctx.actor))
        EventOrchestrator.stage(result, package, SyncAction.UPDATE, ctx, deferred=True)
        return result

    @staticmethod
    @operation
    def unpack(container_id, package_id, *, quantity, location_id, ctx: OperationContext) -> OperationResult:
        container, package = _lock_pair(container_id, package_id)
        quantity = _positive(quantity)
        location = _location(location_id)
        result = OperationResult(package=package)
        result.entries.append(ContainmentManager.unpack(container, package, quantity, location, actor=ctx.actor))
        EventOrchestrator.stage(result, package, SyncAction.UPDATE, ctx, deferred=True)
        return result

    @classmethod
    def pack_or_unpack(cls, *, container_id, package_id, quantity, location_id, task, ctx: OperationContext) -> OperationResult:
        """Facade for the add / remove item endpoint: failures come back on the result."""
        handlers = {'pack': cls.pack, 'unpack': cls.unpack}
        try:
            handler = handlers[task]
        except KeyError:
            return OperationResult(package=None, errors={'task': [f'Unknown task {task!r}; use pack or unpack.']})
        try:
            return handler(container_id, package_id, quantity=quantity, location_id=location_id, ctx=ctx)
        except (BusinessRuleViolation, ResourceNotFoundError) as e:
            return OperationResult(package=None, errors=normalize_errors(e.detail))

    @staticmethod
    @operation
    def register_quantity_change(
        package_id,
        *,
        quantity,
        location_id,
        action: str,
        source_id=None,
        description: str = '',
        ctx: OperationContext,
    ) -> OperationResult:
        """
        Trash / process / recycle / lose quantity from a location, or
        register a gain there. process needs a processing destination.
        """
        if action not in QUANTITY_CHANGE_ACTIONS:
            raise PackageValidationError({'action_name': f'{action} is not a quantity change action.'})
        package = _lock(package_id)
        if not LedgerService.is_inventorized(package):
            raise InvalidOperation(detail='Receive the package before registering quantity changes.')
        quantity = _positive(quantity)
        location = _location(location_id)
        source = None
        if action == Action.PROCESS:
            try:
                source = ProcessingDestination.objects.get(pk=source_id)
            except (ProcessingDestination.DoesNotExist, ValueError, TypeError, DjangoValidationError):
                raise BadOrMissingField('processing_destination_id')
        result = OperationResult(package=package)
        old = _counters(package)

        if action in LOSS_ACTIONS:
            available = QuantityAggregator.compute(package).available
            if quantity > available:
                raise PackageValidationError({'quantity': f'Only {available} of {package} available.'})
            LocationAllocator.deallocate(package, location, quantity)
        elif action in GAIN_ACTIONS:
            LocationAllocator.allocate(package, location, quantity)

        result.entries.append(LedgerService.record(
            package=package, action=action, quantity=quantity, location=location,
            source=source, actor=ctx.actor, description=description,
        ))
        QuantityAggregator.recompute(package)

        EventOrchestrator.stage(result, package, SyncAction.UPDATE, ctx, deferred=True)
        _audit(package, ctx, AUDIT_ACTION_UPDATE, old, {**_counters(package), 'action': action})
        logger.info('Registered %s of %d on package %s at %s', action, quantity, package.pk, location)
        return result

    @staticmethod
    @operation
    def destroy(package_id, *, ctx: OperationContext) -> OperationResult:
        """
        Delete a package that is not in the inventory. A package that only
        ever got an inventory number is removed outright (and from Stockit);
        one with ledger history is soft deleted.
        """
        package = _lock(package_id)
        if LedgerService.is_inventorized(package):
            raise InventorizedPackageError()
        if ContainmentManager.is_contained(package):
            raise InvalidOperation(detail='Package is inside a container; unpack it first.')
        if package.is_container and ContainmentManager.total_quantity_in(package):
            raise InvalidOperation(detail='Container still holds packages.')
        if OrdersPackage.objects.filter(package=package, state__in=OrdersPackage.ACTIVE_STATES).exists():
            raise PackageValidationError({'orders_packages': 'Package has active designations.'})

        result = OperationResult(package=package)
        pk = package.pk
        snapshot = AuditService.snapshot(package, fields=['inventory_number', 'state', 'stockit_id'])
        EventOrchestrator.stage(result, package, SyncAction.DELETE, ctx, deferred=True)
        _leave_set(package)

        if package.inventory_number and not LedgerService.is_tracked(package):
            package.delete()
            audit_action = AUDIT_ACTION_DELETE
        else:
            package.soft_delete(user=ctx.actor)
            audit_action = AUDIT_ACTION_SOFT_DELETE
        AuditService.log(
            actor=ctx.actor, action=audit_action, model_name='Package',
            object_id=str(pk), old_values=snapshot, origin=ctx.origin,
        )
        logger.info('Package %s destroyed (%s)', pk, audit_action)
        return result

    @staticmethod
    @transaction.atomic
    def remove_from_set(package_id, *, ctx: OperationContext) -> Package:
        package = _lock(package_id)
        if package.package_set_id is None:
            raise InvalidOperation(detail='Package is not part of a set.')
        old_set = str(package.package_set_id)
        _leave_set(package)
        _audit(package, ctx, AUDIT_ACTION_UPDATE, {'package_set': old_set}, {'package_set': None})
        return package

    @staticmethod
    @transaction.atomic
    def add_to_set(package_ids, *, description: str = '', ctx: OperationContext) -> PackageSet:
        """Group packages of one item into a new set."""
        packages = [_lock(pk) for pk in sorted({str(pk) for pk in package_ids})]
        if len(packages) < 2:
            raise PackageValidationError({'package_ids': 'A set needs at least two packages.'})
        if any(p.package_set_id for p in packages):
            raise PackageValidationError({'package_ids': 'A package already belongs to a set.'})
        package_set = PackageSet.objects.create(
            package_type=packages[0].package_type, description=description, created_by=ctx.actor,
        )
        for package in packages:
            package.package_set = package_set
            package.save(update_fields=['package_set', 'updated_at'])
        return package_set

    @staticmethod
    @transaction.atomic
    def publish(package_id, *, ctx: OperationContext) -> Package:
        package = _lock(package_id)
        if package.state != Package.StateChoices.RECEIVED:
            raise InvalidOperation(detail='Only received packages can be published.')
        if not package.allow_web_publish:
            package.allow_web_publish = True
            package.updated_by = ctx.actor
            package.save(update_fields=['allow_web_publish', 'updated_by', 'updated_at'])
            _audit(package, ctx, AUDIT_ACTION_UPDATE, {'allow_web_publish': False}, {'allow_web_publish': True})
        return package

    @staticmethod
    @transaction.atomic
    def unpublish(package_id, *, ctx: OperationContext) -> Package:
        package = _lock(package_id)
        if package.allow_web_publish:
            package.allow_web_publish = False
            package.updated_by = ctx.actor
            package.save(update_fields=['allow_web_publish', 'updated_by', 'updated_at'])
            _audit(package, ctx, AUDIT_ACTION_UPDATE, {'allow_web_publish': True}, {'allow_web_publish': False})
        return package


class ConsistencyService:

    @staticmethod
    def check_package_quantities() -> dict:
        """
        Report inventorized packages whose cached counters drifted from
        the ledger, and packages holding stock without any location.
        Reports only; fixing is an explicit recompute.
        """
        drifted, unlocated = [], []
        checked = 0
        received = Package.objects.filter(
            is_deleted=False, state=Package.StateChoices.RECEIVED,
        ).only('pk', *COUNTER_FIELDS, 'received_quantity')
        for package in received.iterator():
            if not LedgerService.has_stock_history(package):
                continue
            checked += 1
            drift = QuantityAggregator.drift(package)
            if drift:
                logger.warning('Package %s counters drifted: %s', package.pk, drift)
                drifted.append(str(package.pk))
            if package.on_hand_quantity and not LocationAllocator.total_allocated(package):
                if not ContainmentManager.is_contained(package):
                    logger.warning('Package %s holds %d but has no location', package.pk, package.on_hand_quantity)
                    unlocated.append(str(package.pk))
        return {'checked': checked, 'drifted': drifted, 'unlocated': unlocated}

    @staticmethod
    @transaction.atomic
    def recompute(package_id):
        package = _lock(package_id)
        return QuantityAggregator.recompute(package)


class PackageService:
    """Creating and editing package attributes (no quantities)."""

    EDITABLE_FIELDS = [
        'package_type', 'storage_type', 'donor_condition', 'grade', 'notes', 'case_number',
        'length', 'width', 'height', 'weight', 'pieces', 'saleable', 'item',
    ]

    @staticmethod
    @transaction.atomic
    def create_package(*, ctx: OperationContext, detail: dict | None = None, **attrs) -> Package:
        package = Package(created_by=ctx.actor, **attrs)
        build_detail(package, detail or {})
        package.full_clean(exclude=['inventory_number'])
        package.save()
        AuditService.log(
            actor=ctx.actor,
            action=AUDIT_ACTION_CREATE,
            model_name='Package',
            object_id=str(package.pk),
            new_values=AuditService.snapshot(package, fields=['package_type', 'storage_type', 'received_quantity']),
            origin=ctx.origin,
        )
        return package

    @staticmethod
    @transaction.atomic
    def update_package(package_id, *, ctx: OperationContext, detail: dict | None = None, **attrs) -> Package:
        package = _lock(package_id)
        old = AuditService.snapshot(package, fields=list(attrs) or None)
        for name, value in attrs.items():
            if name not in PackageService.EDITABLE_FIELDS:
                raise PackageValidationError({name: 'This field cannot be changed here.'})
            setattr(package, name, value)
        if detail is not None or 'package_type' in attrs:
            build_detail(package, detail if detail is not None else package.detail_data)
        package.updated_by = ctx.actor
        package.save()
        _audit(package, ctx, AUDIT_ACTION_UPDATE, old, AuditService.snapshot(package, fields=list(attrs) or None))
        return package
