"""
Inventory — State Machines

Table-driven state machines for the package lifecycle
(expecting / received / missing) and for order claims
(requested / designated / dispatched / cancelled).

A Transition names its allowed source states, its target, guards that
raise a domain error when the transition must not happen, and before /
after hooks. Machines never save; the calling operation persists the
object inside its own transaction.

@file inventory/state_machine.py
"""

from dataclasses import dataclass, field
from typing import Callable

from django.utils import timezone

from core.exceptions import BadOrMissingField, InvalidOperation, InvalidStateTransition

from .models import OrdersPackage, Package

Hook = Callable[..., None]


@dataclass(frozen=True)
class Transition:
    name: str
    sources: frozenset
    target: str
    guards: tuple[Hook, ...] = field(default_factory=tuple)
    before: tuple[Hook, ...] = field(default_factory=tuple)
    after: tuple[Hook, ...] = field(default_factory=tuple)


class StateMachine:

    def __init__(self, state_field: str, transitions: list[Transition]):
        self.state_field = state_field
        self.transitions = {t.name: t for t in transitions}

    def _get(self, event: str) -> Transition:
        try:
            return self.transitions[event]
        except KeyError:
            raise InvalidOperation(detail=f'Unknown event: {event}.')

    def allowed_events(self, obj) -> list[str]:
        current = getattr(obj, self.state_field)
        return [name for name, t in self.transitions.items() if current in t.sources]

    def can(self, obj, event: str) -> bool:
        return getattr(obj, self.state_field) in self._get(event).sources

    def check(self, obj, event: str, **context) -> Transition:
        """Raise unless event may fire from obj's current state. Runs guards."""
        transition = self._get(event)
        current = getattr(obj, self.state_field)
        if current not in transition.sources:
            raise InvalidStateTransition(
                detail=f'Cannot {event} {type(obj).__name__.lower()} in state {current}.',
            )
        for guard in transition.guards:
            guard(obj, **context)
        return transition

    def fire(self, obj, event: str, **context) -> str:
        """Apply event to obj and return the previous state."""
        transition = self.check(obj, event, **context)
        previous = getattr(obj, self.state_field)
        for hook in transition.before:
            hook(obj, **context)
        setattr(obj, self.state_field, transition.target)
        for hook in transition.after:
            hook(obj, **context)
        return previous


# ---------------------------------------------------------------------------
# Package lifecycle
# ---------------------------------------------------------------------------

def _require_location(package, *, location=None, inventorized=False, **_):
    if location is None and not inventorized:
        raise BadOrMissingField('location_id')


def _stamp_received(package, **_):
    if package.received_at is None:
        package.received_at = timezone.now()


def _not_contained(package, *, contained=False, **_):
    if contained:
        raise InvalidOperation(detail='Package is inside a container; unpack it before marking it missing.')


def _reset_placement(package, **_):
    package.allow_web_publish = False
    package.received_at = None
    package.location = None


_PACKAGE_STATES = frozenset(Package.StateChoices.values)

PACKAGE_MACHINE = StateMachine('state', [
    Transition(
        name='mark_received',
        sources=_PACKAGE_STATES,
        target=Package.StateChoices.RECEIVED,
        guards=(_require_location,),
        after=(_stamp_received,),
    ),
    Transition(
        name='mark_missing',
        sources=_PACKAGE_STATES,
        target=Package.StateChoices.MISSING,
        guards=(_not_contained,),
        after=(_reset_placement,),
    ),
])


# ---------------------------------------------------------------------------
# Order claims
# ---------------------------------------------------------------------------

def _order_accepts_designations(claim, **_):
    if not claim.order.accepts_designations:
        raise InvalidOperation(detail=f'Order {claim.order.code} is {claim.order.status} and cannot be designated to.')


def _order_allows_reversal(claim, **_):
    if claim.order.is_final:
        raise InvalidOperation(detail=f'Order {claim.order.code} is {claim.order.status}; dispatch cannot be reversed.')


def _nothing_dispatched(claim, **_):
    if claim.dispatched_quantity:
        raise InvalidOperation(detail='Claim has dispatched quantity; undispatch it first.')


_S = OrdersPackage.StateChoices

CLAIM_MACHINE = StateMachine('state', [
    Transition(
        name='designate',
        sources=frozenset({_S.REQUESTED, _S.CANCELLED, _S.DESIGNATED}),
        target=_S.DESIGNATED,
        guards=(_order_accepts_designations,),
    ),
    Transition(
        name='dispatch',
        sources=frozenset({_S.DESIGNATED, _S.DISPATCHED}),
        target=_S.DISPATCHED,
        guards=(_order_accepts_designations,),
    ),
    Transition(
        name='undispatch',
        sources=frozenset({_S.DISPATCHED, _S.DESIGNATED}),
        target=_S.DESIGNATED,
        guards=(_order_allows_reversal,),
    ),
    Transition(
        name='cancel',
        sources=frozenset({_S.REQUESTED, _S.DESIGNATED}),
        target=_S.CANCELLED,
        guards=(_nothing_dispatched,),
    ),
])
