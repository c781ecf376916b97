"""
Inventory — Models

Packages and everything that tracks their quantities:

- Package: a physical stock unit or multi-unit lot with four cached
  counters (on hand, available, designated, dispatched).
- PackagesLocation: how the on-hand quantity is spread over locations.
- OrdersPackage: a claim on some quantity of a package for an order.
- InventoryEntry: the append-only ledger of quantity-affecting actions.
  Records are INSERT ONLY — never update or delete.
- StockitSyncJob: outbox of deferred Stockit calls, processed in order
  per package.

@file inventory/models.py
"""

import uuid

from django.conf import settings
from django.db import models
from django.db.models.functions import Cast
from django.utils.translation import gettext_lazy as _

from catalog.models import StorageType
from core.models import BaseModel, SoftDeleteModel


class Item(SoftDeleteModel):
    """A donated item; owns one or more packages holding its quantity."""

    class StateChoices(models.TextChoices):
        DRAFT = 'draft', _('Draft')
        SUBMITTED = 'submitted', _('Submitted')
        ACCEPTED = 'accepted', _('Accepted')
        REJECTED = 'rejected', _('Rejected')

    donor_description = models.TextField(_('donor description'), blank=True)
    package_type = models.ForeignKey(
        'catalog.PackageType', null=True, blank=True,
        on_delete=models.PROTECT, related_name='items',
    )
    donor_condition = models.ForeignKey(
        'catalog.DonorCondition', null=True, blank=True,
        on_delete=models.PROTECT, related_name='items',
    )
    state = models.CharField(
        _('state'), max_length=12,
        choices=StateChoices.choices, default=StateChoices.SUBMITTED,
    )
    saleable = models.BooleanField(_('saleable'), default=False)

    class Meta:
        verbose_name = _('item')
        verbose_name_plural = _('items')
        ordering = ['-created_at']

    def __str__(self):
        return self.donor_description[:40] or str(self.pk)


class PackageSet(BaseModel):
    """Packages that belong together (e.g. a table and its chairs)."""

    package_type = models.ForeignKey(
        'catalog.PackageType', null=True, blank=True,
        on_delete=models.SET_NULL, related_name='+',
    )
    description = models.CharField(_('description'), max_length=255, blank=True)

    class Meta:
        verbose_name = _('package set')
        verbose_name_plural = _('package sets')

    def __str__(self):
        return self.description or str(self.pk)


class Package(SoftDeleteModel):

    class StateChoices(models.TextChoices):
        EXPECTING = 'expecting', _('Expecting')
        MISSING = 'missing', _('Missing')
        RECEIVED = 'received', _('Received')

    class GradeChoices(models.TextChoices):
        A = 'A', 'A'
        B = 'B', 'B'
        C = 'C', 'C'
        D = 'D', 'D'

    item = models.ForeignKey(
        Item, null=True, blank=True,
        on_delete=models.CASCADE, related_name='packages',
    )
    package_type = models.ForeignKey(
        'catalog.PackageType', on_delete=models.PROTECT, related_name='packages',
    )
    storage_type = models.ForeignKey(
        'catalog.StorageType', null=True, blank=True,
        on_delete=models.PROTECT, related_name='packages',
    )
    donor_condition = models.ForeignKey(
        'catalog.DonorCondition', null=True, blank=True,
        on_delete=models.PROTECT, related_name='packages',
    )
    grade = models.CharField(_('grade'), max_length=1, choices=GradeChoices.choices, default=GradeChoices.B)
    notes = models.TextField(_('notes'), blank=True)
    case_number = models.CharField(_('case number'), max_length=60, blank=True)
    inventory_number = models.CharField(
        _('inventory number'), max_length=36,
        null=True, blank=True, unique=True,
    )

    length = models.PositiveIntegerField(_('length'), null=True, blank=True)
    width = models.PositiveIntegerField(_('width'), null=True, blank=True)
    height = models.PositiveIntegerField(_('height'), null=True, blank=True)
    weight = models.DecimalField(_('weight'), max_digits=10, decimal_places=2, null=True, blank=True)
    pieces = models.PositiveIntegerField(_('pieces'), null=True, blank=True)

    received_quantity = models.PositiveIntegerField(_('received quantity'), default=1)
    on_hand_quantity = models.PositiveIntegerField(_('on hand quantity'), default=0)
    available_quantity = models.PositiveIntegerField(_('available quantity'), default=0)
    designated_quantity = models.PositiveIntegerField(_('designated quantity'), default=0)
    dispatched_quantity = models.PositiveIntegerField(_('dispatched quantity'), default=0)

    state = models.CharField(
        _('state'), max_length=10,
        choices=StateChoices.choices, default=StateChoices.EXPECTING,
        db_index=True,
    )
    received_at = models.DateTimeField(_('received at'), null=True, blank=True)
    location = models.ForeignKey(
        'catalog.Location', null=True, blank=True,
        on_delete=models.SET_NULL, related_name='+',
        help_text=_('Location chosen at check-in'),
    )

    package_set = models.ForeignKey(
        PackageSet, null=True, blank=True,
        on_delete=models.SET_NULL, related_name='packages',
    )
    box = models.ForeignKey(
        'self', null=True, blank=True,
        on_delete=models.SET_NULL, related_name='boxed_packages',
    )
    pallet = models.ForeignKey(
        'self', null=True, blank=True,
        on_delete=models.SET_NULL, related_name='palleted_packages',
    )
    order = models.ForeignKey(
        'orders.Order', null=True, blank=True,
        on_delete=models.SET_NULL, related_name='designated_packages',
        help_text=_('Current designation of a singleton package'),
    )

    allow_web_publish = models.BooleanField(_('published'), default=False)
    saleable = models.BooleanField(_('saleable'), default=False)

    detail_type = models.CharField(_('detail type'), max_length=24, blank=True)
    detail_data = models.JSONField(_('detail'), default=dict, blank=True)

    stockit_id = models.IntegerField(_('Stockit ID'), null=True, blank=True, db_index=True)
    stockit_designated_on = models.DateField(null=True, blank=True)
    stockit_designated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name='+',
    )
    stockit_sent_on = models.DateField(null=True, blank=True)
    stockit_sent_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name='+',
    )
    stockit_moved_on = models.DateField(null=True, blank=True)
    stockit_moved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name='+',
    )

    class Meta:
        verbose_name = _('package')
        verbose_name_plural = _('packages')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['state', 'is_deleted']),
            models.Index(fields=['inventory_number']),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(received_quantity__gt=0),
                name='package_positive_received_quantity',
            ),
            models.CheckConstraint(
                condition=models.Q(available_quantity__lte=models.F('on_hand_quantity')),
                name='package_available_lte_on_hand',
            ),
        ]

    def __str__(self):
        return self.inventory_number or f'Package {self.pk}'

    @property
    def is_singleton(self) -> bool:
        return self.received_quantity == 1

    @property
    def storage_type_name(self) -> str | None:
        return self.storage_type.name if self.storage_type_id else None

    @property
    def is_box(self) -> bool:
        return self.storage_type_name == StorageType.NameChoices.BOX

    @property
    def is_container(self) -> bool:
        return bool(self.storage_type_id) and self.storage_type.is_container

    @property
    def is_published(self) -> bool:
        return bool(self.allow_web_publish)

    @property
    def donor_condition_name(self) -> str | None:
        if self.donor_condition_id:
            return self.donor_condition.name
        if self.item_id and self.item.donor_condition_id:
            return self.item.donor_condition.name
        return None

    @property
    def detail(self):
        from .details import load_detail

        return load_detail(self.detail_type, self.detail_data)


class PackagesLocation(BaseModel):
    """Quantity of a package held at one location."""

    package = models.ForeignKey(Package, on_delete=models.CASCADE, related_name='packages_locations')
    location = models.ForeignKey('catalog.Location', on_delete=models.PROTECT, related_name='packages_locations')
    quantity = models.PositiveIntegerField(_('quantity'))

    class Meta:
        verbose_name = _('package location')
        verbose_name_plural = _('package locations')
        constraints = [
            models.UniqueConstraint(fields=['package', 'location'], name='unique_package_location'),
            models.CheckConstraint(condition=models.Q(quantity__gt=0), name='packages_location_positive_quantity'),
        ]

    def __str__(self):
        return f'{self.package} @ {self.location} × {self.quantity}'


class OrdersPackage(BaseModel):
    """
    A claim on part of a package on behalf of an order.

    quantity is the total claimed; dispatched_quantity how much of it has
    physically left. The claim stays DESIGNATED until fully dispatched.
    """

    class StateChoices(models.TextChoices):
        REQUESTED = 'requested', _('Requested')
        DESIGNATED = 'designated', _('Designated')
        DISPATCHED = 'dispatched', _('Dispatched')
        CANCELLED = 'cancelled', _('Cancelled')

    ACTIVE_STATES = (StateChoices.DESIGNATED, StateChoices.DISPATCHED)

    package = models.ForeignKey(Package, on_delete=models.CASCADE, related_name='orders_packages')
    order = models.ForeignKey('orders.Order', on_delete=models.PROTECT, related_name='orders_packages')
    quantity = models.PositiveIntegerField(_('quantity'))
    dispatched_quantity = models.PositiveIntegerField(_('dispatched quantity'), default=0)
    state = models.CharField(
        _('state'), max_length=12,
        choices=StateChoices.choices, default=StateChoices.REQUESTED,
        db_index=True,
    )
    shipping_number = models.PositiveIntegerField(_('shipping number'), null=True, blank=True)
    sent_on = models.DateTimeField(_('sent on'), null=True, blank=True)

    class Meta:
        verbose_name = _('orders package')
        verbose_name_plural = _('orders packages')
        ordering = ['created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['package', 'order'],
                condition=~models.Q(state='cancelled'),
                name='unique_open_claim_per_order',
            ),
            models.CheckConstraint(
                condition=models.Q(dispatched_quantity__lte=models.F('quantity')),
                name='orders_package_dispatched_lte_quantity',
            ),
        ]

    def __str__(self):
        return f'{self.package} → {self.order} × {self.quantity} ({self.state})'

    @property
    def undispatched_quantity(self) -> int:
        return self.quantity - self.dispatched_quantity


class InventoryEntry(models.Model):
    """
    A single immutable ledger entry (insert only).

    quantity is a signed delta: positive when stock enters the package's
    on-hand pool, negative when it leaves. source_type + source_id name
    what caused it (container package, processing destination, order).
    """

    class Action(models.TextChoices):
        RECEIVE = 'receive', _('Receive')
        UNINVENTORY = 'uninventory', _('Uninventory')
        GAIN = 'gain', _('Gain')
        MOVE = 'move', _('Move')
        PACK = 'pack', _('Pack')
        UNPACK = 'unpack', _('Unpack')
        TRASH = 'trash', _('Trash')
        PROCESS = 'process', _('Process')
        RECYCLE = 'recycle', _('Recycle')
        LOSS = 'loss', _('Loss')
        DESIGNATE = 'designate', _('Designate')
        UNDESIGNATE = 'undesignate', _('Undesignate')
        DISPATCH = 'dispatch', _('Dispatch')
        UNDISPATCH = 'undispatch', _('Undispatch')

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    package = models.ForeignKey(
        Package, on_delete=models.PROTECT, related_name='inventory_entries',
    )
    action = models.CharField(_('action'), max_length=12, choices=Action.choices, db_index=True)
    quantity = models.IntegerField(_('quantity delta'))
    location = models.ForeignKey(
        'catalog.Location', null=True, blank=True,
        on_delete=models.PROTECT, related_name='inventory_entries',
    )
    source_type = models.CharField(_('source type'), max_length=60, blank=True)
    source_id = models.CharField(_('source ID'), max_length=40, blank=True, db_index=True)
    description = models.CharField(_('description'), max_length=255, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='+',
        verbose_name=_('created by'),
    )
    created_at = models.DateTimeField(_('created at'), auto_now_add=True, db_index=True)
    # No updated_at — immutable record.

    class Meta:
        verbose_name = _('inventory entry')
        verbose_name_plural = _('inventory entries')
        ordering = ['created_at']
        indexes = [
            models.Index(fields=['package', 'action'], name='inventory_package_action_idx'),
            models.Index(fields=['source_type', 'source_id', 'action'], name='inventory_source_idx'),
        ]

    def __str__(self):
        return f'{self.action} {self.quantity:+d} package={self.package_id} location={self.location_id}'

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise NotImplementedError('InventoryEntry is insert-only; updates are not allowed.')
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise NotImplementedError('InventoryEntry records cannot be deleted.')


class InventoryNumber(models.Model):
    """Registry of issued numeric inventory numbers."""

    code = models.CharField(_('code'), max_length=36, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _('inventory number')
        verbose_name_plural = _('inventory numbers')

    def __str__(self):
        return self.code

    @classmethod
    def next_code(cls) -> str:
        """Issue and register the next numeric code, zero padded."""
        padding = getattr(settings, 'INVENTORY_NUMBER_PADDING', 6)
        highest = (
            cls.objects.filter(code__regex=r'^[0-9]+$')
            .annotate(number=Cast('code', models.BigIntegerField()))
            .aggregate(top=models.Max('number'))['top']
        ) or 0
        code = str(highest + 1).zfill(padding)
        cls.objects.create(code=code)
        return code


class StockitSyncJob(models.Model):
    """
    A queued Stockit call. Jobs for a package run in id order.
    package_ref keeps the package id once a hard delete has nulled package.
    """

    class Action(models.TextChoices):
        CREATE = 'create', _('Create')
        UPDATE = 'update', _('Update')
        MOVE = 'move', _('Move')
        DISPATCH = 'dispatch', _('Dispatch')
        UNDISPATCH = 'undispatch', _('Undispatch')
        DELETE = 'delete', _('Delete')

    class StatusChoices(models.TextChoices):
        PENDING = 'pending', _('Pending')
        DONE = 'done', _('Done')
        FAILED = 'failed', _('Failed')

    id = models.BigAutoField(primary_key=True)
    package = models.ForeignKey(
        Package, null=True, blank=True,
        on_delete=models.SET_NULL, related_name='stockit_sync_jobs',
    )
    package_ref = models.CharField(max_length=40, db_index=True)
    action = models.CharField(max_length=12, choices=Action.choices)
    payload = models.JSONField(default=dict, blank=True)
    status = models.CharField(
        max_length=8, choices=StatusChoices.choices,
        default=StatusChoices.PENDING, db_index=True,
    )
    errors = models.JSONField(default=dict, blank=True)
    attempts = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    processed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = _('Stockit sync job')
        verbose_name_plural = _('Stockit sync jobs')
        ordering = ['id']

    def __str__(self):
        return f'{self.action} package={self.package_ref} ({self.status})'
