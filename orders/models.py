"""
Orders — Models

An Order is what package quantities get designated to and dispatched
for. Only its status matters to inventory: closed and cancelled orders
accept no new designations, dispatches or reversals.

@file orders/models.py
"""

from django.db import models
from django.utils.translation import gettext_lazy as _

from core.models import BaseModel


class Order(BaseModel):

    class StatusChoices(models.TextChoices):
        DRAFT = 'draft', _('Draft')
        SUBMITTED = 'submitted', _('Submitted')
        PROCESSING = 'processing', _('Processing')
        AWAITING_DISPATCH = 'awaiting_dispatch', _('Awaiting dispatch')
        DISPATCHING = 'dispatching', _('Dispatching')
        CLOSED = 'closed', _('Closed')
        CANCELLED = 'cancelled', _('Cancelled')

    FINAL_STATUSES = (StatusChoices.CLOSED, StatusChoices.CANCELLED)

    code = models.CharField(_('code'), max_length=30, unique=True)
    status = models.CharField(
        _('status'), max_length=20,
        choices=StatusChoices.choices,
        default=StatusChoices.DRAFT,
        db_index=True,
    )
    description = models.TextField(_('description'), blank=True)
    stockit_id = models.IntegerField(_('Stockit ID'), null=True, blank=True, db_index=True)

    class Meta:
        verbose_name = _('order')
        verbose_name_plural = _('orders')
        ordering = ['-created_at']

    def __str__(self):
        return f'{self.code} ({self.status})'

    @property
    def is_final(self) -> bool:
        return self.status in self.FINAL_STATUSES

    @property
    def accepts_designations(self) -> bool:
        return not self.is_final
