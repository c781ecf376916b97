"""
Orders — Signals

Audit logging for order creation and status changes. The status gates
what inventory may do with an order's claims, so every change is kept.

@file orders/signals.py
"""

import logging

from django.db.models.signals import post_save, pre_save
from django.dispatch import receiver

from core.constants import AUDIT_ACTION_CREATE, AUDIT_ACTION_STATUS_CHANGE
from core.services import AuditService

from .models import Order

logger = logging.getLogger('stockroom')

_previous_status: dict = {}


@receiver(pre_save, sender=Order)
def order_pre_save(sender, instance, **kwargs):
    if instance._state.adding:
        return
    old = Order.objects.filter(pk=instance.pk).values_list('status', flat=True).first()
    if old is not None:
        _previous_status[str(instance.pk)] = old


@receiver(post_save, sender=Order)
def order_post_save(sender, instance, created, **kwargs):
    old = _previous_status.pop(str(instance.pk), None)
    if not created and old == instance.status:
        return
    AuditService.log(
        actor=instance.updated_by if not created else instance.created_by,
        action=AUDIT_ACTION_CREATE if created else AUDIT_ACTION_STATUS_CHANGE,
        model_name='Order',
        object_id=str(instance.pk),
        old_values=None if created else {'status': old},
        new_values={'status': instance.status, 'code': instance.code},
    )
    if not created:
        logger.info('Order %s status %s -> %s', instance.code, old, instance.status)
