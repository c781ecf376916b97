"""
Core — Audit Service & Operation Context

AuditService writes audit log entries from any app. OperationContext is
the explicit actor / origin passed to every inventory operation.

@file core/services.py
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from django.forms.models import model_to_dict

from core.constants import ORIGIN_STOCK_APP, ORIGIN_STOCKIT
from core.models import AuditLog

logger = logging.getLogger('stockroom')


@dataclass(frozen=True)
class OperationContext:
    """Who performs an operation and which system the request came from."""

    actor: Any = None
    origin: str = ORIGIN_STOCK_APP

    @property
    def from_stockit(self) -> bool:
        return self.origin == ORIGIN_STOCKIT

    @property
    def actor_id(self):
        return getattr(self.actor, 'pk', None)


class AuditService:
    """Centralised audit logging for every inventory write."""

    @staticmethod
    def log(
        *,
        actor,
        action: str,
        model_name: str,
        object_id: str,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
        origin: str = '',
    ) -> AuditLog:
        return AuditLog.objects.create(
            actor=actor,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            old_values=old_values,
            new_values=new_values,
            origin=origin,
        )

    @staticmethod
    def snapshot(instance, fields=None) -> dict[str, Any]:
        """
        Serialise a model instance to a plain dict suitable for JSON
        storage. DateTimes are ISO-formatted; UUIDs stringified;
        M2M / querysets reduced to lists of PKs.
        """
        data = model_to_dict(instance, fields=fields)
        cleaned: dict[str, Any] = {}
        for key, value in data.items():
            if value is None:
                cleaned[key] = None
            elif isinstance(value, Decimal):
                cleaned[key] = str(value)
            elif hasattr(value, 'isoformat'):
                cleaned[key] = value.isoformat()
            elif hasattr(value, 'hex'):
                cleaned[key] = str(value)
            elif hasattr(value, 'all'):
                cleaned[key] = [str(obj.pk) for obj in value.all()]
            elif isinstance(value, (list, tuple)):
                cleaned[key] = [str(v.pk) if hasattr(v, 'pk') else v for v in value]
            else:
                cleaned[key] = value
        return cleaned
