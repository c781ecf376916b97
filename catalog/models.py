"""
Catalog — Models

Reference data used by inventory: package types, donor conditions,
storage types (Package / Box / Pallet), physical locations and
processing destinations.

@file catalog/models.py
"""

from django.db import models
from django.utils.translation import gettext_lazy as _

from core.models import BaseModel


class DetailType(models.TextChoices):
    """Type-specific subform a package of this type carries."""
    COMPUTER = 'computer', _('Computer')
    COMPUTER_ACCESSORY = 'computer_accessory', _('Computer accessory')
    ELECTRICAL = 'electrical', _('Electrical')
    MEDICAL = 'medical', _('Medical')


class PackageType(BaseModel):
    code = models.CharField(_('code'), max_length=20, unique=True)
    name = models.CharField(_('name'), max_length=255)
    stockit_id = models.IntegerField(_('Stockit ID'), null=True, blank=True)
    detail_type = models.CharField(
        _('detail type'), max_length=24, blank=True,
        choices=DetailType.choices,
    )

    class Meta:
        verbose_name = _('package type')
        verbose_name_plural = _('package types')
        ordering = ['code']

    def __str__(self):
        return f'{self.code} {self.name}'


class DonorCondition(BaseModel):
    name = models.CharField(_('name'), max_length=60, unique=True)
    stockit_code = models.CharField(
        _('Stockit code'), max_length=1, blank=True,
        help_text=_('Single letter condition code used by Stockit'),
    )

    class Meta:
        verbose_name = _('donor condition')
        verbose_name_plural = _('donor conditions')
        ordering = ['name']

    def __str__(self):
        return self.name


class StorageType(BaseModel):

    class NameChoices(models.TextChoices):
        PACKAGE = 'Package', _('Package')
        BOX = 'Box', _('Box')
        PALLET = 'Pallet', _('Pallet')

    name = models.CharField(_('name'), max_length=20, unique=True, choices=NameChoices.choices)
    max_unit_quantity = models.PositiveIntegerField(_('max unit quantity'), null=True, blank=True)

    class Meta:
        verbose_name = _('storage type')
        verbose_name_plural = _('storage types')

    def __str__(self):
        return self.name

    @property
    def is_container(self) -> bool:
        return self.name in (self.NameChoices.BOX, self.NameChoices.PALLET)


class Location(BaseModel):
    """
    A physical place stock can sit in (building + area). DISPATCH and
    MULTIPLE are pseudo-locations only used when mirroring to Stockit.
    """

    class KindChoices(models.TextChoices):
        STANDARD = 'STANDARD', _('Standard')
        DISPATCH = 'DISPATCH', _('Dispatched')
        MULTIPLE = 'MULTIPLE', _('Multiple')

    building = models.CharField(_('building'), max_length=60)
    area = models.CharField(_('area'), max_length=60, blank=True)
    stockit_id = models.IntegerField(_('Stockit ID'), null=True, blank=True)
    kind = models.CharField(
        _('kind'), max_length=10,
        choices=KindChoices.choices, default=KindChoices.STANDARD,
        db_index=True,
    )

    class Meta:
        verbose_name = _('location')
        verbose_name_plural = _('locations')
        ordering = ['building', 'area']
        constraints = [
            models.UniqueConstraint(fields=['building', 'area'], name='unique_location_building_area'),
        ]

    def __str__(self):
        return f'{self.building}{self.area}'

    @classmethod
    def dispatch_location(cls):
        return cls.objects.filter(kind=cls.KindChoices.DISPATCH).first()

    @classmethod
    def multiple_location(cls):
        return cls.objects.filter(kind=cls.KindChoices.MULTIPLE).first()


class ProcessingDestination(BaseModel):
    """Where processed stock goes (recycler, partner charity, ...)."""

    name = models.CharField(_('name'), max_length=120, unique=True)

    class Meta:
        verbose_name = _('processing destination')
        verbose_name_plural = _('processing destinations')
        ordering = ['name']

    def __str__(self):
        return self.name
