"""
Catalog — Django Admin Configuration

@file catalog/admin.py
"""

from django.contrib import admin

from .models import DonorCondition, Location, PackageType, ProcessingDestination, StorageType


@admin.register(PackageType)
class PackageTypeAdmin(admin.ModelAdmin):
    list_display = ('code', 'name', 'detail_type', 'stockit_id')
    search_fields = ('code', 'name')
    list_filter = ('detail_type',)


@admin.register(DonorCondition)
class DonorConditionAdmin(admin.ModelAdmin):
    list_display = ('name', 'stockit_code')


@admin.register(StorageType)
class StorageTypeAdmin(admin.ModelAdmin):
    list_display = ('name', 'max_unit_quantity')


@admin.register(Location)
class LocationAdmin(admin.ModelAdmin):
    list_display = ('building', 'area', 'kind', 'stockit_id')
    list_filter = ('kind',)
    search_fields = ('building', 'area')


@admin.register(ProcessingDestination)
class ProcessingDestinationAdmin(admin.ModelAdmin):
    list_display = ('name',)
