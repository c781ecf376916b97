"""
Inventory — Django Admin Configuration

Packages with their locations and claims inline; read-only ledger
(INSERT ONLY) and Stockit outbox.

@file inventory/admin.py
"""

from django.contrib import admin
from django.utils.html import format_html
from django.utils.translation import gettext_lazy as _

from .models import InventoryEntry, Item, OrdersPackage, Package, PackageSet, PackagesLocation, StockitSyncJob

STATE_COLORS = {
    Package.StateChoices.EXPECTING: '#6c757d',
    Package.StateChoices.RECEIVED: '#28a745',
    Package.StateChoices.MISSING: '#dc3545',
}


class PackagesLocationInline(admin.TabularInline):
    model = PackagesLocation
    extra = 0
    readonly_fields = ('location', 'quantity', 'updated_at')
    fields = readonly_fields
    can_delete = False


class OrdersPackageInline(admin.TabularInline):
    model = OrdersPackage
    extra = 0
    readonly_fields = ('order', 'state', 'quantity', 'dispatched_quantity', 'shipping_number', 'sent_on')
    fields = readonly_fields
    can_delete = False


@admin.register(Package)
class PackageAdmin(admin.ModelAdmin):
    list_display = (
        'inventory_number', 'package_type', 'state_badge', 'received_quantity',
        'on_hand_quantity', 'available_quantity', 'designated_quantity', 'dispatched_quantity',
        'created_at',
    )
    list_filter = ('state', 'storage_type', 'allow_web_publish', 'is_deleted')
    search_fields = ('inventory_number', 'notes', 'case_number')
    list_select_related = ('package_type',)
    readonly_fields = (
        'id', 'state', 'inventory_number', 'on_hand_quantity', 'available_quantity',
        'designated_quantity', 'dispatched_quantity', 'received_at', 'stockit_id',
        'created_at', 'updated_at',
    )
    inlines = [PackagesLocationInline, OrdersPackageInline]

    fieldsets = (
        (_('Package'), {
            'fields': (
                'id', 'item', 'package_type', 'storage_type', 'donor_condition', 'grade',
                'notes', 'case_number', 'inventory_number', 'state', 'received_at',
            ),
        }),
        (_('Quantities'), {
            'fields': (
                'received_quantity', 'on_hand_quantity', 'available_quantity',
                'designated_quantity', 'dispatched_quantity',
            ),
        }),
        (_('Stockit'), {
            'fields': ('stockit_id',),
            'classes': ('collapse',),
        }),
        (_('Audit'), {
            'fields': ('created_at', 'updated_at'),
        }),
    )

    def state_badge(self, obj):
        color = STATE_COLORS.get(obj.state, '#6c757d')
        return format_html(
            '<span style="background:{};color:#fff;padding:2px 8px;border-radius:4px;">{}</span>',
            color, obj.get_state_display(),
        )
    state_badge.short_description = _('State')


@admin.register(Item)
class ItemAdmin(admin.ModelAdmin):
    list_display = ('donor_description', 'package_type', 'state', 'created_at')
    list_filter = ('state',)


@admin.register(PackageSet)
class PackageSetAdmin(admin.ModelAdmin):
    list_display = ('description', 'package_type', 'created_at')


@admin.register(InventoryEntry)
class InventoryEntryAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'package', 'action', 'quantity', 'location', 'source_type', 'source_id', 'created_by')
    list_filter = ('action', 'created_at')
    search_fields = ('package__inventory_number', 'source_id')
    list_select_related = ('package', 'location', 'created_by')
    readonly_fields = (
        'id', 'package', 'action', 'quantity', 'location',
        'source_type', 'source_id', 'description', 'created_by', 'created_at',
    )
    list_per_page = 50
    date_hierarchy = 'created_at'

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(StockitSyncJob)
class StockitSyncJobAdmin(admin.ModelAdmin):
    list_display = ('id', 'package_ref', 'action', 'status', 'attempts', 'created_at', 'processed_at')
    list_filter = ('status', 'action')
    search_fields = ('package_ref',)
    readonly_fields = ('package', 'package_ref', 'action', 'payload', 'errors', 'attempts', 'created_at', 'processed_at')
