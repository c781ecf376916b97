"""
Orders — Django Admin Configuration

@file orders/admin.py
"""

from django.contrib import admin

from .models import Order


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ('code', 'status', 'stockit_id', 'created_at')
    list_filter = ('status',)
    search_fields = ('code',)
    readonly_fields = ('id', 'created_at', 'updated_at', 'created_by', 'updated_by')
    ordering = ('-created_at',)
