"""
Inventory — URL Configuration

@file inventory/urls.py
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import PackageViewSet

app_name = 'inventory'

router = DefaultRouter()
router.register('packages', PackageViewSet, basename='package')

urlpatterns = [
    path('', include(router.urls)),
]
