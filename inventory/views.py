"""
Inventory — Views

Package API: list / retrieve / create / update / destroy, and one POST
action per package operation. Operation actions answer
{success, errors, packages_inventory, item}; a Stockit failure makes
success false while the local change stays committed.

@file inventory/views.py
"""

from django.shortcuts import get_object_or_404
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.constants import ORIGIN_STOCK_APP, ORIGIN_STOCKIT
from core.services import OperationContext

from .containment import ContainmentManager
from .ledger import LedgerService
from .models import Package
from .serializers import (
    AddRemoveItemSerializer,
    DesignateSerializer,
    DispatchSerializer,
    InventoryEntrySerializer,
    MoveSerializer,
    PackageReadSerializer,
    PackageUpdateSerializer,
    PackageWriteSerializer,
    QuantityChangeSerializer,
    ReceiveSerializer,
    UndesignateSerializer,
    UndispatchSerializer,
    operation_response,
)
from .services import PackageOperations, PackageService

ORIGIN_HEADER = 'HTTP_X_REQUEST_ORIGIN'


def operation_context(request) -> OperationContext:
    """Actor from the request user; origin from the X-Request-Origin header."""
    origin = request.META.get(ORIGIN_HEADER, ORIGIN_STOCK_APP)
    if origin != ORIGIN_STOCKIT:
        origin = ORIGIN_STOCK_APP
    user = request.user if request.user.is_authenticated else None
    return OperationContext(actor=user, origin=origin)


class PackageViewSet(viewsets.ModelViewSet):
    """
    Packages: list, create, retrieve, update, destroy.
    Operations: receive, mark-missing, move, designate, undesignate,
    dispatch, undispatch, actions/{action_name}, add-remove-item,
    remove-from-set, publish, unpublish.
    Queries: contained-packages, parent-containers, added-quantity, ledger.
    """

    permission_classes = [IsAuthenticated]
    filterset_fields = ['state', 'package_type', 'storage_type', 'order', 'item', 'allow_web_publish']
    search_fields = ['inventory_number', 'notes', 'case_number']
    ordering_fields = ['created_at', 'inventory_number', 'received_at', 'on_hand_quantity']
    ordering = ['-created_at']

    def get_queryset(self):
        return Package.objects.filter(is_deleted=False).select_related(
            'package_type', 'storage_type', 'donor_condition', 'item__donor_condition',
        ).prefetch_related('packages_locations__location', 'orders_packages__order')

    def get_serializer_class(self):
        if self.action in ('update', 'partial_update'):
            return PackageUpdateSerializer
        if self.action == 'create':
            return PackageWriteSerializer
        return PackageReadSerializer

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        package = PackageService.create_package(ctx=operation_context(request), **serializer.validated_data)
        return Response(PackageReadSerializer(package, context={'request': request}).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        package = self.get_object()
        serializer = self.get_serializer(data=request.data, partial=kwargs.get('partial', False))
        serializer.is_valid(raise_exception=True)
        updated = PackageService.update_package(package.pk, ctx=operation_context(request), **serializer.validated_data)
        return Response(PackageReadSerializer(updated, context={'request': request}).data)

    def destroy(self, request, *args, **kwargs):
        package = self.get_object()
        PackageOperations.destroy(package.pk, ctx=operation_context(request))
        return Response(status=status.HTTP_204_NO_CONTENT)

    def _respond(self, request, result, status_code=status.HTTP_200_OK):
        return Response(operation_response(result, request), status=status_code)

    def _input(self, serializer_class, request):
        ser = serializer_class(data=request.data)
        ser.is_valid(raise_exception=True)
        return ser.validated_data

    # --- Lifecycle ---

    @action(detail=True, methods=['post'], url_path='receive')
    def receive(self, request, pk=None):
        data = self._input(ReceiveSerializer, request)
        result = PackageOperations.receive(pk, ctx=operation_context(request), **data)
        return self._respond(request, result)

    @action(detail=True, methods=['post'], url_path='mark-missing')
    def mark_missing(self, request, pk=None):
        result = PackageOperations.mark_missing(pk, ctx=operation_context(request))
        return self._respond(request, result)

    @action(detail=True, methods=['post'], url_path='move')
    def move(self, request, pk=None):
        data = self._input(MoveSerializer, request)
        result = PackageOperations.move(pk, ctx=operation_context(request), **data)
        return self._respond(request, result)

    # --- Designation / dispatch ---

    @action(detail=True, methods=['post'], url_path='designate')
    def designate(self, request, pk=None):
        data = self._input(DesignateSerializer, request)
        result = PackageOperations.designate(pk, ctx=operation_context(request), **data)
        return self._respond(request, result)

    @action(detail=True, methods=['post'], url_path='undesignate')
    def undesignate(self, request, pk=None):
        data = self._input(UndesignateSerializer, request)
        result = PackageOperations.undesignate(pk, ctx=operation_context(request), **data)
        return self._respond(request, result)

    @action(detail=True, methods=['post'], url_path='dispatch', url_name='dispatch')
    def dispatch_package(self, request, pk=None):
        data = self._input(DispatchSerializer, request)
        result = PackageOperations.dispatch(pk, ctx=operation_context(request), **data)
        return self._respond(request, result)

    @action(detail=True, methods=['post'], url_path='undispatch')
    def undispatch(self, request, pk=None):
        data = self._input(UndispatchSerializer, request)
        result = PackageOperations.undispatch(pk, ctx=operation_context(request), **data)
        return self._respond(request, result)

    # --- Quantity changes ---

    @action(detail=True, methods=['post'], url_path=r'actions/(?P<action_name>[a-z_]+)')
    def register_quantity_change(self, request, pk=None, action_name=None):
        data = self._input(QuantityChangeSerializer, request)
        result = PackageOperations.register_quantity_change(
            pk,
            quantity=data['quantity'],
            location_id=data['from_location_id'],
            action=action_name,
            source_id=data.get('processing_destination_id'),
            description=data.get('description', ''),
            ctx=operation_context(request),
        )
        return self._respond(request, result)

    # --- Containment ---

    @action(detail=True, methods=['post'], url_path='add-remove-item')
    def add_remove_item(self, request, pk=None):
        data = self._input(AddRemoveItemSerializer, request)
        if not data['quantity']:
            return Response(status=status.HTTP_204_NO_CONTENT)
        result = PackageOperations.pack_or_unpack(
            container_id=pk,
            package_id=data['item_id'],
            quantity=data['quantity'],
            location_id=data['location_id'],
            task=data['task'],
            ctx=operation_context(request),
        )
        body = {
            'success': result.success,
            'errors': result.errors,
            'packages_inventory': InventoryEntrySerializer(result.entries, many=True).data,
        }
        return Response(body, status=status.HTTP_201_CREATED if result.success else status.HTTP_422_UNPROCESSABLE_ENTITY)

    @action(detail=True, methods=['get'], url_path='contained-packages')
    def contained_packages(self, request, pk=None):
        container = self.get_object()
        packages = ContainmentManager.packages_contained_in(container)
        page = self.paginate_queryset(packages)
        ser = PackageReadSerializer(page if page is not None else packages, many=True, context={'request': request})
        if page is not None:
            response = self.get_paginated_response(ser.data)
            response.data['total_quantity'] = ContainmentManager.total_quantity_in(container)
            return response
        return Response(ser.data)

    @action(detail=True, methods=['get'], url_path='parent-containers')
    def parent_containers(self, request, pk=None):
        package = self.get_object()
        containers = ContainmentManager.containers_of(package)
        page = self.paginate_queryset(containers)
        ser = PackageReadSerializer(page if page is not None else containers, many=True, context={'request': request})
        if page is not None:
            return self.get_paginated_response(ser.data)
        return Response(ser.data)

    @action(detail=True, methods=['get'], url_path='added-quantity')
    def added_quantity(self, request, pk=None):
        package = self.get_object()
        container = get_object_or_404(Package, pk=request.query_params.get('entity_id'), is_deleted=False)
        return Response({'added_quantity': ContainmentManager.quantity_contained_in(package, container)})

    # --- Sets / publishing ---

    @action(detail=True, methods=['post'], url_path='remove-from-set')
    def remove_from_set(self, request, pk=None):
        package = PackageOperations.remove_from_set(pk, ctx=operation_context(request))
        return Response(PackageReadSerializer(package, context={'request': request}).data)

    @action(detail=True, methods=['post'], url_path='publish')
    def publish(self, request, pk=None):
        package = PackageOperations.publish(pk, ctx=operation_context(request))
        return Response(PackageReadSerializer(package, context={'request': request}).data)

    @action(detail=True, methods=['post'], url_path='unpublish')
    def unpublish(self, request, pk=None):
        package = PackageOperations.unpublish(pk, ctx=operation_context(request))
        return Response(PackageReadSerializer(package, context={'request': request}).data)

    # --- Ledger ---

    @action(detail=True, methods=['get'], url_path='ledger')
    def ledger(self, request, pk=None):
        package = self.get_object()
        entries = LedgerService.entries_for(package)
        page = self.paginate_queryset(entries)
        if page is not None:
            return self.get_paginated_response(InventoryEntrySerializer(page, many=True).data)
        return Response(InventoryEntrySerializer(entries, many=True).data)
