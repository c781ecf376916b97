"""
Inventory — Serializers

Read serializers for packages, their locations, claims and ledger, and
input serializers for the package operations. Explicit field lists; no
__all__.

@file inventory/serializers.py
"""

from dataclasses import asdict

from rest_framework import serializers

from catalog.models import DonorCondition, PackageType, StorageType

from .models import InventoryEntry, Item, OrdersPackage, Package, PackagesLocation


class PackagesLocationSerializer(serializers.ModelSerializer):
    location_name = serializers.CharField(source='location.__str__', read_only=True)

    class Meta:
        model = PackagesLocation
        fields = ['id', 'location', 'location_name', 'quantity']
        read_only_fields = fields


class OrdersPackageSerializer(serializers.ModelSerializer):
    order_code = serializers.CharField(source='order.code', read_only=True)

    class Meta:
        model = OrdersPackage
        fields = [
            'id', 'order', 'order_code', 'state', 'quantity', 'dispatched_quantity',
            'shipping_number', 'sent_on', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class InventoryEntrySerializer(serializers.ModelSerializer):
    class Meta:
        model = InventoryEntry
        fields = [
            'id', 'package', 'action', 'quantity', 'location',
            'source_type', 'source_id', 'description', 'created_by', 'created_at',
        ]
        read_only_fields = fields


class PackageReadSerializer(serializers.ModelSerializer):
    package_type_code = serializers.CharField(source='package_type.code', read_only=True)
    storage_type_name = serializers.CharField(read_only=True)
    donor_condition_name = serializers.CharField(read_only=True)
    state_display = serializers.CharField(source='get_state_display', read_only=True)
    packages_locations = PackagesLocationSerializer(many=True, read_only=True)
    orders_packages = OrdersPackageSerializer(many=True, read_only=True)
    detail = serializers.SerializerMethodField()

    class Meta:
        model = Package
        fields = [
            'id', 'inventory_number', 'state', 'state_display',
            'package_type', 'package_type_code', 'storage_type', 'storage_type_name',
            'donor_condition', 'donor_condition_name', 'grade', 'notes', 'case_number',
            'length', 'width', 'height', 'weight', 'pieces',
            'received_quantity', 'on_hand_quantity', 'available_quantity',
            'designated_quantity', 'dispatched_quantity',
            'received_at', 'location', 'item', 'package_set', 'box', 'pallet', 'order',
            'allow_web_publish', 'saleable', 'detail_type', 'detail',
            'stockit_id', 'stockit_designated_on', 'stockit_sent_on', 'stockit_moved_on',
            'packages_locations', 'orders_packages',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_detail(self, obj):
        detail = obj.detail
        return asdict(detail) if detail is not None else None


class PackageWriteSerializer(serializers.Serializer):
    package_type = serializers.PrimaryKeyRelatedField(queryset=PackageType.objects.all())
    storage_type = serializers.PrimaryKeyRelatedField(
        queryset=StorageType.objects.all(), required=False, allow_null=True,
    )
    donor_condition = serializers.PrimaryKeyRelatedField(
        queryset=DonorCondition.objects.all(), required=False, allow_null=True,
    )
    item = serializers.PrimaryKeyRelatedField(
        queryset=Item.objects.filter(is_deleted=False), required=False, allow_null=True,
    )
    grade = serializers.ChoiceField(choices=Package.GradeChoices.choices, required=False)
    notes = serializers.CharField(required=False, allow_blank=True)
    case_number = serializers.CharField(required=False, allow_blank=True, max_length=60)
    length = serializers.IntegerField(required=False, allow_null=True, min_value=0)
    width = serializers.IntegerField(required=False, allow_null=True, min_value=0)
    height = serializers.IntegerField(required=False, allow_null=True, min_value=0)
    weight = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, allow_null=True)
    pieces = serializers.IntegerField(required=False, allow_null=True, min_value=0)
    received_quantity = serializers.IntegerField(required=False, min_value=1)
    saleable = serializers.BooleanField(required=False)
    detail = serializers.DictField(required=False)


class PackageUpdateSerializer(PackageWriteSerializer):
    package_type = serializers.PrimaryKeyRelatedField(queryset=PackageType.objects.all(), required=False)
    received_quantity = None


# ---------------------------------------------------------------------------
# Operation inputs
# ---------------------------------------------------------------------------

class ReceiveSerializer(serializers.Serializer):
    location_id = serializers.UUIDField(required=False, allow_null=True)
    inventory_number = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=36)


class MoveSerializer(serializers.Serializer):
    quantity = serializers.IntegerField(min_value=1)
    from_location_id = serializers.UUIDField()
    to_location_id = serializers.UUIDField()


class DesignateSerializer(serializers.Serializer):
    quantity = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    order_id = serializers.UUIDField()
    shipping_number = serializers.IntegerField(required=False, allow_null=True, min_value=0)


class UndesignateSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()


class DispatchSerializer(serializers.Serializer):
    quantity = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    order_id = serializers.UUIDField()
    from_location_id = serializers.UUIDField(required=False, allow_null=True)


class UndispatchSerializer(serializers.Serializer):
    quantity = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    order_id = serializers.UUIDField()
    to_location_id = serializers.UUIDField(required=False, allow_null=True)


class QuantityChangeSerializer(serializers.Serializer):
    quantity = serializers.IntegerField(min_value=1)
    from_location_id = serializers.UUIDField()
    processing_destination_id = serializers.UUIDField(required=False, allow_null=True)
    description = serializers.CharField(required=False, allow_blank=True, max_length=255)


class AddRemoveItemSerializer(serializers.Serializer):
    item_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=0)
    location_id = serializers.UUIDField()
    task = serializers.ChoiceField(choices=['pack', 'unpack'])


def operation_response(result, request=None) -> dict:
    """The {success, errors, packages_inventory, item} body of a package operation."""
    package = result.package
    item = None
    if package is not None and package.pk is not None:
        package.refresh_from_db()
        item = PackageReadSerializer(package, context={'request': request}).data
    return {
        'success': result.success,
        'errors': result.errors,
        'packages_inventory': InventoryEntrySerializer(result.entries, many=True).data,
        'item': item,
    }
