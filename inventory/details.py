"""
Inventory — Package Details

Type-specific subforms (computer, electrical, ...) stored on the package
as detail_type + detail_data. Each variant is a dataclass; build_detail
picks the variant from the package type and keeps only the attributes
that variant knows.

@file inventory/details.py
"""

from dataclasses import asdict, dataclass, fields
from typing import ClassVar

from catalog.models import DetailType
from core.exceptions import PackageValidationError


@dataclass
class ComputerDetail:
    kind: ClassVar[str] = DetailType.COMPUTER

    brand: str = ''
    model: str = ''
    serial_num: str = ''
    country_id: str = ''
    size: str = ''
    cpu: str = ''
    ram: str = ''
    hdd: str = ''
    optical: str = ''
    video: str = ''
    sound: str = ''
    lan: str = ''
    wireless: str = ''
    usb: str = ''
    os: str = ''
    os_serial_num: str = ''
    ms_office_serial_num: str = ''
    comp_voltage: str = ''
    comp_test_status: str = ''


@dataclass
class ComputerAccessoryDetail:
    kind: ClassVar[str] = DetailType.COMPUTER_ACCESSORY

    brand: str = ''
    model: str = ''
    serial_num: str = ''
    country_id: str = ''
    size: str = ''
    interface: str = ''
    comp_voltage: str = ''
    comp_test_status: str = ''


@dataclass
class ElectricalDetail:
    kind: ClassVar[str] = DetailType.ELECTRICAL

    brand: str = ''
    model: str = ''
    serial_number: str = ''
    country_id: str = ''
    standard: str = ''
    power: str = ''
    system_or_region: str = ''
    voltage: str = ''
    frequency: str = ''
    test_status: str = ''
    tested_on: str = ''


@dataclass
class MedicalDetail:
    kind: ClassVar[str] = DetailType.MEDICAL

    brand: str = ''
    model: str = ''
    serial_number: str = ''
    country_id: str = ''


PackageDetail = ComputerDetail | ComputerAccessoryDetail | ElectricalDetail | MedicalDetail

DETAIL_VARIANTS: dict[str, type] = {
    variant.kind: variant
    for variant in (ComputerDetail, ComputerAccessoryDetail, ElectricalDetail, MedicalDetail)
}


def _construct(variant: type, attrs: dict) -> PackageDetail:
    known = {f.name for f in fields(variant)}
    values = {
        key: '' if value is None else str(value)
        for key, value in (attrs or {}).items()
        if key in known
    }
    return variant(**values)


def load_detail(detail_type: str, data: dict) -> PackageDetail | None:
    """Rebuild the stored detail of a package, or None if it has none."""
    variant = DETAIL_VARIANTS.get(detail_type or '')
    if variant is None:
        return None
    return _construct(variant, data)


def build_detail(package, attrs: dict) -> PackageDetail | None:
    """
    Build the detail variant for package's type from raw attributes and
    store it on the package (unsaved). Containers carry no detail.
    """
    if package.is_container:
        package.detail_type, package.detail_data = '', {}
        return None

    detail_type = package.package_type.detail_type
    requested = attrs.get('detail_type') if attrs else None
    if requested and requested != detail_type:
        raise PackageValidationError({
            'detail_type': f'{requested} does not match package type detail {detail_type or "none"}.',
        })
    variant = DETAIL_VARIANTS.get(detail_type or '')
    if variant is None:
        package.detail_type, package.detail_data = '', {}
        return None

    detail = _construct(variant, attrs)
    package.detail_type = detail.kind
    package.detail_data = asdict(detail)
    return detail
