"""Package status vocabularies and the lookup tables between them.

Three vocabularies meet here:

* the internal lifecycle enum stored on every package,
* the four-value vocabulary the customer/warehouse UI works with,
* the numeric codes (and their labels) sent by the external carrier system.

Only internal values are ever persisted; everything else is translated on the
way in and on the way out.
"""
from __future__ import annotations

from typing import Any, Optional

from django.db import models


class PackageStatus(models.TextChoices):
    UNKNOWN = "Unknown", "Unknown"
    AT_WAREHOUSE = "At Warehouse", "At Warehouse"
    IN_TRANSIT = "In Transit", "In Transit"
    AT_LOCAL_PORT = "At Local Port", "At Local Port"
    DELIVERED = "Delivered", "Delivered"
    DELETED = "Deleted", "Deleted"


class UiStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    IN_TRANSIT = "in_transit", "In Transit"
    READY_FOR_PICKUP = "ready_for_pickup", "Ready for Pickup"
    DELIVERED = "delivered", "Delivered"


# Transitions that trigger a customer email.
NOTIFY_STATUSES = frozenset({PackageStatus.IN_TRANSIT, PackageStatus.DELIVERED})

INTERNAL_TO_UI = {
    PackageStatus.UNKNOWN: UiStatus.PENDING,
    PackageStatus.AT_WAREHOUSE: UiStatus.PENDING,
    PackageStatus.IN_TRANSIT: UiStatus.IN_TRANSIT,
    PackageStatus.AT_LOCAL_PORT: UiStatus.READY_FOR_PICKUP,
    PackageStatus.DELIVERED: UiStatus.DELIVERED,
    PackageStatus.DELETED: UiStatus.PENDING,
}

UI_TO_INTERNAL = {
    UiStatus.PENDING: PackageStatus.AT_WAREHOUSE,
    UiStatus.IN_TRANSIT: PackageStatus.IN_TRANSIT,
    UiStatus.READY_FOR_PICKUP: PackageStatus.AT_LOCAL_PORT,
    UiStatus.DELIVERED: PackageStatus.DELIVERED,
}

EXTERNAL_STATUS_LABELS = {
    0: "AT WAREHOUSE",
    1: "DELIVERED TO AIRPORT",
    2: "IN TRANSIT TO LOCAL PORT",
    3: "AT LOCAL PORT",
    4: "AT LOCAL SORTING",
}

EXTERNAL_TO_INTERNAL = {
    0: PackageStatus.AT_WAREHOUSE,
    1: PackageStatus.IN_TRANSIT,
    2: PackageStatus.IN_TRANSIT,
    3: PackageStatus.AT_LOCAL_PORT,
    # no sorting state of our own, closest is the port
    4: PackageStatus.AT_LOCAL_PORT,
}

_LABEL_TO_CODE = {label: code for code, label in EXTERNAL_STATUS_LABELS.items()}

SERVICE_TYPE_NAMES = {
    "59cadcd4-7508-450b-85aa-9ec908d168fe": "AIR STANDARD",
    "25a1d8e5-a478-4cc3-b1fd-a37d0d787302": "AIR EXPRESS",
    "8df142ca-0573-4ce9-b11d-7a3e5f8ba196": "AIR PREMIUM",
}
UNSPECIFIED_SERVICE_TYPE = "UNSPECIFIED"


def is_internal_status(value: Any) -> bool:
    return isinstance(value, str) and value in PackageStatus.values


def is_ui_status(value: Any) -> bool:
    return isinstance(value, str) and value in UiStatus.values


def internal_to_ui(status: Any) -> str:
    """Every internal value lands in the UI vocabulary; unknowns read as pending."""
    if not is_internal_status(status):
        return UiStatus.PENDING.value
    return INTERNAL_TO_UI[PackageStatus(status)].value


def ui_to_internal(ui_status: Any) -> str:
    if not is_ui_status(ui_status):
        return PackageStatus.AT_WAREHOUSE.value
    return UI_TO_INTERNAL[UiStatus(ui_status)].value


def external_status_code(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return int(value) if float(value).is_integer() else None
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        if raw.upper() in _LABEL_TO_CODE:
            return _LABEL_TO_CODE[raw.upper()]
        try:
            number = float(raw)
        except ValueError:
            return None
        return int(number) if number.is_integer() else None
    return None


def is_known_external_status(value: Any) -> bool:
    return external_status_code(value) in EXTERNAL_TO_INTERNAL


def external_to_internal(value: Any, default: str = PackageStatus.UNKNOWN) -> str:
    """Map a carrier status code (0-4, "3" or "AT LOCAL PORT") to the internal enum."""
    code = external_status_code(value)
    if code not in EXTERNAL_TO_INTERNAL:
        return PackageStatus(default).value
    return EXTERNAL_TO_INTERNAL[code].value


def external_status_label(value: Any) -> str:
    code = external_status_code(value)
    return EXTERNAL_STATUS_LABELS.get(code, EXTERNAL_STATUS_LABELS[0])


def service_type_name(service_type_id: Any) -> str:
    if not isinstance(service_type_id, str) or not service_type_id.strip():
        return UNSPECIFIED_SERVICE_TYPE
    return SERVICE_TYPE_NAMES.get(service_type_id.strip(), UNSPECIFIED_SERVICE_TYPE)
