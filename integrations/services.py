from __future__ import annotations

import logging
from typing import Any, Dict, List

from django.contrib.auth import get_user_model

from packages.services import BatchIngestor, ManifestService, PackageError
from packages.status import (
    PackageStatus,
    external_status_code,
    external_status_label,
    external_to_internal,
    service_type_name,
)

logger = logging.getLogger(__name__)

INGESTION_NOTE = "Received via external addpackage endpoint"

EXTERNAL_PACKAGE_FIELDS = {
    "TrackingNumber": "tracking_number",
    "UserCode": "user_code",
    "Weight": "weight",
    "Shipper": "shipper",
    "Description": "description",
    "ServiceTypeID": "service_type_id",
    # EntryDateTime wins over EntryDate when both are sent
    "EntryDateTime": "entry_date",
    "EntryDate": "entry_date",
    "ControlNumber": "control_number",
    "Branch": "branch",
    "FirstName": "first_name",
    "LastName": "last_name",
    "Cubes": "cubes",
    "Length": "length",
    "Width": "width",
    "Height": "height",
    "Pieces": "pieces",
}


class IngestionError(PackageError):
    pass


class ExternalIngestionService(BatchIngestor):
    """Carrier-side package feed in PascalCase."""

    missing_error = "Missing TrackingNumber or UserCode"

    def __init__(self, updated_by: str = "external"):
        super().__init__(EXTERNAL_PACKAGE_FIELDS, note=INGESTION_NOTE, updated_by=updated_by)

    @staticmethod
    def unwrap(body: Any) -> List[Any]:
        """Accept a bare array or the legacy ``{"APIToken": ..., "Packages": [...]}`` envelope."""
        if isinstance(body, list):
            return body
        if isinstance(body, dict) and isinstance(body.get("Packages"), list):
            return body["Packages"]
        raise IngestionError("Payload must be an array of packages")

    def resolve_status(self, record: Dict[str, Any]) -> str:
        return external_to_internal(record.get("PackageStatus"), default=PackageStatus.AT_WAREHOUSE)

    def extra_fields(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "service_type_name": service_type_name(record.get("ServiceTypeID")),
            "external_status_label": external_status_label(record.get("PackageStatus")),
        }

    def ingest_packages(self, items: List[Any]) -> Dict[str, Any]:
        summary = self.ingest(items)
        logger.info(
            "External ingestion processed=%s succeeded=%s failed=%s",
            summary["processed"],
            summary["succeeded"],
            summary["failed"],
        )
        return summary


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


class ExternalManifestService:
    @staticmethod
    def update(payload: Any) -> Dict[str, Any]:
        if not isinstance(payload, dict):
            raise IngestionError("Payload must be an object")
        block = payload.get("Manifest") or {}
        if not isinstance(block, dict):
            raise IngestionError("Manifest must be an object")
        manifest_id = str(block.get("ManifestID") or "").strip()
        if not manifest_id:
            raise IngestionError("Manifest.ManifestID is required")

        package_awbs = _string_list(payload.get("PackageAWBs"))
        collection_codes = _string_list(payload.get("CollectionCodes"))
        values = {
            "description": block.get("Description"),
            "courier_id": block.get("CourierID"),
            "service_type_id": block.get("ServiceTypeID"),
            "service_type_name": service_type_name(block.get("ServiceTypeID")),
            "status_code": external_status_code(block.get("ManifestStatus")),
            "status_label": external_status_label(block.get("ManifestStatus")),
            "code": block.get("ManifestCode"),
            "flight_date": block.get("FlightDate"),
            "weight": block.get("Weight"),
            "item_count": block.get("ItemCount"),
            "manifest_number": block.get("ManifestNumber"),
            "staff_name": block.get("StaffName"),
            "entry_date": block.get("EntryDateTime") or block.get("EntryDate"),
            "awb_number": block.get("AWBNumber"),
        }
        raw = {key: value for key, value in payload.items() if key != "APIToken"}
        manifest, created, linked = ManifestService.upsert(
            manifest_id,
            values,
            package_awbs=package_awbs,
            collection_codes=collection_codes,
            raw_payload=raw,
            strict=False,
        )
        return {
            "ok": True,
            "manifestId": manifest.manifest_id,
            "created": created,
            "linkedByTracking": len(package_awbs),
            "linkedByControl": len(collection_codes),
            "packagesLinked": linked,
        }


class CustomerExportService:
    LIMIT = 1000

    @classmethod
    def export(cls) -> List[Dict[str, str]]:
        User = get_user_model()
        customers = User.objects.customers().order_by("-created_at")[: cls.LIMIT]
        return [
            {
                "UserCode": customer.user_code or "",
                "FirstName": customer.first_name or "",
                "LastName": customer.last_name or "",
                "Branch": customer.branch or "",
                "CustomerServiceTypeID": "",
                "CustomerLevelInstructions": "",
                "CourierServiceTypeID": "",
                "CourierLevelInstructions": "",
            }
            for customer in customers
        ]
