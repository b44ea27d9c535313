from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, time, timezone as dt_timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional, Tuple

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.files.storage import default_storage
from django.db import transaction
from django.db.models import Q
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime
from django.utils.text import get_valid_filename

from notifications.services import NotificationService

from .models import Manifest, Package, PreAlert
from .status import NOTIFY_STATUSES, PackageStatus, is_internal_status

logger = logging.getLogger(__name__)

User = get_user_model()


class PackageError(Exception):
    status_code = 400


class PackageNotFound(PackageError):
    status_code = 404


class PackageAccessDenied(PackageError):
    status_code = 403


class CustomerNotFound(PackageError):
    status_code = 404

    def __init__(self, message: str = "Customer not found"):
        super().__init__(message)


class UnsupportedInvoiceType(PackageError):
    status_code = 415


class InvoiceTooLarge(PackageError):
    status_code = 413


DECIMAL_FIELDS = {"weight", "length", "width", "height", "cubes"}
INTEGER_FIELDS = {"pieces"}
BOOLEAN_FIELDS = {"customs_required", "has_discrepancy"}
DATETIME_FIELDS = {"entry_date"}
TEXT_FIELDS = {
    "shipper",
    "description",
    "branch",
    "control_number",
    "service_type_id",
    "service_type_name",
    "external_status_label",
    "first_name",
    "last_name",
    "entry_staff",
    "discrepancy_description",
}
MERGEABLE_FIELDS = (
    DECIMAL_FIELDS | INTEGER_FIELDS | BOOLEAN_FIELDS | DATETIME_FIELDS | TEXT_FIELDS | {"user_code", "manifest_id"}
)


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict)):
        return not value
    return False


def to_decimal(value: Any, field: str = "value") -> Decimal:
    if isinstance(value, bool):
        raise PackageError(f"Invalid number for {field}")
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation:
        raise PackageError(f"Invalid number for {field}") from None
    if not number.is_finite() or number < 0:
        raise PackageError(f"Invalid number for {field}")
    return number


def to_integer(value: Any, field: str = "value") -> int:
    number = to_decimal(value, field)
    if number != number.to_integral_value():
        raise PackageError(f"Invalid whole number for {field}")
    return int(number)


def to_datetime(value: Any, field: str = "date") -> datetime:
    parsed = None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        raw = value.strip()
        try:
            parsed = parse_datetime(raw)
            if parsed is None:
                day = parse_date(raw)
                parsed = datetime.combine(day, time.min) if day else None
        except ValueError:
            parsed = None
    if parsed is None:
        raise PackageError(f"Invalid date for {field}")
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed, dt_timezone.utc)
    return parsed


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def history_entry(
    status: str, note: str = "", updated_by: str = "system", at: Optional[datetime] = None
) -> Dict[str, Any]:
    entry = {"status": status, "at": (at or timezone.now()).isoformat(), "updated_by": updated_by or "system"}
    if note and note.strip():
        entry["note"] = note.strip()
    return entry


@dataclass(frozen=True)
class StatusUpdateResult:
    package: Package
    created: bool
    status_changed: bool
    previous_status: Optional[str]


class PackageService:
    @staticmethod
    def clean_fields(fields: Dict[str, Any], *, strict: bool = True) -> Dict[str, Any]:
        """Coerce optional metadata to model values, dropping absent or blank entries.

        With ``strict`` off, values that cannot be coerced are skipped instead of
        rejected; external feeds send loose data and one bad dimension should not
        lose the whole package.
        """
        cleaned: Dict[str, Any] = {}
        for field, value in (fields or {}).items():
            if field not in MERGEABLE_FIELDS or is_blank(value):
                continue
            try:
                if field in DECIMAL_FIELDS:
                    cleaned[field] = to_decimal(value, field)
                elif field in INTEGER_FIELDS:
                    cleaned[field] = to_integer(value, field)
                elif field in BOOLEAN_FIELDS:
                    cleaned[field] = _to_bool(value)
                elif field in DATETIME_FIELDS:
                    cleaned[field] = to_datetime(value, field)
                elif field == "user_code":
                    code = str(value).strip().upper()
                    cleaned["user_code"] = code
                    cleaned["customer"] = User.objects.get_customer_by_code(code)
                elif field == "manifest_id":
                    cleaned["manifest"], _ = Manifest.objects.get_or_create(manifest_id=str(value).strip())
                else:
                    cleaned[field] = str(value).strip()
            except PackageError:
                if strict:
                    raise
                logger.warning("Skipping unparseable %s=%r", field, value)
        return cleaned

    @classmethod
    def apply_status_update(
        cls,
        tracking_number: str,
        status: str,
        *,
        note: str = "",
        location: str = "",
        fields: Optional[Dict[str, Any]] = None,
        updated_by: str = "system",
        strict: bool = True,
        notify: bool = True,
    ) -> StatusUpdateResult:
        tracking_number = (tracking_number or "").strip()
        if not tracking_number:
            raise PackageError("tracking_number is required")
        if not is_internal_status(status):
            raise PackageError(f"Invalid status: {status}")

        changes = cls.clean_fields(fields or {}, strict=strict)
        if location and location.strip():
            changes["branch"] = location.strip()

        result = cls._write_status(tracking_number, status, note=note, changes=changes, updated_by=updated_by)

        # The write is committed (or at least its savepoint released) before mail goes out.
        if notify and result.package.status in NOTIFY_STATUSES:
            cls._notify(NotificationService.notify_status_update, result.package, note=note)
        return result

    @staticmethod
    @transaction.atomic
    def _write_status(tracking_number, status, *, note, changes, updated_by) -> StatusUpdateResult:
        # get_or_create falls back to a fetch when a concurrent insert wins the unique constraint
        _, created = Package.objects.get_or_create(tracking_number=tracking_number, defaults={"status": status})
        package = Package.objects.select_for_update().get(tracking_number=tracking_number)
        previous = None if created else package.status

        for field, value in changes.items():
            setattr(package, field, value)

        status_changed = created or previous != status
        if status_changed:
            # a first sighting is stamped with the carrier's entry date when one was sent
            at = changes.get("entry_date") if created else None
            package.history = list(package.history or []) + [history_entry(status, note, updated_by, at=at)]
        package.status = status
        package.save()
        return StatusUpdateResult(package, created, status_changed, previous)

    @staticmethod
    def _notify(func, package, **kwargs) -> None:
        try:
            func(package, **kwargs)
        except Exception:
            logger.exception("Notification dispatch failed for package=%s", package.tracking_number)

    @classmethod
    def add_package(
        cls,
        tracking_number: str,
        *,
        fields: Optional[Dict[str, Any]] = None,
        note: str = "",
        updated_by: str = "warehouse",
    ) -> StatusUpdateResult:
        """Manual warehouse intake: upsert as At Warehouse and tell the owner about new arrivals."""
        result = cls.apply_status_update(
            tracking_number,
            PackageStatus.AT_WAREHOUSE,
            note=note or "Received at warehouse",
            fields=fields,
            updated_by=updated_by,
            notify=False,
        )
        if result.created and result.package.user_code:
            cls._notify(NotificationService.notify_new_package, result.package)
        return result

    @classmethod
    def soft_delete(cls, tracking_number: str, *, note: str = "", updated_by: str = "warehouse") -> StatusUpdateResult:
        tracking_number = (tracking_number or "").strip()
        if not Package.objects.filter(tracking_number=tracking_number).exists():
            raise PackageNotFound("Package not found")
        return cls.apply_status_update(
            tracking_number, PackageStatus.DELETED, note=note or "Package deleted", updated_by=updated_by
        )

    @classmethod
    def link_to_customer(cls, package_id, user_code: str, *, updated_by: str = "warehouse") -> StatusUpdateResult:
        package = Package.objects.filter(id=package_id).first()
        if not package:
            raise PackageNotFound("Package not found")
        customer = User.objects.get_customer_by_code(user_code)
        if not customer:
            raise CustomerNotFound()
        status = PackageStatus.AT_WAREHOUSE if package.status == PackageStatus.UNKNOWN else package.status
        return cls.apply_status_update(
            package.tracking_number,
            status,
            note=f"Package linked to customer {customer.user_code}",
            fields={"user_code": customer.user_code},
            updated_by=updated_by,
            notify=False,
        )

    @staticmethod
    def unknown_packages():
        return (
            Package.objects.filter(Q(user_code="") | Q(customer__isnull=True) | Q(status=PackageStatus.UNKNOWN))
            .exclude(status=PackageStatus.DELETED)
            .order_by("-created_at")
        )

    @staticmethod
    def search(query: str, *, limit: int = 50):
        query = (query or "").strip()
        if not query:
            return Package.objects.none()
        return Package.objects.filter(
            Q(tracking_number__icontains=query)
            | Q(user_code__iexact=query)
            | Q(control_number__iexact=query)
            | Q(shipper__icontains=query)
        ).order_by("-updated_at")[:limit]


class PreAlertService:
    @staticmethod
    @transaction.atomic
    def register(customer, *, tracking_number: str, carrier: str = "", origin: str = "", expected_date=None, notes: str = "") -> PreAlert:
        """Record a customer's advance notice; the package placeholder never moves backwards in status."""
        tracking_number = (tracking_number or "").strip()
        if not tracking_number:
            raise PackageError("tracking_number is required")

        package = Package.objects.select_for_update().filter(tracking_number=tracking_number).first()
        if package is None:
            package = Package.objects.create(
                tracking_number=tracking_number,
                user_code=customer.user_code,
                customer=customer,
                shipper=carrier or "",
                status=PackageStatus.UNKNOWN,
                history=[history_entry(PackageStatus.UNKNOWN, "Pre-alert submitted", customer.user_code)],
            )
        elif not package.user_code:
            package.user_code = customer.user_code
            package.customer = customer
            package.save(update_fields=["user_code", "customer", "updated_at"])
        elif package.user_code.upper() != (customer.user_code or "").upper():
            raise PackageAccessDenied("Tracking number belongs to another customer")

        return PreAlert.objects.create(
            user_code=customer.user_code,
            customer=customer,
            package=package,
            tracking_number=tracking_number,
            carrier=carrier or "",
            origin=origin or "",
            expected_date=expected_date,
            notes=notes or "",
        )

    @staticmethod
    def decide(pre_alert: PreAlert, decision: str, *, decided_by) -> PreAlert:
        if decision not in {PreAlert.Status.APPROVED, PreAlert.Status.REJECTED}:
            raise PackageError("decision must be approved or rejected")
        pre_alert.status = decision
        pre_alert.decided_by = decided_by
        pre_alert.decided_at = timezone.now()
        pre_alert.save(update_fields=["status", "decided_by", "decided_at"])
        return pre_alert


class InvoiceService:
    REVIEW_STATUSES = {"reviewed", "rejected"}

    @staticmethod
    def validate_files(files) -> None:
        if not files:
            raise PackageError("At least one file is required (field: files or invoice)")
        allowed = settings.INVOICE_ALLOWED_MIME_TYPES
        for upload in files:
            mime = getattr(upload, "content_type", "") or ""
            if mime not in allowed:
                raise UnsupportedInvoiceType(f"Unsupported file type: {mime}")
            if not upload.size:
                raise PackageError("Invalid file size")
            if upload.size > settings.MAX_INVOICE_BYTES:
                raise InvoiceTooLarge(f"File too large. Max {settings.MAX_INVOICE_MB} MB")

    @staticmethod
    def build_record(metadata: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Structured invoice, kept only when number, date and total are all usable."""
        number = str(metadata.get("invoice_number") or "").strip()
        day = parse_date(str(metadata.get("invoice_date") or "").strip())
        try:
            total = to_decimal(metadata.get("total_value"), "total_value")
        except PackageError:
            total = None
        if not number or day is None or total is None:
            return None

        items = metadata.get("items") or []
        if isinstance(items, str):
            try:
                items = json.loads(items)
            except ValueError:
                items = []
        if not isinstance(items, list):
            items = []

        def _num(raw, *keys):
            for key in keys:
                if key in raw:
                    try:
                        return float(raw[key])
                    except (TypeError, ValueError):
                        return 0.0
            return 0.0

        return {
            "invoice_number": number,
            "invoice_date": day.isoformat(),
            "total_value": float(total.quantize(Decimal("0.01"))),
            "currency": str(metadata.get("currency") or "USD").strip() or "USD",
            "items": [
                {
                    "description": str(item.get("description", "")),
                    "quantity": _num(item, "quantity"),
                    "unit_value": _num(item, "unit_value", "unitValue"),
                    "total_value": _num(item, "total_value", "totalValue"),
                }
                for item in items
                if isinstance(item, dict)
            ],
            "status": "submitted",
            "submitted_at": timezone.now().isoformat(),
        }

    @staticmethod
    def _store(upload) -> Dict[str, Any]:
        safe_name = get_valid_filename(upload.name or "invoice") or "invoice"
        name = f"invoices/{timezone.now():%Y%m%d%H%M%S}-{uuid.uuid4().hex[:6]}-{safe_name}"
        stored = default_storage.save(name, upload)
        return {
            "filename": stored.rsplit("/", 1)[-1],
            "url": default_storage.url(stored),
            "mime_type": upload.content_type,
            "size": upload.size,
            "uploaded_at": timezone.now().isoformat(),
        }

    @classmethod
    def upload(cls, package_id, customer, files, metadata: Optional[Dict[str, Any]] = None) -> Package:
        package = Package.objects.filter(id=package_id).first()
        if not package:
            raise PackageNotFound("Package not found")
        if not customer.user_code or package.user_code.upper() != customer.user_code.upper():
            raise PackageAccessDenied("Forbidden: package does not belong to you")

        # Reject the whole request before anything touches storage.
        cls.validate_files(files)
        record = cls.build_record(metadata or {})
        saved = [cls._store(upload) for upload in files]

        with transaction.atomic():
            package = Package.objects.select_for_update().get(pk=package.pk)
            package.invoice_documents = list(package.invoice_documents or []) + saved
            if record:
                record["document_url"] = saved[0]["url"]
                package.invoice_records = list(package.invoice_records or []) + [record]
            package.save(update_fields=["invoice_documents", "invoice_records", "updated_at"])
        logger.info("Stored %d invoice file(s) for package=%s", len(saved), package.tracking_number)
        return package

    @classmethod
    @transaction.atomic
    def review(cls, package_id, index: int, status: str, *, reviewed_by: str, note: str = "") -> Dict[str, Any]:
        if status not in cls.REVIEW_STATUSES:
            raise PackageError("status must be reviewed or rejected")
        package = Package.objects.select_for_update().filter(id=package_id).first()
        if not package:
            raise PackageNotFound("Package not found")
        records = list(package.invoice_records or [])
        if index < 0 or index >= len(records):
            raise PackageNotFound("Invoice not found")
        record = dict(records[index])
        record.update(status=status, reviewed_by=reviewed_by, reviewed_at=timezone.now().isoformat())
        if note:
            record["review_note"] = note
        records[index] = record
        package.invoice_records = records
        package.save(update_fields=["invoice_records", "updated_at"])
        return record


@dataclass
class IngestResult:
    tracking_number: str
    ok: bool
    error: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"trackingNumber": self.tracking_number, "ok": self.ok}
        if self.error:
            data["error"] = self.error
        return data


class BatchIngestor:
    """Upsert loosely typed package records one at a time.

    ``field_map`` translates incoming keys to package fields. Every record goes
    through the status transition handler, so each one gets its own savepoint and
    history is only extended on a real status change.
    """

    missing_error = "Missing tracking number or user code"
    default_status = PackageStatus.AT_WAREHOUSE

    def __init__(self, field_map: Dict[str, str], *, note: str, updated_by: str, notify_new: bool = False):
        self.field_map = field_map
        self.note = note
        self.updated_by = updated_by
        self.notify_new = notify_new

    def map_fields(self, record: Dict[str, Any]) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        for source, target in self.field_map.items():
            if source in record and not is_blank(record[source]) and target not in values:
                values[target] = record[source]
        return values

    def resolve_status(self, record: Dict[str, Any]) -> str:
        return self.default_status

    def extra_fields(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return {}

    def ingest(self, items: Iterable[Any]) -> Dict[str, Any]:
        items = list(items)
        results = [self.ingest_one(item) for item in items]
        succeeded = sum(1 for r in results if r.ok)
        return {
            "ok": True,
            "processed": len(items),
            "succeeded": succeeded,
            "failed": len(results) - succeeded,
            "results": [r.as_dict() for r in results],
        }

    def ingest_one(self, record: Any) -> IngestResult:
        if not isinstance(record, dict):
            return IngestResult("", False, "Invalid record")
        values = self.map_fields(record)
        tracking_number = str(values.pop("tracking_number", "") or "").strip()
        user_code = str(values.pop("user_code", "") or "").strip()
        if not tracking_number or not user_code:
            return IngestResult(tracking_number, False, self.missing_error)

        customer = User.objects.get_customer_by_code(user_code)
        if customer is None:
            return IngestResult(tracking_number, False, "Customer not found")

        values.update(self.extra_fields(record))
        values["user_code"] = customer.user_code
        try:
            result = PackageService.apply_status_update(
                tracking_number,
                self.resolve_status(record),
                note=self.note,
                fields=values,
                updated_by=self.updated_by,
                strict=False,
            )
        except PackageError as exc:
            return IngestResult(tracking_number, False, str(exc))
        except Exception as exc:
            logger.exception("Ingestion failed for tracking=%s", tracking_number)
            return IngestResult(tracking_number, False, str(exc) or "Unknown error")

        if self.notify_new and result.created:
            PackageService._notify(NotificationService.notify_new_package, result.package)
        return IngestResult(tracking_number, True)


WAREHOUSE_FIELD_MAP = {
    "tracking_number": "tracking_number",
    "trackingNumber": "tracking_number",
    "user_code": "user_code",
    "userCode": "user_code",
    "weight": "weight",
    "shipper": "shipper",
    "description": "description",
    "length": "length",
    "width": "width",
    "height": "height",
    "pieces": "pieces",
    "branch": "branch",
    "warehouse": "branch",
    "received_by": "entry_staff",
    "receivedBy": "entry_staff",
    "control_number": "control_number",
    "controlNumber": "control_number",
}


def warehouse_bulk_ingestor(updated_by: str) -> BatchIngestor:
    return BatchIngestor(
        WAREHOUSE_FIELD_MAP,
        note="Bulk upload - Received at warehouse",
        updated_by=updated_by,
        notify_new=True,
    )


class ManifestService:
    TEXT_FIELDS = (
        "description",
        "courier_id",
        "service_type_id",
        "service_type_name",
        "status_label",
        "code",
        "manifest_number",
        "staff_name",
        "awb_number",
    )

    @classmethod
    @transaction.atomic
    def upsert(
        cls,
        manifest_id: str,
        values: Optional[Dict[str, Any]] = None,
        *,
        package_awbs: Iterable[str] = (),
        collection_codes: Iterable[str] = (),
        raw_payload: Optional[Dict[str, Any]] = None,
        strict: bool = True,
    ) -> Tuple[Manifest, bool, int]:
        """Create or merge a manifest and attach packages by tracking or control number."""
        manifest_id = (manifest_id or "").strip()
        if not manifest_id:
            raise PackageError("manifest_id is required")
        values = values or {}
        awbs = [str(a).strip() for a in package_awbs if isinstance(a, str) and a.strip()]
        codes = [str(c).strip() for c in collection_codes if isinstance(c, str) and c.strip()]

        manifest, created = Manifest.objects.select_for_update().get_or_create(manifest_id=manifest_id)
        for field in cls.TEXT_FIELDS:
            if not is_blank(values.get(field)):
                setattr(manifest, field, str(values[field]).strip())
        converters = {
            "flight_date": to_datetime,
            "entry_date": to_datetime,
            "weight": to_decimal,
            "item_count": lambda value, field: int(to_decimal(value, field)),
        }
        for field, convert in converters.items():
            if is_blank(values.get(field)):
                continue
            try:
                setattr(manifest, field, convert(values[field], field))
            except PackageError:
                if strict:
                    raise
                logger.warning("Skipping unparseable manifest %s=%r", field, values[field])
        if values.get("status_code") is not None:
            manifest.status_code = values["status_code"]
        if awbs:
            manifest.package_awbs = list(dict.fromkeys(list(manifest.package_awbs or []) + awbs))
        if codes:
            manifest.collection_codes = list(dict.fromkeys(list(manifest.collection_codes or []) + codes))
        if raw_payload is not None:
            manifest.raw_payload = raw_payload
        manifest.save()

        linked = 0
        if awbs or codes:
            linked = Package.objects.filter(Q(tracking_number__in=awbs) | Q(control_number__in=codes)).update(
                manifest=manifest, updated_at=timezone.now()
            )
        return manifest, created, linked

    @staticmethod
    def apply_status(manifest: Manifest, status: str, *, note: str = "", updated_by: str = "warehouse") -> List[StatusUpdateResult]:
        """Push one status through the transition handler for every package on the manifest."""
        tracking_numbers = list(
            manifest.packages.exclude(status=PackageStatus.DELETED).values_list("tracking_number", flat=True)
        )
        return [
            PackageService.apply_status_update(
                tracking_number,
                status,
                note=note or f"Manifest {manifest.manifest_id} updated",
                updated_by=updated_by,
            )
            for tracking_number in tracking_numbers
        ]
