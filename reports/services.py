"""Read-only projections over packages, customers and pre-alerts.

Everything here groups and counts; nothing writes. Percentages are computed
with ``safe_ratio`` so an empty table reports zeros instead of failing.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, time, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from django.contrib.auth import get_user_model
from django.db.models import Avg, Count, Q, Sum
from django.db.models.functions import TruncDate
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from packages.models import Package, PreAlert
from packages.status import PackageStatus, internal_to_ui

logger = logging.getLogger(__name__)

User = get_user_model()

EXPORT_LIMIT = 5000


class ReportError(Exception):
    status_code = 400


def safe_ratio(numerator, denominator) -> float:
    """Division where a zero (or missing) denominator counts as 1."""
    return float(numerator or 0) / float(denominator or 1)


def percentage(part, total) -> float:
    return round(safe_ratio(part, total) * 100, 2)


def _bound(value: Optional[str], field: str, *, end: bool) -> Optional[datetime]:
    value = (value or "").strip()
    if not value:
        return None
    parsed = parse_datetime(value)
    if parsed is None:
        day = parse_date(value)
        if day is None:
            raise ReportError(f"Invalid date for {field}")
        # a bare end date covers the whole day
        parsed = datetime.combine(day, time.max if end else time.min)
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


def parse_period(start: Optional[str], end: Optional[str]) -> Tuple[Optional[datetime], Optional[datetime]]:
    try:
        start_at = _bound(start, "start", end=False)
        end_at = _bound(end, "end", end=True)
    except ValueError:
        raise ReportError("Invalid date range") from None
    if start_at and end_at and end_at < start_at:
        raise ReportError("end must not be before start")
    return start_at, end_at


def in_period(qs, start_at, end_at, field: str = "created_at"):
    if start_at:
        qs = qs.filter(**{f"{field}__gte": start_at})
    if end_at:
        qs = qs.filter(**{f"{field}__lte": end_at})
    return qs


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def _number(value) -> float:
    return float(value or 0)


def status_breakdown(qs) -> List[Dict[str, Any]]:
    counts = dict(qs.values_list("status").annotate(total=Count("id")).order_by())
    total = sum(counts.values())
    return [
        {
            "status": status,
            "ui_status": internal_to_ui(status),
            "count": counts.get(status, 0),
            "percentage": percentage(counts.get(status, 0), total),
        }
        for status in PackageStatus.values
    ]


def latest_invoice_total(records: Iterable[Dict[str, Any]]) -> float:
    records = [r for r in records or [] if isinstance(r, dict)]
    if not records:
        return 0.0
    try:
        return float(records[-1].get("total_value") or 0)
    except (TypeError, ValueError):
        return 0.0


class ReportService:
    @staticmethod
    def live_packages():
        return Package.objects.exclude(status=PackageStatus.DELETED)

    @classmethod
    def admin_dashboard(cls) -> Dict[str, Any]:
        now = timezone.now()
        start_of_today = timezone.localtime(now).replace(hour=0, minute=0, second=0, microsecond=0)
        start_of_week = start_of_today - timedelta(days=start_of_today.weekday())
        packages = cls.live_packages()

        total_packages = packages.count()
        delivered = packages.filter(status=PackageStatus.DELIVERED).count()
        revenue = sum(latest_invoice_total(records) for records in packages.values_list("invoice_records", flat=True))
        recent = packages.order_by("-created_at")[:10]
        pre_alerts = PreAlert.objects.order_by("-created_at")[:10]

        return {
            "total_packages": total_packages,
            "new_today": packages.filter(created_at__gte=start_of_today).count(),
            "pending_pre_alerts": PreAlert.objects.filter(status=PreAlert.Status.SUBMITTED).count(),
            "unknown_packages": packages.filter(Q(status=PackageStatus.UNKNOWN) | Q(user_code="")).count(),
            "ready_for_pickup": packages.filter(status=PackageStatus.AT_LOCAL_PORT).count(),
            "awaiting_invoice": sum(
                1 for docs, records in packages.values_list("invoice_documents", "invoice_records") if not docs and not records
            ),
            "delivery_rate": percentage(delivered, total_packages),
            "declared_value_total": round(revenue, 2),
            "by_status": status_breakdown(packages),
            "recent_packages": [
                {
                    "tracking_number": p.tracking_number,
                    "user_code": p.user_code,
                    "status": p.status,
                    "created_at": _iso(p.created_at),
                }
                for p in recent
            ],
            "recent_pre_alerts": [
                {"tracking_number": a.tracking_number, "status": a.status, "created_at": _iso(a.created_at)}
                for a in pre_alerts
            ],
            "stats": {
                "total_customers": User.objects.customers().count(),
                "active_staff": User.objects.filter(role__in=[User.Role.WAREHOUSE, User.Role.ADMIN]).count(),
                "weekly_packages": packages.filter(created_at__gte=start_of_week).count(),
                "new_customers_this_week": User.objects.customers().filter(created_at__gte=start_of_week).count(),
            },
        }

    @classmethod
    def warehouse_analytics(cls) -> Dict[str, Any]:
        now = timezone.localtime()
        start_of_today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        start_of_month = start_of_today.replace(day=1)
        packages = Package.objects.all()

        today = packages.filter(created_at__gte=start_of_today).aggregate(total=Count("id"), weight=Sum("weight"))
        weekly = (
            packages.filter(created_at__gte=now - timedelta(days=7))
            .annotate(day=TruncDate("created_at"))
            .values("day")
            .annotate(count=Count("id"))
            .order_by("day")
        )
        monthly = packages.filter(created_at__gte=start_of_month).aggregate(
            total=Count("id"),
            delivered=Count("id", filter=Q(status=PackageStatus.DELIVERED)),
            in_transit=Count("id", filter=Q(status=PackageStatus.IN_TRANSIT)),
        )
        top_customers = (
            packages.exclude(user_code="")
            .values("user_code")
            .annotate(package_count=Count("id"), total_weight=Sum("weight"))
            .order_by("-package_count", "user_code")[:10]
        )

        return {
            "status_counts": status_breakdown(packages),
            "today": {"packages": today["total"], "weight": _number(today["weight"])},
            "weekly_trend": [{"date": row["day"].isoformat(), "count": row["count"]} for row in weekly],
            "monthly": {**monthly, "delivery_rate": percentage(monthly["delivered"], monthly["total"])},
            "top_customers": [
                {
                    "user_code": row["user_code"],
                    "package_count": row["package_count"],
                    "total_weight": _number(row["total_weight"]),
                }
                for row in top_customers
            ],
            "total_customers": User.objects.customers().count(),
        }

    WAREHOUSE_REPORTS = ("summary", "daily", "customer", "shipper", "branch")

    @classmethod
    def warehouse_report(cls, report_type: str, start_at=None, end_at=None) -> Dict[str, Any]:
        if report_type not in cls.WAREHOUSE_REPORTS:
            raise ReportError(f"Invalid report type: {report_type}")
        packages = in_period(Package.objects.all(), start_at, end_at)
        payload: Dict[str, Any] = {
            "report_type": report_type,
            "period": {"start": _iso(start_at), "end": _iso(end_at)},
        }

        if report_type == "summary":
            totals = packages.aggregate(total=Count("id"), weight=Sum("weight"), average=Avg("weight"))
            payload.update(
                total_packages=totals["total"],
                by_status=status_breakdown(packages),
                total_weight=_number(totals["weight"]),
                average_weight=round(_number(totals["average"]), 2),
            )
            return payload

        if report_type == "daily":
            rows = (
                packages.annotate(day=TruncDate("created_at"))
                .values("day")
                .annotate(count=Count("id"), weight=Sum("weight"))
                .order_by("day")
            )
            payload["data"] = [
                {"date": row["day"].isoformat(), "packages": row["count"], "weight": _number(row["weight"])}
                for row in rows
            ]
            return payload

        group_field = {"customer": "user_code", "shipper": "shipper", "branch": "branch"}[report_type]
        total = packages.count()
        rows = (
            packages.exclude(**{group_field: ""})
            .values(group_field)
            .annotate(
                total_packages=Count("id"),
                total_weight=Sum("weight"),
                average_weight=Avg("weight"),
                delivered=Count("id", filter=Q(status=PackageStatus.DELIVERED)),
                in_transit=Count("id", filter=Q(status=PackageStatus.IN_TRANSIT)),
            )
            .order_by("-total_packages", group_field)[:50]
        )
        payload["data"] = [
            {
                group_field: row[group_field],
                "total_packages": row["total_packages"],
                "share": percentage(row["total_packages"], total),
                "total_weight": _number(row["total_weight"]),
                "average_weight": round(_number(row["average_weight"]), 2),
                "delivered": row["delivered"],
                "in_transit": row["in_transit"],
                "delivery_rate": percentage(row["delivered"], row["total_packages"]),
            }
            for row in rows
        ]
        return payload

    ADMIN_REPORTS = ("packages", "customers", "branches", "revenue")

    @classmethod
    def admin_report(cls, report_type: str, start_at=None, end_at=None) -> List[Dict[str, Any]]:
        """Flat rows, ready for JSON or CSV export."""
        if report_type not in cls.ADMIN_REPORTS:
            raise ReportError(f"Unknown report type: {report_type}")
        builder = getattr(cls, f"_{report_type}_rows")
        rows = builder(start_at, end_at)
        logger.info("Built %s report with %d rows", report_type, len(rows))
        return rows

    @classmethod
    def _packages_rows(cls, start_at, end_at):
        packages = in_period(cls.live_packages(), start_at, end_at).order_by("-created_at")[:EXPORT_LIMIT]
        return [
            {
                "tracking_number": p.tracking_number,
                "user_code": p.user_code or None,
                "status": p.status,
                "ui_status": p.ui_status,
                "branch": p.branch or None,
                "weight": float(p.weight) if p.weight is not None else None,
                "created_at": _iso(p.created_at),
                "updated_at": _iso(p.updated_at),
            }
            for p in packages
        ]

    @staticmethod
    def _customers_rows(start_at, end_at):
        customers = in_period(User.objects.customers(), start_at, end_at).annotate(
            package_count=Count("packages", filter=~Q(packages__status=PackageStatus.DELETED))
        )
        return [
            {
                "user_code": c.user_code,
                "full_name": c.full_name,
                "email": c.email,
                "branch": c.branch or None,
                "account_status": c.account_status,
                "package_count": c.package_count,
                "created_at": _iso(c.created_at),
                "last_login": _iso(c.last_login),
            }
            for c in customers.order_by("-created_at")[:EXPORT_LIMIT]
        ]

    @classmethod
    def _branches_rows(cls, start_at, end_at):
        packages = in_period(cls.live_packages(), start_at, end_at)
        total = packages.count()
        rows = (
            packages.values("branch")
            .annotate(
                packages=Count("id"),
                weight=Sum("weight"),
                delivered=Count("id", filter=Q(status=PackageStatus.DELIVERED)),
            )
            .order_by("-packages", "branch")
        )
        return [
            {
                "branch": row["branch"] or "Unassigned",
                "packages": row["packages"],
                "share": percentage(row["packages"], total),
                "total_weight": _number(row["weight"]),
                "delivered": row["delivered"],
                "delivery_rate": percentage(row["delivered"], row["packages"]),
            }
            for row in rows
        ]

    @classmethod
    def _revenue_rows(cls, start_at, end_at):
        """Declared invoice value per month and currency, counting each package's latest record."""
        totals: Dict[Tuple[str, str], Dict[str, Any]] = defaultdict(lambda: {"invoices": 0, "total": Decimal("0")})
        packages = in_period(cls.live_packages(), start_at, end_at)
        for created_at, records in packages.values_list("created_at", "invoice_records"):
            records = [r for r in records or [] if isinstance(r, dict)]
            if not records:
                continue
            latest = records[-1]
            month = timezone.localtime(created_at).strftime("%Y-%m")
            currency = str(latest.get("currency") or "USD")
            bucket = totals[(month, currency)]
            bucket["invoices"] += 1
            bucket["total"] += Decimal(str(latest_invoice_total(records)))
        return [
            {
                "month": month,
                "currency": currency,
                "invoices": bucket["invoices"],
                "total": float(bucket["total"].quantize(Decimal("0.01"))),
                "average": round(safe_ratio(bucket["total"], bucket["invoices"]), 2),
            }
            for (month, currency), bucket in sorted(totals.items())
        ]
