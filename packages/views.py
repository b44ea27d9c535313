from django.db.models import Count, Q
from rest_framework import permissions, status
from rest_framework.generics import ListAPIView, RetrieveAPIView
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response
from rest_framework.views import APIView

from account.permissions import IsAdminRole, IsCustomer
from integrations.models import ApiKey
from integrations.permissions import IsWarehouseOrApiKey, actor_label

from .models import Manifest, Package, PreAlert
from .serializers import (
    AddPackageSerializer,
    BulkUploadSerializer,
    DeletePackageSerializer,
    InvoiceReviewSerializer,
    LinkPackageSerializer,
    ManifestSerializer,
    ManifestUpdateSerializer,
    PackageDetailSerializer,
    PackageSerializer,
    PreAlertDecisionSerializer,
    PreAlertSerializer,
    StatusUpdateSerializer,
    TrackingSerializer,
)
from .services import (
    InvoiceService,
    ManifestService,
    PackageError,
    PackageService,
    PreAlertService,
    warehouse_bulk_ingestor,
)
from .status import INTERNAL_TO_UI, PackageStatus, UiStatus, is_internal_status, is_ui_status, ui_to_internal


class PackagePagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = "page_size"
    max_page_size = 200


def error_response(exc: PackageError) -> Response:
    return Response({"detail": str(exc)}, status=exc.status_code)


def filter_by_status(qs, value):
    """Accept either vocabulary: internal values match exactly, UI values match every internal value behind them."""
    value = (value or "").strip()
    if not value:
        return qs
    if is_internal_status(value):
        return qs.filter(status=value)
    if is_ui_status(value):
        internal = [s.value for s, ui in INTERNAL_TO_UI.items() if ui == value]
        return qs.filter(status__in=internal)
    return qs.none()


def filter_packages(qs, params):
    qs = filter_by_status(qs, params.get("status"))
    user_code = (params.get("user_code") or "").strip()
    if user_code:
        qs = qs.filter(user_code__iexact=user_code)
    branch = (params.get("branch") or "").strip()
    if branch:
        qs = qs.filter(branch__iexact=branch)
    q = (params.get("q") or "").strip()
    if q:
        qs = qs.filter(
            Q(tracking_number__icontains=q) | Q(shipper__icontains=q) | Q(description__icontains=q)
        )
    return qs


class WarehouseAccessMixin:
    permission_classes = [IsWarehouseOrApiKey]

    @property
    def required_key_permissions(self):
        if self.request.method in permissions.SAFE_METHODS:
            return (ApiKey.Permission.PACKAGES_READ,)
        return (ApiKey.Permission.PACKAGES_WRITE,)


# Customer

class CustomerPackageListView(ListAPIView):
    permission_classes = [permissions.IsAuthenticated, IsCustomer]
    serializer_class = PackageSerializer
    pagination_class = PackagePagination

    def get_queryset(self):
        qs = Package.objects.filter(user_code__iexact=self.request.user.user_code).exclude(
            status=PackageStatus.DELETED
        )
        params = self.request.query_params
        qs = filter_by_status(qs, params.get("status"))
        q = (params.get("q") or "").strip()
        if q:
            qs = qs.filter(Q(tracking_number__icontains=q) | Q(shipper__icontains=q))
        return qs.select_related("manifest").order_by("-updated_at")


class CustomerPackageDetailView(RetrieveAPIView):
    permission_classes = [permissions.IsAuthenticated, IsCustomer]
    serializer_class = PackageDetailSerializer

    def get_queryset(self):
        return Package.objects.filter(user_code__iexact=self.request.user.user_code)


class CustomerInvoiceUploadView(APIView):
    permission_classes = [permissions.IsAuthenticated, IsCustomer]

    def post(self, request, pk):
        files = request.FILES.getlist("files") + request.FILES.getlist("invoice")
        data = request.data
        metadata = {
            "invoice_number": data.get("invoice_number") or data.get("invoiceNumber"),
            "invoice_date": data.get("invoice_date") or data.get("invoiceDate"),
            "total_value": data.get("total_value") or data.get("totalValue"),
            "currency": data.get("currency"),
            "items": data.get("items"),
        }
        try:
            package = InvoiceService.upload(pk, request.user, files, metadata)
        except PackageError as exc:
            return error_response(exc)
        return Response(
            {
                "ok": True,
                "package_id": str(package.id),
                "invoice_documents": package.invoice_documents,
                "invoice_records": package.invoice_records,
            },
            status=status.HTTP_201_CREATED,
        )


class CustomerPreAlertView(ListAPIView):
    permission_classes = [permissions.IsAuthenticated, IsCustomer]
    serializer_class = PreAlertSerializer

    def get_queryset(self):
        return PreAlert.objects.filter(customer=self.request.user).order_by("-created_at")

    def post(self, request):
        serializer = PreAlertSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            pre_alert = PreAlertService.register(request.user, **serializer.validated_data)
        except PackageError as exc:
            return error_response(exc)
        return Response(PreAlertSerializer(pre_alert).data, status=status.HTTP_201_CREATED)


class CustomerDashboardView(APIView):
    permission_classes = [permissions.IsAuthenticated, IsCustomer]

    def get(self, request):
        qs = Package.objects.filter(user_code__iexact=request.user.user_code).exclude(status=PackageStatus.DELETED)
        counts = {ui.value: 0 for ui in UiStatus}
        for row in qs.values("status").annotate(total=Count("id")):
            counts[INTERNAL_TO_UI[PackageStatus(row["status"])].value] += row["total"]
        awaiting_invoice = sum(
            1
            for docs, pkg_status in qs.values_list("invoice_documents", "status")
            if not docs and pkg_status != PackageStatus.DELIVERED
        )
        recent = PackageSerializer(qs.order_by("-updated_at")[:5], many=True).data
        return Response(
            {
                "user_code": request.user.user_code,
                "total": sum(counts.values()),
                "by_status": counts,
                "awaiting_invoice": awaiting_invoice,
                "recent": recent,
            }
        )


# Public

class TrackingView(APIView):
    permission_classes = [permissions.AllowAny]

    def get(self, request, tracking_number):
        package = (
            Package.objects.filter(tracking_number=tracking_number.strip())
            .exclude(status=PackageStatus.DELETED)
            .first()
        )
        if not package:
            return Response({"detail": "Package not found"}, status=status.HTTP_404_NOT_FOUND)
        return Response(TrackingSerializer(package).data)


# Warehouse

class WarehousePackageView(WarehouseAccessMixin, ListAPIView):
    serializer_class = PackageSerializer
    pagination_class = PackagePagination

    def get_queryset(self):
        qs = Package.objects.select_related("manifest").order_by("-updated_at")
        if self.request.query_params.get("include_deleted") not in {"1", "true"}:
            qs = qs.exclude(status=PackageStatus.DELETED)
        return filter_packages(qs, self.request.query_params)

    def post(self, request):
        serializer = AddPackageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            result = PackageService.add_package(
                serializer.validated_data["tracking_number"],
                fields=serializer.package_fields(),
                note=serializer.validated_data.get("note", ""),
                updated_by=actor_label(request),
            )
        except PackageError as exc:
            return error_response(exc)
        code = status.HTTP_201_CREATED if result.created else status.HTTP_200_OK
        return Response(PackageDetailSerializer(result.package).data, status=code)


class StatusUpdateView(WarehouseAccessMixin, APIView):
    def post(self, request):
        serializer = StatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        updated_by = actor_label(request)
        location = (data.get("location") or "").strip()
        try:
            result = PackageService.apply_status_update(
                data["tracking_number"],
                serializer.resolved_status,
                note=data.get("note", ""),
                location=location,
                fields=serializer.package_fields(),
                updated_by=updated_by,
            )
        except PackageError as exc:
            return error_response(exc)

        package = result.package
        return Response(
            {
                "tracking_number": package.tracking_number,
                "new_status": package.ui_status,
                "status": package.status,
                "location": location or package.branch or None,
                "notes": data.get("note") or None,
                "updated_by": updated_by,
                "timestamp": package.updated_at.isoformat(),
                "history_length": len(package.history),
            },
            status=status.HTTP_200_OK,
        )


class BulkUploadView(WarehouseAccessMixin, APIView):
    def post(self, request):
        serializer = BulkUploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        summary = warehouse_bulk_ingestor(actor_label(request)).ingest(serializer.validated_data["packages"])
        return Response(summary, status=status.HTTP_200_OK)


class UnknownPackageListView(WarehouseAccessMixin, ListAPIView):
    serializer_class = PackageSerializer
    pagination_class = PackagePagination

    def get_queryset(self):
        return PackageService.unknown_packages()


class LinkPackageView(WarehouseAccessMixin, APIView):
    def post(self, request, pk):
        serializer = LinkPackageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            result = PackageService.link_to_customer(
                pk, serializer.validated_data["user_code"], updated_by=actor_label(request)
            )
        except PackageError as exc:
            return error_response(exc)
        return Response(PackageDetailSerializer(result.package).data)


class DeletePackageView(WarehouseAccessMixin, APIView):
    def post(self, request):
        serializer = DeletePackageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            result = PackageService.soft_delete(
                serializer.validated_data["tracking_number"],
                note=serializer.validated_data.get("note", ""),
                updated_by=actor_label(request),
            )
        except PackageError as exc:
            return error_response(exc)
        return Response(
            {"tracking_number": result.package.tracking_number, "status": result.package.status, "deleted": True}
        )


class PackageSearchView(WarehouseAccessMixin, APIView):
    def get(self, request):
        results = PackageService.search(request.query_params.get("q", ""))
        return Response({"results": PackageSerializer(results, many=True).data})


class PackageExistsView(WarehouseAccessMixin, APIView):
    def get(self, request):
        tracking_number = (request.query_params.get("tracking_number") or "").strip()
        if not tracking_number:
            return Response({"detail": "tracking_number is required"}, status=status.HTTP_400_BAD_REQUEST)
        package = Package.objects.filter(tracking_number=tracking_number).only("id", "status", "user_code").first()
        return Response(
            {
                "tracking_number": tracking_number,
                "exists": package is not None,
                "status": package.status if package else None,
                "user_code": package.user_code if package else None,
            }
        )


class ManifestListView(WarehouseAccessMixin, ListAPIView):
    serializer_class = ManifestSerializer
    pagination_class = PackagePagination

    def get_queryset(self):
        return Manifest.objects.annotate(package_count=Count("packages")).order_by("-created_at")


class ManifestUpdateView(WarehouseAccessMixin, APIView):
    required_key_permissions = (ApiKey.Permission.MANIFESTS_WRITE,)

    def post(self, request):
        serializer = ManifestUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        target = ui_to_internal(data["status_ui"]) if "status_ui" in data else data.get("status")
        updated_by = actor_label(request)
        try:
            manifest, created, linked = ManifestService.upsert(
                data["manifest_id"],
                {
                    "description": data.get("description"),
                    "flight_date": data.get("flight_date"),
                    "awb_number": data.get("awb_number"),
                    "staff_name": updated_by,
                },
                package_awbs=data["tracking_numbers"],
            )
            updated = []
            if target:
                updated = ManifestService.apply_status(
                    manifest, target, note=data.get("note", ""), updated_by=updated_by
                )
        except PackageError as exc:
            return error_response(exc)
        return Response(
            {
                "ok": True,
                "created": created,
                "linked": linked,
                "status_applied": target,
                "packages_updated": len(updated),
                "manifest": ManifestSerializer(manifest).data,
            }
        )


# Admin

class AdminPackageView(ListAPIView):
    permission_classes = [permissions.IsAuthenticated, IsAdminRole]
    serializer_class = PackageSerializer
    pagination_class = PackagePagination

    def get_queryset(self):
        qs = Package.objects.select_related("manifest").order_by("-updated_at")
        return filter_packages(qs, self.request.query_params)

    def post(self, request):
        serializer = AddPackageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            result = PackageService.add_package(
                serializer.validated_data["tracking_number"],
                fields=serializer.package_fields(),
                note=serializer.validated_data.get("note", ""),
                updated_by=actor_label(request),
            )
        except PackageError as exc:
            return error_response(exc)
        code = status.HTTP_201_CREATED if result.created else status.HTTP_200_OK
        return Response(PackageDetailSerializer(result.package).data, status=code)


class AdminPackageDetailView(RetrieveAPIView):
    permission_classes = [permissions.IsAuthenticated, IsAdminRole]
    serializer_class = PackageDetailSerializer
    queryset = Package.objects.all()


class AdminInvoiceReviewView(APIView):
    permission_classes = [permissions.IsAuthenticated, IsAdminRole]

    def post(self, request, pk, index):
        serializer = InvoiceReviewSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            record = InvoiceService.review(
                pk,
                index,
                serializer.validated_data["status"],
                reviewed_by=actor_label(request),
                note=serializer.validated_data.get("note", ""),
            )
        except PackageError as exc:
            return error_response(exc)
        return Response(record)


class AdminPreAlertListView(ListAPIView):
    permission_classes = [permissions.IsAuthenticated, IsAdminRole]
    serializer_class = PreAlertSerializer
    pagination_class = PackagePagination

    def get_queryset(self):
        qs = PreAlert.objects.all().order_by("-created_at")
        pre_alert_status = (self.request.query_params.get("status") or "").strip()
        if pre_alert_status:
            qs = qs.filter(status=pre_alert_status)
        return qs


class AdminPreAlertDecisionView(APIView):
    permission_classes = [permissions.IsAuthenticated, IsAdminRole]

    def post(self, request, pk):
        serializer = PreAlertDecisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        pre_alert = PreAlert.objects.filter(id=pk).first()
        if not pre_alert:
            return Response({"detail": "Pre-alert not found"}, status=status.HTTP_404_NOT_FOUND)
        try:
            pre_alert = PreAlertService.decide(
                pre_alert, serializer.validated_data["decision"], decided_by=request.user
            )
        except PackageError as exc:
            return error_response(exc)
        return Response(PreAlertSerializer(pre_alert).data)
