from django.utils.decorators import method_decorator
from django.views.decorators.csrf import csrf_exempt
from rest_framework import permissions, status
from rest_framework.generics import ListAPIView
from rest_framework.response import Response
from rest_framework.views import APIView

from account.permissions import IsAdminRole

from .models import ApiKey
from .permissions import ApiKeyOnly, actor_label
from .serializers import ApiKeyCreateSerializer, ApiKeySerializer
from .services import (
    CustomerExportService,
    ExternalIngestionService,
    ExternalManifestService,
    IngestionError,
)


@method_decorator(csrf_exempt, name="dispatch")
class ExternalAddPackageView(APIView):
    permission_classes = [ApiKeyOnly]
    required_key_permissions = (ApiKey.Permission.PACKAGES_WRITE,)
    allow_body_token = True

    def post(self, request):
        try:
            items = ExternalIngestionService.unwrap(request.data)
        except IngestionError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        summary = ExternalIngestionService(updated_by=actor_label(request)).ingest_packages(items)
        return Response(summary, status=status.HTTP_200_OK)


@method_decorator(csrf_exempt, name="dispatch")
class ExternalManifestView(APIView):
    permission_classes = [ApiKeyOnly]
    required_key_permissions = (ApiKey.Permission.MANIFESTS_WRITE,)
    allow_body_token = True

    def post(self, request):
        try:
            result = ExternalManifestService.update(request.data)
        except IngestionError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(result, status=status.HTTP_200_OK)


class ExternalCustomerPullView(APIView):
    permission_classes = [ApiKeyOnly]
    required_key_permissions = (ApiKey.Permission.CUSTOMERS_READ,)
    key_query_param = "id"

    def get(self, request):
        return Response(CustomerExportService.export())


class ApiKeyListCreateView(ListAPIView):
    permission_classes = [permissions.IsAuthenticated, IsAdminRole]
    serializer_class = ApiKeySerializer
    queryset = ApiKey.objects.all().order_by("-created_at")

    def post(self, request):
        serializer = ApiKeyCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        api_key, raw_key = ApiKey.generate(
            name=data["name"],
            permissions=data["permissions"],
            expires_at=data.get("expires_at"),
            created_by=request.user,
            environment=data["environment"],
        )
        payload = ApiKeySerializer(api_key).data
        payload["key"] = raw_key
        return Response(payload, status=status.HTTP_201_CREATED)


class ApiKeyDeactivateView(APIView):
    permission_classes = [permissions.IsAuthenticated, IsAdminRole]

    def post(self, request, pk):
        api_key = ApiKey.objects.filter(id=pk).first()
        if not api_key:
            return Response({"detail": "API key not found"}, status=status.HTTP_404_NOT_FOUND)
        if api_key.active:
            api_key.active = False
            api_key.save(update_fields=["active"])
        return Response(ApiKeySerializer(api_key).data)
