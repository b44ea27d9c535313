from django.db.models import Q
from rest_framework import permissions, status
from rest_framework.generics import CreateAPIView, ListAPIView, ListCreateAPIView, RetrieveUpdateAPIView, RetrieveUpdateDestroyAPIView
from rest_framework.response import Response
from rest_framework.views import APIView
from integrations.models import ApiKey
from integrations.permissions import IsWarehouseOrApiKey

from .permissions import IsAdminRole
from .serializers import *
from django.contrib.auth import get_user_model

User = get_user_model()

class RegisterUserView(CreateAPIView):
    queryset = User.objects.all()
    permission_classes = [permissions.AllowAny]
    serializer_class = UserSerializer


class MeView(RetrieveUpdateAPIView):
    permission_classes = [permissions.IsAuthenticated]
    serializer_class = ProfileSerializer

    def get_object(self):
        return self.request.user


class PasswordChangeView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = PasswordChangeSerializer(data=request.data, context={"request": request})
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response({"message": "Password updated"}, status=status.HTTP_200_OK)


class StaffListCreateView(ListCreateAPIView):
    permission_classes = [permissions.IsAuthenticated, IsAdminRole]
    queryset = User.objects.filter(role__in=[User.Role.WAREHOUSE, User.Role.ADMIN]).order_by("-created_at")
    serializer_class = StaffSerializer


class StaffDetailView(RetrieveUpdateDestroyAPIView):
    permission_classes = [permissions.IsAuthenticated, IsAdminRole]
    queryset = User.objects.filter(role__in=[User.Role.WAREHOUSE, User.Role.ADMIN])
    serializer_class = StaffSerializer


class CustomerDirectoryView(ListAPIView):
    permission_classes = [IsWarehouseOrApiKey]
    required_key_permissions = (ApiKey.Permission.CUSTOMERS_READ,)
    serializer_class = CustomerDirectorySerializer

    def get_queryset(self):
        qs = User.objects.customers().order_by("-created_at")
        q = (self.request.query_params.get("q") or "").strip()
        if q:
            qs = qs.filter(
                Q(user_code__icontains=q)
                | Q(email__icontains=q)
                | Q(first_name__icontains=q)
                | Q(last_name__icontains=q)
            )
        return qs[:500]
