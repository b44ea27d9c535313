from django.contrib.auth import get_user_model
from rest_framework import permissions, status
from rest_framework.generics import ListAPIView
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response
from rest_framework.views import APIView

from account.permissions import IsAdminRole, IsCustomer

from .models import Broadcast, Message
from .serializers import BroadcastSerializer, MessageSerializer, SupportReplySerializer
from .services import BroadcastService

User = get_user_model()


class MessagePagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = "page_size"
    max_page_size = 100


class CustomerMessageView(ListAPIView):
    """A customer's support thread. Listing marks support replies as read."""

    permission_classes = [permissions.IsAuthenticated, IsCustomer]
    serializer_class = MessageSerializer
    pagination_class = MessagePagination

    def get_queryset(self):
        return Message.objects.filter(user_code=self.request.user.user_code).order_by("-created_at")

    def list(self, request, *args, **kwargs):
        response = super().list(request, *args, **kwargs)
        self.get_queryset().filter(sender=Message.Sender.SUPPORT, is_read=False).update(is_read=True)
        return response

    def post(self, request):
        serializer = MessageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        message = serializer.save(
            customer=request.user,
            user_code=request.user.user_code,
            sender=Message.Sender.CUSTOMER,
        )
        return Response(MessageSerializer(message).data, status=status.HTTP_201_CREATED)


class AdminMessageView(ListAPIView):
    permission_classes = [permissions.IsAuthenticated, IsAdminRole]
    serializer_class = MessageSerializer
    pagination_class = MessagePagination

    def get_queryset(self):
        qs = Message.objects.all().order_by("-created_at")
        user_code = (self.request.query_params.get("user_code") or "").strip()
        if user_code:
            qs = qs.filter(user_code__iexact=user_code)
        if self.request.query_params.get("unread") in {"1", "true"}:
            qs = qs.filter(is_read=False, sender=Message.Sender.CUSTOMER)
        return qs

    def post(self, request):
        serializer = SupportReplySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        customer = User.objects.get_customer_by_code(serializer.validated_data["user_code"])
        if not customer:
            return Response({"detail": "Customer not found"}, status=status.HTTP_404_NOT_FOUND)
        message = Message.objects.create(
            customer=customer,
            user_code=customer.user_code,
            subject=serializer.validated_data.get("subject", ""),
            body=serializer.validated_data["body"],
            sender=Message.Sender.SUPPORT,
        )
        return Response(MessageSerializer(message).data, status=status.HTTP_201_CREATED)


class AdminMessageReadView(APIView):
    permission_classes = [permissions.IsAuthenticated, IsAdminRole]

    def patch(self, request, pk):
        message = Message.objects.filter(id=pk).first()
        if not message:
            return Response({"detail": "Message not found"}, status=status.HTTP_404_NOT_FOUND)
        if not message.is_read:
            message.is_read = True
            message.save(update_fields=["is_read"])
        return Response({"id": str(message.id), "is_read": message.is_read})


class BroadcastView(ListAPIView):
    permission_classes = [permissions.IsAuthenticated, IsAdminRole]
    serializer_class = BroadcastSerializer

    def get_queryset(self):
        return Broadcast.objects.all().order_by("-created_at")[:100]

    def post(self, request):
        serializer = BroadcastSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        broadcast = BroadcastService.create_and_send(
            title=data["title"],
            body=data["body"],
            channels=data.get("channels"),
            scheduled_at=data.get("scheduled_at"),
            created_by=request.user,
        )
        broadcast.refresh_from_db()
        return Response(BroadcastSerializer(broadcast).data, status=status.HTTP_201_CREATED)
