from django.urls import path

from .views import AdminMessageReadView, AdminMessageView, BroadcastView, CustomerMessageView


urlpatterns = [
    path("customer/messages/", CustomerMessageView.as_view(), name="customer-messages"),
    path("admin/messages/", AdminMessageView.as_view(), name="admin-messages"),
    path("admin/messages/<uuid:pk>/read/", AdminMessageReadView.as_view(), name="admin-messages-read"),
    path("admin/broadcasts/", BroadcastView.as_view(), name="admin-broadcasts"),
]
