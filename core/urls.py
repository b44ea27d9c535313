

from django.contrib import admin
from django.urls import path, include



urlpatterns = [
    path("admin/", admin.site.urls),
    path('api/auth/', include('account.urls')),
    path('api/', include('packages.urls')),
    path('api/', include('integrations.urls')),
    path('api/', include('notifications.urls')),
    path('api/', include('rates.urls')),
    path('api/', include('reports.urls')),
]
