"""
URL configuration for Tenant Warden.
"""
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

urlpatterns = [
    # API Documentation
    path('schema/', SpectacularAPIView.as_view(), name='schema'),
    path('schema/swagger/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),

    # API v1
    path('v1/', include('apps.core.urls')),
    path('v1/', include('apps.rbac.urls')),  # Roles and role permissions
    path('v1/', include('apps.tenants.urls')),  # Feature flags
    path('v1/', include('apps.system_settings.urls')),  # Core config, rollback, NTP sync
    path('v1/', include('apps.audit.urls')),  # Audit log and settings history
]
