"""
RBAC API URLs.
"""
from django.urls import path
from apps.rbac.views import (
    RoleListView,
    RoleBulkCreateView,
    RoleDetailView,
    RolePermissionsView,
)

app_name = 'rbac'

urlpatterns = [
    path('roles/', RoleListView.as_view(), name='role-list'),
    path('roles/bulk/', RoleBulkCreateView.as_view(), name='role-bulk-create'),
    path('roles/<uuid:role_id>/', RoleDetailView.as_view(), name='role-detail'),
    path('roles/<uuid:role_id>/permissions/', RolePermissionsView.as_view(), name='role-permissions'),
]
