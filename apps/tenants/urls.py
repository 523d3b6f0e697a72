"""
Feature flag API URLs.
"""
from django.urls import path
from apps.tenants.views import (
    FeatureFlagListView,
    FeatureFlagBulkCreateView,
    FeatureFlagDetailView,
    FeatureFlagToggleView,
)

app_name = 'tenants'

urlpatterns = [
    path('feature-flags/', FeatureFlagListView.as_view(), name='feature-flag-list'),
    path('feature-flags/bulk/', FeatureFlagBulkCreateView.as_view(), name='feature-flag-bulk-create'),
    path('feature-flags/<str:flag_name>/', FeatureFlagDetailView.as_view(), name='feature-flag-detail'),
    path('feature-flags/<str:flag_name>/toggle/', FeatureFlagToggleView.as_view(), name='feature-flag-toggle'),
]
