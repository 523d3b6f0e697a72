"""
Audit API URLs.
"""
from django.urls import path
from apps.audit.views import (
    AuditLogListView,
    SettingsHistoryListView,
    SettingsHistoryStatsView,
)

app_name = 'audit'

urlpatterns = [
    path('audit/logs/', AuditLogListView.as_view(), name='audit-log-list'),
    path('audit/history/', SettingsHistoryListView.as_view(), name='settings-history-list'),
    path('audit/history/stats/', SettingsHistoryStatsView.as_view(), name='settings-history-stats'),
]
