"""
System settings API URLs.
"""
from django.urls import path
from apps.system_settings.views import (
    CoreSystemConfigView,
    SecurityFrameworkView,
    SecurityStatusView,
    IPCheckView,
    MaskDataView,
    ComplianceReportView,
    KeyRotationView,
    EnterpriseInfraView,
    InfraValidationView,
    InfraStatusView,
    SettingsRollbackView,
    NTPSyncView,
)

app_name = 'system_settings'

urlpatterns = [
    path('system-settings/core/', CoreSystemConfigView.as_view(), name='core-config'),
    path('system-settings/security/', SecurityFrameworkView.as_view(), name='security-framework'),
    path('system-settings/security/status/', SecurityStatusView.as_view(), name='security-status'),
    path('system-settings/security/ip-check/', IPCheckView.as_view(), name='security-ip-check'),
    path('system-settings/security/mask/', MaskDataView.as_view(), name='security-mask'),
    path('system-settings/security/compliance-report/', ComplianceReportView.as_view(), name='compliance-report'),
    path('system-settings/security/rotate-key/', KeyRotationView.as_view(), name='security-rotate-key'),
    path('system-settings/infra/', EnterpriseInfraView.as_view(), name='enterprise-infra'),
    path('system-settings/infra/validate/', InfraValidationView.as_view(), name='infra-validate'),
    path('system-settings/infra/status/', InfraStatusView.as_view(), name='infra-status'),
    path('system-settings/rollback/', SettingsRollbackView.as_view(), name='settings-rollback'),
    path('system-settings/ntp-sync/', NTPSyncView.as_view(), name='ntp-sync'),
]
