"""
System settings REST API views.
"""
from rest_framework import status, serializers
from rest_framework.views import APIView
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, extend_schema_view
from drf_spectacular.types import OpenApiTypes

from apps.audit.services import AuditService
from apps.core.permissions import requires_permission, requires_role, get_client_ip
from apps.system_settings.modules import EnterpriseInfraService, SecurityFrameworkService
from apps.system_settings.rollback import rollback_settings
from apps.system_settings.services import CoreSystemConfigService, sync_with_ntp_server


class CoreSystemConfigSerializer(serializers.Serializer):
    ntp_server = serializers.CharField(max_length=255, required=False)
    fallback_ntp_servers = serializers.ListField(child=serializers.CharField(max_length=255), required=False)
    sync_interval_minutes = serializers.IntegerField(min_value=1, required=False)
    time_zone = serializers.CharField(max_length=64, required=False)
    date_time_format = serializers.CharField(max_length=64, required=False)


class RollbackSerializer(serializers.Serializer):
    history_id = serializers.UUIDField()


@extend_schema_view(
    get=extend_schema(tags=['System Settings'], summary='Get core system config',
                      responses={200: CoreSystemConfigSerializer}),
    post=extend_schema(tags=['System Settings'], summary='Create core system config',
                       request=CoreSystemConfigSerializer, responses={201: CoreSystemConfigSerializer}),
    patch=extend_schema(tags=['System Settings'], summary='Update core system config',
                        request=CoreSystemConfigSerializer, responses={200: CoreSystemConfigSerializer}),
)
@requires_permission({'GET': 'settings:read', 'POST': 'settings:write', 'PATCH': 'settings:write'})
class CoreSystemConfigView(APIView):
    """
    GET   /v1/system-settings/core/
    POST  /v1/system-settings/core/
    PATCH /v1/system-settings/core/
    """

    def get(self, request):
        config = CoreSystemConfigService.get(request.user.tenant_id)
        return Response(config.to_snapshot())

    def post(self, request):
        serializer = CoreSystemConfigSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        config = CoreSystemConfigService.create(
            tenant_id=request.user.tenant_id,
            data=serializer.validated_data,
            created_by=request.user.id,
            ip_address=get_client_ip(request),
        )
        return Response(config.to_snapshot(), status=status.HTTP_201_CREATED)

    def patch(self, request):
        serializer = CoreSystemConfigSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        config = CoreSystemConfigService.update(
            tenant_id=request.user.tenant_id,
            data=serializer.validated_data,
            updated_by=request.user.id,
            ip_address=get_client_ip(request),
        )
        return Response(config.to_snapshot())


@requires_permission('audit:rollback')
class SettingsRollbackView(APIView):
    """
    POST /v1/system-settings/rollback/

    Restore the value a settings history entry replaced.

    Required permission: audit:rollback
    """

    @extend_schema(
        tags=['System Settings'],
        summary='Roll back a settings change',
        request=RollbackSerializer,
        responses={200: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT}
    )
    def post(self, request):
        serializer = RollbackSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = rollback_settings(
            tenant_id=request.user.tenant_id,
            history_id=serializer.validated_data['history_id'],
            changed_by=request.user.id,
            ip_address=get_client_ip(request),
        )
        return Response(result)


@requires_role('superadmin')
class NTPSyncView(APIView):
    """
    POST /v1/system-settings/ntp-sync/

    Synchronize with the configured NTP servers now. Restricted to the
    superadmin role by name.
    """

    @extend_schema(
        tags=['System Settings'],
        summary='Synchronize time now',
        request=None,
        responses={200: OpenApiTypes.OBJECT, 500: OpenApiTypes.OBJECT}
    )
    def post(self, request):
        result = sync_with_ntp_server(request.user.tenant_id)

        AuditService.record_safely(
            action='MANUAL_SYNC_NTP',
            principal_id=request.user.id,
            module='SystemSettings',
            details={'time': result['time'], 'server': result['server']},
            ip_address=get_client_ip(request),
            tenant_id=request.user.tenant_id,
        )
        return Response(result)


class SecurityFrameworkSerializer(serializers.Serializer):
    authentication_stack = serializers.DictField(required=False)
    encryption = serializers.DictField(required=False)
    ip_geofencing = serializers.DictField(required=False)
    session_governance = serializers.DictField(required=False)
    compliance_suite = serializers.DictField(required=False)
    data_masking = serializers.DictField(required=False)
    token_blacklist = serializers.DictField(required=False)


class EnterpriseInfraSerializer(serializers.Serializer):
    cloud_providers = serializers.ListField(child=serializers.CharField(), required=False)
    data_center_regions = serializers.ListField(child=serializers.CharField(), required=False)
    high_availability_cluster = serializers.DictField(required=False)
    distributed_database = serializers.DictField(required=False)
    automated_backup = serializers.DictField(required=False)
    disaster_recovery = serializers.DictField(required=False)
    ai_driven_load_balancing = serializers.DictField(required=False)
    security_settings = serializers.DictField(required=False)


class IPCheckSerializer(serializers.Serializer):
    ip = serializers.CharField(max_length=64)


class MaskSerializer(serializers.Serializer):
    field = serializers.CharField(max_length=32)
    value = serializers.CharField(allow_blank=True)


class SettingsModuleView(APIView):
    """
    GET, POST, PATCH and DELETE for a per-tenant settings document.
    """

    service = None
    serializer_class = None

    def get(self, request):
        return Response(self.service.get(request.user.tenant_id).to_snapshot())

    def post(self, request):
        serializer = self.serializer_class(data=request.data)
        serializer.is_valid(raise_exception=True)

        config = self.service.create(
            tenant_id=request.user.tenant_id,
            data=serializer.validated_data,
            created_by=request.user.id,
            ip_address=get_client_ip(request),
        )
        return Response(config.to_snapshot(), status=status.HTTP_201_CREATED)

    def patch(self, request):
        serializer = self.serializer_class(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        config = self.service.update(
            tenant_id=request.user.tenant_id,
            data=serializer.validated_data,
            updated_by=request.user.id,
            ip_address=get_client_ip(request),
        )
        return Response(config.to_snapshot())

    def delete(self, request):
        self.service.delete(request.user.tenant_id, deleted_by=request.user.id, ip_address=get_client_ip(request))
        return Response(status=status.HTTP_204_NO_CONTENT)


SETTINGS_PERMISSIONS = {
    'GET': 'settings:read',
    'POST': 'settings:write',
    'PATCH': 'settings:write',
    'DELETE': 'settings:write',
}


@extend_schema_view(
    get=extend_schema(tags=['System Settings'], summary='Get security framework',
                      responses={200: SecurityFrameworkSerializer}),
    post=extend_schema(tags=['System Settings'], summary='Create security framework',
                       request=SecurityFrameworkSerializer, responses={201: SecurityFrameworkSerializer}),
    patch=extend_schema(tags=['System Settings'], summary='Update security framework',
                        request=SecurityFrameworkSerializer, responses={200: SecurityFrameworkSerializer}),
    delete=extend_schema(tags=['System Settings'], summary='Delete security framework', responses={204: None}),
)
@requires_permission(SETTINGS_PERMISSIONS)
class SecurityFrameworkView(SettingsModuleView):
    """
    /v1/system-settings/security/
    """

    service = SecurityFrameworkService
    serializer_class = SecurityFrameworkSerializer


@extend_schema_view(
    get=extend_schema(tags=['System Settings'], summary='Get enterprise infrastructure',
                      responses={200: EnterpriseInfraSerializer}),
    post=extend_schema(tags=['System Settings'], summary='Create enterprise infrastructure',
                       request=EnterpriseInfraSerializer, responses={201: EnterpriseInfraSerializer}),
    patch=extend_schema(tags=['System Settings'], summary='Update enterprise infrastructure',
                        request=EnterpriseInfraSerializer, responses={200: EnterpriseInfraSerializer}),
    delete=extend_schema(tags=['System Settings'], summary='Delete enterprise infrastructure', responses={204: None}),
)
@requires_permission(SETTINGS_PERMISSIONS)
class EnterpriseInfraView(SettingsModuleView):
    """
    /v1/system-settings/infra/
    """

    service = EnterpriseInfraService
    serializer_class = EnterpriseInfraSerializer


@requires_permission('settings:read')
class SecurityStatusView(APIView):
    """
    GET /v1/system-settings/security/status/
    """

    @extend_schema(tags=['System Settings'], summary='Security status', responses={200: OpenApiTypes.OBJECT})
    def get(self, request):
        return Response(SecurityFrameworkService.status(request.user.tenant_id))


@requires_permission('settings:read')
class IPCheckView(APIView):
    """
    POST /v1/system-settings/security/ip-check/

    Evaluate an address against the tenant's geofencing lists.
    """

    @extend_schema(tags=['System Settings'], summary='Check an IP against geofencing',
                   request=IPCheckSerializer, responses={200: OpenApiTypes.OBJECT})
    def post(self, request):
        serializer = IPCheckSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return Response(SecurityFrameworkService.check_ip(request.user.tenant_id, serializer.validated_data['ip']))


@requires_permission('settings:read')
class MaskDataView(APIView):
    """
    POST /v1/system-settings/security/mask/

    Requires the data_masking feature flag.
    """

    @extend_schema(tags=['System Settings'], summary='Mask a personal data value',
                   request=MaskSerializer, responses={200: OpenApiTypes.OBJECT})
    def post(self, request):
        serializer = MaskSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        masked = SecurityFrameworkService.mask(
            request.user.tenant_id,
            serializer.validated_data['field'],
            serializer.validated_data['value'],
        )
        return Response({'masked': masked})


@requires_permission('audit:read')
class ComplianceReportView(APIView):
    """
    GET /v1/system-settings/security/compliance-report/

    Requires the compliance_reports feature flag.
    """

    @extend_schema(tags=['System Settings'], summary='Generate a compliance report',
                   responses={200: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT})
    def get(self, request):
        report = SecurityFrameworkService.compliance_report(request.user.tenant_id)

        AuditService.record_safely(
            action='GENERATE_COMPLIANCE_REPORT',
            principal_id=request.user.id,
            module=SecurityFrameworkService.audit_module,
            details={'standards': report['standards']},
            ip_address=get_client_ip(request),
            tenant_id=request.user.tenant_id,
        )
        return Response(report)


@requires_role('superadmin')
class KeyRotationView(APIView):
    """
    POST /v1/system-settings/security/rotate-key/

    Restricted to the superadmin role by name.
    """

    @extend_schema(tags=['System Settings'], summary='Rotate the encryption key',
                   request=None, responses={200: OpenApiTypes.OBJECT})
    def post(self, request):
        config = SecurityFrameworkService.rotate_encryption_key(
            request.user.tenant_id, rotated_by=request.user.id, ip_address=get_client_ip(request)
        )
        return Response({'current_key_id': config.encryption['current_key_id']})


@requires_permission('settings:read')
class InfraValidationView(APIView):
    """
    POST /v1/system-settings/infra/validate/

    Check a proposed infrastructure configuration without storing it.
    """

    @extend_schema(tags=['System Settings'], summary='Validate infrastructure settings',
                   request=EnterpriseInfraSerializer, responses={200: OpenApiTypes.OBJECT})
    def post(self, request):
        serializer = EnterpriseInfraSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return Response(EnterpriseInfraService.validate(serializer.validated_data))


@requires_permission('settings:read')
class InfraStatusView(APIView):
    """
    GET /v1/system-settings/infra/status/
    """

    @extend_schema(tags=['System Settings'], summary='Infrastructure status', responses={200: OpenApiTypes.OBJECT})
    def get(self, request):
        return Response(EnterpriseInfraService.status(request.user.tenant_id))
