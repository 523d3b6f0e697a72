"""
Audit REST API views.

Read-only access to the principal's tenant audit trail and settings history.
"""
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.pagination import PageNumberPagination
from drf_spectacular.utils import extend_schema, OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from apps.audit.serializers import (
    AuditLogSerializer, SettingsHistorySerializer, HistoryFilterSerializer,
)
from apps.audit.services import AuditService, SettingsHistoryService
from apps.core.permissions import requires_permission


class StandardResultsSetPagination(PageNumberPagination):
    """Standard pagination for list endpoints."""
    page_size = 50
    page_size_query_param = 'page_size'
    max_page_size = 100


@requires_permission('audit:read')
class AuditLogListView(APIView):
    """
    GET /v1/audit/logs/

    Audit entries for the principal's tenant, newest first.

    Required permission: audit:read
    """
    pagination_class = StandardResultsSetPagination

    @extend_schema(
        tags=['Audit'],
        summary='List audit log entries',
        parameters=[
            OpenApiParameter('action', OpenApiTypes.STR),
            OpenApiParameter('module', OpenApiTypes.STR),
            OpenApiParameter('user_id', OpenApiTypes.STR),
        ],
        responses={200: AuditLogSerializer(many=True)}
    )
    def get(self, request):
        entries = AuditService.entries(
            request.user.tenant_id,
            action=request.query_params.get('action'),
            module=request.query_params.get('module'),
            user_id=request.query_params.get('user_id'),
        )

        paginator = self.pagination_class()
        page = paginator.paginate_queryset(entries, request, view=self)
        return paginator.get_paginated_response(AuditLogSerializer(page, many=True).data)


@requires_permission('audit:read')
class SettingsHistoryListView(APIView):
    """
    GET /v1/audit/history/

    Settings history for the principal's tenant, newest first.

    Required permission: audit:read
    """
    pagination_class = StandardResultsSetPagination

    @extend_schema(
        tags=['Audit'],
        summary='Search settings history',
        parameters=[HistoryFilterSerializer],
        responses={200: SettingsHistorySerializer(many=True)}
    )
    def get(self, request):
        filters = HistoryFilterSerializer(data=request.query_params)
        filters.is_valid(raise_exception=True)

        entries = SettingsHistoryService.search(request.user.tenant_id, **filters.validated_data)

        paginator = self.pagination_class()
        page = paginator.paginate_queryset(entries, request, view=self)
        return paginator.get_paginated_response(SettingsHistorySerializer(page, many=True).data)


@requires_permission('audit:read')
class SettingsHistoryStatsView(APIView):
    """GET /v1/audit/history/stats/"""

    @extend_schema(
        tags=['Audit'],
        summary='Settings change statistics',
        parameters=[
            OpenApiParameter('start', OpenApiTypes.DATETIME),
            OpenApiParameter('end', OpenApiTypes.DATETIME),
        ],
        responses={200: OpenApiTypes.OBJECT}
    )
    def get(self, request):
        filters = HistoryFilterSerializer(data=request.query_params)
        filters.is_valid(raise_exception=True)

        stats = SettingsHistoryService.stats(
            request.user.tenant_id,
            start=filters.validated_data.get('start'),
            end=filters.validated_data.get('end'),
        )
        return Response({'stats': stats})
