"""
Feature flag REST API views.

All endpoints act on the authenticated principal's tenant.
"""
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, extend_schema_view
from drf_spectacular.types import OpenApiTypes

from apps.core.permissions import requires_permission, get_client_ip
from apps.tenants.serializers import (
    FeatureFlagSerializer, FeatureFlagSetSerializer, FeatureFlagUpdateSerializer,
    BulkFeatureFlagSerializer,
)
from apps.tenants.services import FeatureFlagService, FeatureFlagStore


def _change_response(change, created_status=status.HTTP_201_CREATED):
    return Response(
        {
            'previous': change.previous,
            'current': FeatureFlagSerializer(change.current).data,
        },
        status=created_status if change.created else status.HTTP_200_OK
    )


@extend_schema_view(
    get=extend_schema(
        tags=['Feature Flags'],
        summary='List feature flags',
        description='**Required permission:** `flags:read`',
        responses={200: FeatureFlagSerializer(many=True)}
    ),
    post=extend_schema(
        tags=['Feature Flags'],
        summary='Set feature flag',
        description='''
Create or update a flag. Only recognized flag names are accepted.

**Required permission:** `flags:write`
        ''',
        request=FeatureFlagSetSerializer,
        responses={200: OpenApiTypes.OBJECT, 201: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT}
    ),
)
@requires_permission({'GET': 'flags:read', 'POST': 'flags:write'})
class FeatureFlagListView(APIView):
    """
    GET  /v1/feature-flags/
    POST /v1/feature-flags/
    """

    def get(self, request):
        flags = FeatureFlagService.list_flags(request.user.tenant_id)
        return Response({'flags': FeatureFlagSerializer(flags, many=True).data})

    def post(self, request):
        serializer = FeatureFlagSetSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        change = FeatureFlagService.set_flag(
            tenant_id=request.user.tenant_id,
            flag_name=serializer.validated_data['name'],
            enabled=serializer.validated_data['enabled'],
            changed_by=request.user.id,
            ip_address=get_client_ip(request),
        )
        return _change_response(change)


@requires_permission('flags:write')
class FeatureFlagBulkCreateView(APIView):
    """POST /v1/feature-flags/bulk/"""

    @extend_schema(
        tags=['Feature Flags'],
        summary='Bulk create feature flags',
        request=BulkFeatureFlagSerializer,
        responses={201: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT}
    )
    def post(self, request):
        serializer = BulkFeatureFlagSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        changes = FeatureFlagService.bulk_create_flags(
            tenant_id=request.user.tenant_id,
            flags=serializer.validated_data['flags'],
            changed_by=request.user.id,
            ip_address=get_client_ip(request),
        )
        return Response(
            {'flags': FeatureFlagSerializer([change.current for change in changes], many=True).data},
            status=status.HTTP_201_CREATED
        )


@extend_schema_view(
    get=extend_schema(tags=['Feature Flags'], summary='Get feature flag', responses={200: FeatureFlagSerializer}),
    put=extend_schema(
        tags=['Feature Flags'],
        summary='Update feature flag',
        request=FeatureFlagUpdateSerializer,
        responses={200: OpenApiTypes.OBJECT}
    ),
    delete=extend_schema(tags=['Feature Flags'], summary='Delete feature flag', responses={204: None}),
)
@requires_permission({'GET': 'flags:read', 'PUT': 'flags:write', 'DELETE': 'flags:write'})
class FeatureFlagDetailView(APIView):
    """
    GET    /v1/feature-flags/{name}/
    PUT    /v1/feature-flags/{name}/
    DELETE /v1/feature-flags/{name}/
    """

    def get(self, request, flag_name):
        flag = FeatureFlagStore().get_flag(request.user.tenant_id, flag_name)
        return Response(FeatureFlagSerializer(flag).data)

    def put(self, request, flag_name):
        serializer = FeatureFlagUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        change = FeatureFlagService.set_flag(
            tenant_id=request.user.tenant_id,
            flag_name=flag_name,
            enabled=serializer.validated_data['enabled'],
            changed_by=request.user.id,
            ip_address=get_client_ip(request),
        )
        return _change_response(change)

    def delete(self, request, flag_name):
        FeatureFlagService.delete_flag(
            tenant_id=request.user.tenant_id,
            flag_name=flag_name,
            changed_by=request.user.id,
            ip_address=get_client_ip(request),
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@requires_permission('flags:write')
class FeatureFlagToggleView(APIView):
    """POST /v1/feature-flags/{name}/toggle/"""

    @extend_schema(tags=['Feature Flags'], summary='Toggle feature flag', request=None,
                   responses={200: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT})
    def post(self, request, flag_name):
        change = FeatureFlagService.toggle_flag(
            tenant_id=request.user.tenant_id,
            flag_name=flag_name,
            changed_by=request.user.id,
            ip_address=get_client_ip(request),
        )
        return _change_response(change)
