"""
RBAC REST API views.

Implements endpoints for role management within the principal's tenant.
The tenant always comes from the authenticated principal.
"""
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, extend_schema_view
from drf_spectacular.types import OpenApiTypes

from apps.core.permissions import requires_permission, get_client_ip
from apps.rbac.services import RoleService
from apps.rbac.serializers import (
    RoleSerializer, RoleCreateSerializer, RoleUpdateSerializer, BulkRoleCreateSerializer,
)


@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Roles'],
        summary='List roles',
        description='''
List active roles visible to the tenant: its own roles plus global roles
it has not overridden.

**Required permission:** `roles:read`
        ''',
        responses={200: RoleSerializer(many=True)}
    ),
    post=extend_schema(
        tags=['RBAC - Roles'],
        summary='Create role',
        description='''
Create a tenant role. Permissions must be recognized permission strings.

**Required permission:** `roles:write`
        ''',
        request=RoleCreateSerializer,
        responses={201: RoleSerializer, 400: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT}
    )
)
@requires_permission({'GET': 'roles:read', 'POST': 'roles:write'})
class RoleListView(APIView):
    """
    GET  /v1/roles/
    POST /v1/roles/
    """

    def get(self, request):
        roles = RoleService.list_roles(request.user.tenant_id)
        return Response({
            'count': len(roles),
            'roles': RoleSerializer(roles, many=True).data,
        })

    def post(self, request):
        serializer = RoleCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        role = RoleService.create_role(
            tenant_id=request.user.tenant_id,
            name=serializer.validated_data['name'],
            permissions=serializer.validated_data['permissions'],
            created_by=request.user.id,
            ip_address=get_client_ip(request),
        )
        return Response(RoleSerializer(role).data, status=status.HTTP_201_CREATED)


@extend_schema_view(
    post=extend_schema(
        tags=['RBAC - Roles'],
        summary='Bulk create roles',
        description='''
Create several roles at once. Names that already exist are skipped; the
request fails only if every name exists.

**Required permission:** `roles:write`
        ''',
        request=BulkRoleCreateSerializer,
        responses={201: RoleSerializer(many=True), 400: OpenApiTypes.OBJECT}
    )
)
@requires_permission('roles:write')
class RoleBulkCreateView(APIView):
    """POST /v1/roles/bulk/"""

    def post(self, request):
        serializer = BulkRoleCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        roles = RoleService.bulk_create_roles(
            tenant_id=request.user.tenant_id,
            roles=serializer.validated_data['roles'],
            created_by=request.user.id,
            ip_address=get_client_ip(request),
        )
        return Response(RoleSerializer(roles, many=True).data, status=status.HTTP_201_CREATED)


@extend_schema_view(
    get=extend_schema(tags=['RBAC - Roles'], summary='Get role', responses={200: RoleSerializer}),
    patch=extend_schema(
        tags=['RBAC - Roles'],
        summary='Update role',
        description='**Required permission:** `roles:write`',
        request=RoleUpdateSerializer,
        responses={200: RoleSerializer, 404: OpenApiTypes.OBJECT}
    ),
    delete=extend_schema(
        tags=['RBAC - Roles'],
        summary='Delete role',
        description='Soft delete a tenant role. **Required permission:** `roles:write`',
        responses={204: None, 404: OpenApiTypes.OBJECT}
    ),
)
@requires_permission({'GET': 'roles:read', 'PATCH': 'roles:write', 'DELETE': 'roles:write'})
class RoleDetailView(APIView):
    """
    GET    /v1/roles/{id}/
    PATCH  /v1/roles/{id}/
    DELETE /v1/roles/{id}/
    """

    def get(self, request, role_id):
        role = RoleService.get_role(request.user.tenant_id, role_id)
        return Response(RoleSerializer(role).data)

    def patch(self, request, role_id):
        serializer = RoleUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        role = RoleService.update_role(
            tenant_id=request.user.tenant_id,
            role_id=role_id,
            updated_by=request.user.id,
            name=serializer.validated_data.get('name'),
            permissions=serializer.validated_data.get('permissions'),
            ip_address=get_client_ip(request),
        )
        return Response(RoleSerializer(role).data)

    def delete(self, request, role_id):
        RoleService.delete_role(
            tenant_id=request.user.tenant_id,
            role_id=role_id,
            deleted_by=request.user.id,
            ip_address=get_client_ip(request),
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Roles'],
        summary='Get role permissions',
        description='**Required permission:** `roles:read`',
        responses={200: OpenApiTypes.OBJECT}
    )
)
@requires_permission('roles:read')
class RolePermissionsView(APIView):
    """GET /v1/roles/{id}/permissions/"""

    def get(self, request, role_id):
        permissions = RoleService.get_role_permissions(request.user.tenant_id, role_id)
        return Response({'role_id': str(role_id), 'permissions': permissions})
