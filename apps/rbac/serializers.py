"""
RBAC serializers for REST API endpoints.
"""
from rest_framework import serializers

from apps.rbac.models import Role


class RoleSerializer(serializers.ModelSerializer):
    """Serializer for Role model."""

    is_global = serializers.BooleanField(read_only=True)

    class Meta:
        model = Role
        fields = [
            'id', 'tenant_id', 'name', 'permissions', 'is_global',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields


class RoleCreateSerializer(serializers.Serializer):
    """Serializer for creating a tenant role."""

    name = serializers.CharField(required=True, max_length=100)
    permissions = serializers.ListField(
        child=serializers.CharField(max_length=100),
        required=False,
        default=list
    )


class RoleUpdateSerializer(serializers.Serializer):
    """Serializer for updating a tenant role. Both fields are optional."""

    name = serializers.CharField(required=False, max_length=100)
    permissions = serializers.ListField(
        child=serializers.CharField(max_length=100),
        required=False
    )

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("Provide a name or permissions to update.")
        return attrs


class BulkRoleCreateSerializer(serializers.Serializer):
    roles = RoleCreateSerializer(many=True)

    def validate_roles(self, value):
        if not value:
            raise serializers.ValidationError("At least one role is required.")
        names = [role['name'] for role in value]
        if len(names) != len(set(names)):
            raise serializers.ValidationError("Role names must be unique.")
        return value
