"""
Audit serializers for REST API endpoints.
"""
from rest_framework import serializers

from apps.audit.models import AuditLog, SettingsHistory


class AuditLogSerializer(serializers.ModelSerializer):
    """Serializer for AuditLog model."""

    class Meta:
        model = AuditLog
        fields = [
            'id', 'tenant_id', 'user_id', 'action', 'module',
            'details', 'ip_address', 'created_at'
        ]
        read_only_fields = fields


class SettingsHistorySerializer(serializers.ModelSerializer):
    """Serializer for SettingsHistory model."""

    class Meta:
        model = SettingsHistory
        fields = [
            'id', 'tenant_id', 'module', 'action', 'previous_value',
            'new_value', 'changed_by', 'ip_address', 'created_at'
        ]
        read_only_fields = fields


class HistoryFilterSerializer(serializers.Serializer):
    """Query parameters accepted by the history search endpoint."""

    module = serializers.CharField(required=False)
    action = serializers.ChoiceField(choices=SettingsHistory.ACTION_CHOICES, required=False)
    changed_by = serializers.CharField(required=False)
    start = serializers.DateTimeField(required=False)
    end = serializers.DateTimeField(required=False)

    def validate(self, attrs):
        start, end = attrs.get('start'), attrs.get('end')
        if start and end and start > end:
            raise serializers.ValidationError("'start' must be before 'end'.")
        return attrs
