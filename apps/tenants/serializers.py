"""
Serializers for tenant feature flag endpoints.
"""
from rest_framework import serializers


class FeatureFlagSerializer(serializers.Serializer):
    """Read representation of a flag entry."""

    name = serializers.CharField(read_only=True)
    enabled = serializers.BooleanField(read_only=True)
    created_at = serializers.CharField(read_only=True)
    updated_at = serializers.CharField(read_only=True)


class FeatureFlagSetSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    enabled = serializers.BooleanField()


class FeatureFlagUpdateSerializer(serializers.Serializer):
    enabled = serializers.BooleanField()


class BulkFeatureFlagSerializer(serializers.Serializer):
    flags = FeatureFlagSetSerializer(many=True)

    def validate_flags(self, value):
        if not value:
            raise serializers.ValidationError("At least one flag is required.")
        return value
