# hms_core/audit/api/serializers.py
from rest_framework import serializers

from hms_core.audit.models import AuditEvent


class AuditEventSerializer(serializers.ModelSerializer):
    timestamp = serializers.DateTimeField(source="occurred_at", read_only=True)
    actor_user_id = serializers.IntegerField(read_only=True)
    actor_username = serializers.CharField(source="actor_user.username", read_only=True, default=None)
    module = serializers.CharField(read_only=True)

    class Meta:
        model = AuditEvent
        fields = [
            "id",
            "event_code",
            "module",
            "entity_type",
            "entity_id",
            "actor_user_id",
            "actor_username",
            "request_id",
            "timestamp",
            "metadata",
        ]
        read_only_fields = fields


class EventCodesSerializer(serializers.Serializer):
    event_codes = serializers.ListField(child=serializers.CharField())
