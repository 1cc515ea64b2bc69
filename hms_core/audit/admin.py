# hms_core/audit/admin.py
from django.contrib import admin

from hms_core.audit.models import AuditEvent


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ("occurred_at", "event_code", "entity_type", "entity_id", "actor_user", "request_id")
    list_filter = ("entity_type", "event_code")
    search_fields = ("event_code", "entity_id", "request_id", "actor_user__username")
    date_hierarchy = "occurred_at"
    ordering = ("-occurred_at",)

    # the log is append-only, admin included
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
