from django.contrib import admin

from recovery_core.conversations.models import Conversation, Message


class MessageInline(admin.TabularInline):
    model = Message
    extra = 0
    fields = ("created_at", "sender_type", "content")
    readonly_fields = fields
    can_delete = False


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    list_display = ("title", "patient", "status", "tenant_id", "created_at")
    list_filter = ("tenant_id", "status")
    search_fields = ("title", "patient__mrn", "patient__last_name")
    readonly_fields = ("created_at", "updated_at", "closed_at")
    inlines = [MessageInline]
