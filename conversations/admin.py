from django.contrib import admin

from .models import Conversation, Message, Participant


class ParticipantInline(admin.TabularInline):
    model = Participant
    extra = 0
    raw_id_fields = ['user']
    readonly_fields = ['joined_at']


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    list_display = ['id', 'type', 'name', 'created_by', 'created_at', 'last_message_at']
    list_filter = ['type', 'created_at']
    search_fields = ['name']
    readonly_fields = ['created_at', 'updated_at', 'last_message_at']
    inlines = [ParticipantInline]


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ['id', 'conversation', 'sender', 'content_preview', 'type', 'is_read', 'is_deleted', 'created_at']
    list_filter = ['type', 'is_read', 'is_edited', 'is_deleted', 'created_at']
    search_fields = ['content', 'sender__email']
    raw_id_fields = ['conversation', 'sender', 'receiver']
    readonly_fields = ['created_at', 'updated_at']

    @admin.display(description='Content Preview')
    def content_preview(self, obj):
        content = obj.content or ""
        return content[:50] + "..." if len(content) > 50 else content
