from django.contrib import admin

from .models import Conversation, ConversationParticipant, GameChatroom, Message


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    list_display = ['id', 'conversation_type', 'name', 'created_by', 'created_at']
    list_filter = ['conversation_type', 'created_at']
    search_fields = ['name', 'id']
    readonly_fields = ['id', 'pair_key', 'created_at', 'updated_at']
    ordering = ['-updated_at']


@admin.register(ConversationParticipant)
class ConversationParticipantAdmin(admin.ModelAdmin):
    list_display = ['id', 'conversation', 'user', 'role', 'joined_at']
    list_filter = ['role', 'joined_at']
    search_fields = ['conversation__name', 'user__name', 'user__email']
    readonly_fields = ['id', 'joined_at']
    ordering = ['-joined_at']


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ['id', 'conversation', 'sender', 'kind', 'content_preview', 'created_at']
    list_filter = ['kind', 'created_at']
    search_fields = ['content', 'sender__name', 'conversation__name']
    readonly_fields = ['id', 'created_at']
    ordering = ['-created_at']

    def content_preview(self, obj):
        return obj.content[:50] + '...' if len(obj.content) > 50 else obj.content
    content_preview.short_description = '내용 미리보기'


@admin.register(GameChatroom)
class GameChatroomAdmin(admin.ModelAdmin):
    list_display = ['id', 'booking', 'venue_ref', 'court_ref', 'host', 'expires_at', 'is_active']
    list_filter = ['is_active', 'expires_at']
    search_fields = ['venue_ref', 'court_ref', 'host__name']
    readonly_fields = ['id', 'created_at']
    ordering = ['expires_at']
