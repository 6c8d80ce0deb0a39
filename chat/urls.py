from django.urls import path
from .views import (
    ChannelJoinView, ChannelLeaveView, ConversationListView, ConversationParticipantView,
    ConversationReadView, DirectConversationCreateView, GameChatroomListView,
    GroupConversationCreateView, MessageListView
)

urlpatterns = [
    # Conversation endpoints
    path('chat/conversations/', ConversationListView.as_view(), name='conversation-list'),
    path('chat/conversations/direct/', DirectConversationCreateView.as_view(), name='direct-conversation-create'),
    path('chat/conversations/group/', GroupConversationCreateView.as_view(), name='group-conversation-create'),
    path('chat/conversations/channel/', ChannelJoinView.as_view(), name='channel-join'),
    path('chat/conversations/<uuid:conversation_id>/participants/', ConversationParticipantView.as_view(), name='conversation-participants'),
    path('chat/conversations/<uuid:conversation_id>/messages/', MessageListView.as_view(), name='message-list'),
    path('chat/conversations/<uuid:conversation_id>/read/', ConversationReadView.as_view(), name='conversation-read'),
    path('chat/conversations/<uuid:conversation_id>/leave/', ChannelLeaveView.as_view(), name='channel-leave'),

    # Game Chatroom endpoints
    path('chat/chatrooms/', GameChatroomListView.as_view(), name='game-chatroom-list'),
]
