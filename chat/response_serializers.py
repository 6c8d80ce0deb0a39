"""
Chat API Swagger 응답 전용 시리얼라이저
"""

from rest_framework import serializers

from .serializers import MessageSerializer


class MessageHistoryResponseSerializer(serializers.Serializer):
    """메시지 목록 응답 (오래된 순)"""
    results = MessageSerializer(many=True, read_only=True)
    has_more = serializers.BooleanField(read_only=True)


class ParticipantAddResponseSerializer(serializers.Serializer):
    """참여자 추가 응답"""
    added = serializers.ListField(child=serializers.UUIDField(), read_only=True)


class ConversationReadResponseSerializer(serializers.Serializer):
    """읽음 처리 응답"""
    message = serializers.CharField(read_only=True)
