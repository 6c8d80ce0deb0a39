from rest_framework import serializers

from .models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    type = serializers.CharField(source='notification_type', read_only=True)

    class Meta:
        model = Notification
        fields = ['id', 'type', 'title', 'message', 'payload', 'is_read', 'created_at']
        read_only_fields = fields


class NotificationListResponseSerializer(serializers.Serializer):
    """알림 목록 응답"""
    results = NotificationSerializer(many=True, read_only=True)
    unread_count = serializers.IntegerField(read_only=True)
