"""
Bookings API Swagger 응답 전용 시리얼라이저
"""

from rest_framework import serializers

from .serializers import BookingRequestSerializer, JoinRequestSerializer


class BookingTransitionResponseSerializer(BookingRequestSerializer):
    """예약 요청 상태 전이 응답 (부수 작업 실패는 warnings 에 기록)"""
    chatroom_id = serializers.UUIDField(allow_null=True, read_only=True, help_text="게임 채팅방 ID")
    warnings = serializers.ListField(child=serializers.CharField(), read_only=True)

    class Meta(BookingRequestSerializer.Meta):
        fields = BookingRequestSerializer.Meta.fields + ['chatroom_id', 'warnings']


class JoinRequestTransitionResponseSerializer(JoinRequestSerializer):
    """참여 요청 상태 전이 응답"""
    chatroom_id = serializers.UUIDField(allow_null=True, read_only=True, help_text="게임 채팅방 ID")
    warnings = serializers.ListField(child=serializers.CharField(), read_only=True)

    class Meta(JoinRequestSerializer.Meta):
        fields = JoinRequestSerializer.Meta.fields + ['chatroom_id', 'warnings']


class MyJoinRequestResponseSerializer(serializers.Serializer):
    """경기별 내 참여 요청 상태 (요청한 적이 없으면 null)"""
    status = serializers.CharField(allow_null=True, read_only=True)
    join_request = JoinRequestSerializer(allow_null=True, read_only=True)


class PendingCountResponseSerializer(serializers.Serializer):
    """대기 중인 참여 요청 수"""
    count = serializers.IntegerField(read_only=True)
