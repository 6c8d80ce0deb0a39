from rest_framework import serializers

from accounts.models import User

from .models import BookingRequest, JoinRequest


class BookingDetailsSerializer(serializers.Serializer):
    """
    예약 표시용 부가 정보

    예약 레코드의 필수 필드와 별도로 검증되며, 모든 항목이 선택입니다.
    """
    SKILL_LEVEL_CHOICES = ['Beginner', 'Intermediate', 'Advanced']

    venue_name = serializers.CharField(required=False, max_length=100, help_text="구장 이름")
    court_name = serializers.CharField(required=False, max_length=100, help_text="코트 이름")
    sport = serializers.CharField(required=False, max_length=50, help_text="종목 (예: Badminton)")
    skill_level = serializers.ChoiceField(choices=SKILL_LEVEL_CHOICES, required=False, help_text="실력 수준")
    is_open_game = serializers.BooleanField(required=False, default=False, help_text="다른 사용자의 참여 요청 허용 여부")
    price = serializers.FloatField(required=False, min_value=0, help_text="가격")
    notes = serializers.CharField(required=False, allow_blank=True, max_length=500, help_text="메모")


class UserBasicSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'name', 'profile_image']
        read_only_fields = fields


class BookingRequestSerializer(serializers.ModelSerializer):
    """예약 요청 시리얼라이저"""
    host = UserBasicSerializer(read_only=True)
    requester = UserBasicSerializer(read_only=True)
    spots_left = serializers.IntegerField(read_only=True)

    class Meta:
        model = BookingRequest
        fields = [
            'id', 'venue_id', 'court_id', 'host', 'requester', 'date', 'start_time',
            'duration_minutes', 'capacity_total', 'capacity_filled', 'spots_left', 'status',
            'rejection_reason', 'details', 'created_at', 'updated_at', 'decided_at',
        ]
        read_only_fields = fields


class BookingRequestCreateSerializer(serializers.Serializer):
    """예약 요청 생성 시리얼라이저 (요청자는 로그인 사용자)"""
    venue_id = serializers.CharField(max_length=64, help_text="구장 ID")
    court_id = serializers.CharField(max_length=64, help_text="코트 ID")
    host_id = serializers.UUIDField(help_text="구장 호스트 사용자 ID")
    date = serializers.DateField(help_text="경기 날짜 (YYYY-MM-DD)")
    start_time = serializers.TimeField(help_text="시작 시간 (HH:MM)")
    duration_minutes = serializers.IntegerField(help_text="경기 시간 (분)")
    capacity_total = serializers.IntegerField(help_text="전체 인원")
    details = serializers.JSONField(required=False, help_text="표시용 부가 정보")


class BookingResponseSerializer(serializers.Serializer):
    """예약 요청 확정/거절 시리얼라이저"""
    decision = serializers.ChoiceField(
        choices=['confirm', 'reject'],
        help_text="확정(confirm) 또는 거절(reject)"
    )
    reason = serializers.CharField(required=False, allow_blank=True, max_length=500, help_text="거절 사유")


class JoinRequestSerializer(serializers.ModelSerializer):
    """참여 요청 시리얼라이저"""
    requester = UserBasicSerializer(read_only=True)
    booking = BookingRequestSerializer(read_only=True)

    class Meta:
        model = JoinRequest
        fields = ['id', 'booking', 'requester', 'host', 'status', 'created_at', 'updated_at', 'responded_at']
        read_only_fields = fields


class JoinRequestResponseSerializer(serializers.Serializer):
    """참여 요청 수락/거절 시리얼라이저"""
    action = serializers.ChoiceField(
        choices=['accept', 'reject'],
        help_text="수락(accept) 또는 거절(reject)"
    )
