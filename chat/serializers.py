from typing import Any, Dict, Optional

from rest_framework import serializers

from accounts.models import User

from .models import Conversation, ConversationParticipant, GameChatroom, Message


class UserBasicSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'name', 'profile_image']
        read_only_fields = ['id']


class ConversationParticipantSerializer(serializers.ModelSerializer):
    user = UserBasicSerializer(read_only=True)

    class Meta:
        model = ConversationParticipant
        fields = ['id', 'user', 'role', 'joined_at', 'last_read_at']
        read_only_fields = ['id', 'joined_at']


class MessageSerializer(serializers.ModelSerializer):
    id = serializers.UUIDField(read_only=True, format='hex_verbose')
    conversation = serializers.UUIDField(source='conversation_id', read_only=True, format='hex_verbose')
    sender = UserBasicSerializer(read_only=True, allow_null=True)

    class Meta:
        model = Message
        fields = ['id', 'conversation', 'sender', 'kind', 'content', 'metadata', 'created_at']
        read_only_fields = fields


class ConversationSerializer(serializers.ModelSerializer):
    participants = ConversationParticipantSerializer(many=True, read_only=True)
    last_message = serializers.SerializerMethodField()
    unread_count = serializers.SerializerMethodField()

    class Meta:
        model = Conversation
        fields = [
            'id', 'conversation_type', 'name', 'description', 'participants',
            'last_message', 'unread_count', 'created_at', 'updated_at'
        ]
        read_only_fields = fields

    def get_last_message(self, obj: Conversation) -> Optional[Dict[str, Any]]:
        last_message = obj.messages.select_related('sender').order_by('-created_at', '-id').first()
        if last_message:
            return MessageSerializer(last_message).data
        return None

    def get_unread_count(self, obj: Conversation) -> int:
        request = self.context.get('request')
        if not request or not request.user.is_authenticated:
            return 0

        participant = obj.participants.filter(user=request.user).first()
        messages = obj.messages.exclude(sender=request.user)
        if participant and participant.last_read_at:
            messages = messages.filter(created_at__gt=participant.last_read_at)
        return messages.count()


class GameChatroomSerializer(serializers.ModelSerializer):
    booking = serializers.UUIDField(source='booking_id', read_only=True)
    conversation = serializers.UUIDField(source='conversation_id', read_only=True)
    name = serializers.CharField(source='conversation.name', read_only=True)
    host = UserBasicSerializer(read_only=True)
    minutes_until_expiry = serializers.SerializerMethodField()

    class Meta:
        model = GameChatroom
        fields = [
            'id', 'booking', 'conversation', 'name', 'venue_ref', 'court_ref', 'host',
            'created_at', 'expires_at', 'is_active', 'minutes_until_expiry'
        ]
        read_only_fields = fields

    def get_minutes_until_expiry(self, obj: GameChatroom) -> Optional[int]:
        minutes = self.context.get('minutes_until_expiry', {})
        return minutes.get(obj.id)


class DirectConversationCreateSerializer(serializers.Serializer):
    user_id = serializers.UUIDField(help_text="대화할 상대방 사용자 ID")


class GroupConversationCreateSerializer(serializers.Serializer):
    conversation_type = serializers.ChoiceField(
        choices=[Conversation.TYPE_GROUP, Conversation.TYPE_GAME],
        default=Conversation.TYPE_GROUP,
        help_text="대화방 타입"
    )
    name = serializers.CharField(max_length=100, help_text="대화방 이름")
    participant_ids = serializers.ListField(
        child=serializers.UUIDField(),
        allow_empty=True,
        default=list,
        help_text="초대할 사용자 ID 목록"
    )


class ChannelJoinSerializer(serializers.Serializer):
    sport = serializers.CharField(max_length=50, help_text="종목 (예: Badminton)")
    city = serializers.CharField(max_length=40, required=False, allow_blank=True, help_text="지역 (없으면 Global)")


class ParticipantAddSerializer(serializers.Serializer):
    user_ids = serializers.ListField(
        child=serializers.UUIDField(),
        allow_empty=False,
        help_text="추가할 사용자 ID 목록"
    )


class MessageCreateSerializer(serializers.Serializer):
    """
    메시지 전송 시리얼라이저

    점수 업데이트는 content 대신 team1, team2 를 보냅니다.
    """
    content = serializers.CharField(required=False, allow_blank=True, help_text="메시지 내용")
    metadata = serializers.JSONField(required=False, help_text="부가 정보")
    team1 = serializers.IntegerField(required=False, min_value=0, help_text="팀1 점수")
    team2 = serializers.IntegerField(required=False, min_value=0, help_text="팀2 점수")

    def validate(self, attrs):
        has_score = 'team1' in attrs or 'team2' in attrs
        if has_score and not ('team1' in attrs and 'team2' in attrs):
            raise serializers.ValidationError("점수 업데이트에는 team1, team2 가 모두 필요합니다.")
        if not has_score and not attrs.get('content', '').strip():
            raise serializers.ValidationError("메시지 내용을 입력해주세요.")
        return attrs
