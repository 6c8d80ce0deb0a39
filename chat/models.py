import uuid

from django.contrib.auth import get_user_model
from django.db import models
from django.db.models import Q
from django.utils import timezone

User = get_user_model()


def direct_pair_key(user_a_id, user_b_id):
    """1:1 대화방 참여자 쌍을 순서와 무관한 하나의 키로 정규화"""
    first, second = sorted([str(user_a_id), str(user_b_id)])
    return f"{first}:{second}"


def expired_chatroom_q(now=None):
    """정리됐거나 만료 시간이 지난 게임 채팅방에 속한 대화방 조건 (Conversation 기준)"""
    now = now or timezone.now()
    return Q(game_chatroom__is_active=False) | Q(game_chatroom__expires_at__lte=now)


class Conversation(models.Model):
    """대화방 모델"""
    TYPE_DIRECT = 'direct'
    TYPE_GROUP = 'group'
    TYPE_GAME = 'game'
    TYPE_CHANNEL = 'channel'

    TYPE_CHOICES = [
        (TYPE_DIRECT, '1:1 채팅'),
        (TYPE_GROUP, '그룹 채팅'),
        (TYPE_GAME, '게임 채팅'),
        (TYPE_CHANNEL, '종목/지역 채널'),
    ]
    GROUP_TYPES = (TYPE_GROUP, TYPE_GAME, TYPE_CHANNEL)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    conversation_type = models.CharField(max_length=10, choices=TYPE_CHOICES, verbose_name='대화방 타입')
    name = models.CharField(max_length=100, null=True, blank=True, verbose_name='대화방 이름')
    description = models.TextField(null=True, blank=True, verbose_name='설명')
    pair_key = models.CharField(max_length=80, null=True, blank=True, unique=True, verbose_name='1:1 참여자 쌍 키')
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='created_conversations', verbose_name='생성자')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'conversations'
        verbose_name = '대화방'
        verbose_name_plural = '대화방'
        ordering = ['-updated_at']
        constraints = [
            models.UniqueConstraint(
                fields=['conversation_type', 'name'],
                condition=Q(conversation_type='channel'),
                name='unique_channel_name',
            ),
        ]

    def __str__(self):
        if self.name:
            return f"{self.name} ({self.conversation_type})"
        return f"{self.conversation_type} 대화방 ({self.id})"


class ConversationParticipant(models.Model):
    """대화방 참여자 모델"""
    ROLE_CHOICES = [
        ('owner', '방장'),
        ('member', '멤버'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    conversation = models.ForeignKey(Conversation, on_delete=models.CASCADE, related_name='participants', verbose_name='대화방')
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='conversation_memberships', verbose_name='사용자')
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default='member', verbose_name='역할')
    joined_at = models.DateTimeField(auto_now_add=True)
    last_read_at = models.DateTimeField(null=True, blank=True, verbose_name='마지막 읽은 시간')

    class Meta:
        db_table = 'conversation_participants'
        verbose_name = '대화방 참여자'
        verbose_name_plural = '대화방 참여자'
        unique_together = [['conversation', 'user']]
        ordering = ['joined_at']

    def __str__(self):
        return f"{self.user_id} in {self.conversation_id}"


class Message(models.Model):
    """메시지 모델 (대화방 내 순서는 created_at, 동일 시각이면 id)"""
    KIND_TEXT = 'text'
    KIND_SYSTEM = 'system'
    KIND_SCORE = 'score'

    KIND_CHOICES = [
        (KIND_TEXT, '텍스트'),
        (KIND_SYSTEM, '시스템 메시지'),
        (KIND_SCORE, '점수 업데이트'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    conversation = models.ForeignKey(Conversation, on_delete=models.CASCADE, related_name='messages', verbose_name='대화방')
    sender = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='sent_messages', verbose_name='발신자')
    kind = models.CharField(max_length=10, choices=KIND_CHOICES, default=KIND_TEXT, verbose_name='메시지 타입')
    content = models.TextField(verbose_name='메시지 내용')
    metadata = models.JSONField(default=dict, blank=True, verbose_name='부가 정보')
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        db_table = 'messages'
        verbose_name = '메시지'
        verbose_name_plural = '메시지'
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['conversation', 'created_at'], name='messages_conv_created_idx'),
        ]

    def __str__(self):
        return f"{self.sender_id or 'System'}: {self.content[:50]}"


class GameChatroom(models.Model):
    """확정된 예약마다 하나씩 생성되는 기간 한정 게임 채팅방"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    booking = models.OneToOneField('bookings.BookingRequest', on_delete=models.CASCADE, related_name='chatroom', verbose_name='예약')
    conversation = models.OneToOneField(Conversation, on_delete=models.CASCADE, related_name='game_chatroom', verbose_name='대화방')
    venue_ref = models.CharField(max_length=64, verbose_name='구장')
    court_ref = models.CharField(max_length=64, verbose_name='코트')
    host = models.ForeignKey(User, on_delete=models.CASCADE, related_name='hosted_chatrooms', verbose_name='호스트')
    created_at = models.DateTimeField(auto_now_add=True)
    expires_at = models.DateTimeField(verbose_name='만료 시간')
    is_active = models.BooleanField(default=True, verbose_name='활성 여부')

    class Meta:
        db_table = 'game_chatrooms'
        verbose_name = '게임 채팅방'
        verbose_name_plural = '게임 채팅방'
        ordering = ['expires_at']
        indexes = [
            models.Index(fields=['is_active', 'expires_at'], name='game_chatroom_active_exp_idx'),
        ]

    def __str__(self):
        return f"{self.venue_ref}/{self.court_ref} (~{self.expires_at})"

    def is_expired(self, now=None):
        return self.expires_at <= (now or timezone.now())
