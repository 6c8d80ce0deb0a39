from abc import ABC, abstractmethod

from channels.db import database_sync_to_async
from django.db import IntegrityError, transaction

from .models import Conversation, ConversationParticipant, GameChatroom


class GameChatroomRepository(ABC):
    """게임 채팅방 저장소 인터페이스"""

    @abstractmethod
    async def get(self, chatroom_id):
        """없으면 None"""

    @abstractmethod
    async def get_by_booking(self, booking_id):
        """없으면 None"""

    @abstractmethod
    async def create(self, booking, expires_at):
        """
        예약당 하나의 채팅방을 생성합니다.

        이미 존재하면 기존 채팅방을 돌려주며, 반환값은 (chatroom, created) 입니다.
        """

    @abstractmethod
    async def list_active_for_user(self, user_id):
        """사용자가 참여 중인 활성 채팅방, 만료가 가까운 순"""

    @abstractmethod
    async def deactivate_expired(self, now):
        """expires_at <= now 인 활성 채팅방을 비활성화하고 개수를 반환"""


class DjangoGameChatroomRepository(GameChatroomRepository):

    async def get(self, chatroom_id):
        try:
            return await GameChatroom.objects.select_related('conversation').aget(id=chatroom_id)
        except GameChatroom.DoesNotExist:
            return None

    async def get_by_booking(self, booking_id):
        try:
            return await GameChatroom.objects.select_related('conversation').aget(booking_id=booking_id)
        except GameChatroom.DoesNotExist:
            return None

    async def create(self, booking, expires_at):
        return await self._create(booking, expires_at)

    @database_sync_to_async
    def _create(self, booking, expires_at):
        try:
            with transaction.atomic():
                conversation = Conversation.objects.create(
                    conversation_type=Conversation.TYPE_GAME,
                    name=self._chatroom_name(booking),
                    created_by_id=booking.host_id,
                )
                ConversationParticipant.objects.create(
                    conversation=conversation,
                    user_id=booking.host_id,
                    role='owner',
                )
                chatroom = GameChatroom.objects.create(
                    booking=booking,
                    conversation=conversation,
                    venue_ref=booking.venue_id,
                    court_ref=booking.court_id,
                    host_id=booking.host_id,
                    expires_at=expires_at,
                )
            return chatroom, True
        except IntegrityError:
            # 동시에 생성한 쪽이 먼저 커밋됨
            chatroom = GameChatroom.objects.select_related('conversation').get(booking_id=booking.id)
            return chatroom, False

    def _chatroom_name(self, booking):
        details = booking.details or {}
        venue = details.get('venue_name') or booking.venue_id
        court = details.get('court_name') or booking.court_id
        return f"{venue} {court} · {booking.date:%m/%d} {booking.start_time:%H:%M}"[:100]

    async def list_active_for_user(self, user_id):
        queryset = GameChatroom.objects.filter(
            is_active=True,
            conversation__participants__user_id=user_id,
        ).select_related('conversation').order_by('expires_at', 'id')
        return [chatroom async for chatroom in queryset]

    async def deactivate_expired(self, now):
        return await GameChatroom.objects.filter(
            is_active=True,
            expires_at__lte=now,
        ).aupdate(is_active=False)
