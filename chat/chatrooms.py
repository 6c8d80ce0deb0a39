import logging
from datetime import timedelta

from django.utils import timezone

from common.exceptions import ConflictError, NotFoundError, ServiceError
from config.constants import CHATROOM_CREATED_MESSAGE, CHATROOM_EXPIRY_BUFFER_MINUTES

from .registry import ConversationRegistry
from .repositories import DjangoGameChatroomRepository
from .streams import MessageStream

logger = logging.getLogger('chat')


def compute_expires_at(booking):
    """경기 시작 + 경기 시간 + 30분"""
    return booking.ends_at + timedelta(minutes=CHATROOM_EXPIRY_BUFFER_MINUTES)


class ChatroomLifecycleManager:
    """
    확정된 예약의 게임 채팅방 생성/참여/만료 처리

    만료된 채팅방은 sweep_expired 가 호출될 때 비활성화되므로, 주기 실행 사이에는
    만료된 채팅방이 잠시 활성 상태로 남을 수 있습니다. get_active_chatrooms_for_user 는
    조회 전에 먼저 sweep 을 실행합니다.
    """

    def __init__(self, repository=None, registry=None, stream=None):
        self.repository = repository or DjangoGameChatroomRepository()
        self.registry = registry or ConversationRegistry()
        self.stream = stream or MessageStream()

    async def create_for_booking(self, booking):
        if booking.status != booking.STATUS_CONFIRMED:
            raise ConflictError('booking not confirmed', '확정된 예약에만 채팅방을 만들 수 있습니다.')

        existing = await self.repository.get_by_booking(booking.id)
        if existing:
            return existing

        chatroom, created = await self.repository.create(booking, compute_expires_at(booking))
        if not created:
            return chatroom

        logger.info(f'게임 채팅방 생성: {chatroom.id} (예약 {booking.id}, 만료 {chatroom.expires_at})')
        try:
            await self.stream.send_system(
                chatroom.conversation_id,
                CHATROOM_CREATED_MESSAGE,
                metadata={'booking_id': str(booking.id)},
            )
        except ServiceError as exc:
            logger.warning(f'게임 채팅방 안내 메시지 전송 실패 ({chatroom.id}): {exc.reason}')

        return chatroom

    async def get_for_booking(self, booking_id):
        return await self.repository.get_by_booking(booking_id)

    async def add_participant(self, chatroom_id, user_id):
        chatroom = await self.repository.get(chatroom_id)
        if chatroom is None:
            raise NotFoundError('chatroom not found', '게임 채팅방을 찾을 수 없습니다.')

        added = await self.registry.add_participants(chatroom.conversation_id, [user_id])
        return bool(added)

    async def get_active_chatrooms_for_user(self, user_id, now=None):
        await self.sweep_expired(now)
        return await self.repository.list_active_for_user(user_id)

    async def get_expiring_chatrooms(self, user_id, now=None):
        """
        만료 예정 채팅방과 남은 시간(분)

        Returns:
            [{'chatroom': GameChatroom, 'minutes_until_expiry': int}, ...]
        """
        now = now or timezone.now()
        chatrooms = await self.get_active_chatrooms_for_user(user_id, now)
        return [
            {
                'chatroom': chatroom,
                'minutes_until_expiry': int((chatroom.expires_at - now).total_seconds() // 60),
            }
            for chatroom in chatrooms
        ]

    async def sweep_expired(self, now=None):
        now = now or timezone.now()
        deactivated = await self.repository.deactivate_expired(now)
        if deactivated:
            logger.info(f'만료된 게임 채팅방 {deactivated}개 비활성화')
        return deactivated

    def is_expired(self, chatroom, now=None):
        return chatroom.is_expired(now)
