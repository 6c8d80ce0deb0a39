import asyncio
import logging
from collections import deque
from typing import List, NamedTuple

from channels.db import database_sync_to_async
from channels.layers import get_channel_layer
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from common.exceptions import ConflictError, NotFoundError, ValidationError
from common.retry import retry_on_transient_store_error
from config.constants import MESSAGE_HISTORY_DEFAULT_LIMIT, MESSAGE_HISTORY_MAX_LIMIT

from .models import Conversation, Message, expired_chatroom_q

logger = logging.getLogger('chat')

MESSAGE_KINDS = {kind for kind, _ in Message.KIND_CHOICES}


def chat_group_name(conversation_id):
    return f'chat_{conversation_id}'


def serialize_message(message):
    """
    채널 레이어로 전달되는 메시지 페이로드

    비동기 컨텍스트에서 호출되므로 관계 필드를 따라가지 않고 *_id 값만 사용합니다.
    """
    return {
        'id': str(message.id),
        'conversation_id': str(message.conversation_id),
        'sender_id': str(message.sender_id) if message.sender_id else None,
        'kind': message.kind,
        'content': message.content,
        'metadata': message.metadata,
        'created_at': message.created_at.isoformat(),
    }


class HistoryPage(NamedTuple):
    messages: List[Message]
    has_more: bool


class MessageSubscription:
    """
    대화방 메시지 구독 (async iterator / async context manager)

    그룹에 먼저 참여한 뒤 이전 메시지(backlog)를 읽기 때문에 두 구간이 겹칠 수 있습니다.
    즉 같은 메시지가 두 번 전달될 수는 있지만 누락되지는 않습니다.
    수신 측은 MessageTimeline 으로 id 기준 중복을 제거합니다.
    """

    def __init__(self, channel_layer, conversation_id):
        self.channel_layer = channel_layer
        self.conversation_id = conversation_id
        self.group_name = chat_group_name(conversation_id)
        self.channel_name = None
        self._backlog = deque()
        self._receive_task = None
        self._closed = False

    async def open(self):
        self.channel_name = await self.channel_layer.new_channel()
        await self.channel_layer.group_add(self.group_name, self.channel_name)

    def extend_backlog(self, payloads):
        self._backlog.extend(payloads)

    @property
    def closed(self):
        return self._closed

    async def cancel(self):
        if self._closed:
            return

        self._closed = True
        self._backlog.clear()
        if self._receive_task is not None and not self._receive_task.done():
            self._receive_task.cancel()

        await self.channel_layer.group_discard(self.group_name, self.channel_name)
        logger.debug(f'구독 해제: {self.group_name} ({self.channel_name})')

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self._backlog:
            return self._backlog.popleft()

        while not self._closed:
            self._receive_task = asyncio.ensure_future(self.channel_layer.receive(self.channel_name))
            try:
                event = await self._receive_task
            except asyncio.CancelledError:
                if self._closed:
                    break
                raise
            finally:
                self._receive_task = None

            if event.get('type') == 'chat_message':
                return event['message']

        raise StopAsyncIteration

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.cancel()


class MessageStream:
    """메시지 저장과 실시간 전달"""

    def __init__(self, channel_layer=None):
        self.channel_layer = channel_layer or get_channel_layer()

    async def send(self, conversation_id, sender_id, content, kind=Message.KIND_TEXT, metadata=None):
        if kind not in MESSAGE_KINDS:
            raise ValidationError('unknown message kind', '지원하지 않는 메시지 타입입니다.')
        if not isinstance(content, str) or not content.strip():
            raise ValidationError('empty content', '메시지 내용을 입력해주세요.')

        message = await self._create_message(conversation_id, sender_id, content, kind, metadata or {})
        await self._publish(message)
        return message

    async def send_system(self, conversation_id, content, metadata=None):
        return await self.send(conversation_id, None, content, kind=Message.KIND_SYSTEM, metadata=metadata)

    async def send_score_update(self, conversation_id, sender_id, team1, team2):
        if not all(isinstance(score, int) and score >= 0 for score in (team1, team2)):
            raise ValidationError('invalid score', '점수는 0 이상의 정수여야 합니다.')

        return await self.send(
            conversation_id,
            sender_id,
            f'점수 업데이트: {team1} - {team2}',
            kind=Message.KIND_SCORE,
            metadata={'score': {'team1': team1, 'team2': team2}},
        )

    @retry_on_transient_store_error('send_message')
    @database_sync_to_async
    def _create_message(self, conversation_id, sender_id, content, kind, metadata):
        try:
            # 시스템 메시지(생성/종료 안내)는 만료 여부와 무관하게 남김
            if kind != Message.KIND_SYSTEM and Conversation.objects.filter(
                expired_chatroom_q(), id=conversation_id,
            ).exists():
                raise ConflictError('chatroom expired', '만료된 게임 채팅방입니다.')

            with transaction.atomic():
                updated = Conversation.objects.filter(id=conversation_id).update(updated_at=timezone.now())
                if not updated:
                    raise NotFoundError('conversation not found', '대화방을 찾을 수 없습니다.')

                return Message.objects.create(
                    conversation_id=conversation_id,
                    sender_id=sender_id,
                    kind=kind,
                    content=content,
                    metadata=metadata,
                )
        except DjangoValidationError:
            raise NotFoundError('conversation not found', '대화방을 찾을 수 없습니다.')

    async def _publish(self, message):
        if self.channel_layer is None:
            return

        try:
            await self.channel_layer.group_send(
                chat_group_name(message.conversation_id),
                {
                    'type': 'chat_message',
                    'message': serialize_message(message),
                }
            )
        except Exception as exc:
            # 메시지는 저장됨, 히스토리/catch-up 으로 복구 가능
            logger.warning(f'메시지 전달 실패 ({message.id}): {exc}')

    async def subscribe(self, conversation_id, after=None):
        """
        Args:
            after: 마지막으로 받은 메시지 ID. 지정하면 그 이후 메시지를 먼저 전달합니다.
        """
        if self.channel_layer is None:
            raise NotFoundError('channel layer not configured', '실시간 채널이 설정되지 않았습니다.')
        await self.ensure_open(conversation_id)

        subscription = MessageSubscription(self.channel_layer, conversation_id)
        await subscription.open()

        if after is not None:
            try:
                backlog = await self.get_messages_after(conversation_id, after)
            except Exception:
                await subscription.cancel()
                raise
            subscription.extend_backlog(serialize_message(message) for message in backlog)

        return subscription

    async def get_history(self, conversation_id, limit=MESSAGE_HISTORY_DEFAULT_LIMIT, before=None, offset=0):
        """
        최신 메시지부터 limit개를 잘라 오래된 순으로 돌려줍니다.

        before 에 메시지 ID를 주면 그 메시지보다 앞선 메시지만 조회합니다 ("이전 메시지 더보기").
        """
        limit = max(1, min(int(limit), MESSAGE_HISTORY_MAX_LIMIT))
        offset = max(0, int(offset))
        await self._ensure_conversation(conversation_id)

        queryset = Message.objects.filter(conversation_id=conversation_id)
        if before is not None:
            cursor = await self._get_cursor(conversation_id, before)
            queryset = queryset.filter(
                Q(created_at__lt=cursor.created_at) | Q(created_at=cursor.created_at, id__lt=cursor.id)
            )

        rows = [
            message async for message in
            queryset.order_by('-created_at', '-id')[offset:offset + limit + 1]
        ]
        has_more = len(rows) > limit
        messages = rows[:limit]
        messages.reverse()
        return HistoryPage(messages, has_more)

    async def get_messages_after(self, conversation_id, after):
        cursor = await self._get_cursor(conversation_id, after)
        queryset = Message.objects.filter(conversation_id=conversation_id).filter(
            Q(created_at__gt=cursor.created_at) | Q(created_at=cursor.created_at, id__gt=cursor.id)
        ).order_by('created_at', 'id')
        return [message async for message in queryset]

    async def _get_cursor(self, conversation_id, message_id):
        try:
            return await Message.objects.only('id', 'created_at').aget(
                conversation_id=conversation_id,
                id=message_id,
            )
        except (Message.DoesNotExist, DjangoValidationError):
            raise NotFoundError('message not found', '메시지를 찾을 수 없습니다.')

    async def ensure_open(self, conversation_id, now=None):
        """대화방이 존재하고, 게임 채팅방이라면 아직 만료되지 않았는지 확인"""
        await self._ensure_conversation(conversation_id)

        expired = await Conversation.objects.filter(expired_chatroom_q(now), id=conversation_id).aexists()
        if expired:
            raise ConflictError('chatroom expired', '만료된 게임 채팅방입니다.')

    async def _ensure_conversation(self, conversation_id):
        try:
            exists = await Conversation.objects.filter(id=conversation_id).aexists()
        except DjangoValidationError:
            exists = False

        if not exists:
            raise NotFoundError('conversation not found', '대화방을 찾을 수 없습니다.')
