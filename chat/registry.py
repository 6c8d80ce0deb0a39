import logging
import uuid

from channels.db import database_sync_to_async
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from common.exceptions import NotFoundError, ValidationError
from common.retry import retry_on_transient_store_error

from .models import Conversation, ConversationParticipant, direct_pair_key, expired_chatroom_q

logger = logging.getLogger('chat')

User = get_user_model()


class ConversationRegistry:
    """
    대화방(1:1, 그룹, 게임, 채널) 생성과 참여자 관리

    1:1 대화방은 참여자 쌍마다 하나만 존재하며, 유일성은 pair_key의 unique 제약으로
    저장소가 보장합니다. 동시에 생성을 시도해 제약에 걸린 쪽은 먼저 커밋된 대화방을
    다시 읽어 돌려줍니다.
    """

    async def get(self, conversation_id):
        try:
            return await Conversation.objects.aget(id=conversation_id)
        except (Conversation.DoesNotExist, DjangoValidationError):
            raise NotFoundError('conversation not found', '대화방을 찾을 수 없습니다.')

    @retry_on_transient_store_error('get_or_create_direct')
    async def get_or_create_direct(self, user_a_id, user_b_id):
        user_a_id, user_b_id = [self._normalize_id(user_id) for user_id in (user_a_id, user_b_id)]
        if user_a_id == user_b_id:
            raise ValidationError('self conversation', '자기 자신과는 대화방을 만들 수 없습니다.')

        await self._ensure_users_exist([user_a_id, user_b_id])
        return await self._get_or_create_direct(user_a_id, user_b_id)

    @database_sync_to_async
    def _get_or_create_direct(self, user_a_id, user_b_id):
        pair_key = direct_pair_key(user_a_id, user_b_id)

        existing = Conversation.objects.filter(pair_key=pair_key).first()
        if existing:
            return existing

        try:
            with transaction.atomic():
                conversation = Conversation.objects.create(
                    conversation_type=Conversation.TYPE_DIRECT,
                    pair_key=pair_key,
                    created_by_id=user_a_id,
                )
                ConversationParticipant.objects.bulk_create([
                    ConversationParticipant(conversation=conversation, user_id=user_a_id, role='owner'),
                    ConversationParticipant(conversation=conversation, user_id=user_b_id, role='member'),
                ])
        except IntegrityError:
            return Conversation.objects.get(pair_key=pair_key)

        logger.info(f'1:1 대화방 생성: {conversation.id} ({pair_key})')
        return conversation

    @retry_on_transient_store_error('create_group')
    async def create_group(self, conversation_type, name, participants, created_by):
        if conversation_type not in Conversation.GROUP_TYPES:
            raise ValidationError('invalid conversation type', '그룹 대화방 타입이 올바르지 않습니다.')

        created_by = self._normalize_id(created_by)
        member_ids = [user_id for user_id in self._unique_ids(participants) if user_id != created_by]
        await self._ensure_users_exist([created_by, *member_ids])

        conversation = await self._create_group(conversation_type, name, member_ids, created_by)
        logger.info(f'{conversation_type} 대화방 생성: {conversation.id} (참여자 {len(member_ids) + 1}명)')
        return conversation

    @database_sync_to_async
    def _create_group(self, conversation_type, name, member_ids, created_by):
        with transaction.atomic():
            conversation = Conversation.objects.create(
                conversation_type=conversation_type,
                name=name,
                created_by_id=created_by,
            )
            ConversationParticipant.objects.bulk_create(
                [ConversationParticipant(conversation=conversation, user_id=created_by, role='owner')]
                + [ConversationParticipant(conversation=conversation, user_id=user_id) for user_id in member_ids]
            )
        return conversation

    @retry_on_transient_store_error('add_participants')
    async def add_participants(self, conversation_id, user_ids):
        """
        참여자 집합에 합집합으로 추가합니다.

        Returns:
            실제로 새로 추가된 사용자 ID 목록 (이미 참여 중인 사용자는 제외)
        """
        conversation = await self.get(conversation_id)
        if conversation.conversation_type == Conversation.TYPE_DIRECT:
            raise ValidationError('direct conversation', '1:1 대화방에는 참여자를 추가할 수 없습니다.')

        user_ids = self._unique_ids(user_ids)
        await self._ensure_users_exist(user_ids)
        return await self._add_participants(conversation, user_ids)

    @database_sync_to_async
    def _add_participants(self, conversation, user_ids):
        existing = {
            str(user_id) for user_id in
            ConversationParticipant.objects.filter(
                conversation=conversation,
                user_id__in=user_ids,
            ).values_list('user_id', flat=True)
        }
        added = [user_id for user_id in user_ids if user_id not in existing]

        if added:
            ConversationParticipant.objects.bulk_create(
                [ConversationParticipant(conversation=conversation, user_id=user_id) for user_id in added],
                ignore_conflicts=True,
            )
            logger.info(f'대화방 {conversation.id} 참여자 추가: {added}')
        return added

    @retry_on_transient_store_error('get_or_create_channel')
    async def get_or_create_channel(self, sport, city=None):
        if not sport or not str(sport).strip():
            raise ValidationError('sport required', '종목을 입력해주세요.')

        name = f"{city.strip() if city and city.strip() else 'Global'} - {sport.strip()}"
        return await self._get_or_create_channel(name)

    @database_sync_to_async
    def _get_or_create_channel(self, name):
        existing = Conversation.objects.filter(conversation_type=Conversation.TYPE_CHANNEL, name=name).first()
        if existing:
            return existing

        try:
            with transaction.atomic():
                conversation = Conversation.objects.create(
                    conversation_type=Conversation.TYPE_CHANNEL,
                    name=name,
                    description=f'{name} 채널',
                )
        except IntegrityError:
            return Conversation.objects.get(conversation_type=Conversation.TYPE_CHANNEL, name=name)

        logger.info(f'채널 생성: {name}')
        return conversation

    @retry_on_transient_store_error('leave_channel')
    async def leave_channel(self, conversation_id, user_id):
        """채널에서 나가기 (게임/그룹 대화방의 참여자는 줄어들지 않음)"""
        conversation = await self.get(conversation_id)
        if conversation.conversation_type != Conversation.TYPE_CHANNEL:
            raise ValidationError('not a channel', '채널에서만 나갈 수 있습니다.')

        deleted, _ = await ConversationParticipant.objects.filter(
            conversation=conversation,
            user_id=user_id,
        ).adelete()
        if not deleted:
            raise NotFoundError('not a participant', '참여 중인 대화방이 아닙니다.')

        logger.info(f'채널 {conversation.name} 나가기: {user_id}')

    async def list_for_user(self, user_id, now=None):
        """참여 중인 대화방 목록 (만료된 게임 채팅방은 제외)"""
        queryset = Conversation.objects.filter(
            participants__user_id=user_id,
        ).exclude(
            expired_chatroom_q(now),
        ).prefetch_related('participants').order_by('-updated_at')
        return [conversation async for conversation in queryset]

    async def is_participant(self, conversation_id, user_id):
        try:
            return await ConversationParticipant.objects.filter(
                conversation_id=conversation_id,
                user_id=user_id,
            ).aexists()
        except DjangoValidationError:
            return False

    async def mark_read(self, conversation_id, user_id):
        updated = await ConversationParticipant.objects.filter(
            conversation_id=conversation_id,
            user_id=user_id,
        ).aupdate(last_read_at=timezone.now())

        if not updated:
            raise NotFoundError('not a participant', '참여 중인 대화방이 아닙니다.')

    async def _ensure_users_exist(self, user_ids):
        user_ids = self._unique_ids(user_ids)
        found = await User.objects.filter(id__in=user_ids).acount()
        if found != len(user_ids):
            raise NotFoundError('user not found', '사용자를 찾을 수 없습니다.')

    def _normalize_id(self, user_id):
        try:
            return str(uuid.UUID(str(user_id)))
        except ValueError:
            raise NotFoundError('user not found', '사용자를 찾을 수 없습니다.')

    def _unique_ids(self, user_ids):
        unique = []
        for user_id in map(self._normalize_id, user_ids):
            if user_id not in unique:
                unique.append(user_id)
        return unique
