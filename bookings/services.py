import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from channels.db import database_sync_to_async
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import F, Q
from django.utils import timezone

from chat.chatrooms import ChatroomLifecycleManager
from chat.registry import ConversationRegistry
from chat.streams import MessageStream
from common.exceptions import (
    AuthError,
    ConflictError,
    NotFoundError,
    NotifyFailure,
    ServiceError,
    ValidationError,
)
from common.retry import retry_on_transient_store_error
from config.constants import JOIN_REQUEST_GREETING_MESSAGE
from notifications.dispatcher import NotificationDispatcher
from notifications.models import Notification

from .models import BookingRequest, JoinRequest
from .serializers import BookingDetailsSerializer

logger = logging.getLogger('bookings')

User = get_user_model()


@dataclass
class TransitionResult:
    """
    상태 전이 결과

    record 는 전이가 커밋된 레코드입니다. 채팅방 생성, 알림 등 부수 작업의 실패는
    전이를 되돌리지 않고 warnings 에 기록됩니다.
    """
    record: Any
    chatroom: Optional[Any] = None
    warnings: List[str] = field(default_factory=list)


class BookingRequestCoordinator:
    """
    예약 요청과 참여 요청의 상태 전이

    모든 전이는 pending 상태를 조건으로 하는 조건부 UPDATE 로 처리되어, 같은 레코드에
    대한 동시 결정 중 정확히 하나만 성공합니다. 나머지는 ConflictError 를 받습니다.
    참여 인원(capacity_filled)은 capacity_total 을 넘지 않는 조건으로만 증가합니다.
    """

    def __init__(self, chatrooms=None, notifier=None, registry=None, stream=None):
        self.registry = registry or ConversationRegistry()
        self.stream = stream or MessageStream()
        self.chatrooms = chatrooms or ChatroomLifecycleManager(registry=self.registry, stream=self.stream)
        self.notifier = notifier or NotificationDispatcher()

    # MARK: - Booking Requests

    async def create_booking_request(self, venue_id, court_id, host_id, requester_id, date, start_time,
                                     duration_minutes, capacity_total, details=None):
        if not isinstance(duration_minutes, int) or duration_minutes <= 0:
            raise ValidationError('invalid time range', '종료 시간은 시작 시간 이후여야 합니다.')
        if not isinstance(capacity_total, int) or capacity_total < 1:
            raise ValidationError('invalid capacity', '전체 인원은 1명 이상이어야 합니다.')
        if not venue_id or not court_id:
            raise ValidationError('invalid court', '구장과 코트를 선택해주세요.')

        validated_details = self._validate_details(details)
        await self._ensure_users_exist([host_id, requester_id])

        booking = await self._create_booking(
            venue_id=venue_id,
            court_id=court_id,
            host_id=host_id,
            requester_id=requester_id,
            date=date,
            start_time=start_time,
            duration_minutes=duration_minutes,
            capacity_total=capacity_total,
            details=validated_details,
        )
        logger.info(f'예약 요청 생성: {booking.id} ({venue_id}/{court_id} {date} {start_time})')
        return booking

    @retry_on_transient_store_error('create_booking_request')
    async def _create_booking(self, **fields):
        return await BookingRequest.objects.acreate(**fields)

    def _validate_details(self, details):
        if details is None:
            return {}

        serializer = BookingDetailsSerializer(data=details)
        if not serializer.is_valid():
            raise ValidationError('invalid details', f'예약 부가 정보가 올바르지 않습니다: {serializer.errors}')
        return dict(serializer.validated_data)

    async def respond_to_booking_request(self, booking_id, decision, reason=None, actor_id=None):
        if decision not in ('confirm', 'reject'):
            raise ValidationError('invalid decision', "decision 은 'confirm' 또는 'reject' 이어야 합니다.")

        booking = await self._get_booking(booking_id)
        if actor_id is not None and str(actor_id) != str(booking.host_id):
            raise AuthError('not host', '호스트만 예약 요청을 처리할 수 있습니다.')

        if decision == 'confirm':
            await self._transition_booking(booking.id, BookingRequest.STATUS_CONFIRMED)
        else:
            await self._transition_booking(booking.id, BookingRequest.STATUS_REJECTED, rejection_reason=reason)

        await booking.arefresh_from_db()
        logger.info(f'예약 요청 {booking.id}: {booking.status}')
        result = TransitionResult(booking)

        if decision == 'confirm':
            result.chatroom = await self._setup_chatroom(result, booking)
            await self._notify(result, booking.requester_id, Notification.TYPE_BOOKING_CONFIRMED, {
                'booking_id': booking.id,
                'chatroom_id': result.chatroom.id if result.chatroom else None,
                'conversation_id': result.chatroom.conversation_id if result.chatroom else None,
            })
        else:
            await self._notify(result, booking.requester_id, Notification.TYPE_BOOKING_REJECTED, {
                'booking_id': booking.id,
                'reason': reason,
            })

        return result

    async def cancel_booking_request(self, booking_id, actor_id):
        """
        대기 중인 예약 요청 취소

        actor_id 가 None 이면 시스템 취소로 처리합니다.
        """
        booking = await self._get_booking(booking_id)
        if actor_id is not None and str(actor_id) not in (str(booking.host_id), str(booking.requester_id)):
            raise AuthError('not allowed', '예약 요청자 또는 호스트만 취소할 수 있습니다.')

        await self._transition_booking(booking.id, BookingRequest.STATUS_CANCELLED)
        await booking.arefresh_from_db()
        logger.info(f'예약 요청 {booking.id}: cancelled')
        return TransitionResult(booking)

    @retry_on_transient_store_error('transition_booking')
    async def _transition_booking(self, booking_id, status, **extra):
        now = timezone.now()
        updated = await BookingRequest.objects.filter(
            id=booking_id,
            status=BookingRequest.STATUS_PENDING,
        ).aupdate(status=status, decided_at=now, updated_at=now, **extra)

        if not updated:
            raise ConflictError('already decided', '이미 처리된 예약 요청입니다.')

    async def list_booking_requests(self, user_id):
        queryset = BookingRequest.objects.filter(
            Q(host_id=user_id) | Q(requester_id=user_id)
        ).select_related('host', 'requester').order_by('-created_at')
        return [booking async for booking in queryset]

    # MARK: - Join Requests

    async def send_join_request(self, booking_id, requester_id):
        booking = await self._get_booking(booking_id)
        await self._ensure_users_exist([requester_id])

        if str(requester_id) == str(booking.host_id):
            raise ValidationError('own game', '자신이 호스트인 경기에는 참여 요청을 보낼 수 없습니다.')
        if booking.is_full:
            raise ConflictError('game full', '경기 인원이 모두 찼습니다.')
        if booking.status != BookingRequest.STATUS_CONFIRMED:
            raise ConflictError('booking not open', '확정된 경기에만 참여 요청을 보낼 수 있습니다.')

        already_joined = await JoinRequest.objects.filter(
            booking_id=booking.id,
            requester_id=requester_id,
            status=JoinRequest.STATUS_ACCEPTED,
        ).aexists()
        if already_joined:
            raise ConflictError('already joined', '이미 참여 중인 경기입니다.')

        # 거절된 요청이 있으면 다시 요청할 수 없음 (본인이 취소한 요청은 예외)
        previously_rejected = await JoinRequest.objects.filter(
            booking_id=booking.id,
            requester_id=requester_id,
            status=JoinRequest.STATUS_REJECTED,
        ).aexists()
        if previously_rejected:
            raise ConflictError('previously rejected', '이전 참여 요청이 거절되었습니다.')

        join_request = await self._create_join_request(booking, requester_id)
        logger.info(f'참여 요청 생성: {join_request.id} ({requester_id} -> {booking.id})')
        result = TransitionResult(join_request)

        await self._notify(result, booking.host_id, Notification.TYPE_JOIN_REQUEST_RECEIVED, {
            'booking_id': booking.id,
            'join_request_id': join_request.id,
            'requester_id': requester_id,
        })
        await self._send_greeting(result, join_request)
        return result

    @retry_on_transient_store_error('send_join_request')
    @database_sync_to_async
    def _create_join_request(self, booking, requester_id):
        try:
            with transaction.atomic():
                return JoinRequest.objects.create(
                    booking=booking,
                    requester_id=requester_id,
                    host_id=booking.host_id,
                )
        except IntegrityError:
            raise ConflictError('duplicate', '이미 대기 중인 참여 요청이 있습니다.')

    async def accept_join_request(self, join_request_id, actor_id=None):
        join_request = await self._get_join_request(join_request_id)
        self._check_host(join_request, actor_id)

        await self._accept_join_request(join_request.id, join_request.booking_id)
        await join_request.arefresh_from_db()
        booking = await self._get_booking(join_request.booking_id)
        logger.info(
            f'참여 요청 수락: {join_request.id} '
            f'(예약 {booking.id} {booking.capacity_filled}/{booking.capacity_total})'
        )

        result = TransitionResult(join_request)
        result.chatroom = await self._add_to_chatroom(result, booking, join_request.requester_id)
        await self._notify(result, join_request.requester_id, Notification.TYPE_JOIN_REQUEST_ACCEPTED, {
            'booking_id': booking.id,
            'join_request_id': join_request.id,
            'chatroom_id': result.chatroom.id if result.chatroom else None,
            'conversation_id': result.chatroom.conversation_id if result.chatroom else None,
        })
        return result

    @retry_on_transient_store_error('accept_join_request')
    @database_sync_to_async
    def _accept_join_request(self, join_request_id, booking_id):
        now = timezone.now()
        with transaction.atomic():
            updated = JoinRequest.objects.filter(
                id=join_request_id,
                status=JoinRequest.STATUS_PENDING,
            ).update(status=JoinRequest.STATUS_ACCEPTED, responded_at=now, updated_at=now)
            if not updated:
                raise ConflictError('already decided', '이미 처리된 참여 요청입니다.')

            # 정원 초과 시 위의 수락도 함께 롤백
            filled = BookingRequest.objects.filter(
                id=booking_id,
                capacity_filled__lt=F('capacity_total'),
            ).update(capacity_filled=F('capacity_filled') + 1, updated_at=now)
            if not filled:
                raise ConflictError('game full', '경기 인원이 모두 찼습니다.')

    async def reject_join_request(self, join_request_id, actor_id=None):
        join_request = await self._get_join_request(join_request_id)
        self._check_host(join_request, actor_id)

        await self._transition_join_request(join_request.id, JoinRequest.STATUS_REJECTED)
        await join_request.arefresh_from_db()
        logger.info(f'참여 요청 거절: {join_request.id}')

        result = TransitionResult(join_request)
        await self._notify(result, join_request.requester_id, Notification.TYPE_JOIN_REQUEST_REJECTED, {
            'booking_id': join_request.booking_id,
            'join_request_id': join_request.id,
        })
        return result

    async def cancel_join_request(self, join_request_id, actor_id):
        join_request = await self._get_join_request(join_request_id)
        if str(actor_id) != str(join_request.requester_id):
            raise AuthError('not requester', '참여 요청을 보낸 사용자만 취소할 수 있습니다.')

        await self._transition_join_request(join_request.id, JoinRequest.STATUS_CANCELLED)
        await join_request.arefresh_from_db()
        logger.info(f'참여 요청 취소: {join_request.id}')
        return TransitionResult(join_request)

    @retry_on_transient_store_error('transition_join_request')
    async def _transition_join_request(self, join_request_id, status):
        now = timezone.now()
        updated = await JoinRequest.objects.filter(
            id=join_request_id,
            status=JoinRequest.STATUS_PENDING,
        ).aupdate(status=status, responded_at=now, updated_at=now)

        if not updated:
            raise ConflictError('already decided', '이미 처리된 참여 요청입니다.')

    async def list_join_requests_for_booking(self, booking_id, actor_id):
        booking = await self._get_booking(booking_id)
        if str(actor_id) != str(booking.host_id):
            raise AuthError('not host', '호스트만 참여 요청 목록을 볼 수 있습니다.')

        queryset = JoinRequest.objects.filter(booking_id=booking.id).select_related(
            'booking', 'booking__host', 'booking__requester', 'requester',
        ).order_by('-created_at')
        return [join_request async for join_request in queryset]

    async def list_pending_join_requests(self, host_id):
        queryset = JoinRequest.objects.filter(
            host_id=host_id,
            status=JoinRequest.STATUS_PENDING,
        ).select_related('booking', 'booking__host', 'booking__requester', 'requester').order_by('-created_at')
        return [join_request async for join_request in queryset]

    async def pending_join_request_count(self, host_id):
        return await JoinRequest.objects.filter(host_id=host_id, status=JoinRequest.STATUS_PENDING).acount()

    async def list_my_join_requests(self, requester_id, status=None):
        """내가 보낸 참여 요청 목록 (status 를 주면 해당 상태만)"""
        queryset = JoinRequest.objects.filter(requester_id=requester_id)
        if status is not None:
            if status not in dict(JoinRequest.STATUS_CHOICES):
                raise ValidationError('invalid status', '참여 요청 상태가 올바르지 않습니다.')
            queryset = queryset.filter(status=status)

        queryset = queryset.select_related(
            'booking', 'booking__host', 'booking__requester', 'requester',
        ).order_by('-created_at')
        return [join_request async for join_request in queryset]

    async def get_my_join_request(self, booking_id, requester_id):
        """
        해당 경기에 내가 보낸 가장 최근 참여 요청

        Returns:
            JoinRequest 또는 요청한 적이 없으면 None
        """
        booking = await self._get_booking(booking_id)
        return await JoinRequest.objects.filter(
            booking_id=booking.id,
            requester_id=requester_id,
        ).select_related(
            'booking', 'booking__host', 'booking__requester', 'requester',
        ).order_by('-created_at').afirst()

    # MARK: - Side effects

    async def _setup_chatroom(self, result, booking):
        try:
            return await self.chatrooms.create_for_booking(booking)
        except (ServiceError, DatabaseError) as exc:
            logger.warning(f'게임 채팅방 생성 실패 (예약 {booking.id}): {exc}', exc_info=True)
            result.warnings.append(f'chatroom setup failed: {getattr(exc, "reason", exc)}')
            return None

    async def _add_to_chatroom(self, result, booking, user_id):
        try:
            chatroom = await self.chatrooms.get_for_booking(booking.id)
            if chatroom is None:
                chatroom = await self.chatrooms.create_for_booking(booking)
            await self.chatrooms.add_participant(chatroom.id, user_id)
            return chatroom
        except (ServiceError, DatabaseError) as exc:
            logger.warning(f'게임 채팅방 참여 실패 (예약 {booking.id}, 사용자 {user_id}): {exc}', exc_info=True)
            result.warnings.append(f'chatroom join failed: {getattr(exc, "reason", exc)}')
            return None

    async def _notify(self, result, recipient_id, notification_type, payload):
        try:
            await self.notifier.notify(recipient_id, notification_type, payload)
        except NotifyFailure as exc:
            result.warnings.append(f'{notification_type} notification failed: {exc.reason}')

    async def _send_greeting(self, result, join_request):
        try:
            conversation = await self.registry.get_or_create_direct(join_request.requester_id, join_request.host_id)
            await self.stream.send(
                conversation.id,
                join_request.requester_id,
                JOIN_REQUEST_GREETING_MESSAGE,
                metadata={'join_request_id': str(join_request.id), 'booking_id': str(join_request.booking_id)},
            )
        except (ServiceError, DatabaseError) as exc:
            logger.warning(f'참여 요청 인사 메시지 전송 실패 ({join_request.id}): {exc}', exc_info=True)
            result.warnings.append(f'greeting message failed: {getattr(exc, "reason", exc)}')

    # MARK: - Helpers

    def _check_host(self, join_request, actor_id):
        if actor_id is not None and str(actor_id) != str(join_request.host_id):
            raise AuthError('not host', '호스트만 참여 요청을 처리할 수 있습니다.')

    async def _get_booking(self, booking_id):
        try:
            return await BookingRequest.objects.aget(id=booking_id)
        except (BookingRequest.DoesNotExist, DjangoValidationError):
            raise NotFoundError('booking not found', '예약 요청을 찾을 수 없습니다.')

    async def _get_join_request(self, join_request_id):
        try:
            return await JoinRequest.objects.aget(id=join_request_id)
        except (JoinRequest.DoesNotExist, DjangoValidationError):
            raise NotFoundError('join request not found', '참여 요청을 찾을 수 없습니다.')

    async def _ensure_users_exist(self, user_ids):
        user_ids = {str(user_id) for user_id in user_ids}
        try:
            found = await User.objects.filter(id__in=user_ids).acount()
        except DjangoValidationError:
            found = 0

        if found != len(user_ids):
            raise NotFoundError('user not found', '사용자를 찾을 수 없습니다.')
