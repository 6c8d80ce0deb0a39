import json
import logging

from channels.layers import get_channel_layer
from django.core.serializers.json import DjangoJSONEncoder
from django.db import DatabaseError

from common.exceptions import NotFoundError, NotifyFailure

from .models import Notification

logger = logging.getLogger('notifications')

NOTIFICATION_TEMPLATES = {
    Notification.TYPE_BOOKING_CONFIRMED: ('예약 확정', '예약이 확정되었습니다. 게임 채팅방에서 참여자와 대화해보세요.'),
    Notification.TYPE_BOOKING_REJECTED: ('예약 거절', '예약이 거절되었습니다. 사유: {reason}'),
    Notification.TYPE_JOIN_REQUEST_RECEIVED: ('새 참여 요청', '누군가 경기에 참여하고 싶어합니다!'),
    Notification.TYPE_JOIN_REQUEST_ACCEPTED: ('참여 요청 수락', '참여 요청이 수락되었습니다.'),
    Notification.TYPE_JOIN_REQUEST_REJECTED: ('참여 요청 거절', '참여 요청이 거절되었습니다.'),
}


def notification_group_name(user_id):
    return f'notifications_{user_id}'


def serialize_notification(notification):
    return {
        'id': str(notification.id),
        'type': notification.notification_type,
        'title': notification.title,
        'message': notification.message,
        'payload': notification.payload,
        'is_read': notification.is_read,
        'created_at': notification.created_at.isoformat(),
    }


class NotificationDispatcher:
    """
    상태 전이에 따른 알림을 최선 노력(best-effort) 방식으로 생성합니다.

    알림 생성 실패는 NotifyFailure로 호출 측에 전달되며, 호출 측은 이미 커밋된
    상태 전이를 되돌리지 않고 경고로만 기록합니다. 알림이 없다는 사실이 상태
    전이가 없었다는 의미는 아닙니다.
    """

    def __init__(self, channel_layer=None):
        self.channel_layer = channel_layer or get_channel_layer()

    async def notify(self, recipient_id, notification_type, payload=None):
        if notification_type not in NOTIFICATION_TEMPLATES:
            raise NotifyFailure('unknown notification type', f'알 수 없는 알림 타입입니다: {notification_type}')

        payload = json.loads(json.dumps(payload or {}, cls=DjangoJSONEncoder))
        title, template = NOTIFICATION_TEMPLATES[notification_type]
        message = template.format(reason=payload.get('reason') or '-')

        try:
            notification = await Notification.objects.acreate(
                recipient_id=recipient_id,
                notification_type=notification_type,
                title=title,
                message=message,
                payload=payload,
            )
        except DatabaseError as exc:
            logger.warning(
                f'알림 생성 실패 ({notification_type} -> {recipient_id}): {exc}',
                exc_info=True,
            )
            raise NotifyFailure('notification not stored') from exc

        await self._push(notification)
        logger.info(f'알림 생성: {notification_type} -> {recipient_id}')
        return notification

    async def _push(self, notification):
        if self.channel_layer is None:
            return

        try:
            await self.channel_layer.group_send(
                notification_group_name(notification.recipient_id),
                {
                    'type': 'notification',
                    'notification': serialize_notification(notification),
                }
            )
        except Exception as exc:
            # 레코드는 이미 저장됨, 실시간 전달만 실패
            logger.warning(f'알림 실시간 전달 실패 ({notification.id}): {exc}')

    async def list_for_user(self, user_id, unread_only=False, limit=50):
        queryset = Notification.objects.filter(recipient_id=user_id)
        if unread_only:
            queryset = queryset.filter(is_read=False)
        return [notification async for notification in queryset.order_by('-created_at')[:limit]]

    async def unread_count(self, user_id):
        return await Notification.objects.filter(recipient_id=user_id, is_read=False).acount()

    async def mark_read(self, notification_id, user_id):
        updated = await Notification.objects.filter(
            id=notification_id,
            recipient_id=user_id,
        ).aupdate(is_read=True)

        if not updated:
            raise NotFoundError('notification not found', '알림을 찾을 수 없습니다.')
