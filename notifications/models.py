import uuid

from django.contrib.auth import get_user_model
from django.db import models

User = get_user_model()


class Notification(models.Model):
    """상태 변경 알림 모델"""
    TYPE_BOOKING_CONFIRMED = 'booking_confirmed'
    TYPE_BOOKING_REJECTED = 'booking_rejected'
    TYPE_JOIN_REQUEST_RECEIVED = 'join_request_received'
    TYPE_JOIN_REQUEST_ACCEPTED = 'join_request_accepted'
    TYPE_JOIN_REQUEST_REJECTED = 'join_request_rejected'

    TYPE_CHOICES = [
        (TYPE_BOOKING_CONFIRMED, '예약 확정'),
        (TYPE_BOOKING_REJECTED, '예약 거절'),
        (TYPE_JOIN_REQUEST_RECEIVED, '참여 요청 수신'),
        (TYPE_JOIN_REQUEST_ACCEPTED, '참여 요청 수락'),
        (TYPE_JOIN_REQUEST_REJECTED, '참여 요청 거절'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    recipient = models.ForeignKey(User, on_delete=models.CASCADE, related_name='notifications', verbose_name='수신자')
    notification_type = models.CharField(max_length=30, choices=TYPE_CHOICES, verbose_name='알림 타입')
    title = models.CharField(max_length=100, verbose_name='제목')
    message = models.TextField(verbose_name='내용')
    payload = models.JSONField(default=dict, blank=True, verbose_name='부가 정보')
    is_read = models.BooleanField(default=False, verbose_name='읽음 여부')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'notifications'
        verbose_name = '알림'
        verbose_name_plural = '알림'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['recipient', 'is_read'], name='notif_recipient_read_idx'),
        ]

    def __str__(self):
        return f"{self.recipient_id}: {self.notification_type}"
