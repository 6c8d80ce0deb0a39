import uuid
from datetime import datetime, timedelta

from django.contrib.auth import get_user_model
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

User = get_user_model()


class BookingRequest(models.Model):
    """코트 예약 요청 모델"""
    STATUS_PENDING = 'pending'
    STATUS_CONFIRMED = 'confirmed'
    STATUS_REJECTED = 'rejected'
    STATUS_CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (STATUS_PENDING, '대기중'),
        (STATUS_CONFIRMED, '확정됨'),
        (STATUS_REJECTED, '거절됨'),
        (STATUS_CANCELLED, '취소됨'),
    ]
    TERMINAL_STATUSES = (STATUS_CONFIRMED, STATUS_REJECTED, STATUS_CANCELLED)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    venue_id = models.CharField(max_length=64, verbose_name='구장 ID')
    court_id = models.CharField(max_length=64, verbose_name='코트 ID')
    host = models.ForeignKey(User, on_delete=models.CASCADE, related_name='hosted_bookings', verbose_name='호스트')
    requester = models.ForeignKey(User, on_delete=models.CASCADE, related_name='booking_requests', verbose_name='요청자')
    date = models.DateField(verbose_name='경기 날짜')
    start_time = models.TimeField(verbose_name='시작 시간')
    duration_minutes = models.PositiveIntegerField(verbose_name='경기 시간 (분)')
    capacity_total = models.PositiveIntegerField(verbose_name='전체 인원')
    capacity_filled = models.PositiveIntegerField(default=0, verbose_name='참여 인원')
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_PENDING, verbose_name='상태')
    rejection_reason = models.TextField(null=True, blank=True, verbose_name='거절 사유')
    details = models.JSONField(default=dict, blank=True, verbose_name='표시용 부가 정보')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    decided_at = models.DateTimeField(null=True, blank=True, verbose_name='처리 시간')

    class Meta:
        db_table = 'bookings'
        verbose_name = '예약 요청'
        verbose_name_plural = '예약 요청'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['host', 'status'], name='bookings_host_id_status_idx'),
            models.Index(fields=['requester', 'status'], name='bookings_requester_status_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(capacity_total__gte=1),
                name='booking_capacity_total_positive',
            ),
            models.CheckConstraint(
                condition=Q(capacity_filled__lte=F('capacity_total')),
                name='booking_capacity_not_exceeded',
            ),
        ]

    def __str__(self):
        return f"{self.venue_id}/{self.court_id} {self.date} {self.start_time} ({self.status})"

    @property
    def starts_at(self):
        """예약 날짜/시간이 나타내는 로컬 시각 (TIME_ZONE 기준)"""
        return timezone.make_aware(datetime.combine(self.date, self.start_time))

    @property
    def ends_at(self):
        return self.starts_at + timedelta(minutes=self.duration_minutes)

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    @property
    def spots_left(self):
        return max(self.capacity_total - self.capacity_filled, 0)

    @property
    def is_full(self):
        return self.capacity_filled >= self.capacity_total


class JoinRequest(models.Model):
    """확정된 경기 참여 요청 모델"""
    STATUS_PENDING = 'pending'
    STATUS_ACCEPTED = 'accepted'
    STATUS_REJECTED = 'rejected'
    STATUS_CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (STATUS_PENDING, '대기중'),
        (STATUS_ACCEPTED, '수락됨'),
        (STATUS_REJECTED, '거절됨'),
        (STATUS_CANCELLED, '취소됨'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    booking = models.ForeignKey(BookingRequest, on_delete=models.CASCADE, related_name='join_requests', verbose_name='예약')
    requester = models.ForeignKey(User, on_delete=models.CASCADE, related_name='sent_join_requests', verbose_name='요청자')
    host = models.ForeignKey(User, on_delete=models.CASCADE, related_name='received_join_requests', verbose_name='호스트')
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_PENDING, verbose_name='상태')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    responded_at = models.DateTimeField(null=True, blank=True, verbose_name='응답 시간')

    class Meta:
        db_table = 'join_requests'
        verbose_name = '참여 요청'
        verbose_name_plural = '참여 요청'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['host', 'status'], name='join_reques_host_id_status_idx'),
            models.Index(fields=['booking', 'status'], name='join_reques_booking_status_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['booking', 'requester'],
                condition=Q(status='pending'),
                name='unique_pending_join_request',
            ),
        ]

    def __str__(self):
        return f"{self.requester_id} -> {self.booking_id} ({self.status})"
