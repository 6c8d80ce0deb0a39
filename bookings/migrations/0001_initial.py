import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='BookingRequest',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('venue_id', models.CharField(max_length=64, verbose_name='구장 ID')),
                ('court_id', models.CharField(max_length=64, verbose_name='코트 ID')),
                ('date', models.DateField(verbose_name='경기 날짜')),
                ('start_time', models.TimeField(verbose_name='시작 시간')),
                ('duration_minutes', models.PositiveIntegerField(verbose_name='경기 시간 (분)')),
                ('capacity_total', models.PositiveIntegerField(verbose_name='전체 인원')),
                ('capacity_filled', models.PositiveIntegerField(default=0, verbose_name='참여 인원')),
                ('status', models.CharField(choices=[('pending', '대기중'), ('confirmed', '확정됨'), ('rejected', '거절됨'), ('cancelled', '취소됨')], default='pending', max_length=10, verbose_name='상태')),
                ('rejection_reason', models.TextField(blank=True, null=True, verbose_name='거절 사유')),
                ('details', models.JSONField(blank=True, default=dict, verbose_name='표시용 부가 정보')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('decided_at', models.DateTimeField(blank=True, null=True, verbose_name='처리 시간')),
                ('host', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='hosted_bookings', to=settings.AUTH_USER_MODEL, verbose_name='호스트')),
                ('requester', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='booking_requests', to=settings.AUTH_USER_MODEL, verbose_name='요청자')),
            ],
            options={
                'verbose_name': '예약 요청',
                'verbose_name_plural': '예약 요청',
                'db_table': 'bookings',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['host', 'status'], name='bookings_host_id_status_idx'),
                    models.Index(fields=['requester', 'status'], name='bookings_requester_status_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('capacity_total__gte', 1)), name='booking_capacity_total_positive'),
                    models.CheckConstraint(condition=models.Q(('capacity_filled__lte', models.F('capacity_total'))), name='booking_capacity_not_exceeded'),
                ],
            },
        ),
        migrations.CreateModel(
            name='JoinRequest',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('status', models.CharField(choices=[('pending', '대기중'), ('accepted', '수락됨'), ('rejected', '거절됨'), ('cancelled', '취소됨')], default='pending', max_length=10, verbose_name='상태')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('responded_at', models.DateTimeField(blank=True, null=True, verbose_name='응답 시간')),
                ('booking', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='join_requests', to='bookings.bookingrequest', verbose_name='예약')),
                ('host', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='received_join_requests', to=settings.AUTH_USER_MODEL, verbose_name='호스트')),
                ('requester', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='sent_join_requests', to=settings.AUTH_USER_MODEL, verbose_name='요청자')),
            ],
            options={
                'verbose_name': '참여 요청',
                'verbose_name_plural': '참여 요청',
                'db_table': 'join_requests',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['host', 'status'], name='join_reques_host_id_status_idx'),
                    models.Index(fields=['booking', 'status'], name='join_reques_booking_status_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('status', 'pending')), fields=('booking', 'requester'), name='unique_pending_join_request'),
                ],
            },
        ),
    ]
