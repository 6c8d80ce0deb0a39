import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('bookings', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Conversation',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('conversation_type', models.CharField(choices=[('direct', '1:1 채팅'), ('group', '그룹 채팅'), ('game', '게임 채팅'), ('channel', '종목/지역 채널')], max_length=10, verbose_name='대화방 타입')),
                ('name', models.CharField(blank=True, max_length=100, null=True, verbose_name='대화방 이름')),
                ('description', models.TextField(blank=True, null=True, verbose_name='설명')),
                ('pair_key', models.CharField(blank=True, max_length=80, null=True, unique=True, verbose_name='1:1 참여자 쌍 키')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_conversations', to=settings.AUTH_USER_MODEL, verbose_name='생성자')),
            ],
            options={
                'verbose_name': '대화방',
                'verbose_name_plural': '대화방',
                'db_table': 'conversations',
                'ordering': ['-updated_at'],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('conversation_type', 'channel')), fields=('conversation_type', 'name'), name='unique_channel_name'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ConversationParticipant',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('role', models.CharField(choices=[('owner', '방장'), ('member', '멤버')], default='member', max_length=10, verbose_name='역할')),
                ('joined_at', models.DateTimeField(auto_now_add=True)),
                ('last_read_at', models.DateTimeField(blank=True, null=True, verbose_name='마지막 읽은 시간')),
                ('conversation', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='participants', to='chat.conversation', verbose_name='대화방')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='conversation_memberships', to=settings.AUTH_USER_MODEL, verbose_name='사용자')),
            ],
            options={
                'verbose_name': '대화방 참여자',
                'verbose_name_plural': '대화방 참여자',
                'db_table': 'conversation_participants',
                'ordering': ['joined_at'],
                'unique_together': {('conversation', 'user')},
            },
        ),
        migrations.CreateModel(
            name='Message',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('kind', models.CharField(choices=[('text', '텍스트'), ('system', '시스템 메시지'), ('score', '점수 업데이트')], default='text', max_length=10, verbose_name='메시지 타입')),
                ('content', models.TextField(verbose_name='메시지 내용')),
                ('metadata', models.JSONField(blank=True, default=dict, verbose_name='부가 정보')),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('conversation', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='messages', to='chat.conversation', verbose_name='대화방')),
                ('sender', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='sent_messages', to=settings.AUTH_USER_MODEL, verbose_name='발신자')),
            ],
            options={
                'verbose_name': '메시지',
                'verbose_name_plural': '메시지',
                'db_table': 'messages',
                'ordering': ['created_at', 'id'],
                'indexes': [
                    models.Index(fields=['conversation', 'created_at'], name='messages_conv_created_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='GameChatroom',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('venue_ref', models.CharField(max_length=64, verbose_name='구장')),
                ('court_ref', models.CharField(max_length=64, verbose_name='코트')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('expires_at', models.DateTimeField(verbose_name='만료 시간')),
                ('is_active', models.BooleanField(default=True, verbose_name='활성 여부')),
                ('booking', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='chatroom', to='bookings.bookingrequest', verbose_name='예약')),
                ('conversation', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='game_chatroom', to='chat.conversation', verbose_name='대화방')),
                ('host', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='hosted_chatrooms', to=settings.AUTH_USER_MODEL, verbose_name='호스트')),
            ],
            options={
                'verbose_name': '게임 채팅방',
                'verbose_name_plural': '게임 채팅방',
                'db_table': 'game_chatrooms',
                'ordering': ['expires_at'],
                'indexes': [
                    models.Index(fields=['is_active', 'expires_at'], name='game_chatroom_active_exp_idx'),
                ],
            },
        ),
    ]
