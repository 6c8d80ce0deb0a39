import json
from typing import Optional, Tuple

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer
from django.contrib.auth import get_user_model
from django.core.serializers.json import DjangoJSONEncoder
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError
from rest_framework_simplejwt.tokens import AccessToken

from common.exceptions import ConflictError, ServiceError
from config.constants import (
    WEBSOCKET_ERROR_CHATROOM_EXPIRED,
    WEBSOCKET_ERROR_INVALID_TOKEN,
    WEBSOCKET_ERROR_NO_TOKEN,
    WEBSOCKET_ERROR_NOT_MEMBER,
    WEBSOCKET_ERROR_USER_NOT_FOUND,
)
from notifications.dispatcher import notification_group_name

from .registry import ConversationRegistry
from .streams import MessageStream, chat_group_name, serialize_message

User = get_user_model()


class BaseAuthConsumer(AsyncWebsocketConsumer):
    user = None

    def parse_token_from_query_string(self) -> Optional[str]:
        query_string = self.scope.get('query_string', b'').decode()
        query_params = dict(
            param.split('=', 1) for param in query_string.split('&') if '=' in param
        )
        return query_params.get('token')

    async def authenticate_user(self) -> Tuple[bool, Optional[int]]:
        token = self.parse_token_from_query_string()

        if not token:
            return False, WEBSOCKET_ERROR_NO_TOKEN

        try:
            access_token = AccessToken(token)
            user_id = access_token.get('user_id')
            self.user = await self.get_user(user_id)

            if not self.user:
                return False, WEBSOCKET_ERROR_USER_NOT_FOUND

            return True, None

        except (InvalidToken, TokenError):
            return False, WEBSOCKET_ERROR_INVALID_TOKEN

    @database_sync_to_async
    def get_user(self, user_id):
        try:
            return User.objects.get(id=user_id)
        except User.DoesNotExist:
            return None

    async def send_json(self, data):
        await self.send(text_data=json.dumps(data, cls=DjangoJSONEncoder, ensure_ascii=False))

    async def send_error(self, message):
        await self.send_json({
            'type': 'error',
            'message': message
        })


class ChatConsumer(BaseAuthConsumer):
    """
    대화방 실시간 연결

    그룹 참여 후 클라이언트가 'sync' 로 마지막 메시지 ID를 보내면 그 이후 메시지를
    다시 전달합니다. 실시간 전달과 겹칠 수 있으므로 클라이언트는 메시지 id 로 중복을
    제거합니다.
    """

    async def connect(self):
        self.conversation_id = self.scope['url_route']['kwargs']['conversation_id']
        self.group_name = chat_group_name(self.conversation_id)
        self.registry = ConversationRegistry()
        self.stream = MessageStream(self.channel_layer)

        is_authenticated, error_code = await self.authenticate_user()
        if not is_authenticated:
            await self.close(code=error_code)
            return

        is_member = await self.registry.is_participant(self.conversation_id, self.user.id)
        if not is_member:
            await self.close(code=WEBSOCKET_ERROR_NOT_MEMBER)
            return

        try:
            await self.stream.ensure_open(self.conversation_id)
        except ConflictError:
            await self.close(code=WEBSOCKET_ERROR_CHATROOM_EXPIRED)
            return

        await self.channel_layer.group_add(
            self.group_name,
            self.channel_name
        )
        self.joined = True

        await self.accept()

        await self.channel_layer.group_send(
            self.group_name,
            {
                'type': 'user_status',
                'user_id': str(self.user.id),
                'status': 'online'
            }
        )

    async def disconnect(self, close_code):
        if getattr(self, 'joined', False):
            await self.channel_layer.group_send(
                self.group_name,
                {
                    'type': 'user_status',
                    'user_id': str(self.user.id),
                    'status': 'offline'
                }
            )

            await self.channel_layer.group_discard(
                self.group_name,
                self.channel_name
            )

    async def receive(self, text_data):
        try:
            data = json.loads(text_data)
            message_type = data.get('type')

            if message_type == 'chat_message':
                await self.handle_chat_message(data)
            elif message_type == 'score_update':
                await self.handle_score_update(data)
            elif message_type == 'typing':
                await self.handle_typing(data)
            elif message_type == 'read_receipt':
                await self.handle_read_receipt(data)
            elif message_type == 'sync':
                await self.handle_sync(data)
            else:
                await self.send_error('Unknown message type')

        except json.JSONDecodeError:
            await self.send_error('Invalid JSON')
        except ServiceError as e:
            await self.send_error(e.message)

    async def handle_chat_message(self, data):
        # 전달은 MessageStream 이 그룹으로 발행한 이벤트(chat_message)로 이루어짐
        await self.stream.send(
            self.conversation_id,
            self.user.id,
            data.get('content', ''),
            metadata=data.get('metadata') or None,
        )

    async def handle_score_update(self, data):
        await self.stream.send_score_update(
            self.conversation_id,
            self.user.id,
            data.get('team1'),
            data.get('team2'),
        )

    async def handle_typing(self, data):
        is_typing = data.get('is_typing', False)

        await self.channel_layer.group_send(
            self.group_name,
            {
                'type': 'typing_indicator',
                'user': {
                    'id': str(self.user.id),
                    'name': self.user.name,
                    'profile_image': self.user.profile_image if self.user.profile_image else None
                },
                'is_typing': is_typing,
                'sender_channel': self.channel_name
            }
        )

    async def handle_read_receipt(self, data):
        await self.registry.mark_read(self.conversation_id, self.user.id)

        await self.channel_layer.group_send(
            self.group_name,
            {
                'type': 'read_receipt',
                'user_id': str(self.user.id),
                'message_ids': data.get('message_ids', [])
            }
        )

    async def handle_sync(self, data):
        after = data.get('after')
        if after:
            messages = await self.stream.get_messages_after(self.conversation_id, after)
        else:
            messages = (await self.stream.get_history(self.conversation_id)).messages

        await self.send_json({
            'type': 'sync',
            'messages': [serialize_message(message) for message in messages]
        })

    async def chat_message(self, event):
        await self.send_json({
            'type': 'chat_message',
            'message': event['message']
        })

    async def typing_indicator(self, event):
        if event.get('sender_channel') != self.channel_name:
            await self.send_json({
                'type': 'typing',
                'user': event['user'],
                'is_typing': event['is_typing']
            })

    async def read_receipt(self, event):
        await self.send_json({
            'type': 'read_receipt',
            'user_id': event['user_id'],
            'message_ids': event['message_ids']
        })

    async def user_status(self, event):
        if event['user_id'] != str(self.user.id):
            await self.send_json({
                'type': 'user_status',
                'user_id': event['user_id'],
                'status': event['status']
            })


class NotificationConsumer(BaseAuthConsumer):
    async def connect(self):
        is_authenticated, error_code = await self.authenticate_user()
        if not is_authenticated:
            await self.close(code=error_code)
            return

        self.notification_group_name = notification_group_name(self.user.id)

        await self.channel_layer.group_add(
            self.notification_group_name,
            self.channel_name
        )

        await self.accept()

    async def disconnect(self, close_code):
        if hasattr(self, 'notification_group_name'):
            await self.channel_layer.group_discard(
                self.notification_group_name,
                self.channel_name
            )

    async def notification(self, event):
        await self.send_json({
            'type': 'notification',
            'notification': event['notification']
        })
