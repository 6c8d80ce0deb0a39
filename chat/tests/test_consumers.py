import pytest
from asgiref.sync import sync_to_async
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from rest_framework_simplejwt.tokens import AccessToken

from bookings.models import BookingRequest
from chat.chatrooms import ChatroomLifecycleManager
from chat.models import Message
from chat.registry import ConversationRegistry
from chat.routing import websocket_urlpatterns
from chat.streams import MessageStream
from config.constants import (
    WEBSOCKET_ERROR_CHATROOM_EXPIRED,
    WEBSOCKET_ERROR_INVALID_TOKEN,
    WEBSOCKET_ERROR_NO_TOKEN,
    WEBSOCKET_ERROR_NOT_MEMBER,
)
from notifications.dispatcher import NotificationDispatcher
from notifications.models import Notification

pytestmark = [pytest.mark.asyncio, pytest.mark.django_db(transaction=True)]

application = URLRouter(websocket_urlpatterns)


def token_for(user):
    return str(AccessToken.for_user(user))


async def connect(path, user=None):
    query = f'?token={token_for(user)}' if user else ''
    communicator = WebsocketCommunicator(application, f'/{path}{query}')
    connected, code = await communicator.connect()
    return communicator, connected, code


async def test_chat_message_reaches_other_participant(host, requester):
    conversation = await ConversationRegistry().get_or_create_direct(host.id, requester.id)
    host_socket, connected, _ = await connect(f'ws/chat/{conversation.id}/', host)
    assert connected
    requester_socket, connected, _ = await connect(f'ws/chat/{conversation.id}/', requester)
    assert connected

    # 상대방 접속 알림
    status = await host_socket.receive_json_from()
    assert status == {'type': 'user_status', 'user_id': str(requester.id), 'status': 'online'}

    await requester_socket.send_json_to({'type': 'chat_message', 'content': '몇 시에 오세요?'})

    received = await host_socket.receive_json_from()
    echoed = await requester_socket.receive_json_from()
    assert received['type'] == 'chat_message'
    assert received['message']['content'] == '몇 시에 오세요?'
    assert received['message']['sender_id'] == str(requester.id)
    assert echoed['message']['id'] == received['message']['id']
    assert await Message.objects.filter(conversation_id=conversation.id).acount() == 1

    await requester_socket.disconnect()
    await host_socket.disconnect()


async def test_sync_returns_messages_after_cursor(host, requester):
    conversation = await ConversationRegistry().get_or_create_direct(host.id, requester.id)
    first = await Message.objects.acreate(conversation=conversation, sender=host, content='first')
    second = await Message.objects.acreate(conversation=conversation, sender=host, content='second')

    socket, connected, _ = await connect(f'ws/chat/{conversation.id}/', requester)
    assert connected

    await socket.send_json_to({'type': 'sync', 'after': str(first.id)})
    response = await socket.receive_json_from()

    assert response['type'] == 'sync'
    assert [message['id'] for message in response['messages']] == [str(second.id)]
    await socket.disconnect()


async def test_empty_message_returns_error(host, requester):
    conversation = await ConversationRegistry().get_or_create_direct(host.id, requester.id)
    socket, connected, _ = await connect(f'ws/chat/{conversation.id}/', host)
    assert connected

    await socket.send_json_to({'type': 'chat_message', 'content': ''})
    response = await socket.receive_json_from()

    assert response['type'] == 'error'
    await socket.disconnect()


async def test_non_member_is_rejected(host, requester, make_user):
    stranger = await sync_to_async(make_user)('Stranger')
    conversation = await ConversationRegistry().get_or_create_direct(host.id, requester.id)

    _, connected, code = await connect(f'ws/chat/{conversation.id}/', stranger)

    assert not connected
    assert code == WEBSOCKET_ERROR_NOT_MEMBER


async def test_missing_or_invalid_token(host, requester):
    conversation = await ConversationRegistry().get_or_create_direct(host.id, requester.id)

    _, connected, code = await connect(f'ws/chat/{conversation.id}/')
    assert not connected
    assert code == WEBSOCKET_ERROR_NO_TOKEN

    communicator = WebsocketCommunicator(application, f'/ws/chat/{conversation.id}/?token=invalid')
    connected, code = await communicator.connect()
    assert not connected
    assert code == WEBSOCKET_ERROR_INVALID_TOKEN


async def test_notification_socket_receives_push(host, channel_layer):
    socket, connected, _ = await connect('ws/notifications/', host)
    assert connected

    await NotificationDispatcher(channel_layer).notify(
        host.id, Notification.TYPE_JOIN_REQUEST_RECEIVED, {'booking_id': 'b-1'},
    )
    response = await socket.receive_json_from()

    assert response['type'] == 'notification'
    assert response['notification']['type'] == Notification.TYPE_JOIN_REQUEST_RECEIVED
    assert response['notification']['payload'] == {'booking_id': 'b-1'}
    await socket.disconnect()


async def test_expired_chatroom_is_rejected(host, make_booking, channel_layer):
    booking = await sync_to_async(make_booking)(status=BookingRequest.STATUS_CONFIRMED)
    manager = ChatroomLifecycleManager(stream=MessageStream(channel_layer))
    chatroom = await manager.create_for_booking(booking)
    await manager.sweep_expired()

    _, connected, code = await connect(f'ws/chat/{chatroom.conversation_id}/', host)

    assert not connected
    assert code == WEBSOCKET_ERROR_CHATROOM_EXPIRED


async def test_typing_and_presence_reach_others_only(host, requester):
    conversation = await ConversationRegistry().get_or_create_direct(host.id, requester.id)
    host_socket, _, _ = await connect(f'ws/chat/{conversation.id}/', host)
    requester_socket, _, _ = await connect(f'ws/chat/{conversation.id}/', requester)
    assert (await host_socket.receive_json_from())['status'] == 'online'

    await requester_socket.send_json_to({'type': 'typing', 'is_typing': True})

    typing = await host_socket.receive_json_from()
    assert typing == {
        'type': 'typing',
        'user': {'id': str(requester.id), 'name': requester.name, 'profile_image': None},
        'is_typing': True,
    }
    assert await requester_socket.receive_nothing()

    await requester_socket.disconnect()
    status = await host_socket.receive_json_from()
    assert status == {'type': 'user_status', 'user_id': str(requester.id), 'status': 'offline'}
    assert not await Message.objects.filter(conversation_id=conversation.id).aexists()
    await host_socket.disconnect()
