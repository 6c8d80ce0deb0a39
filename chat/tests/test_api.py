from datetime import time, timedelta

import pytest
from asgiref.sync import async_to_sync
from django.utils import timezone

from bookings.models import BookingRequest
from chat.chatrooms import ChatroomLifecycleManager
from chat.models import Conversation, ConversationParticipant, Message
from chat.registry import ConversationRegistry

pytestmark = pytest.mark.django_db


@pytest.fixture
def direct(host, requester):
    return async_to_sync(ConversationRegistry().get_or_create_direct)(host.id, requester.id)


def messages_url(conversation):
    return f'/api/chat/conversations/{conversation.id}/messages/'


class TestConversationAPI:
    def test_requires_authentication(self, api_client):
        response = api_client.get('/api/chat/conversations/')

        assert response.status_code == 401

    def test_direct_conversation_is_reused(self, auth_client, host, requester):
        client = auth_client(host)

        first = client.post('/api/chat/conversations/direct/', {'user_id': str(requester.id)}, format='json')
        second = client.post('/api/chat/conversations/direct/', {'user_id': str(requester.id)}, format='json')

        assert first.status_code == 200
        assert first.data['id'] == second.data['id']
        assert first.data['conversation_type'] == Conversation.TYPE_DIRECT
        assert len(first.data['participants']) == 2

    def test_direct_conversation_with_self(self, auth_client, host):
        response = auth_client(host).post('/api/chat/conversations/direct/', {'user_id': str(host.id)}, format='json')

        assert response.status_code == 400
        assert response.data['reason'] == 'self conversation'

    def test_group_conversation_created(self, auth_client, host, requester):
        response = auth_client(host).post(
            '/api/chat/conversations/group/',
            {'name': '주말 경기', 'participant_ids': [str(requester.id)]},
            format='json',
        )

        assert response.status_code == 201
        assert response.data['conversation_type'] == Conversation.TYPE_GROUP
        assert {participant['user']['id'] for participant in response.data['participants']} == {
            str(host.id), str(requester.id)
        }

    def test_list_includes_last_message_and_unread(self, auth_client, direct, host, requester):
        Message.objects.create(conversation=direct, sender=requester, content='안녕하세요')

        response = auth_client(host).get('/api/chat/conversations/')

        assert response.status_code == 200
        assert [conversation['id'] for conversation in response.data] == [str(direct.id)]
        assert response.data[0]['last_message']['content'] == '안녕하세요'
        assert response.data[0]['unread_count'] == 1

    def test_channel_join_adds_member(self, auth_client, host):
        client = auth_client(host)

        response = client.post('/api/chat/conversations/channel/', {'sport': 'Tennis', 'city': '부산'}, format='json')
        again = client.post('/api/chat/conversations/channel/', {'sport': 'Tennis', 'city': '부산'}, format='json')

        assert response.status_code == 200
        assert response.data['name'] == '부산 - Tennis'
        assert again.data['id'] == response.data['id']
        assert ConversationParticipant.objects.filter(conversation_id=response.data['id'], user=host).count() == 1

    def test_add_participants(self, auth_client, host, requester, make_user):
        other = make_user('Other')
        conversation = async_to_sync(ConversationRegistry().create_group)(
            Conversation.TYPE_GROUP, 'A', [requester.id], host.id,
        )

        response = auth_client(host).post(
            f'/api/chat/conversations/{conversation.id}/participants/',
            {'user_ids': [str(requester.id), str(other.id)]},
            format='json',
        )

        assert response.status_code == 200
        assert response.data == {'added': [str(other.id)]}

    def test_read_marks_participant(self, auth_client, direct, host):
        response = auth_client(host).post(f'/api/chat/conversations/{direct.id}/read/')

        assert response.status_code == 200
        assert ConversationParticipant.objects.get(conversation=direct, user=host).last_read_at is not None

    def test_leave_channel(self, auth_client, host, direct):
        client = auth_client(host)
        channel_id = client.post('/api/chat/conversations/channel/', {'sport': 'Tennis'}, format='json').data['id']

        response = client.post(f'/api/chat/conversations/{channel_id}/leave/')

        assert response.status_code == 204
        assert not ConversationParticipant.objects.filter(conversation_id=channel_id, user=host).exists()
        assert client.post(f'/api/chat/conversations/{channel_id}/leave/').status_code == 404

        direct_response = client.post(f'/api/chat/conversations/{direct.id}/leave/')
        assert direct_response.status_code == 400
        assert direct_response.data['reason'] == 'not a channel'


class TestMessageAPI:
    def test_send_and_page_history(self, auth_client, direct, host):
        client = auth_client(host)
        for index in range(3):
            response = client.post(messages_url(direct), {'content': f'message {index}'}, format='json')
            assert response.status_code == 201

        latest = client.get(messages_url(direct), {'limit': 2})
        assert latest.status_code == 200
        assert [message['content'] for message in latest.data['results']] == ['message 1', 'message 2']
        assert latest.data['has_more'] is True

        earlier = client.get(messages_url(direct), {'limit': 2, 'before': latest.data['results'][0]['id']})
        assert [message['content'] for message in earlier.data['results']] == ['message 0']
        assert earlier.data['has_more'] is False

    def test_score_update(self, auth_client, direct, host):
        response = auth_client(host).post(messages_url(direct), {'team1': 21, 'team2': 17}, format='json')

        assert response.status_code == 201
        assert response.data['kind'] == Message.KIND_SCORE
        assert response.data['metadata'] == {'score': {'team1': 21, 'team2': 17}}

    def test_empty_message_rejected(self, auth_client, direct, host):
        response = auth_client(host).post(messages_url(direct), {'content': '  '}, format='json')

        assert response.status_code == 400
        assert Message.objects.count() == 0

    def test_invalid_limit(self, auth_client, direct, host):
        response = auth_client(host).get(messages_url(direct), {'limit': 'many'})

        assert response.status_code == 400
        assert response.data['reason'] == 'invalid limit'

    def test_non_member_forbidden(self, auth_client, direct, make_user):
        client = auth_client(make_user('Stranger'))

        assert client.get(messages_url(direct)).status_code == 403
        response = client.post(messages_url(direct), {'content': 'hi'}, format='json')
        assert response.status_code == 403
        assert response.data['reason'] == 'not a participant'

    def test_unknown_conversation(self, auth_client, host):
        response = auth_client(host).get('/api/chat/conversations/00000000-0000-0000-0000-000000000000/messages/')

        assert response.status_code == 404


class TestGameChatroomAPI:
    def test_lists_active_chatrooms_with_minutes(self, auth_client, make_booking, host, requester):
        tomorrow = timezone.localdate() + timedelta(days=1)
        booking = make_booking(status=BookingRequest.STATUS_CONFIRMED, date=tomorrow, start_time=time(18, 0))
        chatroom = async_to_sync(ChatroomLifecycleManager().create_for_booking)(booking)

        response = auth_client(host).get('/api/chat/chatrooms/')

        assert response.status_code == 200
        assert [item['id'] for item in response.data] == [str(chatroom.id)]
        assert response.data[0]['minutes_until_expiry'] > 0
        assert response.data[0]['is_active'] is True

        # 요청자는 참여 요청 수락 전까지 채팅방 참여자가 아님
        assert auth_client(requester).get('/api/chat/chatrooms/').data == []

    def test_expired_chatroom_rejects_messages(self, auth_client, make_booking, host):
        booking = make_booking(status=BookingRequest.STATUS_CONFIRMED)
        chatroom = async_to_sync(ChatroomLifecycleManager().create_for_booking)(booking)
        client = auth_client(host)

        response = client.post(messages_url(chatroom.conversation), {'content': '아직 있나요?'}, format='json')

        assert response.status_code == 409
        assert response.data['reason'] == 'chatroom expired'
        assert str(chatroom.conversation_id) not in [item['id'] for item in client.get('/api/chat/conversations/').data]
