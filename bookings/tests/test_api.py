import pytest

from bookings.models import BookingRequest, JoinRequest
from chat.models import ConversationParticipant, GameChatroom
from notifications.models import Notification

pytestmark = pytest.mark.django_db


@pytest.fixture
def joiner(make_user):
    return make_user('Joiner')


@pytest.fixture
def confirmed_booking(make_booking):
    return make_booking(status=BookingRequest.STATUS_CONFIRMED, capacity_total=2)


def booking_payload(host, **overrides):
    payload = {
        'venue_id': 'venue-1',
        'court_id': 'court-A',
        'host_id': str(host.id),
        'date': '2025-09-01',
        'start_time': '18:00',
        'duration_minutes': 60,
        'capacity_total': 4,
        'details': {'venue_name': '한강 배드민턴장', 'sport': 'Badminton', 'skill_level': 'Beginner'},
    }
    payload.update(overrides)
    return payload


class TestBookingRequestAPI:
    def test_requires_authentication(self, api_client):
        assert api_client.get('/api/bookings/').status_code == 401

    def test_create_booking_request(self, auth_client, host, requester):
        response = auth_client(requester).post('/api/bookings/', booking_payload(host), format='json')

        assert response.status_code == 201
        assert response.data['status'] == BookingRequest.STATUS_PENDING
        assert response.data['requester']['id'] == str(requester.id)
        assert response.data['spots_left'] == 4
        assert response.data['details']['venue_name'] == '한강 배드민턴장'

    @pytest.mark.parametrize('overrides, reason', [
        ({'duration_minutes': 0}, 'invalid time range'),
        ({'capacity_total': 0}, 'invalid capacity'),
        ({'details': {'skill_level': 'Pro'}}, 'invalid details'),
    ])
    def test_create_rejects_invalid_input(self, auth_client, host, requester, overrides, reason):
        response = auth_client(requester).post('/api/bookings/', booking_payload(host, **overrides), format='json')

        assert response.status_code == 400
        assert response.data['reason'] == reason
        assert BookingRequest.objects.count() == 0

    def test_list_shows_host_and_requester_bookings(self, auth_client, make_booking, host, requester, joiner):
        booking = make_booking()

        assert [item['id'] for item in auth_client(host).get('/api/bookings/').data] == [str(booking.id)]
        assert [item['id'] for item in auth_client(requester).get('/api/bookings/').data] == [str(booking.id)]
        assert auth_client(joiner).get('/api/bookings/').data == []

    def test_confirm_returns_chatroom(self, auth_client, make_booking, host, requester):
        booking = make_booking()

        response = auth_client(host).post(f'/api/bookings/{booking.id}/respond/', {'decision': 'confirm'}, format='json')

        assert response.status_code == 200
        assert response.data['status'] == BookingRequest.STATUS_CONFIRMED
        assert response.data['chatroom_id'] == str(GameChatroom.objects.get(booking=booking).id)
        assert response.data['warnings'] == []
        assert Notification.objects.filter(
            recipient=requester, notification_type=Notification.TYPE_BOOKING_CONFIRMED
        ).exists()

    def test_reject_records_reason(self, auth_client, make_booking, host):
        booking = make_booking()

        response = auth_client(host).post(
            f'/api/bookings/{booking.id}/respond/', {'decision': 'reject', 'reason': '코트 점검'}, format='json'
        )

        assert response.status_code == 200
        assert response.data['status'] == BookingRequest.STATUS_REJECTED
        assert response.data['rejection_reason'] == '코트 점검'
        assert response.data['chatroom_id'] is None
        assert not GameChatroom.objects.exists()

    def test_second_decision_conflicts(self, auth_client, make_booking, host):
        booking = make_booking()
        client = auth_client(host)
        client.post(f'/api/bookings/{booking.id}/respond/', {'decision': 'confirm'}, format='json')

        response = client.post(f'/api/bookings/{booking.id}/respond/', {'decision': 'reject'}, format='json')

        assert response.status_code == 409
        assert response.data == {'error': '이미 처리된 예약 요청입니다.', 'reason': 'already decided'}

    def test_only_host_can_respond(self, auth_client, make_booking, requester):
        booking = make_booking()

        response = auth_client(requester).post(
            f'/api/bookings/{booking.id}/respond/', {'decision': 'confirm'}, format='json'
        )

        assert response.status_code == 403
        assert response.data['reason'] == 'not host'

    def test_unknown_booking(self, auth_client, host):
        response = auth_client(host).post(
            '/api/bookings/00000000-0000-0000-0000-000000000000/respond/', {'decision': 'confirm'}, format='json'
        )

        assert response.status_code == 404

    def test_cancel(self, auth_client, make_booking, requester, joiner):
        booking = make_booking()

        assert auth_client(joiner).post(f'/api/bookings/{booking.id}/cancel/').status_code == 403

        response = auth_client(requester).post(f'/api/bookings/{booking.id}/cancel/')
        assert response.status_code == 200
        assert response.data['status'] == BookingRequest.STATUS_CANCELLED


class TestJoinRequestAPI:
    def test_send_join_request(self, auth_client, confirmed_booking, host, joiner):
        response = auth_client(joiner).post(f'/api/bookings/{confirmed_booking.id}/join-requests/')

        assert response.status_code == 201
        assert response.data['status'] == JoinRequest.STATUS_PENDING
        assert response.data['requester']['id'] == str(joiner.id)
        assert response.data['warnings'] == []
        assert Notification.objects.filter(
            recipient=host, notification_type=Notification.TYPE_JOIN_REQUEST_RECEIVED
        ).count() == 1

    def test_duplicate_pending_request(self, auth_client, confirmed_booking, joiner):
        client = auth_client(joiner)
        client.post(f'/api/bookings/{confirmed_booking.id}/join-requests/')

        response = client.post(f'/api/bookings/{confirmed_booking.id}/join-requests/')

        assert response.status_code == 409
        assert response.data['reason'] == 'duplicate'

    def test_join_pending_booking(self, auth_client, make_booking, joiner):
        booking = make_booking()

        response = auth_client(joiner).post(f'/api/bookings/{booking.id}/join-requests/')

        assert response.status_code == 409
        assert response.data['reason'] == 'booking not open'

    def test_join_own_game(self, auth_client, confirmed_booking, host):
        response = auth_client(host).post(f'/api/bookings/{confirmed_booking.id}/join-requests/')

        assert response.status_code == 400
        assert response.data['reason'] == 'own game'

    def test_host_lists_and_accepts(self, auth_client, confirmed_booking, host, joiner):
        auth_client(joiner).post(f'/api/bookings/{confirmed_booking.id}/join-requests/')
        client = auth_client(host)

        listed = client.get(f'/api/bookings/{confirmed_booking.id}/join-requests/')
        received = client.get('/api/join-requests/received/')
        assert listed.status_code == 200
        assert [item['id'] for item in listed.data] == [item['id'] for item in received.data]

        join_request_id = listed.data[0]['id']
        response = client.post(f'/api/join-requests/{join_request_id}/', {'action': 'accept'}, format='json')

        assert response.status_code == 200
        assert response.data['status'] == JoinRequest.STATUS_ACCEPTED
        assert response.data['booking']['capacity_filled'] == 1
        chatroom = GameChatroom.objects.get(id=response.data['chatroom_id'])
        assert ConversationParticipant.objects.filter(conversation_id=chatroom.conversation_id, user=joiner).exists()
        assert client.get('/api/join-requests/received/').data == []

    def test_accept_when_full(self, auth_client, make_booking, make_user, host):
        booking = make_booking(status=BookingRequest.STATUS_CONFIRMED, capacity_total=1)
        first, second = make_user('First'), make_user('Second')
        first_id = auth_client(first).post(f'/api/bookings/{booking.id}/join-requests/').data['id']
        second_id = auth_client(second).post(f'/api/bookings/{booking.id}/join-requests/').data['id']
        client = auth_client(host)

        assert client.post(f'/api/join-requests/{first_id}/', {'action': 'accept'}, format='json').status_code == 200
        response = client.post(f'/api/join-requests/{second_id}/', {'action': 'accept'}, format='json')

        assert response.status_code == 409
        assert response.data['reason'] == 'game full'
        assert JoinRequest.objects.get(id=second_id).status == JoinRequest.STATUS_PENDING

    def test_reject(self, auth_client, confirmed_booking, host, joiner):
        join_request_id = auth_client(joiner).post(f'/api/bookings/{confirmed_booking.id}/join-requests/').data['id']

        response = auth_client(host).post(f'/api/join-requests/{join_request_id}/', {'action': 'reject'}, format='json')

        assert response.status_code == 200
        assert response.data['status'] == JoinRequest.STATUS_REJECTED
        assert response.data['chatroom_id'] is None
        assert Notification.objects.filter(
            recipient=joiner, notification_type=Notification.TYPE_JOIN_REQUEST_REJECTED
        ).exists()

    def test_non_host_cannot_decide_or_list(self, auth_client, confirmed_booking, joiner):
        join_request_id = auth_client(joiner).post(f'/api/bookings/{confirmed_booking.id}/join-requests/').data['id']

        forbidden = auth_client(joiner).post(f'/api/join-requests/{join_request_id}/', {'action': 'accept'}, format='json')
        assert forbidden.status_code == 403
        assert forbidden.data['reason'] == 'not host'

        listing = auth_client(joiner).get(f'/api/bookings/{confirmed_booking.id}/join-requests/')
        assert listing.status_code == 403

    def test_requester_cancels(self, auth_client, confirmed_booking, host, joiner):
        join_request_id = auth_client(joiner).post(f'/api/bookings/{confirmed_booking.id}/join-requests/').data['id']

        assert auth_client(host).delete(f'/api/join-requests/{join_request_id}/').status_code == 403

        response = auth_client(joiner).delete(f'/api/join-requests/{join_request_id}/')
        assert response.status_code == 200
        assert response.data['status'] == JoinRequest.STATUS_CANCELLED

        again = auth_client(joiner).delete(f'/api/join-requests/{join_request_id}/')
        assert again.status_code == 409

    def test_requester_views_own_requests(self, auth_client, confirmed_booking, joiner):
        client = auth_client(joiner)

        assert client.get(f'/api/bookings/{confirmed_booking.id}/join-requests/mine/').data == {
            'status': None, 'join_request': None,
        }

        join_request_id = client.post(f'/api/bookings/{confirmed_booking.id}/join-requests/').data['id']

        mine = client.get(f'/api/bookings/{confirmed_booking.id}/join-requests/mine/')
        assert mine.status_code == 200
        assert mine.data['status'] == JoinRequest.STATUS_PENDING
        assert mine.data['join_request']['id'] == join_request_id

        sent = client.get('/api/join-requests/sent/', {'status': 'pending'})
        assert [item['id'] for item in sent.data] == [join_request_id]
        assert client.get('/api/join-requests/sent/', {'status': 'accepted'}).data == []
        assert client.get('/api/join-requests/sent/', {'status': 'maybe'}).status_code == 400

    def test_host_pending_count(self, auth_client, confirmed_booking, host, joiner):
        assert auth_client(host).get('/api/join-requests/received/count/').data == {'count': 0}

        auth_client(joiner).post(f'/api/bookings/{confirmed_booking.id}/join-requests/')

        assert auth_client(host).get('/api/join-requests/received/count/').data == {'count': 1}

    def test_rejected_requester_cannot_ask_again(self, auth_client, confirmed_booking, host, joiner):
        join_request_id = auth_client(joiner).post(f'/api/bookings/{confirmed_booking.id}/join-requests/').data['id']
        auth_client(host).post(f'/api/join-requests/{join_request_id}/', {'action': 'reject'}, format='json')

        response = auth_client(joiner).post(f'/api/bookings/{confirmed_booking.id}/join-requests/')

        assert response.status_code == 409
        assert response.data['reason'] == 'previously rejected'
