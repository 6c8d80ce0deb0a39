import pytest

from notifications.models import Notification

pytestmark = pytest.mark.django_db


@pytest.fixture
def notifications(host, requester):
    return [
        Notification.objects.create(
            recipient=requester,
            notification_type=Notification.TYPE_BOOKING_CONFIRMED,
            title='예약 확정',
            message='예약이 확정되었습니다.',
        ),
        Notification.objects.create(
            recipient=host,
            notification_type=Notification.TYPE_JOIN_REQUEST_RECEIVED,
            title='새 참여 요청',
            message='누군가 경기에 참여하고 싶어합니다!',
        ),
    ]


def test_list_returns_own_notifications(auth_client, requester, notifications):
    response = auth_client(requester).get('/api/notifications/')

    assert response.status_code == 200
    assert response.data['unread_count'] == 1
    assert [item['id'] for item in response.data['results']] == [str(notifications[0].id)]
    assert response.data['results'][0]['type'] == Notification.TYPE_BOOKING_CONFIRMED


def test_mark_read(auth_client, requester, notifications):
    client = auth_client(requester)

    response = client.post(f'/api/notifications/{notifications[0].id}/read/')

    assert response.status_code == 204
    assert client.get('/api/notifications/', {'unread': 'true'}).data == {'results': [], 'unread_count': 0}


def test_cannot_mark_other_users_notification(auth_client, requester, notifications):
    response = auth_client(requester).post(f'/api/notifications/{notifications[1].id}/read/')

    assert response.status_code == 404
    assert response.data['reason'] == 'notification not found'


def test_requires_authentication(api_client):
    assert api_client.get('/api/notifications/').status_code == 401
