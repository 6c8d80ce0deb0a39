from datetime import date, time

import pytest
from channels.layers import get_channel_layer
from rest_framework.test import APIClient

from accounts.models import User
from bookings.models import BookingRequest


@pytest.fixture(autouse=True)
def channel_layer(settings):
    """테스트마다 새 InMemoryChannelLayer (설정 변경 시 channels 가 캐시를 초기화함)"""
    settings.CHANNEL_LAYERS = {
        'default': {'BACKEND': 'channels.layers.InMemoryChannelLayer'},
    }
    return get_channel_layer()


@pytest.fixture
def make_user():
    counter = {'n': 0}

    def _make_user(name=None, **extra):
        counter['n'] += 1
        name = name or f'user{counter["n"]}'
        return User.objects.create_user(
            email=f'{name.lower()}-{counter["n"]}@gameon.test',
            password='pass1234!',
            name=name,
            **extra,
        )

    return _make_user


@pytest.fixture
def host(make_user):
    return make_user('Host')


@pytest.fixture
def requester(make_user):
    return make_user('Requester')


@pytest.fixture
def make_booking(host, requester):
    def _make_booking(status=BookingRequest.STATUS_PENDING, capacity_total=4, capacity_filled=0, **fields):
        values = {
            'venue_id': 'venue-1',
            'court_id': 'court-A',
            'host': host,
            'requester': requester,
            'date': date(2025, 9, 1),
            'start_time': time(18, 0),
            'duration_minutes': 60,
            'capacity_total': capacity_total,
            'capacity_filled': capacity_filled,
            'status': status,
        }
        values.update(fields)
        return BookingRequest.objects.create(**values)

    return _make_booking


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def auth_client(api_client):
    def _auth_client(user):
        api_client.force_authenticate(user=user)
        return api_client

    return _auth_client
