from django.urls import path

from .views import (
    BookingJoinRequestView,
    BookingRequestCancelView,
    BookingRequestListView,
    BookingRequestRespondView,
    JoinRequestDetailView,
    MyJoinRequestView,
    ReceivedJoinRequestCountView,
    ReceivedJoinRequestListView,
    SentJoinRequestListView,
)

urlpatterns = [
    # Booking Request endpoints
    path('bookings/', BookingRequestListView.as_view(), name='booking-list'),
    path('bookings/<uuid:booking_id>/respond/', BookingRequestRespondView.as_view(), name='booking-respond'),
    path('bookings/<uuid:booking_id>/cancel/', BookingRequestCancelView.as_view(), name='booking-cancel'),
    path('bookings/<uuid:booking_id>/join-requests/', BookingJoinRequestView.as_view(), name='booking-join-requests'),
    path('bookings/<uuid:booking_id>/join-requests/mine/', MyJoinRequestView.as_view(), name='booking-my-join-request'),

    # Join Request endpoints
    path('join-requests/received/', ReceivedJoinRequestListView.as_view(), name='join-request-received'),
    path('join-requests/received/count/', ReceivedJoinRequestCountView.as_view(), name='join-request-received-count'),
    path('join-requests/sent/', SentJoinRequestListView.as_view(), name='join-request-sent'),
    path('join-requests/<uuid:join_request_id>/', JoinRequestDetailView.as_view(), name='join-request-detail'),
]
