from asgiref.sync import async_to_sync
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from .response_serializers import (
    BookingTransitionResponseSerializer,
    JoinRequestTransitionResponseSerializer,
    MyJoinRequestResponseSerializer,
    PendingCountResponseSerializer,
)
from .serializers import (
    BookingRequestCreateSerializer,
    BookingRequestSerializer,
    BookingResponseSerializer,
    JoinRequestResponseSerializer,
    JoinRequestSerializer,
)
from .services import BookingRequestCoordinator


def transition_response(result, serializer_class, status_code=status.HTTP_200_OK):
    """상태 전이 결과를 레코드 + chatroom_id + warnings 형태로 반환"""
    data = serializer_class(result.record).data
    data['chatroom_id'] = str(result.chatroom.id) if result.chatroom else None
    data['warnings'] = result.warnings
    return Response(data, status=status_code)


class BookingRequestListView(APIView):
    """예약 요청 목록 조회 / 생성"""
    permission_classes = [permissions.IsAuthenticated]
    throttle_scope = 'booking_action'

    @extend_schema(
        tags=['Bookings'],
        summary='예약 요청 목록 조회',
        description='내가 요청했거나 호스트로서 받은 예약 요청 목록을 조회합니다.',
        responses={200: BookingRequestSerializer(many=True)}
    )
    def get(self, request):
        bookings = async_to_sync(BookingRequestCoordinator().list_booking_requests)(request.user.id)
        serializer = BookingRequestSerializer(bookings, many=True)
        return Response(serializer.data)

    @extend_schema(
        tags=['Bookings'],
        summary='예약 요청 생성',
        description='코트 예약을 요청합니다. 요청은 호스트가 확정하거나 거절할 때까지 대기 상태입니다.',
        request=BookingRequestCreateSerializer,
        responses={
            201: BookingRequestSerializer,
            400: OpenApiResponse(description='잘못된 요청 (시간 범위, 정원, 부가 정보)'),
            404: OpenApiResponse(description='호스트를 찾을 수 없음'),
        }
    )
    def post(self, request):
        serializer = BookingRequestCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        booking = async_to_sync(BookingRequestCoordinator().create_booking_request)(
            venue_id=data['venue_id'],
            court_id=data['court_id'],
            host_id=data['host_id'],
            requester_id=request.user.id,
            date=data['date'],
            start_time=data['start_time'],
            duration_minutes=data['duration_minutes'],
            capacity_total=data['capacity_total'],
            details=data.get('details'),
        )
        return Response(BookingRequestSerializer(booking).data, status=status.HTTP_201_CREATED)


class BookingRequestRespondView(APIView):
    """예약 요청 확정/거절 (호스트)"""
    permission_classes = [permissions.IsAuthenticated]
    throttle_scope = 'booking_action'

    @extend_schema(
        tags=['Bookings'],
        summary='예약 요청 확정/거절',
        description='호스트가 대기 중인 예약 요청을 확정하거나 거절합니다. 확정 시 게임 채팅방이 생성됩니다.',
        request=BookingResponseSerializer,
        responses={
            200: BookingTransitionResponseSerializer,
            403: OpenApiResponse(description='호스트가 아님'),
            404: OpenApiResponse(description='예약 요청을 찾을 수 없음'),
            409: OpenApiResponse(description='이미 처리된 요청'),
        }
    )
    def post(self, request, booking_id):
        serializer = BookingResponseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = async_to_sync(BookingRequestCoordinator().respond_to_booking_request)(
            booking_id,
            serializer.validated_data['decision'],
            reason=serializer.validated_data.get('reason') or None,
            actor_id=request.user.id,
        )
        return transition_response(result, BookingRequestSerializer)


class BookingRequestCancelView(APIView):
    """예약 요청 취소"""
    permission_classes = [permissions.IsAuthenticated]
    throttle_scope = 'booking_action'

    @extend_schema(
        tags=['Bookings'],
        summary='예약 요청 취소',
        description='대기 중인 예약 요청을 취소합니다. 요청자 또는 호스트만 가능합니다.',
        request=None,
        responses={
            200: BookingTransitionResponseSerializer,
            403: OpenApiResponse(description='권한 없음'),
            409: OpenApiResponse(description='이미 처리된 요청'),
        }
    )
    def post(self, request, booking_id):
        result = async_to_sync(BookingRequestCoordinator().cancel_booking_request)(booking_id, request.user.id)
        return transition_response(result, BookingRequestSerializer)


class BookingJoinRequestView(APIView):
    """경기 참여 요청 보내기 / 참여 요청 목록 조회 (호스트)"""
    permission_classes = [permissions.IsAuthenticated]
    throttle_scope = 'booking_action'

    @extend_schema(
        tags=['Join Requests'],
        summary='참여 요청 목록 조회',
        description='호스트가 자신의 경기에 들어온 참여 요청 목록을 조회합니다.',
        responses={
            200: JoinRequestSerializer(many=True),
            403: OpenApiResponse(description='호스트가 아님'),
        }
    )
    def get(self, request, booking_id):
        join_requests = async_to_sync(BookingRequestCoordinator().list_join_requests_for_booking)(
            booking_id, request.user.id
        )
        return Response(JoinRequestSerializer(join_requests, many=True).data)

    @extend_schema(
        tags=['Join Requests'],
        summary='참여 요청 보내기',
        description='확정된 경기에 참여 요청을 보냅니다. 호스트에게 알림과 인사 메시지가 전송됩니다.',
        request=None,
        responses={
            201: JoinRequestTransitionResponseSerializer,
            400: OpenApiResponse(description='자신의 경기'),
            409: OpenApiResponse(description='정원 초과, 중복 요청, 이미 참여 중'),
        }
    )
    def post(self, request, booking_id):
        result = async_to_sync(BookingRequestCoordinator().send_join_request)(booking_id, request.user.id)
        return transition_response(result, JoinRequestSerializer, status.HTTP_201_CREATED)


class JoinRequestDetailView(APIView):
    """참여 요청 수락/거절 (호스트) / 취소 (요청자)"""
    permission_classes = [permissions.IsAuthenticated]
    throttle_scope = 'booking_action'

    @extend_schema(
        tags=['Join Requests'],
        summary='참여 요청 수락/거절',
        description='호스트가 참여 요청을 수락하거나 거절합니다. 수락 시 요청자가 게임 채팅방에 추가됩니다.',
        request=JoinRequestResponseSerializer,
        responses={
            200: JoinRequestTransitionResponseSerializer,
            403: OpenApiResponse(description='호스트가 아님'),
            409: OpenApiResponse(description='이미 처리된 요청 또는 정원 초과'),
        }
    )
    def post(self, request, join_request_id):
        serializer = JoinRequestResponseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        coordinator = BookingRequestCoordinator()
        if serializer.validated_data['action'] == 'accept':
            operation = coordinator.accept_join_request
        else:
            operation = coordinator.reject_join_request

        result = async_to_sync(operation)(join_request_id, actor_id=request.user.id)
        return transition_response(result, JoinRequestSerializer)

    @extend_schema(
        tags=['Join Requests'],
        summary='참여 요청 취소',
        description='요청자가 대기 중인 참여 요청을 취소합니다.',
        responses={
            200: JoinRequestTransitionResponseSerializer,
            403: OpenApiResponse(description='요청자가 아님'),
            409: OpenApiResponse(description='이미 처리된 요청'),
        }
    )
    def delete(self, request, join_request_id):
        result = async_to_sync(BookingRequestCoordinator().cancel_join_request)(join_request_id, request.user.id)
        return transition_response(result, JoinRequestSerializer)


class ReceivedJoinRequestListView(APIView):
    """받은 참여 요청 목록 조회"""
    permission_classes = [permissions.IsAuthenticated]

    @extend_schema(
        tags=['Join Requests'],
        summary='받은 참여 요청 목록 조회',
        description='호스트로서 받은 대기 중인 참여 요청 목록을 조회합니다.',
        responses={200: JoinRequestSerializer(many=True)}
    )
    def get(self, request):
        join_requests = async_to_sync(BookingRequestCoordinator().list_pending_join_requests)(request.user.id)
        return Response(JoinRequestSerializer(join_requests, many=True).data)


class ReceivedJoinRequestCountView(APIView):
    """받은 참여 요청 수 조회"""
    permission_classes = [permissions.IsAuthenticated]

    @extend_schema(
        tags=['Join Requests'],
        summary='대기 중인 참여 요청 수',
        description='호스트로서 받은 대기 중인 참여 요청 수를 조회합니다.',
        responses={200: PendingCountResponseSerializer}
    )
    def get(self, request):
        count = async_to_sync(BookingRequestCoordinator().pending_join_request_count)(request.user.id)
        return Response({'count': count})


class SentJoinRequestListView(APIView):
    """보낸 참여 요청 목록 조회"""
    permission_classes = [permissions.IsAuthenticated]

    @extend_schema(
        tags=['Join Requests'],
        summary='보낸 참여 요청 목록 조회',
        description='내가 보낸 참여 요청과 처리 상태를 조회합니다.',
        parameters=[
            OpenApiParameter(
                name='status',
                type=str,
                location=OpenApiParameter.QUERY,
                description='상태 필터 (pending, accepted, rejected, cancelled)',
                required=False,
            ),
        ],
        responses={
            200: JoinRequestSerializer(many=True),
            400: OpenApiResponse(description='잘못된 상태 값'),
        }
    )
    def get(self, request):
        join_requests = async_to_sync(BookingRequestCoordinator().list_my_join_requests)(
            request.user.id,
            status=request.query_params.get('status') or None,
        )
        return Response(JoinRequestSerializer(join_requests, many=True).data)


class MyJoinRequestView(APIView):
    """경기별 내 참여 요청 상태 조회"""
    permission_classes = [permissions.IsAuthenticated]

    @extend_schema(
        tags=['Join Requests'],
        summary='내 참여 요청 상태 조회',
        description='해당 경기에 보낸 가장 최근 참여 요청과 상태를 조회합니다. 요청한 적이 없으면 null 을 반환합니다.',
        responses={
            200: MyJoinRequestResponseSerializer,
            404: OpenApiResponse(description='예약 요청을 찾을 수 없음'),
        }
    )
    def get(self, request, booking_id):
        join_request = async_to_sync(BookingRequestCoordinator().get_my_join_request)(booking_id, request.user.id)
        return Response({
            'status': join_request.status if join_request else None,
            'join_request': JoinRequestSerializer(join_request).data if join_request else None,
        })
