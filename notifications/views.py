from asgiref.sync import async_to_sync
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from .dispatcher import NotificationDispatcher
from .serializers import NotificationListResponseSerializer, NotificationSerializer


class NotificationListView(APIView):
    """알림 목록 조회"""
    permission_classes = [permissions.IsAuthenticated]

    @extend_schema(
        tags=['Notifications'],
        summary='알림 목록 조회',
        description='최근 알림 목록과 읽지 않은 알림 수를 조회합니다.',
        parameters=[
            OpenApiParameter(
                name='unread',
                type=bool,
                location=OpenApiParameter.QUERY,
                description='읽지 않은 알림만 조회',
                required=False,
                default=False
            ),
        ],
        responses={200: NotificationListResponseSerializer}
    )
    def get(self, request):
        dispatcher = NotificationDispatcher()
        unread_only = request.query_params.get('unread', '').lower() in ('1', 'true')

        notifications = async_to_sync(dispatcher.list_for_user)(request.user.id, unread_only=unread_only)
        unread_count = async_to_sync(dispatcher.unread_count)(request.user.id)
        return Response({
            'results': NotificationSerializer(notifications, many=True).data,
            'unread_count': unread_count,
        })


class NotificationReadView(APIView):
    """알림 읽음 처리"""
    permission_classes = [permissions.IsAuthenticated]

    @extend_schema(
        tags=['Notifications'],
        summary='알림 읽음 처리',
        request=None,
        responses={
            204: OpenApiResponse(description='읽음 처리 완료'),
            404: OpenApiResponse(description='알림을 찾을 수 없음'),
        }
    )
    def post(self, request, notification_id):
        async_to_sync(NotificationDispatcher().mark_read)(notification_id, request.user.id)
        return Response(status=status.HTTP_204_NO_CONTENT)
