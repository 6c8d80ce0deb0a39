from asgiref.sync import async_to_sync
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from common.exceptions import AuthError, ValidationError
from config.constants import MESSAGE_HISTORY_DEFAULT_LIMIT

from .chatrooms import ChatroomLifecycleManager
from .registry import ConversationRegistry
from .response_serializers import (
    ConversationReadResponseSerializer,
    MessageHistoryResponseSerializer,
    ParticipantAddResponseSerializer,
)
from .serializers import (
    ChannelJoinSerializer,
    ConversationSerializer,
    DirectConversationCreateSerializer,
    GameChatroomSerializer,
    GroupConversationCreateSerializer,
    MessageCreateSerializer,
    MessageSerializer,
    ParticipantAddSerializer,
)
from .streams import MessageStream


def get_conversation_for_member(registry, conversation_id, user):
    """대화방 조회 + 참여자 확인 (없으면 404, 참여자가 아니면 403)"""
    conversation = async_to_sync(registry.get)(conversation_id)
    if not async_to_sync(registry.is_participant)(conversation.id, user.id):
        raise AuthError('not a participant', '대화방 참여자가 아닙니다.')
    return conversation


def parse_int_param(request, name, default):
    value = request.query_params.get(name, default)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'invalid {name}', f'{name} 값이 올바르지 않습니다.')


class ConversationListView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    @extend_schema(
        tags=['Chat'],
        summary='대화방 목록 조회',
        description='사용자가 참여한 모든 대화방 목록을 최근 활동 순으로 조회합니다.',
        operation_id='chat_conversations_list',
        responses={
            200: ConversationSerializer(many=True),
        }
    )
    def get(self, request):
        conversations = async_to_sync(ConversationRegistry().list_for_user)(request.user.id)
        serializer = ConversationSerializer(conversations, many=True, context={'request': request})
        return Response(serializer.data)


class DirectConversationCreateView(APIView):
    permission_classes = [permissions.IsAuthenticated]
    throttle_scope = 'chat_action'

    @extend_schema(
        tags=['Chat'],
        summary='1:1 대화방 생성/조회',
        description='상대방과의 1:1 대화방을 반환합니다. 없으면 새로 만들며, 참여자 쌍마다 하나만 존재합니다.',
        request=DirectConversationCreateSerializer,
        responses={
            200: ConversationSerializer,
            400: OpenApiResponse(description='자기 자신과의 대화방'),
            404: OpenApiResponse(description='사용자를 찾을 수 없음'),
        }
    )
    def post(self, request):
        serializer = DirectConversationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        conversation = async_to_sync(ConversationRegistry().get_or_create_direct)(
            request.user.id,
            serializer.validated_data['user_id'],
        )
        return Response(ConversationSerializer(conversation, context={'request': request}).data)


class GroupConversationCreateView(APIView):
    permission_classes = [permissions.IsAuthenticated]
    throttle_scope = 'chat_action'

    @extend_schema(
        tags=['Chat'],
        summary='그룹 대화방 생성',
        description='그룹 대화방을 생성합니다. 생성자는 방장으로 참여합니다.',
        request=GroupConversationCreateSerializer,
        responses={
            201: ConversationSerializer,
            404: OpenApiResponse(description='사용자를 찾을 수 없음'),
        }
    )
    def post(self, request):
        serializer = GroupConversationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        conversation = async_to_sync(ConversationRegistry().create_group)(
            data['conversation_type'],
            data['name'],
            data['participant_ids'],
            request.user.id,
        )
        return Response(
            ConversationSerializer(conversation, context={'request': request}).data,
            status=status.HTTP_201_CREATED
        )


class ChannelJoinView(APIView):
    permission_classes = [permissions.IsAuthenticated]
    throttle_scope = 'chat_action'

    @extend_schema(
        tags=['Chat'],
        summary='종목/지역 채널 참여',
        description='종목과 지역으로 구분된 공개 채널에 참여합니다. 채널이 없으면 새로 만듭니다.',
        request=ChannelJoinSerializer,
        responses={
            200: ConversationSerializer,
        }
    )
    def post(self, request):
        serializer = ChannelJoinSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        registry = ConversationRegistry()
        conversation = async_to_sync(registry.get_or_create_channel)(
            serializer.validated_data['sport'],
            serializer.validated_data.get('city') or None,
        )
        async_to_sync(registry.add_participants)(conversation.id, [request.user.id])
        return Response(ConversationSerializer(conversation, context={'request': request}).data)


class ConversationParticipantView(APIView):
    permission_classes = [permissions.IsAuthenticated]
    throttle_scope = 'chat_action'

    @extend_schema(
        tags=['Chat'],
        summary='참여자 추가',
        description='그룹 대화방에 참여자를 추가합니다. 이미 참여 중인 사용자는 무시됩니다.',
        request=ParticipantAddSerializer,
        responses={
            200: ParticipantAddResponseSerializer,
            403: OpenApiResponse(description='대화방 참여자가 아님'),
            404: OpenApiResponse(description='대화방 또는 사용자를 찾을 수 없음'),
        }
    )
    def post(self, request, conversation_id):
        registry = ConversationRegistry()
        conversation = get_conversation_for_member(registry, conversation_id, request.user)

        serializer = ParticipantAddSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        added = async_to_sync(registry.add_participants)(conversation.id, serializer.validated_data['user_ids'])
        return Response({'added': added})


class MessageListView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get_throttles(self):
        if self.request.method == 'POST':
            self.throttle_scope = 'chat_action'
        else:
            self.throttle_scope = None
        return super().get_throttles()

    @extend_schema(
        tags=['Chat'],
        summary='메시지 목록 조회',
        description='대화방의 메시지를 오래된 순으로 조회합니다. before 로 이전 메시지를 이어서 불러옵니다.',
        parameters=[
            OpenApiParameter(
                name='limit',
                type=int,
                location=OpenApiParameter.QUERY,
                description='조회할 메시지 수',
                required=False,
                default=MESSAGE_HISTORY_DEFAULT_LIMIT
            ),
            OpenApiParameter(
                name='before',
                type=str,
                location=OpenApiParameter.QUERY,
                description='이 메시지 ID 이전의 메시지만 조회',
                required=False,
            ),
            OpenApiParameter(
                name='offset',
                type=int,
                location=OpenApiParameter.QUERY,
                description='건너뛸 메시지 수',
                required=False,
                default=0
            ),
        ],
        responses={
            200: MessageHistoryResponseSerializer,
            403: OpenApiResponse(description='대화방 참여자가 아님'),
            404: OpenApiResponse(description='대화방을 찾을 수 없음'),
        }
    )
    def get(self, request, conversation_id):
        conversation = get_conversation_for_member(ConversationRegistry(), conversation_id, request.user)

        page = async_to_sync(MessageStream().get_history)(
            conversation.id,
            limit=parse_int_param(request, 'limit', MESSAGE_HISTORY_DEFAULT_LIMIT),
            before=request.query_params.get('before') or None,
            offset=parse_int_param(request, 'offset', 0),
        )
        return Response({
            'results': MessageSerializer(page.messages, many=True).data,
            'has_more': page.has_more,
        })

    @extend_schema(
        tags=['Chat'],
        summary='메시지 전송',
        description='대화방에 메시지를 전송합니다. 참여자에게 실시간으로 전달됩니다.',
        request=MessageCreateSerializer,
        responses={
            201: MessageSerializer,
            400: OpenApiResponse(description='잘못된 요청'),
            403: OpenApiResponse(description='대화방 참여자가 아님'),
        }
    )
    def post(self, request, conversation_id):
        """메시지 전송"""
        conversation = get_conversation_for_member(ConversationRegistry(), conversation_id, request.user)

        serializer = MessageCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        stream = MessageStream()
        if 'team1' in data:
            message = async_to_sync(stream.send_score_update)(
                conversation.id, request.user.id, data['team1'], data['team2']
            )
        else:
            message = async_to_sync(stream.send)(
                conversation.id, request.user.id, data['content'], metadata=data.get('metadata')
            )

        return Response(MessageSerializer(message).data, status=status.HTTP_201_CREATED)


class ConversationReadView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    @extend_schema(
        tags=['Chat'],
        summary='대화방 읽음 처리',
        description='대화방의 마지막 읽은 시간을 현재 시각으로 갱신합니다.',
        request=None,
        responses={
            200: ConversationReadResponseSerializer,
            404: OpenApiResponse(description='참여 중인 대화방이 아님'),
        }
    )
    def post(self, request, conversation_id):
        async_to_sync(ConversationRegistry().mark_read)(conversation_id, request.user.id)
        return Response({'message': '읽음 처리되었습니다.'})


class GameChatroomListView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    @extend_schema(
        tags=['Chat'],
        summary='게임 채팅방 목록 조회',
        description='참여 중인 활성 게임 채팅방을 만료가 가까운 순으로 조회합니다. 만료된 채팅방은 조회 전에 정리됩니다.',
        responses={
            200: GameChatroomSerializer(many=True),
        }
    )
    def get(self, request):
        expiring = async_to_sync(ChatroomLifecycleManager().get_expiring_chatrooms)(request.user.id)

        chatrooms = [item['chatroom'] for item in expiring]
        minutes = {item['chatroom'].id: item['minutes_until_expiry'] for item in expiring}
        serializer = GameChatroomSerializer(chatrooms, many=True, context={'minutes_until_expiry': minutes})
        return Response(serializer.data)


class ChannelLeaveView(APIView):
    permission_classes = [permissions.IsAuthenticated]
    throttle_scope = 'chat_action'

    @extend_schema(
        tags=['Chat'],
        summary='채널 나가기',
        description='참여 중인 종목/지역 채널에서 나갑니다. 1:1, 그룹, 게임 대화방에서는 나갈 수 없습니다.',
        request=None,
        responses={
            204: OpenApiResponse(description='나가기 완료'),
            400: OpenApiResponse(description='채널이 아님'),
            404: OpenApiResponse(description='대화방을 찾을 수 없거나 참여 중이 아님'),
        }
    )
    def post(self, request, conversation_id):
        async_to_sync(ConversationRegistry().leave_channel)(conversation_id, request.user.id)
        return Response(status=status.HTTP_204_NO_CONTENT)
