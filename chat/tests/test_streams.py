import asyncio
from datetime import timedelta

import pytest
from django.utils import timezone

from chat.models import Conversation, Message
from chat.registry import ConversationRegistry
from chat.streams import MessageStream, chat_group_name
from chat.timeline import MessageTimeline
from common.exceptions import NotFoundError, ValidationError

pytestmark = [pytest.mark.asyncio, pytest.mark.django_db(transaction=True)]


@pytest.fixture
def stream(channel_layer):
    return MessageStream(channel_layer)


@pytest.fixture
def conversation_factory(host, requester):
    async def _conversation():
        return await ConversationRegistry().get_or_create_direct(host.id, requester.id)

    return _conversation


async def test_send_persists_and_bumps_conversation(stream, conversation_factory, host):
    conversation = await conversation_factory()
    before = conversation.updated_at

    message = await stream.send(conversation.id, host.id, '안녕하세요')

    assert message.kind == Message.KIND_TEXT
    assert message.sender_id == host.id
    assert await Message.objects.filter(conversation=conversation).acount() == 1
    await conversation.arefresh_from_db()
    assert conversation.updated_at >= before


async def test_send_validation(stream, conversation_factory, host):
    conversation = await conversation_factory()

    with pytest.raises(ValidationError):
        await stream.send(conversation.id, host.id, '   ')
    with pytest.raises(ValidationError):
        await stream.send(conversation.id, host.id, 'hi', kind='image')
    with pytest.raises(NotFoundError):
        await stream.send('00000000-0000-0000-0000-000000000000', host.id, 'hi')

    assert await Message.objects.acount() == 0


async def test_score_update_metadata(stream, conversation_factory, host):
    conversation = await conversation_factory()

    message = await stream.send_score_update(conversation.id, host.id, 21, 19)

    assert message.kind == Message.KIND_SCORE
    assert message.metadata == {'score': {'team1': 21, 'team2': 19}}

    with pytest.raises(ValidationError):
        await stream.send_score_update(conversation.id, host.id, -1, 3)


async def test_system_message_has_no_sender(stream, conversation_factory):
    conversation = await conversation_factory()

    message = await stream.send_system(conversation.id, '게임 채팅방이 생성되었습니다.')

    assert message.kind == Message.KIND_SYSTEM
    assert message.sender_id is None


async def test_publish_failure_keeps_message(conversation_factory, host):
    class BrokenLayer:
        async def group_send(self, group, message):
            raise ConnectionError('redis down')

    conversation = await conversation_factory()
    stream = MessageStream(BrokenLayer())

    message = await stream.send(conversation.id, host.id, 'still stored')

    assert await Message.objects.filter(id=message.id).aexists()


async def test_history_pages_oldest_to_newest(stream, conversation_factory, host):
    conversation = await conversation_factory()
    sent = [await stream.send(conversation.id, host.id, f'message {index}') for index in range(5)]

    latest = await stream.get_history(conversation.id, limit=2)
    assert [message.id for message in latest.messages] == [sent[3].id, sent[4].id]
    assert latest.has_more is True

    earlier = await stream.get_history(conversation.id, limit=2, before=latest.messages[0].id)
    assert [message.id for message in earlier.messages] == [sent[1].id, sent[2].id]
    assert earlier.has_more is True

    first = await stream.get_history(conversation.id, limit=2, before=earlier.messages[0].id)
    assert [message.id for message in first.messages] == [sent[0].id]
    assert first.has_more is False

    by_offset = await stream.get_history(conversation.id, limit=2, offset=2)
    assert [message.id for message in by_offset.messages] == [sent[1].id, sent[2].id]


async def test_history_orders_same_timestamp_by_id(stream, conversation_factory, host):
    conversation = await conversation_factory()
    created_at = timezone.now() - timedelta(minutes=1)
    messages = [
        await Message.objects.acreate(conversation=conversation, sender=host, content=str(index), created_at=created_at)
        for index in range(3)
    ]

    page = await stream.get_history(conversation.id)

    assert [message.id for message in page.messages] == sorted(message.id for message in messages)


async def test_history_unknown_cursor(stream, conversation_factory):
    conversation = await conversation_factory()

    with pytest.raises(NotFoundError):
        await stream.get_history(conversation.id, before='00000000-0000-0000-0000-000000000000')


async def test_subscriber_observes_sent_messages(stream, conversation_factory, host, requester):
    conversation = await conversation_factory()
    subscription = await stream.subscribe(conversation.id)

    sent = [
        await stream.send(conversation.id, host.id, 'first'),
        await stream.send(conversation.id, requester.id, 'second'),
    ]

    received = [await asyncio.wait_for(subscription.__anext__(), timeout=1) for _ in sent]
    await subscription.cancel()

    assert [payload['id'] for payload in received] == [str(message.id) for message in sent]
    assert received[0]['content'] == 'first'


async def test_catch_up_overlap_is_deduplicated(stream, conversation_factory, host):
    conversation = await conversation_factory()
    anchor = await stream.send(conversation.id, host.id, 'anchor')
    missed = [await stream.send(conversation.id, host.id, f'missed {index}') for index in range(3)]

    timeline = MessageTimeline((await stream.get_history(conversation.id)).messages)

    async with await stream.subscribe(conversation.id, after=anchor.id) as subscription:
        live = await stream.send(conversation.id, host.id, 'live')
        expected = len(missed) + 1
        received = [await asyncio.wait_for(subscription.__anext__(), timeout=1) for _ in range(expected)]

    added = timeline.extend(received)

    assert added == 1
    assert len(timeline) == 1 + len(missed) + 1
    assert timeline.ids == [str(message.id) for message in [anchor, *missed, live]]


async def test_cancel_stops_iteration_and_leaves_group(stream, conversation_factory, channel_layer):
    conversation = await conversation_factory()
    subscription = await stream.subscribe(conversation.id)

    async def consume():
        return [payload async for payload in subscription]

    consumer = asyncio.ensure_future(consume())
    await asyncio.sleep(0.05)
    await subscription.cancel()

    assert await asyncio.wait_for(consumer, timeout=1) == []
    assert subscription.closed
    assert subscription.channel_name not in channel_layer.groups.get(chat_group_name(conversation.id), {})


async def test_subscribe_unknown_conversation(stream):
    with pytest.raises(NotFoundError):
        await stream.subscribe('00000000-0000-0000-0000-000000000000')


async def test_all_subscribers_see_every_message(stream, host, requester):
    conversation = await ConversationRegistry().create_group(Conversation.TYPE_GROUP, 'A', [requester.id], host.id)
    subscriptions = [await stream.subscribe(conversation.id) for _ in range(3)]

    sent = [await stream.send(conversation.id, host.id, f'm{index}') for index in range(4)]

    for subscription in subscriptions:
        timeline = MessageTimeline()
        for _ in sent:
            timeline.add(await asyncio.wait_for(subscription.__anext__(), timeout=1))
        await subscription.cancel()
        assert len(timeline) == len(sent)
