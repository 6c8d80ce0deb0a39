from chat.timeline import MessageTimeline


def payload(message_id, created_at, content='hi'):
    return {'id': message_id, 'created_at': created_at, 'content': content}


def test_timeline_deduplicates_by_id():
    timeline = MessageTimeline([
        payload('b', '2025-09-01T18:05:00+09:00'),
        payload('a', '2025-09-01T18:04:00+09:00'),
    ])

    added = timeline.extend([
        payload('a', '2025-09-01T18:04:00+09:00', content='duplicate'),
        payload('c', '2025-09-01T18:06:00+09:00'),
    ])

    assert added == 1
    assert len(timeline) == 3
    assert timeline.ids == ['a', 'b', 'c']
    assert timeline.messages[0]['content'] == 'hi'


def test_timeline_orders_same_timestamp_by_id():
    timeline = MessageTimeline()
    timeline.add(payload('2', '2025-09-01T18:00:00+09:00'))
    timeline.add(payload('1', '2025-09-01T18:00:00+09:00'))

    assert timeline.ids == ['1', '2']
    assert '1' in timeline
    assert 'x' not in timeline


def test_timeline_compares_across_offsets():
    timeline = MessageTimeline([
        payload('seoul', '2025-09-01T18:00:00+09:00'),
        payload('utc', '2025-09-01T09:30:00+00:00'),
    ])

    assert timeline.ids == ['seoul', 'utc']
