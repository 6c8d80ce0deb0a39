from django.utils.dateparse import parse_datetime


def _ordering_key(message):
    if isinstance(message, dict):
        created_at = message['created_at']
        if isinstance(created_at, str):
            created_at = parse_datetime(created_at)
        return created_at, str(message['id'])
    return message.created_at, str(message.id)


def _message_id(message):
    if isinstance(message, dict):
        return str(message['id'])
    return str(message.id)


class MessageTimeline:
    """
    수신 측 메시지 병합

    히스토리, catch-up, 실시간 구독으로 들어온 메시지를 id 기준으로 한 번만 보관하고
    서버 순서 (created_at, id) 로 정렬해 돌려줍니다. 메시지는 Message 인스턴스나
    serialize_message 페이로드 모두 받을 수 있습니다.
    """

    def __init__(self, messages=()):
        self._messages = {}
        self.extend(messages)

    def add(self, message):
        message_id = _message_id(message)
        if message_id in self._messages:
            return False

        self._messages[message_id] = message
        return True

    def extend(self, messages):
        return sum(1 for message in messages if self.add(message))

    def __contains__(self, message_id):
        return str(message_id) in self._messages

    def __len__(self):
        return len(self._messages)

    def __iter__(self):
        return iter(self.messages)

    @property
    def messages(self):
        return sorted(self._messages.values(), key=_ordering_key)

    @property
    def ids(self):
        return [_message_id(message) for message in self.messages]
