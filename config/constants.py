"""
프로젝트 전역 상수 정의

이 파일에서 하드코딩된 값들을 중앙 관리합니다.
"""

# MARK: - Game Chatroom Constants

# 게임 종료 후 채팅방 유지 시간 (분 단위) - 종목/경기 시간과 무관한 고정값
CHATROOM_EXPIRY_BUFFER_MINUTES = 30

# 만료 채팅방 정리 주기 (초 단위) - 1분
CHATROOM_SWEEP_INTERVAL_SECONDS = 60

# 게임 채팅방 생성 시 시스템 메시지
CHATROOM_CREATED_MESSAGE = '게임 채팅방이 생성되었습니다.'


# MARK: - Join Request Constants

# 참여 요청 시 호스트에게 자동 전송되는 메시지
JOIN_REQUEST_GREETING_MESSAGE = '안녕하세요! 경기에 참여하고 싶어요.'


# MARK: - Message Constants

# 메시지 기록 기본 페이지 크기
MESSAGE_HISTORY_DEFAULT_LIMIT = 50

# 메시지 기록 최대 페이지 크기
MESSAGE_HISTORY_MAX_LIMIT = 200


# MARK: - Store Retry Constants

# 일시적 저장소 오류 최대 시도 횟수
STORE_RETRY_MAX_ATTEMPTS = 3

# 재시도 대기 기본 시간 (초 단위) - 시도마다 2배씩 증가
STORE_RETRY_BACKOFF_SECONDS = 0.1


# MARK: - WebSocket Error Codes

# 토큰 없음
WEBSOCKET_ERROR_NO_TOKEN = 4001

# 사용자를 찾을 수 없음
WEBSOCKET_ERROR_USER_NOT_FOUND = 4002

# 유효하지 않은 토큰
WEBSOCKET_ERROR_INVALID_TOKEN = 4003

# 대화방 참여자가 아님
WEBSOCKET_ERROR_NOT_MEMBER = 4004

# 만료된 게임 채팅방
WEBSOCKET_ERROR_CHATROOM_EXPIRED = 4005
