"""
서비스 계층 예외 정의

reason은 호출 측이 분기에 사용하는 고정 문자열(예: 'game full'),
message는 사용자에게 보여주는 문구입니다.
"""

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler


class ServiceError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = '요청을 처리할 수 없습니다.'

    def __init__(self, reason, message=None):
        self.reason = reason
        self.message = message or self.default_message
        super().__init__(reason)

    def to_dict(self):
        return {'error': self.message, 'reason': self.reason}


class ValidationError(ServiceError):
    """잘못된 입력 (시간 범위, 정원 등)"""
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = '잘못된 요청입니다.'


class AuthError(ServiceError):
    """호스트 전용 작업을 호스트가 아닌 사용자가 시도한 경우"""
    status_code = status.HTTP_403_FORBIDDEN
    default_message = '권한이 없습니다.'


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = '대상을 찾을 수 없습니다.'


class ConflictError(ServiceError):
    """이미 처리된 요청, 정원 초과, 중복 요청"""
    status_code = status.HTTP_409_CONFLICT
    default_message = '현재 상태에서 처리할 수 없는 요청입니다.'


class TransientStoreError(ServiceError):
    """재시도 후에도 복구되지 않은 일시적 저장소 오류"""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = '일시적인 오류입니다. 잠시 후 다시 시도해주세요.'


class NotifyFailure(ServiceError):
    """
    알림 생성 실패

    이미 커밋된 상태 전이를 되돌리지 않으며, 호출 측은 경고로만 기록합니다.
    """
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = '알림 전송에 실패했습니다.'


def api_exception_handler(exc, context):
    if isinstance(exc, ServiceError):
        return Response(exc.to_dict(), status=exc.status_code)

    return exception_handler(exc, context)
