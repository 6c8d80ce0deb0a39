import json
import logging
import time
import uuid
from datetime import date, datetime, time as dt_time

from django.conf import settings
from django.utils.deprecation import MiddlewareMixin

logger = logging.getLogger('api')


class RequestResponseLoggingMiddleware(MiddlewareMixin):
    """
    DEBUG 모드에서 /api/ 요청과 응답을 로그로 남깁니다.

    비밀번호, 토큰, 이메일 등 민감한 값은 마스킹합니다. 운영 환경(DEBUG=False)에서는
    4xx/5xx 응답의 요약 한 줄만 남깁니다.
    """
    SENSITIVE_HEADERS = {'authorization', 'cookie', 'x-csrftoken'}
    SECRET_KEYS = {'password', 'old_password', 'new_password'}
    TOKEN_KEYS = {'access', 'refresh', 'token'}
    EMAIL_KEYS = {'email'}

    def process_request(self, request):
        request._logging_started_at = time.monotonic()

        if not settings.DEBUG or not request.path.startswith('/api/'):
            return

        logger.info('=' * 80)
        logger.info(f'🔵 REQUEST: {request.method} {request.get_full_path()}')

        headers = {
            header: self._mask_header(header, value)
            for header, value in request.headers.items()
        }
        logger.info(f'Headers: {json.dumps(headers, ensure_ascii=False)}')

        if request.method in ('POST', 'PUT', 'PATCH', 'DELETE'):
            if request.content_type == 'application/json' and request.body:
                try:
                    body = json.loads(request.body.decode('utf-8'))
                except (UnicodeDecodeError, json.JSONDecodeError) as e:
                    logger.info(f'Body: (파싱 실패 - {e})')
                else:
                    logger.info('Body:')
                    logger.info(json.dumps(self._mask_sensitive_data(body), indent=2, ensure_ascii=False))
            else:
                logger.info(f'Body: {request.content_type}')

    def process_response(self, request, response):
        if not request.path.startswith('/api/'):
            return response

        elapsed_ms = (time.monotonic() - getattr(request, '_logging_started_at', time.monotonic())) * 1000
        summary = f'{request.method} {request.path} -> {response.status_code} ({elapsed_ms:.0f}ms)'

        if not settings.DEBUG:
            if response.status_code >= 400:
                reason = getattr(response, 'data', None)
                if isinstance(reason, dict) and 'reason' in reason:
                    summary = f"{summary} reason={reason['reason']}"
                logger.warning(summary)
            return response

        logger.info(f'{self._get_status_emoji(response.status_code)} RESPONSE: {summary}')
        if hasattr(response, 'data'):
            logger.info('Response Body:')
            logger.info(json.dumps(
                self._mask_sensitive_data(response.data),
                indent=2,
                ensure_ascii=False,
                default=self._json_serializer,
            ))
        logger.info('=' * 80)

        return response

    def _mask_header(self, header, value):
        if header.lower() not in self.SENSITIVE_HEADERS:
            return value
        if header.lower() == 'authorization' and value.startswith('Bearer '):
            return f'Bearer {self._mask_token(value[7:])}'
        return '***'

    def _mask_token(self, value):
        if isinstance(value, str) and len(value) > 20:
            return f"{value[:10]}...{value[-10:]}"
        return '***'

    def _mask_email(self, value):
        if not isinstance(value, str) or '@' not in value:
            return '***'
        local, domain = value.split('@', 1)
        return f"{local[:2]}***@{domain}"

    def _mask_sensitive_data(self, data):
        if isinstance(data, dict):
            masked = {}
            for key, value in data.items():
                lowered = str(key).lower()
                if lowered in self.SECRET_KEYS:
                    masked[key] = '***'
                elif lowered in self.TOKEN_KEYS:
                    masked[key] = self._mask_token(value)
                elif lowered in self.EMAIL_KEYS:
                    masked[key] = self._mask_email(value)
                else:
                    masked[key] = self._mask_sensitive_data(value)
            return masked
        elif isinstance(data, list):
            return [self._mask_sensitive_data(item) for item in data]
        elif isinstance(data, uuid.UUID):
            return str(data)
        return data

    def _json_serializer(self, obj):
        if isinstance(obj, uuid.UUID):
            return str(obj)
        elif isinstance(obj, (datetime, date, dt_time)):
            return obj.isoformat()
        raise TypeError(f"Object of type {type(obj)} is not JSON serializable")

    def _get_status_emoji(self, status_code):
        if 200 <= status_code < 300:
            return '✅'
        elif 300 <= status_code < 400:
            return '↩️'
        elif 400 <= status_code < 500:
            return '⚠️'
        return '❌'
