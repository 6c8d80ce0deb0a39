import asyncio
import logging
import random
from functools import wraps

from django.db import InterfaceError, OperationalError

from config.constants import STORE_RETRY_BACKOFF_SECONDS, STORE_RETRY_MAX_ATTEMPTS

from .exceptions import TransientStoreError

logger = logging.getLogger('api')


def _retry_delay(attempt, backoff_seconds):
    base = backoff_seconds * (2 ** (attempt - 1))
    return base + random.uniform(0, 0.05 * attempt)


def retry_on_transient_store_error(op_name, max_attempts=STORE_RETRY_MAX_ATTEMPTS,
                                   backoff_seconds=STORE_RETRY_BACKOFF_SECONDS):
    """
    일시적 저장소 오류(연결 끊김, 잠금 등)만 지수 백오프로 재시도합니다.

    비즈니스 충돌(ConflictError 등)은 그대로 전파되며 재시도하지 않습니다.
    재시도 횟수를 모두 소진하면 TransientStoreError를 발생시킵니다.
    """

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            attempt = 1
            while True:
                try:
                    return await func(*args, **kwargs)
                except (OperationalError, InterfaceError) as exc:
                    if attempt >= max_attempts:
                        logger.error(
                            f'{op_name}: 저장소 오류 재시도 {max_attempts}회 실패 - {exc}'
                        )
                        raise TransientStoreError('store unavailable') from exc

                    delay = _retry_delay(attempt, backoff_seconds)
                    logger.warning(
                        f'{op_name}: 일시적 저장소 오류, {delay:.2f}초 후 재시도 '
                        f'({attempt}/{max_attempts}) - {exc}'
                    )
                    await asyncio.sleep(delay)
                    attempt += 1

        return wrapper

    return decorator
