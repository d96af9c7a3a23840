"""
오염(poisoning) 감지 기능이 있는 asyncio 락

락을 쥔 작업이 DatabaseError 이외의 예외(태스크 취소 등)로 중단되면
세션/레지스트리 상태를 신뢰할 수 없으므로 락을 오염 상태로 표시하고,
이후 획득 시도는 LockError로 실패시킵니다.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from database.exception import DatabaseError, LockError

logger = logging.getLogger(__name__)


class GuardedLock:
    """오염 감지 asyncio 락"""

    def __init__(self, owner: str):
        self._owner = owner
        self._lock = asyncio.Lock()
        self._poisoned: str | None = None

    @property
    def poisoned(self) -> bool:
        return self._poisoned is not None

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    @asynccontextmanager
    async def hold(self, check: bool = True) -> AsyncIterator[None]:
        """
        락 획득

        Args:
            check: False면 오염 여부를 무시하고 획득 (close 경로 전용)
        """
        async with self._lock:
            if check and self._poisoned is not None:
                raise LockError(f"{self._owner} lock poisoned by {self._poisoned}")
            try:
                yield
            except DatabaseError:
                raise
            except BaseException as e:
                self._poisoned = f"{type(e).__name__}: {e}" if str(e) else type(e).__name__
                logger.error(f"{self._owner} lock poisoned: {self._poisoned}")
                raise
