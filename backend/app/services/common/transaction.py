import logging
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from .errors import ServiceError, ConflictError, TransactionIntegrityError
from .result import Ok, Err, Result

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_ATTEMPTS = 2

async def run_atomic(
    session_factory: async_sessionmaker[AsyncSession],
    work: Callable[[AsyncSession], Awaitable[T]],
    *,
    conflict_reason: Optional[str] = None,
) -> Result[T]:
    """
    ``work`` 를 하나의 트랜잭션으로 실행한다.

    - ServiceError: 롤백 후 그대로 Err 로 반환 (재시도 없음)
    - StaleDataError (version 충돌): 1회 재시도 후 TransactionIntegrityError
    - IntegrityError: conflict_reason 이 있으면 ConflictError, 없으면 재시도 대상
    """
    for attempt in range(1, MAX_ATTEMPTS + 1):
        try:
            async with session_factory() as session:
                async with session.begin():
                    value = await work(session)
            return Ok(value)
        except ServiceError as e:
            return Err(e)
        except StaleDataError as e:
            logger.warning(f"🔄 동시 수정 감지 (attempt {attempt}/{MAX_ATTEMPTS}): {e}")
        except IntegrityError as e:
            if conflict_reason is not None:
                logger.info(f"⛔ 제약 조건 충돌: {conflict_reason}")
                return Err(ConflictError(conflict_reason))
            logger.warning(f"🔄 제약 조건 위반 (attempt {attempt}/{MAX_ATTEMPTS}): {e.orig}")

    return Err(TransactionIntegrityError("Concurrent update detected, please retry"))
