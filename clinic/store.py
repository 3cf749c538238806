"""
存储调用的统一边界：事务 + 超时 + 错误归类。

每次调用都包在 transaction.atomic() 里；PostgreSQL 下用
SET LOCAL statement_timeout 限制单次调用的耗时（只对当前事务生效）。
超时抛 StoreTimeout，其他数据库错误抛 StoreUnavailable，都不在这里重试。
"""

import logging
from contextlib import contextmanager

from django.conf import settings
from django.db import DatabaseError, IntegrityError, OperationalError, connection, transaction

from .exceptions import StoreTimeout, StoreUnavailable

logger = logging.getLogger(__name__)

# PostgreSQL SQLSTATE: query_canceled（statement_timeout 触发）
QUERY_CANCELED = '57014'


def default_timeout():
    return getattr(settings, 'CLINIC_STORE_TIMEOUT', None)


def is_query_canceled(exc):
    cause = exc.__cause__
    sqlstate = getattr(cause, 'pgcode', None) or getattr(cause, 'sqlstate', None)
    return sqlstate == QUERY_CANCELED


@contextmanager
def bounded(timeout=None):
    """
    IntegrityError 原样抛出，由调用方决定语义（例如 MRN 冲突）。
    业务异常（BaseAppException）也原样穿过，事务回滚。
    """
    try:
        with transaction.atomic():
            if timeout and connection.vendor == 'postgresql':
                with connection.cursor() as cursor:
                    cursor.execute('SET LOCAL statement_timeout = %s', [int(timeout * 1000)])
            yield
    except IntegrityError:
        raise
    except OperationalError as exc:
        if is_query_canceled(exc):
            logger.warning("[store] call exceeded %.2fs", timeout or 0)
            raise StoreTimeout(
                message='The clinic database did not respond in time.',
                detail={'timeout_seconds': timeout},
            ) from exc
        logger.warning("[store] unavailable: %s", exc)
        raise StoreUnavailable(message='The clinic database is unavailable.') from exc
    except DatabaseError as exc:
        logger.warning("[store] database error: %s", exc)
        raise StoreUnavailable(message='The clinic database is unavailable.') from exc
