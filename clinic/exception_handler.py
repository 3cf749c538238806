"""
统一异常处理器。

挂到 DRF 的 EXCEPTION_HANDLER setting 上。
所有响应（无论成功还是失败）前端都能用同一套逻辑判断：
  response.type 存在  → 出问题了（validation_error / block / not_found / forbidden / unavailable）
  没有 type 字段      → 成功

统一错误响应格式：
{
    "type":    "forbidden",
    "code":    "SUBJECT_INELIGIBLE",
    "message": "Patient account is not active. Please contact administrator.",
    "detail":  { ... }  // 可选
}
"""

import logging

from rest_framework.views import exception_handler as drf_default_handler
from django.http import JsonResponse

from .exceptions import BaseAppException, UnavailableError

logger = logging.getLogger(__name__)


def unified_exception_handler(exc, context):
    """
    DRF exception handler entry point.

    优先级：
    1. BaseAppException 及其子类 → 统一格式
    2. 其他异常（认证失败、请求体解析失败等）→ 交给 DRF 默认处理
    """

    # --- 1. 我们自己的异常体系 ---
    if isinstance(exc, BaseAppException):
        if isinstance(exc, UnavailableError):
            view = context.get('view')
            logger.warning("[%s] %s: %s", type(view).__name__ if view else '-', exc.code, exc.message)
        body = {
            'type': exc.type,
            'code': exc.code,
            'message': exc.message,
        }
        if exc.detail is not None:
            body['detail'] = exc.detail
        return JsonResponse(body, status=exc.http_status)

    # --- 2. 其他的交给 DRF 默认处理 ---
    return drf_default_handler(exc, context)
