"""
统一异常体系。

所有业务异常继承 BaseAppException，包含：
- type:        错误类型标识（validation_error / block / not_found / forbidden / unavailable）
- code:        业务错误码（SUBJECT_NOT_FOUND / SUBJECT_INELIGIBLE / NOT_SELF / ...）
- message:     人类可读的描述
- detail:      可选的附加信息（dict / list / None）
- http_status: HTTP 状态码

Service 层只需 raise，exception_handler 统一捕获并格式化响应。
"""


class BaseAppException(Exception):
    """所有业务异常的基类。"""

    type = 'error'
    code = 'UNKNOWN_ERROR'
    http_status = 500

    def __init__(self, message, code=None, detail=None, http_status=None):
        self.message = message
        if code is not None:
            self.code = code
        if http_status is not None:
            self.http_status = http_status
        self.detail = detail
        super().__init__(message)


class ValidationError(BaseAppException):
    """输入验证失败。intake 层抛出，400。"""

    type = 'validation_error'
    code = 'VALIDATION_ERROR'
    http_status = 400


class BlockError(BaseAppException):
    """业务规则阻止操作。service 层抛出，409。"""

    type = 'block'
    code = 'BUSINESS_BLOCK'
    http_status = 409


# ── 查找失败 ────────────────────────────────────────────────────────────────

class NotFoundError(BaseAppException):
    type = 'not_found'
    code = 'NOT_FOUND'
    http_status = 404


class SubjectNotFound(NotFoundError):
    """canonical id 和 MRN 两种形式都查不到患者。"""

    code = 'SUBJECT_NOT_FOUND'

    def __init__(self, message='Patient not found', **kwargs):
        super().__init__(message, **kwargs)


class ReportNotFound(NotFoundError):
    code = 'REPORT_NOT_FOUND'

    def __init__(self, message='Report not found', **kwargs):
        super().__init__(message, **kwargs)


class AdviceNotFound(NotFoundError):
    code = 'ADVICE_NOT_FOUND'

    def __init__(self, message='Advice not found', **kwargs):
        super().__init__(message, **kwargs)


# ── 授权失败（Workflow Gate 的三种拒绝原因） ───────────────────────────────

class ForbiddenError(BaseAppException):
    type = 'forbidden'
    code = 'FORBIDDEN'
    http_status = 403


class SubjectIneligible(ForbiddenError):
    """
    患者存在，但 account_status 不是 active。

    与 SubjectNotFound 必须区分：前端要给出不同的提示。
    """

    code = 'SUBJECT_INELIGIBLE'

    def __init__(self, message='Patient account is not active. Please contact administrator.', **kwargs):
        super().__init__(message, **kwargs)


class RoleForbidden(ForbiddenError):
    code = 'ROLE_FORBIDDEN'

    def __init__(self, message='Your role is not allowed to perform this action.', **kwargs):
        super().__init__(message, **kwargs)


class NotSelf(ForbiddenError):
    """患者只能以自己的身份操作。"""

    code = 'NOT_SELF'

    def __init__(self, message='Patients may only act on their own records.', **kwargs):
        super().__init__(message, **kwargs)


# ── 冲突 ────────────────────────────────────────────────────────────────────

class LegacyIdConflict(BlockError):
    """insert 时 MRN 唯一约束冲突。allocator 捕获后重试。"""

    code = 'LEGACY_ID_CONFLICT'


class InvalidStatusTransition(BlockError):
    code = 'INVALID_STATUS_TRANSITION'


# ── 存储层不可用（调用方可重试，core 不重试） ──────────────────────────────

class UnavailableError(BaseAppException):
    type = 'unavailable'
    code = 'SERVICE_UNAVAILABLE'
    http_status = 503


class AllocationExhausted(UnavailableError):
    """MRN 分配在有限次重试后仍然冲突。"""

    code = 'ALLOCATION_EXHAUSTED'


class StoreTimeout(UnavailableError):
    code = 'STORE_TIMEOUT'
    http_status = 504


class StoreUnavailable(UnavailableError):
    code = 'STORE_UNAVAILABLE'
