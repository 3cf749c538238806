import logging
from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail

logger = logging.getLogger(__name__)


def _load_request(kind, request_id):
    from clinic.models import AdviceRequest, AppointmentRequest
    from clinic.services import KIND_ADVICE_REQUEST, KIND_APPOINTMENT_REQUEST

    model = {
        KIND_ADVICE_REQUEST: AdviceRequest,
        KIND_APPOINTMENT_REQUEST: AppointmentRequest,
    }.get(kind)
    if model is None:
        return None
    return model.objects.select_related('patient').filter(id=request_id).first()


def _recipients(kind, obj):
    from clinic.models import Account, ROLE_PHYSICIAN, STATUS_ACTIVE
    from clinic.services import KIND_APPOINTMENT_REQUEST

    # 指定了医生的预约只通知那位医生
    if kind == KIND_APPOINTMENT_REQUEST and obj.physician_id and obj.physician.email:
        return [obj.physician.email]

    return list(
        Account.objects
        .filter(role=ROLE_PHYSICIAN, account_status=STATUS_ACTIVE)
        .exclude(email='')
        .values_list('email', flat=True)
    )


def build_message(kind, obj):
    """返回 (subject, body)。"""
    from clinic.services import KIND_ADVICE_REQUEST

    patient = obj.patient
    if kind == KIND_ADVICE_REQUEST:
        subject = f"[{obj.urgency.upper()}] New advice request from {patient.full_name} ({patient.mrn})"
        body = (
            f"Patient {patient.full_name} ({patient.mrn}) is requesting medical advice.\n\n"
            f"Subject: {obj.subject}\n"
            f"Urgency: {obj.urgency}\n\n"
            f"{obj.description}\n"
        )
    else:
        subject = f"New appointment request from {patient.full_name} ({patient.mrn})"
        body = (
            f"Patient {patient.full_name} ({patient.mrn}) requested an appointment.\n\n"
            f"Department: {obj.department}\n"
            f"Date: {obj.date.isoformat()} {obj.time.strftime('%H:%M')}\n\n"
            f"Reason: {obj.reason}\n"
        )
    return subject, body


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=10,   # 初始重试延迟（秒），指数退避会乘以 2^retry_count
    acks_late=True,           # 任务执行完才 ack，防止 worker 崩溃时任务丢失
    reject_on_worker_lost=True,
)
def notify_physicians(self, kind: str, request_id: str):
    """
    新的患者请求（咨询 / 预约）邮件通知医生。

    只读请求记录，不修改它；通知失败不影响请求本身。
    重试策略：最多 3 次，10s → 20s → 40s。
    """
    logger.info("[Celery][notify_physicians] %s %s (attempt %d/%d)",
                kind, request_id, self.request.retries + 1, self.max_retries + 1)

    obj = _load_request(kind, request_id)
    if obj is None:
        logger.error("[Celery] %s %s 不存在，跳过", kind, request_id)
        return 0  # 不重试，直接结束

    recipients = _recipients(kind, obj)
    if not recipients:
        logger.warning("[Celery] %s %s 没有可通知的医生", kind, request_id)
        return 0

    subject, body = build_message(kind, obj)
    try:
        sent = send_mail(subject, body, settings.DEFAULT_FROM_EMAIL, recipients)
    except Exception as exc:
        if self.request.retries < self.max_retries:
            countdown = self.default_retry_delay * (2 ** self.request.retries)
            logger.warning("[Celery] %s %s 发送失败，%ds 后重试: %s", kind, request_id, countdown, exc)
            raise self.retry(exc=exc, countdown=countdown)
        logger.error("[Celery] %s %s 已达最大重试次数，放弃通知", kind, request_id)
        raise

    logger.info("[Celery] %s %s 已通知 %d 位医生", kind, request_id, len(recipients))
    return sent
