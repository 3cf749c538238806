"""
Clinical Artifact Lifecycle.

每个写操作的固定流程：
  resolve（患者引用 → 账户） → authorize/enforce（Gate） → 原子写入

异常（SubjectNotFound / SubjectIneligible / RoleForbidden / NotSelf / ...）
直接抛给 View 层，exception_handler 统一转成响应。
"""

import logging
import uuid

from django.db import transaction
from django.utils import timezone

from . import gate
from .directory import get_directory
from .exceptions import (
    AdviceNotFound,
    InvalidStatusTransition,
    ReportNotFound,
    SubjectNotFound,
    ValidationError,
)
from .identifiers import insert_with_legacy_id
from .intake.types import PatientDraft
from .models import (
    ADVICE_APPROVED,
    ADVICE_PENDING,
    ROLE_PATIENT,
    ROLE_PHYSICIAN,
    Account,
    Advice,
    AdviceRequest,
    AppointmentRequest,
    ClinicalReport,
)
from .resolver import resolve
from .store import bounded, default_timeout

logger = logging.getLogger(__name__)

KIND_ADVICE_REQUEST = 'advice_request'
KIND_APPOINTMENT_REQUEST = 'appointment_request'


def _timeout(timeout):
    return default_timeout() if timeout is None else timeout


def _parse_uuid(value, code, message):
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise ValidationError(message=message, code=code, detail={'id': str(value)})


# ===================================================================
# Patients (Subject accounts)
# ===================================================================

def register_patient(actor, draft: PatientDraft, directory=None, policy=None, timeout=None):
    """员工注册新患者，自动分配 MRN（冲突时有限次重试）。"""
    gate.enforce(gate.authorize(actor, gate.REGISTER_SUBJECT))
    directory = directory or get_directory()

    account = Account(
        role=ROLE_PATIENT,
        full_name=draft.full_name,
        email=draft.email,
        phone=draft.phone,
        date_of_birth=draft.date_of_birth,
        gender=draft.gender,
        address=draft.address,
        account_status=draft.account_status,
    )
    patient = insert_with_legacy_id(directory, account, policy, timeout=_timeout(timeout))
    logger.info("[services] patient %s registered by %s", patient.mrn, actor.id)
    return patient


def get_patient(actor, reference, directory=None, timeout=None):
    subject = resolve(reference, directory, _timeout(timeout))
    gate.enforce(gate.authorize(actor, gate.VIEW_SUBJECT, subject), subject)
    return subject


def update_patient(actor, reference, draft: PatientDraft, directory=None, timeout=None):
    """
    更新患者资料 / 账户状态。

    MRN 创建后不可修改：前端回传相同的 patientId 会被忽略，不同则拒绝。
    """
    directory = directory or get_directory()
    timeout = _timeout(timeout)

    subject = resolve(reference, directory, timeout)
    gate.enforce(gate.authorize(actor, gate.UPDATE_SUBJECT, subject), subject)

    patch = draft.as_patch()
    mrn = patch.pop('mrn', None)
    if mrn and mrn.upper() != (subject.mrn or '').upper():
        raise ValidationError(
            message='Patient ID cannot be changed after registration.',
            code='IMMUTABLE_FIELD',
            detail={'field': 'patientId', 'current': subject.mrn, 'submitted': mrn},
        )
    if not patch:
        return subject

    updated = directory.update(subject.id, patch, timeout=timeout)
    if updated is None:
        raise SubjectNotFound(detail={'reference': str(subject.id), 'kind': 'canonical'})

    if 'account_status' in patch and patch['account_status'] != subject.account_status:
        logger.info(
            "[services] patient %s status %s -> %s by %s",
            updated.mrn, subject.account_status, updated.account_status, actor.id,
        )
    return updated


def set_account_status(actor, reference, account_status, directory=None, timeout=None):
    draft = PatientDraft(account_status=account_status, provided=frozenset({'account_status'}))
    return update_patient(actor, reference, draft, directory=directory, timeout=timeout)


# ===================================================================
# Clinical reports（只追加，创建后不可修改）
# ===================================================================

def create_report(actor, draft, directory=None, timeout=None):
    timeout = _timeout(timeout)
    subject = resolve(draft.patient_ref, directory, timeout)
    gate.enforce(gate.authorize(actor, gate.CREATE_REPORT, subject), subject)

    with bounded(timeout):
        report = ClinicalReport.objects.create(
            patient=subject,
            author=actor,
            diagnosis=draft.diagnosis,
            treatment=draft.treatment,
            prescription=draft.prescription,
            follow_up_date=draft.follow_up_date,
            notes=draft.notes,
        )
    logger.info("[services] report %s filed for %s by %s", report.id, subject.mrn, actor.id)
    return report


def get_report(actor, report_id, timeout=None):
    gate.enforce(gate.authorize(actor, gate.VIEW_REPORT))
    report_uuid = _parse_uuid(report_id, 'INVALID_REPORT_ID', 'Invalid report ID')

    with bounded(_timeout(timeout)):
        report = (
            ClinicalReport.objects
            .select_related('patient', 'author')
            .filter(id=report_uuid)
            .first()
        )
    if report is None:
        raise ReportNotFound(detail={'report_id': str(report_uuid)})
    return report


# ===================================================================
# Advice
# ===================================================================

def initial_advice_status(actor):
    """医生/管理员直接写的 advice 自带审批；其他来源先是 pending。"""
    return ADVICE_APPROVED if actor.is_clinician else ADVICE_PENDING


def create_advice(actor, draft, directory=None, timeout=None):
    timeout = _timeout(timeout)
    subject = resolve(draft.patient_ref, directory, timeout)
    gate.enforce(gate.authorize(actor, gate.CREATE_ADVICE, subject), subject)

    status = initial_advice_status(actor)
    approved = status == ADVICE_APPROVED
    with bounded(timeout):
        advice = Advice.objects.create(
            patient=subject,
            author=actor,
            condition=draft.condition,
            advice=draft.advice,
            medications=draft.medications,
            lifestyle=draft.lifestyle,
            urgency_level=draft.urgency_level,
            status=status,
            approved_by=actor if approved else None,
            approved_at=timezone.now() if approved else None,
        )
    logger.info("[services] advice %s (%s) for %s by %s", advice.id, status, subject.mrn, actor.id)
    return advice


def approve_advice(actor, advice_id, annotation='', timeout=None):
    """pending → approved。approved 是终态，不能回退也不能重复审批。"""
    gate.enforce(gate.authorize(actor, gate.APPROVE_ADVICE))
    advice_uuid = _parse_uuid(advice_id, 'INVALID_ADVICE_ID', 'Invalid advice ID')

    with bounded(_timeout(timeout)):
        advice = Advice.objects.select_for_update().filter(id=advice_uuid).first()
        if advice is None:
            raise AdviceNotFound(detail={'advice_id': str(advice_uuid)})
        if advice.status != ADVICE_PENDING:
            raise InvalidStatusTransition(
                message=f"Advice is already {advice.status}.",
                detail={'advice_id': str(advice.id), 'status': advice.status},
            )
        advice.status = ADVICE_APPROVED
        advice.approved_by = actor
        advice.approved_at = timezone.now()
        if annotation:
            advice.annotation = annotation
        advice.save(update_fields=['status', 'approved_by', 'approved_at', 'annotation', 'updated_at'])

    logger.info("[services] advice %s approved by %s", advice.id, actor.id)
    return advice


def list_patient_advice(actor, reference=None, directory=None, timeout=None):
    """患者看自己的 advice；医生/管理员需指定患者。按时间倒序。"""
    timeout = _timeout(timeout)
    if reference is None:
        if actor is None or actor.role != ROLE_PATIENT:
            raise ValidationError(
                message='A patient reference is required.',
                code='INVALID_SUBJECT_REFERENCE',
            )
        reference = actor.id

    subject = resolve(reference, directory, timeout)
    gate.enforce(gate.authorize(actor, gate.VIEW_ADVICE, subject), subject)

    with bounded(timeout):
        return list(
            Advice.objects
            .filter(patient=subject)
            .select_related('author')
            .order_by('-created_at')
        )


# ===================================================================
# Requests（患者发起，一次性记录，不参与 Advice 状态机）
# ===================================================================

def _notify_after_commit(kind, request_id):
    def dispatch():
        from clinic.tasks import notify_physicians
        try:
            notify_physicians.delay(kind, str(request_id))
        except Exception:
            # 请求已经落库，通知投递失败只记录
            logger.exception("[services] could not queue notification for %s %s", kind, request_id)

    transaction.on_commit(dispatch)


def submit_advice_request(actor, draft, directory=None, timeout=None):
    timeout = _timeout(timeout)
    # 先做角色检查：非患者没有 "本人" 可以默认
    gate.enforce(gate.authorize(actor, gate.CREATE_REQUEST))
    subject = resolve(draft.patient_ref or actor.id, directory, timeout)
    gate.enforce(gate.authorize(actor, gate.CREATE_REQUEST, subject), subject)

    with bounded(timeout):
        advice_request = AdviceRequest.objects.create(
            patient=subject,
            subject=draft.subject,
            description=draft.description,
            urgency=draft.urgency,
        )
        _notify_after_commit(KIND_ADVICE_REQUEST, advice_request.id)

    logger.info("[services] advice request %s raised by %s", advice_request.id, subject.mrn)
    return advice_request


def submit_appointment_request(actor, draft, directory=None, timeout=None):
    timeout = _timeout(timeout)
    gate.enforce(gate.authorize(actor, gate.CREATE_REQUEST))
    subject = resolve(draft.patient_ref or actor.id, directory, timeout)
    gate.enforce(gate.authorize(actor, gate.CREATE_REQUEST, subject), subject)

    with bounded(timeout):
        physician = None
        if draft.physician_username:
            physician = Account.objects.filter(
                user__username=draft.physician_username,
                role=ROLE_PHYSICIAN,
            ).first()
            if physician is None:
                raise ValidationError(
                    message=f"Unknown physician: {draft.physician_username!r}.",
                    code='UNKNOWN_PHYSICIAN',
                    detail={'errors': [{'field': 'physicianUsername', 'message': 'No such physician.'}]},
                )

        appointment = AppointmentRequest.objects.create(
            patient=subject,
            physician=physician,
            department=draft.department,
            date=draft.date,
            time=draft.time,
            reason=draft.reason,
        )
        _notify_after_commit(KIND_APPOINTMENT_REQUEST, appointment.id)

    logger.info("[services] appointment request %s raised by %s", appointment.id, subject.mrn)
    return appointment
