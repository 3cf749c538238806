"""
Service 层测试：resolve → gate → 写入 的完整流程（真实 DB，mock Celery）。

覆盖：
1. 注册患者：顺序分配 MRN、历史前缀、非员工拒绝
2. 更新患者：MRN 不可改、停用账户
3. 报告：停用后拒绝、未知患者、非法 id
4. Advice：医生直接 approved、患者不能写、审批状态机
5. 列表：本人可见、他人 NotSelf
6. Request：本人提交、提交后 on_commit 派发通知、通知失败不影响请求
"""
import logging
import uuid
from datetime import date, time, timedelta
from unittest.mock import patch

import pytest

from clinic import services
from clinic.exceptions import (
    AdviceNotFound,
    InvalidStatusTransition,
    NotSelf,
    ReportNotFound,
    RoleForbidden,
    SubjectIneligible,
    SubjectNotFound,
    ValidationError,
)
from clinic.intake.types import (
    AdviceDraft,
    AdviceRequestDraft,
    AppointmentRequestDraft,
    PatientDraft,
    ReportDraft,
)
from clinic.models import Advice, AdviceRequest, AppointmentRequest, ClinicalReport
from tests.conftest import AdviceFactory, PatientFactory, PhysicianFactory, ReportFactory


def report_draft(ref, **overrides):
    fields = dict(patient_ref=ref, diagnosis='Asthma', treatment='Inhaler')
    fields.update(overrides)
    return ReportDraft(**fields)


def advice_draft(ref, **overrides):
    fields = dict(patient_ref=ref, condition='Asthma', advice='Avoid triggers.', medications='Salbutamol')
    fields.update(overrides)
    return AdviceDraft(**fields)


def appointment_draft(**overrides):
    fields = dict(
        department='General Medicine',
        date=date.today() + timedelta(days=3),
        time=time(9, 30),
        reason='Persistent headaches for two weeks',
    )
    fields.update(overrides)
    return AppointmentRequestDraft(**fields)


# ===================================================================
# Patients
# ===================================================================

@pytest.mark.django_db
class TestRegisterPatient:

    def test_sequential_mrns(self, physician):
        first = services.register_patient(physician, PatientDraft(full_name='A'))
        second = services.register_patient(physician, PatientDraft(full_name='B'))

        assert first.mrn == 'PAT0001'
        assert second.mrn == 'PAT0002'
        assert first.role == 'patient'

    def test_continues_legacy_prefix_sequence(self, admin_account):
        PatientFactory(mrn='PA0007')
        patient = services.register_patient(admin_account, PatientDraft(full_name='C'))
        assert patient.mrn == 'PAT0008'

    def test_patient_cannot_register(self, patient):
        with pytest.raises(RoleForbidden):
            services.register_patient(patient, PatientDraft(full_name='D'))


@pytest.mark.django_db
class TestUpdatePatient:

    def test_patch_only_provided_fields(self, physician):
        patient = PatientFactory(phone='555-0100')
        draft = PatientDraft(email='new@clinic.test', provided=frozenset({'email'}))

        updated = services.update_patient(physician, patient.mrn, draft)

        assert updated.email == 'new@clinic.test'
        assert updated.phone == '555-0100'

    def test_mrn_cannot_change(self, physician):
        patient = PatientFactory(mrn='PAT0031')
        draft = PatientDraft(mrn='PAT0099', provided=frozenset({'mrn'}))

        with pytest.raises(ValidationError) as exc_info:
            services.update_patient(physician, patient.id, draft)

        assert exc_info.value.code == 'IMMUTABLE_FIELD'
        patient.refresh_from_db()
        assert patient.mrn == 'PAT0031'

    def test_echoed_mrn_is_ignored(self, physician):
        patient = PatientFactory(mrn='PAT0032')
        draft = PatientDraft(mrn='pat0032', full_name='Renamed', provided=frozenset({'mrn', 'full_name'}))

        updated = services.update_patient(physician, patient.id, draft)
        assert updated.full_name == 'Renamed'
        assert updated.mrn == 'PAT0032'

    def test_patient_cannot_update(self, patient):
        draft = PatientDraft(account_status='inactive', provided=frozenset({'account_status'}))
        with pytest.raises(RoleForbidden):
            services.update_patient(patient, patient.id, draft)

    def test_get_patient_self_only(self, patient):
        other = PatientFactory()
        assert services.get_patient(patient, patient.mrn) == patient
        with pytest.raises(NotSelf):
            services.get_patient(patient, other.mrn)


# ===================================================================
# Reports
# ===================================================================

@pytest.mark.django_db
class TestCreateReport:

    def test_by_mrn(self, physician):
        patient = PatientFactory(mrn='PAT0050')
        report = services.create_report(physician, report_draft('PAT0050'))

        assert report.patient == patient
        assert report.author == physician

    def test_by_canonical_id(self, physician, patient):
        report = services.create_report(physician, report_draft(str(patient.id)))
        assert report.patient == patient

    def test_deactivated_patient_rejected(self, physician, admin_account):
        patient = PatientFactory()
        services.create_report(physician, report_draft(patient.mrn))
        services.set_account_status(admin_account, patient.mrn, 'inactive')

        with pytest.raises(SubjectIneligible) as exc_info:
            services.create_report(physician, report_draft(patient.mrn))

        assert exc_info.value.detail['account_status'] == 'inactive'
        assert ClinicalReport.objects.filter(patient=patient).count() == 1

    def test_unknown_patient(self, physician):
        with pytest.raises(SubjectNotFound):
            services.create_report(physician, report_draft('PAT9999'))
        assert ClinicalReport.objects.count() == 0

    def test_patient_cannot_write_report(self, patient):
        with pytest.raises(RoleForbidden):
            services.create_report(patient, report_draft(patient.mrn))


@pytest.mark.django_db
class TestGetReport:

    def test_existing(self, physician):
        report = ReportFactory()
        assert services.get_report(physician, str(report.id)) == report

    def test_invalid_id(self, physician):
        with pytest.raises(ValidationError) as exc_info:
            services.get_report(physician, 'not-a-uuid')
        assert exc_info.value.code == 'INVALID_REPORT_ID'

    def test_missing(self, physician):
        with pytest.raises(ReportNotFound) as exc_info:
            services.get_report(physician, uuid.uuid4())
        assert exc_info.value.http_status == 404

    def test_patient_cannot_read_reports(self, patient):
        report = ReportFactory(patient=patient)
        with pytest.raises(RoleForbidden):
            services.get_report(patient, report.id)


# ===================================================================
# Advice
# ===================================================================

@pytest.mark.django_db
class TestCreateAdvice:

    def test_physician_advice_is_approved(self, physician, patient):
        advice = services.create_advice(physician, advice_draft(patient.mrn))

        assert advice.status == 'approved'
        assert advice.approved_by == physician
        assert advice.approved_at is not None

    def test_inactive_patient_still_receives_advice(self, physician):
        patient = PatientFactory(account_status='inactive')
        advice = services.create_advice(physician, advice_draft(patient.mrn))
        assert advice.patient == patient

    def test_patient_cannot_write_advice(self, patient):
        with pytest.raises(RoleForbidden):
            services.create_advice(patient, advice_draft(patient.mrn))
        assert Advice.objects.count() == 0

    def test_initial_status(self, physician, admin_account, patient):
        assert services.initial_advice_status(physician) == 'approved'
        assert services.initial_advice_status(admin_account) == 'approved'
        assert services.initial_advice_status(patient) == 'pending'


@pytest.mark.django_db
class TestApproveAdvice:

    def test_pending_to_approved(self, physician):
        advice = AdviceFactory(status='pending')

        result = services.approve_advice(physician, str(advice.id), annotation='Reviewed')

        advice.refresh_from_db()
        assert result.status == 'approved'
        assert advice.status == 'approved'
        assert advice.approved_by == physician
        assert advice.annotation == 'Reviewed'

    def test_approved_is_terminal(self, physician):
        advice = AdviceFactory(status='pending')
        services.approve_advice(physician, advice.id)

        with pytest.raises(InvalidStatusTransition) as exc_info:
            services.approve_advice(physician, advice.id)
        assert exc_info.value.http_status == 409

    def test_patient_cannot_approve(self, patient):
        advice = AdviceFactory(patient=patient)
        with pytest.raises(RoleForbidden):
            services.approve_advice(patient, advice.id)

    def test_missing(self, physician):
        with pytest.raises(AdviceNotFound):
            services.approve_advice(physician, uuid.uuid4())

    def test_invalid_id(self, physician):
        with pytest.raises(ValidationError) as exc_info:
            services.approve_advice(physician, '123')
        assert exc_info.value.code == 'INVALID_ADVICE_ID'


@pytest.mark.django_db
class TestListPatientAdvice:

    def test_patient_sees_own(self, patient):
        AdviceFactory(patient=patient)
        AdviceFactory()

        results = services.list_patient_advice(patient)
        assert [a.patient_id for a in results] == [patient.id]

    def test_patient_cannot_see_others(self, patient):
        other = PatientFactory()
        with pytest.raises(NotSelf):
            services.list_patient_advice(patient, other.mrn)

    def test_physician_must_name_patient(self, physician):
        with pytest.raises(ValidationError):
            services.list_patient_advice(physician)

    def test_physician_by_mrn(self, physician, patient):
        AdviceFactory(patient=patient)
        AdviceFactory(patient=patient)
        assert len(services.list_patient_advice(physician, patient.mrn)) == 2


# ===================================================================
# Requests
# ===================================================================

@pytest.mark.django_db
class TestSubmitAdviceRequest:

    @patch('clinic.tasks.notify_physicians')
    def test_notification_dispatched_after_commit(self, mock_task, patient, django_capture_on_commit_callbacks):
        draft = AdviceRequestDraft(subject='Rash', description='Itchy rash on arm', urgency='high')

        with django_capture_on_commit_callbacks(execute=True):
            advice_request = services.submit_advice_request(patient, draft)

        assert advice_request.patient == patient
        mock_task.delay.assert_called_once_with('advice_request', str(advice_request.id))

    @patch('clinic.tasks.notify_physicians')
    def test_not_dispatched_before_commit(self, mock_task, patient, django_capture_on_commit_callbacks):
        draft = AdviceRequestDraft(subject='Rash', description='Itchy rash on arm')

        with django_capture_on_commit_callbacks(execute=False) as callbacks:
            services.submit_advice_request(patient, draft)

        assert len(callbacks) == 1
        mock_task.delay.assert_not_called()

    @patch('clinic.tasks.notify_physicians')
    def test_dispatch_failure_keeps_request(self, mock_task, patient, django_capture_on_commit_callbacks, caplog):
        mock_task.delay.side_effect = ConnectionError('broker down')
        draft = AdviceRequestDraft(subject='Rash', description='Itchy rash on arm')

        with caplog.at_level(logging.ERROR, logger='clinic.services'):
            with django_capture_on_commit_callbacks(execute=True):
                advice_request = services.submit_advice_request(patient, draft)

        assert AdviceRequest.objects.filter(id=advice_request.id).exists()
        assert 'could not queue notification' in caplog.text

    def test_for_someone_else(self, patient):
        other = PatientFactory()
        draft = AdviceRequestDraft(subject='Rash', description='desc', patient_ref=other.mrn)

        with pytest.raises(NotSelf):
            services.submit_advice_request(patient, draft)

    def test_inactive_patient(self):
        patient = PatientFactory(account_status='suspended')
        draft = AdviceRequestDraft(subject='Rash', description='desc')

        with pytest.raises(SubjectIneligible):
            services.submit_advice_request(patient, draft)
        assert AdviceRequest.objects.count() == 0

    def test_physician_cannot_raise_request(self, physician, patient):
        draft = AdviceRequestDraft(subject='Rash', description='desc', patient_ref=patient.mrn)
        with pytest.raises(RoleForbidden):
            services.submit_advice_request(physician, draft)

    @patch('clinic.tasks.notify_physicians')
    def test_request_then_physician_advice(self, mock_task, patient, physician):
        draft = AdviceRequestDraft(subject='Cough', description='Dry cough at night')
        services.submit_advice_request(patient, draft)

        advice = services.create_advice(physician, advice_draft(patient.mrn, condition='Cough'))

        assert advice.status == 'approved'
        assert AdviceRequest.objects.filter(patient=patient).count() == 1
        assert services.list_patient_advice(patient) == [advice]


@pytest.mark.django_db
class TestSubmitAppointmentRequest:

    @patch('clinic.tasks.notify_physicians')
    def test_with_named_physician(self, mock_task, patient, django_capture_on_commit_callbacks):
        physician = PhysicianFactory()
        draft = appointment_draft(physician_username=physician.user.username)

        with django_capture_on_commit_callbacks(execute=True):
            appointment = services.submit_appointment_request(patient, draft)

        assert appointment.physician == physician
        mock_task.delay.assert_called_once_with('appointment_request', str(appointment.id))

    def test_unknown_physician(self, patient):
        with pytest.raises(ValidationError) as exc_info:
            services.submit_appointment_request(patient, appointment_draft(physician_username='dr.nobody'))

        assert exc_info.value.code == 'UNKNOWN_PHYSICIAN'
        assert AppointmentRequest.objects.count() == 0

    def test_inactive_patient(self):
        patient = PatientFactory(account_status='inactive')
        with pytest.raises(SubjectIneligible):
            services.submit_appointment_request(patient, appointment_draft())
