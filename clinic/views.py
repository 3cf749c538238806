"""
HTTP 边界层：只做 解析 → 调 service → 序列化。

所有业务异常由 settings.REST_FRAMEWORK['EXCEPTION_HANDLER']
（clinic.exception_handler.unified_exception_handler）统一转换。
"""

from django.http import JsonResponse
from rest_framework.views import APIView

from . import services
from .exceptions import RoleForbidden
from .intake import (
    AdviceIntake,
    AdviceRequestIntake,
    AppointmentRequestIntake,
    PatientIntake,
    ReportIntake,
)
from .models import Account
from .serializers import (
    serialize_account,
    serialize_advice,
    serialize_advice_list,
    serialize_advice_request,
    serialize_appointment_request,
    serialize_report,
)


def get_actor(request):
    """当前登录用户对应的诊所账户。没有关联账户的用户不能做任何操作。"""
    try:
        return request.user.clinic_account
    except (AttributeError, Account.DoesNotExist):
        raise RoleForbidden(message='No clinic account is linked to this login.', code='ACCOUNT_NOT_LINKED')


class PatientCollectionView(APIView):
    """POST /api/patients/ - 注册新患者（医生/管理员）"""

    def post(self, request):
        draft = PatientIntake(request.data).process()
        patient = services.register_patient(get_actor(request), draft)
        return JsonResponse(serialize_account(patient), status=201)


class PatientDetailView(APIView):
    """GET / PATCH /api/patients/<ref>/ - ref 可以是 UUID 或 MRN"""

    def get(self, request, reference):
        patient = services.get_patient(get_actor(request), reference)
        return JsonResponse(serialize_account(patient))

    def patch(self, request, reference):
        draft = PatientIntake(request.data, partial=True).process()
        patient = services.update_patient(get_actor(request), reference, draft)
        return JsonResponse(serialize_account(patient))

    put = patch


class ReportCreateView(APIView):
    """POST /api/patient-reports/"""

    def post(self, request):
        draft = ReportIntake(request.data).process()
        report = services.create_report(get_actor(request), draft)
        return JsonResponse(
            {'message': 'Report generated successfully', 'data': serialize_report(report)},
            status=201,
        )


class ReportDetailView(APIView):
    """GET /api/patient-reports/<report_id>/"""

    def get(self, request, report_id):
        report = services.get_report(get_actor(request), report_id)
        return JsonResponse({'data': serialize_report(report)})


class AdviceCreateView(APIView):
    """POST /api/advice/ - 医生直接写 advice（自动 approved）"""

    def post(self, request):
        draft = AdviceIntake(request.data).process()
        advice = services.create_advice(get_actor(request), draft)
        return JsonResponse(serialize_advice(advice), status=201)


class AdviceApproveView(APIView):
    """POST /api/advice/<advice_id>/approve/"""

    def post(self, request, advice_id):
        annotation = str(request.data.get('annotation') or '').strip()
        advice = services.approve_advice(get_actor(request), advice_id, annotation=annotation)
        return JsonResponse(serialize_advice(advice))


class PatientAdviceView(APIView):
    """GET /api/advice/patient/ - 患者看自己的；医生带 ?patient=<ref>"""

    def get(self, request):
        reference = request.query_params.get('patient') or None
        advice_list = services.list_patient_advice(get_actor(request), reference)
        return JsonResponse(serialize_advice_list(advice_list))


class AdviceRequestCreateView(APIView):
    """POST /api/advice-requests/"""

    def post(self, request):
        draft = AdviceRequestIntake(request.data).process()
        advice_request = services.submit_advice_request(get_actor(request), draft)
        return JsonResponse(serialize_advice_request(advice_request), status=201)


class AppointmentRequestCreateView(APIView):
    """POST /api/appointments/"""

    def post(self, request):
        draft = AppointmentRequestIntake(request.data).process()
        appointment = services.submit_appointment_request(get_actor(request), draft)
        return JsonResponse(serialize_appointment_request(appointment), status=201)
