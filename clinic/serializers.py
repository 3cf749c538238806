"""
Response serializers: ORM 对象 → JSON-able dict。

只负责「输出格式化」，不做任何解析或校验。
输入解析和校验在 clinic/intake/。
"""


def _iso(value):
    return value.isoformat() if value else None


def serialize_account(account):
    return {
        'id': str(account.id),
        'patientId': account.mrn,
        'role': account.role,
        'fullName': account.full_name,
        'email': account.email,
        'phone': account.phone,
        'dateOfBirth': _iso(account.date_of_birth),
        'gender': account.gender,
        'address': account.address,
        'accountStatus': account.account_status,
        'created_at': _iso(account.created_at),
        'updated_at': _iso(account.updated_at),
    }


def serialize_report(report):
    """报告详情，空字段给出和前端约定的占位文本。"""
    patient = report.patient
    return {
        'id': str(report.id),
        'patient': {
            'id': str(patient.id),
            'patientId': patient.mrn,
            'name': patient.full_name,
            'dateOfBirth': _iso(patient.date_of_birth),
            'gender': patient.gender or 'Not specified',
            'email': patient.email or 'N/A',
            'phone': patient.phone or 'N/A',
        },
        'author': report.author.full_name if report.author_id else None,
        'diagnosis': report.diagnosis or 'No diagnosis',
        'treatment': report.treatment or 'No treatment specified',
        'prescription': report.prescription or 'No prescription',
        'followUpDate': _iso(report.follow_up_date),
        'notes': report.notes or 'No additional notes',
        'created_at': _iso(report.created_at),
    }


def serialize_advice(advice):
    return {
        'id': str(advice.id),
        'patient_id': str(advice.patient_id),
        'physicianName': advice.author.full_name if advice.author_id else None,
        'condition': advice.condition,
        'advice': advice.advice,
        'medications': advice.medications,
        'lifestyle': advice.lifestyle,
        'urgencyLevel': advice.urgency_level,
        'status': advice.status,
        'approved_at': _iso(advice.approved_at),
        'annotation': advice.annotation,
        'created_at': _iso(advice.created_at),
    }


def serialize_advice_list(advice_list):
    results = [serialize_advice(advice) for advice in advice_list]
    return {
        'count': len(results),
        'advice': results,
    }


def serialize_advice_request(advice_request):
    return {
        'id': str(advice_request.id),
        'patient_id': str(advice_request.patient_id),
        'subject': advice_request.subject,
        'description': advice_request.description,
        'urgency': advice_request.urgency,
        'message': 'Your advice request has been submitted. A physician will review it soon.',
        'created_at': _iso(advice_request.created_at),
    }


def serialize_appointment_request(appointment):
    return {
        'id': str(appointment.id),
        'patient_id': str(appointment.patient_id),
        'physician_id': str(appointment.physician_id) if appointment.physician_id else None,
        'department': appointment.department,
        'date': _iso(appointment.date),
        'time': appointment.time.strftime('%H:%M'),
        'reason': appointment.reason,
        'message': 'Appointment requested successfully.',
        'created_at': _iso(appointment.created_at),
    }
