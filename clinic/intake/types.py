"""
Intake 输出的 draft dataclass，业务层（services.py）只消费这些结构，
永远不碰前端原始 payload。
"""

from dataclasses import dataclass
from datetime import date, time


@dataclass
class PatientDraft:
    """
    注册 / 更新患者。

    provided 记录 payload 里实际出现的字段，update 时只 patch 这些字段。
    mrn 只用于识别前端原样回传的 patientId，不会被写入。
    """

    full_name: str = ""
    email: str = ""
    phone: str = ""
    date_of_birth: date | None = None
    gender: str = ""
    address: str = ""
    account_status: str = "active"
    mrn: str = ""
    provided: frozenset = frozenset()

    def as_patch(self) -> dict:
        return {name: getattr(self, name) for name in self.provided}


@dataclass
class ReportDraft:
    patient_ref: str
    diagnosis: str = ""
    treatment: str = ""
    prescription: str = ""
    follow_up_date: date | None = None
    notes: str = ""


@dataclass
class AdviceDraft:
    patient_ref: str
    condition: str
    advice: str
    medications: str
    lifestyle: str = ""
    urgency_level: str = "normal"


@dataclass
class AdviceRequestDraft:
    subject: str
    description: str
    urgency: str = "medium"
    patient_ref: str = ""          # 为空时默认是当前登录的患者本人


@dataclass
class AppointmentRequestDraft:
    department: str
    date: date | None
    time: time | None
    reason: str
    physician_username: str = ""
    patient_ref: str = ""
