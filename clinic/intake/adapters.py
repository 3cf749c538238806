"""
具体 Intake 实现，一种 payload 一个类。

字段名同时兼容前端表单的 camelCase（patientId / followUpDate / urgencyLevel）
和 snake_case。
"""

from datetime import date

from ..models import Account, Advice, AdviceRequest
from .base import BaseIntake
from .types import (
    AdviceDraft,
    AdviceRequestDraft,
    AppointmentRequestDraft,
    PatientDraft,
    ReportDraft,
)

ACCOUNT_STATUSES = {value for value, _ in Account.STATUS_CHOICES}
ADVICE_URGENCIES = {value for value, _ in Advice.URGENCY_CHOICES}
REQUEST_URGENCIES = {value for value, _ in AdviceRequest.URGENCY_CHOICES}

MIN_REASON_LENGTH = 10


# ── PatientIntake ──────────────────────────────────────────────────────────
#
# {
#   "fullName": "Amina Otieno", "email": "amina@example.com", "phone": "0712...",
#   "dateOfBirth": "1990-04-12", "gender": "female", "address": "...",
#   "accountStatus": "active", "patientId": "PAT0007"
# }
#
# partial=True 用于更新：只校验出现的字段。

class PatientIntake(BaseIntake):

    # draft 字段 → payload 里可能出现的 key
    FIELDS = {
        "full_name": ("full_name", "fullName", "name"),
        "email": ("email",),
        "phone": ("phone",),
        "date_of_birth": ("date_of_birth", "dateOfBirth", "dob"),
        "gender": ("gender",),
        "address": ("address",),
        "account_status": ("account_status", "accountStatus", "status"),
        "mrn": ("mrn", "patientId"),
    }

    def __init__(self, raw_body, partial=False):
        super().__init__(raw_body)
        self.partial = partial

    def transform(self) -> PatientDraft:
        provided = frozenset(
            name for name, keys in self.FIELDS.items() if self.has(*keys)
        )
        if self.partial:
            full_name = self.text(*self.FIELDS["full_name"])
        else:
            full_name = self.required(*self.FIELDS["full_name"])

        return PatientDraft(
            full_name=full_name,
            email=self.text(*self.FIELDS["email"]),
            phone=self.text(*self.FIELDS["phone"]),
            date_of_birth=self.date_value(*self.FIELDS["date_of_birth"]),
            gender=self.text(*self.FIELDS["gender"]),
            address=self.text(*self.FIELDS["address"]),
            account_status=self.choice("account_status", ACCOUNT_STATUSES, "active", "accountStatus", "status"),
            mrn=self.text(*self.FIELDS["mrn"]),
            provided=provided,
        )

    def validate(self, draft: PatientDraft) -> None:
        if "full_name" in draft.provided and not draft.full_name:
            self.error("full_name", "This field may not be blank.")
        if draft.email and "@" not in draft.email:
            self.error("email", "Enter a valid email address.")
        if draft.date_of_birth and draft.date_of_birth > date.today():
            self.error("date_of_birth", "Date of birth cannot be in the future.")
        super().validate(draft)


# ── ReportIntake ───────────────────────────────────────────────────────────
#
# {
#   "patientId": "PAT0001" | "<uuid>",
#   "diagnosis": "...", "treatment": "...", "prescription": "...",
#   "followUpDate": "2024-06-01", "notes": "..."
# }

class ReportIntake(BaseIntake):

    def transform(self) -> ReportDraft:
        return ReportDraft(
            patient_ref=self.required("patient_id", "patientId", "patient"),
            diagnosis=self.text("diagnosis"),
            treatment=self.text("treatment", "treatmentPlan"),
            prescription=self.text("prescription"),
            follow_up_date=self.date_value("follow_up_date", "followUpDate"),
            notes=self.text("notes"),
        )


# ── AdviceIntake ───────────────────────────────────────────────────────────
#
# 医生端表单提交的 urgencyLevel 是首字母大写（"Normal"），统一转小写。
# payload 里的 status / physicianId 一律忽略：状态由 services 按角色决定，
# 作者就是当前登录的人。

class AdviceIntake(BaseIntake):

    def transform(self) -> AdviceDraft:
        return AdviceDraft(
            patient_ref=self.required("patient_id", "patientId", "patient"),
            condition=self.required("condition"),
            advice=self.required("advice"),
            medications=self.required("medications"),
            lifestyle=self.text("lifestyle"),
            urgency_level=self.choice("urgency_level", ADVICE_URGENCIES, "normal", "urgencyLevel", "urgency"),
        )


# ── AdviceRequestIntake ────────────────────────────────────────────────────
#
# { "subject": "...", "description": "...", "urgency": "medium" }

class AdviceRequestIntake(BaseIntake):

    def parse(self):
        raw = super().parse()
        metadata = raw.get("metadata")
        if isinstance(metadata, dict):
            # 前端通知表单把字段放在 metadata 里，作为顶层字段的兜底
            for key in ("subject", "description", "urgency", "patientId"):
                if not raw.get(key) and metadata.get(key):
                    raw[key] = metadata[key]
        return raw

    def transform(self) -> AdviceRequestDraft:
        return AdviceRequestDraft(
            subject=self.required("subject"),
            description=self.required("description"),
            urgency=self.choice("urgency", REQUEST_URGENCIES, "medium"),
            patient_ref=self.text("patient_id", "patientId"),
        )


# ── AppointmentRequestIntake ───────────────────────────────────────────────
#
# {
#   "department": "General Medicine", "physicianUsername": "dr.kim",
#   "date": "2024-06-01", "time": "09:30", "reason": "Persistent headaches"
# }

class AppointmentRequestIntake(BaseIntake):

    def transform(self) -> AppointmentRequestDraft:
        return AppointmentRequestDraft(
            department=self.required("department"),
            date=self.date_value("date"),
            time=self.time_value("time"),
            reason=self.text("reason"),
            physician_username=self.text("physician_username", "physicianUsername"),
            patient_ref=self.text("patient_id", "patientId"),
        )

    def validate(self, draft: AppointmentRequestDraft) -> None:
        if len(draft.reason) < MIN_REASON_LENGTH:
            self.error("reason", f"Reason for visit must be at least {MIN_REASON_LENGTH} characters long.")
        if draft.time is None and not any(e["field"] == "time" for e in self._errors):
            self.error("time", "Please select a time for your appointment.")
        if draft.date is None:
            if not any(e["field"] == "date" for e in self._errors):
                self.error("date", "Please select a date for your appointment.")
        elif draft.date < date.today():
            self.error("date", "Cannot schedule appointments in the past.")
        super().validate(draft)
