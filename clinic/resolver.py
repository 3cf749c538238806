"""
患者引用解析。

前端传来的 patientId 可能是 canonical UUID，也可能是 MRN（PAT0001）。
解析顺序固定：先判断形式，再只查对应的那一种，避免歧义。

"查不到" 和 "查到了但账户不可用" 是两种不同的错误，
分别由 resolve() 和 certify_eligible() 负责。
"""

import uuid
from dataclasses import dataclass

from .directory import get_directory
from .exceptions import SubjectIneligible, SubjectNotFound, ValidationError
from .models import STATUS_ACTIVE

CANONICAL = 'canonical'
LEGACY = 'legacy'


@dataclass(frozen=True)
class SubjectReference:
    kind: str    # canonical / legacy
    value: str


def parse_reference(raw) -> SubjectReference:
    if isinstance(raw, uuid.UUID):
        return SubjectReference(CANONICAL, str(raw))

    text = str(raw or '').strip()
    if not text:
        raise ValidationError(
            message='A patient reference is required.',
            code='INVALID_SUBJECT_REFERENCE',
            detail={'errors': [{'field': 'patientId', 'message': 'This field is required.'}]},
        )

    try:
        return SubjectReference(CANONICAL, str(uuid.UUID(text)))
    except ValueError:
        return SubjectReference(LEGACY, text)


def resolve(reference, directory=None, timeout=None):
    """
    引用 → 患者账户。每次都重新查库，不做缓存（状态随时可能被改）。

    Raises:
        SubjectNotFound
        StoreTimeout / StoreUnavailable
    """
    if not isinstance(reference, SubjectReference):
        reference = parse_reference(reference)
    directory = directory or get_directory()

    if reference.kind == CANONICAL:
        subject = directory.find_by_canonical_id(reference.value, timeout=timeout)
    else:
        subject = directory.find_by_legacy_id(reference.value, timeout=timeout)

    if subject is None:
        raise SubjectNotFound(detail={'reference': reference.value, 'kind': reference.kind})
    return subject


def is_eligible(subject):
    return subject.account_status == STATUS_ACTIVE


def certify_eligible(subject):
    """确认患者可以作为新临床记录的对象，否则抛 SubjectIneligible。"""
    if not is_eligible(subject):
        raise SubjectIneligible(
            detail={'patient_id': str(subject.id), 'account_status': subject.account_status},
        )
    return subject
