"""
Workflow Authorization Gate.

所有 "谁能对哪个患者做什么" 的判断都集中在 RULES 表里，
调用方不要再自己写 if role == ...。新增一种临床记录只需加一行规则。

authorize() 是纯函数，只返回 Decision；enforce() 把拒绝转成对应异常。
"""

from dataclasses import dataclass

from .exceptions import NotSelf, RoleForbidden, SubjectIneligible
from .models import ROLE_ADMIN, ROLE_PATIENT, ROLE_PHYSICIAN
from .resolver import certify_eligible, is_eligible

CREATE_REPORT = 'create-report'
VIEW_REPORT = 'view-report'
CREATE_ADVICE = 'create-advice'
APPROVE_ADVICE = 'approve-advice'
CREATE_REQUEST = 'create-request'
VIEW_ADVICE = 'view-advice'
REGISTER_SUBJECT = 'register-subject'
UPDATE_SUBJECT = 'update-subject'
VIEW_SUBJECT = 'view-subject'

ROLE_FORBIDDEN = 'role-forbidden'
SUBJECT_INELIGIBLE = 'subject-ineligible'
NOT_SELF = 'not-self'

CLINICIANS = frozenset({ROLE_PHYSICIAN, ROLE_ADMIN})
PATIENTS = frozenset({ROLE_PATIENT})


@dataclass(frozen=True)
class Rule:
    roles: frozenset
    requires_active: bool = False
    self_only_roles: frozenset = frozenset()


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str | None = None


ALLOW = Decision(True)

RULES = {
    CREATE_REPORT:    Rule(roles=CLINICIANS, requires_active=True),
    VIEW_REPORT:      Rule(roles=CLINICIANS),
    CREATE_ADVICE:    Rule(roles=CLINICIANS),
    APPROVE_ADVICE:   Rule(roles=CLINICIANS),
    # 患者不能直接建 Advice，只能发 Request，由医生另建 Advice
    CREATE_REQUEST:   Rule(roles=PATIENTS, requires_active=True, self_only_roles=PATIENTS),
    VIEW_ADVICE:      Rule(roles=CLINICIANS | PATIENTS, self_only_roles=PATIENTS),
    REGISTER_SUBJECT: Rule(roles=CLINICIANS),
    UPDATE_SUBJECT:   Rule(roles=CLINICIANS),
    VIEW_SUBJECT:     Rule(roles=CLINICIANS | PATIENTS, self_only_roles=PATIENTS),
}


def authorize(actor, action, subject=None) -> Decision:
    """
    检查顺序：角色 → 是否本人 → 患者状态。

    Args:
        actor:   当前操作者（Account）
        action:  上面的 action 常量之一
        subject: 目标患者（Account）；不针对具体患者的操作可为 None
    """
    rule = RULES.get(action)
    if rule is None or actor is None or actor.role not in rule.roles:
        return Decision(False, ROLE_FORBIDDEN)

    if subject is not None:
        if actor.role in rule.self_only_roles and subject.id != actor.id:
            return Decision(False, NOT_SELF)
        if rule.requires_active and not is_eligible(subject):
            return Decision(False, SUBJECT_INELIGIBLE)

    return ALLOW


def enforce(decision, subject=None):
    if decision.allowed:
        return
    if decision.reason == SUBJECT_INELIGIBLE:
        if subject is not None:
            certify_eligible(subject)   # 带上 account_status detail 抛出
        raise SubjectIneligible()
    if decision.reason == NOT_SELF:
        raise NotSelf()
    raise RoleForbidden()
