"""
Django ORM 实现的 Subject Directory。

只有 role=patient 的账户能被当作 subject 查到；员工账户在同一张表里，
但不会被 find_by_* 返回。
"""

from django.db import IntegrityError, transaction

from ..exceptions import BlockError, LegacyIdConflict
from ..models import Account, ROLE_PATIENT
from ..store import bounded
from .base import BaseSubjectDirectory


class OrmSubjectDirectory(BaseSubjectDirectory):

    def find_by_canonical_id(self, canonical_id, timeout=None):
        with bounded(timeout):
            return Account.objects.filter(id=canonical_id, role=ROLE_PATIENT).first()

    def find_by_legacy_id(self, mrn, timeout=None):
        with bounded(timeout):
            return Account.objects.filter(mrn__iexact=mrn, role=ROLE_PATIENT).first()

    def list_legacy_ids(self, timeout=None):
        with bounded(timeout):
            return set(
                Account.objects.exclude(mrn__isnull=True).values_list('mrn', flat=True)
            )

    def insert(self, account, timeout=None):
        with bounded(timeout):
            try:
                # savepoint：冲突时只回滚这一条 INSERT，外层事务还能继续用
                with transaction.atomic():
                    account.save(force_insert=True)
            except IntegrityError as exc:
                if account.mrn and Account.objects.filter(mrn=account.mrn).exists():
                    raise LegacyIdConflict(
                        message=f"MRN {account.mrn} is already assigned.",
                        detail={'mrn': account.mrn},
                    ) from exc
                raise BlockError(
                    message='Account conflicts with an existing record.',
                    code='ACCOUNT_CONFLICT',
                ) from exc
            return account

    def update(self, canonical_id, patch, timeout=None):
        with bounded(timeout):
            account = Account.objects.select_for_update().filter(id=canonical_id).first()
            if account is None:
                return None
            for field, value in patch.items():
                setattr(account, field, value)
            account.save(update_fields=[*patch.keys(), 'updated_at'])
            return account
