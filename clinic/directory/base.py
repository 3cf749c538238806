"""
BaseSubjectDirectory: 患者/员工账户存储的抽象接口。

Resolver、Allocator、services 只认识这个接口，不直接碰 ORM。
每个方法都接受调用方给的 timeout（秒）；超时抛 StoreTimeout，
其他存储失败抛 StoreUnavailable，core 不自行重试。
"""

from abc import ABC, abstractmethod


class BaseSubjectDirectory(ABC):

    @abstractmethod
    def find_by_canonical_id(self, canonical_id, timeout=None):
        """按 UUID 查患者，查不到返回 None。"""

    @abstractmethod
    def find_by_legacy_id(self, mrn, timeout=None):
        """按 MRN（PAT0001）查患者，不区分大小写；查不到返回 None。"""

    @abstractmethod
    def list_legacy_ids(self, timeout=None) -> set[str]:
        """返回当前所有已分配的 MRN。"""

    @abstractmethod
    def insert(self, account, timeout=None):
        """
        写入新账户，返回写入后的账户。

        Raises:
            LegacyIdConflict: MRN 唯一约束冲突（并发注册时会发生）
        """

    @abstractmethod
    def update(self, canonical_id, patch: dict, timeout=None):
        """按字段 patch 更新，返回更新后的账户；账户不存在返回 None。"""
