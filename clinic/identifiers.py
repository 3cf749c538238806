"""
MRN (legacy identifier) 分配。

格式：PREFIX + 零填充数字，例如 PAT0001。
历史数据里还有 PA0003 这种两字母前缀，视为同一序列。
前缀匹配不区分大小写（pat0009 也算），MRN 查找同样不区分大小写。

"扫描最大值再 +1" 本身不是原子的：两个并发注册会算出同一个 MRN。
所以唯一性靠数据库唯一约束保证，冲突后重新扫描、有限次重试。
"""

import logging
import random
import re
import time
from dataclasses import dataclass

from django.conf import settings

from .exceptions import AllocationExhausted, LegacyIdConflict, StoreTimeout

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LegacyIdPolicy:
    prefix: str = 'PAT'
    width: int = 4
    variants: frozenset = frozenset({'PA', 'PAT'})
    max_attempts: int = 5
    backoff: float = 0.05   # 秒，第 n 次冲突后最多等待 backoff * 2^n

    @classmethod
    def from_settings(cls):
        conf = getattr(settings, 'CLINIC_LEGACY_ID', {}) or {}
        prefix = conf.get('PREFIX', cls.prefix)
        return cls(
            prefix=prefix,
            width=int(conf.get('WIDTH', cls.width)),
            variants=frozenset(conf.get('VARIANTS', cls.variants)) | {prefix},
            max_attempts=int(conf.get('MAX_ATTEMPTS', cls.max_attempts)),
            backoff=float(conf.get('BACKOFF_SECONDS', cls.backoff)),
        )

    @property
    def pattern(self):
        # 长前缀优先，避免 PAT0001 被 PA 吃掉后剩下 "T0001"
        alternatives = '|'.join(
            re.escape(v) for v in sorted(self.variants | {self.prefix}, key=len, reverse=True)
        )
        return re.compile(rf'^(?:{alternatives})(\d+)$', re.IGNORECASE)

    def format(self, number):
        return f"{self.prefix}{number:0{self.width}d}"


def next_legacy_id(existing_ids, policy=None):
    """纯函数：给定现有 MRN 集合，算出下一个。没有匹配项时从 1 开始。"""
    policy = policy or LegacyIdPolicy.from_settings()
    pattern = policy.pattern
    highest = 0
    for legacy_id in existing_ids:
        match = pattern.match(legacy_id or '')
        if match:
            highest = max(highest, int(match.group(1)))
    return policy.format(highest + 1)


def fallback_legacy_id(policy):
    """
    基于当前毫秒时间戳的 MRN，扫描失败时使用。

    前缀后带 "-"（PAT-1760000000123），序列正则匹配不到，之后的扫描会忽略它。
    """
    return f"{policy.prefix}-{time.time_ns() // 1_000_000}"


def allocate_legacy_id(directory, policy=None, timeout=None):
    """
    读取现有 MRN 并计算下一个。

    扫描/解析出错时降级为时间戳 MRN（记 warning，不让注册失败）；
    StoreTimeout 例外，直接抛给调用方。
    """
    policy = policy or LegacyIdPolicy.from_settings()
    try:
        existing = directory.list_legacy_ids(timeout=timeout)
        return next_legacy_id(existing, policy)
    except StoreTimeout:
        raise
    except Exception:
        legacy_id = fallback_legacy_id(policy)
        logger.warning("[allocator] degraded allocation, falling back to %s", legacy_id, exc_info=True)
        return legacy_id


def insert_with_legacy_id(directory, account, policy=None, timeout=None):
    """
    分配 MRN 并写入，冲突时重算重试。

    每次失败都意味着别的请求成功写入了一条，所以 N 个并发注册
    在 max_attempts >= N 时一定全部成功。

    Raises:
        AllocationExhausted: 重试 max_attempts 次后仍然冲突
    """
    policy = policy or LegacyIdPolicy.from_settings()

    for attempt in range(policy.max_attempts):
        account.mrn = allocate_legacy_id(directory, policy, timeout=timeout)
        try:
            saved = directory.insert(account, timeout=timeout)
        except LegacyIdConflict:
            logger.warning(
                "[allocator] MRN %s taken (attempt %d/%d), retrying",
                account.mrn, attempt + 1, policy.max_attempts,
            )
            if policy.backoff:
                time.sleep(random.uniform(0, policy.backoff * (2 ** attempt)))
            continue

        logger.info("[allocator] assigned MRN %s to account %s", saved.mrn, saved.id)
        return saved

    logger.error("[allocator] gave up after %d attempts", policy.max_attempts)
    account.mrn = None
    raise AllocationExhausted(
        message='Could not allocate a unique patient ID. Please retry.',
        detail={'attempts': policy.max_attempts},
    )
