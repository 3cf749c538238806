"""
BaseIntake: 所有请求体 Intake 的抽象基类。

每种 payload 只需：
1. 继承 BaseIntake
2. 实现 transform()，必要时 override validate()

错误统一收集成列表，一次性抛 ValidationError，前端可以逐字段提示。
"""

import json
from abc import ABC, abstractmethod
from datetime import date, time
from typing import Any

from ..exceptions import ValidationError


class BaseIntake(ABC):
    """
    三步流水线：parse → transform → validate
    """

    def __init__(self, raw_body: bytes | str | dict):
        self._raw_body = raw_body
        self._errors: list[dict] = []

    # ── 提供默认实现，子类可 override ──────────────────────────────────────

    def parse(self) -> Any:
        """DRF 已解析的 dict 原样使用；bytes / str 按 JSON 解析。"""
        raw = self._raw_body
        if isinstance(raw, (bytes, str)):
            try:
                raw = json.loads(raw or "{}")
            except ValueError:
                raise ValidationError(message="Request body is not valid JSON.", code="INVALID_JSON")
        if not isinstance(raw, dict):
            raise ValidationError(message="Request body must be a JSON object.", code="INVALID_JSON")
        self._parsed = raw
        return raw

    def validate(self, draft) -> None:
        """子类 super() 后追加检查；这里只负责把累积的错误抛出去。"""
        if self._errors:
            raise ValidationError(
                message="Request validation failed.",
                code="VALIDATION_ERROR",
                detail={"errors": self._errors},
            )

    # ── 必须实现 ───────────────────────────────────────────────────────────

    @abstractmethod
    def transform(self):
        """将 self._parsed 转换为 draft dataclass。"""

    # ── 字段读取 helper ────────────────────────────────────────────────────

    def error(self, field: str, message: str) -> None:
        self._errors.append({"field": field, "message": message})

    def text(self, *keys: str) -> str:
        """按顺序尝试多个字段名（兼容前端的 camelCase 和 snake_case）。"""
        for key in keys:
            value = self._parsed.get(key)
            if value is not None and str(value).strip():
                return str(value).strip()
        return ""

    def has(self, *keys: str) -> bool:
        return any(key in self._parsed for key in keys)

    def required(self, field: str, *keys: str) -> str:
        value = self.text(field, *keys)
        if not value:
            self.error(field, "This field is required.")
        return value

    def date_value(self, field: str, *keys: str) -> date | None:
        raw = self.text(field, *keys)
        if not raw:
            return None
        try:
            # 前端可能传 "2024-05-01T00:00:00.000Z"，只取日期部分
            return date.fromisoformat(raw[:10])
        except ValueError:
            self.error(field, f"Invalid date: {raw!r}. Expected YYYY-MM-DD.")
            return None

    def time_value(self, field: str, *keys: str) -> time | None:
        raw = self.text(field, *keys)
        if not raw:
            return None
        try:
            return time.fromisoformat(raw)
        except ValueError:
            self.error(field, f"Invalid time: {raw!r}. Expected HH:MM.")
            return None

    def choice(self, field: str, allowed, default: str, *keys: str) -> str:
        raw = self.text(field, *keys).lower()
        if not raw:
            return default
        if raw not in allowed:
            self.error(field, f"Must be one of: {', '.join(sorted(allowed))}.")
        return raw

    # ── 对外统一入口 ───────────────────────────────────────────────────────

    def process(self):
        """parse → transform → validate，返回校验通过的 draft。"""
        self.parse()
        draft = self.transform()
        self.validate(draft)
        return draft
