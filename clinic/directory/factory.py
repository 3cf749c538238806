"""
工厂函数：根据 settings.SUBJECT_DIRECTORY 返回对应的 Directory 实例。

新增存储实现只需：
  1. 新建 XxxSubjectDirectory(BaseSubjectDirectory) 类
  2. 在此处 _REGISTRY 加一行
"""

from django.conf import settings

from .base import BaseSubjectDirectory


def _build_registry() -> dict[str, type[BaseSubjectDirectory]]:
    # 延迟导入，避免在 Django apps 就绪前加载 models
    from .orm import OrmSubjectDirectory

    return {
        "orm": OrmSubjectDirectory,
    }


def get_directory() -> BaseSubjectDirectory:
    """
    Raises:
        ValueError: SUBJECT_DIRECTORY 未知
    """
    backend = getattr(settings, "SUBJECT_DIRECTORY", "orm")
    registry = _build_registry()
    directory_cls = registry.get(backend)

    if directory_cls is None:
        raise ValueError(
            f"Unknown SUBJECT_DIRECTORY: {backend!r}. "
            f"Known backends: {list(registry.keys())}"
        )

    return directory_cls()
