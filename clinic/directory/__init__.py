from .base import BaseSubjectDirectory
from .factory import get_directory

__all__ = ["BaseSubjectDirectory", "get_directory"]
