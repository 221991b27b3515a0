"""세무 마감일 규칙 엔진"""

__version__ = "0.1.0"
