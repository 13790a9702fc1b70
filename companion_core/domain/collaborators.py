"""核心依赖的外部协作者协议。

截图、提示词存储与系统时钟都属于核心之外的简单 I/O 封装，
核心只通过这里的窄接口调用它们，便于在测试中替换为假实现。
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Protocol

from .conversation import ConversationLevel


class InstructionKind(str, Enum):
    """系统指令的种类。前三种与层级一一对应，commentary 用于默认层级的点评。"""

    SYSTEM = "system"
    DIALOGUE = "dialogue"
    ANALYSIS = "analysis"
    COMMENTARY = "commentary"

    @classmethod
    def for_level(cls, level: ConversationLevel) -> "InstructionKind":
        if level == ConversationLevel.DIALOGUE:
            return cls.DIALOGUE
        if level == ConversationLevel.ANALYSIS:
            return cls.ANALYSIS
        return cls.SYSTEM


class InstructionProvider(Protocol):
    def get_instruction(self, kind: InstructionKind) -> str:
        """返回持久化的指令文本，未配置或为空白时返回内置默认值。"""
        ...


class ScreenshotProvider(Protocol):
    def capture(self) -> bytes:
        """截取当前屏幕，返回 PNG 字节。"""
        ...


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class SystemClock:
    """真实时钟，返回带时区的 UTC 时间。"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
