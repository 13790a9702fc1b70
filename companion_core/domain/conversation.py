"""对话轮次的存储模型及 MessageStore 抽象。"""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import List, Protocol


class Role(str, Enum):
    """持久化消息的角色（封闭枚举）。

    - user: 用户输入。
    - assistant: 默认层级下通用助手的回答。
    - persona: 角色（Persona）的发言，包括默认层级的点评与对话层级的回答。
    - analyst: 分析层级 / 深度分析的结论。
    """

    USER = "user"
    ASSISTANT = "assistant"
    PERSONA = "persona"
    ANALYST = "analyst"


class ConversationLevel(IntEnum):
    """对话层级，三者上下文互不共享。"""

    DEFAULT = 0
    DIALOGUE = 1
    ANALYSIS = 2


@dataclass(frozen=True)
class ChatMessage:
    """一条已持久化的对话轮次，写入后不可修改。"""

    timestamp: str
    role: Role
    content: str
    level: ConversationLevel


class MessageStore(Protocol):
    def append(self, message: ChatMessage) -> None:
        ...

    def append_many(self, messages: List[ChatMessage]) -> None:
        """一次写入多条消息；任一条校验失败则一条都不写。"""
        ...

    def recent(self, n: int) -> List[ChatMessage]:
        ...

    def clear(self) -> None:
        ...
