"""统一的补全请求与结果数据模型。

本模块定义了 Orchestrator 与 Provider 之间共享的标准数据结构：

- CompletionMessage: 发往补全服务的一条消息（system/user/assistant）。
- CompletionRequest: 发给底层 LLM Provider 的完整请求。
- CompletionResult: 从 Provider 解析后的统一响应结果。
- TurnResult / DeepAnalysisResult / CooldownStatus: 对外返回的结果对象。

这些对象都是临时值对象，不做持久化；持久化的轮次见 conversation.ChatMessage。
"""

from dataclasses import dataclass, field
from typing import Literal, Optional, List, Union


# 补全服务协议只认识这三种角色
WireRole = Literal["system", "user", "assistant"]


@dataclass(frozen=True)
class ContentPart:
    """多段内容中的一段：文本或图片（PNG 字节）。"""

    type: Literal["text", "image"]
    text: Optional[str] = None
    image: Optional[bytes] = None

    @classmethod
    def of_text(cls, text: str) -> "ContentPart":
        return cls(type="text", text=text)

    @classmethod
    def of_image(cls, data: bytes) -> "ContentPart":
        return cls(type="image", image=data)


@dataclass
class CompletionMessage:
    """一条发往补全服务的消息。

    content 为纯文本，或者（仅携带截图时）为 [文本, 图片] 的多段内容。
    """

    role: WireRole
    content: Union[str, List[ContentPart]]

    @property
    def text(self) -> str:
        """消息中的文本部分，多段内容时拼接所有文本段。"""

        if isinstance(self.content, str):
            return self.content
        return "".join(p.text or "" for p in self.content if p.type == "text")


@dataclass
class CompletionRequest:
    """一次完整的补全请求。

    model 为逻辑模型名（如 "companion-chat"），由 registry 映射为真实模型 ID。
    """

    provider: str
    model: str
    messages: List[CompletionMessage]
    max_tokens: Optional[int] = None


@dataclass
class CompletionUsage:
    """Provider 返回的 token 统计信息。"""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass
class CompletionResult:
    """一次补全调用的结果。

    - content: choices[0].message.content 的文本；字段缺失时为空串。
    - has_content: 响应中是否存在预期字段，缺失时由 Dispatcher 替换为占位文本。
    - raw: 原始响应 JSON，用于调试或日志记录。
    """

    provider: str
    model: str
    content: str
    has_content: bool = True
    usage: Optional[CompletionUsage] = None
    raw: Optional[dict] = None


@dataclass
class TurnResult:
    """handle_user_message 的返回值。commentary 只会在默认层级出现。"""

    main_response: str
    commentary: Optional[str] = None
    level: int = 0


@dataclass
class CooldownStatus:
    blocked: bool
    remaining_seconds: int = 0


@dataclass
class DeepAnalysisResult:
    """trigger_deep_analysis 的返回值。

    on_cooldown 为 True 时 main_response 为空串，调用方据此展示倒计时。
    """

    on_cooldown: bool
    remaining_seconds: int = 0
    main_response: str = ""
    meta: dict = field(default_factory=dict)
