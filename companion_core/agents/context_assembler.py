"""按层级组装发往补全服务的上下文。

三个层级的上下文互不共享：

- DEFAULT: 除 analyst 以外的所有轮次。
- DIALOGUE: user / persona / assistant。
- ANALYSIS: 只有 user / analyst。

补全协议只认识 user/assistant，所以 persona、analyst 以及对话层级下的
assistant 都会改写为 assistant，并在内容前加上来源标签，保留语义来源。
"""

from typing import Dict, FrozenSet, Iterable, List, Optional

from companion_core.domain.conversation import ChatMessage, ConversationLevel, Role
from companion_core.domain.exceptions import ValidationError
from companion_core.domain.models import CompletionMessage, ContentPart


LEVEL_ROLES: Dict[ConversationLevel, FrozenSet[Role]] = {
    ConversationLevel.DEFAULT: frozenset(Role) - {Role.ANALYST},
    ConversationLevel.DIALOGUE: frozenset({Role.USER, Role.PERSONA, Role.ASSISTANT}),
    ConversationLevel.ANALYSIS: frozenset({Role.USER, Role.ANALYST}),
}

ASSISTANT_TAG = "[AI Assistant Response]"
ANALYSIS_TAG = "[Analysis]"

COMMENTARY_PREFIX = "Here is the AI response to comment on:\n\n"
ANALYSIS_PREFIX = "Analyze this conversation history:\n\n"


def coerce_level(level: int) -> ConversationLevel:
    try:
        return ConversationLevel(int(level))
    except (TypeError, ValueError):
        raise ValidationError(code="INVALID_LEVEL", message=f"unknown conversation level: {level!r}")


class ContextAssembler:
    """把历史切片与本轮输入转换为有序的 CompletionMessage 列表。"""

    def __init__(self, persona_name: str = "Miku"):
        self._persona = persona_name

    def persona_tag(self, level: ConversationLevel) -> str:
        if level == ConversationLevel.DIALOGUE:
            return f"[{self._persona}'s Inner Thoughts]"
        return f"[{self._persona}]"

    def includes(self, level: ConversationLevel, role: Role) -> bool:
        return role in LEVEL_ROLES[level]

    def assemble(
        self,
        level: ConversationLevel,
        instruction: str,
        history: Iterable[ChatMessage],
        user_input: str,
        screenshot: Optional[bytes] = None,
    ) -> List[CompletionMessage]:
        level = coerce_level(level)
        if screenshot is not None and level != ConversationLevel.DEFAULT:
            raise ValidationError(
                code="SCREENSHOT_NOT_ALLOWED",
                message="screenshots are only attached at the default level",
            )

        messages = [CompletionMessage(role="system", content=instruction)]
        for msg in history:
            if not self.includes(level, msg.role):
                continue
            messages.append(self._relabel(msg, level))

        if screenshot is not None:
            messages.append(
                CompletionMessage(
                    role="user",
                    content=[ContentPart.of_text(user_input), ContentPart.of_image(screenshot)],
                )
            )
        else:
            messages.append(CompletionMessage(role="user", content=user_input))
        return messages

    def _relabel(self, msg: ChatMessage, level: ConversationLevel) -> CompletionMessage:
        role = msg.role
        if role is Role.USER:
            return CompletionMessage(role="user", content=msg.content)
        if role is Role.PERSONA:
            return CompletionMessage(role="assistant", content=f"{self.persona_tag(level)}: {msg.content}")
        if role is Role.ASSISTANT:
            if level == ConversationLevel.DIALOGUE:
                return CompletionMessage(role="assistant", content=f"{ASSISTANT_TAG}: {msg.content}")
            return CompletionMessage(role="assistant", content=msg.content)
        if role is Role.ANALYST:
            return CompletionMessage(role="assistant", content=f"{ANALYSIS_TAG}: {msg.content}")
        raise ValueError(f"Unhandled role: {role!r}")


def build_commentary_messages(instruction: str, main_response: str) -> List[CompletionMessage]:
    return [
        CompletionMessage(role="system", content=instruction),
        CompletionMessage(role="user", content=f"{COMMENTARY_PREFIX}{main_response}"),
    ]


def build_analysis_transcript(history: Iterable[ChatMessage]) -> str:
    """深度分析用的对话记录：按时间从旧到新，每行以角色为前缀。"""

    return "\n\n".join(f"[{m.role.value}]: {m.content}" for m in history)


def build_analysis_messages(instruction: str, history: Iterable[ChatMessage]) -> List[CompletionMessage]:
    transcript = build_analysis_transcript(history)
    return [
        CompletionMessage(role="system", content=instruction),
        CompletionMessage(role="user", content=f"{ANALYSIS_PREFIX}{transcript}"),
    ]
