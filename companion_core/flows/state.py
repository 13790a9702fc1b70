"""State definition for the per-turn LangGraph flow."""

from __future__ import annotations

from typing import List, Optional, TypedDict

from companion_core.domain.conversation import ChatMessage, ConversationLevel
from companion_core.domain.models import CompletionMessage


class TurnState(TypedDict, total=False):
    """State shared across turn graph nodes."""

    trace_id: str
    text: str
    level: ConversationLevel
    wants_screenshot: bool
    instruction: str
    screenshot: Optional[bytes]
    history: List[ChatMessage]
    messages: List[CompletionMessage]
    main_response: str
    persisted: List[ChatMessage]
    commentary: Optional[str]
