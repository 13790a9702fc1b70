"""Companion 编排器。

把 MessageStore、ContextAssembler、CooldownGate 与 CompletionDispatcher 串起来：

- handle_user_message: 读历史 → 组装上下文 → 主回答 → 持久化 →（默认层级）角色点评。
- trigger_deep_analysis: 冷却检查 → 汇总较长历史 → 分析 → 持久化 → stamp。

读历史时只在 store 内部短暂持锁，网络调用期间不持有 MessageStore 的锁。
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging
import threading
import time
from typing import Any, Dict, List, Optional
from uuid import uuid4

from companion_core.agents.context_assembler import (
    ContextAssembler,
    build_analysis_messages,
    build_commentary_messages,
    coerce_level,
)
from companion_core.agents.cooldown import CooldownGate
from companion_core.agents.dispatcher import CompletionDispatcher
from companion_core.domain.collaborators import (
    Clock,
    InstructionKind,
    InstructionProvider,
    ScreenshotProvider,
    SystemClock,
)
from companion_core.domain.conversation import ChatMessage, ConversationLevel, MessageStore, Role
from companion_core.domain.exceptions import AuthError, ValidationError
from companion_core.domain.models import DeepAnalysisResult, TurnResult
from companion_core.flows.state import TurnState
from companion_core.flows.turn_graph import build_turn_graph
from companion_core.infrastructure.logging.logger import logger
from companion_core.providers.base import ProviderClient
from companion_core.providers.registry import ANALYSIS_MODEL, CHAT_MODEL, COMMENTARY_MODEL


ANSWER_ROLE: Dict[ConversationLevel, Role] = {
    ConversationLevel.DEFAULT: Role.ASSISTANT,
    ConversationLevel.DIALOGUE: Role.PERSONA,
    ConversationLevel.ANALYSIS: Role.ANALYST,
}

ANALYSIS_PLACEHOLDER = "No insights generated"


@dataclass
class CompanionConfig:
    persona_name: str = "Miku"
    history_window: int = 10  # 普通对话带入的最近消息数
    analysis_history_window: int = 50  # 深度分析带入的最近消息数
    history_view_limit: int = 100
    primary_max_tokens: int = 1000
    commentary_max_tokens: int = 500


class CompanionOrchestrator:
    def __init__(
        self,
        store: MessageStore,
        gate: CooldownGate,
        provider_client: ProviderClient,
        instructions: InstructionProvider,
        screenshots: Optional[ScreenshotProvider] = None,
        clock: Optional[Clock] = None,
        config: Optional[CompanionConfig] = None,
    ):
        self._store = store
        self._gate = gate
        self._provider_client = provider_client
        self._dispatcher = CompletionDispatcher(provider_client)
        self._instructions = instructions
        self._screenshots = screenshots
        self._clock = clock or SystemClock()
        self._config = config or CompanionConfig()
        self._assembler = ContextAssembler(self._config.persona_name)
        self._ts_lock = threading.Lock()
        self._last_ts: Optional[str] = None
        self._turn_graph = build_turn_graph(self)

    @property
    def store(self) -> MessageStore:
        return self._store

    @property
    def gate(self) -> CooldownGate:
        return self._gate

    # ---- 对外入口 ----

    def handle_user_message(
        self,
        text: str,
        wants_screenshot: bool = False,
        level: int = ConversationLevel.DEFAULT,
    ) -> TurnResult:
        """处理一条用户消息。

        Args:
            text: 用户输入
            wants_screenshot: 是否附带截图（仅默认层级生效）
            level: 对话层级 0/1/2

        Returns:
            TurnResult，commentary 仅在默认层级且点评成功时非空

        Raises:
            各种 domain.exceptions 中定义的异常；主回答失败时不写入任何消息
        """
        start_time = time.time()
        level = coerce_level(level)
        if not text or not text.strip():
            raise ValidationError(code="EMPTY_MESSAGE", message="message must not be empty")
        trace_id = f"tr-{uuid4().hex}"
        log_ctx = {"trace_id": trace_id, "conversation_level": int(level)}
        self._log(logging.INFO, "Handling user message", log_ctx, wants_screenshot=wants_screenshot)

        state: TurnState = {
            "trace_id": trace_id,
            "text": text,
            "level": level,
            "wants_screenshot": wants_screenshot,
            "commentary": None,
        }
        final = self._turn_graph.invoke(state)

        self._log(
            logging.INFO,
            "Completed user turn",
            log_ctx,
            elapsed_seconds=round(time.time() - start_time, 2),
            has_commentary=final.get("commentary") is not None,
        )
        return TurnResult(
            main_response=final["main_response"],
            commentary=final.get("commentary"),
            level=int(level),
        )

    def trigger_deep_analysis(self) -> DeepAnalysisResult:
        """运行一次深度分析，冷却中则直接返回剩余时间。

        整个 检查 → 调用 → stamp → 持久化 序列都在冷却闸门的锁内完成；
        持久化之前的任何失败都不会 stamp；持久化失败时撤销已写入的 stamp。
        """
        trace_id = f"tr-{uuid4().hex}"
        log_ctx: Dict[str, Any] = {"trace_id": trace_id, "conversation_level": int(ConversationLevel.ANALYSIS)}
        with self._gate.admission():
            status = self._gate.check()
            if status.blocked:
                self._log(
                    logging.INFO,
                    "Deep analysis on cooldown",
                    log_ctx,
                    remaining_seconds=status.remaining_seconds,
                )
                return DeepAnalysisResult(on_cooldown=True, remaining_seconds=status.remaining_seconds)

            self._require_credentials()
            instruction = self._instructions.get_instruction(InstructionKind.ANALYSIS)
            history = self._store.recent(self._config.analysis_history_window)
            messages = build_analysis_messages(instruction, history)
            self._log(logging.INFO, "Running deep analysis", log_ctx, history_count=len(history))
            insights = self._dispatcher.complete(
                messages,
                model=ANALYSIS_MODEL,
                placeholder=ANALYSIS_PLACEHOLDER,
                log_ctx=log_ctx,
            )
            # 写入失败时回滚 stamp
            previous = self._gate.last_stamp()
            stamped_at = self._gate.stamp()
            try:
                self._store.append(
                    ChatMessage(
                        timestamp=self._next_timestamp(),
                        role=Role.ANALYST,
                        content=insights,
                        level=ConversationLevel.ANALYSIS,
                    )
                )
            except Exception:
                self._gate.restore(previous)
                raise
            self._log(logging.INFO, "Stored deep analysis", log_ctx, stamped_at=stamped_at)
        return DeepAnalysisResult(on_cooldown=False, remaining_seconds=0, main_response=insights)

    def get_history(self, limit: Optional[int] = None) -> List[ChatMessage]:
        return self._store.recent(self._config.history_view_limit if limit is None else limit)

    def clear_history(self) -> None:
        self._store.clear()
        self._log(logging.INFO, "Cleared chat history", {})

    def reset_all_data(self) -> None:
        """清空历史与冷却状态。"""
        self._store.clear()
        self._gate.reset()
        self._log(logging.INFO, "Reset all companion data", {})

    # ---- 图节点 ----

    def context_node(self, state: TurnState) -> TurnState:
        level = state["level"]
        log_ctx = {"trace_id": state["trace_id"], "conversation_level": int(level)}
        self._require_credentials()
        instruction = self._instructions.get_instruction(InstructionKind.for_level(level))

        screenshot = None
        if state.get("wants_screenshot") and level == ConversationLevel.DEFAULT:
            if self._screenshots is None:
                raise ValidationError(code="SCREENSHOT_UNAVAILABLE", message="no screenshot provider configured")
            screenshot = self._screenshots.capture()
            self._log(logging.INFO, "Captured screenshot", log_ctx, bytes=len(screenshot))

        history = self._store.recent(self._config.history_window)
        messages = self._assembler.assemble(level, instruction, history, state["text"], screenshot)
        self._log(
            logging.INFO,
            "Assembled context",
            log_ctx,
            history_count=len(history),
            message_count=len(messages),
        )
        return {"instruction": instruction, "screenshot": screenshot, "history": history, "messages": messages}

    def primary_node(self, state: TurnState) -> TurnState:
        main_response = self._dispatcher.complete(
            state["messages"],
            self._config.primary_max_tokens,
            model=CHAT_MODEL,
            log_ctx={"trace_id": state["trace_id"], "conversation_level": int(state["level"])},
        )
        return {"main_response": main_response}

    def persist_node(self, state: TurnState) -> TurnState:
        level = state["level"]
        user_msg = ChatMessage(
            timestamp=self._next_timestamp(),
            role=Role.USER,
            content=state["text"],
            level=level,
        )
        answer_msg = ChatMessage(
            timestamp=self._next_timestamp(),
            role=ANSWER_ROLE[level],
            content=state["main_response"],
            level=level,
        )
        self._store.append_many([user_msg, answer_msg])
        self._log(
            logging.INFO,
            "Stored turn",
            {"trace_id": state["trace_id"], "conversation_level": int(level)},
            answer_role=answer_msg.role.value,
        )
        return {"persisted": [user_msg, answer_msg]}

    def commentary_node(self, state: TurnState) -> TurnState:
        """默认层级的角色点评，尽力而为：任何失败都只返回 commentary=None。"""
        log_ctx = {"trace_id": state["trace_id"], "conversation_level": int(ConversationLevel.DEFAULT)}
        try:
            instruction = self._instructions.get_instruction(InstructionKind.COMMENTARY)
            text = self._dispatcher.complete(
                build_commentary_messages(instruction, state["main_response"]),
                self._config.commentary_max_tokens,
                model=COMMENTARY_MODEL,
                placeholder="",
                log_ctx=log_ctx,
            ).strip()
            if not text:
                return {"commentary": None}
            self._store.append(
                ChatMessage(
                    timestamp=self._next_timestamp(),
                    role=Role.PERSONA,
                    content=text,
                    level=ConversationLevel.DEFAULT,
                )
            )
        except Exception as exc:  # noqa: BLE001 - 点评失败不影响本轮结果
            self._log(logging.WARNING, "Commentary failed", log_ctx, error=str(exc))
            return {"commentary": None}
        return {"commentary": text}

    # ---- 辅助方法 ----

    def _require_credentials(self) -> None:
        if not self._provider_client.has_credentials():
            raise AuthError(code="MISSING_API_KEY", message="API key not configured")

    def _next_timestamp(self) -> str:
        """单调递增的 ISO-8601 时间戳；同一微秒内多次调用时向后顺延 1 微秒。"""
        with self._ts_lock:
            now = self._clock.now().astimezone(timezone.utc)
            ts = now.isoformat(timespec="microseconds")
            if self._last_ts is not None and ts <= self._last_ts:
                now = datetime.fromisoformat(self._last_ts) + timedelta(microseconds=1)
                ts = now.isoformat(timespec="microseconds")
            self._last_ts = ts
            return ts

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
