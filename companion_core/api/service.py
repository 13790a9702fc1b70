"""对外 API 服务模块。

供壳层（窗口/托盘/快捷键）调用的简化接口。每个方法都返回可直接
序列化为 JSON 的字典；业务异常（以及协作者抛出的其他异常，code 为
INTERNAL_ERROR）会被记录日志并转换为
{"ok": False, "error": {"code": ..., "message": ...}}。
"""

from dataclasses import asdict
from pathlib import Path
from typing import Optional, Dict, Any, Callable

from companion_core.agents.companion_agent import CompanionConfig, CompanionOrchestrator
from companion_core.agents.cooldown import CooldownGate
from companion_core.config.settings import settings as default_settings
from companion_core.domain.collaborators import Clock, InstructionKind, ScreenshotProvider
from companion_core.domain.conversation import ChatMessage
from companion_core.domain.exceptions import BusinessError, ValidationError
from companion_core.infrastructure.logging.logger import logger
from companion_core.infrastructure.storage.cooldown_store import FileCooldownStore
from companion_core.infrastructure.storage.credentials import FileCredentialStore
from companion_core.infrastructure.storage.json_store import JsonMessageStore
from companion_core.prompts import FileInstructionProvider
from companion_core.providers import create_provider


def _failure(exc: BusinessError) -> Dict[str, Any]:
    return {"ok": False, "error": {"code": exc.code, "message": exc.message}}


def _message_to_dict(m: ChatMessage) -> Dict[str, Any]:
    return {
        "timestamp": m.timestamp,
        "role": m.role.value,
        "content": m.content,
        "level": int(m.level),
    }


class CompanionService:
    """包装 CompanionOrchestrator，负责异常到结构化结果的转换。"""

    def __init__(
        self,
        orchestrator: CompanionOrchestrator,
        instructions: Optional[FileInstructionProvider] = None,
        credentials: Optional[FileCredentialStore] = None,
    ):
        self._orchestrator = orchestrator
        self._instructions = instructions
        self._credentials = credentials

    @property
    def orchestrator(self) -> CompanionOrchestrator:
        return self._orchestrator

    def handle_user_message(self, message: str, include_screenshot: bool = False, level: int = 0) -> Dict[str, Any]:
        """发送一条聊天消息。

        Returns:
            {"ok": True, "main_response": ..., "commentary": ..., "level": ...}
        """
        def run() -> Dict[str, Any]:
            result = self._orchestrator.handle_user_message(message, include_screenshot, level)
            return {"ok": True, **asdict(result)}

        return self._call("Chat failed", run, conversation_level=level)

    def trigger_deep_analysis(self) -> Dict[str, Any]:
        def run() -> Dict[str, Any]:
            result = self._orchestrator.trigger_deep_analysis()
            return {
                "ok": True,
                "on_cooldown": result.on_cooldown,
                "remaining_seconds": result.remaining_seconds,
                "main_response": result.main_response,
            }

        return self._call("Deep analysis failed", run)

    def get_history(self, limit: Optional[int] = None) -> Dict[str, Any]:
        def run() -> Dict[str, Any]:
            msgs = self._orchestrator.get_history(limit)
            return {"ok": True, "messages": [_message_to_dict(m) for m in msgs]}

        return self._call("Get history failed", run)

    def clear_history(self) -> Dict[str, Any]:
        def run() -> Dict[str, Any]:
            self._orchestrator.clear_history()
            return {"ok": True}

        return self._call("Clear history failed", run)

    def reset_all_data(self) -> Dict[str, Any]:
        def run() -> Dict[str, Any]:
            self._orchestrator.reset_all_data()
            return {"ok": True}

        return self._call("Reset failed", run)

    # ---- 设置页：提示词与密钥 ----

    def get_instruction(self, kind: str) -> Dict[str, Any]:
        def run() -> Dict[str, Any]:
            provider = self._require_instructions()
            return {"ok": True, "kind": kind, "text": provider.get_instruction(_parse_kind(kind))}

        return self._call("Get instruction failed", run)

    def save_instruction(self, kind: str, text: str) -> Dict[str, Any]:
        def run() -> Dict[str, Any]:
            self._require_instructions().save_instruction(_parse_kind(kind), text)
            return {"ok": True}

        return self._call("Save instruction failed", run)

    def save_api_key(self, key: str) -> Dict[str, Any]:
        def run() -> Dict[str, Any]:
            self._require_credentials().save(key)
            return {"ok": True}

        return self._call("Save API key failed", run)

    def has_api_key(self) -> Dict[str, Any]:
        def run() -> Dict[str, Any]:
            return {"ok": True, "has_api_key": self._require_credentials().has()}

        return self._call("Read API key failed", run)

    # ---- 内部 ----

    def _require_instructions(self) -> FileInstructionProvider:
        if self._instructions is None:
            raise ValidationError(code="NOT_CONFIGURED", message="instruction storage not configured")
        return self._instructions

    def _require_credentials(self) -> FileCredentialStore:
        if self._credentials is None:
            raise ValidationError(code="NOT_CONFIGURED", message="credential storage not configured")
        return self._credentials

    @staticmethod
    def _call(failure_message: str, fn: Callable[[], Dict[str, Any]], **log_fields: Any) -> Dict[str, Any]:
        try:
            return fn()
        except BusinessError as e:
            logger.error(f"{failure_message}: {e.message}", extra={"extra": {
                "code": e.code,
                "error": e.message,
                **log_fields,
            }})
            return _failure(e)
        except Exception as e:
            # 协作者（截图、文件系统等）抛出的非业务异常
            logger.error(f"{failure_message}: {e}", exc_info=True, extra={"extra": {
                "code": "INTERNAL_ERROR",
                "error": str(e),
                **log_fields,
            }})
            return {"ok": False, "error": {"code": "INTERNAL_ERROR", "message": str(e)}}


def _parse_kind(kind: str) -> InstructionKind:
    try:
        return InstructionKind(kind)
    except ValueError:
        raise ValidationError(code="INVALID_INSTRUCTION_KIND", message=f"unknown instruction kind: {kind!r}")


def create_service(
    cfg=default_settings,
    screenshots: Optional[ScreenshotProvider] = None,
    clock: Optional[Clock] = None,
) -> CompanionService:
    """按配置装配默认的文件存储与 Provider，在应用启动时调用一次。"""

    root = Path(cfg.storage_root)
    credentials = FileCredentialStore(root / "api_key")
    instructions = FileInstructionProvider(root, persona=cfg.persona_name)
    gate = CooldownGate(
        FileCooldownStore(root / "deep_analysis_cooldown"),
        clock=clock,
        interval_seconds=cfg.deep_analysis_cooldown_seconds,
    )
    provider_client = create_provider(cfg.default_provider, credentials, cfg=cfg)
    orchestrator = CompanionOrchestrator(
        store=JsonMessageStore(root=root),
        gate=gate,
        provider_client=provider_client,
        instructions=instructions,
        screenshots=screenshots,
        clock=clock,
        config=CompanionConfig(
            persona_name=cfg.persona_name,
            history_window=cfg.history_window,
            analysis_history_window=cfg.analysis_history_window,
            history_view_limit=cfg.history_view_limit,
            primary_max_tokens=cfg.primary_max_tokens,
            commentary_max_tokens=cfg.commentary_max_tokens,
        ),
    )
    return CompanionService(orchestrator, instructions=instructions, credentials=credentials)
