import logging
from typing import Any, Dict, List, Optional

from companion_core.domain.models import CompletionMessage, CompletionRequest, CompletionResult
from companion_core.infrastructure.logging.logger import logger
from companion_core.providers.base import ProviderClient
from companion_core.providers.registry import CHAT_MODEL


DEFAULT_PLACEHOLDER = "No response"


class CompletionDispatcher:
    """对 Provider 的一次调用做统一的日志与结果归一化。

    非 2xx / 网络错误 / 非 JSON 响应由 Provider 以异常抛出，这里原样向上传播，
    不做重试；2xx 但缺少 choices[0].message.content（或内容为空白）时返回占位文本。
    """

    def __init__(self, client: ProviderClient, placeholder: str = DEFAULT_PLACEHOLDER):
        self._client = client
        self._placeholder = placeholder

    @property
    def client(self) -> ProviderClient:
        return self._client

    def complete(
        self,
        messages: List[CompletionMessage],
        max_tokens: Optional[int] = None,
        *,
        model: str = CHAT_MODEL,
        placeholder: Optional[str] = None,
        log_ctx: Optional[Dict[str, Any]] = None,
    ) -> str:
        ctx = dict(log_ctx or {})
        req = CompletionRequest(
            provider=self._client.name,
            model=model,
            messages=messages,
            max_tokens=max_tokens,
        )
        _log(
            logging.INFO,
            "Calling provider",
            ctx,
            provider=self._client.name,
            model=model,
            message_count=len(messages),
        )
        result: CompletionResult = self._client.complete(req)
        if result.usage:
            _log(
                logging.INFO,
                "Token usage",
                ctx,
                prompt_tokens=result.usage.prompt_tokens,
                completion_tokens=result.usage.completion_tokens,
                total_tokens=result.usage.total_tokens,
            )
        if not result.has_content or not result.content.strip():
            _log(logging.WARNING, "Response missing content", ctx, model=model)
            return self._placeholder if placeholder is None else placeholder
        return result.content


def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
    payload = dict(log_ctx)
    payload.update(fields)
    logger.log(level, message, extra={"extra": payload})
