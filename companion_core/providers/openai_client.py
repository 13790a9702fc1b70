"""OpenAI 兼容 Provider 适配器。

本模块负责：

1. 接收统一的 CompletionRequest。
2. 将其转换为 chat/completions 的 HTTP 请求格式（含截图的多段内容）。
3. 调用 HTTP 接口并处理网络/API 异常，不做自动重试。
4. 从响应 JSON 中取出 choices[0].message.content，组装 CompletionResult。

OpenAI、Kimi、GLM 使用同一套协议，只是 base_url、密钥与模型 ID 不同，
由 registry 中的 ProviderConfig 区分：
- URL: {base_url}/chat/completions
- 认证: Authorization: Bearer <api_key>
"""

import base64
from typing import Any, Dict, Optional

import httpx

from companion_core.config.settings import settings
from companion_core.domain.exceptions import ApiError, AuthError, NetworkError, ParseError, RateLimitError
from companion_core.domain.models import (
    CompletionMessage,
    CompletionRequest,
    CompletionResult,
    CompletionUsage,
    ContentPart,
)
from companion_core.infrastructure.storage.credentials import FileCredentialStore
from companion_core.providers.registry import OPENAI_CONFIG, ProviderConfig


class OpenAICompatibleClient:
    """OpenAI 兼容协议的客户端实现。

    - name: Provider 名称（供日志/调试使用）。
    - complete: 对外统一调用入口，返回 CompletionResult。
    """

    def __init__(
        self,
        cfg=settings,
        provider: ProviderConfig = OPENAI_CONFIG,
        credentials: Optional[FileCredentialStore] = None,
    ):
        # Settings 里包含 base_url、api_key、超时等配置
        self._settings = cfg
        self._provider = provider
        self._credentials = credentials
        self.name = provider.name

    def has_credentials(self) -> bool:
        return bool(self._api_key())

    def complete(self, req: CompletionRequest) -> CompletionResult:
        """执行一次非流式补全调用。

        步骤：
        1. 读取 API 密钥，缺失时抛出 AuthError，不发请求。
        2. 读取模型配置（logical model -> provider model）并构造 payload。
        3. 发送请求并捕获网络错误/限流/服务端错误。
        4. 解析响应；预期字段缺失时 has_content=False，由上层决定占位文本。
        """

        api_key = self._api_key()
        if not api_key:
            raise AuthError(code="MISSING_API_KEY", message="API key not configured")
        payload = self._build_payload(req)
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.post(
                    f"{self._base_url()}/chat/completions",
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {api_key}",
                        "Content-Type": "application/json",
                    },
                )
        except httpx.RequestError as e:
            # 网络错误：DNS 失败、连接超时、读取超时等
            raise NetworkError(code="NETWORK_ERROR", message=f"API request failed: {e}")
        if resp.status_code == 429:
            raise RateLimitError(code="RATE_LIMIT", message=resp.text, http_status=429)
        if not 200 <= resp.status_code < 300:
            raise ApiError(code="API_ERROR", message=resp.text, http_status=resp.status_code)
        try:
            data = resp.json()
        except ValueError as e:
            raise ParseError(code="PARSE_ERROR", message=f"Failed to parse response: {e}")
        return self._parse_response(data, req)

    # ---- 辅助方法 ----

    def _api_key(self) -> Optional[str]:
        key = getattr(self._settings, f"{self._provider.name}_api_key", None)
        if not key and self._credentials is not None:
            key = self._credentials.get()
        return key or None

    def _base_url(self) -> str:
        base = getattr(self._settings, f"{self._provider.name}_base_url", None) or self._provider.base_url
        return base.rstrip("/")

    def _build_payload(self, req: CompletionRequest) -> dict:
        """将 CompletionRequest 转成 chat/completions 所需的请求 JSON。"""

        model_cfg = self._provider.models[req.model]
        payload: Dict[str, Any] = {
            "model": model_cfg.provider_model,
            "messages": [self._message_to_payload(m) for m in req.messages],
        }
        max_tokens = req.max_tokens or model_cfg.max_tokens
        if max_tokens:
            payload["max_tokens"] = max_tokens
        return payload

    def _parse_response(self, data: Any, req: CompletionRequest) -> CompletionResult:
        content = None
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            pass
        usage = None
        usage_raw = data.get("usage") if isinstance(data, dict) else None
        if isinstance(usage_raw, dict):
            usage = CompletionUsage(
                prompt_tokens=usage_raw.get("prompt_tokens", 0),
                completion_tokens=usage_raw.get("completion_tokens", 0),
                total_tokens=usage_raw.get("total_tokens", 0),
            )
        has_content = isinstance(content, str)
        return CompletionResult(
            provider=self.name,
            model=req.model,
            content=content if has_content else "",
            has_content=has_content,
            usage=usage,
            raw=data if isinstance(data, dict) else None,
        )

    def _message_to_payload(self, message: CompletionMessage) -> Dict[str, Any]:
        if isinstance(message.content, str):
            return {"role": message.role, "content": message.content}
        return {
            "role": message.role,
            "content": [self._part_to_payload(p) for p in message.content],
        }

    @staticmethod
    def _part_to_payload(part: ContentPart) -> Dict[str, Any]:
        if part.type == "image":
            encoded = base64.b64encode(part.image or b"").decode("ascii")
            return {
                "type": "image_url",
                "image_url": {"url": f"data:image/png;base64,{encoded}"},
            }
        return {"type": "text", "text": part.text or ""}
