"""Provider 抽象接口。

上层 Dispatcher 不直接依赖具体厂商的 HTTP 调用，而是依赖此协议：

- 每个厂商实现一个 ProviderClient（如 OpenAICompatibleClient）。
- 负责：将 CompletionRequest 转成具体 API 请求，并把响应 JSON 解析为 CompletionResult。
"""

from typing import Protocol

from companion_core.domain.models import CompletionRequest, CompletionResult


class ProviderClient(Protocol):
    """LLM Provider 客户端协议。

    实现者需要提供：
    - name: Provider 名称，用于日志/统计。
    - has_credentials(): 是否已配置 API 密钥（Orchestrator 用来在任何 I/O 之前快速失败）。
    - complete(req): 执行一次非流式补全调用，返回统一的 CompletionResult。
    """

    name: str

    def has_credentials(self) -> bool:
        ...

    def complete(self, req: CompletionRequest) -> CompletionResult:
        ...
