"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口 (base)。
- 维护 Provider 与模型配置 (registry)。
- 提供 OpenAI 兼容协议的具体实现 (openai_client)。
"""

from typing import Optional

from companion_core.config.settings import settings
from companion_core.infrastructure.storage.credentials import FileCredentialStore
from companion_core.providers.base import ProviderClient
from companion_core.providers.openai_client import OpenAICompatibleClient
from companion_core.providers.registry import get_provider_config


def create_provider(
    name: Optional[str] = None,
    credentials: Optional[FileCredentialStore] = None,
    cfg=None,
) -> ProviderClient:
    """根据名称创建 Provider 实例，默认取配置中的 provider。

    cfg 为空时使用全局 settings；密钥优先取配置，其次取 credentials 文件。
    """

    cfg = cfg or settings
    provider_name = (name or getattr(cfg, "default_provider", "openai")).lower()
    return OpenAICompatibleClient(cfg, get_provider_config(provider_name), credentials=credentials)
