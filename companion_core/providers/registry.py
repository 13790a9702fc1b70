"""Provider 与模型配置。

本模块将“逻辑模型名”与“具体厂商模型名”解耦：

- 逻辑名（logical_name）：在代码里使用的统一名称，例如 "companion-chat"。
- provider_model：厂商实际提供的模型 ID，例如 "gpt-4.1-2025-04-14"。

上层只关心逻辑名，具体用哪个底层模型由这里集中配置，便于后续升级或切换。
三个 Provider 都走 OpenAI 兼容的 chat/completions 协议。"""

from dataclasses import dataclass
from typing import Dict, Mapping, Optional


CHAT_MODEL = "companion-chat"
COMMENTARY_MODEL = "companion-commentary"
ANALYSIS_MODEL = "companion-analysis"


@dataclass
class ModelConfig:
    """单个逻辑模型的配置。max_tokens 为 None 时请求体中不带该字段。"""

    logical_name: str
    provider_model: str
    max_tokens: Optional[int]


@dataclass
class ProviderConfig:
    """某个 Provider 的整体配置。"""

    name: str
    base_url: str
    models: Dict[str, ModelConfig]


OPENAI_CONFIG = ProviderConfig(
    name="openai",
    base_url="https://api.openai.com/v1",
    models={
        CHAT_MODEL: ModelConfig(
            logical_name=CHAT_MODEL,
            provider_model="gpt-4.1-2025-04-14",
            max_tokens=1000,
        ),
        COMMENTARY_MODEL: ModelConfig(
            logical_name=COMMENTARY_MODEL,
            provider_model="gpt-4.1-2025-04-14",
            max_tokens=500,
        ),
        ANALYSIS_MODEL: ModelConfig(
            logical_name=ANALYSIS_MODEL,
            provider_model="gpt-4o",
            max_tokens=None,
        ),
    },
)

KIMI_CONFIG = ProviderConfig(
    name="kimi",
    base_url="https://api.moonshot.cn/v1",
    models={
        CHAT_MODEL: ModelConfig(CHAT_MODEL, "kimi-k2-turbo-preview", 1000),
        COMMENTARY_MODEL: ModelConfig(COMMENTARY_MODEL, "kimi-k2-turbo-preview", 500),
        ANALYSIS_MODEL: ModelConfig(ANALYSIS_MODEL, "kimi-k2-turbo-preview", None),
    },
)

GLM_CONFIG = ProviderConfig(
    name="glm",
    base_url="https://open.bigmodel.cn/api/paas/v4",
    models={
        CHAT_MODEL: ModelConfig(CHAT_MODEL, "glm-4.6", 1000),
        COMMENTARY_MODEL: ModelConfig(COMMENTARY_MODEL, "glm-4.6", 500),
        ANALYSIS_MODEL: ModelConfig(ANALYSIS_MODEL, "glm-4.6", None),
    },
)


PROVIDER_REGISTRY: Mapping[str, ProviderConfig] = {
    "openai": OPENAI_CONFIG,
    "kimi": KIMI_CONFIG,
    "glm": GLM_CONFIG,
}


def get_provider_config(name: str) -> ProviderConfig:
    """根据名称获取 ProviderConfig，名称不区分大小写。"""

    key = name.lower()
    for k, cfg in PROVIDER_REGISTRY.items():
        if k.lower() == key:
            return cfg
    raise KeyError(f"Unknown provider: {name!r}")
