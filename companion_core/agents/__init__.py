"""对话编排层：上下文组装、冷却闸门、补全分发与编排器。"""

from companion_core.agents.companion_agent import CompanionConfig, CompanionOrchestrator
from companion_core.agents.context_assembler import ContextAssembler
from companion_core.agents.cooldown import CooldownGate
from companion_core.agents.dispatcher import CompletionDispatcher

__all__ = [
    "CompanionConfig",
    "CompanionOrchestrator",
    "CompletionDispatcher",
    "ContextAssembler",
    "CooldownGate",
]
