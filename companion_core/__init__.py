"""Companion Core 顶层包。

该包提供桌面陪伴应用的对话记忆与编排核心，
包括配置加载、领域模型、Provider 适配、分层上下文组装、
深度分析冷却闸门、对话编排与持久化存储等能力。
"""

from companion_core.api.service import CompanionService, create_service

__all__ = ["CompanionService", "create_service"]
