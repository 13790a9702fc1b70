"""基础设施层：日志、持久化存储。"""
