from companion_core.infrastructure.storage.cooldown_store import FileCooldownStore
from companion_core.infrastructure.storage.credentials import FileCredentialStore
from companion_core.infrastructure.storage.json_store import JsonMessageStore
from companion_core.infrastructure.storage.memory_store import InMemoryCooldownStore, InMemoryMessageStore

__all__ = [
    "FileCooldownStore",
    "FileCredentialStore",
    "InMemoryCooldownStore",
    "InMemoryMessageStore",
    "JsonMessageStore",
]
