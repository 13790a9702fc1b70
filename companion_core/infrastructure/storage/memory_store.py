"""进程内存储实现，用于测试与不需要落盘的临时会话。"""

import threading
from typing import List, Optional

from companion_core.domain.conversation import ChatMessage, MessageStore
from companion_core.infrastructure.storage.json_store import validate_message


class InMemoryMessageStore(MessageStore):
    def __init__(self) -> None:
        self._items: List[ChatMessage] = []
        self._lock = threading.Lock()

    def append(self, message: ChatMessage) -> None:
        self.append_many([message])

    def append_many(self, messages: List[ChatMessage]) -> None:
        for message in messages:
            validate_message(message)
        with self._lock:
            self._items.extend(messages)

    def recent(self, n: int) -> List[ChatMessage]:
        if n <= 0:
            return []
        with self._lock:
            return list(self._items[-n:])

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class InMemoryCooldownStore:
    """冷却时间戳的内存实现，raw 值保持字符串以便模拟损坏数据。"""

    def __init__(self, raw: Optional[str] = None) -> None:
        self._raw = raw

    def read(self) -> Optional[str]:
        return self._raw

    def write(self, epoch_seconds: int) -> None:
        self._raw = str(epoch_seconds)

    def clear(self) -> None:
        self._raw = None
