import json
import os
import threading
from pathlib import Path
from typing import Dict, Any, List
from uuid import uuid4

from companion_core.config.settings import settings
from companion_core.domain.conversation import ChatMessage, ConversationLevel, MessageStore, Role
from companion_core.domain.exceptions import StorageError, ValidationError
from companion_core.infrastructure.logging.logger import logger


def validate_message(message: ChatMessage) -> None:
    """写入前的字段校验，MessageStore 的各实现共用。"""

    if not isinstance(message.role, Role):
        raise ValidationError(code="INVALID_ROLE", message=f"unknown role: {message.role!r}")
    if not message.content or not message.content.strip():
        raise ValidationError(code="EMPTY_CONTENT", message="message content must not be empty")
    if not message.timestamp:
        raise ValidationError(code="EMPTY_TIMESTAMP", message="message timestamp must not be empty")


class JsonMessageStore(MessageStore):
    """基于 JSONL 的追加式消息日志。

    文件布局：<root>/history/messages.jsonl，每行一条 ChatMessage，
    行顺序即写入顺序，recent() 不做重新排序。
    """

    def __init__(self, root: str | Path | None = None):
        self._root = Path(root or settings.storage_root).resolve()
        self._history_root = self._root / "history"
        self._path = self._history_root / "messages.jsonl"
        self._lock = threading.Lock()
        try:
            self._history_root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(code="STORE_INIT_ERROR", message=str(e))

    @property
    def path(self) -> Path:
        return self._path

    def append(self, message: ChatMessage) -> None:
        self.append_many([message])

    def append_many(self, messages: List[ChatMessage]) -> None:
        for message in messages:
            validate_message(message)
        if not messages:
            return
        block = "".join(json.dumps(self._to_payload(m), ensure_ascii=False) + "\n" for m in messages)
        with self._lock:
            try:
                with self._path.open("a", encoding="utf-8") as f:
                    f.write(block)
                    f.flush()
                    os.fsync(f.fileno())
            except OSError as e:
                raise StorageError(code="STORE_WRITE_ERROR", message=str(e))

    def recent(self, n: int) -> List[ChatMessage]:
        if n <= 0:
            return []
        with self._lock:
            if not self._path.exists():
                return []
            try:
                lines = self._path.read_bytes().splitlines()
            except OSError as e:
                raise StorageError(code="STORE_READ_ERROR", message=str(e))
        items: List[ChatMessage] = []
        # 从尾部向前取，跳过损坏行，直到凑够 n 条
        for line in reversed(lines):
            if len(items) >= n:
                break
            if not line.strip():
                continue
            try:
                items.append(self._to_message(json.loads(line.decode("utf-8"))))
            except (UnicodeDecodeError, ValueError, KeyError, TypeError) as e:
                logger.warning("Skipped corrupt history line", extra={"extra": {"error": str(e)}})
                continue
        items.reverse()
        return items

    def clear(self) -> None:
        tmp_path = self._history_root / f"messages.{uuid4().hex}.jsonl.tmp"
        with self._lock:
            try:
                tmp_path.write_text("", encoding="utf-8")
                os.replace(tmp_path, self._path)
            except OSError as e:
                raise StorageError(code="STORE_DELETE_ERROR", message=str(e))

    @staticmethod
    def _to_payload(message: ChatMessage) -> Dict[str, Any]:
        return {
            "timestamp": message.timestamp,
            "role": message.role.value,
            "content": message.content,
            "level": int(message.level),
        }

    @staticmethod
    def _to_message(data: Dict[str, Any]) -> ChatMessage:
        return ChatMessage(
            timestamp=str(data["timestamp"]),
            role=Role(data["role"]),
            content=data.get("content") or "",
            level=ConversationLevel(int(data.get("level", 0))),
        )
