import os
from pathlib import Path
from typing import Optional
from uuid import uuid4

from companion_core.config.settings import settings
from companion_core.domain.exceptions import StorageError


class FileCooldownStore:
    """深度分析冷却时间戳的文件实现。

    文件内容为一个十进制整数（unix 秒）。read() 返回原始字符串，
    是否可解析交给 CooldownGate 判断。
    """

    def __init__(self, path: str | Path | None = None):
        self._path = Path(path or Path(settings.storage_root) / "deep_analysis_cooldown").resolve()

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> Optional[str]:
        if not self._path.exists():
            return None
        try:
            # 非 UTF-8 字节按损坏值处理，交给 parse_timestamp 判为 Open
            return self._path.read_bytes().decode("utf-8", errors="replace")
        except OSError as e:
            raise StorageError(code="COOLDOWN_READ_ERROR", message=str(e))

    def write(self, epoch_seconds: int) -> None:
        tmp_path = self._path.with_name(f"{self._path.name}.{uuid4().hex}.tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(str(epoch_seconds), encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as e:
            raise StorageError(code="COOLDOWN_WRITE_ERROR", message=str(e))

    def clear(self) -> None:
        try:
            self._path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(code="COOLDOWN_DELETE_ERROR", message=str(e))
