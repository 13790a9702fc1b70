"""API 密钥的本地文件存储。

壳层的设置页通过 save() 写入密钥；Provider 在每次请求前读取，
配置文件 / 环境变量中的密钥优先于这里保存的值。
"""

from pathlib import Path
from typing import Optional

from companion_core.config.settings import settings
from companion_core.domain.exceptions import StorageError, ValidationError


class FileCredentialStore:
    def __init__(self, path: str | Path | None = None):
        self._path = Path(path or Path(settings.storage_root) / "api_key").resolve()

    def save(self, key: str) -> None:
        key = (key or "").strip()
        if not key:
            raise ValidationError(code="EMPTY_API_KEY", message="API key must not be empty")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(key, encoding="utf-8")
        except OSError as e:
            raise StorageError(code="CREDENTIAL_WRITE_ERROR", message=str(e))

    def get(self) -> Optional[str]:
        if not self._path.exists():
            return None
        try:
            key = self._path.read_text(encoding="utf-8").strip()
        except OSError as e:
            raise StorageError(code="CREDENTIAL_READ_ERROR", message=str(e))
        return key or None

    def has(self) -> bool:
        return self.get() is not None
