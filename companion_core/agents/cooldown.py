"""深度分析的冷却闸门。

两个状态：Open（允许）与 Blocked（拒绝并给出剩余秒数）。
只有一次成功的深度分析才会 stamp()；存储值缺失或无法解析都视为 Open。
"""

import threading
from contextlib import contextmanager
from typing import Iterator, Optional, Protocol

from companion_core.domain.collaborators import Clock, SystemClock
from companion_core.domain.models import CooldownStatus


DEFAULT_INTERVAL_SECONDS = 6 * 60 * 60


class CooldownStore(Protocol):
    def read(self) -> Optional[str]:
        ...

    def write(self, epoch_seconds: int) -> None:
        ...

    def clear(self) -> None:
        ...


def parse_timestamp(raw: Optional[str]) -> Optional[int]:
    if raw is None:
        return None
    text = raw.strip()
    if not text.isdigit():
        return None
    try:
        return int(text)
    except ValueError:
        return None


class CooldownGate:
    def __init__(
        self,
        store: CooldownStore,
        clock: Optional[Clock] = None,
        interval_seconds: int = DEFAULT_INTERVAL_SECONDS,
    ):
        self._store = store
        self._clock = clock or SystemClock()
        self._interval = interval_seconds
        self._lock = threading.RLock()

    @property
    def interval_seconds(self) -> int:
        return self._interval

    def now_seconds(self) -> int:
        return int(self._clock.now().timestamp())

    def check(self) -> CooldownStatus:
        last = self.last_stamp()
        if last is None:
            return CooldownStatus(blocked=False, remaining_seconds=0)
        # 时钟回拨时按 0 秒流逝处理
        elapsed = max(0, self.now_seconds() - last)
        if elapsed >= self._interval:
            return CooldownStatus(blocked=False, remaining_seconds=0)
        return CooldownStatus(blocked=True, remaining_seconds=self._interval - elapsed)

    def stamp(self) -> int:
        with self._lock:
            now = self.now_seconds()
            self._store.write(now)
            return now

    def reset(self) -> None:
        with self._lock:
            self._store.clear()

    def last_stamp(self) -> Optional[int]:
        return parse_timestamp(self._store.read())

    def restore(self, last: Optional[int]) -> None:
        """回滚到 stamp 之前的状态；原值缺失或损坏时清空（两者都视为 Open）。"""
        with self._lock:
            if last is None:
                self._store.clear()
            else:
                self._store.write(last)

    @contextmanager
    def admission(self) -> Iterator["CooldownGate"]:
        """持有写锁执行 check → 运行 → stamp 的整个序列。

        并发调用者中先拿到锁的执行，后来者在锁释放后看到已 stamp 的状态。
        """

        with self._lock:
            yield self
