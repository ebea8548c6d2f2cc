"""带时间戳与 TTL 的价格缓存（显式对象，注入到行情客户端）。"""

from __future__ import annotations

import time
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


class PriceCache(Generic[T]):
    """单值缓存。

    - `get()` 只返回未过期的值；
    - `get_stale()` 返回任意年龄的值，用于请求失败时兜底；
    - clock 返回秒级时间，测试可注入假时钟。
    """

    def __init__(self, ttl_seconds: float = 60.0, clock: Callable[[], float] = time.time):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._value: T | None = None
        self._stored_at: float | None = None

    def set(self, value: T) -> None:
        self._value = value
        self._stored_at = self.clock()

    def age(self) -> float | None:
        if self._stored_at is None:
            return None
        return self.clock() - self._stored_at

    def is_fresh(self) -> bool:
        age = self.age()
        return age is not None and age < self.ttl_seconds

    def get(self) -> T | None:
        return self._value if self.is_fresh() else None

    def get_stale(self) -> T | None:
        return self._value

    @property
    def last_updated(self) -> float | None:
        return self._stored_at

    def time_until_refresh(self) -> float:
        """距离过期还剩多少秒；没有缓存时为 0。"""
        age = self.age()
        if age is None:
            return 0.0
        return max(0.0, self.ttl_seconds - age)

    def clear(self) -> None:
        self._value = None
        self._stored_at = None
