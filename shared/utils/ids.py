"""交易/持仓 ID 生成。

引擎只依赖 `IdGenerator` 协议（可调用对象，返回新 ID），
默认实现为 uuid4；测试注入可预测的实现。
"""

from __future__ import annotations

import itertools
import uuid
from typing import Protocol


class IdGenerator(Protocol):
    def __call__(self) -> str: ...


def uuid_ids() -> str:
    return str(uuid.uuid4())


class SequentialIds:
    """按前缀递增：`trade-1`, `trade-2`, ..."""

    def __init__(self, prefix: str = "id", start: int = 1):
        self.prefix = prefix
        self._counter = itertools.count(start)

    def __call__(self) -> str:
        return f"{self.prefix}-{next(self._counter)}"
