"""
有界重试组合子：所有需要"等一会儿再找"的调用点共用这一处实现。
"""

from __future__ import annotations

from typing import Callable, Optional, TypeVar

T = TypeVar("T")


def _is_miss(result: object) -> bool:
    if result is None:
        return True
    if isinstance(result, (list, tuple, set, dict)):
        return len(result) == 0
    return False


def with_retry(
    operation: Callable[[], Optional[T]],
    *,
    max_attempts: int,
    delay_ms: int,
    sleep: Callable[[int], None],
    on_miss: Callable[[int], None] | None = None,
) -> Optional[T]:
    """
    反复调用零参 operation，命中（非 None、非空集合）立即返回。

    每次未命中后都 sleep(delay_ms)，包括最后一次，所以完全未命中时
    至少消耗 max_attempts × delay_ms 的等待。
    """
    attempts = max(1, int(max_attempts))
    for attempt in range(1, attempts + 1):
        result = operation()
        if not _is_miss(result):
            return result
        if on_miss:
            on_miss(attempt)
        sleep(max(0, int(delay_ms)))
    return None


def page_sleep(page) -> Callable[[int], None]:
    """以页面自身的 wait_for_timeout 作为挂起点。"""
    return lambda ms: page.wait_for_timeout(ms)
