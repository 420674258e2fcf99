"""
输入模拟模块：像真人一样逐字输入，让原生与框架层监听器都能感知。

事件顺序是约定的一部分，改动即回归：
focus → (clear) → 每个字符 keydown → keypress → 追加字符 → keyup
→ input → change → blur
"""

from __future__ import annotations

from typing import Any, Callable, Optional

from playwright.sync_api import ElementHandle, Page

from .dom import JS_APPEND_VALUE, JS_SET_VALUE

LogFn = Callable[[str, str], None]

FLUSH_EVENTS = ("input", "change", "blur")


def key_event_init(ch: str) -> dict:
    return {"key": ch, "keyCode": ord(ch), "which": ord(ch), "bubbles": True}


class InputSimulator:
    def __init__(
        self,
        page: Page,
        *,
        key_delay: int = 10,
        focus_delay: int = 100,
        clear_delay: int = 100,
        log_fn: Optional[LogFn] = None,
    ) -> None:
        self._page = page
        self._key_delay = key_delay
        self._focus_delay = focus_delay
        self._clear_delay = clear_delay
        self._log = log_fn or (lambda msg, level="info": None)

    def fill(
        self,
        element: Optional[ElementHandle],
        value: Any,
        *,
        clear_first: bool = False,
        post_delay: int = 0,
    ) -> bool:
        """
        写入 value；句柄无效或值为空时不触碰 DOM，直接返回 False。
        不在这一层重试，重试归 resolver 负责。
        """
        if element is None:
            self._log("   ⚠️ 输入目标不存在", "warn")
            return False
        text = "" if value is None else str(value)
        if text == "":
            self._log("   ℹ 空值，跳过输入", "info")
            return False

        try:
            element.focus()
            self._page.wait_for_timeout(self._focus_delay)

            if clear_first:
                element.evaluate(JS_SET_VALUE, "")
                self._page.wait_for_timeout(self._clear_delay)

            for ch in text:
                init = key_event_init(ch)
                element.dispatch_event("keydown", init)
                element.dispatch_event("keypress", init)
                element.evaluate(JS_APPEND_VALUE, ch)
                element.dispatch_event("keyup", init)
                self._page.wait_for_timeout(self._key_delay)

            for event in FLUSH_EVENTS:
                element.dispatch_event(event, {"bubbles": True})

            if post_delay:
                self._page.wait_for_timeout(post_delay)
            return True
        except Exception as e:
            self._log(f"   ⚠️ 输入失败: {e}", "warn")
            return False
