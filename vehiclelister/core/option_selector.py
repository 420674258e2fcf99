"""
下拉框 / combobox 选项选择模块。

目标站点的下拉实现五花八门：原生 <select>、点击后才渲染选项列表的自定义
combobox、带自动补全的自由输入框。因此分层处理：
定位触发器 → 展开 → 按文本匹配选项 → 直接输入兜底。
"""

from __future__ import annotations

import re
from typing import Callable, Optional, Sequence

from playwright.sync_api import ElementHandle, Page

from .dom import JS_SET_VALUE, is_text_input, norm, safe_text, tag_name
from .element_resolver import ElementResolver, ResolutionQuery

LogFn = Callable[[str, str], None]

OPTION_SELECTORS: tuple[str, ...] = (
    'div[role="option"]',
    'li[role="option"]',
    '[role="option"]',
    ".dropdown-option",
    ".select-option",
    'div[role="menuitem"]',
    '[role="menuitem"]',
    '[data-testid="dropdown-option"]',
    "ul > li",
    ".menu-item",
    '[role="listbox"] > *',
)

ENTER_KEY_INIT = {
    "key": "Enter",
    "code": "Enter",
    "keyCode": 13,
    "which": 13,
    "bubbles": True,
}

_ARIA_SELECTOR_RE = re.compile(r"""\[aria-label\*?=["']([^"']+)["']\]""")


def match_option_index(options: Sequence[str], wanted: str) -> Optional[int]:
    """
    先在全部候选中找归一化后完全相等的项；没有时才取第一个包含目标文本的项。
    """
    w = norm(wanted)
    if not w:
        return None
    normalized = [norm(opt) for opt in options]
    for idx, text in enumerate(normalized):
        if text == w:
            return idx
    for idx, text in enumerate(normalized):
        if text and w in text:
            return idx
    return None


def _label_hint(query: ResolutionQuery) -> str:
    if query.label_text:
        return query.label_text
    if query.aria_label:
        return query.aria_label
    for selector in query.selectors:
        m = _ARIA_SELECTOR_RE.search(selector)
        if m:
            return m.group(1)
    return ""


class OptionSelector:
    def __init__(
        self,
        page: Page,
        resolver: ElementResolver,
        *,
        trigger_attempts: int = 15,
        trigger_delay: int = 800,
        option_attempts: int = 3,
        option_delay: int = 300,
        log_fn: Optional[LogFn] = None,
    ) -> None:
        self._page = page
        self._resolver = resolver
        self._trigger_attempts = trigger_attempts
        self._trigger_delay = trigger_delay
        self._option_attempts = option_attempts
        self._option_delay = option_delay
        self._log = log_fn or (lambda msg, level="info": None)

    def select(
        self,
        query: ResolutionQuery,
        target_text,
        *,
        dropdown_delay: int = 800,
        match_delay: int = 500,
    ) -> bool:
        target = "" if target_text is None else str(target_text).strip()
        if not target:
            return False

        trigger = self._resolver.resolve(
            query, self._trigger_attempts, self._trigger_delay
        ) or self._fallback_trigger(query)
        if trigger is None:
            self._log(f"   ⚠️ 下拉框未找到: {query.describe()}", "warn")
            return False

        try:
            if tag_name(trigger) == "select":
                return self._select_native(trigger, target)

            trigger.click()
            self._page.wait_for_timeout(dropdown_delay)

            candidates = self._resolver.resolve_all(
                OPTION_SELECTORS, self._option_attempts, self._option_delay
            )
            texts = [safe_text(opt) for opt in candidates]
            idx = match_option_index(texts, target)
            if idx is not None:
                self._log(f"   ✓ 选中选项: {texts[idx].strip()}", "info")
                candidates[idx].click()
                self._page.wait_for_timeout(match_delay)
                return True

            if candidates:
                self._log(
                    f"   ℹ {len(candidates)} 个候选中没有 '{target}'，关闭下拉", "info"
                )
                trigger.click()
                self._page.wait_for_timeout(300)
            return self._type_directly(trigger, target)
        except Exception as e:
            self._log(f"   ⚠️ 选择选项失败: {e}", "warn")
            return False

    def _select_native(self, trigger: ElementHandle, target: str) -> bool:
        options = trigger.query_selector_all("option")
        texts = [safe_text(opt) for opt in options]
        idx = match_option_index(texts, target)
        if idx is None:
            self._log(f"   ⚠️ 原生下拉中没有 '{target}'", "warn")
            return False
        trigger.select_option(index=idx)
        self._log(f"   ✓ 原生下拉选中: {texts[idx].strip()}", "info")
        return True

    def _type_directly(self, trigger: ElementHandle, target: str) -> bool:
        if not is_text_input(trigger):
            self._log(f"   ⚠️ 无匹配选项且不可直接输入: {target}", "warn")
            return False
        self._log(f"   ℹ 直接输入并回车确认: {target}", "info")
        trigger.evaluate(JS_SET_VALUE, target)
        trigger.dispatch_event("input", {"bubbles": True})
        trigger.dispatch_event("change", {"bubbles": True})
        self._page.wait_for_timeout(300)
        trigger.dispatch_event("keydown", ENTER_KEY_INIT)
        self._page.wait_for_timeout(300)
        return True

    def _fallback_trigger(self, query: ResolutionQuery) -> Optional[ElementHandle]:
        """label 旁的 combobox/select，最后退到第一个可见的非隐藏 input。"""
        hint = norm(_label_hint(query))
        try:
            if hint:
                for label in self._page.query_selector_all("label"):
                    if hint not in norm(safe_text(label)):
                        continue
                    candidate = label.query_selector("xpath=following-sibling::*[1]")
                    if candidate:
                        return candidate
                    parent = label.query_selector("xpath=..")
                    if parent:
                        candidate = parent.query_selector(
                            '[role="combobox"]'
                        ) or parent.query_selector("select")
                        if candidate:
                            return candidate
            for element in self._page.query_selector_all('input:not([type="hidden"])'):
                if element.is_visible():
                    self._log("   ℹ 退回到第一个可见输入框", "info")
                    return element
        except Exception as e:
            self._log(f"   ⚠️ 下拉框兜底定位失败: {e}", "warn")
        return None
