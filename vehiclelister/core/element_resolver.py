"""
元素定位模块：按优先级尝试多种启发式，并带有界重试。

职责：
- ResolutionQuery 描述"要找什么"（直接选择器 + 次级线索）
- 每种启发式是一个策略对象，resolver 依次尝试，首个命中即返回
- 目标页面异步渲染，整套策略在每次尝试中完整跑一遍
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Protocol, Sequence, Union

from playwright.sync_api import ElementHandle, Page

from .dom import CONTROL_SELECTOR, css_string, norm, safe_attr, safe_text
from .retry import page_sleep, with_retry

LogFn = Callable[[str, str], None]
Position = Union[str, int, None]

DEFAULT_MAX_ATTEMPTS = 10
DEFAULT_ATTEMPT_DELAY = 500


@dataclass(frozen=True)
class ResolutionQuery:
    selectors: tuple[str, ...] = ()
    label_text: str | None = None
    placeholder: str | None = None
    aria_label: str | None = None
    role: str | None = None
    tag_name: str | None = None
    input_type: str | None = None
    test_id: str | None = None
    position: Position = None

    @classmethod
    def of(cls, selectors: Union[str, Iterable[str], None] = None, **hints) -> "ResolutionQuery":
        if selectors is None:
            items: tuple[str, ...] = ()
        elif isinstance(selectors, str):
            items = (selectors,)
        else:
            items = tuple(s for s in selectors if s)
        return cls(selectors=items, **hints)

    def describe(self) -> str:
        parts = list(self.selectors[:2])
        for key in ("label_text", "placeholder", "aria_label", "role", "test_id"):
            value = getattr(self, key)
            if value:
                parts.append(f"{key}={value}")
        return ", ".join(parts) or "<empty query>"


def pick_position(elements: Sequence, position: Position):
    """first / last / 数字下标；越界返回 None，未指定取第一个。"""
    if not elements:
        return None
    if position == "first":
        return elements[0]
    if position == "last":
        return elements[-1]
    if isinstance(position, int) and not isinstance(position, bool):
        if 0 <= position < len(elements):
            return elements[position]
        return None
    return elements[0]


class ResolveStrategy(Protocol):
    name: str

    def try_resolve(self, page: Page, query: ResolutionQuery) -> Optional[ElementHandle]:
        ...


class SelectorStrategy:
    """直接选择器，按顺序第一个结构匹配胜出。"""

    name = "selector"

    def __init__(self, log_fn: Optional[LogFn] = None) -> None:
        self._log = log_fn or (lambda msg, level="info": None)

    def try_resolve(self, page, query):
        for selector in query.selectors:
            try:
                element = page.query_selector(selector)
            except Exception as exc:
                self._log(f"   ⚠️ 选择器无效，跳过: {selector} ({exc})", "warn")
                continue
            if element:
                return element
        return None


class LabelStrategy:
    """
    label 文本包含线索（不区分大小写）时解析其关联控件：
    for 绑定 → label 内部 → 紧邻兄弟内部 → 父容器内。
    """

    name = "label"

    def try_resolve(self, page, query):
        hint = norm(query.label_text)
        if not hint:
            return None
        for label in page.query_selector_all("label"):
            if hint not in norm(safe_text(label)):
                continue
            control = resolve_label_control(page, label)
            if control:
                return control
        return None


def resolve_label_control(page, label) -> Optional[ElementHandle]:
    target_id = safe_attr(label, "for")
    if target_id:
        element = page.query_selector(f'[id="{css_string(target_id)}"]')
        if element:
            return element
    element = label.query_selector(CONTROL_SELECTOR)
    if element:
        return element
    sibling = label.query_selector("xpath=following-sibling::*[1]")
    if sibling:
        element = sibling.query_selector(CONTROL_SELECTOR)
        if element:
            return element
    parent = label.query_selector("xpath=..")
    if parent:
        return parent.query_selector(CONTROL_SELECTOR)
    return None


class _ContainsAttributeStrategy:
    name = "attribute"
    scope = ""
    attribute = ""
    hint_field = ""

    def try_resolve(self, page, query):
        hint = norm(getattr(query, self.hint_field))
        if not hint:
            return None
        for element in page.query_selector_all(self.scope):
            if hint in norm(safe_attr(element, self.attribute)):
                return element
        return None


class PlaceholderStrategy(_ContainsAttributeStrategy):
    name = "placeholder"
    scope = "input, textarea"
    attribute = "placeholder"
    hint_field = "placeholder"


class AriaLabelStrategy(_ContainsAttributeStrategy):
    name = "aria_label"
    scope = "[aria-label]"
    attribute = "aria-label"
    hint_field = "aria_label"


class RoleStrategy:
    name = "role"

    def try_resolve(self, page, query):
        if not query.role:
            return None
        elements = page.query_selector_all(f'[role="{css_string(query.role)}"]')
        return pick_position(elements, query.position)


class TagNameStrategy:
    name = "tag_name"

    def try_resolve(self, page, query):
        if not query.tag_name:
            return None
        elements = page.query_selector_all(query.tag_name.lower())
        return pick_position(elements, query.position)


class InputTypeStrategy:
    name = "input_type"

    def try_resolve(self, page, query):
        if not query.input_type:
            return None
        elements = page.query_selector_all(f'input[type="{css_string(query.input_type)}"]')
        return pick_position(elements, query.position)


class TestIdStrategy:
    name = "test_id"
    __test__ = False

    def try_resolve(self, page, query):
        if not query.test_id:
            return None
        return page.query_selector(f'[data-testid="{css_string(query.test_id)}"]')


def default_strategies(log_fn: Optional[LogFn] = None) -> list[ResolveStrategy]:
    return [
        SelectorStrategy(log_fn),
        LabelStrategy(),
        PlaceholderStrategy(),
        AriaLabelStrategy(),
        RoleStrategy(),
        TagNameStrategy(),
        InputTypeStrategy(),
        TestIdStrategy(),
    ]


class ElementResolver:
    """
    在单个已加载页面上定位控件。

    resolve() 每次尝试完整跑一遍策略列表；全部落空则等待 attempt_delay
    后重试，直到 max_attempts 用尽后返回 None。
    """

    def __init__(
        self,
        page: Page,
        *,
        strategies: Optional[Sequence[ResolveStrategy]] = None,
        log_fn: Optional[LogFn] = None,
    ) -> None:
        self._page = page
        self._log = log_fn or (lambda msg, level="info": None)
        self._strategies = list(strategies) if strategies else default_strategies(self._log)

    @property
    def page(self) -> Page:
        return self._page

    def resolve(
        self,
        query: ResolutionQuery,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        attempt_delay: int = DEFAULT_ATTEMPT_DELAY,
    ) -> Optional[ElementHandle]:
        def _attempt() -> Optional[ElementHandle]:
            for strategy in self._strategies:
                try:
                    element = strategy.try_resolve(self._page, query)
                except Exception as exc:
                    self._log(f"   ⚠️ 策略 {strategy.name} 异常: {exc}", "warn")
                    continue
                if element:
                    self._log(f"   📍 定位成功 [{strategy.name}]: {query.describe()}", "info")
                    return element
            return None

        found = with_retry(
            _attempt,
            max_attempts=max_attempts,
            delay_ms=attempt_delay,
            sleep=page_sleep(self._page),
        )
        if found is None:
            self._log(
                f"   ⚠️ 未找到元素（{max_attempts} 次尝试）: {query.describe()}", "warn"
            )
        return found

    def resolve_all(
        self,
        selectors: Union[str, Sequence[str]],
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        attempt_delay: int = DEFAULT_ATTEMPT_DELAY,
    ) -> list[ElementHandle]:
        """第一个有结果的选择器胜出；始终返回 list（可能为空）。"""
        if isinstance(selectors, str):
            selectors = [selectors]

        def _attempt() -> Optional[list[ElementHandle]]:
            for selector in selectors:
                try:
                    found = self._page.query_selector_all(selector)
                except Exception as exc:
                    self._log(f"   ⚠️ 选择器无效，跳过: {selector} ({exc})", "warn")
                    continue
                if found:
                    return list(found)
            return None

        found = with_retry(
            _attempt,
            max_attempts=max_attempts,
            delay_ms=attempt_delay,
            sleep=page_sleep(self._page),
        )
        return found or []
