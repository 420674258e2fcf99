"""
DOM 辅助：ElementHandle 上用到的 JS 片段与安全读取工具。

JS 片段集中成常量，便于组件复用，也便于测试用假页面按常量分派。
"""

from __future__ import annotations

CONTROL_SELECTOR = "input, textarea, select"
FORM_CONTROL_SELECTOR = 'input, select, [role="combobox"]'

JS_TAG_NAME = "(el) => (el.tagName || '').toLowerCase()"

# 通过原型上的 value setter 写值，React 等框架的受控组件才能感知变化
JS_APPEND_VALUE = """
(el, ch) => {
  if (!("value" in el)) {
    el.textContent = (el.textContent || "") + ch;
    return;
  }
  const next = (el.value || "") + ch;
  const desc = Object.getOwnPropertyDescriptor(Object.getPrototypeOf(el), "value");
  if (desc && desc.set) {
    desc.set.call(el, next);
  } else {
    el.value = next;
  }
}
"""

JS_SET_VALUE = """
(el, value) => {
  if (!("value" in el)) {
    el.textContent = value;
    return;
  }
  const desc = Object.getOwnPropertyDescriptor(Object.getPrototypeOf(el), "value");
  if (desc && desc.set) {
    desc.set.call(el, value);
  } else {
    el.value = value;
  }
}
"""

JS_READ_VALUE = "(el) => ('value' in el ? String(el.value || '') : String(el.textContent || ''))"

_NON_TEXT_INPUT_TYPES = {
    "hidden",
    "file",
    "checkbox",
    "radio",
    "submit",
    "button",
    "image",
    "reset",
}


def norm(text: str | None) -> str:
    return " ".join((text or "").split()).strip().lower()


def css_string(value: str) -> str:
    """转义后可放进 [attr="..."] 的字符串值。"""
    return value.replace("\\", "\\\\").replace('"', '\\"')


def safe_attr(el, name: str) -> str:
    try:
        return str(el.get_attribute(name) or "")
    except Exception:
        return ""


def safe_text(el) -> str:
    try:
        return el.text_content() or ""
    except Exception:
        return ""


def tag_name(el) -> str:
    try:
        return str(el.evaluate(JS_TAG_NAME) or "")
    except Exception:
        return ""


def read_value(el) -> str:
    try:
        return str(el.evaluate(JS_READ_VALUE) or "")
    except Exception:
        return ""


def is_text_input(el) -> bool:
    if tag_name(el) != "input":
        return False
    return norm(safe_attr(el, "type")) not in _NON_TEXT_INPUT_TYPES


def safe_count(page, selector: str) -> int:
    try:
        return page.locator(selector).count()
    except Exception:
        return 0
