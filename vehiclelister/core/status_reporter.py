"""
页面状态提示：每次运行构造一个 reporter 并注入给需要报告进度的组件。

error 级别常驻直到被替换，其余级别在 dismiss_ms 后自动消失。
"""

from __future__ import annotations

from typing import Callable, Literal, Optional, Protocol

from playwright.sync_api import Page

Severity = Literal["info", "success", "warning", "error"]
LogFn = Callable[[str, str], None]

STATUS_ELEMENT_ID = "vehicle-lister-status"
SEVERITY_COLORS: dict[str, str] = {
    "info": "#4285f4",
    "success": "#0f9d58",
    "warning": "#f4b400",
    "error": "#db4437",
}
_LOG_LEVELS = {"info": "info", "success": "info", "warning": "warn", "error": "error"}

JS_SHOW_STATUS = """
({ id, message, color, persist, dismissMs }) => {
  const existing = document.getElementById(id);
  if (existing) existing.remove();
  const box = document.createElement("div");
  box.id = id;
  box.textContent = message;
  Object.assign(box.style, {
    position: "fixed",
    top: "20px",
    right: "20px",
    backgroundColor: color,
    color: "white",
    padding: "12px 20px",
    borderRadius: "4px",
    boxShadow: "0 2px 10px rgba(0,0,0,0.3)",
    zIndex: "10000",
    fontFamily: "'Segoe UI', Tahoma, Geneva, Verdana, sans-serif",
    fontSize: "14px",
    maxWidth: "300px",
  });
  document.body.appendChild(box);
  if (!persist) {
    setTimeout(() => {
      if (box.parentNode) box.parentNode.removeChild(box);
    }, dismissMs);
  }
}
"""


class StatusReporter(Protocol):
    def report(self, message: str, severity: Severity = "info") -> None:
        ...


class PageStatusReporter:
    """在页面右上角渲染固定 id 的提示框，同时写一条日志。"""

    def __init__(
        self,
        page: Page,
        *,
        dismiss_ms: int = 5000,
        log_fn: Optional[LogFn] = None,
    ) -> None:
        self._page = page
        self._dismiss_ms = dismiss_ms
        self._log = log_fn or (lambda msg, level="info": None)

    def report(self, message: str, severity: Severity = "info") -> None:
        level = severity if severity in SEVERITY_COLORS else "info"
        self._log(f"[status:{level}] {message}", _LOG_LEVELS[level])
        try:
            self._page.evaluate(
                JS_SHOW_STATUS,
                {
                    "id": STATUS_ELEMENT_ID,
                    "message": message,
                    "color": SEVERITY_COLORS[level],
                    "persist": level == "error",
                    "dismissMs": self._dismiss_ms,
                },
            )
        except Exception as e:
            self._log(f"⚠️ 状态提示渲染失败: {e}", "warn")


class LogStatusReporter:
    """无页面可渲染时（例如命令行里处理提取结果）只写日志。"""

    def __init__(self, log_fn: Optional[LogFn] = None) -> None:
        self._log = log_fn or (lambda msg, level="info": None)

    def report(self, message: str, severity: Severity = "info") -> None:
        self._log(f"[status:{severity}] {message}", _LOG_LEVELS.get(severity, "info"))
