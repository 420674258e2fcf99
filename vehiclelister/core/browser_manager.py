"""
浏览器管理模块：统一管理 Playwright 浏览器启动、profile 与事件日志。

使用持久化 profile，这样挂牌站点的登录状态可以跨运行保留。
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional

from playwright.sync_api import BrowserContext, Page, sync_playwright

from ..config import get_browser_settings

LogFn = Callable[[str, str], None]

DEFAULT_PROFILE_DIR = "~/.cache/vehiclelister/chrome-profile"


@dataclass
class BrowserSession:
    playwright: Any
    context: BrowserContext
    page: Page

    def close(self) -> None:
        try:
            self.context.close()
        finally:
            try:
                self.playwright.stop()
            except Exception:
                pass


def build_launch_args(browser_cfg: dict) -> dict:
    headless = bool(browser_cfg.get("headless", False))
    slow_mo = int(browser_cfg.get("slow_mo", 0) or 0)
    raw_profile_dir = browser_cfg.get("user_data_dir") or DEFAULT_PROFILE_DIR
    launch_args = {
        "headless": headless,
        "slow_mo": slow_mo if slow_mo > 0 else None,
        "user_data_dir": str(Path(raw_profile_dir).expanduser()),
        "executable_path": browser_cfg.get("executable_path") or None,
        "args": ["--disable-blink-features=AutomationControlled"],
    }
    # 清理 None 参数
    return {k: v for k, v in launch_args.items() if v is not None}


class BrowserManager:
    """
    管理浏览器生命周期与配置，避免业务流程中重复拼装启动参数。
    """

    def __init__(
        self,
        log_fn: Optional[LogFn] = None,
        settings: Optional[dict] = None,
    ) -> None:
        self._log = log_fn or (lambda msg, level="info": None)
        self._browser_cfg = settings if settings is not None else get_browser_settings()

    def launch(self) -> BrowserSession:
        """启动持久化浏览器并返回会话。"""
        launch_args = build_launch_args(self._browser_cfg)

        playwright = sync_playwright().start()
        context = playwright.chromium.launch_persistent_context(**launch_args)
        page = context.pages[0] if context.pages else context.new_page()
        self._log(f"✓ 浏览器已启动 (profile: {launch_args['user_data_dir']})")

        self._attach_basic_listeners(page)
        self._attach_context_listeners(context)

        return BrowserSession(playwright=playwright, context=context, page=page)

    def _attach_basic_listeners(self, page: Page) -> None:
        """采集页面基础错误信息，写入日志便于排查。"""
        try:
            page.on(
                "console",
                lambda msg: self._log(f"[console:{msg.type}] {msg.text}", "warn")
                if msg.type in ("error", "warning")
                else None,
            )
            page.on(
                "pageerror",
                lambda exc: self._log(f"[pageerror] {exc}", "error"),
            )
        except Exception:
            pass

    def _attach_context_listeners(self, context: BrowserContext) -> None:
        try:
            context.on(
                "requestfailed",
                lambda req: self._log(
                    f"[requestfailed] {req.method} {req.url}", "warn"
                ),
            )
        except Exception:
            pass
