from __future__ import annotations

from pathlib import Path

from vehiclelister.core import browser_manager
from vehiclelister.core.browser_manager import BrowserManager, build_launch_args


def test_build_launch_args_drops_unset_values():
    args = build_launch_args({"headless": True, "slow_mo": 0, "user_data_dir": "/tmp/profile"})
    assert args == {
        "headless": True,
        "user_data_dir": "/tmp/profile",
        "args": ["--disable-blink-features=AutomationControlled"],
    }


def test_build_launch_args_defaults_profile_dir():
    args = build_launch_args({"slow_mo": 50, "executable_path": "/usr/bin/chromium"})
    assert args["headless"] is False
    assert args["slow_mo"] == 50
    assert args["executable_path"] == "/usr/bin/chromium"
    assert args["user_data_dir"] == str(Path(browser_manager.DEFAULT_PROFILE_DIR).expanduser())


class _FakeContext:
    def __init__(self, pages):
        self.pages = pages
        self.handlers = {}
        self.closed = False

    def new_page(self):
        page = _FakePage()
        self.pages.append(page)
        return page

    def on(self, event, handler):
        self.handlers[event] = handler

    def close(self):
        self.closed = True


class _FakePage:
    def __init__(self):
        self.handlers = {}

    def on(self, event, handler):
        self.handlers[event] = handler


class _FakePlaywright:
    def __init__(self, context):
        self.context = context
        self.launch_args = None
        self.stopped = False
        self.chromium = self

    def launch_persistent_context(self, **kwargs):
        self.launch_args = kwargs
        return self.context

    def start(self):
        return self

    def stop(self):
        self.stopped = True


def test_launch_reuses_first_tab_and_closes_cleanly(monkeypatch):
    existing = _FakePage()
    context = _FakeContext([existing])
    fake = _FakePlaywright(context)
    monkeypatch.setattr(browser_manager, "sync_playwright", lambda: fake, raising=True)
    logs: list[tuple[str, str]] = []

    session = BrowserManager(
        log_fn=lambda msg, level="info": logs.append((msg, level)),
        settings={"user_data_dir": "/tmp/profile"},
    ).launch()

    assert session.page is existing
    assert fake.launch_args["user_data_dir"] == "/tmp/profile"
    assert {"console", "pageerror"} <= set(existing.handlers)
    assert "requestfailed" in context.handlers

    existing.handlers["pageerror"]("boom")
    assert logs[-1] == ("[pageerror] boom", "error")

    session.close()
    assert context.closed is True
    assert fake.stopped is True


def test_launch_opens_tab_when_context_has_none(monkeypatch):
    context = _FakeContext([])
    monkeypatch.setattr(
        browser_manager, "sync_playwright", lambda: _FakePlaywright(context), raising=True
    )
    session = BrowserManager(settings={}).launch()
    assert session.page is context.pages[0]
