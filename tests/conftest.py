from __future__ import annotations

from contextlib import contextmanager

import pytest
from bs4 import BeautifulSoup, Tag
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from vehiclelister.core.dom import (
    JS_APPEND_VALUE,
    JS_READ_VALUE,
    JS_SET_VALUE,
    JS_TAG_NAME,
)


class FakeElement:
    """ElementHandle 替身：读写都落在 FakePage 上，事件按顺序记录。"""

    def __init__(self, page: "FakePage", tag: Tag):
        self._page = page
        self.tag = tag

    # -- reads --
    def get_attribute(self, name: str):
        value = self.tag.get(name)
        if isinstance(value, list):
            return " ".join(value)
        return value

    def text_content(self) -> str:
        return self.tag.get_text()

    def is_visible(self) -> bool:
        if self.tag.get("type") == "hidden" or self.tag.has_attr("hidden"):
            return False
        style = (self.tag.get("style") or "").replace(" ", "")
        return "display:none" not in style

    def query_selector(self, selector: str):
        if selector == "xpath=..":
            parent = self.tag.parent
            if isinstance(parent, BeautifulSoup) or not isinstance(parent, Tag):
                return None
            return self._page._wrap(parent)
        if selector == "xpath=following-sibling::*[1]":
            return self._page._wrap(self.tag.find_next_sibling())
        return self._page._wrap(self.tag.select_one(selector))

    def query_selector_all(self, selector: str):
        return [self._page._wrap(t) for t in self.tag.select(selector)]

    # -- actions --
    def evaluate(self, script: str, arg=None):
        page = self._page
        if script == JS_TAG_NAME:
            return self.tag.name
        if script == JS_READ_VALUE:
            return page.value_of_tag(self.tag)
        if script == JS_SET_VALUE:
            page.record(self, "value:set", arg)
            page.values[id(self.tag)] = str(arg)
            return None
        if script == JS_APPEND_VALUE:
            page.record(self, "value:append", arg)
            page.values[id(self.tag)] = page.value_of_tag(self.tag) + str(arg)
            return None
        page.record(self, "evaluate", arg)
        return None

    def focus(self) -> None:
        self._page.record(self, "focus")

    def click(self) -> None:
        self._page.record(self, "click")
        if self._page.on_click:
            self._page.on_click(self._page, self)

    def dispatch_event(self, event_type: str, init=None) -> None:
        self._page.record(self, event_type, init)

    def select_option(self, index=None, value=None, label=None):
        options = self.tag.select("option")
        chosen = None
        if index is not None:
            chosen = options[index]
        for opt in options:
            if value is not None and opt.get("value") == value:
                chosen = opt
            if label is not None and opt.get_text().strip() == label:
                chosen = opt
        if chosen is None:
            raise ValueError("no such option")
        selected = chosen.get("value") or chosen.get_text().strip()
        self._page.values[id(self.tag)] = selected
        self._page.record(self, "select_option", selected)
        return [selected]

    def set_input_files(self, files) -> None:
        if self._page.reject_files:
            raise RuntimeError("setting files is not supported here")
        self._page.uploaded.extend(files)
        self._page.record(self, "set_input_files", len(files))


class _FakeLocator:
    def __init__(self, page: "FakePage", selector: str):
        self._page = page
        self._selector = selector

    def count(self) -> int:
        return len(self._page.soup.select(self._selector))


class FakePage:
    """
    Playwright Page 替身，DOM 由 BeautifulSoup 承载（选择器走 soupsieve）。

    wait_for_timeout 不真正睡眠，只记录时长；on_wait / on_click 钩子
    用来模拟异步渲染（例如点击后才出现的选项列表）。
    """

    def __init__(self, html: str, url: str = "https://example.test/marketplace/create"):
        self.soup = BeautifulSoup(html, "html.parser")
        self.url = url
        self.values: dict[int, str] = {}
        self.events: list[tuple] = []
        self.waits: list[int] = []
        self.evaluate_calls: list[tuple] = []
        self.uploaded: list[dict] = []
        self.reject_files = False
        self.on_wait = None
        self.on_click = None
        self.evaluate_handler = None
        self._elements: dict[int, FakeElement] = {}

    def _wrap(self, tag):
        if tag is None:
            return None
        key = id(tag)
        if key not in self._elements:
            self._elements[key] = FakeElement(self, tag)
        return self._elements[key]

    # -- Page API --
    def query_selector(self, selector: str):
        return self._wrap(self.soup.select_one(selector))

    def query_selector_all(self, selector: str):
        return [self._wrap(t) for t in self.soup.select(selector)]

    def locator(self, selector: str) -> _FakeLocator:
        return _FakeLocator(self, selector)

    def wait_for_timeout(self, ms: int) -> None:
        self.waits.append(ms)
        if self.on_wait:
            self.on_wait(self, ms)

    def evaluate(self, script: str, arg=None):
        self.evaluate_calls.append((script, arg))
        if self.evaluate_handler:
            return self.evaluate_handler(script, arg)
        return None

    def goto(self, url: str, wait_until: str = "load", timeout: int = 0) -> None:
        self.url = url

    def content(self) -> str:
        return str(self.soup)

    # -- test helpers --
    def record(self, element: FakeElement, kind: str, detail=None) -> None:
        self.events.append((element, kind, detail))

    def value_of_tag(self, tag: Tag) -> str:
        if id(tag) in self.values:
            return self.values[id(tag)]
        return str(tag.get("value") or "")

    def value_of(self, selector: str) -> str:
        return self.value_of_tag(self.soup.select_one(selector))

    def events_for(self, selector: str) -> list[str]:
        target = self.soup.select_one(selector)
        return [kind for el, kind, _ in self.events if el.tag is target]

    def append_html(self, selector: str, html: str) -> None:
        target = self.soup.select_one(selector)
        fragment = BeautifulSoup(html, "html.parser")
        for node in list(fragment.contents):
            target.append(node)


class RecordingReporter:
    def __init__(self):
        self.messages: list[tuple[str, str]] = []

    def report(self, message: str, severity: str = "info") -> None:
        self.messages.append((message, severity))

    @property
    def terminal(self) -> list[tuple[str, str]]:
        return [m for m in self.messages if m[1] != "info"]


@pytest.fixture()
def make_page():
    def _make(html: str, url: str = "https://example.test/marketplace/create") -> FakePage:
        return FakePage(html, url=url)

    return _make


@pytest.fixture()
def reporter():
    return RecordingReporter()


@pytest.fixture()
def isolated_db(monkeypatch, tmp_path):
    """
    Create an isolated sqlite database for inventory/API/poster tests.
    """
    from vehiclelister import app as app_module
    from vehiclelister.core import inventory as inventory_module
    from vehiclelister.core import poster as poster_module
    from vehiclelister.db import database as db_module
    from vehiclelister.db.database import Base
    from vehiclelister.models.listing_log import ListingLog  # noqa: F401
    from vehiclelister.models.vehicle import VehicleListing  # noqa: F401

    db_file = tmp_path / "test_vehiclelister.db"
    test_engine = create_engine(
        f"sqlite:///{db_file}",
        connect_args={"check_same_thread": False},
    )
    TestingSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=test_engine,
        expire_on_commit=False,
    )

    @contextmanager
    def testing_get_session():
        s = TestingSessionLocal()
        try:
            yield s
            s.commit()
        except Exception:
            s.rollback()
            raise
        finally:
            s.close()

    # patch db module symbols
    monkeypatch.setattr(db_module, "engine", test_engine, raising=True)
    monkeypatch.setattr(db_module, "SessionLocal", TestingSessionLocal, raising=True)
    monkeypatch.setattr(db_module, "get_session", testing_get_session, raising=True)

    # patch modules that imported these symbols directly
    monkeypatch.setattr(app_module, "get_session", testing_get_session, raising=True)
    monkeypatch.setattr(inventory_module, "get_session", testing_get_session, raising=True)
    monkeypatch.setattr(poster_module, "get_session", testing_get_session, raising=True)

    # create tables after patching engine/session factory
    Base.metadata.create_all(bind=test_engine)
    return TestingSessionLocal
