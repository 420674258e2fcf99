"""
上传绑定模块：把获取到的图片二进制注入文件输入框。

主路径：set_input_files（内存文件）+ change 事件，然后按张数等待页面自己的异步上传。
兜底：绑定不被支持时点击文件框，交给人工选择（manual_required，与成功区分开）。
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Callable, Optional, Sequence

from playwright.sync_api import ElementHandle, Page

from .asset_fetcher import AssetResult
from .element_resolver import ElementResolver, ResolutionQuery
from .errors import UploadFailure

LogFn = Callable[[str, str], None]

FILE_INPUT_QUERY = ResolutionQuery.of(
    ['input[type="file"][accept*="image"]', 'input[type="file"]'],
    input_type="file",
)
ADD_PHOTOS_QUERY = ResolutionQuery.of(
    [
        '[aria-label="Add photos"]',
        '[aria-label="Add Photos"]',
        'div[role="button"]:has-text("Add photos")',
    ],
    label_text="Add photos",
    aria_label="Add photos",
)


class UploadOutcome(str, Enum):
    BOUND = "bound"
    MANUAL_REQUIRED = "manual_required"
    FAILED = "failed"


def build_file_payloads(assets: Sequence[AssetResult], *, stamp: int) -> list[dict]:
    files: list[dict] = []
    for idx, asset in enumerate(assets, start=1):
        files.append(
            {
                "name": f"vehicle_image_{idx}_{stamp}.{asset.extension}",
                "mimeType": asset.content_type or "image/jpeg",
                "buffer": asset.data,
            }
        )
    return files


class UploadBinder:
    def __init__(
        self,
        page: Page,
        resolver: ElementResolver,
        *,
        wait_per_file: int = 1000,
        trigger_delay: int = 1500,
        clock: Callable[[], float] = time.time,
        log_fn: Optional[LogFn] = None,
    ) -> None:
        self._page = page
        self._resolver = resolver
        self._wait_per_file = wait_per_file
        self._trigger_delay = trigger_delay
        self._clock = clock
        self._log = log_fn or (lambda msg, level="info": None)

    def locate_file_input(
        self, max_attempts: int = 15, attempt_delay: int = 800
    ) -> Optional[ElementHandle]:
        """
        先快速看一眼文件框；没有就找 "Add photos" 之类的入口点开，再等文件框出现。
        """
        file_input = self._resolver.resolve(FILE_INPUT_QUERY, 1, 0)
        if file_input:
            return file_input

        trigger = self._resolver.resolve(ADD_PHOTOS_QUERY, max_attempts, attempt_delay)
        if trigger:
            self._log("   📷 点击 Add photos 入口", "info")
            try:
                trigger.click()
                self._page.wait_for_timeout(self._trigger_delay)
            except Exception as e:
                self._log(f"   ⚠️ Add photos 点击失败: {e}", "warn")
        return self._resolver.resolve(FILE_INPUT_QUERY, max_attempts, attempt_delay)

    def bind(
        self, file_input: Optional[ElementHandle], payloads: Sequence[AssetResult]
    ) -> UploadOutcome:
        assets = [a for a in payloads if a.ok and a.data]
        if file_input is None:
            self._log("   ❌ 没有可用的文件输入框", "error")
            return UploadOutcome.FAILED
        if not assets:
            self._log("   ❌ 没有可上传的图片", "error")
            return UploadOutcome.FAILED

        files = build_file_payloads(assets, stamp=int(self._clock() * 1000))
        try:
            self._assign_files(file_input, files)
        except UploadFailure as e:
            self._log(f"   ⚠️ 文件绑定失败，转人工选择: {e}", "warn")
            try:
                file_input.click()
            except Exception as click_error:
                self._log(f"   ❌ 文件框点击失败: {click_error}", "error")
                return UploadOutcome.FAILED
            return UploadOutcome.MANUAL_REQUIRED

        self._page.wait_for_timeout(self._wait_per_file * len(files))
        self._log(f"   ✓ 已绑定 {len(files)} 张图片", "info")
        return UploadOutcome.BOUND

    def _assign_files(self, file_input: ElementHandle, files: list[dict]) -> None:
        try:
            file_input.set_input_files(files)
            file_input.dispatch_event("change", {"bubbles": True})
        except Exception as exc:
            raise UploadFailure(str(exc)) from exc
