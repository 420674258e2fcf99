"""
填表编排模块：对一条车辆记录驱动整张挂牌表单。

流程：
1. 等待表单就绪（交互控件数量超过阈值）
2. 按固定顺序逐个字段填写（文本走 InputSimulator，枚举走 OptionSelector）
3. 有图片时：定位文件框 → 获取图片 → 绑定上传
4. 汇总为 success / partial / failed，并只发送一条终态状态消息

单个字段失败只记日志与诊断，不中断整体流程；不做回滚。
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional, Sequence

from playwright.sync_api import Page

from ..config import EngineConfig
from .asset_fetcher import AssetFetcher, AssetResult
from .debug_probe import append_debug_log
from .dom import FORM_CONTROL_SELECTOR, safe_count
from .element_resolver import ElementResolver
from .errors import FormNotReadyFailure, ResolutionFailure, SimulationFailure
from .field_mapping import FIELD_SPECS, FieldSpec, derive_field_value
from .fsm_orchestrator import (
    FORM_NOT_READY_MESSAGE,
    FillPhase,
    Outcome,
    compose_final_message,
    decide_final_outcome,
    decide_form_ready,
    decide_upload_path,
    phase_for_outcome,
)
from .input_simulator import InputSimulator
from .option_selector import OptionSelector
from .retry import page_sleep, with_retry
from .status_reporter import StatusReporter
from .upload_binder import UploadBinder, UploadOutcome

LogFn = Callable[[str, str], None]


@dataclass
class FillOutcome:
    outcome: Outcome
    message: str
    phase: FillPhase = "failed"
    filled_fields: list[str] = field(default_factory=list)
    failed_fields: dict[str, str] = field(default_factory=dict)
    images_requested: int = 0
    images_bound: int = 0
    upload: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.outcome == "success"

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class _UploadReport:
    attempted: bool = False
    requested: int = 0
    acquired: int = 0
    outcome: Optional[UploadOutcome] = None

    @property
    def bound(self) -> bool:
        return self.outcome == UploadOutcome.BOUND

    def note(self) -> str:
        if not self.attempted:
            return ""
        if self.outcome == UploadOutcome.MANUAL_REQUIRED:
            return "select the photos manually"
        if self.outcome != UploadOutcome.BOUND:
            return "photos were not uploaded"
        if self.acquired < self.requested:
            return f"{self.acquired} of {self.requested} photos uploaded"
        return ""


class FormFillOrchestrator:
    """
    每次运行构造一次：组件可注入，未注入时按 EngineConfig 在同一 page 上组装。
    """

    def __init__(
        self,
        page: Page,
        reporter: StatusReporter,
        *,
        config: Optional[EngineConfig] = None,
        resolver: Optional[ElementResolver] = None,
        simulator: Optional[InputSimulator] = None,
        selector: Optional[OptionSelector] = None,
        fetcher: Optional[AssetFetcher] = None,
        binder: Optional[UploadBinder] = None,
        field_specs: Sequence[FieldSpec] = FIELD_SPECS,
        log_fn: Optional[LogFn] = None,
        run_id: Optional[str] = None,
        diagnostics_path: Optional[Path] = None,
    ) -> None:
        self._page = page
        self._reporter = reporter
        self._config = config or EngineConfig()
        self._log = log_fn or (lambda msg, level="info": None)
        cfg = self._config

        self._resolver = resolver or ElementResolver(page, log_fn=self._log)
        self._simulator = simulator or InputSimulator(page, log_fn=self._log)
        self._selector = selector or OptionSelector(
            page,
            self._resolver,
            trigger_attempts=cfg.slow_max_attempts,
            trigger_delay=cfg.slow_attempt_delay,
            option_attempts=cfg.option_attempts,
            option_delay=cfg.option_delay,
            log_fn=self._log,
        )
        self._fetcher = fetcher
        self._binder = binder or UploadBinder(
            page,
            self._resolver,
            wait_per_file=cfg.upload_wait_per_file,
            log_fn=self._log,
        )
        self._field_specs = tuple(field_specs)
        self._run_id = run_id or uuid.uuid4().hex[:12]
        self._diagnostics_path = diagnostics_path

    def run(
        self,
        record: Mapping[str, Any],
        images: Optional[Sequence[str]] = None,
    ) -> FillOutcome:
        view = MappingProxyType(dict(record or {}))
        image_urls = [u for u in (images or []) if isinstance(u, str) and u.strip()]

        self._log(f"🚀 开始填表 run={self._run_id}", "info")
        self._reporter.report("Starting form fill...", "info")

        # 1. waiting_for_form
        try:
            self._wait_for_form()
        except FormNotReadyFailure as e:
            self._log(f"❌ 表单未就绪: {e}", "error")
            self._diagnose("form_not_ready", str(e), {"code": e.code})
            self._reporter.report(FORM_NOT_READY_MESSAGE, "error")
            return FillOutcome(outcome="failed", message=FORM_NOT_READY_MESSAGE)

        # 2. filling
        self._reporter.report("Setting vehicle details...", "info")
        filled: list[str] = []
        failed: dict[str, str] = {}
        for spec in self._field_specs:
            value = derive_field_value(view, spec, self._config)
            if value is None:
                continue
            error = self._fill_field(spec, value)
            if error is None:
                filled.append(spec.key)
            else:
                failed[spec.key] = error.code
                self._log(f"⚠️ 字段未填写 [{spec.key}]: {error}", "warn")
                self._diagnose(
                    f"field:{spec.key}",
                    str(error),
                    {"code": error.code, "kind": spec.kind, "query": spec.query.describe()},
                )

        # 3. uploading
        upload = _UploadReport()
        if decide_upload_path(len(image_urls)) == "upload":
            self._reporter.report("Uploading images...", "info")
            upload = self._upload(image_urls)

        # 4. done
        outcome = decide_final_outcome(
            form_ready=True,
            attempted_fields=len(filled) + len(failed),
            filled_fields=len(filled),
            upload_attempted=upload.attempted,
            upload_bound=upload.bound,
            assets_requested=upload.requested,
            assets_acquired=upload.acquired,
        )
        message, severity = compose_final_message(
            outcome, fields_incomplete=bool(failed), upload_note=upload.note()
        )
        self._reporter.report(message, severity)
        self._log(f"🏁 填表结束: {outcome} ({len(filled)} 个字段已填)", "info")

        return FillOutcome(
            outcome=outcome,
            message=message,
            phase=phase_for_outcome(outcome),
            filled_fields=filled,
            failed_fields=failed,
            images_requested=upload.requested,
            images_bound=upload.acquired if upload.bound else 0,
            upload=upload.outcome.value if upload.outcome else None,
        )

    def _wait_for_form(self) -> None:
        cfg = self._config
        last_count = {"value": 0}

        def _ready() -> Optional[int]:
            count = safe_count(self._page, FORM_CONTROL_SELECTOR)
            last_count["value"] = count
            if decide_form_ready(count, threshold=cfg.form_ready_threshold):
                return count
            return None

        found = with_retry(
            _ready,
            max_attempts=cfg.form_ready_attempts,
            delay_ms=cfg.form_ready_delay,
            sleep=page_sleep(self._page),
        )
        if found is None:
            raise FormNotReadyFailure(
                f"only {last_count['value']} controls after {cfg.form_ready_attempts} checks"
            )
        self._log(f"✓ 表单就绪，检测到 {found} 个控件", "info")

    def _fill_field(self, spec: FieldSpec, value: str):
        cfg = self._config
        self._log(f"✏️ 填写 {spec.key}: {value[:60]}", "info")
        if spec.kind == "option":
            ok = self._selector.select(
                spec.query,
                value,
                dropdown_delay=cfg.dropdown_delay,
                match_delay=cfg.match_delay,
            )
            return None if ok else ResolutionFailure(f"no option for '{value}'")

        attempts = cfg.slow_max_attempts if spec.slow else cfg.max_attempts
        delay = cfg.slow_attempt_delay if spec.slow else cfg.attempt_delay
        element = self._resolver.resolve(spec.query, attempts, delay)
        if element is None:
            return ResolutionFailure(f"control not found: {spec.query.describe()}")
        ok = self._simulator.fill(
            element, value, clear_first=spec.clear_first, post_delay=spec.post_delay
        )
        return None if ok else SimulationFailure("element rejected the value")

    def _upload(self, urls: list[str]) -> _UploadReport:
        cfg = self._config
        report = _UploadReport(attempted=True)

        file_input = self._binder.locate_file_input(
            cfg.slow_max_attempts, cfg.slow_attempt_delay
        )
        if file_input is None:
            self._log("❌ 未找到图片上传入口", "error")
            self._diagnose("upload", "file input not found", {"images": len(urls)})
            report.requested = min(len(urls), cfg.upload_cap)
            report.outcome = UploadOutcome.FAILED
            return report

        fetcher = self._fetcher
        owned = fetcher is None
        if owned:
            fetcher = AssetFetcher.for_page(
                self._page,
                cap=cfg.upload_cap,
                timeout_ms=cfg.asset_timeout,
                proxy_prefix=cfg.cors_proxy_url,
                log_fn=self._log,
            )
        try:
            results: list[AssetResult] = fetcher.fetch(urls)
        finally:
            if owned:
                fetcher.close()

        report.requested = len(results)
        acquired = [r for r in results if r.ok]
        report.acquired = len(acquired)
        for r in results:
            if not r.ok:
                self._diagnose("asset", r.error or "unknown", {"url": r.url})

        report.outcome = self._binder.bind(file_input, acquired)
        return report

    def _diagnose(self, location: str, message: str, data: dict) -> None:
        append_debug_log(
            location=location,
            message=message,
            data=data,
            run_id=self._run_id,
            log_path=self._diagnostics_path,
        )
