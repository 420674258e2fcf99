"""
挂牌执行模块：提取车辆入库、打开发布页自动填表。

流程（post_vehicle）：
1. 读取库存记录，状态置为 posting
2. 打开挂牌创建页
3. FormFillOrchestrator 填写字段并上传图片
4. 按结果更新状态：success → posted，partial → posting（等人工补全），failed → failed

发布按钮始终留给用户自己点击。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from ..config import EngineConfig, load_engine_config
from ..db.database import get_session
from ..models.listing_log import ListingLog
from ..models.vehicle import VehicleStatus
from .browser_manager import BrowserManager, BrowserSession
from .extractor import extract_vehicle_data
from .form_filler import FillOutcome, FormFillOrchestrator
from .inventory import get_vehicle, save_vehicle, update_vehicle_status
from .status_reporter import PageStatusReporter

MARKETPLACE_CREATE_URL = "https://www.facebook.com/marketplace/create/vehicle"
PAGE_LOAD_TIMEOUT = 30000
SETTLE_DELAY = 2000

STATUS_BY_OUTCOME: dict[str, VehicleStatus] = {
    "success": VehicleStatus.POSTED,
    "partial": VehicleStatus.POSTING,
    "failed": VehicleStatus.FAILED,
}

ManagerFactory = Callable[..., BrowserManager]


@dataclass
class PostResult:
    vehicle_id: int
    outcome: str
    message: str
    fill: Optional[FillOutcome] = None

    @property
    def success(self) -> bool:
        return self.outcome == "success"


def post_vehicle(
    vehicle_id: int,
    *,
    session: Optional[BrowserSession] = None,
    manager_factory: ManagerFactory = BrowserManager,
    config: Optional[EngineConfig] = None,
    target_url: str = MARKETPLACE_CREATE_URL,
) -> PostResult:
    """
    对单条库存记录执行一次完整的填表流程。

    传入 session 时由调用方负责关闭（便于填完后留窗口给用户检查并发布）。
    """
    vehicle = get_vehicle(vehicle_id)
    if vehicle is None:
        print(f"[vehicle={vehicle_id}] [ERROR] 记录不存在")
        return PostResult(vehicle_id, "failed", f"Vehicle {vehicle_id} not found")

    _log(vehicle_id, "=" * 50)
    _log(vehicle_id, "🚀 开始自动挂牌")
    _log(vehicle_id, f"   车辆: {vehicle.get('title') or '未命名'}")
    _log(vehicle_id, f"   来源: {vehicle.get('source_url') or '未知'}")
    _log(vehicle_id, "=" * 50)
    update_vehicle_status(vehicle_id, VehicleStatus.POSTING)

    log_fn = lambda msg, level="info": _log(vehicle_id, msg, level)  # noqa: E731
    owned = session is None
    try:
        if owned:
            session = manager_factory(log_fn=log_fn).launch()
        page = session.page

        _log(vehicle_id, "\n--- 步骤 1: 打开挂牌页 ---")
        try:
            page.goto(target_url, wait_until="domcontentloaded", timeout=PAGE_LOAD_TIMEOUT)
            _log(vehicle_id, "✓ 页面加载成功")
        except PlaywrightTimeoutError:
            _log(vehicle_id, "❌ 页面加载超时", "error")
            update_vehicle_status(vehicle_id, VehicleStatus.FAILED)
            return PostResult(vehicle_id, "failed", "Marketplace page load timed out")
        page.wait_for_timeout(SETTLE_DELAY)

        _log(vehicle_id, "\n--- 步骤 2: 自动填表 ---")
        cfg = config or load_engine_config()
        reporter = PageStatusReporter(page, dismiss_ms=cfg.status_dismiss_ms, log_fn=log_fn)
        orchestrator = FormFillOrchestrator(
            page,
            reporter,
            config=cfg,
            log_fn=log_fn,
            run_id=f"vehicle-{vehicle_id}",
        )
        fill = orchestrator.run(vehicle.get("data") or {}, vehicle.get("images") or [])
    except Exception as e:
        _log(vehicle_id, f"❌ 挂牌流程异常: {e}", "error")
        update_vehicle_status(vehicle_id, VehicleStatus.FAILED)
        return PostResult(vehicle_id, "failed", str(e))
    finally:
        if owned and session is not None:
            session.close()

    update_vehicle_status(vehicle_id, STATUS_BY_OUTCOME[fill.outcome])
    level = "info" if fill.outcome == "success" else "warn"
    if fill.outcome == "failed":
        level = "error"
    _log(vehicle_id, f"🏁 结果: {fill.outcome} - {fill.message}", level)
    if fill.failed_fields:
        _log(vehicle_id, f"   未填写字段: {', '.join(fill.failed_fields)}", "warn")
    return PostResult(vehicle_id, fill.outcome, fill.message, fill)


def extract_vehicle(
    url: str,
    *,
    session: Optional[BrowserSession] = None,
    manager_factory: ManagerFactory = BrowserManager,
) -> Optional[int]:
    """打开详情页、解析并入库，返回新记录 id；不是详情页时返回 None。"""
    log_fn = lambda msg, level="info": print(f"[extract] [{level.upper()}] {msg}")  # noqa: E731
    owned = session is None
    try:
        if owned:
            session = manager_factory(log_fn=log_fn).launch()
        page = session.page
        try:
            page.goto(url, wait_until="domcontentloaded", timeout=PAGE_LOAD_TIMEOUT)
        except PlaywrightTimeoutError:
            log_fn("❌ 页面加载超时", "error")
            return None
        page.wait_for_timeout(SETTLE_DELAY)
        data = extract_vehicle_data(page.content(), page.url or url)
    finally:
        if owned and session is not None:
            session.close()

    if not data:
        log_fn("⚠️ 当前页面不是车辆详情页", "warn")
        return None
    vehicle_id = save_vehicle(data)
    _log(vehicle_id, f"✓ 已保存车辆 ({len(data.get('images') or [])} 张图片): {url}")
    return vehicle_id


def _log(vehicle_id: int, message: str, level: str = "info") -> None:
    """写入日志"""
    with get_session() as session:
        session.add(ListingLog(vehicle_id=vehicle_id, level=level, message=message))
    print(f"[vehicle={vehicle_id}] [{level.upper()}] {message}")
