"""
车辆库存存取：提取结果落库、发布状态更新、清理。

data 列保存完整的字段记录（JSON），标题与来源链接单独成列方便列表展示。
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from ..db.database import get_session
from ..models.listing_log import ListingLog
from ..models.vehicle import VehicleListing, VehicleStatus
from .field_mapping import compose_title, record_value


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _coerce_status(status: VehicleStatus | str) -> VehicleStatus:
    if isinstance(status, VehicleStatus):
        return status
    return VehicleStatus(str(status).strip().lower())


def _title_for(data: dict) -> Optional[str]:
    title = record_value(data, "title") or compose_title(data)
    return str(title)[:255] if title else None


def save_vehicle(data: dict[str, Any]) -> int:
    """保存一条提取结果，状态固定为 saved，返回新 id。"""
    record = {k: v for k, v in dict(data or {}).items() if k not in ("id", "status")}
    images = [u for u in (record.pop("images", None) or []) if isinstance(u, str) and u]
    vehicle = VehicleListing(
        status=VehicleStatus.SAVED,
        title=_title_for(record),
        source_url=record_value(record, "sourceUrl"),
        data=record,
        images=images,
    )
    with get_session() as session:
        session.add(vehicle)
        session.flush()
        return vehicle.id


def get_vehicle(vehicle_id: int) -> Optional[dict]:
    with get_session() as session:
        vehicle = session.get(VehicleListing, vehicle_id)
        return vehicle.to_dict() if vehicle else None


def list_vehicles(status: VehicleStatus | str | None = None) -> list[dict]:
    with get_session() as session:
        query = session.query(VehicleListing)
        if status is not None:
            query = query.filter(VehicleListing.status == _coerce_status(status))
        rows = query.order_by(VehicleListing.create_time.desc(), VehicleListing.id.desc()).all()
        return [v.to_dict() for v in rows]


def update_vehicle(vehicle_id: int, data: dict[str, Any]) -> bool:
    """把 data 合并进已有记录（浅合并）；images 单独替换。"""
    with get_session() as session:
        vehicle = session.get(VehicleListing, vehicle_id)
        if not vehicle:
            return False
        patch = {k: v for k, v in dict(data or {}).items() if k not in ("id", "status")}
        if "images" in patch:
            vehicle.images = [u for u in (patch.pop("images") or []) if isinstance(u, str) and u]
        merged = {**(vehicle.data or {}), **patch}
        vehicle.data = merged
        vehicle.title = _title_for(merged)
        vehicle.source_url = record_value(merged, "sourceUrl")
        vehicle.update_time = _now()
        return True


def update_vehicle_status(vehicle_id: int, status: VehicleStatus | str) -> bool:
    """更新状态；变为 posted 时记录发布时间。"""
    new_status = _coerce_status(status)
    with get_session() as session:
        vehicle = session.get(VehicleListing, vehicle_id)
        if not vehicle:
            return False
        vehicle.status = new_status
        vehicle.update_time = _now()
        if new_status == VehicleStatus.POSTED:
            vehicle.posted_time = vehicle.update_time
        return True


def remove_vehicle(vehicle_id: int) -> bool:
    """删除单条记录及其关联日志。"""
    with get_session() as session:
        session.query(ListingLog).filter(ListingLog.vehicle_id == vehicle_id).delete()
        deleted = (
            session.query(VehicleListing).filter(VehicleListing.id == vehicle_id).delete()
        )
        return bool(deleted)


def clear_inventory(status: VehicleStatus | str | None = None) -> int:
    """清空库存（可按状态过滤），返回删除条数。"""
    with get_session() as session:
        query = session.query(VehicleListing.id)
        if status is not None:
            query = query.filter(VehicleListing.status == _coerce_status(status))
        vehicle_ids = [row.id for row in query.all()]
        if not vehicle_ids:
            return 0
        session.query(ListingLog).filter(ListingLog.vehicle_id.in_(vehicle_ids)).delete(
            synchronize_session=False
        )
        return (
            session.query(VehicleListing)
            .filter(VehicleListing.id.in_(vehicle_ids))
            .delete(synchronize_session=False)
        )
