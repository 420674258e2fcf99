from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .db.database import init_db, get_session
from .models.listing_log import ListingLog
from .models.vehicle import VehicleStatus
from .core import inventory


@asynccontextmanager
async def lifespan(app: FastAPI):
    # 初始化数据库等资源
    init_db()
    yield


app = FastAPI(title="Vehicle Lister - Inventory API", lifespan=lifespan)


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/api/vehicles")
def list_vehicles(status: VehicleStatus | None = None):
    """
    列出库存车辆，可按状态过滤。
    """
    return inventory.list_vehicles(status)


@app.get("/api/vehicles/{vehicle_id}")
def get_vehicle(vehicle_id: int):
    vehicle = inventory.get_vehicle(vehicle_id)
    if vehicle is None:
        return {"ok": False, "error": f"Vehicle {vehicle_id} not found"}
    return {"ok": True, "vehicle": vehicle}


@app.post("/api/vehicles")
def add_vehicle(payload: dict):
    """
    保存一条车辆记录（通常来自提取结果）。至少需要 make 或 sourceUrl。
    """
    if not isinstance(payload, dict):
        return {"ok": False, "error": "payload must be an object"}
    if not (str(payload.get("make") or "").strip() or str(payload.get("sourceUrl") or "").strip()):
        return {"ok": False, "error": "make or sourceUrl is required"}
    vehicle_id = inventory.save_vehicle(payload)
    return {"ok": True, "vehicle": inventory.get_vehicle(vehicle_id)}


@app.post("/api/vehicles/{vehicle_id}/status")
def set_vehicle_status(vehicle_id: int, payload: dict):
    """手动更新状态，例如用户在站点上点了发布之后标记为 posted。"""
    raw = str(payload.get("status") or "").strip().lower()
    try:
        status = VehicleStatus(raw)
    except ValueError:
        return {"ok": False, "error": f"invalid status: {raw or '<empty>'}"}
    if not inventory.update_vehicle_status(vehicle_id, status):
        return {"ok": False, "error": f"Vehicle {vehicle_id} not found"}
    return {"ok": True, "vehicle": inventory.get_vehicle(vehicle_id)}


@app.get("/api/vehicles/{vehicle_id}/logs")
def get_vehicle_logs(vehicle_id: int):
    """返回指定车辆的挂牌日志。"""
    with get_session() as session:
        logs = (
            session.query(ListingLog)
            .filter(ListingLog.vehicle_id == vehicle_id)
            .order_by(ListingLog.create_time.asc(), ListingLog.id.asc())
            .all()
        )
        return [log.to_dict() for log in logs]


@app.delete("/api/vehicles/{vehicle_id}")
def delete_vehicle(vehicle_id: int):
    """
    删除单条车辆记录及其关联的日志。
    """
    if inventory.remove_vehicle(vehicle_id):
        return {"ok": True, "message": f"Vehicle {vehicle_id} deleted"}
    return {"ok": False, "error": f"Vehicle {vehicle_id} not found"}


@app.delete("/api/vehicles")
def clear_vehicles(status: VehicleStatus | None = None):
    """
    清空库存（可按状态过滤）及其关联的日志。

    例如：DELETE /api/vehicles?status=posted 清空所有已发布的记录
    """
    deleted = inventory.clear_inventory(status)
    label = status.value if status is not None else "any"
    return {
        "ok": True,
        "message": f"Cleared {deleted} vehicles with status {label}",
        "deleted": deleted,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("vehiclelister.app:app", host="127.0.0.1", port=8000, reload=True)
