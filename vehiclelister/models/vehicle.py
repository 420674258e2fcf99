from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import JSON, String, Integer, DateTime, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from ..db.database import Base


class VehicleStatus(str, Enum):
    SAVED = "saved"
    POSTING = "posting"
    POSTED = "posted"
    FAILED = "failed"


class VehicleListing(Base):
    """已提取的车辆记录，对应 vehicles 表。"""

    __tablename__ = "vehicles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    status: Mapped[VehicleStatus] = mapped_column(
        SQLEnum(VehicleStatus),
        default=VehicleStatus.SAVED,
        index=True,
        nullable=False,
    )
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    source_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    images: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    create_time: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(timezone.utc), nullable=False
    )
    update_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    posted_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "status": self.status.value
            if isinstance(self.status, VehicleStatus)
            else self.status,
            "title": self.title,
            "source_url": self.source_url,
            "data": dict(self.data or {}),
            "images": list(self.images or []),
            "create_time": self.create_time.isoformat() if self.create_time else None,
            "update_time": self.update_time.isoformat() if self.update_time else None,
            "posted_time": self.posted_time.isoformat() if self.posted_time else None,
        }
