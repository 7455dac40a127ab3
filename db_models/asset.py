# db_models/asset.py
from datetime import datetime
from enum import Enum

from sqlalchemy import String, Text, Integer, DateTime, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db_base import Base


class AssetType(str, Enum):
    MOBILE_PHONE = "MOBILE_PHONE"
    TABLET = "TABLET"
    DESKTOP = "DESKTOP"
    LAPTOP = "LAPTOP"
    MONITOR = "MONITOR"


class AssetState(str, Enum):
    AVAILABLE = "AVAILABLE"      # Available stock
    SIGNED_OUT = "SIGNED_OUT"    # Signed out for building/configuration
    BUILDING = "BUILDING"        # Not used by monitors
    READY_TO_GO = "READY_TO_GO"  # Ready To Go stock (RTGS)
    ISSUED = "ISSUED"


class AssignmentType(str, Enum):
    INDIVIDUAL = "INDIVIDUAL"
    SHARED = "SHARED"


class Asset(Base):
    __tablename__ = "assets"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    # Human-facing code, e.g. "04-00017"; never changes once assigned
    asset_number: Mapped[str] = mapped_column(
        String(10),
        unique=True,
        index=True,
        nullable=False,
    )

    serial_number: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )

    description: Mapped[str] = mapped_column(Text, nullable=False)

    type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)

    # Written only by the transition engine (and on creation)
    state: Mapped[str] = mapped_column(String(20), nullable=False, index=True)

    location_id: Mapped[int | None] = mapped_column(
        ForeignKey("locations.id"),
        nullable=True,
    )

    # Assignment
    assignment_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    assigned_to: Mapped[str | None] = mapped_column(String(255), nullable=True)
    employee_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    department: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Optimistic concurrency tag, bumped by SQLAlchemy on every UPDATE
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Soft delete marker
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    location: Mapped["Location | None"] = relationship(
        "Location",
        back_populates="assets",
        lazy="raise",
    )

    history: Mapped[list["AssetHistory"]] = relationship(
        "AssetHistory",
        back_populates="asset",
        order_by="AssetHistory.sequence",
        lazy="raise",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None
