# db_models/asset_history.py
from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    String,
    Text,
    Integer,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db_base import Base
from db_models.asset import Asset
from db_models.user import User


class AssetHistory(Base):
    """
    One row per accepted state change. Append-only: nothing in the API
    updates or deletes these rows.
    """
    __tablename__ = "asset_history"
    # Sequence is the per-asset ordering key; a second writer racing for the
    # same slot fails on this constraint.
    __table_args__ = (
        UniqueConstraint("asset_id", "sequence", name="uq_asset_history_asset_sequence"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    asset_id: Mapped[int] = mapped_column(
        ForeignKey("assets.id"),
        nullable=False,
        index=True,
    )

    sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    # NULL only for the creation entry
    previous_state: Mapped[str | None] = mapped_column(String(20), nullable=True)
    new_state: Mapped[str] = mapped_column(String(20), nullable=False)

    # NULL means the system actor (scripts, repairs)
    changed_by: Mapped[int | None] = mapped_column(
        ForeignKey("users.id"),
        nullable=True,
    )

    change_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    details: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    asset: Mapped[Asset] = relationship(
        "Asset",
        back_populates="history",
        lazy="raise",
    )
    actor: Mapped[User | None] = relationship("User", lazy="raise")
