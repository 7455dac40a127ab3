from sqlalchemy import String, Integer
from sqlalchemy.orm import Mapped, mapped_column

from db_base import Base


class AssetSequence(Base):
    """Next free asset number per asset number prefix."""
    __tablename__ = "asset_sequences"

    # Tenant-defined types all share one prefix, and so one counter
    prefix: Mapped[str] = mapped_column(String(2), primary_key=True)

    next_sequence: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        server_default="1",
    )
