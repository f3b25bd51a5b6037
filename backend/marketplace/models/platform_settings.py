"""
Platform settings - runtime-editable key/value configuration.
"""
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import String, Integer, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.lib.db import Base, UTCDateTime, utcnow


SERVICE_MARKUP_BPS = "SERVICE_MARKUP_BPS"


class PlatformSetting(Base):
    __tablename__ = "platform_settings"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    int_value: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    updated_by_user_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    def __repr__(self) -> str:
        return f"<PlatformSetting(key={self.key}, int_value={self.int_value})>"
