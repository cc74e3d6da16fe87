from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from nfc_card.core.database import Base


class LinkClick(Base):
    __tablename__ = "link_clicks"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    # No FK constraint: profile deletion removes clicks first, in the same transaction.
    social_media_data_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    link_type: Mapped[str] = mapped_column(String, index=True, nullable=False)
    link_value: Mapped[str | None] = mapped_column(String, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
