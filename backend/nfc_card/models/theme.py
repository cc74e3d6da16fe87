from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from nfc_card.core.database import Base


class Theme(Base):
    __tablename__ = "theme"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    theme_name: Mapped[str] = mapped_column(String, nullable=False)
    background_image_url: Mapped[str] = mapped_column(String, nullable=False)
