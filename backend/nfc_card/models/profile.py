from __future__ import annotations

from datetime import datetime
from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from nfc_card.core.database import Base


# Contact/social columns that users may edit and that render as card links.
LINK_FIELDS = (
    "phone",
    "whatsapp",
    "website",
    "facebook",
    "instagram",
    "youtube",
    "linkedin",
    "google_reviews",
    "upi",
    "maps",
    "drive_link",
)


class Profile(Base):
    __tablename__ = "social_media_data"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    email: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String, default="")
    designation: Mapped[str | None] = mapped_column(String, nullable=True)

    phone: Mapped[str | None] = mapped_column(String, nullable=True)
    whatsapp: Mapped[str | None] = mapped_column(String, nullable=True)
    website: Mapped[str | None] = mapped_column(String, nullable=True)
    facebook: Mapped[str | None] = mapped_column(String, nullable=True)
    instagram: Mapped[str | None] = mapped_column(String, nullable=True)
    youtube: Mapped[str | None] = mapped_column(String, nullable=True)
    linkedin: Mapped[str | None] = mapped_column(String, nullable=True)
    google_reviews: Mapped[str | None] = mapped_column(String, nullable=True)
    upi: Mapped[str | None] = mapped_column(String, nullable=True)
    maps: Mapped[str | None] = mapped_column(String, nullable=True)
    drive_link: Mapped[str | None] = mapped_column(String, nullable=True)

    avatar: Mapped[str | None] = mapped_column(String, nullable=True)
    # Uploaded image URL or a theme's background_image_url
    background_image: Mapped[str | None] = mapped_column(String, nullable=True)

    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
