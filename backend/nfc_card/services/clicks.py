from __future__ import annotations

import logging
from datetime import datetime
from typing import List
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from nfc_card.core.config import settings
from nfc_card.core.errors import CardError, NotFound, ValidationError
from nfc_card.core.link_types import LINK_CATEGORIES, get_link_field, link_href, normalize_link_type
from nfc_card.core.realtime import ChangeEvent, ChangeHub, get_hub
from nfc_card.core.schemas import PublicLink, PublicProfileOut
from nfc_card.models import LinkClick, Profile
from nfc_card.services.profiles import CLICK_TABLE, get_profile
from nfc_card.utils.retry import write_guard


logger = logging.getLogger(__name__)


def resolve_public_profile(db: Session, profile_id: str) -> Profile:
    profile = get_profile(db, profile_id)
    if settings.public_requires_verification and not profile.is_verified:
        raise NotFound("Profile not found.")
    return profile


def public_links(profile: Profile) -> List[PublicLink]:
    links: List[PublicLink] = []
    for link_type in LINK_CATEGORIES:
        value = getattr(profile, get_link_field(link_type), None)
        href = link_href(link_type, value)
        if href:
            links.append(PublicLink(link_type=link_type, value=str(value).strip(), href=href))
    return links


def to_public_profile(profile: Profile) -> PublicProfileOut:
    return PublicProfileOut(
        id=profile.id,
        name=profile.name or "",
        designation=profile.designation,
        avatar=profile.avatar,
        background_image=profile.background_image,
        is_verified=bool(profile.is_verified),
        links=public_links(profile),
    )


def click_row(click: LinkClick) -> dict:
    return {
        "id": click.id,
        "social_media_data_id": click.social_media_data_id,
        "link_type": click.link_type,
        "link_value": click.link_value,
        "created_at": click.created_at.isoformat() if click.created_at else None,
    }


@write_guard
def record_click(
    db: Session,
    profile_id: str,
    link_type: str,
    link_value: str | None = None,
    hub: ChangeHub | None = None,
) -> LinkClick:
    normalized = normalize_link_type(link_type)
    if not normalized:
        raise ValidationError(f"Unknown link type: {link_type}")
    profile = resolve_public_profile(db, profile_id)
    target = link_href(normalized, getattr(profile, get_link_field(normalized), None))
    if not target:
        raise ValidationError(f"Profile has no {normalized} link.")

    click = LinkClick(
        id=uuid4().hex,
        social_media_data_id=profile.id,
        link_type=normalized,
        link_value=(link_value or target).strip(),
        created_at=datetime.utcnow(),
    )
    db.add(click)
    db.commit()
    db.refresh(click)
    (hub or get_hub()).publish(ChangeEvent(CLICK_TABLE, "INSERT", new=click_row(click)))
    return click


def try_record_click(
    db: Session,
    profile_id: str,
    link_type: str,
    link_value: str | None = None,
    hub: ChangeHub | None = None,
) -> bool:
    """Log a click without ever blocking the visitor's navigation."""
    try:
        record_click(db, profile_id, link_type, link_value, hub=hub)
        return True
    except (CardError, SQLAlchemyError) as exc:
        db.rollback()
        logger.error("Error saving link click (%s, %s): %s", profile_id, link_type, exc)
        return False
