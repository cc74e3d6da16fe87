from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Tuple
from uuid import uuid4

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session

from nfc_card.core.errors import Conflict, NotFound, PartialFailure, ValidationError
from nfc_card.core.realtime import ChangeEvent, ChangeHub, get_hub
from nfc_card.core.schemas import ProfileOut, ThemeOut
from nfc_card.models import LinkClick, Profile, Theme
from nfc_card.models.profile import LINK_FIELDS
from nfc_card.utils.retry import read_with_retry, write_guard


logger = logging.getLogger(__name__)

PROFILE_TABLE = "social_media_data"
CLICK_TABLE = "link_clicks"

# Columns a card owner may change on their own profile
USER_EDITABLE_FIELDS = frozenset(
    {"name", "designation", "avatar", "background_image", *LINK_FIELDS}
)
ADMIN_EDITABLE_FIELDS = USER_EDITABLE_FIELDS | {"email", "is_verified", "is_admin"}
# Blank strings in these columns are stored as NULL so the link is not rendered
_NULLABLE_TEXT_FIELDS = frozenset({"designation", "avatar", "background_image", *LINK_FIELDS})


def normalize_email(value: str | None) -> str:
    email = (value or "").strip().lower()
    if not email:
        raise ValidationError("Email is required.")
    if "@" not in email:
        raise ValidationError("Email address is invalid.")
    return email


def profile_row(profile: Profile) -> Dict[str, Any]:
    row = {column.name: getattr(profile, column.name) for column in Profile.__table__.columns}
    if isinstance(row.get("created_at"), datetime):
        row["created_at"] = row["created_at"].isoformat()
    return row


def to_profile_out(profile: Profile) -> ProfileOut:
    return ProfileOut(**profile_row(profile))


def _publish(hub: ChangeHub | None, event: ChangeEvent) -> None:
    (hub or get_hub()).publish(event)


def _clean_value(field: str, value: Any) -> Any:
    if field in _NULLABLE_TEXT_FIELDS and isinstance(value, str):
        value = value.strip()
        return value or None
    return value


@read_with_retry
def get_profile(db: Session, profile_id: str) -> Profile:
    profile = db.get(Profile, profile_id)
    if not profile:
        raise NotFound("Profile not found.")
    return profile


@read_with_retry
def get_profile_by_email(db: Session, email: str | None) -> Profile:
    if not email:
        raise NotFound("Profile not found.")
    profile = db.query(Profile).filter(Profile.email == email.strip().lower()).first()
    if not profile:
        raise NotFound("Profile not found.")
    return profile


@read_with_retry
def list_profiles(db: Session) -> List[Profile]:
    return db.query(Profile).order_by(Profile.created_at.asc(), Profile.id.asc()).all()


def partition_profiles(rows: List[Any]) -> Tuple[List[Any], List[Any]]:
    verified: List[Any] = []
    pending: List[Any] = []
    for row in rows:
        flag = row.get("is_verified") if isinstance(row, dict) else row.is_verified
        (verified if flag else pending).append(row)
    return verified, pending


@read_with_retry
def list_themes(db: Session) -> List[ThemeOut]:
    rows = db.query(Theme).order_by(Theme.theme_name.asc()).all()
    return [
        ThemeOut(id=row.id, theme_name=row.theme_name, background_image_url=row.background_image_url)
        for row in rows
    ]


@write_guard
def create_profile(
    db: Session,
    data: Dict[str, Any],
    hub: ChangeHub | None = None,
) -> Profile:
    email = normalize_email(data.get("email"))
    if db.query(Profile.id).filter(Profile.email == email).first():
        raise Conflict("A profile with this email already exists.")

    profile = Profile(
        id=uuid4().hex,
        email=email,
        name=(data.get("name") or "").strip(),
        is_verified=bool(data.get("is_verified", False)),
        is_admin=bool(data.get("is_admin", False)),
        created_at=datetime.utcnow(),
    )
    for field in _NULLABLE_TEXT_FIELDS:
        if field in data:
            setattr(profile, field, _clean_value(field, data[field]))
    db.add(profile)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise Conflict("A profile with this email already exists.") from exc
    db.refresh(profile)
    logger.info("Created profile %s (%s)", profile.id, profile.email)
    _publish(hub, ChangeEvent(PROFILE_TABLE, "INSERT", new=profile_row(profile)))
    return profile


@write_guard
def update_profile(
    db: Session,
    profile_id: str,
    data: Dict[str, Any],
    admin: bool = False,
    hub: ChangeHub | None = None,
) -> Profile:
    """Apply a partial update.

    Owners may only touch contact, link and image columns; admins may also
    change email and the verification/admin flags. Verification is one-way.
    Concurrent writers are not reconciled: the last commit wins.
    """
    profile = get_profile(db, profile_id)
    allowed = ADMIN_EDITABLE_FIELDS if admin else USER_EDITABLE_FIELDS
    rejected = sorted(set(data) - allowed)
    if rejected:
        raise ValidationError(f"Fields not editable: {', '.join(rejected)}")

    old = profile_row(profile)
    changes = dict(data)
    # An empty background keeps the stored one (theme default or earlier upload)
    if not (changes.get("background_image") or "").strip():
        changes.pop("background_image", None)

    if "is_verified" in changes:
        if changes["is_verified"] is None:
            changes.pop("is_verified")
        elif not changes["is_verified"] and profile.is_verified:
            raise ValidationError("Verification cannot be revoked.")
    if "is_admin" in changes and changes["is_admin"] is None:
        changes.pop("is_admin")
    if "email" in changes:
        if changes["email"] is None:
            changes.pop("email")
        else:
            email = normalize_email(changes["email"])
            clash = (
                db.query(Profile.id)
                .filter(Profile.email == email, Profile.id != profile.id)
                .first()
            )
            if clash:
                raise Conflict("A profile with this email already exists.")
            changes["email"] = email
    if "name" in changes:
        if changes["name"] is None:
            changes.pop("name")
        else:
            changes["name"] = changes["name"].strip()

    for field, value in changes.items():
        setattr(profile, field, _clean_value(field, value))
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise Conflict("A profile with this email already exists.") from exc
    db.refresh(profile)
    _publish(hub, ChangeEvent(PROFILE_TABLE, "UPDATE", new=profile_row(profile), old=old))
    return profile


@write_guard
def verify_profile(db: Session, profile_id: str, hub: ChangeHub | None = None) -> Profile:
    profile = get_profile(db, profile_id)
    if profile.is_verified:
        return profile
    old = profile_row(profile)
    profile.is_verified = True
    db.commit()
    db.refresh(profile)
    logger.info("Verified profile %s", profile.id)
    _publish(hub, ChangeEvent(PROFILE_TABLE, "UPDATE", new=profile_row(profile), old=old))
    return profile


@write_guard
def delete_profile(db: Session, profile_id: str, hub: ChangeHub | None = None) -> int:
    """Delete a profile and its click log in a single transaction.

    Returns the number of click events removed. If removing the clicks
    fails, nothing is deleted and PartialFailure is raised.
    """
    profile = get_profile(db, profile_id)
    old = profile_row(profile)
    try:
        click_query = db.query(LinkClick).filter(LinkClick.social_media_data_id == profile_id)
        old_clicks = [
            {
                "id": click_id,
                "social_media_data_id": profile_id,
                "link_type": link_type,
                "link_value": link_value,
            }
            for click_id, link_type, link_value in click_query.with_entities(
                LinkClick.id, LinkClick.link_type, LinkClick.link_value
            )
        ]
        removed = click_query.delete(synchronize_session=False)
    except DBAPIError as exc:
        db.rollback()
        logger.error("Deleting link clicks for %s failed: %s", profile_id, exc)
        raise PartialFailure(
            "Error deleting user link clicks; profile was not deleted.", step="link_clicks"
        ) from exc
    try:
        db.delete(profile)
        db.commit()
    except DBAPIError as exc:
        db.rollback()
        logger.error("Deleting profile %s failed: %s", profile_id, exc)
        raise PartialFailure(
            "Error deleting user; no records were removed.", step="profile"
        ) from exc
    logger.info("Deleted profile %s with %d link clicks", profile_id, removed)
    for old_click in old_clicks:
        _publish(hub, ChangeEvent(CLICK_TABLE, "DELETE", old=old_click))
    _publish(hub, ChangeEvent(PROFILE_TABLE, "DELETE", old=old))
    return removed
