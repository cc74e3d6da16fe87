from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import RedirectResponse, Response
from sqlalchemy.orm import Session

from nfc_card.core.database import get_db
from nfc_card.core.link_types import get_link_field, link_href, list_link_types, normalize_link_type
from nfc_card.core.realtime import ChangeHub, get_hub
from nfc_card.core.schemas import ClickCreate, ClickResult, PublicProfileOut, ThemeOut
from nfc_card.services.clicks import resolve_public_profile, to_public_profile, try_record_click
from nfc_card.services.profiles import list_themes
from nfc_card.services.qr_service import qr_filename, render_profile_qr


router = APIRouter()


@router.get("/profiles/{profile_id}", response_model=PublicProfileOut)
def get_public_profile(profile_id: str, db: Session = Depends(get_db)) -> PublicProfileOut:
    return to_public_profile(resolve_public_profile(db, profile_id))


@router.post("/profiles/{profile_id}/clicks", response_model=ClickResult)
def log_click(
    profile_id: str,
    payload: ClickCreate,
    db: Session = Depends(get_db),
    hub: ChangeHub = Depends(get_hub),
) -> ClickResult:
    ok = try_record_click(db, profile_id, payload.link_type, payload.link_value, hub=hub)
    return ClickResult(ok=ok, link_type=normalize_link_type(payload.link_type))


@router.get("/profiles/{profile_id}/go/{link_type}")
def follow_link(
    profile_id: str,
    link_type: str,
    db: Session = Depends(get_db),
    hub: ChangeHub = Depends(get_hub),
) -> RedirectResponse:
    normalized = normalize_link_type(link_type)
    if not normalized:
        raise HTTPException(status_code=404, detail="Link not found.")
    profile = resolve_public_profile(db, profile_id)
    target = link_href(normalized, getattr(profile, get_link_field(normalized), None))
    if not target:
        raise HTTPException(status_code=404, detail="Link not found.")
    # Navigation proceeds whether or not the click was saved
    try_record_click(db, profile_id, normalized, target, hub=hub)
    return RedirectResponse(url=target, status_code=307)


@router.get("/profiles/{profile_id}/qr.png")
def get_profile_qr(profile_id: str, db: Session = Depends(get_db)) -> Response:
    profile = resolve_public_profile(db, profile_id)
    png = render_profile_qr(profile.id)
    return Response(
        content=png,
        media_type="image/png",
        headers={"Content-Disposition": f'attachment; filename="{qr_filename(profile.name)}"'},
    )


@router.get("/themes", response_model=list[ThemeOut])
def get_themes(db: Session = Depends(get_db)) -> list[ThemeOut]:
    return list_themes(db)


@router.get("/link-types")
def get_link_types() -> list[dict]:
    return list(list_link_types())
