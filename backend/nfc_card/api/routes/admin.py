from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response, StreamingResponse
from sqlalchemy.orm import Session

from nfc_card.api.sse import insights_stream, table_stream
from nfc_card.core.auth import SessionContext, require_admin
from nfc_card.core.database import get_db, get_session_factory
from nfc_card.core.realtime import ChangeHub, get_hub
from nfc_card.core.schemas import (
    AdminProfileCreate,
    AdminProfileListing,
    AdminProfileUpdate,
    InsightsResponse,
    ProfileOut,
    ProfilePage,
)
from nfc_card.services.console import ConsoleView, Paginator, parse_date_bound
from nfc_card.services.insights import InsightsFeed, compute_insights
from nfc_card.services.profiles import (
    PROFILE_TABLE,
    create_profile,
    delete_profile,
    get_profile,
    list_profiles,
    profile_row,
    to_profile_out,
    update_profile,
    verify_profile,
)
from nfc_card.services.qr_service import qr_filename, render_profile_qr


router = APIRouter()


def _to_page(items: list[dict], total: int, pages: Paginator) -> ProfilePage:
    return ProfilePage(
        items=[ProfileOut(**row) for row in items],
        page=pages.page,
        total_pages=pages.total_pages(total),
        total=total,
    )


@router.get("/profiles", response_model=AdminProfileListing)
def list_admin_profiles(
    search: str = Query("", max_length=200),
    date_from: str | None = Query(None),
    date_to: str | None = Query(None),
    verified_page: int = Query(1),
    pending_page: int = Query(1),
    db: Session = Depends(get_db),
    admin: SessionContext = Depends(require_admin),
) -> AdminProfileListing:
    view = ConsoleView([profile_row(row) for row in list_profiles(db)])
    view.set_filter(search, parse_date_bound(date_from), parse_date_bound(date_to))
    view.go_to_verified(verified_page)
    view.go_to_pending(pending_page)
    verified, pending = view.verified(), view.pending()
    return AdminProfileListing(
        verified=_to_page(view.verified_page(), len(verified), view.verified_pages),
        pending=_to_page(view.pending_page(), len(pending), view.pending_pages),
    )


@router.post("/profiles", response_model=ProfileOut, status_code=201)
def add_profile(
    payload: AdminProfileCreate,
    db: Session = Depends(get_db),
    hub: ChangeHub = Depends(get_hub),
    admin: SessionContext = Depends(require_admin),
) -> ProfileOut:
    return to_profile_out(create_profile(db, payload.model_dump(), hub=hub))


@router.get("/profiles/events")
async def stream_profile_changes(
    hub: ChangeHub = Depends(get_hub),
    admin: SessionContext = Depends(require_admin),
) -> StreamingResponse:
    return StreamingResponse(table_stream(hub, PROFILE_TABLE), media_type="text/event-stream")


@router.get("/profiles/{profile_id}", response_model=ProfileOut)
def get_admin_profile(
    profile_id: str,
    db: Session = Depends(get_db),
    admin: SessionContext = Depends(require_admin),
) -> ProfileOut:
    return to_profile_out(get_profile(db, profile_id))


@router.put("/profiles/{profile_id}", response_model=ProfileOut)
def edit_profile(
    profile_id: str,
    payload: AdminProfileUpdate,
    db: Session = Depends(get_db),
    hub: ChangeHub = Depends(get_hub),
    admin: SessionContext = Depends(require_admin),
) -> ProfileOut:
    data = payload.model_dump(exclude_unset=True)
    return to_profile_out(update_profile(db, profile_id, data, admin=True, hub=hub))


@router.post("/profiles/{profile_id}/verify", response_model=ProfileOut)
def verify(
    profile_id: str,
    db: Session = Depends(get_db),
    hub: ChangeHub = Depends(get_hub),
    admin: SessionContext = Depends(require_admin),
) -> ProfileOut:
    return to_profile_out(verify_profile(db, profile_id, hub=hub))


@router.delete("/profiles/{profile_id}")
def remove_profile(
    profile_id: str,
    db: Session = Depends(get_db),
    hub: ChangeHub = Depends(get_hub),
    admin: SessionContext = Depends(require_admin),
) -> dict:
    removed = delete_profile(db, profile_id, hub=hub)
    return {"ok": True, "profile_id": profile_id, "deleted_clicks": removed}


@router.get("/profiles/{profile_id}/insights", response_model=InsightsResponse)
def get_profile_insights(
    profile_id: str,
    db: Session = Depends(get_db),
    admin: SessionContext = Depends(require_admin),
) -> InsightsResponse:
    profile = get_profile(db, profile_id)
    insights = compute_insights(db, profile.id)
    return InsightsResponse(
        profile_id=profile.id,
        name=profile.name or "",
        total=sum(item.count for item in insights),
        insights=insights,
    )


@router.get("/profiles/{profile_id}/insights/stream")
async def stream_profile_insights(
    profile_id: str,
    db: Session = Depends(get_db),
    hub: ChangeHub = Depends(get_hub),
    session_factory=Depends(get_session_factory),
    admin: SessionContext = Depends(require_admin),
) -> StreamingResponse:
    get_profile(db, profile_id)
    feed = InsightsFeed(profile_id, session_factory=session_factory, hub=hub)
    return StreamingResponse(insights_stream(feed), media_type="text/event-stream")


@router.get("/profiles/{profile_id}/qr.png")
def get_admin_profile_qr(
    profile_id: str,
    db: Session = Depends(get_db),
    admin: SessionContext = Depends(require_admin),
) -> Response:
    profile = get_profile(db, profile_id)
    return Response(
        content=render_profile_qr(profile.id),
        media_type="image/png",
        headers={"Content-Disposition": f'attachment; filename="{qr_filename(profile.name)}"'},
    )
