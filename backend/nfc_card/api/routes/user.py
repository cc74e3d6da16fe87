from __future__ import annotations

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from nfc_card.api.sse import insights_stream
from nfc_card.core.auth import SessionContext, get_session_context
from nfc_card.core.database import get_db, get_session_factory
from nfc_card.core.errors import NotFound
from nfc_card.core.realtime import ChangeHub, get_hub
from nfc_card.core.schemas import InsightsResponse, ProfileOut, ProfileUpdate, UploadResponse
from nfc_card.services.insights import InsightsFeed, compute_insights
from nfc_card.services.profiles import get_profile, to_profile_out, update_profile
from nfc_card.services.storage import upload_profile_image


router = APIRouter()


def _own_profile_id(session: SessionContext) -> str:
    if not session.profile_id:
        raise NotFound("No card profile for this account.")
    return session.profile_id


@router.get("/me", response_model=ProfileOut)
def get_me(
    db: Session = Depends(get_db),
    session: SessionContext = Depends(get_session_context),
) -> ProfileOut:
    return to_profile_out(get_profile(db, _own_profile_id(session)))


@router.put("/me", response_model=ProfileOut)
def update_me(
    payload: ProfileUpdate,
    db: Session = Depends(get_db),
    hub: ChangeHub = Depends(get_hub),
    session: SessionContext = Depends(get_session_context),
) -> ProfileOut:
    data = payload.model_dump(exclude_unset=True)
    profile = update_profile(db, _own_profile_id(session), data, hub=hub)
    return to_profile_out(profile)


def _upload(field: str, file: UploadFile, db: Session, hub: ChangeHub, session: SessionContext) -> UploadResponse:
    file.file.seek(0)
    data = file.file.read()
    url, profile = upload_profile_image(
        db,
        _own_profile_id(session),
        field,
        file.filename,
        file.content_type,
        data,
        hub=hub,
    )
    return UploadResponse(field=field, url=url, profile=to_profile_out(profile))


@router.post("/me/avatar", response_model=UploadResponse)
def upload_avatar(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    hub: ChangeHub = Depends(get_hub),
    session: SessionContext = Depends(get_session_context),
) -> UploadResponse:
    return _upload("avatar", file, db, hub, session)


@router.post("/me/background", response_model=UploadResponse)
def upload_background(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    hub: ChangeHub = Depends(get_hub),
    session: SessionContext = Depends(get_session_context),
) -> UploadResponse:
    return _upload("background_image", file, db, hub, session)


@router.get("/me/insights", response_model=InsightsResponse)
def get_my_insights(
    db: Session = Depends(get_db),
    session: SessionContext = Depends(get_session_context),
) -> InsightsResponse:
    profile = get_profile(db, _own_profile_id(session))
    insights = compute_insights(db, profile.id)
    return InsightsResponse(
        profile_id=profile.id,
        name=profile.name or "",
        total=sum(item.count for item in insights),
        insights=insights,
    )


@router.get("/me/insights/stream")
async def stream_my_insights(
    hub: ChangeHub = Depends(get_hub),
    session_factory=Depends(get_session_factory),
    session: SessionContext = Depends(get_session_context),
) -> StreamingResponse:
    feed = InsightsFeed(_own_profile_id(session), session_factory=session_factory, hub=hub)
    return StreamingResponse(insights_stream(feed), media_type="text/event-stream")
