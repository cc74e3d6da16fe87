from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from nfc_card.core.database import get_db
from nfc_card.core.realtime import ChangeHub, get_hub
from nfc_card.core.schemas import ProfileCreate, ProfileOut
from nfc_card.services.profiles import create_profile, to_profile_out


router = APIRouter()


@router.post("", response_model=ProfileOut, status_code=201)
def sign_up(
    payload: ProfileCreate,
    db: Session = Depends(get_db),
    hub: ChangeHub = Depends(get_hub),
) -> ProfileOut:
    # New cards always start pending and without admin rights
    data = payload.model_dump()
    data.update(is_verified=False, is_admin=False)
    return to_profile_out(create_profile(db, data, hub=hub))
