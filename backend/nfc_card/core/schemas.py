from __future__ import annotations

from typing import List, Optional
from pydantic import BaseModel, Field


class LinkFields(BaseModel):
    phone: Optional[str] = None
    whatsapp: Optional[str] = None
    website: Optional[str] = None
    facebook: Optional[str] = None
    instagram: Optional[str] = None
    youtube: Optional[str] = None
    linkedin: Optional[str] = None
    google_reviews: Optional[str] = None
    upi: Optional[str] = None
    maps: Optional[str] = None
    drive_link: Optional[str] = None


class ProfileCreate(LinkFields):
    email: str
    name: str = ""
    designation: Optional[str] = None
    avatar: Optional[str] = None
    background_image: Optional[str] = None


class AdminProfileCreate(ProfileCreate):
    is_verified: bool = False
    is_admin: bool = False


class ProfileUpdate(LinkFields):
    name: Optional[str] = None
    designation: Optional[str] = None
    avatar: Optional[str] = None
    background_image: Optional[str] = None


class AdminProfileUpdate(ProfileUpdate):
    email: Optional[str] = None
    is_verified: Optional[bool] = None
    is_admin: Optional[bool] = None


class ProfileOut(LinkFields):
    id: str
    email: str
    name: str = ""
    designation: Optional[str] = None
    avatar: Optional[str] = None
    background_image: Optional[str] = None
    is_verified: bool = False
    is_admin: bool = False
    created_at: Optional[str] = None


class PublicLink(BaseModel):
    link_type: str
    value: str
    href: str


class PublicProfileOut(BaseModel):
    id: str
    name: str = ""
    designation: Optional[str] = None
    avatar: Optional[str] = None
    background_image: Optional[str] = None
    is_verified: bool = False
    links: List[PublicLink] = Field(default_factory=list)


class ClickCreate(BaseModel):
    link_type: str
    link_value: Optional[str] = None


class ClickResult(BaseModel):
    ok: bool
    link_type: Optional[str] = None


class LinkInsight(BaseModel):
    link_type: str
    count: int


class InsightsResponse(BaseModel):
    profile_id: str
    name: str = ""
    total: int = 0
    insights: List[LinkInsight] = Field(default_factory=list)


class ThemeOut(BaseModel):
    id: str
    theme_name: str
    background_image_url: str


class ProfilePage(BaseModel):
    items: List[ProfileOut] = Field(default_factory=list)
    page: int = 1
    total_pages: int = 1
    total: int = 0


class AdminProfileListing(BaseModel):
    verified: ProfilePage
    pending: ProfilePage


class UploadResponse(BaseModel):
    field: str
    url: str
    profile: ProfileOut
