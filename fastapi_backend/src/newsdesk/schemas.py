from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from src.newsdesk.documents import AdminRole, Category, EnquiryStatus, EnquiryType, PageSection


class CamelModel(BaseModel):
    """Request bodies use the same camelCase keys as stored documents."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, use_enum_values=True)

    def changes(self) -> Dict[str, Any]:
        """Fields the client actually sent, keyed by storage name."""
        return self.model_dump(by_alias=True, exclude_unset=True, exclude_none=True)


# =========================
# News
# =========================

class NewsCreate(CamelModel):
    title: str = Field(..., min_length=1)
    summary: str = Field(..., min_length=1)
    content: Optional[str] = None
    category: Category
    source: Optional[str] = None
    cover_image: str = Field(..., min_length=1)
    published_at: Optional[datetime] = None
    is_featured: bool = False
    is_trending: bool = False
    tags: List[str] = Field(default_factory=list)


class NewsUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=1)
    summary: Optional[str] = Field(None, min_length=1)
    content: Optional[str] = None
    category: Optional[Category] = None
    source: Optional[str] = None
    cover_image: Optional[str] = Field(None, min_length=1)
    published_at: Optional[datetime] = None
    is_featured: Optional[bool] = None
    is_trending: Optional[bool] = None
    tags: Optional[List[str]] = None


# =========================
# Admin identity
# =========================

class AdminVerifyRequest(CamelModel):
    clerk_id: str = Field(..., min_length=1, description="External identity id")
    email: str = Field(..., min_length=1)
    name: Optional[str] = None


class AdminSetupRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=8, description="Password (min 8 chars)")
    name: Optional[str] = None
    setup_key: str = Field(..., min_length=1)


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class AdminAccountUpdate(CamelModel):
    role: Optional[AdminRole] = None
    permissions: Optional[List[str]] = None
    is_active: Optional[bool] = None


# =========================
# Users
# =========================

class UserSyncRequest(CamelModel):
    clerk_id: str = Field(..., min_length=1)
    email: EmailStr
    name: Optional[str] = None


# =========================
# Enquiries
# =========================

class EnquiryCreate(CamelModel):
    name: str = Field(..., min_length=2)
    email: EmailStr
    phone: Optional[str] = None
    subject: str = Field(..., min_length=3)
    message: str = Field(..., min_length=10)
    type: EnquiryType = EnquiryType.general


class EnquiryStatusUpdate(CamelModel):
    status: EnquiryStatus


class EnquiryReply(CamelModel):
    reply: str = Field(..., min_length=10)


class BulkIds(CamelModel):
    ids: List[str] = Field(..., min_length=1)


class BulkStatusUpdate(BulkIds):
    status: EnquiryStatus


# =========================
# Blogs / pages / settings
# =========================

class BlogCreate(CamelModel):
    title: str = Field(..., min_length=5)
    excerpt: str = Field(..., min_length=20, max_length=300)
    content: str = Field(..., min_length=50)
    cover_image: str = Field(..., min_length=1)
    author: Optional[str] = None
    category: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    is_featured: bool = False
    is_published: bool = False


class BlogUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=5)
    excerpt: Optional[str] = Field(None, min_length=20, max_length=300)
    content: Optional[str] = Field(None, min_length=50)
    cover_image: Optional[str] = None
    author: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    is_featured: Optional[bool] = None
    is_published: Optional[bool] = None


class PageCreate(CamelModel):
    title: str = Field(..., min_length=1)
    slug: Optional[str] = None
    description: Optional[str] = None
    sections: List[PageSection] = Field(default_factory=list)
    is_published: bool = True
    is_system_page: bool = False
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None


class PageUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=1)
    slug: Optional[str] = None
    description: Optional[str] = None
    sections: Optional[List[PageSection]] = None
    is_published: Optional[bool] = None
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None


class SiteSettingsUpdate(CamelModel):
    site_name: Optional[str] = None
    site_tagline: Optional[str] = None
    logo_url: Optional[str] = None
    favicon_url: Optional[str] = None
    footer_text: Optional[str] = None
    copyright_text: Optional[str] = None
    social_links: Optional[Dict[str, str]] = None
    contact_info: Optional[Dict[str, str]] = None
    enable_newsletter: Optional[bool] = None
    newsletter_title: Optional[str] = None
    newsletter_description: Optional[str] = None
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    analytics_id: Optional[str] = None
    maintenance_mode: Optional[bool] = None
    maintenance_message: Optional[str] = None
