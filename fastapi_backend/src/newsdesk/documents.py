"""
Document models stored in MongoDB, plus the registry that owns their
collections and indexes.

Fields are snake_case in Python and camelCase in storage and on the wire
(``cover_image`` <-> ``coverImage``). ``to_mongo()`` produces the stored shape.
"""

import logging
import math
import re
import threading
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Type
from uuid import uuid4

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from pymongo import ASCENDING, DESCENDING, IndexModel
from pymongo.collection import Collection
from pymongo.database import Database

logger = logging.getLogger(__name__)

DEFAULT_NEWS_SOURCE = "Newsdesk"
DEFAULT_BLOG_AUTHOR = "Newsdesk Team"
WORDS_PER_MINUTE = 200

DEFAULT_ADMIN_PERMISSIONS = ["create", "edit", "delete", "feature", "trend"]
SUPERADMIN_PERMISSIONS = DEFAULT_ADMIN_PERMISSIONS + ["manage_admins"]


def utcnow() -> datetime:
    """Current UTC time at the millisecond precision MongoDB stores."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def slugify(text: str) -> str:
    """'Hello, World!' -> 'hello-world'."""
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def estimate_read_time(content: str) -> int:
    """Minutes to read at WORDS_PER_MINUTE, never below one."""
    words = len(content.split())
    return max(1, math.ceil(words / WORDS_PER_MINUTE))


class Category(str, Enum):
    technology = "Technology"
    business = "Business"
    science = "Science"
    world = "World"
    health = "Health"


class AdminRole(str, Enum):
    admin = "admin"
    superadmin = "superadmin"


class EnquiryStatus(str, Enum):
    new = "new"
    read = "read"
    replied = "replied"
    archived = "archived"


class EnquiryType(str, Enum):
    general = "general"
    support = "support"
    feedback = "feedback"
    partnership = "partnership"
    other = "other"


class SectionType(str, Enum):
    hero = "hero"
    text = "text"
    image = "image"
    video = "video"
    gallery = "gallery"
    cta = "cta"
    features = "features"
    stats = "stats"


class Document(BaseModel):
    """Base class for stored documents."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        arbitrary_types_allowed=True,
    )

    collection_name: ClassVar[str] = ""
    indexes: ClassVar[List[IndexModel]] = []

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def to_mongo(self) -> Dict[str, Any]:
        """Return the document as stored, without unset optional fields."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ModelRegistry:
    """
    Maps collection names to document models.

    Registration is idempotent: registering a model again (including a
    re-imported copy of the same class) keeps the first registration. Two
    different models may not share a collection.
    """

    def __init__(self) -> None:
        self._models: Dict[str, Type[Document]] = {}
        self._lock = threading.Lock()

    def register(self, model: Type[Document]) -> Type[Document]:
        name = model.collection_name
        if not name:
            raise ValueError(f"{model.__name__} does not declare a collection_name")
        with self._lock:
            existing = self._models.get(name)
            if existing is None:
                self._models[name] = model
                return model
            if (existing.__module__, existing.__qualname__) != (model.__module__, model.__qualname__):
                raise ValueError(
                    f"Collection '{name}' is already registered to {existing.__qualname__}"
                )
            return existing

    def get(self, name: str) -> Type[Document]:
        return self._models[name]

    def names(self) -> List[str]:
        return sorted(self._models)

    def collection(self, database: Database, model: Type[Document]) -> Collection:
        if self._models.get(model.collection_name) is None:
            raise KeyError(f"{model.__name__} is not registered")
        return database[model.collection_name]

    def ensure_indexes(self, database: Database) -> None:
        """Create declared indexes; safe to repeat on every new connection."""
        for name, model in sorted(self._models.items()):
            if model.indexes:
                database[name].create_indexes(model.indexes)
                logger.debug("Ensured %d index(es) on %s", len(model.indexes), name)


registry = ModelRegistry()


@registry.register
class NewsArticle(Document):
    collection_name: ClassVar[str] = "news"
    indexes: ClassVar[List[IndexModel]] = [
        IndexModel([("category", ASCENDING), ("publishedAt", DESCENDING)], name="category_published"),
        IndexModel([("isFeatured", ASCENDING), ("publishedAt", DESCENDING)], name="featured_published"),
        IndexModel([("isTrending", ASCENDING), ("views", DESCENDING)], name="trending_views"),
        IndexModel([("publishedAt", DESCENDING)], name="published"),
    ]

    title: str
    summary: str
    content: Optional[str] = None
    category: Category
    source: str = DEFAULT_NEWS_SOURCE
    cover_image: str
    published_at: datetime = Field(default_factory=utcnow)
    is_featured: bool = False
    is_trending: bool = False
    views: int = 0
    tags: List[str] = Field(default_factory=list)


@registry.register
class AdminAccount(Document):
    """
    The single admin identity. Accounts bootstrapped through the shared secret
    carry a ``clerk_id``; accounts created with the setup key carry a
    ``password_hash``. Both are authorized through the same role/permission
    fields.
    """

    collection_name: ClassVar[str] = "admins"
    indexes: ClassVar[List[IndexModel]] = [
        IndexModel([("email", ASCENDING)], unique=True, name="email_unique"),
        IndexModel([("clerkId", ASCENDING)], name="clerk_id"),
    ]

    email: str
    name: Optional[str] = None
    password_hash: Optional[str] = None
    clerk_id: Optional[str] = None
    role: AdminRole = AdminRole.admin
    permissions: List[str] = Field(default_factory=lambda: list(DEFAULT_ADMIN_PERMISSIONS))
    is_active: bool = True
    last_login: Optional[datetime] = None

    @field_validator("email")
    @classmethod
    def _lower_email(cls, value: str) -> str:
        return value.strip().lower()


@registry.register
class UserAccount(Document):
    collection_name: ClassVar[str] = "users"
    indexes: ClassVar[List[IndexModel]] = [
        IndexModel([("clerkId", ASCENDING)], unique=True, name="clerk_id_unique"),
    ]

    clerk_id: str
    email: str
    name: Optional[str] = None
    saved_articles: List[ObjectId] = Field(default_factory=list)


@registry.register
class Enquiry(Document):
    collection_name: ClassVar[str] = "enquiries"
    indexes: ClassVar[List[IndexModel]] = [
        IndexModel([("status", ASCENDING), ("createdAt", DESCENDING)], name="status_created"),
        IndexModel([("email", ASCENDING)], name="email"),
    ]

    name: str
    email: str
    phone: Optional[str] = None
    subject: str
    message: str
    type: EnquiryType = EnquiryType.general
    status: EnquiryStatus = EnquiryStatus.new
    is_important: bool = False
    reply: Optional[str] = None
    replied_at: Optional[datetime] = None
    replied_by: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


@registry.register
class BlogPost(Document):
    collection_name: ClassVar[str] = "blogs"
    indexes: ClassVar[List[IndexModel]] = [
        IndexModel([("slug", ASCENDING)], unique=True, name="slug_unique"),
        IndexModel([("isPublished", ASCENDING), ("publishedAt", DESCENDING)], name="published"),
    ]

    title: str
    slug: str = ""
    excerpt: str
    content: str
    cover_image: str
    author: str = DEFAULT_BLOG_AUTHOR
    category: str = "General"
    tags: List[str] = Field(default_factory=list)
    is_featured: bool = False
    is_published: bool = False
    published_at: Optional[datetime] = None
    views: int = 0
    read_time: int = 5

    @model_validator(mode="after")
    def _derive_fields(self) -> "BlogPost":
        if not self.slug:
            self.slug = slugify(self.title)
        self.read_time = estimate_read_time(self.content)
        if self.is_published and self.published_at is None:
            self.published_at = utcnow()
        return self


class PageSection(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, use_enum_values=True)

    id: str = Field(default_factory=lambda: uuid4().hex[:12])
    type: SectionType
    title: Optional[str] = None
    subtitle: Optional[str] = None
    content: Optional[str] = None
    image_url: Optional[str] = None
    video_url: Optional[str] = None
    button_text: Optional[str] = None
    button_link: Optional[str] = None
    is_active: bool = True
    order: int = 0
    settings: Dict[str, Any] = Field(default_factory=dict)


@registry.register
class Page(Document):
    collection_name: ClassVar[str] = "pages"
    indexes: ClassVar[List[IndexModel]] = [
        IndexModel([("slug", ASCENDING)], unique=True, name="slug_unique"),
    ]

    title: str
    slug: str = ""
    description: Optional[str] = None
    sections: List[PageSection] = Field(default_factory=list)
    is_published: bool = True
    is_system_page: bool = False
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None

    @model_validator(mode="after")
    def _normalize(self) -> "Page":
        self.slug = slugify(self.slug or self.title)
        self.sections = sorted(self.sections, key=lambda s: s.order)
        return self


@registry.register
class SiteSettings(Document):
    collection_name: ClassVar[str] = "site_settings"

    site_name: str = "Newsdesk"
    site_tagline: str = "The news that matters, as it happens"
    logo_url: str = "/logo.png"
    favicon_url: str = "/favicon.ico"
    footer_text: str = "Stay informed with the latest news across technology, business, science, and more."
    copyright_text: str = "Newsdesk. All rights reserved."
    social_links: Dict[str, str] = Field(default_factory=dict)
    contact_info: Dict[str, str] = Field(default_factory=dict)
    enable_newsletter: bool = True
    newsletter_title: str = "Stay Updated"
    newsletter_description: str = "Get the latest news delivered to your inbox."
    meta_title: str = "Newsdesk"
    meta_description: str = "Latest news in technology, business, science, world and health."
    analytics_id: Optional[str] = None
    maintenance_mode: bool = False
    maintenance_message: str = "We are performing scheduled maintenance. Please check back soon."
