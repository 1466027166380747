import hmac
import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional

from bson import ObjectId
from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo import DESCENDING, ReturnDocument
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.newsdesk import db
from src.newsdesk.auth_utils import (
    create_admin_access_token,
    get_current_admin,
    get_user_identity,
    has_permission,
    hash_password,
    is_trusted_admin_request,
    public_admin,
    require_permission,
    verify_password,
)
from src.newsdesk.documents import (
    SUPERADMIN_PERMISSIONS,
    AdminAccount,
    AdminRole,
    BlogPost,
    Category,
    Document,
    Enquiry,
    EnquiryStatus,
    EnquiryType,
    NewsArticle,
    Page,
    SiteSettings,
    UserAccount,
    estimate_read_time,
    registry,
    slugify,
    utcnow,
)
from src.newsdesk.schemas import (
    AdminAccountUpdate,
    AdminSetupRequest,
    AdminVerifyRequest,
    BlogCreate,
    BlogUpdate,
    BulkIds,
    BulkStatusUpdate,
    EnquiryCreate,
    EnquiryReply,
    EnquiryStatusUpdate,
    LoginRequest,
    NewsCreate,
    NewsUpdate,
    PageCreate,
    PageUpdate,
    SiteSettingsUpdate,
    UserSyncRequest,
)
from src.newsdesk.settings import Settings, get_settings, setup_logging, warn_insecure_defaults

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "Health", "description": "Service health checks."},
    {"name": "News", "description": "Public news feed, featured and trending articles."},
    {"name": "Admin", "description": "Admin identity, article CRUD and dashboard stats."},
    {"name": "Auth", "description": "Setup-key bootstrap, login and token verification."},
    {"name": "Users", "description": "Reader profile sync and saved articles."},
    {"name": "Enquiries", "description": "Contact-form submissions and admin replies."},
    {"name": "Content", "description": "Blogs, pages and site settings."},
]

app = FastAPI(
    title="Newsdesk API",
    description=(
        "Backend API for the Newsdesk news platform. "
        "Includes the public news feed, reader saved articles, contact enquiries and admin content management.\n\n"
        "Admin auth: use the `Authorization: Bearer <token>` header. "
        "Reader auth: send the identity provider user id in `x-clerk-user-id`."
    ),
    version="1.0.0",
    openapi_tags=openapi_tags,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =========================
# Errors
# =========================

def _describe_validation(errors: List[Dict[str, Any]]) -> str:
    parts = []
    for err in errors:
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path", "header")]
        field = ".".join(loc)
        parts.append(f"{field}: {err.get('msg')}" if field else str(err.get("msg")))
    return "; ".join(parts) or "Invalid request"


@app.exception_handler(StarletteHTTPException)
async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "error": _describe_validation(exc.errors())},
    )


@app.exception_handler(DuplicateKeyError)
async def _duplicate_error(request: Request, exc: DuplicateKeyError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"success": False, "error": "A record with this value already exists"},
    )


@app.exception_handler(db.ConfigurationError)
@app.exception_handler(db.DatabaseUnavailableError)
@app.exception_handler(PyMongoError)
async def _database_error(request: Request, exc: Exception) -> JSONResponse:
    # Handled inside the middleware stack so the response still carries CORS headers.
    logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": str(exc) or "Database error"},
    )


@app.exception_handler(Exception)
async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("%s %s failed", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": str(exc) or "Server error"},
    )


def _not_found(entity: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{entity} not found")


def _bad_request(msg: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=msg)


def _forbidden(msg: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=msg)


def _object_id(value: str, entity: str) -> ObjectId:
    if not ObjectId.is_valid(value):
        raise _bad_request(f"Invalid {entity} id")
    return ObjectId(value)


def _col(database: Database, model: type) -> Collection:
    return registry.collection(database, model)


def _ok(data: Any = None, **extra: Any) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = db.serialize(data)
    body.update(extra)
    return body


def _insert(collection: Collection, document: Document) -> Dict[str, Any]:
    doc = document.to_mongo()
    doc["_id"] = collection.insert_one(doc).inserted_id
    return doc


def _update_by_id(collection: Collection, oid: ObjectId, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    if not changes:
        return collection.find_one({"_id": oid})
    changes["updatedAt"] = utcnow()
    return collection.find_one_and_update(
        {"_id": oid}, {"$set": changes}, return_document=ReturnDocument.AFTER
    )


def _toggle(collection: Collection, oid: ObjectId, field: str, entity: str) -> Dict[str, Any]:
    doc = collection.find_one({"_id": oid})
    if not doc:
        raise _not_found(entity)
    return _update_by_id(collection, oid, {field: not doc.get(field, False)})


@app.on_event("startup")
def _startup() -> None:
    settings = get_settings()
    setup_logging(settings.log_level)
    warn_insecure_defaults(settings)
    db.get_connection_cache()


@app.on_event("shutdown")
def _shutdown() -> None:
    db.close_connection()


# =========================
# Health
# =========================

@app.get("/", tags=["Health"], summary="Health check")
def health_check() -> Dict[str, str]:
    """Health check endpoint used by the frontend to verify backend availability."""
    return {"message": "Healthy"}


@app.get("/health", tags=["Health"], summary="Configuration and database status")
def health(settings: Settings = Depends(get_settings)) -> Dict[str, Any]:
    """Report which configuration values are present and whether MongoDB answers."""

    def _secret_state(name: str) -> str:
        return "using_default" if settings.uses_default(name) else "configured"

    environment = {
        "mongodb": "configured" if settings.mongodb_uri else "missing",
        "jwt_secret": _secret_state("jwt_secret"),
        "admin_secret": _secret_state("admin_secret"),
        "admin_setup_key": _secret_state("admin_setup_key"),
    }

    if not settings.mongodb_uri:
        database = {"status": "not_configured", "message": "MONGODB_URI not set"}
    else:
        try:
            db.get_connection()
            database = {"status": "connected", "message": "Successfully connected to MongoDB"}
        except (db.ConfigurationError, db.DatabaseUnavailableError, PyMongoError) as e:
            database = {"status": "error", "message": str(e)}

    return {
        "success": True,
        "message": "Newsdesk API health check",
        "timestamp": utcnow().isoformat(),
        "version": app.version,
        "environment": environment,
        "database": database,
    }


# =========================
# News (public)
# =========================

NEWS_PAGE_SIZE = 12
FEATURED_LIMIT = 5
TRENDING_LIMIT = 10


def _news_filter(category: Optional[str] = None, day: Optional[date] = None, tag: Optional[str] = None) -> Dict[str, Any]:
    query: Dict[str, Any] = {}
    if category and category != "All":
        query["category"] = category
    if day:
        # Stored timestamps are naive UTC.
        start = datetime.combine(day, time.min)
        query["publishedAt"] = {"$gte": start, "$lt": start + timedelta(days=1)}
    if tag:
        query["tags"] = tag
    return query


def _featured(news: Collection, limit: int) -> List[Dict[str, Any]]:
    return list(news.find({"isFeatured": True}).sort([("publishedAt", DESCENDING)]).limit(limit))


def _trending(news: Collection, limit: int) -> List[Dict[str, Any]]:
    return list(
        news.find({"isTrending": True}).sort([("views", DESCENDING), ("publishedAt", DESCENDING)]).limit(limit)
    )


@app.get("/news", tags=["News"], summary="List news")
def list_news(
    category: Optional[str] = Query(None, description="Category filter; 'All' disables it"),
    day: Optional[date] = Query(None, alias="date", description="Only articles published on this UTC day"),
    tag: Optional[str] = Query(None, description="Only articles carrying this tag"),
    feed: Optional[str] = Query(None, alias="type", pattern="^(featured|trending)$"),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=100, description="Defaults to 12, or the feed's own default with `type`"),
    database: Database = Depends(db.get_db),
) -> Dict[str, Any]:
    """List published news, newest first. `type=featured|trending` returns the curated feeds."""
    news = _col(database, NewsArticle)
    if feed == "featured":
        return _ok(_featured(news, limit or FEATURED_LIMIT))
    if feed == "trending":
        return _ok(_trending(news, limit or TRENDING_LIMIT))

    items, pagination = db.fetch_page(
        news,
        _news_filter(category, day, tag),
        [("publishedAt", DESCENDING), ("_id", DESCENDING)],
        page,
        limit or NEWS_PAGE_SIZE,
    )
    return _ok(items, pagination=pagination)


@app.get("/featured", tags=["News"], summary="Featured news")
def featured_news(limit: int = Query(FEATURED_LIMIT, ge=1, le=50), database: Database = Depends(db.get_db)) -> Dict[str, Any]:
    return _ok(_featured(_col(database, NewsArticle), limit))


@app.get("/trending", tags=["News"], summary="Trending news")
def trending_news(limit: int = Query(TRENDING_LIMIT, ge=1, le=50), database: Database = Depends(db.get_db)) -> Dict[str, Any]:
    return _ok(_trending(_col(database, NewsArticle), limit))


@app.get("/categories", tags=["News"], summary="Categories with article counts")
def list_categories(database: Database = Depends(db.get_db)) -> Dict[str, Any]:
    counts = {row["_id"]: row["count"] for row in db.group_counts(_col(database, NewsArticle), "category")}
    return _ok([{"name": c.value, "count": counts.get(c.value, 0)} for c in Category])


@app.get("/news/{news_id}", tags=["News"], summary="Get news article")
def get_news(news_id: str, database: Database = Depends(db.get_db)) -> Dict[str, Any]:
    """Return one article and count the read (every request counts once)."""
    oid = _object_id(news_id, "news")
    article = _col(database, NewsArticle).find_one_and_update(
        {"_id": oid}, {"$inc": {"views": 1}}, return_document=ReturnDocument.AFTER
    )
    if not article:
        raise _not_found("News")
    return _ok(article)


# =========================
# News (admin)
# =========================

@app.get("/admin/news", tags=["Admin"], summary="List all news for admin")
def admin_list_news(
    category: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    database: Database = Depends(db.get_db),
    _: Dict[str, Any] = Depends(get_current_admin),
) -> Dict[str, Any]:
    items, pagination = db.fetch_page(
        _col(database, NewsArticle),
        _news_filter(category),
        [("createdAt", DESCENDING), ("_id", DESCENDING)],
        page,
        limit,
    )
    return _ok(items, pagination=pagination)


@app.post("/news", status_code=status.HTTP_201_CREATED, tags=["Admin"], summary="Create news")
@app.post("/admin/news", status_code=status.HTTP_201_CREATED, tags=["Admin"], summary="Create news")
def create_news(
    payload: NewsCreate,
    database: Database = Depends(db.get_db),
    admin: Dict[str, Any] = Depends(require_permission("create")),
) -> Dict[str, Any]:
    """Admin: create an article. Category must be one of the fixed categories."""
    article = _insert(_col(database, NewsArticle), NewsArticle(**payload.model_dump(exclude_none=True)))
    logger.info("News %s created by %s", article["_id"], admin.get("email"))
    return _ok(article)


@app.get("/admin/news/{news_id}", tags=["Admin"], summary="Get news without counting a view")
def admin_get_news(
    news_id: str,
    database: Database = Depends(db.get_db),
    _: Dict[str, Any] = Depends(get_current_admin),
) -> Dict[str, Any]:
    article = _col(database, NewsArticle).find_one({"_id": _object_id(news_id, "news")})
    if not article:
        raise _not_found("News")
    return _ok(article)


@app.put("/news/{news_id}", tags=["Admin"], summary="Update news")
@app.put("/admin/news/{news_id}", tags=["Admin"], summary="Update news")
def update_news(
    news_id: str,
    payload: NewsUpdate,
    database: Database = Depends(db.get_db),
    _: Dict[str, Any] = Depends(require_permission("edit")),
) -> Dict[str, Any]:
    oid = _object_id(news_id, "news")
    article = _update_by_id(_col(database, NewsArticle), oid, payload.changes())
    if not article:
        raise _not_found("News")
    return _ok(article)


@app.delete("/news/{news_id}", tags=["Admin"], summary="Delete news")
@app.delete("/admin/news/{news_id}", tags=["Admin"], summary="Delete news")
def delete_news(
    news_id: str,
    database: Database = Depends(db.get_db),
    admin: Dict[str, Any] = Depends(require_permission("delete")),
) -> Dict[str, Any]:
    """Admin: delete an article. Users' saved sets are left as they are."""
    result = _col(database, NewsArticle).delete_one({"_id": _object_id(news_id, "news")})
    if result.deleted_count == 0:
        raise _not_found("News")
    logger.info("News %s deleted by %s", news_id, admin.get("email"))
    return _ok(message="News deleted successfully")


_TOGGLE_ACTIONS = {
    "featured": ("isFeatured", "feature"),
    "trending": ("isTrending", "trend"),
}


@app.patch("/news/{news_id}", tags=["Admin"], summary="Toggle featured/trending")
@app.patch("/admin/news/{news_id}", tags=["Admin"], summary="Toggle featured/trending")
def toggle_news_flag(
    news_id: str,
    action: Optional[str] = Query(None, description="featured or trending"),
    database: Database = Depends(db.get_db),
    admin: Dict[str, Any] = Depends(get_current_admin),
) -> Dict[str, Any]:
    if action not in _TOGGLE_ACTIONS:
        raise _bad_request("Invalid action")
    field, permission = _TOGGLE_ACTIONS[action]
    if not has_permission(admin, permission):
        raise _forbidden(f"Permission '{permission}' required")
    return _ok(_toggle(_col(database, NewsArticle), _object_id(news_id, "news"), field, "News"))


@app.get("/admin/stats", tags=["Admin"], summary="Dashboard statistics")
def admin_stats(
    database: Database = Depends(db.get_db),
    _: Dict[str, Any] = Depends(get_current_admin),
) -> Dict[str, Any]:
    news = _col(database, NewsArticle)
    views = list(news.aggregate([{"$group": {"_id": None, "total": {"$sum": "$views"}}}]))
    return _ok(
        {
            "totalNews": news.count_documents({}),
            "featuredNews": news.count_documents({"isFeatured": True}),
            "trendingNews": news.count_documents({"isTrending": True}),
            "totalViews": views[0]["total"] if views else 0,
            "newsByCategory": db.group_counts(news, "category"),
        }
    )


# =========================
# Admin identity
# =========================

@app.post("/admin/verify", tags=["Admin"], summary="Verify admin via shared secret")
def verify_admin(
    payload: AdminVerifyRequest,
    x_admin_secret: Optional[str] = Header(None),
    database: Database = Depends(db.get_db),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    """
    Shared-secret bootstrap for admins signed in through the identity provider.

    The admin is looked up by external id, then by email (attaching the external
    id); it is created with the default permission set on first call.
    """
    if not is_trusted_admin_request(x_admin_secret, payload.email, settings):
        raise _forbidden("Not authorized as admin")

    admins = _col(database, AdminAccount)
    email = payload.email.strip().lower()
    admin = admins.find_one({"clerkId": payload.clerk_id}) or admins.find_one({"email": email})
    if admin is None:
        admin = _insert(admins, AdminAccount(email=email, name=payload.name, clerk_id=payload.clerk_id))
        logger.info("Admin %s created through shared-secret verification", email)
    elif not admin.get("clerkId"):
        admin = _update_by_id(admins, admin["_id"], {"clerkId": payload.clerk_id})

    if not admin.get("isActive", True):
        raise _forbidden("Admin account is disabled")
    return _ok(public_admin(admin), token=create_admin_access_token(admin, settings))


@app.post("/auth/setup", status_code=status.HTTP_201_CREATED, tags=["Auth"], summary="Create a superadmin")
def setup_admin(
    payload: AdminSetupRequest,
    database: Database = Depends(db.get_db),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    """Create a superadmin account; requires the configured setup key."""
    if not hmac.compare_digest(payload.setup_key.encode(), settings.admin_setup_key.encode()):
        raise _forbidden("Invalid setup key")

    admins = _col(database, AdminAccount)
    email = payload.email.lower()
    if admins.find_one({"email": email}):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Admin with this email already exists")

    admin = _insert(
        admins,
        AdminAccount(
            email=email,
            name=payload.name or "Admin",
            password_hash=hash_password(payload.password),
            role=AdminRole.superadmin,
            permissions=list(SUPERADMIN_PERMISSIONS),
        ),
    )
    logger.info("Superadmin %s created with setup key", email)
    return _ok(
        {"token": create_admin_access_token(admin, settings), "admin": public_admin(admin)},
        message="Admin created successfully",
    )


@app.post("/auth/login", tags=["Auth"], summary="Admin login")
def login(
    payload: LoginRequest,
    database: Database = Depends(db.get_db),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    admins = _col(database, AdminAccount)
    admin = admins.find_one({"email": payload.email.lower()})
    if not admin or not verify_password(payload.password, admin.get("passwordHash")):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if not admin.get("isActive", True):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account is disabled")

    admin = _update_by_id(admins, admin["_id"], {"lastLogin": utcnow()})
    return _ok(
        {"token": create_admin_access_token(admin, settings), "admin": public_admin(admin)},
        message="Login successful",
    )


@app.get("/auth/verify", tags=["Auth"], summary="Verify admin token")
def verify_token(admin: Dict[str, Any] = Depends(get_current_admin)) -> Dict[str, Any]:
    return _ok({"admin": public_admin(admin)})


@app.get("/admin/accounts", tags=["Admin"], summary="List admin accounts")
def list_admin_accounts(
    database: Database = Depends(db.get_db),
    _: Dict[str, Any] = Depends(require_permission("manage_admins")),
) -> Dict[str, Any]:
    admins = _col(database, AdminAccount).find().sort([("createdAt", DESCENDING)])
    return _ok([public_admin(a) for a in admins])


@app.patch("/admin/accounts/{admin_id}", tags=["Admin"], summary="Update admin role, permissions or status")
def update_admin_account(
    admin_id: str,
    payload: AdminAccountUpdate,
    database: Database = Depends(db.get_db),
    current: Dict[str, Any] = Depends(require_permission("manage_admins")),
) -> Dict[str, Any]:
    oid = _object_id(admin_id, "admin")
    if oid == current["_id"] and payload.is_active is False:
        raise _bad_request("You cannot deactivate your own account")
    admin = _update_by_id(_col(database, AdminAccount), oid, payload.changes())
    if not admin:
        raise _not_found("Admin")
    return _ok(public_admin(admin))


# =========================
# Users
# =========================

def _saved_articles(database: Database, ids: List[ObjectId]) -> List[Dict[str, Any]]:
    """Resolve saved ids in saved order, skipping articles deleted since."""
    if not ids:
        return []
    found = {a["_id"]: a for a in _col(database, NewsArticle).find({"_id": {"$in": ids}})}
    return [found[i] for i in ids if i in found]


@app.post("/user/sync", tags=["Users"], summary="Create or update the reader profile")
def sync_user(payload: UserSyncRequest, database: Database = Depends(db.get_db)) -> Dict[str, Any]:
    now = utcnow()
    changes: Dict[str, Any] = {"email": payload.email.lower(), "updatedAt": now}
    if payload.name:
        changes["name"] = payload.name
    user = _col(database, UserAccount).find_one_and_update(
        {"clerkId": payload.clerk_id},
        {"$set": changes, "$setOnInsert": {"savedArticles": [], "createdAt": now}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return _ok(user)


@app.get("/user/profile", tags=["Users"], summary="Reader profile with saved articles")
def user_profile(clerk_id: str = Depends(get_user_identity), database: Database = Depends(db.get_db)) -> Dict[str, Any]:
    user = _col(database, UserAccount).find_one({"clerkId": clerk_id})
    if not user:
        raise _not_found("User")
    user["savedArticles"] = _saved_articles(database, user.get("savedArticles", []))
    return _ok(user)


@app.post("/user/save/{news_id}", tags=["Users"], summary="Save or unsave an article")
def toggle_saved_article(
    news_id: str,
    clerk_id: str = Depends(get_user_identity),
    database: Database = Depends(db.get_db),
) -> Dict[str, Any]:
    """Toggle membership of the article in the reader's saved set."""
    oid = _object_id(news_id, "news")
    users = _col(database, UserAccount)
    user = users.find_one({"clerkId": clerk_id})
    if not user:
        raise _not_found("User")
    if _col(database, NewsArticle).find_one({"_id": oid}, {"_id": 1}) is None:
        raise _not_found("News")

    was_saved = oid in user.get("savedArticles", [])
    operator = "$pull" if was_saved else "$addToSet"
    users.update_one({"_id": user["_id"]}, {operator: {"savedArticles": oid}, "$set": {"updatedAt": utcnow()}})
    return _ok(
        {"isSaved": not was_saved},
        message="Article removed from saved" if was_saved else "Article saved",
    )


@app.get("/user/saved", tags=["Users"], summary="Saved articles")
def saved_articles(clerk_id: str = Depends(get_user_identity), database: Database = Depends(db.get_db)) -> Dict[str, Any]:
    user = _col(database, UserAccount).find_one({"clerkId": clerk_id})
    if not user:
        return _ok([])
    return _ok(_saved_articles(database, user.get("savedArticles", [])))


# =========================
# Enquiries
# =========================

@app.post("/enquiries", status_code=status.HTTP_201_CREATED, tags=["Enquiries"], summary="Submit enquiry")
def submit_enquiry(
    payload: EnquiryCreate,
    request: Request,
    user_agent: Optional[str] = Header(None),
    database: Database = Depends(db.get_db),
) -> Dict[str, Any]:
    enquiry = Enquiry(
        name=payload.name.strip(),
        email=payload.email.lower(),
        phone=payload.phone.strip() if payload.phone else None,
        subject=payload.subject.strip(),
        message=payload.message.strip(),
        type=payload.type,
        ip_address=request.client.host if request.client else None,
        user_agent=user_agent,
    )
    _insert(_col(database, Enquiry), enquiry)
    return _ok(message="Enquiry submitted successfully")


@app.get("/enquiries", tags=["Enquiries"], summary="List enquiries")
def list_enquiries(
    status_filter: Optional[EnquiryStatus] = Query(None, alias="status"),
    type_filter: Optional[EnquiryType] = Query(None, alias="type"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    database: Database = Depends(db.get_db),
    _: Dict[str, Any] = Depends(get_current_admin),
) -> Dict[str, Any]:
    enquiries = _col(database, Enquiry)
    query: Dict[str, Any] = {}
    if status_filter:
        query["status"] = status_filter.value
    if type_filter:
        query["type"] = type_filter.value
    items, pagination = db.fetch_page(enquiries, query, [("createdAt", DESCENDING), ("_id", DESCENDING)], page, limit)
    unread = enquiries.count_documents({"status": EnquiryStatus.new.value})
    return _ok(items, pagination=pagination, unreadCount=unread)


@app.get("/enquiries/stats", tags=["Enquiries"], summary="Enquiry statistics")
def enquiry_stats(
    database: Database = Depends(db.get_db),
    _: Dict[str, Any] = Depends(get_current_admin),
) -> Dict[str, Any]:
    enquiries = _col(database, Enquiry)
    return _ok(
        {
            "total": enquiries.count_documents({}),
            "byStatus": {row["_id"]: row["count"] for row in db.group_counts(enquiries, "status")},
            "byType": {row["_id"]: row["count"] for row in db.group_counts(enquiries, "type")},
        }
    )


@app.post("/enquiries/bulk-delete", tags=["Enquiries"], summary="Delete several enquiries")
def bulk_delete_enquiries(
    payload: BulkIds,
    database: Database = Depends(db.get_db),
    _: Dict[str, Any] = Depends(get_current_admin),
) -> Dict[str, Any]:
    ids = [_object_id(i, "enquiry") for i in payload.ids]
    result = _col(database, Enquiry).delete_many({"_id": {"$in": ids}})
    return _ok(message=f"{result.deleted_count} enquiries deleted")


@app.post("/enquiries/bulk-status", tags=["Enquiries"], summary="Set status on several enquiries")
def bulk_update_enquiry_status(
    payload: BulkStatusUpdate,
    database: Database = Depends(db.get_db),
    _: Dict[str, Any] = Depends(get_current_admin),
) -> Dict[str, Any]:
    ids = [_object_id(i, "enquiry") for i in payload.ids]
    result = _col(database, Enquiry).update_many(
        {"_id": {"$in": ids}}, {"$set": {"status": payload.status, "updatedAt": utcnow()}}
    )
    return _ok(message=f"{result.modified_count} enquiries updated")


@app.get("/enquiries/{enquiry_id}", tags=["Enquiries"], summary="Get enquiry")
def get_enquiry(
    enquiry_id: str,
    database: Database = Depends(db.get_db),
    _: Dict[str, Any] = Depends(get_current_admin),
) -> Dict[str, Any]:
    """Opening a new enquiry marks it as read."""
    enquiries = _col(database, Enquiry)
    oid = _object_id(enquiry_id, "enquiry")
    enquiry = enquiries.find_one({"_id": oid})
    if not enquiry:
        raise _not_found("Enquiry")
    if enquiry.get("status") == EnquiryStatus.new.value:
        enquiry = _update_by_id(enquiries, oid, {"status": EnquiryStatus.read.value})
    return _ok(enquiry)


@app.patch("/enquiries/{enquiry_id}/status", tags=["Enquiries"], summary="Update enquiry status")
def update_enquiry_status(
    enquiry_id: str,
    payload: EnquiryStatusUpdate,
    database: Database = Depends(db.get_db),
    _: Dict[str, Any] = Depends(get_current_admin),
) -> Dict[str, Any]:
    enquiry = _update_by_id(_col(database, Enquiry), _object_id(enquiry_id, "enquiry"), {"status": payload.status})
    if not enquiry:
        raise _not_found("Enquiry")
    return _ok(enquiry, message="Status updated")


@app.patch("/enquiries/{enquiry_id}/important", tags=["Enquiries"], summary="Toggle important flag")
def toggle_enquiry_important(
    enquiry_id: str,
    database: Database = Depends(db.get_db),
    _: Dict[str, Any] = Depends(get_current_admin),
) -> Dict[str, Any]:
    enquiry = _toggle(_col(database, Enquiry), _object_id(enquiry_id, "enquiry"), "isImportant", "Enquiry")
    label = "important" if enquiry["isImportant"] else "not important"
    return _ok(enquiry, message=f"Marked as {label}")


@app.post("/enquiries/{enquiry_id}/reply", tags=["Enquiries"], summary="Reply to enquiry")
def reply_to_enquiry(
    enquiry_id: str,
    payload: EnquiryReply,
    database: Database = Depends(db.get_db),
    admin: Dict[str, Any] = Depends(get_current_admin),
) -> Dict[str, Any]:
    """Store the reply and mark the enquiry replied. Delivery is out of band."""
    enquiry = _update_by_id(
        _col(database, Enquiry),
        _object_id(enquiry_id, "enquiry"),
        {
            "reply": payload.reply.strip(),
            "repliedAt": utcnow(),
            "repliedBy": admin.get("email") or "Admin",
            "status": EnquiryStatus.replied.value,
        },
    )
    if not enquiry:
        raise _not_found("Enquiry")
    return _ok(enquiry, message="Reply saved")


@app.delete("/enquiries/{enquiry_id}", tags=["Enquiries"], summary="Delete enquiry")
def delete_enquiry(
    enquiry_id: str,
    database: Database = Depends(db.get_db),
    _: Dict[str, Any] = Depends(get_current_admin),
) -> Dict[str, Any]:
    result = _col(database, Enquiry).delete_one({"_id": _object_id(enquiry_id, "enquiry")})
    if result.deleted_count == 0:
        raise _not_found("Enquiry")
    return _ok(message="Enquiry deleted")


# =========================
# Blogs
# =========================

@app.get("/blogs", tags=["Content"], summary="List published blogs")
def list_blogs(
    category: Optional[str] = Query(None),
    featured: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    database: Database = Depends(db.get_db),
) -> Dict[str, Any]:
    query: Dict[str, Any] = {"isPublished": True}
    if category:
        query["category"] = category
    if featured:
        query["isFeatured"] = True
    items, pagination = db.fetch_page(
        _col(database, BlogPost), query, [("publishedAt", DESCENDING), ("_id", DESCENDING)], page, limit
    )
    return _ok(items, pagination=pagination)


@app.get("/blogs/slug/{slug}", tags=["Content"], summary="Get published blog by slug")
def get_blog_by_slug(slug: str, database: Database = Depends(db.get_db)) -> Dict[str, Any]:
    blog = _col(database, BlogPost).find_one_and_update(
        {"slug": slug, "isPublished": True}, {"$inc": {"views": 1}}, return_document=ReturnDocument.AFTER
    )
    if not blog:
        raise _not_found("Blog")
    return _ok(blog)


@app.get("/blogs/admin/all", tags=["Content"], summary="List all blogs for admin")
def admin_list_blogs(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    database: Database = Depends(db.get_db),
    _: Dict[str, Any] = Depends(get_current_admin),
) -> Dict[str, Any]:
    items, pagination = db.fetch_page(
        _col(database, BlogPost), {}, [("createdAt", DESCENDING), ("_id", DESCENDING)], page, limit
    )
    return _ok(items, pagination=pagination)


@app.get("/blogs/{blog_id}", tags=["Content"], summary="Get blog by id")
def get_blog(blog_id: str, database: Database = Depends(db.get_db)) -> Dict[str, Any]:
    blog = _col(database, BlogPost).find_one({"_id": _object_id(blog_id, "blog")})
    if not blog:
        raise _not_found("Blog")
    return _ok(blog)


@app.post("/blogs", status_code=status.HTTP_201_CREATED, tags=["Content"], summary="Create blog")
def create_blog(
    payload: BlogCreate,
    database: Database = Depends(db.get_db),
    _: Dict[str, Any] = Depends(require_permission("create")),
) -> Dict[str, Any]:
    """Admin: create a blog post. The slug and read time derive from title and content."""
    blog = _insert(_col(database, BlogPost), BlogPost(**payload.model_dump(exclude_none=True)))
    return _ok(blog, message="Blog created")


@app.put("/blogs/{blog_id}", tags=["Content"], summary="Update blog")
def update_blog(
    blog_id: str,
    payload: BlogUpdate,
    database: Database = Depends(db.get_db),
    _: Dict[str, Any] = Depends(require_permission("edit")),
) -> Dict[str, Any]:
    blogs = _col(database, BlogPost)
    oid = _object_id(blog_id, "blog")
    existing = blogs.find_one({"_id": oid})
    if not existing:
        raise _not_found("Blog")

    changes = payload.changes()
    if "title" in changes:
        changes["slug"] = slugify(changes["title"])
    if "content" in changes:
        changes["readTime"] = estimate_read_time(changes["content"])
    if changes.get("isPublished") and not existing.get("publishedAt"):
        changes["publishedAt"] = utcnow()
    return _ok(_update_by_id(blogs, oid, changes), message="Blog updated")


@app.delete("/blogs/{blog_id}", tags=["Content"], summary="Delete blog")
def delete_blog(
    blog_id: str,
    database: Database = Depends(db.get_db),
    _: Dict[str, Any] = Depends(require_permission("delete")),
) -> Dict[str, Any]:
    result = _col(database, BlogPost).delete_one({"_id": _object_id(blog_id, "blog")})
    if result.deleted_count == 0:
        raise _not_found("Blog")
    return _ok(message="Blog deleted")


@app.patch("/blogs/{blog_id}/toggle-publish", tags=["Content"], summary="Publish or unpublish blog")
def toggle_blog_publish(
    blog_id: str,
    database: Database = Depends(db.get_db),
    _: Dict[str, Any] = Depends(require_permission("edit")),
) -> Dict[str, Any]:
    blogs = _col(database, BlogPost)
    oid = _object_id(blog_id, "blog")
    blog = blogs.find_one({"_id": oid})
    if not blog:
        raise _not_found("Blog")
    changes: Dict[str, Any] = {"isPublished": not blog.get("isPublished", False)}
    if changes["isPublished"] and not blog.get("publishedAt"):
        changes["publishedAt"] = utcnow()
    blog = _update_by_id(blogs, oid, changes)
    return _ok(blog, message="Blog published" if blog["isPublished"] else "Blog unpublished")


@app.patch("/blogs/{blog_id}/toggle-featured", tags=["Content"], summary="Feature or unfeature blog")
def toggle_blog_featured(
    blog_id: str,
    database: Database = Depends(db.get_db),
    _: Dict[str, Any] = Depends(require_permission("feature")),
) -> Dict[str, Any]:
    return _ok(_toggle(_col(database, BlogPost), _object_id(blog_id, "blog"), "isFeatured", "Blog"))


# =========================
# Pages
# =========================

@app.get("/pages", tags=["Content"], summary="List published pages")
def list_pages(database: Database = Depends(db.get_db)) -> Dict[str, Any]:
    pages = _col(database, Page).find(
        {"isPublished": True}, {"title": 1, "slug": 1, "description": 1}
    ).sort([("title", 1)])
    return _ok(list(pages))


@app.get("/pages/slug/{slug}", tags=["Content"], summary="Get published page by slug")
def get_page_by_slug(slug: str, database: Database = Depends(db.get_db)) -> Dict[str, Any]:
    page = _col(database, Page).find_one({"slug": slug, "isPublished": True})
    if not page:
        raise _not_found("Page")
    return _ok(page)


@app.get("/pages/admin/all", tags=["Content"], summary="List all pages for admin")
def admin_list_pages(
    database: Database = Depends(db.get_db),
    _: Dict[str, Any] = Depends(get_current_admin),
) -> Dict[str, Any]:
    return _ok(list(_col(database, Page).find().sort([("createdAt", DESCENDING)])))


@app.post("/pages", status_code=status.HTTP_201_CREATED, tags=["Content"], summary="Create page")
def create_page(
    payload: PageCreate,
    database: Database = Depends(db.get_db),
    _: Dict[str, Any] = Depends(require_permission("create")),
) -> Dict[str, Any]:
    page = _insert(_col(database, Page), Page(**payload.model_dump(exclude_none=True)))
    return _ok(page, message="Page created")


@app.put("/pages/{page_id}", tags=["Content"], summary="Update page")
def update_page(
    page_id: str,
    payload: PageUpdate,
    database: Database = Depends(db.get_db),
    _: Dict[str, Any] = Depends(require_permission("edit")),
) -> Dict[str, Any]:
    changes = payload.changes()
    if "slug" in changes:
        changes["slug"] = slugify(changes["slug"])
    if "sections" in changes:
        changes["sections"] = sorted(changes["sections"], key=lambda s: s.get("order", 0))
    page = _update_by_id(_col(database, Page), _object_id(page_id, "page"), changes)
    if not page:
        raise _not_found("Page")
    return _ok(page, message="Page updated")


@app.delete("/pages/{page_id}", tags=["Content"], summary="Delete page")
def delete_page(
    page_id: str,
    database: Database = Depends(db.get_db),
    _: Dict[str, Any] = Depends(require_permission("delete")),
) -> Dict[str, Any]:
    pages = _col(database, Page)
    oid = _object_id(page_id, "page")
    page = pages.find_one({"_id": oid})
    if not page:
        raise _not_found("Page")
    if page.get("isSystemPage"):
        raise _bad_request("System pages cannot be deleted")
    pages.delete_one({"_id": oid})
    return _ok(message="Page deleted")


# =========================
# Site settings
# =========================

@app.get("/settings", tags=["Content"], summary="Get site settings")
def get_site_settings(database: Database = Depends(db.get_db)) -> Dict[str, Any]:
    """Return the settings singleton, creating it with defaults on first read."""
    settings_col = _col(database, SiteSettings)
    current = settings_col.find_one()
    if not current:
        current = _insert(settings_col, SiteSettings())
    return _ok(current)


@app.put("/settings", tags=["Content"], summary="Update site settings")
def update_site_settings(
    payload: SiteSettingsUpdate,
    database: Database = Depends(db.get_db),
    _: Dict[str, Any] = Depends(require_permission("edit")),
) -> Dict[str, Any]:
    settings_col = _col(database, SiteSettings)
    current = settings_col.find_one()
    if not current:
        current = _insert(settings_col, SiteSettings(**payload.model_dump(exclude_none=True)))
    else:
        current = _update_by_id(settings_col, current["_id"], payload.changes())
    return _ok(current, message="Settings updated")
