from typing import Any, Callable, Dict, List, Optional

import mongomock
import pytest
from fastapi.testclient import TestClient

from src.newsdesk import db
from src.newsdesk.auth_utils import create_admin_access_token, hash_password
from src.newsdesk.documents import AdminAccount, AdminRole, NewsArticle, SUPERADMIN_PERMISSIONS, registry
from src.newsdesk.main import app
from src.newsdesk.settings import Settings, get_settings

ADMIN_SECRET = "test-admin-secret"
SETUP_KEY = "test-setup-key"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        mongodb_uri="mongodb://localhost:27017",
        mongodb_db="newsdesk_test",
        jwt_secret="test-jwt-secret",
        admin_secret=ADMIN_SECRET,
        admin_setup_key=SETUP_KEY,
        admin_email_allowlist=["chief@newsroom.io"],
        db_retry_delay_seconds=0,
    )


@pytest.fixture
def mongo_client() -> mongomock.MongoClient:
    return mongomock.MongoClient()


@pytest.fixture
def database(settings, mongo_client):
    mongo_client.drop_database(settings.mongodb_db)
    cache = db.init_connection_cache(settings, client_factory=lambda uri, **kwargs: mongo_client)
    yield cache.get_database()
    db.close_connection()
    mongo_client.drop_database(settings.mongodb_db)


@pytest.fixture
def client(settings, database):
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


@pytest.fixture
def make_admin(database, settings) -> Callable[..., Dict[str, Any]]:
    """Insert an admin and return its document with a ready-to-use ``headers`` entry."""

    def _make(
        email: str = "editor@newsroom.io",
        role: AdminRole = AdminRole.admin,
        permissions: Optional[List[str]] = None,
        password: Optional[str] = None,
        is_active: bool = True,
    ) -> Dict[str, Any]:
        account = AdminAccount(
            email=email,
            role=role,
            is_active=is_active,
            password_hash=hash_password(password) if password else None,
        )
        if permissions is not None:
            account.permissions = permissions
        doc = account.to_mongo()
        registry.collection(database, AdminAccount).insert_one(doc)
        token = create_admin_access_token(doc, settings)
        doc["headers"] = {"Authorization": f"Bearer {token}"}
        return doc

    return _make


@pytest.fixture
def superadmin(make_admin) -> Dict[str, Any]:
    return make_admin(email="root@newsroom.io", role=AdminRole.superadmin, permissions=list(SUPERADMIN_PERMISSIONS))


@pytest.fixture
def auth_headers(superadmin) -> Dict[str, str]:
    return superadmin["headers"]


@pytest.fixture
def insert_news(database) -> Callable[..., Dict[str, Any]]:
    def _insert(**fields: Any) -> Dict[str, Any]:
        values = {
            "title": "Quantum chips reach new milestone",
            "summary": "Researchers report a stable 1000-qubit processor.",
            "category": "Technology",
            "cover_image": "http://images.newsroom.io/q.jpg",
        }
        values.update(fields)
        doc = NewsArticle(**values).to_mongo()
        registry.collection(database, NewsArticle).insert_one(doc)
        return doc

    return _insert
