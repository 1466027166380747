from datetime import datetime, timedelta

from bson import ObjectId

from src.newsdesk.documents import NewsArticle, registry


def _story(number: int, base: datetime) -> dict:
    return {"title": f"Story {number}", "published_at": base + timedelta(minutes=number)}


# =========================
# Create
# =========================

def test_create_news_applies_defaults(client, auth_headers):
    body = {
        "title": "Quantum chips reach new milestone",
        "summary": "Researchers report a stable 1000-qubit processor.",
        "category": "Technology",
        "coverImage": "https://images.newsroom.io/quantum.jpg",
    }

    resp = client.post("/news", json=body, headers=auth_headers)

    assert resp.status_code == 201
    data = resp.json()["data"]
    assert ObjectId.is_valid(data["_id"])
    assert data["isFeatured"] is False
    assert data["isTrending"] is False
    assert data["views"] == 0
    assert data["source"] == "Newsdesk"
    assert data["publishedAt"]


def test_create_news_rejects_unknown_category(client, auth_headers):
    body = {"title": "T", "summary": "S", "category": "Sports", "coverImage": "http://x"}

    resp = client.post("/news", json=body, headers=auth_headers)

    assert resp.status_code == 400
    assert resp.json()["success"] is False
    assert "category" in resp.json()["error"]


def test_create_news_requires_cover_image(client, auth_headers):
    body = {"title": "T", "summary": "S", "category": "Technology"}

    assert client.post("/admin/news", json=body, headers=auth_headers).status_code == 400


def test_create_news_requires_token(client):
    body = {"title": "T", "summary": "S", "category": "Technology", "coverImage": "http://x"}

    resp = client.post("/news", json=body)

    assert resp.status_code == 401
    assert resp.json() == {"success": False, "error": "No token provided"}


# =========================
# Read
# =========================

def test_every_read_counts_a_view(client, insert_news):
    article = insert_news()

    client.get(f"/news/{article['_id']}")
    resp = client.get(f"/news/{article['_id']}")

    assert resp.status_code == 200
    assert resp.json()["data"]["views"] == 2


def test_admin_read_does_not_count_a_view(client, insert_news, auth_headers):
    article = insert_news()

    resp = client.get(f"/admin/news/{article['_id']}", headers=auth_headers)

    assert resp.json()["data"]["views"] == 0


def test_unknown_and_malformed_ids(client):
    missing = client.get(f"/news/{ObjectId()}")
    malformed = client.get("/news/not-an-id")

    assert missing.status_code == 404
    assert missing.json()["error"] == "News not found"
    assert malformed.status_code == 400
    assert malformed.json()["error"] == "Invalid news id"


def test_list_is_paginated_newest_first(client, insert_news):
    base = datetime(2024, 1, 1)
    for n in range(1, 26):
        insert_news(**_story(n, base))

    resp = client.get("/news", params={"page": 2, "limit": 10})

    body = resp.json()
    assert [a["title"] for a in body["data"]] == [f"Story {n}" for n in range(15, 5, -1)]
    assert body["pagination"] == {"page": 2, "limit": 10, "total": 25, "pages": 3}


def test_list_defaults_to_twelve_per_page(client, insert_news):
    for n in range(14):
        insert_news(title=f"Item {n}")

    body = client.get("/news").json()

    assert len(body["data"]) == 12
    assert body["pagination"]["pages"] == 2


def test_list_filters_by_category(client, insert_news):
    insert_news(category="World")
    insert_news(category="Health")
    insert_news(category="World")

    world = client.get("/news", params={"category": "World"}).json()
    everything = client.get("/news", params={"category": "All"}).json()

    assert world["pagination"]["total"] == 2
    assert {a["category"] for a in world["data"]} == {"World"}
    assert everything["pagination"]["total"] == 3


def test_list_filters_by_day_and_tag(client, insert_news):
    insert_news(title="Monday", published_at=datetime(2024, 3, 4, 9, 30), tags=["ai"])
    insert_news(title="Monday late", published_at=datetime(2024, 3, 4, 23, 59))
    insert_news(title="Tuesday", published_at=datetime(2024, 3, 5, 0, 0), tags=["ai"])

    by_day = client.get("/news", params={"date": "2024-03-04"}).json()["data"]
    by_tag = client.get("/news", params={"tag": "ai"}).json()["data"]

    assert [a["title"] for a in by_day] == ["Monday late", "Monday"]
    assert [a["title"] for a in by_tag] == ["Tuesday", "Monday"]


def test_list_rejects_bad_paging(client):
    assert client.get("/news", params={"page": 0}).status_code == 400
    assert client.get("/news", params={"limit": 500}).status_code == 400


def test_featured_and_trending_feeds(client, insert_news):
    base = datetime(2024, 6, 1)
    insert_news(title="Old featured", is_featured=True, published_at=base)
    insert_news(title="New featured", is_featured=True, published_at=base + timedelta(days=1))
    insert_news(title="Quiet", is_trending=True, views=3)
    insert_news(title="Popular", is_trending=True, views=40)
    insert_news(title="Plain")

    featured = client.get("/featured").json()["data"]
    trending = client.get("/trending").json()["data"]
    via_type = client.get("/news", params={"type": "trending"}).json()["data"]

    assert [a["title"] for a in featured] == ["New featured", "Old featured"]
    assert [a["title"] for a in trending] == ["Popular", "Quiet"]
    assert via_type == trending


def test_featured_respects_limit(client, insert_news):
    for n in range(7):
        insert_news(title=f"F{n}", is_featured=True)

    assert len(client.get("/featured").json()["data"]) == 5
    assert len(client.get("/featured", params={"limit": 2}).json()["data"]) == 2


def test_categories_include_empty_ones(client, insert_news):
    insert_news(category="Science")
    insert_news(category="Science")

    data = client.get("/categories").json()["data"]

    assert {"name": "Science", "count": 2} in data
    assert {"name": "Business", "count": 0} in data
    assert len(data) == 5


# =========================
# Update / toggle / delete
# =========================

def test_update_changes_only_sent_fields(client, insert_news, auth_headers):
    article = insert_news()

    resp = client.put(f"/news/{article['_id']}", json={"title": "Renamed"}, headers=auth_headers)

    data = resp.json()["data"]
    assert resp.status_code == 200
    assert data["title"] == "Renamed"
    assert data["summary"] == article["summary"]


def test_update_missing_article(client, auth_headers):
    resp = client.put(f"/admin/news/{ObjectId()}", json={"title": "X"}, headers=auth_headers)

    assert resp.status_code == 404


def test_toggle_featured_twice_restores_flag(client, insert_news, auth_headers):
    article = insert_news()
    url = f"/news/{article['_id']}"

    first = client.patch(url, params={"action": "featured"}, headers=auth_headers)
    second = client.patch(url, params={"action": "featured"}, headers=auth_headers)

    assert first.json()["data"]["isFeatured"] is True
    assert second.json()["data"]["isFeatured"] is False


def test_toggle_requires_matching_permission(client, insert_news, make_admin):
    article = insert_news()
    featurer = make_admin(permissions=["feature"])
    url = f"/admin/news/{article['_id']}"

    assert client.patch(url, params={"action": "featured"}, headers=featurer["headers"]).status_code == 200
    assert client.patch(url, params={"action": "trending"}, headers=featurer["headers"]).status_code == 403


def test_toggle_rejects_unknown_action(client, insert_news, auth_headers):
    article = insert_news()

    resp = client.patch(f"/news/{article['_id']}", params={"action": "pinned"}, headers=auth_headers)

    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid action"


def test_delete_news(client, insert_news, auth_headers, database):
    article = insert_news()

    resp = client.delete(f"/news/{article['_id']}", headers=auth_headers)

    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "News deleted successfully"}
    assert registry.collection(database, NewsArticle).count_documents({}) == 0
    assert client.delete(f"/news/{article['_id']}", headers=auth_headers).status_code == 404


# =========================
# Admin listing / stats
# =========================

def test_admin_stats(client, insert_news, auth_headers):
    insert_news(category="World", views=10, is_featured=True)
    insert_news(category="World", views=5, is_trending=True)
    insert_news(category="Health", views=1)

    data = client.get("/admin/stats", headers=auth_headers).json()["data"]

    assert data["totalNews"] == 3
    assert data["featuredNews"] == 1
    assert data["trendingNews"] == 1
    assert data["totalViews"] == 16
    assert data["newsByCategory"] == [{"_id": "World", "count": 2}, {"_id": "Health", "count": 1}]


def test_admin_stats_on_empty_database(client, auth_headers):
    data = client.get("/admin/stats", headers=auth_headers).json()["data"]

    assert data["totalNews"] == 0
    assert data["totalViews"] == 0


def test_admin_list_requires_token(client, insert_news, auth_headers):
    insert_news()

    assert client.get("/admin/news").status_code == 401
    assert client.get("/admin/news", headers=auth_headers).json()["pagination"]["total"] == 1


def test_timestamps_read_back_as_utc(client, auth_headers):
    body = {
        "title": "T",
        "summary": "S",
        "category": "World",
        "coverImage": "http://x",
        "publishedAt": "2024-05-01T12:30:00+00:00",
    }
    created = client.post("/admin/news", json=body, headers=auth_headers).json()["data"]

    fetched = client.get(f"/news/{created['_id']}").json()["data"]

    assert created["publishedAt"] == "2024-05-01T12:30:00+00:00"
    assert fetched["publishedAt"] == created["publishedAt"]
    assert fetched["createdAt"] == created["createdAt"]


def test_type_param_uses_feed_defaults_and_limit(client, insert_news):
    for n in range(7):
        insert_news(title=f"F{n}", is_featured=True)

    default = client.get("/news", params={"type": "featured"}).json()["data"]
    limited = client.get("/news", params={"type": "featured", "limit": 3}).json()["data"]

    assert len(default) == len(client.get("/featured").json()["data"]) == 5
    assert len(limited) == 3
