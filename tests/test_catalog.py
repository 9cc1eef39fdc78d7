from interactive_video.services import catalog_api_service


def _seed_video(fake_db, video_id, category, tags, visibility="public"):
    fake_db.seed("videos", video_id, {
        "uid": "creator-1",
        "title": video_id,
        "visibility": visibility,
        "category": category,
        "tags": tags,
        "created_at": 1.0,
    })


def test_count_tags_ranks_by_count_then_name():
    videos = [{"tags": ["python", "flask"]}, {"tags": ["python", "api", "api"]}, {"tags": None}]

    assert catalog_api_service.count_tags(videos) == [
        {"name": "python", "count": 2},
        {"name": "api", "count": 1},
        {"name": "flask", "count": 1},
    ]
    assert catalog_api_service.count_tags(videos, limit=1) == [{"name": "python", "count": 2}]


def test_categories_are_ordered_with_public_video_counts(client, fake_db):
    fake_db.seed("categories", "cat-2", {"name": "Science", "slug": "science", "order": 2})
    fake_db.seed("categories", "cat-1", {"name": "Education", "slug": "education", "order": 1, "icon": "book"})
    _seed_video(fake_db, "v1", "education", ["python"])
    _seed_video(fake_db, "v2", "education", ["python", "flask"])
    _seed_video(fake_db, "v3", "education", ["secret"], visibility="private")

    categories = client.get("/api/categories").get_json()["categories"]

    assert [category["slug"] for category in categories] == ["education", "science"]
    assert categories[0]["video_count"] == 2
    assert categories[0]["icon"] == "book"
    assert categories[1]["video_count"] == 0


def test_category_tags_and_popular_tags(client, fake_db):
    fake_db.seed("categories", "cat-1", {"name": "Education", "slug": "education", "order": 1})
    _seed_video(fake_db, "v1", "education", ["python"])
    _seed_video(fake_db, "v2", "science", ["physics", "python"])
    _seed_video(fake_db, "v3", "education", ["secret"], visibility="private")

    tags = client.get("/api/categories/education/tags").get_json()["tags"]
    assert tags == [{"name": "python", "count": 1}]
    assert client.get("/api/categories/missing/tags").status_code == 404

    popular = client.get("/api/tags/popular").get_json()["tags"]
    assert popular == [{"name": "python", "count": 2}, {"name": "physics", "count": 1}]
