def _seed_video(fake_db):
    fake_db.seed("videos", "v1", {"uid": "creator-1", "title": "Lesson", "visibility": "public"})


def test_progress_defaults_then_saves(client, login, fake_db):
    _seed_video(fake_db)
    fake_db.seed("video_views", "view-old", {"video_id": "v1", "uid": "viewer-1", "created_at": 5.0})
    fake_db.seed("video_views", "view-new", {"video_id": "v1", "uid": "viewer-1", "created_at": 9.0})
    login(uid="viewer-1")

    empty = client.get("/api/progress/v1").get_json()
    assert empty["last_position"] == 0
    assert empty["completed_interactions"] == []

    saved = client.post("/api/progress/v1", json={
        "last_position": 42.5,
        "completed_interactions": ["q1", "q1", "", "hotspot-2"],
        "completed": True,
        "watch_time": 40,
    })
    assert saved.status_code == 200

    stored = fake_db.docs("video_progress")["viewer-1__v1"]
    assert stored["last_position"] == 42.5
    assert stored["completed_interactions"] == ["q1", "hotspot-2"]
    views = fake_db.docs("video_views")
    assert views["view-new"]["completed"] is True
    assert views["view-new"]["watch_time"] == 40.0
    assert "completed" not in views["view-old"]

    loaded = client.get("/api/progress/v1").get_json()
    assert loaded["last_position"] == 42.5


def test_progress_validation(client, login, fake_db):
    _seed_video(fake_db)
    login(uid="viewer-1")

    assert client.post("/api/progress/v1", json={"last_position": -1}).status_code == 400
    assert client.post("/api/progress/v1", json={"last_position": True}).status_code == 400
    assert client.post("/api/progress/v1", json={"completed_interactions": "q1"}).status_code == 400
    assert client.post("/api/progress/missing", json={"last_position": 1}).status_code == 404


def test_progress_requires_login(client):
    assert client.get("/api/progress/v1").status_code == 401


def test_comments_are_threaded(client, login, fake_db):
    _seed_video(fake_db)
    fake_db.seed("users", "viewer-1", {"display_name": "Viewer One"})
    fake_db.seed("comments", "c1", {"uid": "viewer-1", "video_id": "v1", "content": "First", "parent_id": "", "created_at": 1.0})
    fake_db.seed("comments", "c2", {"uid": "viewer-2", "video_id": "v1", "content": "Second", "parent_id": "", "created_at": 2.0})
    fake_db.seed("comments", "r2", {"uid": "creator-1", "video_id": "v1", "content": "Late reply", "parent_id": "c1", "created_at": 4.0})
    fake_db.seed("comments", "r1", {"uid": "viewer-2", "video_id": "v1", "content": "Reply", "parent_id": "c1", "created_at": 3.0})

    comments = client.get("/api/comments?video_id=v1").get_json()["comments"]

    assert [comment["id"] for comment in comments] == ["c2", "c1"]
    assert [reply["id"] for reply in comments[1]["replies"]] == ["r1", "r2"]
    assert comments[1]["author"] == {"uid": "viewer-1", "display_name": "Viewer One"}
    assert comments[0]["replies"] == []
    assert client.get("/api/comments").status_code == 400


def test_create_comment_validates_parent_and_length(client, login, fake_db):
    _seed_video(fake_db)
    fake_db.seed("videos", "v2", {"uid": "creator-1", "title": "Other"})
    fake_db.seed("comments", "c-other", {"uid": "viewer-2", "video_id": "v2", "content": "Elsewhere", "parent_id": ""})
    login(uid="viewer-1")

    assert client.post("/api/comments", json={"video_id": "v1", "content": "   "}).status_code == 400
    assert client.post("/api/comments", json={"video_id": "v1", "content": "x" * 2001}).status_code == 400
    assert client.post("/api/comments", json={"video_id": "nope", "content": "Hi"}).status_code == 404
    assert client.post("/api/comments", json={"video_id": "v1", "content": "Hi", "parent_id": "c-other"}).status_code == 400

    created = client.post("/api/comments", json={"video_id": "v1", "content": "  Great lesson  "})
    assert created.status_code == 201
    comment = created.get_json()["comment"]
    assert comment["content"] == "Great lesson"
    assert comment["uid"] == "viewer-1"

    reply = client.post("/api/comments", json={"video_id": "v1", "content": "x" * 2000, "parent_id": comment["id"]})
    assert reply.status_code == 201
    assert fake_db.docs("comments")[reply.get_json()["comment"]["id"]]["parent_id"] == comment["id"]


def test_replies_cannot_nest(client, login, fake_db):
    _seed_video(fake_db)
    fake_db.seed("comments", "c1", {"uid": "viewer-2", "video_id": "v1", "content": "Top", "parent_id": "", "created_at": 1.0})
    fake_db.seed("comments", "r1", {"uid": "viewer-2", "video_id": "v1", "content": "Reply", "parent_id": "c1", "created_at": 2.0})
    login(uid="viewer-1")

    response = client.post("/api/comments", json={"video_id": "v1", "content": "Nested", "parent_id": "r1"})

    assert response.status_code == 400
    assert len(fake_db.docs("comments")) == 2


def test_private_video_comments_and_progress_are_hidden(client, login, fake_db):
    fake_db.seed("videos", "v1", {"uid": "creator-1", "title": "Draft", "visibility": "private"})
    fake_db.seed("comments", "c1", {"uid": "creator-1", "video_id": "v1", "content": "secret", "parent_id": "", "created_at": 1.0})

    assert client.get("/api/comments?video_id=v1").status_code == 404

    login(uid="stranger")
    assert client.get("/api/comments?video_id=v1").status_code == 404
    assert client.post("/api/comments", json={"video_id": "v1", "content": "Hi"}).status_code == 404
    assert client.post("/api/progress/v1", json={"last_position": 3}).status_code == 404
    assert client.get("/api/progress/v1").status_code == 404
    assert list(fake_db.docs("comments")) == ["c1"]

    login()
    comments = client.get("/api/comments?video_id=v1").get_json()["comments"]
    assert [comment["content"] for comment in comments] == ["secret"]
