import json
from types import SimpleNamespace

import pytest

from interactive_video import runtime
from interactive_video.services import ai_service

DRAFTS = {
    "interactions": [
        {
            "type": "quiz",
            "title": "What does POST do?",
            "timestamp": 60,
            "options": [{"text": "Creates", "is_correct": True}, {"text": "Deletes"}],
        },
        {
            "type": "branching",
            "title": "Pick a path",
            "timestamp": 20,
            "options": [{"text": "Deep dive", "action": "jump:90"}, {"text": "Recap", "action": "jump:30"}],
        },
        {"type": "quiz", "title": "Too late", "timestamp": 999, "options": [{"text": "A", "is_correct": True}, {"text": "B"}]},
        "not an element",
    ],
}


class _FakeModels:
    def __init__(self, text):
        self.text = text
        self.calls = []

    def generate_content(self, **kwargs):
        self.calls.append(kwargs)
        return SimpleNamespace(text=self.text)


def _fake_client(text):
    return SimpleNamespace(models=_FakeModels(text))


def test_validate_generation_request_defaults_and_errors():
    params, errors = ai_service.validate_generation_request({"prompt": "  Quiz me  "})
    assert errors == {}
    assert params["prompt"] == "Quiz me"
    assert params["interaction_type"] == "auto"
    assert params["count"] == 3
    assert params["settings"]["difficulty"] == "medium"

    _, errors = ai_service.validate_generation_request({
        "type": "survey",
        "count": 11,
        "density": 5,
        "settings": {"difficulty": "extreme", "style": "loud"},
    })
    assert set(errors) == {"prompt", "type", "count", "density", "settings.difficulty", "settings.style"}


@pytest.mark.parametrize(
    "raw, expected",
    [
        ('{"interactions": []}', {"interactions": []}),
        ('```json\n{"interactions": [1]}\n```', {"interactions": [1]}),
        ('Here you go: {"a": 1} trailing words', {"a": 1}),
        ("no json here", None),
        ("", None),
    ],
)
def test_extract_json_payload(raw, expected):
    assert ai_service.extract_json_payload(raw) == expected


def test_sanitize_drafts_validates_and_maps_branching():
    drafts = ai_service.sanitize_drafts(DRAFTS["interactions"], 120.0, 5, "auto")

    assert [draft["type"] for draft in drafts] == ["decision", "quiz"]
    assert [draft["timestamp"] for draft in drafts] == [20.0, 60.0]
    assert ai_service.sanitize_drafts(DRAFTS["interactions"], 120.0, 5, "quiz")[0]["title"] == "What does POST do?"
    assert len(ai_service.sanitize_drafts(DRAFTS["interactions"], 120.0, 1, "auto")) == 1
    assert ai_service.sanitize_drafts("nope", 120.0, 5, "auto") == []


def test_generate_interactions_requires_client():
    with pytest.raises(ai_service.AIUnavailableError):
        ai_service.generate_interactions(
            None, "model", runtime.types,
            video={}, prompt="p", transcript="", interaction_type="auto", count=1, density=50, settings={},
        )


def test_generate_interactions_rejects_unparseable_output():
    with pytest.raises(ai_service.AIGenerationError):
        ai_service.generate_interactions(
            _fake_client("I cannot help with that"), "model", runtime.types,
            video={"duration": 120}, prompt="p", transcript="", interaction_type="auto", count=1, density=50, settings={},
        )


def test_build_prompt_includes_transcript_only_when_given():
    video = {"title": "REST basics", "duration": 120, "tags": ["http", "api"]}
    settings = {"difficulty": "easy", "style": "casual", "language": "english", "audience": "students"}

    with_transcript = ai_service.build_prompt(video, "Focus on verbs", "GET fetches.", "quiz", 2, 40, settings)
    without = ai_service.build_prompt(video, "Focus on verbs", "", "auto", 2, 40, settings)

    assert "Video transcript:\nGET fetches." in with_transcript
    assert "Video transcript" not in without
    assert "Tags: http, api" in without
    assert "Mixed (choose appropriate types)" in without


def _seed_video(fake_db):
    fake_db.seed("videos", "v1", {"uid": "creator-1", "title": "REST basics", "duration": 120, "interactive_elements": []})


def test_generate_endpoint_returns_drafts_without_saving(client, login, no_rate_limit, fake_db, monkeypatch):
    fake_client = _fake_client(json.dumps(DRAFTS))
    monkeypatch.setattr(runtime, "client", fake_client)
    _seed_video(fake_db)
    login()

    response = client.post("/api/videos/v1/elements/generate", json={"prompt": "Check understanding", "count": 5})

    assert response.status_code == 200
    drafts = response.get_json()["interactions"]
    assert [draft["type"] for draft in drafts] == ["decision", "quiz"]
    assert fake_db.docs("videos")["v1"]["interactive_elements"] == []
    assert fake_client.models.calls[0]["model"] == runtime.GEMINI_MODEL


def test_generate_endpoint_without_ai_client_is_503(client, login, no_rate_limit, fake_db, monkeypatch):
    monkeypatch.setattr(runtime, "client", None)
    _seed_video(fake_db)
    login()

    response = client.post("/api/videos/v1/elements/generate", json={"prompt": "Check understanding"})

    assert response.status_code == 503


def test_generate_endpoint_validates_input(client, login, no_rate_limit, fake_db):
    _seed_video(fake_db)
    login()

    response = client.post("/api/videos/v1/elements/generate", json={"count": 3})

    assert response.status_code == 400
    assert "prompt" in response.get_json()["details"]
