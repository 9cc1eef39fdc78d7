import pytest

from interactive_video.config import load_config


def test_load_config_requires_secret_key_in_non_dev(monkeypatch):
    monkeypatch.setenv("RENDER", "true")
    monkeypatch.delenv("FLASK_ENV", raising=False)
    monkeypatch.delenv("SENTRY_ENVIRONMENT", raising=False)
    monkeypatch.delenv("ENV", raising=False)
    monkeypatch.delenv("FLASK_SECRET_KEY", raising=False)
    monkeypatch.setenv("VIDEO_TOKEN_SECRET", "token-secret")

    with pytest.raises(RuntimeError):
        load_config()


def test_load_config_requires_video_token_secret_in_non_dev(monkeypatch):
    monkeypatch.setenv("RENDER", "true")
    monkeypatch.delenv("FLASK_ENV", raising=False)
    monkeypatch.delenv("SENTRY_ENVIRONMENT", raising=False)
    monkeypatch.delenv("ENV", raising=False)
    monkeypatch.setenv("FLASK_SECRET_KEY", "flask-secret")
    monkeypatch.delenv("VIDEO_TOKEN_SECRET", raising=False)

    with pytest.raises(RuntimeError, match="VIDEO_TOKEN_SECRET"):
        load_config()


def test_load_config_allows_missing_secrets_in_dev(monkeypatch):
    monkeypatch.delenv("RENDER", raising=False)
    monkeypatch.delenv("SENTRY_ENVIRONMENT", raising=False)
    monkeypatch.setenv("FLASK_ENV", "development")
    monkeypatch.delenv("FLASK_SECRET_KEY", raising=False)
    monkeypatch.delenv("VIDEO_TOKEN_SECRET", raising=False)

    cfg = load_config()
    assert cfg.flask_secret_key == ""
    assert cfg.video_token_secret == ""


def test_load_config_strips_trailing_slash_from_public_base_url(monkeypatch):
    monkeypatch.setenv("FLASK_ENV", "test")
    monkeypatch.setenv("PUBLIC_BASE_URL", "https://videos.example.com/")

    cfg = load_config()
    assert cfg.public_base_url == "https://videos.example.com"
