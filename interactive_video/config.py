import os
from dataclasses import dataclass, field


def _env(name, default=''):
    return (os.getenv(name, default) or default).strip()


@dataclass(frozen=True)
class AppConfig:
    """Central config object read once by the app factory."""

    flask_secret_key: str = field(default_factory=lambda: _env('FLASK_SECRET_KEY'))
    log_level: str = field(default_factory=lambda: _env('LOG_LEVEL', 'INFO').upper())
    sentry_environment: str = field(default_factory=lambda: _env('SENTRY_ENVIRONMENT', _env('FLASK_ENV', 'production')))
    sentry_release: str = field(default_factory=lambda: _env('SENTRY_RELEASE', 'interactive-video-platform'))
    public_base_url: str = field(default_factory=lambda: _env('PUBLIC_BASE_URL').rstrip('/'))
    video_token_secret: str = field(default_factory=lambda: _env('VIDEO_TOKEN_SECRET'))


def resolve_runtime_env() -> str:
    return (
        os.getenv('SENTRY_ENVIRONMENT')
        or os.getenv('FLASK_ENV')
        or os.getenv('ENV')
        or ('production' if os.getenv('RENDER') else 'development')
    ).strip().lower()


def load_config() -> AppConfig:
    config = AppConfig()
    is_dev_like = resolve_runtime_env() in {'development', 'dev', 'local', 'test'}
    if not is_dev_like and not config.flask_secret_key:
        raise RuntimeError('FLASK_SECRET_KEY must be set in non-development environments.')
    if not is_dev_like and not config.video_token_secret:
        raise RuntimeError('VIDEO_TOKEN_SECRET must be set in non-development environments.')
    return config
