import os

from flask import Flask

from .config import load_config
from .extensions import init_extensions
from .logging_config import configure_logging


def create_app():
    """App factory entrypoint.

    Clients and env-derived settings live in runtime; blueprints resolve it lazily
    so tests can monkeypatch module attributes after the app is built.
    """
    config = load_config()
    configure_logging(config.log_level)

    from . import runtime
    from .blueprints import (
        account_bp,
        admin_bp,
        ads_bp,
        affiliate_bp,
        auth_bp,
        catalog_bp,
        core_bp,
        creator_bp,
        engagement_bp,
        interactions_bp,
        notifications_bp,
        sharing_bp,
        subscriptions_bp,
        templates_bp,
        videos_bp,
    )

    app = Flask(__name__)
    app.secret_key = config.flask_secret_key or os.urandom(32).hex()
    app.config['MAX_CONTENT_LENGTH'] = runtime.MAX_CONTENT_LENGTH
    runtime.register_request_hooks(app)

    for blueprint in (
        core_bp,
        auth_bp,
        account_bp,
        videos_bp,
        catalog_bp,
        interactions_bp,
        templates_bp,
        engagement_bp,
        notifications_bp,
        sharing_bp,
        subscriptions_bp,
        ads_bp,
        creator_bp,
        affiliate_bp,
        admin_bp,
    ):
        app.register_blueprint(blueprint)

    init_extensions(app, runtime, config)
    return app
